"""Middleware classification and request/response schema resolution.

Turns an endpoint's middleware chain, e.g.

    validatePath(schemas.idParam),
    validateResponse([{status: 200, schema: schemas.userOut}]),
    getUser

into an EndpointRecord: request schemas by slot, response schemas by status
code and a summary taken from the operation handler.
"""

import logging
import re
from http import HTTPStatus

from routedoc.config import CustomMiddleware
from routedoc.errors import StructuralParseError
from routedoc.generator.document import REQUEST_SLOTS, EndpointRecord, RequestConfig, ResponseSpec
from routedoc.generator.schemas import Schema, SchemaResolver, synthesize_schema
from routedoc.parser.base import MiddlewareExpression, MiddlewareKind, RouterSource, SchemaReference
from routedoc.parser.scanner import (
    call_arguments,
    identifier_path,
    match_delimited,
    parse_object_literal,
    strip_quotes,
)

logger = logging.getLogger(__name__)

VALIDATORS = {
    MiddlewareKind.BODY: ("validateBody",),
    MiddlewareKind.QUERY: ("validateParam", "validateQuery"),
    MiddlewareKind.PATH: ("validatePath",),
    MiddlewareKind.HEADER: ("validateHeader",),
    MiddlewareKind.RESPONSE: ("validateResponse",),
}
SLOT_BY_KIND = {
    MiddlewareKind.BODY: "body",
    MiddlewareKind.QUERY: "query",
    MiddlewareKind.PATH: "path",
    MiddlewareKind.HEADER: "header",
}
HANDLER_WRAPPERS = ("usecaseWrapper", "executeAndValidateResponses", "executeAndValidateResponse")

# validator({body: s.a, param: s.b, usecase: fn, response: [...]})
COMPOSITE_VALIDATOR = "validator"
COMPOSITE_KEYS = {
    "body": "validateBody",
    "param": "validateParam",
    "query": "validateQuery",
    "header": "validateHeader",
    "path": "validatePath",
    "response": "validateResponse",
}


def mentions(expression: str, name: str) -> bool:
    """True if ``name`` appears in ``expression`` as a whole identifier."""
    return re.search(rf"(?<![\w$]){re.escape(name)}(?![\w$])", expression) is not None


def expand_composite(expressions: list[MiddlewareExpression]) -> list[MiddlewareExpression]:
    """Replace ``validator({...})`` expressions by single-purpose ones."""
    expanded: list[str] = []
    for expression in expressions:
        args = None
        if mentions(expression.text, COMPOSITE_VALIDATOR):
            args = call_arguments(expression.text, COMPOSITE_VALIDATOR)
        if not args or not args[0].startswith("{"):
            expanded.append(expression.text)
            continue
        config = parse_object_literal(args[0])
        for key, value in config.items():
            if key in COMPOSITE_KEYS:
                expanded.append(f"{COMPOSITE_KEYS[key]}({value})")
            elif key == "usecase":
                wrapped = config.get("useWrappedUsecase", "").strip() == "true"
                expanded.append(f"usecaseWrapper({value})" if wrapped else value)
    return [MiddlewareExpression(position=i, text=text) for i, text in enumerate(expanded)]


def response_entries(expression: str) -> list[tuple[str, str, str | None]]:
    """``(status, schema expression, description)`` triples in ``expression``.

    Accepts ``{status: 200, schema: s.a}`` object literals anywhere in the
    expression and the positional form ``validateResponse(200, s.a)``.
    """
    entries = []
    position = expression.find("{")
    while position != -1:
        content, end = match_delimited(expression, position + 1, "{")
        try:
            entry = parse_object_literal("{" + content + "}")
        except StructuralParseError:
            entry = {}
        if "status" in entry and "schema" in entry:
            status = strip_quotes(entry["status"]) or entry["status"]
            description = entry.get("description")
            entries.append((status, entry["schema"], strip_quotes(description) if description else None))
            position = expression.find("{", end)
        else:
            position = expression.find("{", position + 1)

    if not entries and mentions(expression, "validateResponse"):
        args = call_arguments(expression, "validateResponse") or []
        if len(args) >= 2 and (strip_quotes(args[0]) or args[0]).isdigit():
            description = strip_quotes(args[2]) if len(args) > 2 else None
            entries.append((strip_quotes(args[0]) or args[0], args[1], description))
    return entries


def status_description(status: str, fallback: str) -> str:
    try:
        return HTTPStatus(int(status)).phrase
    except ValueError:
        return fallback


def _camel(name: str) -> str:
    return "".join(part[:1].upper() + part[1:] for part in re.split(r"[^A-Za-z0-9]+", name) if part)


class EndpointBuilder:
    """Builds endpoint records from middleware chains.

    Schema references are resolved through ``resolver``; custom middleware
    declarations contribute fixed fields and security requirements.
    Middleware names in ``denied_middlewares`` are never taken as the
    operation handler.
    """

    def __init__(
        self,
        resolver: SchemaResolver,
        custom_middlewares: list[CustomMiddleware] | None = None,
        denied_middlewares: list[str] | None = None,
    ):
        self.resolver = resolver
        self.custom_middlewares = list(custom_middlewares or [])
        self.denied_middlewares = list(denied_middlewares or [])
        self._synthesized: dict[tuple[str, str], Schema] = {}

    def classify(self, expressions: list[MiddlewareExpression]) -> list[MiddlewareExpression]:
        """Return the (expanded) chain with every expression's kind set.

        The first expression matching no validator, custom or denied
        middleware becomes the operation handler.
        """
        classified = []
        handler_found = False
        for expression in expand_composite(expressions):
            kind = self._kind(expression.text)
            if kind in (MiddlewareKind.HANDLER, MiddlewareKind.UNCLASSIFIED):
                denied = any(mentions(expression.text, name) for name in self.denied_middlewares)
                if handler_found or denied:
                    kind = MiddlewareKind.UNCLASSIFIED
                else:
                    kind = MiddlewareKind.HANDLER
                    handler_found = True
            classified.append(expression.model_copy(update={"kind": kind}))
        return classified

    def build(
        self,
        method: str,
        path: str,
        tag: str,
        expressions: list[MiddlewareExpression],
        source: RouterSource,
        description: str | None = None,
    ) -> EndpointRecord:
        chain = self.classify(expressions)
        request = RequestConfig()
        responses: dict[str, ResponseSpec] = {}
        security: list[str] = []
        summary = ""

        for expression in chain:
            kind = expression.kind
            if kind in SLOT_BY_KIND:
                self._apply_validator(expression.text, kind, request, source)
            elif kind is MiddlewareKind.CUSTOM:
                self._apply_custom(expression.text, request, security, source)
            if kind is MiddlewareKind.RESPONSE or (kind is MiddlewareKind.HANDLER and self._is_wrapper(expression.text)):
                for status, schema_text, status_text in response_entries(expression.text):
                    reference = self._reference(schema_text, source)
                    responses[status] = ResponseSpec(
                        description=status_text or status_description(status, schema_text),
                        body=self.resolver.resolve(reference) if reference else None,
                    )
            if kind is MiddlewareKind.HANDLER:
                summary = self._handler_name(expression.text)

        return EndpointRecord(
            method=method,
            path=path,
            summary=description or summary,
            description=description,
            tag=tag,
            request=request,
            responses=responses,
            security=security,
        )

    @staticmethod
    def _is_wrapper(text: str) -> bool:
        return any(mentions(text, wrapper) for wrapper in HANDLER_WRAPPERS)

    def _kind(self, text: str) -> MiddlewareKind:
        if self._is_wrapper(text):
            return MiddlewareKind.HANDLER
        for kind, callees in VALIDATORS.items():
            if any(mentions(text, callee) for callee in callees):
                return kind
        if any(mentions(text, custom.name) for custom in self.custom_middlewares):
            return MiddlewareKind.CUSTOM
        return MiddlewareKind.UNCLASSIFIED

    def _apply_validator(self, text: str, kind: MiddlewareKind, request: RequestConfig, source: RouterSource) -> None:
        callee = next(c for c in VALIDATORS[kind] if mentions(text, c))
        args = call_arguments(text, callee)
        if not args:
            logger.warning("%s without arguments in %s", callee, source.name)
            return
        reference = self._reference(args[0], source)
        if reference is None:
            logger.warning("No schema reference in %r (router %s)", text, source.name)
            return
        slot = SLOT_BY_KIND[kind]
        request.assign(slot, self.resolver.resolve(reference))
        if slot == "body" and len(args) > 1 and strip_quotes(args[1]):
            request.content_type = strip_quotes(args[1])

    def _apply_custom(self, text: str, request: RequestConfig, security: list[str], source: RouterSource) -> None:
        for custom in self.custom_middlewares:
            if not mentions(text, custom.name):
                continue
            for slot in REQUEST_SLOTS:
                fields = getattr(custom, slot)
                if fields:
                    request.assign(slot, self._synthesize(custom, slot, fields))
            if custom.schema_slot:
                args = call_arguments(text, custom.name) or []
                reference = self._reference(args[0], source) if args else None
                if reference is not None:
                    request.assign(custom.schema_slot, self.resolver.resolve(reference))
            if custom.security and custom.security not in security:
                security.append(custom.security)

    def _synthesize(self, custom: CustomMiddleware, slot: str, fields: list[str]) -> Schema:
        key = (custom.name, slot)
        if key not in self._synthesized:
            self._synthesized[key] = synthesize_schema(f"{_camel(custom.name)}{slot.title()}", fields)
        return self._synthesized[key]

    def _reference(self, text: str, source: RouterSource) -> SchemaReference | None:
        """Schema reference named by a ``module.export`` expression."""
        segments = identifier_path(text)
        if len(segments) == 1 and segments[0] in source.imports:
            # export imported by name: import { userOut } from './user.schema.ts'
            file_path = source.imports[segments[0]]
            module = file_path.name.split(".")[0]
            return SchemaReference(module=module, export=segments[0], file_path=file_path)
        if len(segments) < 2:
            return None
        module, export = segments[-2:]
        file_path = source.imports.get(module)
        if file_path is None and len(segments) == 2:
            file_path = source.schema_file
        return SchemaReference(module=module, export=export, file_path=file_path)

    def _handler_name(self, text: str) -> str:
        for wrapper in HANDLER_WRAPPERS:
            if mentions(text, wrapper):
                args = call_arguments(text, wrapper)
                segments = identifier_path(args[0]) if args else []
                if segments:
                    return segments[-1]
        return text.strip()
