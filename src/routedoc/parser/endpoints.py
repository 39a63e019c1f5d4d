"""Endpoint extractor: HTTP-verb calls inside a router span."""

import logging
import re

from routedoc.errors import StructuralParseError
from routedoc.parser.base import HTTP_METHODS, EndpointToken, MiddlewareExpression
from routedoc.parser.locator import COMMENTS
from routedoc.parser.scanner import match_delimited, skip_opaque, split_top_level, strip_quotes

logger = logging.getLogger(__name__)

VERB_CALL = re.compile(rf"\.\s*({'|'.join(HTTP_METHODS)})\s*\(")
# `);  // @summary List users` right after the call
ANNOTATION = re.compile(r"[ \t;]{0,4}//[ \t]*@(?:summary|description)[ \t]+([^\n]*)")
RECEIVER = re.compile(r"([A-Za-z_$][\w$]*)\s*$")
# :id, :id?, :id(\d+)
PATH_PARAM = re.compile(r":([A-Za-z_$][\w$]*)(?:\([^)]*\))?[?*+]?")


def _called_on(span: str, dot: int, receiver: str, previous_end: int | None) -> bool:
    """True if the call at ``dot`` is made on ``receiver`` or chained onto the previous route."""
    if previous_end is not None and not COMMENTS.sub("", span[previous_end:dot]).strip():
        return True
    before = span[:dot]
    match = RECEIVER.search(before)
    if not match or match.group(1) != receiver:
        return False
    # r.get( but not other.r.get(
    return not before[: match.start(1)].rstrip().endswith(".")


def extract_endpoint_tokens(span: str, receiver: str | None = None) -> list[EndpointToken]:
    """Return one token per ``.verb(...)`` call, in source order.

    Comments and string literals are skipped. With ``receiver`` set, only
    calls on that router (``r.get(``) or chained onto its previous route call
    (``r.get(...).post(``) count. Scanning stops at the first call whose
    argument list never closes; the rest of the span is not searched.
    """
    tokens = []
    previous_end = None
    i = 0
    while i < len(span):
        try:
            skipped = skip_opaque(span, i)
        except StructuralParseError as exc:
            logger.warning("Unterminated string literal, ignoring rest of router: %s", exc)
            break
        if skipped is not None:
            i = skipped
            continue
        match = VERB_CALL.match(span, i) if span[i] == "." else None
        if match is None:
            i += 1
            continue
        if receiver is not None and not _called_on(span, i, receiver, previous_end):
            i = match.end()
            continue
        try:
            arguments, end = match_delimited(span, match.end(), "(")
        except StructuralParseError as exc:
            logger.warning("Unterminated .%s( call, ignoring rest of router: %s", match.group(1), exc)
            break
        annotation = ANNOTATION.match(span, end)
        tokens.append(
            EndpointToken(
                method=match.group(1),
                arguments=arguments,
                description=annotation.group(1).strip() if annotation else None,
            )
        )
        previous_end = i = end
    return tokens


def normalize_path(path: str) -> str:
    """Rewrite ``:name`` parameters to ``{name}``."""
    return PATH_PARAM.sub(r"{\1}", path)


def join_path(mount: str, local: str) -> str:
    """Prefix ``local`` with the router mount; ``/`` alone collapses to the mount."""
    prefix = "/" + mount.strip("/") if mount.strip("/") else ""
    local = local.strip()
    if local in ("", "/"):
        return prefix or "/"
    if not local.startswith("/"):
        local = "/" + local
    return prefix + local


def split_endpoint(token: EndpointToken, mount: str) -> tuple[str, list[MiddlewareExpression]]:
    """Split a token into its full templated path and middleware chain.

    Raises StructuralParseError if the first argument is not a path literal.
    """
    args = split_top_level(token.arguments)
    if not args:
        raise StructuralParseError(f".{token.method}() call has no arguments")
    local = strip_quotes(args[0])
    if local is None:
        raise StructuralParseError(f".{token.method}() path is not a string literal: {args[0]!r}")
    path = normalize_path(join_path(mount, local))
    middlewares = [MiddlewareExpression(position=i, text=text) for i, text in enumerate(args[1:])]
    return path, middlewares
