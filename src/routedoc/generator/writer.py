"""OpenAPI 3.0 document writer.

Builds the OpenAPI dict from a DocumentModel and dumps it as YAML.
"""

import logging
from pathlib import Path
from typing import Any

import yaml

from routedoc.config import Server
from routedoc.errors import DocumentWriteError
from routedoc.generator.document import DocumentModel, EndpointRecord, SecurityScheme
from routedoc.generator.schemas import Schema
from routedoc.generator.validator import validate_document

logger = logging.getLogger(__name__)

OPENAPI_VERSION = "3.0.0"
DOCUMENT_NAME = "openapi-docs.yml"
REF_TEMPLATE = "#/components/schemas/{model}"
PARAMETER_SLOTS = (("path", "path"), ("query", "query"), ("header", "header"))


def to_openapi30(schema: Any) -> Any:
    """Rewrite JSON Schema ``anyOf [X, null]`` unions as ``nullable`` X."""
    if isinstance(schema, list):
        return [to_openapi30(item) for item in schema]
    if not isinstance(schema, dict):
        return schema
    converted = {key: to_openapi30(value) for key, value in schema.items()}
    variants = converted.get("anyOf")
    if isinstance(variants, list) and {"type": "null"} in variants:
        rest = [v for v in variants if v != {"type": "null"}]
        del converted["anyOf"]
        if len(rest) == 1:
            converted = {**rest[0], **converted}
        else:
            converted["anyOf"] = rest
        converted["nullable"] = True
    return converted


def rewrite_refs(schema: Any, renames: dict[str, str]) -> Any:
    """Replace ``$ref`` targets found in ``renames``."""
    if isinstance(schema, list):
        return [rewrite_refs(item, renames) for item in schema]
    if not isinstance(schema, dict):
        return schema
    rewritten = {key: rewrite_refs(value, renames) for key, value in schema.items()}
    if rewritten.get("$ref") in renames:
        rewritten["$ref"] = renames[rewritten["$ref"]]
    return rewritten


def _ref_renames(names: dict[str, str]) -> dict[str, str]:
    return {
        REF_TEMPLATE.format(model=old): REF_TEMPLATE.format(model=new)
        for old, new in names.items()
        if old != new
    }


class OpenApiBuilder:
    """Converts a DocumentModel into an OpenAPI dict.

    Nested model definitions are hoisted into ``components.schemas``.
    """

    def __init__(self):
        self.components: dict[str, Any] = {}

    def schema(self, schema: Schema) -> dict[str, Any]:
        rendered = schema.json_schema(ref_template=REF_TEMPLATE)
        definitions = {name: to_openapi30(d) for name, d in rendered.pop("$defs", {}).items()}

        # A nested model whose name is taken by a different definition is
        # registered as Name2, Name3, ...; renaming one definition changes the
        # $refs of those embedding it, so repeat until the names settle.
        names = {name: name for name in definitions}
        for _ in range(len(definitions) + 1):
            refs = _ref_renames(names)
            settled = {
                name: self._free_name(name, rewrite_refs(definition, refs))
                for name, definition in definitions.items()
            }
            if settled == names:
                break
            names = settled

        refs = _ref_renames(names)
        for name, definition in definitions.items():
            if names[name] != name:
                logger.info("Nested schema %s of %s registered as %s", name, schema.name, names[name])
            self.components.setdefault(names[name], rewrite_refs(definition, refs))
        return rewrite_refs(to_openapi30(rendered), refs)

    def _free_name(self, name: str, definition: dict[str, Any]) -> str:
        """``name`` or the first ``name<N>`` that is unused or holds ``definition``."""
        candidate, suffix = name, 1
        while candidate in self.components and self.components[candidate] != definition:
            suffix += 1
            candidate = f"{name}{suffix}"
        return candidate

    def parameters(self, schema: Schema, location: str) -> list[dict[str, Any]]:
        rendered = self.schema(schema)
        required = set(rendered.get("required", []))
        parameters = []
        for name, prop in rendered.get("properties", {}).items():
            parameter = {
                "name": name,
                "in": location,
                "required": location == "path" or name in required,
                "schema": prop,
            }
            if "description" in prop:
                parameter["description"] = prop["description"]
            parameters.append(parameter)
        return parameters

    def operation(self, record: EndpointRecord) -> dict[str, Any]:
        operation: dict[str, Any] = {"summary": record.summary, "tags": [record.tag]}
        if record.description:
            operation["description"] = record.description
        if record.security:
            operation["security"] = [{name: []} for name in record.security]

        parameters = []
        for slot, location in PARAMETER_SLOTS:
            schema = getattr(record.request, slot)
            if schema is not None:
                parameters.extend(self.parameters(schema, location))
        if parameters:
            operation["parameters"] = parameters

        if record.request.body is not None:
            operation["requestBody"] = {
                "required": True,
                "content": {record.request.content_type: {"schema": self.schema(record.request.body)}},
            }

        responses: dict[str, Any] = {}
        for status, spec in record.responses.items():
            response: dict[str, Any] = {"description": spec.description}
            if spec.body is not None:
                response["content"] = {"application/json": {"schema": self.schema(spec.body)}}
            responses[status] = response
        operation["responses"] = responses or {"default": {"description": "Unspecified response"}}
        return operation

    def build(
        self,
        model: DocumentModel,
        title: str,
        version: str,
        servers: list[Server],
        description: str = "",
    ) -> dict[str, Any]:
        info: dict[str, Any] = {"title": title, "version": version}
        if description:
            info["description"] = description

        document: dict[str, Any] = {"openapi": OPENAPI_VERSION, "info": info}
        if servers:
            document["servers"] = [server.model_dump(exclude_none=True) for server in servers]

        paths: dict[str, Any] = {}
        for path, records in model.paths().items():
            paths[path] = {record.method.lower(): self.operation(record) for record in records}

        components: dict[str, Any] = {}
        if model.security_schemes:
            components["securitySchemes"] = {
                name: security_scheme(scheme) for name, scheme in model.security_schemes.items()
            }
        if self.components:
            components["schemas"] = self.components
        if components:
            document["components"] = components
        document["paths"] = paths
        return document


def security_scheme(scheme: SecurityScheme) -> dict[str, Any]:
    if scheme.type == "http":
        rendered: dict[str, Any] = {"type": "http", "scheme": scheme.scheme or "bearer"}
    else:
        rendered = {"type": scheme.type, "in": scheme.location, "name": scheme.parameter}
    if scheme.description:
        rendered["description"] = scheme.description
    return rendered


def build_openapi(
    model: DocumentModel,
    title: str = "API",
    version: str = "1.0.0",
    servers: list[Server] | None = None,
    description: str = "",
) -> dict[str, Any]:
    return OpenApiBuilder().build(model, title, version, servers or [], description)


def write_document(
    model: DocumentModel,
    destination: Path,
    title: str = "API",
    version: str = "1.0.0",
    servers: list[Server] | None = None,
    description: str = "",
    filename: str = DOCUMENT_NAME,
) -> Path:
    """Serialize ``model`` as an OpenAPI YAML file in ``destination``.

    Returns the written file path. Raises DocumentWriteError on I/O failure.
    """
    document = build_openapi(model, title, version, servers, description)
    for location, message in validate_document(document).items():
        logger.warning("%s: %s", location, message)

    target = Path(destination) / filename
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(yaml.safe_dump(document, sort_keys=False, allow_unicode=True), encoding="utf-8")
    except (OSError, yaml.YAMLError) as e:
        raise DocumentWriteError(f"cannot write {target}: {e}") from e
    logger.info("Wrote %d operations to %s", len(model.endpoints), target)
    return target
