"""Data models produced by the route-source parser.

The locator and endpoint extractor turn router source text into these models;
the generator consumes them to build endpoint records.
"""

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict

HTTP_METHODS = ("get", "post", "put", "delete", "patch", "head", "options", "trace")


class RouterDefinition(BaseModel):
    """A router mounted on the application under a path segment."""

    model_config = ConfigDict(frozen=True)

    name: str
    mount: str  # users, admin/reports (no leading slash)
    file_path: Path


class RouterSource(BaseModel):
    """The located declaration span of a router and its file context."""

    name: str  # variable name in the file that defines the router
    span: str
    file_path: Path  # file the span was found in (may differ from the mounting file)
    imports: dict[str, Path] = {}  # binding name -> resolved module path
    schema_file: Path | None = None


class EndpointToken(BaseModel):
    """One raw HTTP-verb call found inside a router span."""

    method: str  # get / post / put / ...
    arguments: str  # unsplit argument-list text
    description: str | None = None  # from a trailing `// @summary` comment


class MiddlewareKind(str, Enum):
    BODY = "body-validator"
    QUERY = "query-validator"
    PATH = "path-validator"
    HEADER = "header-validator"
    RESPONSE = "response-validator"
    CUSTOM = "custom-validator"
    HANDLER = "operation-handler"
    UNCLASSIFIED = "unclassified"


class MiddlewareExpression(BaseModel):
    """A single expression of an endpoint's middleware chain."""

    position: int
    text: str
    kind: MiddlewareKind = MiddlewareKind.UNCLASSIFIED


class SchemaReference(BaseModel):
    """An unresolved (module, export) pair naming a validation schema."""

    model_config = ConfigDict(frozen=True)

    module: str
    export: str
    file_path: Path | None = None

    def __str__(self) -> str:
        return f"{self.module}.{self.export}"
