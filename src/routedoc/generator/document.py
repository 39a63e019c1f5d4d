"""In-memory API document: endpoint records and security schemes.

A DocumentModel is built by one generation run and handed to the writer.
"""

import logging

from pydantic import BaseModel, ConfigDict, Field

from routedoc.generator.schemas import Schema

logger = logging.getLogger(__name__)

REQUEST_SLOTS = ("query", "path", "header", "body")


class RequestConfig(BaseModel):
    """Request schemas by slot. Each slot holds one merged schema."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    query: Schema | None = None
    path: Schema | None = None
    header: Schema | None = None
    body: Schema | None = None
    content_type: str = "application/json"

    def assign(self, slot: str, schema: Schema) -> None:
        """Put ``schema`` in ``slot``, merging with what is already there."""
        if slot not in REQUEST_SLOTS:
            raise ValueError(f"unknown request slot: {slot}")
        current = getattr(self, slot)
        setattr(self, slot, schema if current is None else current.merge(schema))

    def is_empty(self) -> bool:
        return all(getattr(self, slot) is None for slot in REQUEST_SLOTS)


class ResponseSpec(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    description: str
    body: Schema | None = None


class SecurityScheme(BaseModel):
    """A security scheme component endpoints can require by name."""

    name: str
    type: str = "apiKey"  # apiKey / http
    location: str = "header"  # header / query / cookie (apiKey only)
    parameter: str = "X-API-KEY"
    scheme: str | None = None  # bearer / basic (http only)
    description: str = ""


class EndpointRecord(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    method: str
    path: str  # /users/{id}
    summary: str = ""
    description: str | None = None
    tag: str
    request: RequestConfig = Field(default_factory=RequestConfig)
    responses: dict[str, ResponseSpec] = {}  # {status_code: ResponseSpec}
    security: list[str] = []

    @property
    def key(self) -> tuple[str, str]:
        return self.method.lower(), self.path


class DocumentModel(BaseModel):
    """Registry of endpoint records keyed by (method, path)."""

    endpoints: dict[tuple[str, str], EndpointRecord] = {}
    security_schemes: dict[str, SecurityScheme] = {}

    def register(self, record: EndpointRecord) -> None:
        """Add ``record``; an existing record with the same key is replaced."""
        if record.key in self.endpoints:
            logger.info("Replacing %s %s", record.method.upper(), record.path)
        self.endpoints[record.key] = record

    def register_security_scheme(self, scheme: SecurityScheme) -> None:
        self.security_schemes[scheme.name] = scheme

    @property
    def records(self) -> list[EndpointRecord]:
        return list(self.endpoints.values())

    def paths(self) -> dict[str, list[EndpointRecord]]:
        """Records grouped by path, in registration order."""
        grouped: dict[str, list[EndpointRecord]] = {}
        for record in self.endpoints.values():
            grouped.setdefault(record.path, []).append(record)
        return grouped
