"""Generation entry point: router source files -> DocumentModel."""

import logging
from pathlib import Path
from typing import Callable

from routedoc.config import CustomMiddleware
from routedoc.errors import RouteDocError, RouterResolutionError, StructuralParseError
from routedoc.generator.document import DocumentModel, SecurityScheme
from routedoc.generator.middleware import EndpointBuilder
from routedoc.generator.schemas import ModuleSchemaProvider, SchemaProvider, SchemaResolver
from routedoc.parser.endpoints import extract_endpoint_tokens, split_endpoint
from routedoc.parser.locator import DEFAULT_SCHEMA_SUFFIX, RouterLocator, extract_mounts, read_source

logger = logging.getLogger(__name__)


class RouteDocGenerator:
    """One generation pass over a main router file and the routers it mounts.

    Routers are processed in mount order and endpoints in source order.
    Unresolvable routers and malformed endpoint calls are skipped; schema
    resolution failures propagate.
    """

    def __init__(
        self,
        provider: SchemaProvider,
        custom_middlewares: list[CustomMiddleware] | None = None,
        denied_middlewares: list[str] | None = None,
        reader: Callable[[Path], str] = read_source,
        schema_suffix: str = DEFAULT_SCHEMA_SUFFIX,
    ):
        self.locator = RouterLocator(reader=reader, schema_suffix=schema_suffix)
        self.builder = EndpointBuilder(SchemaResolver(provider), custom_middlewares, denied_middlewares)
        self.document = DocumentModel()

    def generate(
        self,
        router_path: Path,
        base_path: str = "",
        security_schemes: list[SecurityScheme] | None = None,
    ) -> DocumentModel:
        for scheme in security_schemes or []:
            self.document.register_security_scheme(scheme)

        try:
            routers = self.locator.mounts(Path(router_path), base_path)
        except OSError as e:
            raise RouteDocError(f"cannot read router file {router_path}: {e}") from e
        if not routers:
            logger.warning("No router mounts found in %s", router_path)

        for router in routers:
            self._add_router(router.name, router.mount, router.file_path, ())
        return self.document

    def _add_router(self, name: str, mount: str, file_path: Path, chain: tuple[str, ...]) -> None:
        try:
            source = self.locator.locate(name, file_path)
        except RouterResolutionError as e:
            logger.warning("Skipping router: %s", e)
            return
        logger.debug("Router %s mounted at /%s (%s)", name, mount, source.file_path)

        for token in extract_endpoint_tokens(source.span, receiver=source.name):
            try:
                path, middlewares = split_endpoint(token, mount)
                record = self.builder.build(token.method, path, name, middlewares, source, token.description)
            except StructuralParseError as e:
                logger.warning("Skipping %s endpoint in router %s: %s", token.method.upper(), name, e)
                continue
            self.document.register(record)

        chain = chain + (source.name,)
        for sub_name, sub_mount in extract_mounts(source.span, receiver=source.name):
            if sub_name in chain:
                logger.warning("Router %s mounts itself through %s, skipping", sub_name, " -> ".join(chain))
                continue
            joined = "/".join(part for part in (mount, sub_mount) if part)
            self._add_router(sub_name, joined, source.file_path, chain)


def generate(
    router_path: Path,
    schema_dir: Path | None = None,
    *,
    custom_middlewares: list[CustomMiddleware] | None = None,
    base_path: str = "",
    denied_middlewares: list[str] | None = None,
    security_schemes: list[SecurityScheme] | None = None,
    provider: SchemaProvider | None = None,
    reader: Callable[[Path], str] = read_source,
    schema_suffix: str = DEFAULT_SCHEMA_SUFFIX,
) -> DocumentModel:
    """Run a full generation pass and return the assembled document model.

    Every call starts from an empty registry and schema cache.
    """
    generator = RouteDocGenerator(
        provider=provider or ModuleSchemaProvider(schema_dir),
        custom_middlewares=custom_middlewares,
        denied_middlewares=denied_middlewares,
        reader=reader,
        schema_suffix=schema_suffix,
    )
    return generator.generate(router_path, base_path=base_path, security_schemes=security_schemes)
