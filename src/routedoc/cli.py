"""CLI entry point for routedoc."""

import logging
from pathlib import Path

import click

from routedoc.config import GeneratorConfig, Server, load_config
from routedoc.errors import RouteDocError
from routedoc.generator.document import DocumentModel
from routedoc.generator.writer import write_document
from routedoc.pipeline import generate


def _resolve_config(config_path: Path | None, router_path: Path | None, **overrides) -> GeneratorConfig:
    """Load the config file (if any) and apply command-line overrides."""
    config = load_config(config_path) if config_path else GeneratorConfig()
    updates = {key: value for key, value in overrides.items() if value not in (None, ())}
    if router_path is not None:
        updates["router_path"] = router_path
    if "servers" in updates:
        updates["servers"] = [Server(url=url) for url in updates["servers"]]
    if "denied_middlewares" in updates:
        updates["denied_middlewares"] = config.denied_middlewares + list(updates["denied_middlewares"])
    config = config.model_copy(update=updates)
    if config.router_path is None:
        raise click.UsageError("No router file given (argument or router_path in --config).")
    return config


def _run(config: GeneratorConfig) -> DocumentModel:
    return generate(
        config.router_path,
        config.schema_dir,
        custom_middlewares=config.custom_middlewares,
        base_path=config.base_path,
        denied_middlewares=config.denied_middlewares,
        security_schemes=config.security_schemes,
        schema_suffix=config.schema_suffix,
    )


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def main(verbose: bool):
    """routedoc: generate OpenAPI documents from router source files."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@main.command(name="generate")
@click.argument("router_path", required=False, type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("-c", "--config", "config_path", type=click.Path(exists=True, dir_okay=False, path_type=Path), help="YAML configuration file.")
@click.option("-s", "--schemas", "schema_dir", type=click.Path(file_okay=False, path_type=Path), help="Directory of Python schema modules.")
@click.option("-o", "--output", "output_dir", type=click.Path(file_okay=False, path_type=Path), help="Output directory for openapi-docs.yml.")
@click.option("--server", "servers", multiple=True, help="Server URL (repeatable).")
@click.option("--title", default=None, help="API title.")
@click.option("--api-version", "version", default=None, help="API version.")
@click.option("--base-path", default=None, help="Mount prefix to strip from router paths.")
@click.option("--deny", "denied_middlewares", multiple=True, help="Middleware never used as the operation summary (repeatable).")
def generate_cmd(router_path: Path | None, config_path: Path | None, **overrides):
    """Scan ROUTER_PATH and write the OpenAPI document."""
    try:
        config = _resolve_config(config_path, router_path, **overrides)
        click.echo(f"Scanning {config.router_path}...")
        document = _run(config)
        click.echo(f"Found {len(document.endpoints)} endpoints.")
        target = write_document(
            document,
            config.output_dir,
            title=config.title,
            version=config.version,
            servers=config.servers,
            description=config.description,
        )
    except RouteDocError as e:
        raise click.ClickException(str(e)) from e
    click.echo(f"OpenAPI document saved to {target}")


@main.command()
@click.argument("router_path", required=False, type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("-c", "--config", "config_path", type=click.Path(exists=True, dir_okay=False, path_type=Path), help="YAML configuration file.")
@click.option("-s", "--schemas", "schema_dir", type=click.Path(file_okay=False, path_type=Path), help="Directory of Python schema modules.")
@click.option("--base-path", default=None, help="Mount prefix to strip from router paths.")
def routes(router_path: Path | None, config_path: Path | None, **overrides):
    """List the endpoints discovered in ROUTER_PATH."""
    try:
        config = _resolve_config(config_path, router_path, **overrides)
        document = _run(config)
    except RouteDocError as e:
        raise click.ClickException(str(e)) from e
    for record in document.records:
        click.echo(f"{record.method.upper():7} {record.path}  {record.summary}  [{record.tag}]")
