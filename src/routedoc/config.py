"""Generator configuration, loaded from YAML.

    router_path: src/routes/index.ts
    schema_dir: src/schemas
    output_dir: docs
    base_path: /api/v1
    servers:
      - url: https://api.example.com/api/v1
        description: production
    custom_middlewares:
      - name: authenticate
        header: [X-API-KEY]
        security: apiKey
    security_schemes:
      - name: apiKey
        parameter: X-API-KEY
"""

from pathlib import Path

import yaml
from pydantic import BaseModel, ValidationError

from routedoc.errors import ConfigError
from routedoc.generator.document import SecurityScheme


class CustomMiddleware(BaseModel):
    """Middleware outside the built-in validator vocabulary."""

    name: str
    query: list[str] = []
    path: list[str] = []
    header: list[str] = []
    body: list[str] = []
    schema_slot: str | None = None  # slot for a schema passed as first argument
    security: str | None = None  # security scheme required when present


class Server(BaseModel):
    url: str
    description: str | None = None


class GeneratorConfig(BaseModel):
    router_path: Path | None = None
    schema_dir: Path | None = None
    output_dir: Path = Path("docs")
    title: str = "API"
    version: str = "1.0.0"
    description: str = ""
    servers: list[Server] = []
    base_path: str = ""
    schema_suffix: str = ".schema.ts"
    denied_middlewares: list[str] = []
    custom_middlewares: list[CustomMiddleware] = []
    security_schemes: list[SecurityScheme] = []


def load_config(file_path: Path) -> GeneratorConfig:
    """Load a GeneratorConfig from a YAML file.

    Relative router/schema/output paths are taken relative to the file.
    """
    try:
        data = yaml.safe_load(file_path.read_text(encoding="utf-8")) or {}
    except OSError as e:
        raise ConfigError(f"cannot read config {file_path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML in {file_path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{file_path}: expected a mapping at top level")

    try:
        config = GeneratorConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"invalid config {file_path}:\n{e}") from e

    base = file_path.parent
    updates = {}
    for key in ("router_path", "schema_dir", "output_dir"):
        value = getattr(config, key)
        if value is not None and key in data and not value.is_absolute():
            updates[key] = base / value
    return config.model_copy(update=updates)
