"""Schema objects, the schema provider interface and the per-run resolver.

A schema is a pydantic model class. Route files reference schemas as
``module.exportName``; the default provider loads ``exportName`` from a Python
module next to the referenced schema file or under the schema directory:

    # schemas/users.py
    class IdParam(BaseModel):
        id: int
"""

import copy
import hashlib
import importlib.util
import logging
import re
from pathlib import Path
from types import ModuleType
from typing import Any, Protocol

from pydantic import BaseModel, Field, create_model

from routedoc.errors import SchemaNotFound, SchemaResolutionError
from routedoc.parser.base import SchemaReference

logger = logging.getLogger(__name__)

TEXT_EXAMPLE = "string"


class Schema:
    """Read-only handle over a pydantic model class."""

    def __init__(self, model: type[BaseModel]):
        self.model = model

    @property
    def name(self) -> str:
        return self.model.__name__

    @property
    def fields(self) -> list[str]:
        return list(self.model.model_fields)

    def merge(self, other: "Schema") -> "Schema":
        """Union of both field sets; ``other`` wins on a shared field name.

        Neither input is modified.
        """
        if other.model is self.model:
            return self
        definitions: dict[str, Any] = {}
        for model in (self.model, other.model):
            for field_name, info in model.model_fields.items():
                definitions[field_name] = (info.annotation, copy.copy(info))
        name = self.name if self.name == other.name else f"{self.name}{other.name}"
        return Schema(create_model(name, **definitions))

    def validate(self, data: Any) -> BaseModel:
        return self.model.model_validate(data)

    def json_schema(self, ref_template: str = "#/$defs/{model}") -> dict[str, Any]:
        return self.model.model_json_schema(ref_template=ref_template)

    def __repr__(self) -> str:
        return f"Schema({self.name})"


def synthesize_schema(name: str, field_names: list[str]) -> Schema:
    """Schema of required text fields, each carrying an example value."""
    definitions: dict[str, Any] = {}
    for field_name in field_names:
        attribute = re.sub(r"\W", "_", field_name)
        if not attribute[:1].isalpha():
            attribute = f"f_{attribute}"
        definitions[attribute] = (
            str,
            Field(alias=field_name, json_schema_extra={"example": TEXT_EXAMPLE}),
        )
    return Schema(create_model(name, **definitions))


class SchemaProvider(Protocol):
    def load(self, reference: SchemaReference) -> Schema:
        """Return the schema for ``reference`` or raise SchemaNotFound."""
        ...


class ModuleSchemaProvider:
    """Loads pydantic models from Python schema modules."""

    def __init__(self, schema_dir: Path | None = None):
        self.schema_dir = Path(schema_dir) if schema_dir is not None else None
        self._modules: dict[Path, ModuleType] = {}

    def candidates(self, reference: SchemaReference) -> list[Path]:
        paths = []
        if reference.file_path is not None:
            file_path = reference.file_path
            if file_path.suffix == ".py":
                paths.append(file_path)
            else:
                paths += [file_path.with_suffix(".py"), file_path.with_name(file_path.name + ".py")]
        if self.schema_dir is not None:
            paths.append(self.schema_dir / f"{reference.module}.py")
        return paths

    def load(self, reference: SchemaReference) -> Schema:
        candidates = self.candidates(reference)
        path = next((p for p in candidates if p.is_file()), None)
        if path is None:
            tried = ", ".join(str(p) for p in candidates) or "no candidate paths"
            raise SchemaNotFound(f"no schema module for '{reference.module}' (tried {tried})")

        module = self._load_module(path)
        export = getattr(module, reference.export, None)
        if export is None:
            raise SchemaNotFound(f"{path} has no export '{reference.export}'")
        if isinstance(export, Schema):
            return export
        if isinstance(export, type) and issubclass(export, BaseModel):
            return Schema(export)
        raise SchemaNotFound(f"{path}:{reference.export} is not a pydantic model")

    def _load_module(self, path: Path) -> ModuleType:
        path = path.resolve()
        if path in self._modules:
            return self._modules[path]
        digest = hashlib.sha1(str(path).encode("utf-8")).hexdigest()[:8]
        stem = re.sub(r"\W", "_", path.stem)
        module_name = f"_routedoc_schema_{stem}_{digest}"
        spec = importlib.util.spec_from_file_location(module_name, path)
        if spec is None or spec.loader is None:
            raise SchemaNotFound(f"cannot import schema module {path}")
        module = importlib.util.module_from_spec(spec)
        try:
            spec.loader.exec_module(module)
        except Exception as exc:
            raise SchemaNotFound(f"error importing {path}: {exc}") from exc
        logger.debug("Loaded schema module %s", path)
        self._modules[path] = module
        return module


class SchemaResolver:
    """Resolves each schema reference at most once per run."""

    def __init__(self, provider: SchemaProvider):
        self.provider = provider
        self._cache: dict[SchemaReference, Schema] = {}

    def resolve(self, reference: SchemaReference) -> Schema:
        if reference not in self._cache:
            try:
                self._cache[reference] = self.provider.load(reference)
            except SchemaNotFound as exc:
                raise SchemaResolutionError(reference.module, reference.export, str(exc)) from exc
        return self._cache[reference]
