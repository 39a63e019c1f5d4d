"""Router locator.

Finds mount declarations, router definition blocks and the import statements
that bind routers and schema modules, following imports one file deep.

    app.use('/users', usersRouter.routes(), usersRouter.allowedMethods());
    const usersRouter = new Router();
    import { adminRouter } from './admin.ts';
"""

import logging
import os
import re
from pathlib import Path
from typing import Callable, NamedTuple

from routedoc.errors import RouterResolutionError, StructuralParseError
from routedoc.parser.base import RouterDefinition, RouterSource
from routedoc.parser.scanner import identifier_path, match_delimited, split_top_level, strip_quotes

logger = logging.getLogger(__name__)

ROUTER_DEFINITION = re.compile(
    r"(?:export\s+)?(?:const|let|var)\s+([A-Za-z_$][\w$]*)\s*(?::\s*Router\s*)?=\s*new\s+Router\s*\("
)
IMPORT_STATEMENT = re.compile(
    r"^[ \t]*import\s+(?P<clause>[^;'\"]+?)\s+from\s+(?P<quote>['\"])(?P<module>[^'\"]+)(?P=quote)\s*;?",
    re.MULTILINE,
)
DEFAULT_EXPORT = re.compile(r"export\s+default\s+([A-Za-z_$][\w$]*)")
USE_CALL = re.compile(r"\.\s*use\s*\(")
COMMENTS = re.compile(r"//[^\n]*|/\*.*?\*/", re.DOTALL)

MODULE_SUFFIXES = ("", ".ts", ".js", "/index.ts", "/index.js")
DEFAULT_SCHEMA_SUFFIX = ".schema.ts"


class ImportBinding(NamedTuple):
    local: str  # name bound in the importing file
    imported: str  # name exported by the module ("default" / "*" for those forms)
    module: str  # module specifier as written
    start: int
    end: int


def read_source(path: Path) -> str:
    """Default route-source reader."""
    return Path(path).read_text(encoding="utf-8")


def normalize_mount(path: str, base_path: str = "") -> str:
    """Mount path without surrounding slashes, with ``base_path`` removed."""
    mount = path.strip().strip("/")
    base = base_path.strip().strip("/")
    if base and (mount == base or mount.startswith(base + "/")):
        mount = mount[len(base):].lstrip("/")
    return mount


def extract_mounts(code: str, base_path: str = "", receiver: str | None = None) -> list[tuple[str, str]]:
    """Return ``(router_name, mount)`` for every ``.use('/path', X.routes())``.

    With ``receiver`` set, only ``receiver.use(...)`` calls count.
    """
    mounts = []
    for match in USE_CALL.finditer(code):
        if receiver is not None:
            before = re.search(r"([A-Za-z_$][\w$]*)\s*$", code[: match.start()])
            if not before or before.group(1) != receiver:
                continue
        try:
            content, _ = match_delimited(code, match.end(), "(")
            args = split_top_level(content)
        except StructuralParseError as exc:
            logger.debug("Skipping malformed use() call: %s", exc)
            continue
        if len(args) < 2:
            continue
        path = strip_quotes(args[0])
        segments = identifier_path(args[1])
        if path is None or len(segments) < 2 or segments[-1] != "routes":
            continue
        mounts.append((segments[-2], normalize_mount(path, base_path)))
    return mounts


def parse_imports(code: str) -> list[ImportBinding]:
    """Every binding introduced by an ES import statement, in source order."""
    bindings = []
    for match in IMPORT_STATEMENT.finditer(code):
        clause = match.group("clause").strip()
        module = match.group("module")
        if clause.startswith("type "):
            continue
        named = ""
        brace = clause.find("{")
        if brace != -1:
            named = clause[brace + 1 : clause.rfind("}")]
            clause = clause[:brace]
        for part in filter(None, (p.strip() for p in clause.split(","))):
            if part.startswith("*"):
                local = part.split("as", 1)[-1].strip()
                bindings.append(ImportBinding(local, "*", module, match.start(), match.end()))
            else:
                bindings.append(ImportBinding(part, "default", module, match.start(), match.end()))
        for part in filter(None, (p.strip() for p in named.split(","))):
            imported, _, alias = part.partition(" as ")
            imported = imported.strip()
            bindings.append(
                ImportBinding(alias.strip() or imported, imported, module, match.start(), match.end())
            )
    return bindings


def find_definition(code: str, name: str) -> re.Match | None:
    for match in ROUTER_DEFINITION.finditer(code):
        if match.group(1) == name:
            return match
    return None


def import_section(code: str, start: int, bindings: list[ImportBinding]) -> list[ImportBinding]:
    """Bindings of the contiguous run of imports directly above ``start``."""
    section: list[ImportBinding] = []
    cursor = start
    for binding in sorted((b for b in bindings if b.end <= start), key=lambda b: b.start, reverse=True):
        if binding.end > cursor:
            # another binding of a statement already taken
            section.append(binding)
            continue
        gap = COMMENTS.sub("", code[binding.end : cursor]).replace(";", "")
        if gap.strip():
            break
        section.append(binding)
        cursor = binding.start
    section.reverse()
    return section


def resolve_module_path(directory: Path, module: str) -> Path:
    """Resolve a relative module specifier against ``directory``."""
    return Path(os.path.normpath(directory / module))


class RouterLocator:
    """Locates router declaration spans, reading files through ``reader``."""

    def __init__(
        self,
        reader: Callable[[Path], str] = read_source,
        schema_suffix: str = DEFAULT_SCHEMA_SUFFIX,
    ):
        self.reader = reader
        self.schema_suffix = schema_suffix
        self._texts: dict[Path, str] = {}

    def read(self, path: Path) -> str:
        path = Path(path)
        if path not in self._texts:
            self._texts[path] = self.reader(path)
        return self._texts[path]

    def mounts(self, file_path: Path, base_path: str = "") -> list[RouterDefinition]:
        """Routers mounted in ``file_path``, in declaration order."""
        code = self.read(file_path)
        return [
            RouterDefinition(name=name, mount=mount, file_path=Path(file_path))
            for name, mount in extract_mounts(code, base_path)
        ]

    def locate(self, name: str, file_path: Path) -> RouterSource:
        """Return the declaration span of router ``name`` as seen from ``file_path``.

        Raises RouterResolutionError when the router is neither defined in
        the file nor imported from a readable module that defines it.
        """
        file_path = Path(file_path)
        code = self.read(file_path)
        definition = find_definition(code, name)
        if definition is not None:
            return self._source(code, file_path, definition)

        binding = next((b for b in parse_imports(code) if b.local == name), None)
        if binding is None or not binding.module.startswith("."):
            raise RouterResolutionError(name, file_path)

        resolved = self._read_module(file_path.parent, binding.module)
        if resolved is None:
            raise RouterResolutionError(name, file_path)
        target_path, target_code = resolved

        target_name = name if binding.imported in ("default", "*") else binding.imported
        definition = find_definition(target_code, target_name)
        if definition is None and binding.imported == "default":
            exported = DEFAULT_EXPORT.search(target_code)
            if exported:
                definition = find_definition(target_code, exported.group(1))
        if definition is None:
            raise RouterResolutionError(name, target_path)
        logger.debug("Router %s resolved to %s", name, target_path)
        return self._source(target_code, target_path, definition)

    def _read_module(self, directory: Path, module: str) -> tuple[Path, str] | None:
        for suffix in MODULE_SUFFIXES:
            candidate = resolve_module_path(directory, module + suffix)
            try:
                return candidate, self.read(candidate)
            except OSError:
                continue
        return None

    def _source(self, code: str, file_path: Path, definition: re.Match) -> RouterSource:
        name = definition.group(1)
        start = definition.start()
        following = ROUTER_DEFINITION.search(code, definition.end())
        end = following.start() if following else len(code)

        bindings = parse_imports(code)
        section = import_section(code, start, bindings) or bindings
        imports = {
            b.local: resolve_module_path(file_path.parent, b.module)
            for b in section
            if b.module.startswith(".")
        }
        return RouterSource(
            name=name,
            span=code[start:end],
            file_path=file_path,
            imports=imports,
            schema_file=self._schema_file(section, file_path.parent),
        )

    def _schema_file(self, bindings: list[ImportBinding], directory: Path) -> Path | None:
        bare_suffix = os.path.splitext(self.schema_suffix)[0]
        for binding in bindings:
            if binding.module.endswith(self.schema_suffix) or (
                bare_suffix and binding.module.endswith(bare_suffix)
            ):
                return resolve_module_path(directory, binding.module)
        return None
