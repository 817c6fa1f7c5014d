"""Workspace manifest reader for cratecompat.

Packages without a ``source`` in the lockfile are workspace members or
path dependencies. The registry knows nothing about them, so their
declared requirements are read from the ``Cargo.toml`` files next to the
lockfile instead.

Discovery starts at the manifest beside ``Cargo.lock`` and follows
``[workspace] members`` (glob patterns, minus ``exclude``) and every
``path = "..."`` dependency, so nested path crates are found too.

Supported manifest features:

* ``[dependencies]``, ``[build-dependencies]``, ``[dev-dependencies]``
  and their ``[target.'cfg(...)'.*]`` variants;
* renamed dependencies (``alias = { package = "real", version = "1" }``);
* ``workspace = true`` inheritance from ``[workspace.dependencies]``.

A dependency with no ``version`` (pure path or git dependency) has no
range and is reported as ``*``.
"""

from __future__ import annotations

import re
import glob
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import tomli as tomllib

from cratecompat.utils.logger import get_logger
from cratecompat.constants import MANIFEST_FILE
from cratecompat.exceptions import FileOperationError
from cratecompat.utils.filesystem import safe_read_file
from cratecompat.models.version import DeclaredDependency

logger = get_logger("manifest")

__all__ = ["WorkspaceManifests"]

#: Manifest table name → dependency kind.
_DEPENDENCY_TABLES = {
    "dependencies": "normal",
    "build-dependencies": "build",
    "build_dependencies": "build",
    "dev-dependencies": "dev",
    "dev_dependencies": "dev",
}

_GLOB_CHARS = re.compile(r"[*?\[]")


class WorkspaceManifests:
    """Declared dependencies of the local packages of one workspace.

    Manifests are read lazily on the first query and then kept for the
    lifetime of the instance.

    Args:
        root: Directory holding the top-level ``Cargo.toml``.
    """

    def __init__(self, root: Union[str, Path]) -> None:
        self.root = Path(root)
        self._packages: Optional[Dict[str, List[DeclaredDependency]]] = None
        self._workspace_deps: Dict[str, Any] = {}
        #: Manifests that could not be read, path → reason.
        self.errors: Dict[str, str] = {}

    @classmethod
    def for_lockfile(cls, lockfile_path: Union[str, Path]) -> "WorkspaceManifests":
        return cls(Path(lockfile_path).resolve().parent)

    def requirements_for(
        self,
        package: str,
        dependency: str,
    ) -> Optional[List[DeclaredDependency]]:
        """Return what local ``package`` declares on ``dependency``.

        Returns:
            The matching declarations (possibly empty), or ``None`` when no
            manifest for ``package`` was found.
        """
        packages = self.load()
        if package not in packages:
            return None
        wanted = dependency.lower()
        return [dep for dep in packages[package] if dep.name.lower() == wanted]

    @property
    def package_names(self) -> List[str]:
        return sorted(self.load())

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(self) -> Dict[str, List[DeclaredDependency]]:
        """Read every reachable manifest once and return the packages found.

        Manifests that cannot be read or understood are recorded in
        :attr:`errors`; their packages are simply missing from the result.
        """
        if self._packages is not None:
            return self._packages

        self._packages = {}
        try:
            self._discover()
        except (OSError, RuntimeError) as exc:
            logger.warning("Workspace discovery under %s stopped: %s", self.root, exc)
            self.errors[str(self.root)] = str(exc)
        return self._packages

    def _discover(self) -> None:
        assert self._packages is not None
        root_manifest = self.root / MANIFEST_FILE
        root_data = self._read(root_manifest)
        if root_data is None:
            return

        workspace = _table(root_data.get("workspace"))
        self._workspace_deps = _table(workspace.get("dependencies"))

        pending = [root_manifest]
        pending.extend(self._members(workspace))
        visited = set()

        while pending:
            manifest = pending.pop(0).resolve()
            if manifest in visited:
                continue
            visited.add(manifest)

            data = root_data if manifest == root_manifest.resolve() else self._read(manifest)
            if data is None:
                continue

            name = _table(data.get("package")).get("name")
            declared = list(self._declared(data, manifest.parent))

            if isinstance(name, str):
                self._packages[name] = [dep for dep, _ in declared]
                logger.debug("Read %d dependencies of local package %s", len(declared), name)

            for _, path in declared:
                if path is not None:
                    pending.append(path / MANIFEST_FILE)

    def _members(self, workspace: Dict[str, Any]) -> List[Path]:
        excluded = {
            (self.root / item).resolve()
            for item in _array(workspace.get("exclude"))
            if isinstance(item, str)
        }
        manifests: List[Path] = []

        for pattern in _array(workspace.get("members")):
            if not isinstance(pattern, str):
                self.errors[repr(pattern)] = "workspace member is not a string"
                continue
            for directory in self._expand(pattern):
                if directory.resolve() in excluded:
                    continue
                manifest = directory / MANIFEST_FILE
                if manifest.is_file():
                    manifests.append(manifest)

        return manifests

    def _expand(self, pattern: str) -> List[Path]:
        """Return the directories a ``members`` entry names."""
        member = self.root / pattern
        if not _GLOB_CHARS.search(pattern):
            return [member]
        try:
            return sorted(Path(match) for match in glob.glob(str(member)))
        except (OSError, ValueError) as exc:
            logger.warning("Cannot expand workspace member %r: %s", pattern, exc)
            self.errors[pattern] = str(exc)
            return []

    def _read(self, manifest: Path) -> Optional[Dict[str, Any]]:
        if not manifest.is_file():
            self.errors[str(manifest)] = "not found"
            return None
        try:
            return tomllib.loads(safe_read_file(manifest))
        except (FileOperationError, tomllib.TOMLDecodeError) as exc:
            logger.warning("Cannot read manifest %s: %s", manifest, exc)
            self.errors[str(manifest)] = str(exc)
            return None

    def _declared(self, data: Dict[str, Any], base: Path):
        """Yield ``(DeclaredDependency, path)`` pairs of one manifest."""
        sections = [(data, None)]
        for cfg, table in _table(data.get("target")).items():
            if isinstance(table, dict):
                sections.append((table, cfg))

        for section, target in sections:
            for table_name, kind in _DEPENDENCY_TABLES.items():
                for alias, spec in _table(section.get(table_name)).items():
                    yield self._dependency(alias, spec, kind, target, base)

    def _dependency(
        self,
        alias: str,
        spec: Any,
        kind: str,
        target: Optional[str],
        base: Path,
    ):
        if isinstance(spec, dict) and spec.get("workspace") is True:
            inherited = self._workspace_deps.get(alias, {})
            if isinstance(inherited, str):
                inherited = {"version": inherited}
            elif not isinstance(inherited, dict):
                inherited = {}
            elif "path" in inherited:
                base = self.root
            # Members may add features or optional, never change the version
            spec = {**inherited, **{k: v for k, v in spec.items() if k != "workspace"}}

        if isinstance(spec, str):
            return DeclaredDependency(name=alias, requirement=spec, kind=kind, target=target), None

        spec = spec if isinstance(spec, dict) else {}
        name = spec.get("package")
        version = spec.get("version")
        dependency = DeclaredDependency(
            name=name if isinstance(name, str) and name else alias,
            requirement=version if isinstance(version, str) and version else "*",
            kind=kind,
            optional=bool(spec.get("optional", False)),
            target=target,
        )
        path = spec.get("path")
        return dependency, (base / path if isinstance(path, str) else None)


def _table(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _array(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []
