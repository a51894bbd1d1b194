# In src/pkgpush/dependency.py
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict


class DependencyCategory(Enum):
    """Dependency groupings a manifest can declare."""

    RUNTIME = "dependencies"
    DEV = "devDependencies"
    PEER = "peerDependencies"
    OPTIONAL = "optionalDependencies"


def sanitize_name(name: str) -> str:
    """Turn a package name into the file-safe form the archiver uses.

    ``@scope/pkg`` becomes ``scope-pkg``; unscoped names are unchanged.
    """
    if name.startswith("@"):
        name = name[1:]
    return name.replace("/", "-")


@dataclass(frozen=True)
class DependencyReference:
    """A dependency as declared in a manifest."""

    name: str
    specifier: str
    category: DependencyCategory
    source_file: str


@dataclass(frozen=True)
class ResolvedPackage:
    """The installed copy of a dependency and its own manifest."""

    name: str
    version: str
    directory: Path
    manifest_path: Path
    manifest: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @property
    def identifier(self) -> str:
        """Processed-version identifier, unique per (name, version)."""
        return f"{sanitize_name(self.name)}-{self.version}"

    def archive_name(self, extension: str = "tgz") -> str:
        return f"{self.identifier}.{extension}"
