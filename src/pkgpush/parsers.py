"""
Manifest reading, dependency extraction and manifest rewriting.
"""

import json
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, Optional, Sequence, Set, Union

from .dependency import DependencyCategory, DependencyReference
from .error_handling import ErrorCategory, ParseError, get_error_handler

DEFAULT_CATEGORIES = [
    DependencyCategory.RUNTIME.value,
    DependencyCategory.DEV.value,
    DependencyCategory.PEER.value,
]
DEFAULT_LOCAL_PREFIXES = [".", "/", "file:", "link:"]


def read_manifest(path: Union[str, Path], report_errors: bool = True) -> Dict[str, Any]:
    """
    Read and parse a manifest file.

    Args:
        path: Path to the manifest
        report_errors: Log parse failures through the error handler

    Returns:
        Dict[str, Any]: The parsed manifest, key order preserved

    Raises:
        ParseError: If the content is not a JSON object
        OSError: If the file cannot be read
    """
    path = Path(path)
    try:
        content = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ParseError(str(path), "file contains invalid UTF-8") from e

    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        if report_errors:
            get_error_handler().error(
                ErrorCategory.PARSING,
                f"Invalid JSON format in manifest: {e}",
                "parsers",
                "read_manifest",
                exception=e,
                details={"file_path": str(path), "line_number": e.lineno},
            )
        raise ParseError(str(path), f"invalid JSON: {e}") from e

    if not isinstance(data, dict):
        if report_errors:
            get_error_handler().error(
                ErrorCategory.PARSING,
                "Manifest must contain a JSON object",
                "parsers",
                "read_manifest",
                details={"file_path": str(path), "data_type": type(data).__name__},
            )
        raise ParseError(str(path), "manifest must contain a JSON object")

    return data


def write_manifest(path: Union[str, Path], manifest: Dict[str, Any]) -> None:
    """Persist a manifest with two-space indentation and a trailing newline."""
    Path(path).write_text(
        json.dumps(manifest, indent=2, ensure_ascii=False) + "\n", encoding="utf-8"
    )


def is_local_specifier(specifier: Any, local_prefixes: Iterable[str]) -> bool:
    """True when a version specifier points at the local filesystem."""
    if not isinstance(specifier, str):
        return False
    return specifier.startswith(tuple(local_prefixes))


def iter_dependency_references(
    manifest: Dict[str, Any],
    source_file: str = "",
    categories: Optional[Sequence[str]] = None,
) -> Iterator[DependencyReference]:
    """Yield every declared dependency; missing or malformed categories are empty."""
    for section in categories or DEFAULT_CATEGORIES:
        section_deps = manifest.get(section)
        if not isinstance(section_deps, dict):
            continue
        category = DependencyCategory(section)
        for name, specifier in section_deps.items():
            yield DependencyReference(
                name=name,
                specifier=specifier if isinstance(specifier, str) else str(specifier),
                category=category,
                source_file=source_file,
            )


def extract_dependencies(
    manifest: Dict[str, Any],
    prefix: str,
    local_prefixes: Optional[Sequence[str]] = None,
    categories: Optional[Sequence[str]] = None,
) -> Set[str]:
    """
    Collect dependency names matching ``prefix`` from a parsed manifest.

    A dependency is kept when its name starts with ``prefix`` and its version
    specifier is not a local path (``file:../x``, ``./x`` and the like).

    Args:
        manifest: Parsed manifest contents
        prefix: Name prefix filter
        local_prefixes: Specifier prefixes that mark a local path dependency
        categories: Dependency sections to read

    Returns:
        Set[str]: Matching dependency names
    """
    local_prefixes = DEFAULT_LOCAL_PREFIXES if local_prefixes is None else local_prefixes

    return {
        ref.name
        for ref in iter_dependency_references(manifest, categories=categories)
        if ref.name.startswith(prefix)
        and not is_local_specifier(ref.specifier, local_prefixes)
    }


def strip_registry_override(manifest: Dict[str, Any]) -> bool:
    """
    Remove ``publishConfig.registry`` in place.

    Returns:
        bool: True if the manifest changed and needs to be written back
    """
    publish_config = manifest.get("publishConfig")
    if not isinstance(publish_config, dict) or "registry" not in publish_config:
        return False
    del publish_config["registry"]
    return True
