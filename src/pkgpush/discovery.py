"""Manifest discovery across a repository tree."""

import os
from pathlib import Path
from typing import Iterator, Union

from .error_handling import DiscoveryError, ErrorCategory, get_error_handler
from .structured_logging import log_manifest_found


def find_manifests(
    root: Union[str, Path],
    manifest_name: str = "package.json",
    dependency_dir: str = "node_modules",
) -> Iterator[Path]:
    """
    Yield every manifest file under ``root``, depth-first.

    Directories named ``dependency_dir`` are never entered. Entries are visited
    in the order the filesystem returns them. Symlinked directories are not
    followed.

    Raises:
        DiscoveryError: If a directory cannot be read
    """
    root = Path(root)

    try:
        with os.scandir(root) as it:
            entries = list(it)
    except OSError as e:
        get_error_handler().error(
            ErrorCategory.DISCOVERY,
            f"Cannot read directory: {e}",
            "discovery",
            "find_manifests",
            exception=e,
            details={"directory": str(root)},
            suggestions=["Check directory permissions"],
        )
        raise DiscoveryError(str(root), e) from e

    for entry in entries:
        if entry.is_dir(follow_symlinks=False):
            if entry.name != dependency_dir:
                yield from find_manifests(entry.path, manifest_name, dependency_dir)
        elif entry.name == manifest_name and entry.is_file(follow_symlinks=False):
            log_manifest_found(entry.path)
            yield Path(entry.path)
