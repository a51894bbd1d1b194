"""
Release pipeline: resolve installed dependencies, de-duplicate versions and
drive the archiver, uploader and publisher for each new version.

Everything runs strictly in sequence; one tool invocation at a time.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Mapping, Optional, Union

from rich.console import Console

from .cli_config import PkgPushConfig, get_config
from .deduplicator import VersionDeduplicator
from .dependency import ResolvedPackage
from .discovery import find_manifests
from .error_handling import (
    ErrorCategory,
    ParseError,
    ToolInvocationError,
    UnresolvableDependency,
    get_error_handler,
)
from .parsers import (
    extract_dependencies,
    read_manifest,
    strip_registry_override,
    write_manifest,
)
from .structured_logging import (
    log_manifest_rewritten,
    log_package_released,
    log_package_skipped,
    log_run_complete,
    log_run_start,
)
from .tools import ToolRunner, resolve_owner


class ReleaseStatus(Enum):
    """Terminal state of one (dependency, version) pair."""

    RELEASED = "released"
    PLANNED = "planned"
    DUPLICATE = "duplicate"
    UNRESOLVABLE = "unresolvable"


@dataclass
class ReleaseOutcome:
    """Result of processing one declared dependency."""

    name: str
    status: ReleaseStatus
    package: Optional[ResolvedPackage] = None
    archive: Optional[Path] = None
    uploaded: bool = False
    published: bool = False


@dataclass
class ReleaseSummary:
    """Totals for a whole run."""

    manifests: int = 0
    outcomes: List[ReleaseOutcome] = field(default_factory=list)
    duration_ms: int = 0

    def record(self, outcome: ReleaseOutcome) -> None:
        self.outcomes.append(outcome)

    def _with_status(self, status: ReleaseStatus) -> List[ReleaseOutcome]:
        return [o for o in self.outcomes if o.status == status]

    @property
    def released(self) -> List[ReleaseOutcome]:
        return self._with_status(ReleaseStatus.RELEASED)

    @property
    def planned(self) -> List[ReleaseOutcome]:
        return self._with_status(ReleaseStatus.PLANNED)

    @property
    def duplicates(self) -> int:
        return len(self._with_status(ReleaseStatus.DUPLICATE))

    @property
    def unresolvable(self) -> int:
        return len(self._with_status(ReleaseStatus.UNRESOLVABLE))

    @property
    def archives(self) -> List[Path]:
        return [o.archive for o in self.released if o.archive is not None]


def reported_archive_name(pack_output: str, package: ResolvedPackage) -> str:
    """
    Name of the archive the archiver wrote.

    npm prints the file name as the last line of its standard output; when
    nothing is reported the name npm would use is derived from the package.
    """
    lines = [line.strip() for line in (pack_output or "").splitlines() if line.strip()]
    if lines:
        return Path(lines[-1]).name
    return package.archive_name()


class ReleasePipeline:
    """Packages, uploads and publishes each unique dependency version once."""

    def __init__(
        self,
        prefix: str,
        runner: Optional[ToolRunner] = None,
        deduplicator: Optional[VersionDeduplicator] = None,
        bucket: Optional[str] = None,
        publish: bool = False,
        output_dir: Optional[Union[str, Path]] = None,
        dry_run: bool = False,
        console: Optional[Console] = None,
        config: Optional[PkgPushConfig] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        """
        Initialize pipeline.

        Args:
            prefix: Only dependencies whose name starts with this are released
            runner: Tool runner, built from config when omitted
            deduplicator: Processed-version set for this run
            bucket: S3 bucket to upload archives to, None to skip upload
            publish: Publish each archive after packaging
            output_dir: Directory archives are written to (default: cwd)
            dry_run: Resolve and report only; no tools, no manifest rewrites
            console: Destination for progress text
            config: Configuration, global config when omitted
            environ: Environment used to resolve the upload owner
        """
        self.config = config or get_config()
        release_config = self.config.release

        self.prefix = prefix
        self.runner = runner or ToolRunner(
            npm_command=release_config.npm_command,
            aws_command=release_config.aws_command,
            ignore_scripts=release_config.ignore_scripts,
            timeout_seconds=release_config.tool_timeout_seconds,
        )
        self.deduplicator = deduplicator if deduplicator is not None else VersionDeduplicator()
        self.bucket = bucket
        self.publish = publish
        self.output_dir = Path(output_dir) if output_dir is not None else Path.cwd()
        self.dry_run = dry_run
        self.console = console or Console()
        self.environ = environ
        self.error_handler = get_error_handler()

    def _progress(self, text: str, end: str = "") -> None:
        self.console.print(text, end=end, markup=False, highlight=False, soft_wrap=True)

    def resolve_package(self, manifest_path: Path, name: str) -> ResolvedPackage:
        """
        Locate the installed copy of ``name`` next to ``manifest_path``.

        Raises:
            UnresolvableDependency: If the installed manifest is missing,
                unreadable or has no version
        """
        directory = manifest_path.parent / self.config.discovery.dependency_dir / name
        package_manifest_path = directory / self.config.discovery.manifest_name

        try:
            manifest = read_manifest(package_manifest_path, report_errors=False)
        except (OSError, ParseError) as e:
            raise UnresolvableDependency(name, str(package_manifest_path), str(e)) from e

        version = manifest.get("version")
        if not isinstance(version, str) or not version.strip():
            raise UnresolvableDependency(
                name, str(package_manifest_path), "manifest has no version"
            )

        return ResolvedPackage(
            name=name,
            version=version.strip(),
            directory=directory,
            manifest_path=package_manifest_path,
            manifest=manifest,
        )

    async def release_dependency(self, manifest_path: Path, name: str) -> ReleaseOutcome:
        """
        Release one dependency declared by ``manifest_path``.

        Tool failures propagate and leave the version unmarked.
        """
        try:
            package = self.resolve_package(manifest_path, name)
        except UnresolvableDependency as e:
            log_package_skipped(name, "unresolvable", detail=e.reason)
            return ReleaseOutcome(name=name, status=ReleaseStatus.UNRESOLVABLE)

        if package.identifier in self.deduplicator:
            log_package_skipped(name, "duplicate", version=package.version)
            return ReleaseOutcome(
                name=name, status=ReleaseStatus.DUPLICATE, package=package
            )

        self._progress(f"{name}: {package.version} ... ")

        if self.dry_run:
            self._progress(" would release", end="\n")
            self.deduplicator.add(package.identifier)
            return ReleaseOutcome(name=name, status=ReleaseStatus.PLANNED, package=package)

        if strip_registry_override(package.manifest):
            write_manifest(package.manifest_path, package.manifest)
            log_manifest_rewritten(str(package.manifest_path), "publishConfig.registry")

        outcome = ReleaseOutcome(name=name, status=ReleaseStatus.RELEASED, package=package)

        try:
            self._progress(" packing")
            pack_output = await self.runner.pack(package.directory, cwd=self.output_dir)
            archive = self.output_dir / reported_archive_name(pack_output, package)
            outcome.archive = archive

            if self.bucket:
                self._progress(" uploading")
                owner = resolve_owner(
                    self.environ,
                    self.config.release.owner_env_vars,
                    self.config.release.anonymous_owner,
                )
                await self.runner.upload(archive, self.bucket, owner, cwd=self.output_dir)
                outcome.uploaded = True

            if self.publish:
                self._progress(" publishing")
                await self.runner.publish(archive, cwd=self.output_dir)
                outcome.published = True
        except ToolInvocationError as e:
            self._progress("", end="\n")
            self.error_handler.error(
                ErrorCategory.TOOL,
                f"Release of {package.identifier} failed: {e}",
                "pipeline",
                "release_dependency",
                exception=e,
                details={"package": name, "version": package.version},
            )
            raise

        self._progress(" done", end="\n")
        self.deduplicator.add(package.identifier)
        log_package_released(
            name,
            package.version,
            str(archive),
            uploaded=outcome.uploaded,
            published=outcome.published,
        )
        return outcome

    async def run(self, root: Union[str, Path]) -> ReleaseSummary:
        """Discover manifests under ``root`` and release every matching dependency."""
        root = Path(root)
        discovery_config = self.config.discovery
        summary = ReleaseSummary()
        started = time.monotonic()
        run_id = f"run_{int(time.time())}"

        log_run_start(
            run_id,
            str(root),
            self.prefix,
            bucket=self.bucket,
            publish=self.publish,
            dry_run=self.dry_run,
        )

        for manifest_path in find_manifests(
            root, discovery_config.manifest_name, discovery_config.dependency_dir
        ):
            manifest = read_manifest(manifest_path)
            summary.manifests += 1
            names = extract_dependencies(
                manifest,
                self.prefix,
                discovery_config.local_path_prefixes,
                discovery_config.categories,
            )
            for name in sorted(names):
                summary.record(await self.release_dependency(manifest_path, name))

        summary.duration_ms = int((time.monotonic() - started) * 1000)
        log_run_complete(
            run_id,
            summary.duration_ms,
            len(summary.released),
            summary.duplicates,
            summary.unresolvable,
        )
        return summary


async def run_release(
    root: Union[str, Path],
    prefix: str,
    bucket: Optional[str] = None,
    publish: bool = False,
    **kwargs,
) -> ReleaseSummary:
    """Convenience wrapper: one run with a fresh deduplicator."""
    pipeline = ReleasePipeline(prefix, bucket=bucket, publish=publish, **kwargs)
    return await pipeline.run(root)
