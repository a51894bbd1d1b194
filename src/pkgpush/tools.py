"""
External tool invocation: archiver, uploader and publisher.

Every command is executed directly from an argument list, never through a
shell, so package names cannot inject shell syntax.
"""

import asyncio
import os
import subprocess
import time
from pathlib import Path
from typing import List, Mapping, Optional, Sequence, Tuple

from .error_handling import ErrorCategory, ToolInvocationError, get_error_handler
from .structured_logging import log_tool_failed, log_tool_invoked


def resolve_owner(
    environ: Optional[Mapping[str, str]] = None,
    variables: Sequence[str] = ("USERNAME", "USER"),
    fallback: str = "anon",
) -> str:
    """Return the first non-empty owner variable, or ``fallback``."""
    environ = os.environ if environ is None else environ
    for variable in variables:
        value = environ.get(variable, "").strip()
        if value:
            return value
    return fallback


class ToolRunner:
    """Runs the packaging, upload and publish commands."""

    def __init__(
        self,
        npm_command: str = "npm",
        aws_command: str = "aws",
        ignore_scripts: bool = True,
        timeout_seconds: Optional[float] = None,
    ):
        """
        Initialize runner.

        Args:
            npm_command: Executable used for ``pack`` and ``publish``
            aws_command: Executable used for the S3 upload
            ignore_scripts: Pass ``--ignore-scripts`` to npm
            timeout_seconds: Optional deadline per command, None waits forever
        """
        self.npm_command = npm_command
        self.aws_command = aws_command
        self.ignore_scripts = ignore_scripts
        self.timeout_seconds = timeout_seconds
        self.error_handler = get_error_handler()

    def _npm_args(self, subcommand: str) -> List[str]:
        args = [self.npm_command, subcommand]
        if self.ignore_scripts:
            args.append("--ignore-scripts")
        return args

    async def pack(self, package_dir: Path, cwd: Optional[Path] = None) -> str:
        """Create an archive of ``package_dir`` in ``cwd``; returns stdout."""
        stdout, _, _ = await self._run_command_safely(
            self._npm_args("pack") + [str(package_dir)], cwd=cwd
        )
        return stdout

    async def upload(
        self, archive: Path, bucket: str, owner: str, cwd: Optional[Path] = None
    ) -> None:
        """Copy ``archive`` to ``s3://<bucket>/<owner>/<archive name>``."""
        destination = f"s3://{bucket}/{owner}/{archive.name}"
        await self._run_command_safely(
            [self.aws_command, "s3", "cp", str(archive), destination], cwd=cwd
        )

    async def publish(self, archive: Path, cwd: Optional[Path] = None) -> None:
        """Publish ``archive`` to the configured registry."""
        await self._run_command_safely(
            self._npm_args("publish") + [str(archive)], cwd=cwd
        )

    async def _run_command_safely(
        self,
        command: List[str],
        cwd: Optional[Path] = None,
    ) -> Tuple[str, str, int]:
        """
        Run a command and wait for it to finish.

        Args:
            command: Command and arguments to run
            cwd: Working directory

        Returns:
            Tuple of (stdout, stderr, return_code)

        Raises:
            ToolInvocationError: If the command cannot start, times out or
                exits with a non-zero status
        """
        if not command or not command[0]:
            raise ValueError("Invalid command")

        safe_command = [str(arg) for arg in command]
        display = " ".join(safe_command)
        started = time.monotonic()

        try:
            process = await asyncio.create_subprocess_exec(
                *safe_command,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                cwd=str(cwd) if cwd is not None else None,
            )
        except OSError as e:
            self.error_handler.error(
                ErrorCategory.TOOL,
                f"Could not start {safe_command[0]}: {e}",
                "tools",
                "_run_command_safely",
                exception=e,
                details={"command": display},
                suggestions=[f"Check that {safe_command[0]} is installed and on PATH"],
            )
            raise ToolInvocationError(safe_command, reason=str(e)) from e

        try:
            stdout_data, stderr_data = await asyncio.wait_for(
                process.communicate(), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            self.error_handler.error(
                ErrorCategory.TOOL,
                f"Command timed out after {self.timeout_seconds}s",
                "tools",
                "_run_command_safely",
                details={"command": display},
            )
            raise ToolInvocationError(
                safe_command, reason=f"timed out after {self.timeout_seconds}s"
            )

        stdout = stdout_data.decode("utf-8", errors="replace") if stdout_data else ""
        stderr = stderr_data.decode("utf-8", errors="replace") if stderr_data else ""
        returncode = process.returncode or 0
        log_tool_invoked(
            display, int((time.monotonic() - started) * 1000), returncode
        )

        if returncode != 0:
            log_tool_failed(display, returncode, stderr)
            raise ToolInvocationError(safe_command, returncode, stderr)

        return stdout, stderr, returncode
