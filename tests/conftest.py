"""
Shared fixtures for pkgpush tests.
Builds small monorepo trees with installed dependencies under tmp_path.
"""

import json
from pathlib import Path

import pytest

from pkgpush.cli_config import reset_config
from pkgpush.error_handling import ToolInvocationError


def write_package(directory: Path, manifest: dict, indent: int = 2) -> Path:
    """Write ``manifest`` as ``directory/package.json`` and return its path."""
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / "package.json"
    path.write_text(json.dumps(manifest, indent=indent), encoding="utf-8")
    return path


class FakeRunner:
    """Stands in for ToolRunner and records every invocation."""

    def __init__(self, fail_on=(), pack_output=""):
        self.fail_on = set(fail_on)
        self.pack_output = pack_output
        self.calls = []

    def _maybe_fail(self, step, command):
        if step in self.fail_on:
            raise ToolInvocationError(command, 1, f"{step} exploded")

    async def pack(self, package_dir, cwd=None):
        self.calls.append(("pack", Path(package_dir), cwd))
        self._maybe_fail("pack", ["npm", "pack"])
        return self.pack_output

    async def upload(self, archive, bucket, owner, cwd=None):
        self.calls.append(("upload", Path(archive), bucket, owner))
        self._maybe_fail("upload", ["aws", "s3", "cp"])

    async def publish(self, archive, cwd=None):
        self.calls.append(("publish", Path(archive)))
        self._maybe_fail("publish", ["npm", "publish"])

    def steps(self, step):
        return [call for call in self.calls if call[0] == step]


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Keep config discovery away from the real home and working directory."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(tmp_path)
    for variable in (
        "PKGPUSH_NPM",
        "PKGPUSH_AWS",
        "PKGPUSH_TOOL_TIMEOUT",
        "PKGPUSH_ANONYMOUS_OWNER",
        "PKGPUSH_LOG_LEVEL",
        "PKGPUSH_LOG_FILE",
    ):
        monkeypatch.delenv(variable, raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def temp_dir(tmp_path):
    """A scratch directory separate from the fake home."""
    directory = tmp_path / "work"
    directory.mkdir()
    return directory


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture
def monorepo(temp_dir):
    """
    A repository with two apps that both install scope-pkg-a@2.0.0.

    repo/
      package.json                      devDependencies: scope-pkg-tools (not installed)
      apps/web/package.json             scope-pkg-a, scope-pkg-b (file:), react
      apps/web/node_modules/scope-pkg-a 2.0.0 with a private registry override
      apps/api/package.json             peerDependencies: scope-pkg-a
      apps/api/node_modules/scope-pkg-a 2.0.0
    """
    root = temp_dir / "repo"

    write_package(
        root,
        {
            "name": "monorepo",
            "private": True,
            "devDependencies": {"scope-pkg-tools": "^1.0.0"},
        },
    )

    web = root / "apps" / "web"
    write_package(
        web,
        {
            "name": "web",
            "dependencies": {
                "scope-pkg-a": "^2.0.0",
                "scope-pkg-b": "file:../local",
                "react": "^18.2.0",
            },
        },
    )
    write_package(
        web / "node_modules" / "scope-pkg-a",
        {
            "name": "scope-pkg-a",
            "version": "2.0.0",
            "main": "index.js",
            "publishConfig": {"registry": "https://private", "access": "public"},
        },
    )
    write_package(
        web / "node_modules" / "scope-pkg-a" / "node_modules" / "scope-pkg-nested",
        {"name": "scope-pkg-nested", "version": "9.9.9"},
    )

    api = root / "apps" / "api"
    write_package(
        api,
        {"name": "api", "peerDependencies": {"scope-pkg-a": "^2.0.0"}},
    )
    write_package(
        api / "node_modules" / "scope-pkg-a",
        {"name": "scope-pkg-a", "version": "2.0.0"},
    )

    return root
