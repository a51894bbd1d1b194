"""
CLI interface tests for pkgpush.
Tests the command-line interface and main entry points.
"""

import json
from unittest.mock import patch

from click.testing import CliRunner

from conftest import FakeRunner
from pkgpush.main import cli


class TestCLIBasics:
    """Test basic CLI functionality."""

    def test_cli_help(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        assert "pkgpush" in result.output.lower()

    def test_cli_version(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_help_explains_push_subcommand(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["--help"])

        assert "pkgpush push --filter PREFIX" in result.output

    def test_bare_filter_is_a_usage_error(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["--filter", "scope-pkg"])

        assert result.exit_code == 2

    def test_no_command_prints_help(self):
        runner = CliRunner()
        result = runner.invoke(cli, [])

        assert result.exit_code == 0
        assert "push" in result.output

    def test_info_command(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["info"])

        assert result.exit_code == 0
        assert "npm pack" in result.output
        assert "pkgpush push --filter PREFIX" in result.output


class TestPushCommand:
    """Test the push command."""

    def test_filter_is_required(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["push"])

        assert result.exit_code == 2
        assert "--filter" in result.output

    def test_help_exits_without_processing(self, monorepo):
        fake = FakeRunner()
        runner = CliRunner()

        with patch("pkgpush.pipeline.ToolRunner", return_value=fake):
            result = runner.invoke(
                cli, ["push", "--filter", "scope-pkg", "--root", str(monorepo), "--help"]
            )

        assert result.exit_code == 0
        assert "--s3" in result.output
        assert "--publish" in result.output
        assert fake.calls == []

    def test_push_packs_each_version_once(self, monorepo, temp_dir):
        fake = FakeRunner()
        runner = CliRunner()

        with patch("pkgpush.pipeline.ToolRunner", return_value=fake):
            result = runner.invoke(
                cli,
                [
                    "push",
                    "--filter",
                    "scope-pkg",
                    "--root",
                    str(monorepo),
                    "--output-dir",
                    str(temp_dir / "dist"),
                ],
            )

        assert result.exit_code == 0, result.output
        assert len(fake.steps("pack")) == 1
        assert "scope-pkg-a: 2.0.0 ..." in result.output
        assert "Released 1 package version(s)" in result.output
        assert (temp_dir / "dist").is_dir()

    def test_push_with_s3_and_publish(self, monorepo, temp_dir, monkeypatch):
        monkeypatch.delenv("USERNAME", raising=False)
        monkeypatch.setenv("USER", "builder")
        fake = FakeRunner()
        runner = CliRunner()

        with patch("pkgpush.pipeline.ToolRunner", return_value=fake):
            result = runner.invoke(
                cli,
                [
                    "push",
                    "--filter",
                    "scope-pkg",
                    "--s3",
                    "releases",
                    "--publish",
                    "--root",
                    str(monorepo),
                    "--output-dir",
                    str(temp_dir),
                ],
            )

        assert result.exit_code == 0, result.output
        archive = temp_dir.resolve() / "scope-pkg-a-2.0.0.tgz"
        assert fake.steps("upload") == [("upload", archive, "releases", "builder")]
        assert fake.steps("publish") == [("publish", archive)]

    def test_dry_run(self, monorepo, temp_dir):
        fake = FakeRunner()
        runner = CliRunner()

        with patch("pkgpush.pipeline.ToolRunner", return_value=fake):
            result = runner.invoke(
                cli,
                ["push", "--filter", "scope-pkg", "--root", str(monorepo), "--dry-run"],
            )

        assert result.exit_code == 0, result.output
        assert fake.calls == []
        assert "would be released" in result.output

    def test_quiet_suppresses_progress(self, monorepo, temp_dir):
        fake = FakeRunner()
        runner = CliRunner()

        with patch("pkgpush.pipeline.ToolRunner", return_value=fake):
            result = runner.invoke(
                cli,
                [
                    "push",
                    "--filter",
                    "scope-pkg",
                    "--root",
                    str(monorepo),
                    "--output-dir",
                    str(temp_dir),
                    "--quiet",
                ],
            )

        assert result.exit_code == 0
        assert "scope-pkg-a" not in result.output
        assert len(fake.steps("pack")) == 1

    def test_archiver_failure_exits_non_zero(self, monorepo, temp_dir):
        fake = FakeRunner(fail_on={"pack"})
        runner = CliRunner()

        with patch("pkgpush.pipeline.ToolRunner", return_value=fake):
            result = runner.invoke(
                cli,
                [
                    "push",
                    "--filter",
                    "scope-pkg",
                    "--publish",
                    "--root",
                    str(monorepo),
                    "--output-dir",
                    str(temp_dir),
                ],
            )

        assert result.exit_code == 1
        assert "Error" in result.output
        assert fake.steps("publish") == []

    def test_malformed_manifest_exits_non_zero(self, temp_dir):
        (temp_dir / "package.json").write_text("{nope")
        runner = CliRunner()

        with patch("pkgpush.pipeline.ToolRunner", return_value=FakeRunner()):
            result = runner.invoke(
                cli, ["push", "--filter", "scope-pkg", "--root", str(temp_dir)]
            )

        assert result.exit_code == 1
        assert "Invalid manifest" in result.output

    def test_missing_root(self, temp_dir):
        runner = CliRunner()
        result = runner.invoke(
            cli, ["push", "--filter", "x", "--root", str(temp_dir / "missing")]
        )

        assert result.exit_code == 2
        assert "does not exist" in result.output


class TestConfigCommands:
    """Test configuration management commands."""

    def test_config_init(self, temp_dir):
        config_path = temp_dir / "pkgpush.json"
        runner = CliRunner()
        result = runner.invoke(cli, ["config", "init", "--path", str(config_path)])

        assert result.exit_code == 0
        data = json.loads(config_path.read_text())
        assert data["release"]["npm_command"] == "npm"
        assert data["discovery"]["dependency_dir"] == "node_modules"

    def test_config_init_refuses_overwrite(self, temp_dir):
        config_path = temp_dir / "pkgpush.json"
        config_path.write_text("{}")
        runner = CliRunner()
        result = runner.invoke(cli, ["config", "init", "--path", str(config_path)])

        assert result.exit_code == 1
        assert config_path.read_text() == "{}"

    def test_config_show(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["config", "show"])

        assert result.exit_code == 0
        assert "node_modules" in result.output
        assert "anon" in result.output

    def test_config_validate_valid_file(self, temp_dir):
        config_path = temp_dir / "config.json"
        config_path.write_text(json.dumps({"release": {"npm_command": "pnpm"}}))
        runner = CliRunner()
        result = runner.invoke(cli, ["config", "validate", str(config_path)])

        assert result.exit_code == 0
        assert "is valid" in result.output

    def test_config_validate_reports_wrong_types(self, temp_dir):
        config_path = temp_dir / "config.json"
        config_path.write_text(
            json.dumps(
                {
                    "discovery": {"manifest_name": 5},
                    "release": {"tool_timeout_seconds": "soon"},
                }
            )
        )
        runner = CliRunner()
        result = runner.invoke(cli, ["config", "validate", str(config_path)])

        assert result.exit_code == 1
        assert not isinstance(result.exception, TypeError)
        assert "Configuration validation failed" in result.output
        assert "tool_timeout_seconds must be a number" in result.output
        assert "manifest_name" in result.output

    def test_config_validate_invalid_file(self, temp_dir):
        config_path = temp_dir / "config.json"
        config_path.write_text(json.dumps({"release": {"tool_timeout_seconds": -5}}))
        runner = CliRunner()
        result = runner.invoke(cli, ["config", "validate", str(config_path)])

        assert result.exit_code == 1
        assert "tool_timeout_seconds" in result.output

    def test_project_config_is_used_by_push(self, monorepo, temp_dir):
        (temp_dir.parent / ".pkgpush.json").write_text(
            json.dumps(
                {
                    "release": {
                        "owner_env_vars": ["PKGPUSH_TEST_OWNER"],
                        "anonymous_owner": "ci",
                    }
                }
            )
        )
        fake = FakeRunner()
        runner = CliRunner()

        with patch("pkgpush.pipeline.ToolRunner", return_value=fake):
            result = runner.invoke(
                cli,
                [
                    "push",
                    "--filter",
                    "scope-pkg",
                    "--s3",
                    "b",
                    "--root",
                    str(monorepo),
                    "--output-dir",
                    str(temp_dir),
                ],
            )

        assert result.exit_code == 0, result.output
        assert fake.steps("upload")[0][3] == "ci"
