import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel

from .cli_config import (
    build_config,
    create_sample_config,
    get_config,
    load_config,
    load_config_file,
    validate_config_values,
)
from .error_handling import PkgPushError, ToolInvocationError, setup_error_handling
from .pipeline import ReleasePipeline, ReleaseSummary
from .structured_logging import configure_logging

__version__ = "0.1.0"

console = Console()
error_console = Console(stderr=True)


def _configure_ambient(verbose: bool) -> None:
    config = load_config()
    log_level = "DEBUG" if verbose else config.logging.log_level
    configure_logging(
        log_level, config.logging.log_file_path, config.logging.enable_json
    )
    setup_error_handling(getattr(logging, log_level.upper(), logging.WARNING))


def print_summary(summary: ReleaseSummary, dry_run: bool) -> None:
    """Print the end-of-run totals."""
    if dry_run:
        console.print(
            f"\n📋 {len(summary.planned)} package version(s) would be released",
            style="bold",
        )
    else:
        console.print(
            f"\n📦 Released {len(summary.released)} package version(s)", style="bold"
        )
    console.print(f"   Manifests scanned: {summary.manifests}")
    console.print(f"   Already processed this run: {summary.duplicates}")
    console.print(f"   Not installed: {summary.unresolvable}")


@click.group(invoke_without_command=True)
@click.option("--version", is_flag=True, help="Show version information")
@click.pass_context
def cli(ctx, version):
    """
    📦 pkgpush: package installed dependency versions for release

    Finds every installed version of the dependencies that match a name
    prefix, packs each version once and optionally uploads it to S3 and
    publishes it to a registry.

    \b
    Releasing moved under the push subcommand. Scripts that ran
      pkgpush --filter PREFIX
    now run
      pkgpush push --filter PREFIX
    """
    if version:
        console.print(f"pkgpush version {__version__}", style="bold blue")
        ctx.exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@cli.command()
@click.option(
    "--filter",
    "prefix",
    required=True,
    help="Package name prefix; only matching dependencies are released",
)
@click.option(
    "--s3",
    "bucket",
    metavar="BUCKET",
    help="Upload archives to this S3 bucket (requires the aws cli)",
)
@click.option(
    "--publish",
    is_flag=True,
    help="Publish each archive with `npm publish --ignore-scripts`",
)
@click.option(
    "--root",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
    show_default=True,
    help="Directory to search for manifests",
)
@click.option(
    "--output-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=".",
    show_default=True,
    help="Directory the archives are written to",
)
@click.option(
    "--dry-run",
    is_flag=True,
    help="List the versions that would be released without running any tool",
)
@click.option("--quiet", "-q", is_flag=True, help="Suppress progress output")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def push(
    prefix: str,
    bucket: Optional[str],
    publish: bool,
    root: Path,
    output_dir: Path,
    dry_run: bool,
    quiet: bool,
    verbose: bool,
) -> None:
    """
    Pack every installed version of matching dependencies.

    Examples:

      pkgpush push --filter @acme/

      pkgpush push --filter @acme/ --s3 my-bucket --publish
    """
    try:
        _configure_ambient(verbose)
        current_config = get_config()
        output_dir.mkdir(parents=True, exist_ok=True)

        pipeline = ReleasePipeline(
            prefix,
            bucket=bucket,
            publish=publish,
            output_dir=output_dir.resolve(),
            dry_run=dry_run,
            console=Console(quiet=quiet),
            config=current_config,
        )
        summary = asyncio.run(pipeline.run(root.resolve()))

        if not quiet:
            print_summary(summary, dry_run)

    except KeyboardInterrupt:
        error_console.print("\n⚠️  Interrupted by user", style="yellow")
        sys.exit(130)
    except ToolInvocationError as e:
        error_console.print(f"❌ Error: {e}", style="red", markup=False)
        if e.stderr:
            error_console.print(e.stderr.rstrip(), markup=False, highlight=False)
        sys.exit(1)
    except (PkgPushError, OSError) as e:
        error_console.print(f"❌ Error: {e}", style="red", markup=False)
        sys.exit(1)


@cli.command()
def info():
    """Show what pkgpush does and how it is configured."""
    info_text = """
[bold blue]🔁 Release Steps (per unique name@version):[/bold blue]

• [yellow]Strip[/yellow] - remove [green]publishConfig.registry[/green] from the installed package.json
• [yellow]Pack[/yellow] - [green]npm pack --ignore-scripts <dir>[/green] into the output directory
• [yellow]Upload[/yellow] - [green]aws s3 cp <archive> s3://<bucket>/<owner>/<archive>[/green] (with --s3)
• [yellow]Publish[/yellow] - [green]npm publish --ignore-scripts <archive>[/green] (with --publish)

[bold blue]🌍 Environment Variables:[/bold blue]

• [cyan]USERNAME[/cyan] / [cyan]USER[/cyan] - owner segment of the S3 key (default: anon)
• [cyan]PKGPUSH_NPM[/cyan] - npm executable
• [cyan]PKGPUSH_AWS[/cyan] - aws executable
• [cyan]PKGPUSH_TOOL_TIMEOUT[/cyan] - per-command timeout in seconds
• [cyan]PKGPUSH_LOG_LEVEL[/cyan] - structured log level

[bold blue]📄 Configuration Files:[/bold blue]

• [green].pkgpush.json[/green] / [green].pkgpush.yaml[/green] - Project-level config
• [green]~/.config/pkgpush/config.json[/green] - User-level config
• [green]~/.pkgpush.json[/green] - User home config

[bold blue]ℹ️  Invocation:[/bold blue]

Releasing is the [green]push[/green] subcommand. Scripts that ran
[green]pkgpush --filter PREFIX[/green] now run [green]pkgpush push --filter PREFIX[/green].

[bold blue]💡 Usage Examples:[/bold blue]

  # Pack every installed @acme/* version
  pkgpush push --filter @acme/

  # Pack, upload and publish
  pkgpush push --filter @acme/ --s3 my-bucket --publish

  # See what would happen
  pkgpush push --filter @acme/ --dry-run
"""
    console.print(
        Panel(
            info_text,
            title="[bold]pkgpush Information[/bold]",
            border_style="blue",
        )
    )


@cli.group()
def config():
    """Manage configuration settings."""
    pass


@config.command("init")
@click.option(
    "--path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=".pkgpush.json",
    show_default=True,
    help="Where to write the config file",
)
@click.option("--force", is_flag=True, help="Overwrite existing config file")
def config_init(path: Path, force: bool):
    """Create a sample configuration file."""
    if path.exists() and not force:
        console.print(f"⚠️  Config file already exists at {path}", style="yellow")
        console.print("Use --force to overwrite", style="dim")
        sys.exit(1)

    try:
        path.write_text(create_sample_config() + "\n", encoding="utf-8")
    except OSError as e:
        error_console.print(f"❌ Failed to create config file: {e}", style="red")
        sys.exit(1)

    console.print(f"✅ Created configuration file at {path}", style="green")
    console.print("Edit this file to customize your settings", style="dim")


@config.command("show")
def config_show():
    """Show the effective configuration."""
    current_config = load_config()

    console.print("\n[bold cyan]🔍 Discovery Settings:[/bold cyan]")
    console.print(f"  Manifest: {current_config.discovery.manifest_name}")
    console.print(f"  Dependency Directory: {current_config.discovery.dependency_dir}")
    console.print(f"  Categories: {', '.join(current_config.discovery.categories)}")
    console.print(
        f"  Local Path Prefixes: {', '.join(current_config.discovery.local_path_prefixes)}",
        markup=False,
    )

    console.print("\n[bold cyan]📦 Release Settings:[/bold cyan]")
    console.print(f"  npm: {current_config.release.npm_command}")
    console.print(f"  aws: {current_config.release.aws_command}")
    console.print(f"  Ignore Scripts: {current_config.release.ignore_scripts}")
    console.print(f"  Tool Timeout: {current_config.release.tool_timeout_seconds}")
    console.print(f"  Owner Variables: {', '.join(current_config.release.owner_env_vars)}")
    console.print(f"  Anonymous Owner: {current_config.release.anonymous_owner}")

    console.print("\n[bold cyan]📝 Logging Settings:[/bold cyan]")
    console.print(f"  Log Level: {current_config.logging.log_level}")
    console.print(f"  Log File: {current_config.logging.log_file_path or 'None'}")


@config.command("validate")
@click.argument("config_file", type=click.Path(exists=True, path_type=Path))
def config_validate(config_file: Path):
    """Validate a configuration file."""
    file_config = load_config_file(config_file)
    if file_config is None:
        error_console.print(f"❌ Could not load config from {config_file}", style="red")
        sys.exit(1)

    errors = validate_config_values(build_config(file_config))
    if errors:
        error_console.print("❌ Configuration validation failed:", style="red")
        for error in errors:
            error_console.print(f"  • {error}", style="red")
        sys.exit(1)

    console.print(f"✅ Configuration file {config_file} is valid", style="green")


if __name__ == "__main__":
    cli()
