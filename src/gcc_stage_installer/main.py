"""Main CLI entry point for the staged GCC installer.

Provides ``gcc-stage install`` and ``gcc-stage uninstall``. Both commands are
also exposed on their own as ``install-gcc-from-dir`` and
``uninstall-gcc-from-dir``.

Exit codes: 0 success, 1 usage error or help, 2 source not found / prefix
not resolvable, 3 source is not a toolchain, 4 privilege escalation failed,
5 finished with per-artifact failures.
"""

import sys
import traceback
from pathlib import Path
from typing import Any, Dict, Optional

import click
import structlog

from . import __version__, exit_codes
from .config import ConfigurationError, Settings, load_settings
from .config.logging import configure_logging
from .installation import (
    InstallationError,
    InstallationManager,
    InstallOptions,
    PrivilegedExecutor,
    PrivilegeError,
    UninstallationError,
    UninstallationManager,
    build_confirmation,
)

logger = structlog.get_logger()

# -h/--help is re-declared below so that it exits with the usage status.
NO_DEFAULT_HELP = {"help_option_names": []}


class CLIError(Exception):
    """Base CLI error with user-friendly messages."""

    def __init__(self, message: str, suggestion: Optional[str] = None):
        self.message = message
        self.suggestion = suggestion
        super().__init__(message)


class CLIContext:
    """Global CLI context management."""

    def __init__(
        self,
        verbose: bool = False,
        quiet: bool = False,
        config_file: Optional[str] = None,
    ):
        self.verbose = verbose
        self.quiet = quiet
        self.config_file = config_file
        self.settings = self.load_settings()
        self.configure_logging()

    def load_settings(self) -> Settings:
        """Load settings from the config file and environment."""
        try:
            return load_settings(self.config_file)
        except ConfigurationError as e:
            raise CLIError(str(e), "Check YAML syntax and section names")

    def configure_logging(self) -> None:
        level = self.settings.logging.level
        if self.verbose:
            level = "DEBUG"
        elif self.quiet:
            level = "ERROR"
        configure_logging(
            level=level,
            log_file=self.settings.logging.file_path,
            json_logs=self.settings.logging.json_format,
        )


class _UsageExitCode:
    """Report click usage errors with the usage exit status."""

    def make_context(self, *args, **kwargs):
        try:
            return super().make_context(*args, **kwargs)
        except click.UsageError as e:
            e.exit_code = exit_codes.USAGE
            raise

    def invoke(self, ctx):
        try:
            return super().invoke(ctx)
        except click.UsageError as e:
            e.exit_code = exit_codes.USAGE
            raise


class ToolchainCommand(_UsageExitCode, click.Command):
    pass


class ToolchainGroup(_UsageExitCode, click.Group):
    pass


def _show_usage(ctx: click.Context, param: click.Parameter, value: bool) -> None:
    if not value or ctx.resilient_parsing:
        return
    click.echo(ctx.get_help())
    ctx.exit(exit_codes.USAGE)


usage_help_option = click.option(
    "-h",
    "--help",
    is_flag=True,
    expose_value=False,
    is_eager=True,
    callback=_show_usage,
    help="Show this message and exit.",
)


def _get_cli_context(ctx: click.Context) -> CLIContext:
    if ctx.obj and ctx.obj.get("cli_context"):
        return ctx.obj["cli_context"]
    # Invoked through a standalone console script
    try:
        cli_context = CLIContext()
    except CLIError as e:
        handle_cli_error(e, ctx)
    ctx.ensure_object(dict)
    ctx.obj["cli_context"] = cli_context
    ctx.obj["verbose"] = False
    return cli_context


def handle_cli_error(error: Exception, ctx: Optional[click.Context] = None):
    """Global CLI error handler."""
    if isinstance(error, CLIError):
        click.echo(f"Error: {error.message}", err=True)
        if error.suggestion:
            click.echo(f"Suggestion: {error.suggestion}", err=True)
    else:
        verbose = False
        if ctx and ctx.obj:
            verbose = ctx.obj.get("verbose", False)

        click.echo(f"Unexpected error: {str(error)}", err=True)
        if verbose:
            click.echo(traceback.format_exc(), err=True)
        else:
            click.echo("Run with --verbose for detailed error information", err=True)

    sys.exit(exit_codes.USAGE)


def _handle_installation_error(error, ctx: Optional[click.Context]):
    """Handle install/uninstall precondition errors."""
    verbose = bool(ctx and ctx.obj and ctx.obj.get("verbose"))

    click.echo(f"❌ {error.message}", err=True)
    if error.details and verbose:
        click.echo("\n📋 Error details:", err=True)
        for key, value in error.details.items():
            if isinstance(value, list):
                click.echo(f"   {key}:", err=True)
                for item in value:
                    click.echo(f"   • {item}", err=True)
            else:
                click.echo(f"   {key}: {value}", err=True)

    sys.exit(error.exit_code)


def _handle_privilege_error(error: PrivilegeError, ctx: Optional[click.Context]):
    click.echo(f"❌ {error.message}", err=True)
    if error.returncode is not None:
        click.echo(f"   exit status: {error.returncode}", err=True)
    click.echo("   Re-run as root or check your sudo configuration", err=True)
    sys.exit(exit_codes.PRIVILEGE)


@click.group(cls=ToolchainGroup, no_args_is_help=False, context_settings=NO_DEFAULT_HELP)
@usage_help_option
@click.version_option(version=__version__, prog_name="gcc-stage")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose output with detailed logging",
)
@click.option(
    "--quiet", "-q", is_flag=True, help="Enable quiet mode with minimal output"
)
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, dir_okay=False),
    help="Configuration file path (YAML format)",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, quiet: bool, config: Optional[str]):
    """Install and uninstall staged GCC toolchains.

    A staged toolchain is a directory laid out like a system prefix
    (bin, include, lib, lib64, libexec, share), as produced by the CI build.

    \b
    Examples:
      gcc-stage install /workspaces/gcc-install
      gcc-stage install /workspaces/gcc-install --lfs
      gcc-stage uninstall --version 14.1.0 --dry-run
      gcc-stage uninstall --prefix /opt/gcc-14.1.0 --remove-tree --yes

    Concurrent runs against the same prefix are not supported; serialize them.
    """
    if verbose and quiet:
        raise click.BadParameter("Cannot use both --verbose and --quiet options")

    ctx.ensure_object(dict)
    try:
        cli_context = CLIContext(verbose=verbose, quiet=quiet, config_file=config)
    except CLIError as e:
        handle_cli_error(e, ctx)

    ctx.obj["cli_context"] = cli_context
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet


@cli.command(cls=ToolchainCommand, context_settings=NO_DEFAULT_HELP)
@usage_help_option
@click.argument("source_dir", type=click.Path(path_type=Path))
@click.option(
    "--prefix",
    type=click.Path(path_type=Path),
    help="Install into PATH instead of /opt/gcc-<version>",
)
@click.option(
    "--no-register",
    is_flag=True,
    help="Do not create command symlinks (ld.so.conf.d and profile.d files are still written; use --lfs to skip them)",
)
@click.option(
    "--lfs",
    is_flag=True,
    help="LFS-friendly minimal mode: only copy files (no system changes)",
)
@click.option(
    "--system",
    is_flag=True,
    help="Force system registration (ldconfig/profile and symlinks) in --lfs mode",
)
@click.option(
    "--force-links",
    is_flag=True,
    help="Back up and replace existing gcc/g++/cpp/cc entries",
)
@click.pass_context
def install(
    ctx: click.Context,
    source_dir: Path,
    prefix: Optional[Path],
    no_register: bool,
    lfs: bool,
    system: bool,
    force_links: bool,
):
    """Install a staged GCC tree from SOURCE_DIR.

    Copies the tree to /opt/gcc-<version> (mirroring: files removed from the
    stage are removed from the prefix), registers lib and lib64 with
    ldconfig, links gcc, g++, cpp and cc into /usr/bin (or /usr/local/bin)
    and writes /etc/profile.d/gcc-<version>.sh.

    For Linux From Scratch prefer --lfs, which only copies files. Do not run
    system registration inside a temporary toolchain or chroot unless you
    know what you are doing.

    \b
    Example:
      sudo install-gcc-from-dir /workspaces/gcc-install --lfs
    """
    cli_context = _get_cli_context(ctx)
    options = InstallOptions(
        prefix=prefix,
        no_register=no_register,
        lfs_mode=lfs,
        force_system=system,
        force_links=force_links,
    )

    try:
        manager = InstallationManager(settings=cli_context.settings)
        result = manager.perform_installation(source_dir, options)
    except InstallationError as e:
        _handle_installation_error(e, ctx)
    except PrivilegeError as e:
        _handle_privilege_error(e, ctx)
    except Exception as e:
        handle_cli_error(e, ctx)

    _display_installation_result(result, manager.rollback_hints(result), cli_context.quiet)


@cli.command(cls=ToolchainCommand, context_settings=NO_DEFAULT_HELP)
@usage_help_option
@click.option(
    "--prefix",
    type=click.Path(path_type=Path),
    help="Exact install prefix to uninstall (preferred)",
)
@click.option("--version", "version", help="Use /opt/gcc-VER as the installed prefix")
@click.option("--remove-tree", is_flag=True, help="Also remove the installed directory")
@click.option(
    "--yes",
    "assume_yes",
    is_flag=True,
    help="Do not prompt for confirmation (including tree removal)",
)
@click.option("--dry-run", is_flag=True, help="Print actions without performing them")
@click.pass_context
def uninstall(
    ctx: click.Context,
    prefix: Optional[Path],
    version: Optional[str],
    remove_tree: bool,
    assume_yes: bool,
    dry_run: bool,
):
    """Remove symlinks, ld.so.conf entry and profile fragment of an install.

    Without --prefix or --version the installation is detected from
    /etc/ld.so.conf.d/gcc-*.conf. Only artifacts that point at the target
    prefix are removed. --remove-tree also deletes the prefix itself.

    \b
    Examples:
      sudo uninstall-gcc-from-dir --prefix /opt/gcc-14.1.0 --remove-tree
      uninstall-gcc-from-dir --version 14.1.0 --dry-run
    """
    cli_context = _get_cli_context(ctx)

    try:
        manager = UninstallationManager(
            settings=cli_context.settings,
            executor=PrivilegedExecutor(
                escalation_command=cli_context.settings.commands.escalation,
                dry_run=dry_run,
            ),
            confirmation=build_confirmation(assume_yes=assume_yes, dry_run=dry_run),
        )
        target = manager.resolve_target(prefix=prefix, version=version)

        click.echo(f"Target uninstall prefix: {target.prefix}")
        if target.version:
            click.echo(f"Detected version: {target.version}")
        if dry_run:
            click.echo("DRY RUN: no changes will be made.")

        result = manager.perform_uninstallation(target, remove_tree=remove_tree)
    except UninstallationError as e:
        _handle_installation_error(e, ctx)
    except PrivilegeError as e:
        _handle_privilege_error(e, ctx)
    except Exception as e:
        handle_cli_error(e, ctx)

    _display_uninstallation_result(result, manager.executor.planned_actions)

    if result["errors"]:
        sys.exit(exit_codes.PARTIAL_FAILURE)


def _display_installation_result(result: Dict[str, Any], hints, quiet: bool = False):
    click.echo(f"Source: {result['source']}")
    click.echo(f"Destination: {result['prefix']}")
    click.echo(f"Version: {result['version']}")

    if not quiet:
        for step in result["steps_completed"]:
            click.echo(f"   ✓ {step}")
        for skipped in result["skipped"]:
            click.echo(f"   - {skipped}")

    if result["warnings"]:
        click.echo("\n⚠️  Warnings:")
        for warning in result["warnings"]:
            click.echo(f"   • {warning}")

    click.echo("\n✅ Installation complete.")
    if quiet:
        return

    click.echo("\nQuick tests:")
    click.echo("   1. gcc --version")
    click.echo("   2. echo 'int main(){}' > t.c && gcc t.c -o t && ./t && echo OK")
    click.echo("\nUninstall / rollback steps (manual):")
    for hint in hints:
        click.echo(f"   • {hint}")


def _display_uninstallation_result(result: Dict[str, Any], planned_actions):
    for action in planned_actions:
        click.echo(f"DRY: {action}")

    for item in result["removed_items"]:
        click.echo(f"Removed {item}")
    for item in result["skipped_items"]:
        click.echo(f"Skipped {item}")
    for warning in result["warnings"]:
        click.echo(f"⚠️  {warning}")
    for error in result["errors"]:
        click.echo(f"❌ {error}", err=True)

    if not (result["removed_items"] or result["planned_actions"] or result["skipped_items"]):
        click.echo("Nothing belonging to this prefix was found.")

    if result["errors"]:
        click.echo("Uninstall finished with errors.", err=True)
    else:
        click.echo("Uninstall complete.")


if __name__ == "__main__":
    cli()
