# cvh_install/cli.py
from pathlib import Path
from typing import Optional

import typer

from cvh_install import __version__
from cvh_install.config.models import InstallerSettings
from cvh_install.installer import Installer
from cvh_install.utils.exceptions import FatalInstallError
from cvh_install.utils.logger import initialize_app_logger

EXIT_FATAL = 1
EXIT_INTERRUPTED = 130

app = typer.Typer(add_completion=False, help="CVH Linux installer.")


def _version_callback(value: bool):
    if value:
        typer.echo(f"cvh-install {__version__}")
        raise typer.Exit()


@app.command()
def install(
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", exists=True, dir_okay=False,
        help="TOML settings file. /etc/cvh-install/config.toml is used when present.",
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Log every command without executing or writing anything."),
    log_dir: Optional[Path] = typer.Option(None, "--log-dir", help="Directory for cvh-install.log."),
    version: bool = typer.Option(False, "--version", callback=_version_callback, is_eager=True,
                                 help="Show the version and exit."),
):
    """
    Install CVH Linux onto a disk of this machine. All answers are asked interactively.
    """
    try:
        settings = InstallerSettings.resolve(config)
    except ValueError as e:
        typer.secho(f"Configuration error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=EXIT_FATAL)

    log_directory = str(log_dir) if log_dir else settings.log_directory
    try:
        logger = initialize_app_logger(app_name="cvh_install", log_directory=log_directory)
    except OSError as e:
        typer.secho(f"Cannot write the log to {log_directory}: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=EXIT_FATAL)

    try:
        Installer(settings, logger, dry_run=dry_run).run()
    except FatalInstallError as e:
        logger.console.print(f"\n  [error]✗[/error] {e.message}")
        logger.logger.error(f"Installation aborted{f' at step {e.step}' if e.step else ''}: {e.message}",
                            extra={"rendered": True})
        raise typer.Exit(code=EXIT_FATAL)
    except EOFError:
        logger.console.print("\n  [error]✗[/error] Input closed before the installation started")
        logger.logger.error("Installation aborted: standard input closed", extra={"rendered": True})
        raise typer.Exit(code=EXIT_FATAL)
    except KeyboardInterrupt:
        logger.console.print("\n  [warning]⚠[/warning]  Installation interrupted")
        logger.logger.warning("Installation interrupted by user", extra={"rendered": True})
        raise typer.Exit(code=EXIT_INTERRUPTED)
