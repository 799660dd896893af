"""
Terminal presentation for the installer: banners, step headers, menus,
progress and the final summary. Everything prints through the logger's
rich Console so output and log stay in one place.
"""

from typing import List, Sequence, Tuple

from rich.panel import Panel
from rich.progress_bar import ProgressBar
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from cvh_install.utils.logger import RichAppLogger

BANNER = r"""
   ██████╗██╗   ██╗██╗  ██╗    ██╗     ██╗███╗   ██╗██╗   ██╗██╗  ██╗
  ██╔════╝██║   ██║██║  ██║    ██║     ██║████╗  ██║██║   ██║╚██╗██╔╝
  ██║     ██║   ██║███████║    ██║     ██║██╔██╗ ██║██║   ██║ ╚███╔╝
  ██║     ╚██╗ ██╔╝██╔══██║    ██║     ██║██║╚██╗██║██║   ██║ ██╔██╗
  ╚██████╗ ╚████╔╝ ██║  ██║    ███████╗██║██║ ╚████║╚██████╔╝██╔╝ ██╗
   ╚═════╝  ╚═══╝  ╚═╝  ╚═╝    ╚══════╝╚═╝╚═╝  ╚═══╝ ╚═════╝ ╚═╝  ╚═╝
"""

FEATURES = [
    "Niri or Hyprland Wayland compositor",
    "Ly display manager",
    "Zsh with history and autostart",
    "Custom fuzzy finder & icon system",
    "Minimal & lightweight",
]


def show_welcome(log: RichAppLogger) -> None:
    console = log.console
    console.clear()
    console.print(Text(BANNER, style="bold cyan"))
    console.print("                    CodeVerse Hub Linux Distribution", style="dim")
    console.print()
    console.print("  [bold]Features:[/bold]")
    for feature in FEATURES:
        console.print(f"    [success]●[/success] {feature}")
    console.print()
    console.print("  [warning]⚠[/warning]  [bold]WARNING:[/bold] This will ERASE all data on the selected disk!")
    console.print()


def show_completion(log: RichAppLogger) -> None:
    log.console.print(Panel("Installation Complete!", style="bold green", padding=(1, 14), expand=False))


def step_header(log: RichAppLogger, current: int, total: int, title: str) -> None:
    """Prints the 'Step N/T' banner and records it as a section in the log file."""
    log.console.print()
    log.console.print(Rule(style="cyan"))
    log.console.print(f"[bold]  Step {current}/{total}: {title}[/bold]")
    log.console.print(Rule(style="cyan"))
    log.console.print()
    log.logger.section(f"Step {current}/{total}: {title}")


def overall_progress(log: RichAppLogger, completed: int, total: int) -> None:
    percent = int(completed * 100 / total) if total else 100
    grid = Table.grid(padding=(0, 1))
    grid.add_row(
        Text("Overall Progress:", style="dim"),
        ProgressBar(total=total or 1, completed=completed, width=60, complete_style="green"),
        Text(f"{percent}%", style="bold"),
    )
    log.console.print()
    log.console.print(grid)


def show_menu(log: RichAppLogger, heading: str, options: Sequence[Tuple[str, str]], default_index: int = 1) -> None:
    """Numbered option list; options are (value, description) pairs."""
    log.console.print(f"  {heading}")
    for number, (value, description) in enumerate(options, start=1):
        label = f"{value} - {description}" if description else value
        marker = " [dim]\\[default][/dim]" if number == default_index else ""
        log.console.print(f"    [bold]{number})[/bold] {label}{marker}")
    log.console.print()


def show_disks(log: RichAppLogger, disks: List[Tuple[str, str, str]]) -> None:
    """Disk table, rows are (name, size, model)."""
    table = Table(title="Available Disks")
    table.add_column("Index", justify="right", style="cyan", no_wrap=True)
    table.add_column("Device Name", style="success")
    table.add_column("Size", style="cyan", justify="right")
    table.add_column("Model")

    for i, (name, size, model) in enumerate(disks, start=1):
        table.add_row(str(i), f"/dev/{name}", size, model or "[italic]Unknown[/]")

    log.console.print(table)


def show_summary(log: RichAppLogger, details: Sequence[Tuple[str, str]], next_steps: Sequence[str]) -> None:
    console = log.console
    console.print("  [bold]System Details:[/bold]")
    for key, value in details:
        console.print(f"    {key + ':':<11}[cyan]{value}[/cyan]")
    console.print()
    console.print("  [bold]After Reboot:[/bold]")
    for number, line in enumerate(next_steps, start=1):
        console.print(f"    {number}. {line}")
    console.print()
    console.print("  [dim]CVH Tools: cvh-fuzzy (launcher), cvh-icons (desktop icons)[/dim]")
    console.print()
