# cvh_install/prompts.py

from typing import List, Optional, Sequence, Tuple

from rich.markup import escape
from rich.prompt import Prompt

from cvh_install import ui
from cvh_install.config.models import (
    HOSTNAME_PATTERN,
    KEYMAP_PATTERN,
    TIMEZONE_PATTERN,
    USERNAME_PATTERN,
    Identity,
)
from cvh_install.state import Compositor
from cvh_install.utils.exceptions import FatalInstallError
from cvh_install.utils.logger import RichAppLogger

KEYMAP_CHOICES = [
    ("us", "US English"),
    ("uk", "UK English"),
    ("de", "German"),
    ("fr", "French"),
    ("es", "Spanish"),
    ("il", "Hebrew"),
]

TIMEZONE_CHOICES = [
    ("Asia/Jerusalem", ""),
    ("UTC", ""),
    ("America/New_York", ""),
    ("America/Los_Angeles", ""),
    ("Europe/London", ""),
    ("Europe/Berlin", ""),
]

COMPOSITOR_CHOICES = [
    (Compositor.NIRI.value, "Scrollable-tiling compositor"),
    (Compositor.HYPRLAND.value, "Dynamic tiling compositor"),
]

OTHER = ("Other", "")


def validate_hostname(value: str) -> bool:
    return bool(HOSTNAME_PATTERN.fullmatch(value))


def validate_username(value: str) -> bool:
    return bool(USERNAME_PATTERN.fullmatch(value))


def validate_keymap(value: str) -> bool:
    return bool(KEYMAP_PATTERN.fullmatch(value))


def validate_timezone(value: str) -> bool:
    return bool(TIMEZONE_PATTERN.fullmatch(value))


def parse_disk_listing(output: str) -> List[Tuple[str, str, str]]:
    """
    Parses `lsblk -dno NAME,SIZE,MODEL` output into (name, size, model) rows,
    dropping loop, optical, floppy and zram devices.
    """
    disks = []
    for line in output.splitlines():
        fields = line.split(None, 2)
        if not fields:
            continue
        name = fields[0]
        if name.startswith(("loop", "sr", "rom", "fd", "zram")):
            continue
        size = fields[1] if len(fields) > 1 else ""
        model = fields[2].strip() if len(fields) > 2 else ""
        disks.append((name, size, model))
    return disks


class Prompter:
    """
    Interactive input collection. Menus and free-text entries never re-prompt:
    empty input selects the default, invalid input falls back to the default
    with a warning. Only disk selection and its confirmation are fatal.
    """

    def __init__(self, logger: RichAppLogger, defaults: Optional[Identity] = None):
        self.logger = logger
        self.defaults = defaults or Identity()

    def _ask(self, question: str) -> str:
        answer = Prompt.ask(escape(f"  {question}"), console=self.logger.console, default="", show_default=False)
        return (answer or "").strip()

    def _fallback(self, value: str, is_valid, default: str, what: str) -> str:
        if not value:
            return default
        if not is_valid(value):
            self.logger.warning(f"Invalid {what}, using: {default}")
            return default
        return value

    def select(self, heading: str, options: Sequence[Tuple[str, str]], question: str) -> int:
        """
        Shows a numbered menu and returns the chosen 1-based index.
        Option 1 is the default.
        """
        ui.show_menu(self.logger, heading, options)
        answer = self._ask(f"{question} [1]")
        if not answer:
            return 1
        if answer.isdigit() and 1 <= int(answer) <= len(options):
            return int(answer)
        self.logger.warning(f"Invalid choice '{answer}', using default: {options[0][0]}")
        return 1

    def choose_keymap(self) -> str:
        options = KEYMAP_CHOICES + [OTHER]
        choice = self.select("Available layouts:", options, "Select layout")
        if choice == len(options):
            keymap = self._fallback(self._ask("Enter keymap name"), validate_keymap, self.defaults.keymap, "keymap")
        else:
            keymap = options[choice - 1][0]
        self.logger.success(f"Keyboard: [bold]{keymap}[/bold]")
        return keymap

    def choose_timezone(self) -> str:
        options = TIMEZONE_CHOICES + [OTHER]
        choice = self.select("Common timezones:", options, "Select timezone")
        if choice == len(options):
            timezone = self._fallback(
                self._ask("Enter timezone (Region/City)"), validate_timezone, self.defaults.timezone, "timezone"
            )
        else:
            timezone = options[choice - 1][0]
        self.logger.success(f"Timezone: [bold]{timezone}[/bold]")
        return timezone

    def choose_compositor(self) -> Compositor:
        choice = self.select("Available Wayland compositors:", COMPOSITOR_CHOICES, "Select compositor")
        compositor = Compositor(COMPOSITOR_CHOICES[choice - 1][0])
        self.logger.success(f"Compositor: [bold]{compositor.value}[/bold]")
        return compositor

    def choose_disk(self, disks: List[Tuple[str, str, str]]) -> str:
        """Returns the chosen disk as /dev/<name>. An empty list or a bad number is fatal."""
        if not disks:
            raise FatalInstallError("No suitable disks found!")

        ui.show_disks(self.logger, disks)
        answer = self._ask("Enter disk number")

        if not answer.isdigit() or not 1 <= int(answer) <= len(disks):
            raise FatalInstallError("Invalid selection!")

        return f"/dev/{disks[int(answer) - 1][0]}"

    def confirm_destruction(self, disk: str) -> None:
        """Anything but a literal 'yes' cancels the installation."""
        self.logger.console.print()
        self.logger.console.print(f"  [warning]⚠[/warning]  Selected: [bold]{disk}[/bold]")
        self.logger.console.print("  [error]    ALL DATA WILL BE DESTROYED![/error]")
        self.logger.console.print()

        if self._ask("Type 'yes' to confirm") != "yes":
            raise FatalInstallError("Installation cancelled")

        self.logger.success(f"Disk: [bold]{disk}[/bold]")

    def ask_hostname(self) -> str:
        default = self.defaults.hostname
        hostname = self._fallback(self._ask(f"Enter hostname [{default}]"), validate_hostname, default, "hostname")
        self.logger.success(f"Hostname: [bold]{hostname}[/bold]")
        return hostname

    def ask_username(self) -> str:
        default = self.defaults.username
        username = self._fallback(self._ask(f"Enter username [{default}]"), validate_username, default, "username")
        self.logger.success(f"Username: [bold]{username}[/bold]")
        return username

    def wait_for_enter(self, message: str) -> None:
        self._ask(message)
