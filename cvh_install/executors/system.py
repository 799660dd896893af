# cvh_install/executors/system.py
import os
from typing import List, Tuple

from cvh_install.prompts import parse_disk_listing
from cvh_install.state import BootMode
from cvh_install.utils.exceptions import CommandNotFoundError, FatalInstallError
from cvh_install.utils.executor import Executor

EFIVARS_PATH = "/sys/firmware/efi/efivars"


class SystemProbe:
    """
    Read-only checks against the live system: privileges, firmware and disks.
    The one exception is loadkeys, which only changes the live console.
    """

    def __init__(self, executor: Executor, efivars_path: str = EFIVARS_PATH):
        self.executor = executor
        self.logger = executor.logger
        self.efivars_path = efivars_path

    def require_root(self) -> None:
        if os.geteuid() != 0:
            raise FatalInstallError("This installer must be run as root")

    def detect_boot_mode(self) -> BootMode:
        """UEFI when the firmware exposes efivars, legacy BIOS otherwise."""
        if os.path.isdir(self.efivars_path):
            self.logger.success("Boot mode: [bold]UEFI[/bold]")
            return BootMode.UEFI

        self.logger.console.print("  Boot mode: [warning]BIOS/Legacy[/warning]")
        self.logger.info("Boot mode: BIOS/Legacy", extra={"rendered": True})
        return BootMode.BIOS

    def list_disks(self) -> List[Tuple[str, str, str]]:
        """Whole disks as (name, size, model) rows."""
        _, stdout, _ = self.executor.query(["lsblk", "-dno", "NAME,SIZE,MODEL"], check=True)
        disks = parse_disk_listing(stdout)
        self.logger.debug(f"Disks found: {[name for name, _, _ in disks]}")
        return disks

    def load_keymap(self, keymap: str) -> None:
        try:
            self.executor.run(
                description=f"Loading keymap {keymap} on the live console",
                command=["loadkeys", keymap],
                check=False,
            )
        except CommandNotFoundError:
            self.logger.warning("loadkeys is not available, keeping the current console layout")
