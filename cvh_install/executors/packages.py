# cvh_install/executors/packages.py
import os
from dataclasses import dataclass
from typing import Iterable, List, Tuple

from cvh_install.config.models import InstallerSettings, Packages
from cvh_install.executors.target import TargetSystem
from cvh_install.state import Compositor
from cvh_install.utils.exceptions import FatalInstallError, ShellCommandError
from cvh_install.utils.executor import Executor

PACMAN_REPOSITORIES = """
[core]
Include = /etc/pacman.d/mirrorlist

[extra]
Include = /etc/pacman.d/mirrorlist
"""


@dataclass(frozen=True)
class PackageSet:
    """A named, ordered group of package names."""
    name: str
    packages: Tuple[str, ...]


def assemble_package_sets(packages: Packages, compositor: Compositor) -> List[PackageSet]:
    """The four common groups followed by the chosen compositor's group."""
    return [
        PackageSet("base", tuple(packages.base)),
        PackageSet("shell", tuple(packages.shell)),
        PackageSet("sandbox", tuple(packages.sandbox)),
        PackageSet("desktop", tuple(packages.desktop)),
        PackageSet(compositor.value, tuple(getattr(packages, compositor.value))),
    ]


def merge_package_sets(package_sets: Iterable[PackageSet]) -> List[str]:
    """Ordered union of all sets; a package keeps its first position."""
    merged: List[str] = []
    for package_set in package_sets:
        for package in package_set.packages:
            if package not in merged:
                merged.append(package)
    return merged


def render_mirrorlist(mirrors: Iterable[str]) -> str:
    lines = ["# Arch Linux mirrorlist - CVH Linux"]
    lines.extend(f"Server = {mirror}" for mirror in mirrors)
    return "\n".join(lines) + "\n"


class PackageInstaller:
    """Keyring setup, pacstrap and the package-manager files of the new system."""

    def __init__(self, executor: Executor, target: TargetSystem, settings: InstallerSettings):
        self.executor = executor
        self.logger = executor.logger
        self.target = target
        self.settings = settings

    def init_keyring(self) -> None:
        self.executor.run(description="Initializing package keyring", command=["pacman-key", "--init"])
        self.executor.run(description="Populating archlinux keys", command=["pacman-key", "--populate", "archlinux"])

    def pacstrap(self, packages: List[str]) -> None:
        """
        Installs `packages` into the mount root. pacstrap keeps the terminal,
        so its download and install progress is shown as is.
        """
        self.logger.info(f"Installing {len(packages)} packages (this may take a while)")
        try:
            self.executor.run(
                description="Installing base system with pacstrap",
                command=["pacstrap", "-K", self.target.root, *packages],
                capture_output=False,
                timeout=self.settings.install_timeout,
                check=True
            )
        except ShellCommandError as e:
            raise FatalInstallError("Package installation failed!") from e
        self.logger.success("Base system installed")

    def copy_local_packages(self) -> List[str]:
        """Copies prebuilt CVH packages from the live medium into the new root's cache."""
        pattern = os.path.join(self.settings.local_repo.source, "*.pkg.tar.zst")
        copied = self.target.copy_matching(pattern, self.settings.local_repo.target)
        if copied:
            self.logger.success(f"CVH packages copied ({len(copied)} packages)")
        else:
            self.logger.warning("CVH packages not found on ISO")
        return copied

    def write_mirrorlist(self) -> None:
        self.target.write_file("/etc/pacman.d/mirrorlist", render_mirrorlist(self.settings.mirrors))
        self.logger.success("Mirrorlist created")

    def configure_repositories(self) -> None:
        """Appends [core] and [extra] to pacman.conf unless a [core] section is already there."""
        if not self.target.exists("/etc/pacman.conf"):
            self.logger.warning("No pacman.conf in the new system, repositories not configured")
            return

        sections = [line.strip() for line in self.target.read_file("/etc/pacman.conf").splitlines()]
        if "[core]" in sections:
            self.logger.success("Repositories already configured")
            return

        self.target.write_file("/etc/pacman.conf", PACMAN_REPOSITORIES, append=True)
        self.logger.success("Repositories configured")

    def install(self, compositor: Compositor) -> List[str]:
        """
        Full base installation for the chosen compositor.
        Returns the names of the local CVH packages copied into the new root.
        """
        self.init_keyring()
        packages = merge_package_sets(assemble_package_sets(self.settings.packages, compositor))
        self.pacstrap(packages)
        copied = self.copy_local_packages()
        self.write_mirrorlist()
        self.configure_repositories()
        return copied
