# cvh_install/config/models.py

import re

import tomlkit
import typer
from pydantic import BaseModel, Field, ValidationError, ValidationInfo, field_validator
from typing import List, Optional
from pathlib import Path

DEFAULT_CONFIG_PATH = Path("/etc/cvh-install/config.toml")

HOSTNAME_PATTERN = re.compile(r"^[a-zA-Z0-9]([a-zA-Z0-9-]*[a-zA-Z0-9])?$")
USERNAME_PATTERN = re.compile(r"^[a-z_][a-z0-9_-]*$")
KEYMAP_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")
TIMEZONE_PATTERN = re.compile(r"^[A-Za-z_]+(/[A-Za-z0-9_+-]+)*$")

# --- 1. Sub-Models ---

class Network(BaseModel):
    """Connectivity probe and the one-shot reconnection pass."""
    probe_host: str = "archlinux.org"
    probe_timeout: int = Field(5, ge=1, description="Seconds ping waits for a reply.")
    service_wait: float = Field(3.0, ge=0, description="Seconds to wait after starting NetworkManager.")
    dhcp_wait: float = Field(5.0, ge=0, description="Seconds to wait for DHCP leases.")


class Layout(BaseModel):
    """Partition layout constants (MiB offsets)."""
    start_mib: int = Field(1, ge=1)
    esp_end_mib: int = Field(513, ge=2, description="End of the EFI system partition.")
    esp_mount: str = "/boot/efi"


class Packages(BaseModel):
    """Package groups installed by pacstrap. Exactly one compositor group is used."""
    base: List[str] = [
        "base", "base-devel", "linux", "linux-firmware",
        "grub", "efibootmgr", "dosfstools", "e2fsprogs",
        "networkmanager", "dhcpcd", "sudo",
    ]
    shell: List[str] = [
        "zsh", "zsh-autosuggestions", "zsh-syntax-highlighting",
        "git", "curl", "wget", "vim", "nano", "htop", "fastfetch", "man-db",
    ]
    sandbox: List[str] = ["bubblewrap", "flatpak", "xdg-desktop-portal"]
    desktop: List[str] = [
        "ly", "foot", "waybar", "mako", "xorg-xwayland",
        "pipewire", "pipewire-pulse", "wireplumber",
        "ttf-jetbrains-mono-nerd", "noto-fonts",
    ]
    niri: List[str] = ["niri", "xwayland-satellite", "xdg-desktop-portal-gnome", "swaybg"]
    hyprland: List[str] = ["hyprland", "xdg-desktop-portal-hyprland", "hyprpaper"]


class Identity(BaseModel):
    """Fallback values used when free-text input is empty or invalid."""
    hostname: str = "cvh-linux"
    username: str = "cvh"
    keymap: str = "us"
    timezone: str = "Asia/Jerusalem"
    locale: str = "en_US.UTF-8"
    user_groups: List[str] = ["wheel", "audio", "video", "input", "storage"]
    shell: str = "/bin/zsh"

    @field_validator("hostname", "username", "keymap", "timezone")
    @classmethod
    def match_input_pattern(cls, value: str, info: ValidationInfo) -> str:
        pattern = {
            "hostname": HOSTNAME_PATTERN,
            "username": USERNAME_PATTERN,
            "keymap": KEYMAP_PATTERN,
            "timezone": TIMEZONE_PATTERN,
        }[info.field_name]
        if not pattern.fullmatch(value):
            raise ValueError(f"'{value}' is not a valid {info.field_name}")
        return value


class LocalRepo(BaseModel):
    """Prebuilt CVH packages carried on the live medium."""
    source: str = "/opt/cvh-repo"
    target: str = "/var/cache/pacman/cvh-packages"


# --- 2. Top-Level Root Model ---

class InstallerSettings(BaseModel):
    """Settings for one installer run. Every field has a default, so no file is required."""

    mount_root: str = "/mnt"
    log_directory: str = "/var/log/cvh-install"
    command_timeout: Optional[float] = Field(600.0, gt=0)
    install_timeout: Optional[float] = Field(3600.0, gt=0, description="Timeout for pacstrap and the interactive passwd prompts.")
    password_attempts: int = Field(3, ge=1)
    mirrors: List[str] = [
        "https://mirror.isoc.org.il/pub/archlinux/$repo/os/$arch",
        "https://archlinux.mivzakim.net/$repo/os/$arch",
        "https://geo.mirror.pkgbuild.com/$repo/os/$arch",
        "https://mirrors.kernel.org/archlinux/$repo/os/$arch",
        "https://mirror.rackspace.com/archlinux/$repo/os/$arch",
    ]

    network: Network = Field(default_factory=Network)
    layout: Layout = Field(default_factory=Layout)
    packages: Packages = Field(default_factory=Packages)
    identity: Identity = Field(default_factory=Identity)
    local_repo: LocalRepo = Field(default_factory=LocalRepo)

    @classmethod
    def load_config_from_file(cls, path: Path) -> 'InstallerSettings':
        """Loads and validates a TOML file against the Pydantic schema."""
        try:
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ValueError(f"Error reading configuration file: {e}")

        try:
            data = tomlkit.parse(content).unwrap()
        except Exception as e:
            raise ValueError(f"Invalid TOML format in file: {e}")

        try:
            return cls(**data)
        except ValidationError as e:
            raise ValueError(f"Invalid configuration in {path}: {e}")

    @classmethod
    def resolve(cls, path: Optional[Path] = None) -> 'InstallerSettings':
        """
        Returns settings from an explicit path, from the system-wide file
        when it exists, or the built-in defaults.
        """
        if path is not None:
            return cls.load_config_from_file(path)
        if DEFAULT_CONFIG_PATH.is_file():
            return cls.load_config_from_file(DEFAULT_CONFIG_PATH)
        return cls()

    def display_summary(self) -> str:
        """Short description of the run settings for the log."""
        s = typer.style("\nINSTALLER SETTINGS", fg=typer.colors.BLUE, bold=True) + "\n"
        s += "----------------------------------------\n"
        s += f"  Target root:        {self.mount_root}\n"
        s += f"  Log directory:      {self.log_directory}\n"
        s += f"  Network probe:      {self.network.probe_host}\n"
        s += f"  ESP:                {self.layout.start_mib}MiB - {self.layout.esp_end_mib}MiB ({self.layout.esp_mount})\n"
        s += f"  Mirrors:            {len(self.mirrors)}\n"
        return s
