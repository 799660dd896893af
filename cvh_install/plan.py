# cvh_install/plan.py

import posixpath
from typing import List, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from cvh_install import templates
from cvh_install.config.models import InstallerSettings
from cvh_install.state import BootMode, Compositor, InstallationState


class WriteFile(BaseModel):
    """Write (or append to) a file at an absolute path inside the new system."""
    model_config = ConfigDict(frozen=True)

    path: str
    content: str
    mode: Optional[int] = None
    append: bool = False


class RunInChroot(BaseModel):
    """Run a command inside the new system through arch-chroot."""
    model_config = ConfigDict(frozen=True)

    description: str
    argv: Tuple[str, ...]


PlanAction = Union[WriteFile, RunInChroot]


class ConfigurationPlan(BaseModel):
    """Ordered configuration actions for the new system. Pure data until applied."""
    actions: List[PlanAction] = Field(default_factory=list)

    def write(self, path: str, content: str, mode: Optional[int] = None, append: bool = False) -> None:
        self.actions.append(WriteFile(path=path, content=content, mode=mode, append=append))

    def run(self, description: str, *argv: str) -> None:
        self.actions.append(RunInChroot(description=description, argv=argv))

    def files(self) -> List[WriteFile]:
        return [action for action in self.actions if isinstance(action, WriteFile)]

    def commands(self) -> List[RunInChroot]:
        return [action for action in self.actions if isinstance(action, RunInChroot)]

    def file_paths(self) -> List[str]:
        """Distinct target paths, in first-written order."""
        paths: List[str] = []
        for action in self.files():
            if action.path not in paths:
                paths.append(action.path)
        return paths


def compositor_config_path(compositor: Compositor, username: str) -> str:
    if compositor is Compositor.NIRI:
        return f"/home/{username}/.config/niri/config.kdl"
    return f"/home/{username}/.config/hypr/hyprland.conf"


def session_path(compositor: Compositor) -> str:
    return f"/usr/share/wayland-sessions/cvh-{compositor.value}.desktop"


def build_plan(state: InstallationState, settings: InstallerSettings,
               local_packages: Sequence[str] = ()) -> ConfigurationPlan:
    """
    Builds the configuration of the new system from the collected state.

    The compositor choice is the only branch: the session file and the
    compositor config exist for the chosen compositor alone. Files under the
    user's home are written after useradd so that -m still creates the home.
    """
    state.require("boot_mode", "disk", "keymap", "timezone", "compositor", "hostname", "username")

    identity = settings.identity
    username = state.username
    home = f"/home/{username}"
    plan = ConfigurationPlan()

    # Locale and console
    plan.write("/etc/locale.gen", templates.locale_gen_entry(state.locale), append=True)
    plan.run("Generating locales", "locale-gen")
    plan.write("/etc/locale.conf", templates.locale_conf(state.locale))
    plan.write("/etc/vconsole.conf", templates.vconsole_conf(state.keymap))

    # Time
    plan.run(f"Setting timezone to {state.timezone}",
             "ln", "-sf", f"/usr/share/zoneinfo/{state.timezone}", "/etc/localtime")
    plan.run("Syncing hardware clock", "hwclock", "--systohc")

    # Network identity
    plan.write("/etc/hostname", templates.hostname_file(state.hostname))
    plan.write("/etc/hosts", templates.hosts_file(state.hostname))

    # Display manager and services
    plan.write("/etc/ly/config.ini", templates.ly_config())
    for service in ("NetworkManager", "ly", "systemd-timesyncd"):
        plan.run(f"Enabling {service}", "systemctl", "enable", service)

    # User
    plan.write("/etc/skel/.zshrc", templates.zshrc(state.compositor))
    plan.run(f"Creating user {username}",
             "useradd", "-m", "-G", ",".join(identity.user_groups), "-s", identity.shell, username)
    plan.write("/etc/sudoers.d/10-wheel", templates.sudoers_wheel(), mode=0o440)
    plan.write(f"{home}/.zshrc", templates.zshrc(state.compositor))

    # Desktop session
    plan.write(session_path(state.compositor), templates.session_desktop(state.compositor))
    if state.compositor is Compositor.NIRI:
        plan.write(compositor_config_path(state.compositor, username), templates.niri_config(state.keymap))
    else:
        plan.write(compositor_config_path(state.compositor, username), templates.hyprland_config(state.keymap))

    # Branding
    plan.write("/etc/os-release", templates.os_release())
    plan.write("/etc/issue", templates.issue())

    if local_packages:
        cache = settings.local_repo.target
        plan.run("Installing CVH packages", "pacman", "-U", "--noconfirm",
                 *[posixpath.join(cache, name) for name in local_packages])

    plan.run(f"Fixing ownership of {home}", "chown", "-R", f"{username}:{username}", home)

    # Bootloader
    if state.boot_mode is BootMode.UEFI:
        plan.run("Installing GRUB (UEFI)", "grub-install", "--target=x86_64-efi",
                 f"--efi-directory={settings.layout.esp_mount}", "--bootloader-id=CVH")
    else:
        plan.run("Installing GRUB (BIOS)", "grub-install", "--target=i386-pc", state.disk)
    plan.run("Generating GRUB configuration", "grub-mkconfig", "-o", "/boot/grub/grub.cfg")

    return plan
