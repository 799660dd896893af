# cvh_install/state.py

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class BootMode(str, Enum):
    UEFI = "uefi"
    BIOS = "bios"


class Compositor(str, Enum):
    NIRI = "niri"
    HYPRLAND = "hyprland"

    @property
    def display_name(self) -> str:
        return "Niri" if self is Compositor.NIRI else "Hyprland"


class InstallationState(BaseModel):
    """
    The record threaded through every installer step.

    Steps fill it in as the run progresses; a field stays None until the step
    that owns it has completed.
    """
    model_config = ConfigDict(validate_assignment=True)

    boot_mode: Optional[BootMode] = None
    disk: Optional[str] = None
    efi_partition: Optional[str] = None
    root_partition: Optional[str] = None
    keymap: Optional[str] = None
    timezone: Optional[str] = None
    locale: str = "en_US.UTF-8"
    compositor: Optional[Compositor] = None
    hostname: Optional[str] = None
    username: Optional[str] = None

    def require(self, *fields: str) -> None:
        """Raises ValueError naming every listed field that is still unset."""
        missing = [name for name in fields if getattr(self, name) is None]
        if missing:
            raise ValueError(f"Installation state is missing: {', '.join(missing)}")
