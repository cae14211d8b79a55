"""Flash mode cycling and button-state projection.

Both functions are pure so any UI layer can call them with whatever the camera
reports as supported.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional


class FlashMode(Enum):
    OFF = "off"
    AUTO = "auto"
    ON = "on"


FLASH_ICONS = {
    FlashMode.OFF: "flash_off",
    FlashMode.AUTO: "flash_auto",
    FlashMode.ON: "flash_on",
}

# current -> preferred next modes, in order
_CYCLE = {
    FlashMode.OFF: (FlashMode.AUTO, FlashMode.ON),
    FlashMode.AUTO: (FlashMode.ON, FlashMode.OFF),
    FlashMode.ON: (FlashMode.OFF, FlashMode.AUTO),
}


@dataclass(frozen=True)
class FlashButtonState:
    visible: bool
    icon: Optional[str] = None


def to_flash_modes(values: Optional[Iterable]) -> list:
    """Convert reported mode names to FlashMode, skipping modes we don't cycle through."""
    out = []
    for v in values or []:
        if isinstance(v, FlashMode):
            out.append(v)
            continue
        try:
            out.append(FlashMode(str(v).lower()))
        except ValueError:
            continue
    return out


def next_flash_mode(current: Optional[FlashMode], supported: Optional[Iterable]) -> Optional[FlashMode]:
    """Off -> Auto -> On -> Off, skipping modes the hardware does not support."""
    modes = to_flash_modes(supported)
    if not modes or current is None:
        return current
    for candidate in _CYCLE.get(current, ()):
        if candidate in modes:
            return candidate
    return current


def flash_button_state(supported: Optional[Iterable], current: Optional[FlashMode]) -> FlashButtonState:
    if not to_flash_modes(supported):
        return FlashButtonState(visible=False)
    return FlashButtonState(visible=True, icon=FLASH_ICONS.get(current))


def camera_switch_visible(camera_count: int) -> bool:
    return camera_count > 1
