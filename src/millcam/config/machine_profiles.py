"""Machine limit presets used when validating programs.

Travel limits are in millimetres, relative to the work offset.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ..gcode.validate import MachineLimits


@dataclass
class MachineProfile:
    """Specification for a class of milling machine."""

    name: str
    x_travel: float   # mm
    y_travel: float
    z_travel: float
    limits: MachineLimits

    def __str__(self) -> str:
        lim = self.limits
        return (
            f"{self.name}  "
            f"X={self.x_travel} Y={self.y_travel} Z={self.z_travel} mm  "
            f"{lim.min_spindle_speed}-{lim.max_spindle_speed} RPM  "
            f"{lim.max_feed} mm/min"
        )


class MachineModel(Enum):
    GENERIC = "generic"
    BENCHTOP = "benchtop"
    VMC_MEDIUM = "vmc-medium"
    VMC_LARGE = "vmc-large"


_PROFILES: dict[MachineModel, MachineProfile] = {
    MachineModel.GENERIC: MachineProfile(
        name="Generic mill",
        x_travel=1000.0,
        y_travel=1000.0,
        z_travel=500.0,
        limits=MachineLimits(),
    ),
    MachineModel.BENCHTOP: MachineProfile(
        name="Benchtop mill",
        x_travel=250.0,
        y_travel=160.0,
        z_travel=250.0,
        limits=MachineLimits(
            x_min=-125.0, x_max=125.0,
            y_min=-80.0, y_max=80.0,
            z_min=-250.0, z_max=130.0,
            max_feed=2800.0,
            max_spindle_speed=10000,
            min_spindle_speed=100,
            rapid_rate=3800.0,
        ),
    ),
    MachineModel.VMC_MEDIUM: MachineProfile(
        name="Vertical machining center (medium)",
        x_travel=760.0,
        y_travel=410.0,
        z_travel=510.0,
        limits=MachineLimits(
            x_min=-380.0, x_max=380.0,
            y_min=-205.0, y_max=205.0,
            z_min=-510.0, z_max=150.0,
            max_feed=12000.0,
            max_spindle_speed=12000,
            min_spindle_speed=50,
            rapid_rate=24000.0,
        ),
    ),
    MachineModel.VMC_LARGE: MachineProfile(
        name="Vertical machining center (large)",
        x_travel=1270.0,
        y_travel=660.0,
        z_travel=635.0,
        limits=MachineLimits(
            x_min=-635.0, x_max=635.0,
            y_min=-330.0, y_max=330.0,
            z_min=-635.0, z_max=200.0,
            max_feed=15000.0,
            max_spindle_speed=8100,
            min_spindle_speed=30,
            rapid_rate=30000.0,
        ),
    ),
}


def get_profile(model: MachineModel) -> MachineProfile:
    return _PROFILES[model]


def list_profiles() -> list[MachineProfile]:
    return list(_PROFILES.values())
