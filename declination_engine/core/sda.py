# declination_engine/core/sda.py
"""
Semi-diurnal arcs: hour angle of rising/setting for a declination at a latitude.

cos H0 = −tan φ · tan δ. |cos H0| > 1 means the body never crosses the
horizon: circumpolar when cos H0 < −1, never rises when cos H0 > 1.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Tuple
import math

from declination_engine.core.constants import EPS


@dataclass(frozen=True)
class SemiDiurnalArc:
    sda: Optional[float]        # degrees; None when the body never crosses the horizon
    circumpolar: bool = False
    never_rises: bool = False

    @property
    def crosses_horizon(self) -> bool:
        return self.sda is not None

    @property
    def rise_hour_angle(self) -> Optional[float]:
        return None if self.sda is None else -self.sda

    @property
    def set_hour_angle(self) -> Optional[float]:
        return self.sda


def semi_diurnal_arc(latitude: float, declination: float) -> SemiDiurnalArc:
    if abs(abs(latitude) - 90.0) < EPS:
        # at the pole nothing rises or sets; sign of δ·φ decides which
        above = declination * latitude > 0.0
        return SemiDiurnalArc(None, circumpolar=above, never_rises=not above)
    cos_h0 = -math.tan(math.radians(latitude)) * math.tan(math.radians(declination))
    if cos_h0 < -1.0:
        return SemiDiurnalArc(None, circumpolar=True)
    if cos_h0 > 1.0:
        return SemiDiurnalArc(None, never_rises=True)
    return SemiDiurnalArc(math.degrees(math.acos(cos_h0)))

def is_circumpolar(latitude: float, declination: float) -> bool:
    return semi_diurnal_arc(latitude, declination).circumpolar

def never_rises(latitude: float, declination: float) -> bool:
    return semi_diurnal_arc(latitude, declination).never_rises

def rise_set_latitude_limit(declination: float) -> float:
    """Largest |latitude| at which a body of this declination still rises and sets."""
    return 90.0 - abs(declination)

def rise_set_latitude_range(declination: float) -> Tuple[float, float]:
    lim = rise_set_latitude_limit(declination)
    return -lim, lim
