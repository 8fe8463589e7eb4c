# geophoto/services/coords.py
# DMS(도/분/초) + 반구 기호 → 부호 있는 십진 도(decimal degrees)
# 위도 부호는 N/S, 경도 부호는 E/W 로만 결정한다

from __future__ import annotations
from typing import Dict, Sequence

from geophoto.core.errors import InvalidCoordinateError

# 기호별 부호
_SIGN: Dict[str, int] = {"N": 1, "S": -1, "E": 1, "W": -1}

LATITUDE_REFS = ("N", "S")
LONGITUDE_REFS = ("E", "W")


def to_decimal_degrees(degrees: float, minutes: float, seconds: float, ref: str) -> float:
    """decimal = d + m/60 + s/3600, S/W면 음수"""
    ref = (ref or "").strip().upper()
    if ref not in _SIGN:
        raise InvalidCoordinateError(f"unknown hemisphere reference: {ref!r}")
    if degrees < 0 or minutes < 0 or seconds < 0:
        raise InvalidCoordinateError("DMS components must be non-negative")
    value = degrees + minutes / 60.0 + seconds / 3600.0
    return _SIGN[ref] * value


def _normalize_axis(dms: Sequence[float], ref: str, allowed: Sequence[str], limit: float) -> float:
    ref = (ref or "").strip().upper()
    if ref not in allowed:
        raise InvalidCoordinateError(f"reference {ref!r} not in {'/'.join(allowed)}")
    if len(dms) != 3:
        raise InvalidCoordinateError("DMS value must have 3 components")
    value = to_decimal_degrees(dms[0], dms[1], dms[2], ref)
    if abs(value) > limit:
        raise InvalidCoordinateError(f"{value} out of range ±{limit}")
    return value


def normalize_latitude(dms: Sequence[float], ref: str) -> float:
    return _normalize_axis(dms, ref, LATITUDE_REFS, 90.0)


def normalize_longitude(dms: Sequence[float], ref: str) -> float:
    return _normalize_axis(dms, ref, LONGITUDE_REFS, 180.0)
