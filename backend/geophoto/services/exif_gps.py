# geophoto/services/exif_gps.py
# JPEG/TIFF 바이트에서 EXIF GPS 추출 (piexif)
# - EXIF 블록이 없으면 예외 없이 None
# - 4개 필드 존재 여부는 값이 아니라 키로 확인 (0도/0분은 정상 값)

from __future__ import annotations
import logging
import struct
from typing import Any, Optional, Tuple

import piexif

from geophoto.db.models.schemas import RawGPSRecord

logger = logging.getLogger(__name__)

REQUIRED_TAGS = (
    piexif.GPSIFD.GPSLatitudeRef,
    piexif.GPSIFD.GPSLatitude,
    piexif.GPSIFD.GPSLongitudeRef,
    piexif.GPSIFD.GPSLongitude,
)


# TIFF 타입별 바이트 크기 (BYTE, ASCII, SHORT, LONG, RATIONAL, SBYTE, UNDEFINED, SSHORT, SLONG, SRATIONAL, FLOAT, DOUBLE)
_TYPE_SIZES = {1: 1, 2: 1, 3: 2, 4: 4, 5: 8, 6: 1, 7: 1, 8: 2, 9: 4, 10: 8, 11: 4, 12: 8}

_POINTER_TAGS = (
    piexif.ImageIFD.ExifTag,
    piexif.ImageIFD.GPSTag,
    piexif.ExifIFD.InteroperabilityTag,
)


class MalformedGPSValue(ValueError):
    pass


def _rational_to_float(value: Any) -> float:
    try:
        num, den = value
    except (TypeError, ValueError):
        raise MalformedGPSValue(f"not a rational: {value!r}")
    if den == 0:
        raise MalformedGPSValue("zero denominator")
    return float(num) / float(den)


def _dms(value: Any) -> Tuple[float, float, float]:
    if not isinstance(value, (tuple, list)) or len(value) != 3:
        raise MalformedGPSValue(f"DMS must be 3 rationals: {value!r}")
    d, m, s = (_rational_to_float(v) for v in value)
    return d, m, s


def _ref(value: Any) -> str:
    if isinstance(value, bytes):
        value = value.decode("ascii", errors="ignore")
    return str(value).strip("\x00 ").upper()


def _tiff_payload(data: bytes) -> Optional[bytes]:
    # piexif와 같은 규칙으로 TIFF 구조 부분을 찾는다 (JPEG는 첫 Exif APP1)
    if data[:2] == b"\xff\xd8":
        head = 2
        while head + 4 <= len(data):
            marker = data[head:head + 2]
            if marker == b"\xff\xda":
                return None
            length = struct.unpack(">H", data[head + 2:head + 4])[0]
            segment = data[head:head + 2 + length]
            if marker == b"\xff\xe1" and segment[4:10] == b"Exif\x00\x00":
                return segment[10:]
            head += 2 + length
        return None
    if data[:2] in (b"II", b"MM"):
        return data
    return None


def ifds_within_bounds(tiff: bytes) -> bool:
    """
    piexif가 읽을 IFD(0th, Exif, GPS, Interop, 1st)의 엔트리가 모두 버퍼 안에 있는지 확인.
    piexif는 count 필드를 그대로 믿고 할당하므로, 손상된 count 하나로 수 GB를 잡을 수 있다.
    """
    if len(tiff) < 8 or tiff[:2] not in (b"II", b"MM"):
        return False
    endian = "<" if tiff[:2] == b"II" else ">"
    size = len(tiff)

    first = struct.unpack(endian + "L", tiff[4:8])[0]
    pending = [(first, True)]
    visited = set()
    while pending:
        offset, is_zeroth = pending.pop()
        if offset in visited:
            continue
        visited.add(offset)
        if offset + 2 > size:
            return False
        count = struct.unpack(endian + "H", tiff[offset:offset + 2])[0]
        entries_end = offset + 2 + 12 * count
        if entries_end > size:
            return False

        for i in range(count):
            entry = offset + 2 + 12 * i
            tag, kind, n = struct.unpack(endian + "HHL", tiff[entry:entry + 8])
            value = tiff[entry + 8:entry + 12]
            width = _TYPE_SIZES.get(kind)
            if width is None:
                continue
            if width * n > 4:
                pointer = struct.unpack(endian + "L", value)[0]
                if pointer + width * n > size:
                    return False
            if tag in _POINTER_TAGS:
                if kind == 4:
                    pending.append((struct.unpack(endian + "L", value)[0], False))
                elif kind == 3:
                    pending.append((struct.unpack(endian + "H", value[:2])[0], False))
                else:
                    return False

        if is_zeroth:
            # 다음 IFD(1st, 썸네일) 포인터
            if entries_end + 4 > size:
                return False
            next_ifd = struct.unpack(endian + "L", tiff[entries_end:entries_end + 4])[0]
            if next_ifd:
                pending.append((next_ifd, False))
    return True


def load_gps_ifd(data: bytes) -> Optional[dict]:
    """GPS IFD dict 반환. EXIF 블록 자체가 없거나 GPS 포인터가 없으면 None"""
    try:
        tiff = _tiff_payload(data)
    except struct.error as e:
        logger.warning(f"Broken JPEG segments in upload: {e}")
        return None
    if tiff is None:
        return None
    if not ifds_within_bounds(tiff):
        logger.warning("EXIF IFD entries point outside the upload; ignoring EXIF block")
        return None

    try:
        exif = piexif.load(data)
    except (ValueError, struct.error, IndexError, KeyError) as e:
        logger.warning(f"Failed to load EXIF from upload: {e}")
        return None
    gps = exif.get("GPS")
    return gps or None


def extract_gps(data: bytes) -> Optional[RawGPSRecord]:
    gps = load_gps_ifd(data)
    if gps is None:
        return None

    missing = [tag for tag in REQUIRED_TAGS if tag not in gps]
    if missing:
        logger.info(f"GPS IFD missing tags: {[piexif.TAGS['GPS'][t]['name'] for t in missing]}")
        return None

    try:
        return RawGPSRecord(
            latitude_dms=_dms(gps[piexif.GPSIFD.GPSLatitude]),
            latitude_ref=_ref(gps[piexif.GPSIFD.GPSLatitudeRef]),
            longitude_dms=_dms(gps[piexif.GPSIFD.GPSLongitude]),
            longitude_ref=_ref(gps[piexif.GPSIFD.GPSLongitudeRef]),
        )
    except MalformedGPSValue as e:
        logger.warning(f"Malformed GPS value: {e}")
        return None
