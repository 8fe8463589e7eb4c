# geophoto/services/sniff.py
# 매직 넘버로 이미지 형식 판별 (파일명/Content-Type은 믿지 않는다)

from __future__ import annotations
from typing import Optional

JPEG = "image/jpeg"
TIFF = "image/tiff"

SUPPORTED = frozenset({JPEG, TIFF})

# (오프셋, 시그니처, MIME)
_SIGNATURES = (
    (0, b"\xff\xd8\xff", JPEG),
    (0, b"II*\x00", TIFF),       # little-endian
    (0, b"MM\x00*", TIFF),       # big-endian
    (0, b"\x89PNG\r\n\x1a\n", "image/png"),
    (0, b"GIF87a", "image/gif"),
    (0, b"GIF89a", "image/gif"),
)

def detect_mime(data: bytes) -> Optional[str]:
    """선두 바이트로 MIME 추정. 모르면 None"""
    if not data:
        return None
    for offset, magic, mime in _SIGNATURES:
        if data[offset:offset + len(magic)] == magic:
            return mime
    # RIFF....WEBP
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return None

def is_supported(mime: Optional[str]) -> bool:
    return mime in SUPPORTED
