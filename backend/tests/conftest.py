from __future__ import annotations
import io
import math
import re
from collections.abc import Generator
from typing import Dict, List, Optional, Tuple

import piexif
import pytest
from bson.objectid import ObjectId
from fastapi.testclient import TestClient

from geophoto.core.deps import get_store
from geophoto.db.models.schemas import PhotoDoc, PhotoMetadata
from geophoto.db.store import PhotoBlob, PhotoStore
from geophoto.main import app

# SOI + 빈 SOS + EOI: piexif.insert가 APP1을 끼워 넣을 수 있는 최소 JPEG
BARE_JPEG = b"\xff\xd8\xff\xda\x00\x02\xff\xd9"

# GPS 포인터 엔트리의 count가 손상된 77바이트 TIFF (LONG x 0x8fe50001개)
CORRUPT_COUNT_TIFF = (
    b"MM\x00*\x00\x00\x00\x08"
    + b"\x00\x01"
    + b"\x88\x25\x00\x04\x8f\xe5\x00\x01\x00\x00\x00\x1a"
    + b"\x00\x00\x00\x00"
).ljust(77, b"\x00")


def _words(value: Optional[str]) -> List[str]:
    return re.findall(r"\w+", (value or "").lower())


def great_circle_km(lon1: float, lat1: float, lon2: float, lat2: float) -> float:
    lon1, lat1, lon2, lat2 = map(math.radians, (lon1, lat1, lon2, lat2))
    a = math.sin((lat2 - lat1) / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin((lon2 - lon1) / 2) ** 2
    return 2 * 6371.0 * math.asin(math.sqrt(a))


def dms_rationals(d: int, m: int, s: int) -> Tuple[Tuple[int, int], ...]:
    return ((d, 1), (m, 1), (s, 1))


def gps_ifd(lat=(37, 46, 30), lat_ref=b"N", lon=(122, 25, 9), lon_ref=b"W") -> Dict[int, object]:
    return {
        piexif.GPSIFD.GPSLatitudeRef: lat_ref,
        piexif.GPSIFD.GPSLatitude: dms_rationals(*lat),
        piexif.GPSIFD.GPSLongitudeRef: lon_ref,
        piexif.GPSIFD.GPSLongitude: dms_rationals(*lon),
    }


def make_jpeg(gps: Optional[Dict[int, object]] = None) -> bytes:
    if gps is None:
        return BARE_JPEG
    out = io.BytesIO()
    piexif.insert(piexif.dump({"GPS": gps}), BARE_JPEG, out)
    return out.getvalue()


def make_tiff(gps: Dict[int, object]) -> bytes:
    # piexif.dump 결과에서 "Exif\0\0"를 떼면 big-endian TIFF 헤더로 시작한다
    return piexif.dump({"GPS": gps})[6:]


class InMemoryPhotoStore(PhotoStore):
    def __init__(self):
        self.blobs: Dict[ObjectId, Tuple[bytes, PhotoDoc, str]] = {}
        self.create_calls = 0

    async def create(self, data: bytes, metadata: PhotoDoc, filename: str) -> str:
        self.create_calls += 1
        oid = ObjectId()
        self.blobs[oid] = (data, metadata, filename)
        return str(oid)

    async def open_read(self, photo_id: ObjectId) -> Optional[PhotoBlob]:
        if photo_id not in self.blobs:
            return None
        data, metadata, _ = self.blobs[photo_id]

        async def _chunks():
            for i in range(0, len(data), 4):
                yield data[i:i + 4]

        return PhotoBlob(content_type=metadata.contentType, length=len(data), chunks=_chunks())

    def _all(self) -> List[PhotoMetadata]:
        return [PhotoMetadata(id=str(oid), **meta.model_dump()) for oid, (_, meta, _) in self.blobs.items()]

    async def find_by_text(self, text: str) -> List[PhotoMetadata]:
        # Mongo $text처럼 단어 단위, 대소문자 무시, 검색어 중 하나라도 맞으면 포함.
        # 형태소 stemming은 흉내 내지 않는다 (실제 $text 쿼리 구성은 test_store.py에서 확인)
        terms = set(_words(text))
        return [
            m for m in self._all()
            if terms & set(_words(m.name) + _words(m.description))
        ]

    async def find_near(self, longitude: float, latitude: float) -> List[PhotoMetadata]:
        return sorted(
            self._all(),
            key=lambda m: great_circle_km(longitude, latitude, m.coordinates.longitude, m.coordinates.latitude),
        )


@pytest.fixture()
def store() -> InMemoryPhotoStore:
    return InMemoryPhotoStore()


@pytest.fixture()
def client(store) -> Generator[TestClient, None, None]:
    app.dependency_overrides[get_store] = lambda: store
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
