# geophoto/services/ingest.py
# 업로드 검증 파이프라인: 형식 판별 → GPS 추출 → 좌표 정규화 → 저장
# 첫 실패 단계에서 바로 거절, 거절되면 저장소 쓰기는 시도하지 않는다

from __future__ import annotations
import logging
from typing import Optional

from geophoto.core.errors import ClientInputError, InvalidCoordinateError, PayloadTooLargeError
from geophoto.db.models.schemas import Coordinates, PhotoDoc
from geophoto.db.store import PhotoStore
from geophoto.services.coords import normalize_latitude, normalize_longitude
from geophoto.services.exif_gps import extract_gps
from geophoto.services.sniff import detect_mime, is_supported

logger = logging.getLogger(__name__)

NO_FILE = "No file"
TOO_LARGE = "File too large"
NOT_JPEG = "File is not JPEG"
NO_GEOTAG = "File has no geolocation tag"
BAD_GEOTAG = "File has invalid geolocation tag"


def _clean(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    return value or None


class IngestionPipeline:
    def __init__(self, store: PhotoStore, max_bytes: int, default_name: str = "photo"):
        self.store = store
        self.max_bytes = max_bytes
        self.default_name = default_name

    def _reject(self, error: ClientInputError, filename: Optional[str]) -> ClientInputError:
        logger.info(f"upload rejected ({error.reason}): filename={filename!r}")
        return error

    def build_metadata(
        self,
        data: bytes,
        name: Optional[str] = None,
        description: Optional[str] = None,
        filename: Optional[str] = None,
    ) -> PhotoDoc:
        """검증만 수행하고 저장할 metadata를 만든다 (저장소 접근 없음)"""
        if not data:
            raise self._reject(ClientInputError(NO_FILE), filename)
        if len(data) > self.max_bytes:
            raise self._reject(PayloadTooLargeError(TOO_LARGE), filename)

        mime = detect_mime(data)
        if not is_supported(mime):
            logger.debug(f"detected type {mime!r}")
            raise self._reject(ClientInputError(NOT_JPEG), filename)

        gps = extract_gps(data)
        if gps is None:
            raise self._reject(ClientInputError(NO_GEOTAG), filename)

        try:
            coordinates = Coordinates(
                latitude=normalize_latitude(gps.latitude_dms, gps.latitude_ref),
                longitude=normalize_longitude(gps.longitude_dms, gps.longitude_ref),
            )
        except InvalidCoordinateError as e:
            logger.info(f"invalid GPS record {gps!r}: {e}")
            raise self._reject(ClientInputError(BAD_GEOTAG), filename)

        return PhotoDoc(
            contentType=mime,
            coordinates=coordinates,
            name=_clean(name) or _clean(filename) or self.default_name,
            description=_clean(description),
        )

    async def ingest(
        self,
        data: bytes,
        name: Optional[str] = None,
        description: Optional[str] = None,
        filename: Optional[str] = None,
    ) -> str:
        metadata = self.build_metadata(data, name=name, description=description, filename=filename)
        photo_id = await self.store.create(data, metadata, _clean(filename) or self.default_name)
        logger.info(
            f"stored photo {photo_id} ({metadata.contentType}, {len(data)} bytes) "
            f"at lat={metadata.coordinates.latitude:.6f} lon={metadata.coordinates.longitude:.6f}"
        )
        return photo_id
