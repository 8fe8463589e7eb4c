# geophoto/services/query.py
# 조회 서비스: 텍스트 검색 / 근접 검색 / id로 원본 열기

from __future__ import annotations
import logging
from typing import List, Optional

from geophoto.core.errors import ClientInputError, NotFoundError
from geophoto.db.models.schemas import PhotoMetadata
from geophoto.db.store import PhotoBlob, PhotoStore, parse_photo_id

logger = logging.getLogger(__name__)


class QueryService:
    def __init__(self, store: PhotoStore):
        self.store = store

    async def search_text(self, text: str) -> List[PhotoMetadata]:
        return await self.store.find_by_text(text)

    async def find_near(self, longitude: float, latitude: float) -> List[PhotoMetadata]:
        return await self.store.find_near(longitude, latitude)

    async def search(
        self,
        text: Optional[str] = None,
        longitude: Optional[float] = None,
        latitude: Optional[float] = None,
    ) -> Optional[List[PhotoMetadata]]:
        """
        쿼리 모드 결정.
        - text와 좌표를 같이 주면 거절 (어느 쪽이 우선인지 정하지 않는다)
        - 좌표는 경도/위도 둘 다 있어야 함
        - 아무 조건도 없으면 None (placeholder 응답)
        """
        text = (text or "").strip() or None
        has_coords = longitude is not None or latitude is not None

        if text is not None and has_coords:
            raise ClientInputError("Use either text or coordinates, not both")

        if text is not None:
            return await self.search_text(text)

        if has_coords:
            if longitude is None or latitude is None:
                raise ClientInputError("Both coordinates[longitude] and coordinates[latitude] are required")
            if not -180.0 <= longitude <= 180.0 or not -90.0 <= latitude <= 90.0:
                raise ClientInputError("Coordinates out of range")
            return await self.find_near(longitude, latitude)

        return None

    async def open_photo(self, raw_id: str) -> PhotoBlob:
        photo_id = parse_photo_id(raw_id)
        if photo_id is None:
            raise ClientInputError("Invalid photo id")
        blob = await self.store.open_read(photo_id)
        if blob is None:
            logger.info(f"photo {raw_id} not found")
            raise NotFoundError("Photo not found")
        return blob
