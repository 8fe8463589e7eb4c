# geophoto/db/store.py
# 사진 저장소 어댑터: GridFS(motor) 위에 blob + metadata를 한 번에 기록
# 커넥션은 전역이 아니라 이 객체가 들고, 앱 시작/종료 시 connect()/close()

from __future__ import annotations
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional

from bson.objectid import ObjectId
from gridfs.errors import NoFile
from motor.motor_asyncio import (
    AsyncIOMotorClient,
    AsyncIOMotorDatabase,
    AsyncIOMotorGridFSBucket,
)
from pymongo.errors import ConnectionFailure

from geophoto.core.errors import StoreUnavailableError
from geophoto.db.indexes import ensure_indexes
from geophoto.db.models.schemas import PhotoDoc, PhotoMetadata

logger = logging.getLogger(__name__)


def parse_photo_id(raw: str) -> Optional[ObjectId]:
    # 예외 대신 None으로 형식 오류를 알린다
    if not isinstance(raw, str) or not ObjectId.is_valid(raw):
        return None
    return ObjectId(raw)


@dataclass
class PhotoBlob:
    content_type: str
    length: int
    chunks: AsyncIterator[bytes]


class PhotoStore(ABC):
    """blob + metadata 저장소 계약"""

    async def connect(self) -> None:
        pass

    async def close(self) -> None:
        pass

    async def ping(self) -> None:
        pass

    @abstractmethod
    async def create(self, data: bytes, metadata: PhotoDoc, filename: str) -> str:
        """bytes와 metadata를 하나의 논리적 쓰기로 저장하고 새 id 반환"""

    @abstractmethod
    async def open_read(self, photo_id: ObjectId) -> Optional[PhotoBlob]:
        """없으면 None"""

    @abstractmethod
    async def find_by_text(self, text: str) -> List[PhotoMetadata]:
        ...

    @abstractmethod
    async def find_near(self, longitude: float, latitude: float) -> List[PhotoMetadata]:
        """가까운 순으로 정렬된 목록"""


def file_doc_to_metadata(doc: Dict[str, Any]) -> PhotoMetadata:
    meta = doc.get("metadata") or {}
    return PhotoMetadata(id=str(doc["_id"]), **meta)


@contextmanager
def _translate_errors(op: str):
    try:
        yield
    except ConnectionFailure as e:
        logger.error(f"MongoDB unavailable during {op}: {e}")
        raise StoreUnavailableError("Photo store unavailable") from e


class MongoPhotoStore(PhotoStore):
    def __init__(self, uri: str, db_name: str, bucket_name: str = "photos"):
        self.uri = uri
        self.db_name = db_name
        self.bucket_name = bucket_name
        self._client: Optional[AsyncIOMotorClient] = None
        self._db: Optional[AsyncIOMotorDatabase] = None
        self._bucket: Optional[AsyncIOMotorGridFSBucket] = None

    async def connect(self) -> None:
        if self._db is not None:
            return
        client = AsyncIOMotorClient(self.uri)
        db = client[self.db_name]
        try:
            # 연결 확인 (준비 안 됐으면 예외)
            await db.command("ping")
        except Exception:
            client.close()
            raise
        self._client = client
        self._db = db
        self._bucket = AsyncIOMotorGridFSBucket(db, bucket_name=self.bucket_name)
        await ensure_indexes(self.files)
        logger.info(f"connected to {self.db_name}/{self.bucket_name}")

    async def close(self) -> None:
        if self._client:
            self._client.close()
        self._client = None
        self._db = None
        self._bucket = None

    @property
    def db(self) -> AsyncIOMotorDatabase:
        if self._db is None:
            raise StoreUnavailableError("Photo store is not connected")
        return self._db

    @property
    def bucket(self) -> AsyncIOMotorGridFSBucket:
        if self._bucket is None:
            raise StoreUnavailableError("Photo store is not connected")
        return self._bucket

    @property
    def files(self):
        return self.db[f"{self.bucket_name}.files"]

    async def ping(self) -> None:
        with _translate_errors("ping"):
            await self.db.command("ping")

    async def create(self, data: bytes, metadata: PhotoDoc, filename: str) -> str:
        # GridFS는 chunk를 모두 쓴 뒤 files 문서를 기록 → metadata만 남는 일이 없다
        with _translate_errors("create"):
            file_id = await self.bucket.upload_from_stream(
                filename,
                data,
                metadata=metadata.model_dump(),
            )
        return str(file_id)

    async def open_read(self, photo_id: ObjectId) -> Optional[PhotoBlob]:
        with _translate_errors("open_read"):
            try:
                grid_out = await self.bucket.open_download_stream(photo_id)
            except NoFile:
                return None

        meta = grid_out.metadata or {}

        async def _chunks() -> AsyncIterator[bytes]:
            while True:
                chunk = await grid_out.readchunk()
                if not chunk:
                    break
                yield chunk

        return PhotoBlob(
            content_type=meta.get("contentType", "application/octet-stream"),
            length=grid_out.length,
            chunks=_chunks(),
        )

    async def _find(self, query: Dict[str, Any], op: str, projection: Optional[Dict[str, Any]] = None, **kwargs) -> List[PhotoMetadata]:
        with _translate_errors(op):
            cursor = self.files.find(query, projection or {"metadata": 1}, **kwargs)
            docs = await cursor.to_list(length=None)
        return [file_doc_to_metadata(d) for d in docs]

    async def find_by_text(self, text: str) -> List[PhotoMetadata]:
        # text 인덱스는 대소문자 구분 없음, 순서는 textScore 기준
        score = {"$meta": "textScore"}
        return await self._find(
            {"$text": {"$search": text}},
            "find_by_text",
            projection={"metadata": 1, "score": score},
            sort=[("score", score)],
        )

    async def find_near(self, longitude: float, latitude: float) -> List[PhotoMetadata]:
        query = {
            "metadata.coordinates": {
                "$nearSphere": {
                    "$geometry": {"type": "Point", "coordinates": [longitude, latitude]},
                }
            }
        }
        return await self._find(query, "find_near")
