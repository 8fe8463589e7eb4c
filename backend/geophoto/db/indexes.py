# geophoto/db/indexes.py
# photos.files 인덱스 보장: store.connect()에서 한 번 await로 호출한다.
from __future__ import annotations
from typing import Any, Dict, List, Tuple

from pymongo import GEOSPHERE, TEXT

TEXT_INDEX = "photo_text"
GEO_INDEX = "photo_coordinates"

TEXT_KEYS: List[Tuple[str, Any]] = [("metadata.name", TEXT), ("metadata.description", TEXT)]
GEO_KEYS: List[Tuple[str, Any]] = [("metadata.coordinates", GEOSPHERE)]


async def ensure_indexes(files) -> None:
    """
    텍스트 검색/근접 검색용 인덱스를 안전하게 보장한다.
    - 이미 있으면 재생성하지 않음
    - 같은 이름인데 key 스펙이 다르면 드롭 후 재생성
    """
    # Motor는 index_information() 가 async
    existing: Dict[str, Dict[str, Any]] = await files.index_information()

    async def ensure(name: str, keys: List[Tuple[str, Any]], index_kind: str) -> None:
        if name in existing:
            idx = existing[name]
            # text 인덱스는 key가 _fts/_ftsx로 저장되므로 타입 문자열만 비교
            if any(kind == index_kind for _, kind in idx.get("key", [])):
                return
            await files.drop_index(name)
        await files.create_index(keys, name=name)

    await ensure(TEXT_INDEX, TEXT_KEYS, "text")
    await ensure(GEO_INDEX, GEO_KEYS, "2dsphere")
