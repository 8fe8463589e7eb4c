# geophoto/api/routes_photo.py
# 사진 업로드/조회/검색 라우터

from __future__ import annotations
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile
from fastapi.responses import StreamingResponse

from geophoto.core.deps import get_ingestion_pipeline, get_query_service
from geophoto.core.errors import PayloadTooLargeError
from geophoto.services.ingest import TOO_LARGE, IngestionPipeline
from geophoto.services.query import QueryService

router = APIRouter(tags=["photo"])

READ_CHUNK = 64 * 1024


async def read_upload(photo: UploadFile, limit: int) -> bytes:
    # 한도를 넘는 순간 중단: 전체를 메모리에 올리지 않는다
    buf = bytearray()
    while True:
        chunk = await photo.read(READ_CHUNK)
        if not chunk:
            break
        buf.extend(chunk)
        if len(buf) > limit:
            raise PayloadTooLargeError(TOO_LARGE)
    return bytes(buf)


@router.get("/")
async def search_photos(
    text: Optional[str] = Query(None),
    longitude: Optional[float] = Query(None, alias="coordinates[longitude]"),
    latitude: Optional[float] = Query(None, alias="coordinates[latitude]"),
    service: QueryService = Depends(get_query_service),
):
    """
    - ?text=... → 이름/설명 텍스트 검색
    - ?coordinates[longitude]=..&coordinates[latitude]=.. → 가까운 순
    - 조건 없음 → 상태 응답
    """
    results = await service.search(text=text, longitude=longitude, latitude=latitude)
    if results is None:
        return {"status": "ok"}
    return results


@router.post("/", status_code=201)
async def upload_photo(
    photo: Optional[UploadFile] = File(None),
    name: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    pipeline: IngestionPipeline = Depends(get_ingestion_pipeline),
):
    """사진 업로드: 성공 시 201 빈 응답"""
    data = b""
    filename = None
    if photo is not None:
        filename = photo.filename
        data = await read_upload(photo, pipeline.max_bytes)

    await pipeline.ingest(data, name=name, description=description, filename=filename)
    return Response(status_code=201)


@router.get("/{photo_id}")
async def get_photo(photo_id: str, service: QueryService = Depends(get_query_service)):
    """저장된 원본을 content type 그대로 스트리밍"""
    blob = await service.open_photo(photo_id)
    return StreamingResponse(
        blob.chunks,
        media_type=blob.content_type,
        headers={"Content-Length": str(blob.length)},
    )
