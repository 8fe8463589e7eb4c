# 공용 의존성: 저장소/서비스 주입 (전역 커넥션 대신 app.state.store)
from fastapi import Depends, Request

from geophoto.core.config import settings
from geophoto.core.errors import StoreUnavailableError
from geophoto.db.store import PhotoStore
from geophoto.services.ingest import IngestionPipeline
from geophoto.services.query import QueryService

def get_store(request: Request) -> PhotoStore:
    # startup에서 connect()된 저장소. 없으면 503
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise StoreUnavailableError("Photo store is not ready")
    return store

def get_ingestion_pipeline(store: PhotoStore = Depends(get_store)) -> IngestionPipeline:
    return IngestionPipeline(
        store,
        max_bytes=settings.MAX_UPLOAD_BYTES,
        default_name=settings.DEFAULT_PHOTO_NAME,
    )

def get_query_service(store: PhotoStore = Depends(get_store)) -> QueryService:
    return QueryService(store)
