# geophoto/main.py
# FastAPI 앱 초기화 및 라우터 설정
# 저장소는 startup에서 연결해 app.state.store에 두고 의존성으로 주입한다

from __future__ import annotations

import logging
from asyncio import sleep

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from geophoto.api.routes_photo import router as photo_router
from geophoto.core.config import settings
from geophoto.core.errors import GeoPhotoError
from geophoto.core.logger import setup_logging
from geophoto.core.middleware import UploadSizeLimitMiddleware
from geophoto.db.store import MongoPhotoStore

logger = logging.getLogger(__name__)

app = FastAPI(title="GeoPhoto - API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(GeoPhotoError)
async def geophoto_error_handler(request: Request, exc: GeoPhotoError):
    return PlainTextResponse(exc.reason, status_code=exc.status_code)


app.add_middleware(
    UploadSizeLimitMiddleware,
    max_body_bytes=settings.MAX_UPLOAD_BYTES + settings.MULTIPART_OVERHEAD_BYTES,
)


# 앱 시작/종료 이벤트 핸들러
@app.on_event("startup")
async def on_startup() -> None:
    setup_logging()
    if getattr(app.state, "store", None) is not None:
        return

    store = MongoPhotoStore(settings.MONGODB_URI, settings.MONGODB_DB, settings.PHOTO_BUCKET)
    # DB 먼저 붙는다 (1초 간격 재시도)
    for i in range(settings.DB_CONNECT_RETRIES):
        try:
            await store.connect()
            logger.info("db ready")
            break
        except Exception as e:
            logger.warning(f"db init retry {i+1}: {e}")
            await sleep(1.0)
    else:
        logger.error("db init failed after retries")
        return
    app.state.store = store


@app.on_event("shutdown")
async def on_shutdown() -> None:
    store = getattr(app.state, "store", None)
    if store is not None:
        await store.close()
        app.state.store = None


@app.get("/health")
async def health():
    ok = {"status": "ok", "db": "skip"}
    store = getattr(app.state, "store", None)
    if store is not None:
        try:
            await store.ping()
            ok["db"] = "ok"
        except Exception as e:
            ok["db"] = f"error: {e}"
    return ok


app.include_router(photo_router)
