# 환경변수 로딩 (.env)
from typing import List

from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    MONGODB_URI: str = "mongodb://localhost:27017"  # 필요 시 prod/staging로 분리
    MONGODB_DB: str = "geophoto"
    PHOTO_BUCKET: str = "photos"                    # GridFS 버킷 (photos.files / photos.chunks)

    # 업로드 제한
    MAX_UPLOAD_BYTES: int = 500_000
    MULTIPART_OVERHEAD_BYTES: int = 16_384          # multipart 경계/필드 여유분
    DEFAULT_PHOTO_NAME: str = "photo"

    DB_CONNECT_RETRIES: int = 20

    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    class Config:
        env_file = ".env"

settings = Settings()
