# geophoto/db/models/schemas.py
# Pydantic 모델 정의
# PhotoDoc: GridFS 파일 문서의 metadata 서브도큐먼트
# PhotoMetadata: 응답용 (store가 부여한 id 포함)
# RawGPSRecord: EXIF에서 뽑은 DMS 원본 (저장하지 않음)
from __future__ import annotations
from typing import Optional, Tuple
from pydantic import BaseModel, Field

DMS = Tuple[float, float, float]

class Coordinates(BaseModel):
    # longitude가 먼저: Mongo 2dsphere가 legacy 좌표쌍으로 읽는 순서
    longitude: float = Field(ge=-180.0, le=180.0)
    latitude: float = Field(ge=-90.0, le=90.0)

class PhotoDoc(BaseModel):
    contentType: str
    coordinates: Coordinates
    name: Optional[str] = None
    description: Optional[str] = None

class PhotoMetadata(PhotoDoc):
    id: str

class RawGPSRecord(BaseModel):
    latitude_dms: DMS
    latitude_ref: str
    longitude_dms: DMS
    longitude_ref: str
