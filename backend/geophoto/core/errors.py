# geophoto/core/errors.py
# 도메인 예외: 라우터에서 PlainTextResponse(reason, status_code)로 변환된다

from __future__ import annotations


class GeoPhotoError(Exception):
    status_code: int = 500

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class ClientInputError(GeoPhotoError):
    # 파일 없음/형식 불일치/위치 태그 없음/잘못된 id 등
    status_code = 400


class PayloadTooLargeError(ClientInputError):
    status_code = 413


class NotFoundError(GeoPhotoError):
    # 형식은 맞지만 없는 id: malformed id와 같은 400으로 응답
    status_code = 400


class StoreUnavailableError(GeoPhotoError):
    status_code = 503


class InvalidCoordinateError(ValueError):
    # 반구 기호/범위가 맞지 않는 좌표
    pass
