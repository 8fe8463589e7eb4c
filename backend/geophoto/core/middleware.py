# geophoto/core/middleware.py
# 업로드 크기 제한: multipart 파싱 전에 본문 바이트 수로 거른다
# - Content-Length가 있으면 바로 비교
# - chunked 전송이면 receive를 감싸서 누적 바이트가 한도를 넘는 순간 중단

import logging

from starlette.datastructures import Headers
from starlette.responses import PlainTextResponse

from geophoto.core.errors import PayloadTooLargeError
from geophoto.services.ingest import TOO_LARGE

logger = logging.getLogger(__name__)


class UploadSizeLimitMiddleware:
    def __init__(self, app, max_body_bytes: int):
        self.app = app
        self.max_body_bytes = max_body_bytes

    async def _reject(self, scope, receive, send, reason: str) -> None:
        logger.info(f"upload rejected before parsing: {reason}")
        resp = PlainTextResponse(TOO_LARGE, status_code=413)
        await resp(scope, receive, send)

    async def __call__(self, scope, receive, send):
        if scope.get("type") != "http" or scope.get("method") != "POST":
            await self.app(scope, receive, send)
            return

        length = Headers(scope=scope).get("content-length")
        if length is not None and length.isdigit() and int(length) > self.max_body_bytes:
            await self._reject(scope, receive, send, f"content-length={length}")
            return

        received = 0
        exceeded = False
        response_started = False

        async def limited_receive():
            nonlocal received, exceeded
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_body_bytes:
                    exceeded = True
                    raise PayloadTooLargeError(TOO_LARGE)
            return message

        async def guarded_send(message):
            nonlocal response_started
            # 한도 초과 후 앱이 만든 응답(파싱 오류 400 등)은 버리고 413으로 대체
            if exceeded:
                return
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, limited_receive, guarded_send)
        except Exception:
            if not exceeded:
                raise
        if exceeded and not response_started:
            await self._reject(scope, receive, send, f"streamed body over {self.max_body_bytes} bytes")
