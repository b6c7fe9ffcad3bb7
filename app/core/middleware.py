# File: app/core/middleware.py

import logging

from fastapi import HTTPException, status
from fastapi.responses import JSONResponse
from starlette.datastructures import Headers
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)


class BodySizeLimitMiddleware:
    """
    Reject request bodies larger than max_body_size.

    A declared Content-Length is checked up front. Chunked bodies carry no
    length, so the bytes are also counted as the application reads them.
    """

    def __init__(self, app: ASGIApp, max_body_size: int):
        self.app = app
        self.max_body_size = max_body_size

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        content_length = Headers(scope=scope).get("content-length")
        if content_length is not None:
            try:
                declared = int(content_length)
            except ValueError:
                response = JSONResponse(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    content={"detail": "Invalid Content-Length header."},
                )
                await response(scope, receive, send)
                return
            if declared > self.max_body_size:
                self._log_rejection(scope, declared)
                await self._too_large()(scope, receive, send)
                return

        received = 0

        async def limited_receive() -> Message:
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_body_size:
                    self._log_rejection(scope, received)
                    # Rendered as a 413 by the app's exception middleware
                    raise HTTPException(status_code=413, detail=self._detail())
            return message

        await self.app(scope, limited_receive, send)

    def _detail(self) -> str:
        return f"Request body exceeds {self.max_body_size} bytes."

    def _too_large(self) -> JSONResponse:
        return JSONResponse(status_code=413, content={"detail": self._detail()})

    def _log_rejection(self, scope: Scope, size: int) -> None:
        logger.info(
            "Rejected %s %s: body of %s bytes exceeds %s",
            scope.get("method"), scope.get("path"), size, self.max_body_size,
        )
