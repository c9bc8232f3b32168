"""
Last-resort error handling.

Pure ASGI middleware: anything that escapes the routers becomes a JSON 500.
HTTPException is left to FastAPI. For the webhook a 500 means Stripe will
redeliver the event later.
"""
import json

from fastapi import HTTPException
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from chesapeake.core.logging import get_logger

logger = get_logger(__name__)


class ErrorHandlerMiddleware:
    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_wrapper(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except HTTPException:
            raise
        except Exception as e:
            path = scope.get("path", "unknown")
            if response_started:
                logger.exception("Unhandled exception after response started", path=path)
                raise

            logger.exception("Unhandled exception", error=str(e), path=path)

            request_id = scope.get("state", {}).get("request_id")
            body = json.dumps({
                "detail": "Internal server error",
                "request_id": request_id,
            }).encode("utf-8")

            await send({
                "type": "http.response.start",
                "status": 500,
                "headers": [
                    (b"content-type", b"application/json"),
                    (b"content-length", str(len(body)).encode()),
                ],
            })
            await send({"type": "http.response.body", "body": body})
