import json
import logging
import time
from contextvars import ContextVar

from sqlalchemy import event
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)

# SQL statements executed while serving the current request.
query_count_var: ContextVar[int] = ContextVar("query_count", default=0)


def install_query_counter(engine) -> None:
    """Count every statement *engine* runs into ``query_count_var``."""

    @event.listens_for(engine.sync_engine, "before_cursor_execute")
    def _count_query(conn, cursor, statement, parameters, context, executemany):
        query_count_var.set(query_count_var.get() + 1)


class TimingMiddleware:
    """
    Stamps every HTTP response with ``X-Response-Time-Ms`` and
    ``X-Query-Count``.  Written as plain ASGI so the counter reset here is
    visible to the endpoint running in the same context.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        query_count_var.set(0)
        started = time.perf_counter()

        async def send_wrapper(message: Message) -> None:
            if message["type"] == "http.response.start":
                elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
                message["headers"] = [
                    *message.get("headers", []),
                    (b"x-response-time-ms", str(elapsed_ms).encode()),
                    (b"x-query-count", str(query_count_var.get()).encode()),
                ]
            await send(message)

        await self.app(scope, receive, send_wrapper)


class ErrorEnvelopeMiddleware:
    """
    Converts exceptions that no exception handler claimed into a response.

    The exception is logged with its traceback and the client receives the
    generic ``{"code": 500, "message": "Operation failed", "data": null}``
    envelope with HTTP 200, like every other non-credential error.  If the
    response has already started there is nothing left to replace, so the
    exception is only logged.
    """

    body = json.dumps({"code": 500, "message": "Operation failed", "data": None}).encode()

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
        except Exception:
            logger.exception("Unhandled error on %s %s", scope.get("method"), scope.get("path"))
            if response_started:
                return
            await send({
                "type": "http.response.start",
                "status": 200,
                "headers": [
                    (b"content-type", b"application/json"),
                    (b"content-length", str(len(self.body)).encode()),
                ],
            })
            await send({"type": "http.response.body", "body": self.body})
