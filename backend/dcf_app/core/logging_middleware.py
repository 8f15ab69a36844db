"""Request logging middleware."""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("dcf.requests")

MAX_DETAIL_LENGTH = 500


async def _read_body(response: Response) -> bytes:
    body = b""
    async for chunk in response.body_iterator:
        body += chunk.encode("utf-8") if isinstance(chunk, str) else chunk
    return body


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log method, path, status and duration of every request.

    Error responses (4xx/5xx) also log their body, so that the reason an
    import or export failed (the "detail" of the HTTPException) shows up in
    the server log next to the request.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        start = time.monotonic()
        response = await call_next(request)
        duration_ms = (time.monotonic() - start) * 1000

        status = response.status_code
        target = request.url.path
        if request.url.query:
            target = f"{target}?{request.url.query}"

        if status < 400 or not hasattr(response, "body_iterator"):
            logger.info("%s %s -> %d (%.0fms)", request.method, target, status, duration_ms)
            return response

        body = await _read_body(response)
        detail = body.decode("utf-8", errors="replace")
        if len(detail) > MAX_DETAIL_LENGTH:
            detail = detail[:MAX_DETAIL_LENGTH] + "..."

        log = logger.warning if status < 500 else logger.error
        log(
            "%s %s -> %d (%.0fms): %s",
            request.method,
            target,
            status,
            duration_ms,
            detail,
        )

        # The body iterator is consumed; hand the client a fresh response
        return Response(
            content=body,
            status_code=status,
            headers=dict(response.headers),
            media_type=response.media_type,
        )
