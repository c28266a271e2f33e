"""请求日志中间件"""
import logging
import time
import uuid
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger("api.request")

SKIP_PATHS = ("/health", "/docs", "/redoc", "/openapi.json", "/favicon.ico")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """分配 request_id 并记录每个请求的状态码与耗时"""

    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        start_time = time.perf_counter()

        incoming = str(request.headers.get("X-Request-Id") or "").strip()
        request_id = incoming if incoming else uuid.uuid4().hex
        request.state.request_id = request_id

        method = request.method
        path = request.url.path
        client_ip = request.client.host if request.client else "unknown"
        should_log = not any(path.startswith(p) for p in SKIP_PATHS)

        try:
            response = await call_next(request)
        except Exception:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.exception(
                "%s %s - ERROR - %.2fms - %s request_id=%s", method, path, duration_ms, client_ip, request_id
            )
            raise

        duration_ms = (time.perf_counter() - start_time) * 1000
        if should_log:
            status_code = response.status_code
            log_msg = f"{method} {path} - {status_code} - {duration_ms:.2f}ms - {client_ip} request_id={request_id}"
            if status_code >= 500:
                logger.error(log_msg)
            elif status_code >= 400:
                logger.warning(log_msg)
            else:
                logger.info(log_msg)

        response.headers.setdefault("X-Request-Id", request_id)
        response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"
        return response
