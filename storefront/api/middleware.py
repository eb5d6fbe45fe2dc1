# storefront/api/middleware.py
import time
import uuid
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from storefront.utils.logging import get_logger


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """One structured log line per request, tagged with a request id."""

    def __init__(self, app: ASGIApp, service_name: str):
        super().__init__(app)
        self.logger = get_logger(service_name)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        start_time = time.time()

        try:
            response = await call_next(request)
        except Exception:
            self._log(request, 500, start_time, request_id, exc_info=True)
            raise

        self._log(request, response.status_code, start_time, request_id)
        response.headers["X-Request-ID"] = request_id
        return response

    def _log(self, request: Request, status_code: int, start_time: float, request_id: str, exc_info=False):
        extra = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status_code": status_code,
            "duration_ms": round((time.time() - start_time) * 1000, 2),
            "user_id": request.query_params.get("user_id"),
        }
        if status_code >= 500:
            self.logger.error("Request Failed", extra=extra, exc_info=exc_info)
        elif status_code >= 400:
            self.logger.warning("Request Error", extra=extra)
        else:
            self.logger.info("Request Processed", extra=extra)
