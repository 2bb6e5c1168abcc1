import time
from typing import Callable
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from utils.logging import log_request_start, log_request_end, log_error, log_periodic_stats, service_logger


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs every request with timing and turns unexpected errors into a JSON 400"""

    def __init__(self, app, log_periodic_stats_interval: int = 300):  # 5 minutes
        super().__init__(app)
        self.log_periodic_stats_interval = log_periodic_stats_interval
        self.last_stats_log = time.time()

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Skip logging for health checks and docs
        if request.url.path in ["/health", "/api/health", "/docs", "/redoc", "/openapi.json"]:
            return await call_next(request)

        start_time = time.time()
        endpoint = f"{request.method} {request.url.path}"
        request_info = log_request_start(request, endpoint)

        try:
            response = await call_next(request)

            duration_ms = (time.time() - start_time) * 1000
            log_request_end(request_info, duration_ms, response.status_code)

            current_time = time.time()
            if current_time - self.last_stats_log > self.log_periodic_stats_interval:
                log_periodic_stats()
                self.last_stats_log = current_time

            return response

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000

            log_error(e, endpoint, {
                "duration_ms": duration_ms,
                "request_path": str(request.url.path),
                "request_method": request.method
            })
            log_request_end(request_info, duration_ms, 400)

            return JSONResponse(
                status_code=400,
                content={"error": str(e) or type(e).__name__}
            )


class PerformanceLoggingMiddleware(BaseHTTPMiddleware):
    """Flags slow requests and adds an X-Response-Time header"""

    def __init__(self, app, slow_request_threshold_ms: float = 1000):
        super().__init__(app)
        self.slow_request_threshold_ms = slow_request_threshold_ms

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()

        response = await call_next(request)

        duration_ms = (time.time() - start_time) * 1000

        if duration_ms > self.slow_request_threshold_ms:
            service_logger.logger.warning(
                f"🐌 SLOW REQUEST | {request.method} {request.url.path} | "
                f"Duration: {duration_ms:.2f}ms | Threshold: {self.slow_request_threshold_ms}ms"
            )

        response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"

        return response
