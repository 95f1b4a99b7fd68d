"""Request tracing for the estimate API: request/project ids and timing."""
import time
import uuid
import logging
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from retrofit_estimator.services.logging_config import project_id_var, request_id_var

logger = logging.getLogger("retrofit-api.middleware")

SKIP_LOG_PATHS = {"/health"}
REQUEST_ID_HEADER = "X-Request-ID"
PROJECT_ID_HEADER = "X-Project-ID"


class RequestTimingMiddleware(BaseHTTPMiddleware):
    """
    - Reuses the caller's X-Request-ID or assigns a uuid4.
    - Binds X-Request-ID and X-Project-ID to the logging context, so estimate
      and import log lines emitted while serving the request carry both ids.
    - Adds X-Process-Time (milliseconds) and echoes both ids on the response.
    - Emits one structured log line per request, /health excluded.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        project_id = request.headers.get(PROJECT_ID_HEADER)
        request.state.request_id = request_id
        request.state.project_id = project_id

        request_token = request_id_var.set(request_id)
        project_token = project_id_var.set(project_id)
        start_time = time.perf_counter()
        try:
            response: Response = await call_next(request)
        finally:
            request_id_var.reset(request_token)
            project_id_var.reset(project_token)

        duration_ms = round((time.perf_counter() - start_time) * 1000, 2)

        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers["X-Process-Time"] = str(duration_ms)
        if project_id:
            response.headers[PROJECT_ID_HEADER] = project_id

        if request.url.path not in SKIP_LOG_PATHS:
            logger.info(
                f"{request.method} {request.url.path} → {response.status_code}",
                extra={
                    "http_method": request.method,
                    "http_path": request.url.path,
                    "http_status": response.status_code,
                    "request_id": request_id,
                    "project_id": project_id,
                    "duration_ms": duration_ms,
                },
            )

        return response
