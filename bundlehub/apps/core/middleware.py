from __future__ import annotations

import time
import logging

logger = logging.getLogger("request")


class RequestLogMiddleware:
    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        start = time.time()
        user = getattr(request, 'user', None)
        user_id = getattr(user, 'id', None)
        status_code = None
        try:
            response = self.get_response(request)
            status_code = response.status_code
            return response
        finally:
            logger.info(
                "req", extra={
                    "method": request.method,
                    "path": request.path,
                    "userId": str(user_id) if user_id else None,
                    "status": status_code,
                    "durationMs": int((time.time() - start) * 1000),
                }
            )
