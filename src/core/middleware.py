"""Core middleware."""
import logging
import time

from django.utils.cache import patch_cache_control

logger = logging.getLogger("crm")


class RequestLoggingMiddleware:
    """Log method, path, status, duration and user for each API request."""

    API_PREFIX = "/api/"

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        started = time.monotonic()
        response = self.get_response(request)
        if request.path.startswith(self.API_PREFIX):
            user = getattr(request, "user", None)
            duration_ms = int((time.monotonic() - started) * 1000)
            level = logging.WARNING if response.status_code >= 400 else logging.INFO
            logger.log(
                level,
                "%s %s %s %dms",
                request.method,
                request.path,
                response.status_code,
                duration_ms,
                extra={
                    "status_code": response.status_code,
                    "duration_ms": duration_ms,
                    "user_id": str(user.pk) if user is not None and user.is_authenticated else None,
                },
            )
        return response


class NoStoreAPIMiddleware:
    """Force no-store headers on API responses to prevent stale browser/proxy cache."""

    API_PREFIX = "/api/"

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        response = self.get_response(request)

        if request.path.startswith(self.API_PREFIX):
            patch_cache_control(
                response,
                private=True,
                no_cache=True,
                no_store=True,
                must_revalidate=True,
                max_age=0,
            )
            response["Pragma"] = "no-cache"
            response["Expires"] = "0"

        return response
