import logging
import time
import uuid

logger = logging.getLogger("pharmacy.request")

# Scraped every few seconds; not worth an access-log line.
QUIET_PATHS = ("/healthz", "/metrics")


def client_ip(request):
    forwarded = request.META.get("HTTP_X_FORWARDED_FOR")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.META.get("REMOTE_ADDR")


class RequestLogMiddleware:
    """Tag every request with an ``X-Request-ID`` and log it as one JSON line.

    The id is taken from the incoming header when the client (or a proxy)
    already set one, so a browser-side error report can be matched with
    the server log. Server errors are logged as warnings.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        started = time.monotonic()
        request.request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())

        response = self.get_response(request)
        response["x-request-id"] = request.request_id

        if request.path in QUIET_PATHS and response.status_code < 400:
            return response

        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(level, {
            "event": "http_request",
            "requestId": request.request_id,
            "method": request.method,
            "path": request.get_full_path(),
            "status": response.status_code,
            "durationMs": round((time.monotonic() - started) * 1000, 1),
            "ip": client_ip(request),
            "bytes": 0 if response.streaming else len(response.content),
            "userAgent": request.META.get("HTTP_USER_AGENT", "-"),
        })
        return response
