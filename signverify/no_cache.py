"""
No-Cache Middleware
===================
Disables client and proxy caching on every response.
"""

from typing import Awaitable, Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, max-age=0",
    "Expires": "0",
    # HTTP/1.0 caches
    "Pragma": "no-cache",
}


class NoCacheMiddleware(BaseHTTPMiddleware):
    """Middleware that marks every response as uncacheable."""

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        response = await call_next(request)
        response.headers.update(NO_CACHE_HEADERS)
        return response
