"""Session middleware for FastAPI - resolves the connected wallet per request."""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from api.base import error_response, ErrorCodes
from core.exceptions import SessionExpiredError
from wallet.session import SessionRegistry

SESSION_COOKIE = "session_token"


class SessionMiddleware(BaseHTTPMiddleware):
    """Middleware that attaches the wallet session to the request.

    For protected routes:
    1. Extracts session token from 'session_token' cookie
    2. Looks the session up in the SessionRegistry
    3. Sets request.state.session

    Public paths (connect, health, docs) bypass the check.
    """

    PUBLIC_PATHS = [
        "/session/challenge",
        "/session/connect",
        "/session/disconnect",
        "/health",
        "/docs",
        "/openapi.json",
    ]

    def __init__(self, app, registry: SessionRegistry):
        super().__init__(app)
        self._registry = registry

    def _is_public_path(self, path: str) -> bool:
        return any(path == public or path.startswith(public + "/") for public in self.PUBLIC_PATHS)

    async def dispatch(self, request: Request, call_next):
        if self._is_public_path(request.url.path):
            return await call_next(request)

        token = request.cookies.get(SESSION_COOKIE)
        if not token:
            return JSONResponse(
                status_code=401,
                content=error_response(
                    ErrorCodes.NOT_AUTHENTICATED,
                    "Connect a wallet first",
                ).model_dump(mode="json"),
            )

        try:
            request.state.session = self._registry.get(token)
        except SessionExpiredError:
            return JSONResponse(
                status_code=401,
                content=error_response(
                    ErrorCodes.SESSION_EXPIRED,
                    "Session has expired",
                ).model_dump(mode="json"),
            )

        return await call_next(request)
