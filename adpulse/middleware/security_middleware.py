"""Security middleware: Basic Auth gate, anti-crawl headers, cache control."""
import base64
import binascii
import secrets

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from adpulse.config import Settings

# The refresh trigger authenticates with its own shared secret
OPEN_PATHS = ("/health", "/robots.txt", "/api/cron/")


class SecurityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        settings: Settings = request.app.state.settings
        path = request.url.path

        if settings.dash_user and settings.dash_pass:
            if not any(path.startswith(p) for p in OPEN_PATHS):
                if not self._check_basic_auth(request, settings):
                    return Response(
                        content="Unauthorized",
                        status_code=401,
                        headers={"WWW-Authenticate": 'Basic realm="AdPulse"'},
                    )

        response: Response = await call_next(request)

        response.headers["X-Robots-Tag"] = "noindex, nofollow"

        # Metrics are re-read on every poll; the browser may store but must revalidate
        if "application/json" in response.headers.get("content-type", ""):
            response.headers["Cache-Control"] = "private, no-cache"

        return response

    @staticmethod
    def _check_basic_auth(request: Request, settings: Settings) -> bool:
        auth_header = request.headers.get("authorization", "")
        if not auth_header.startswith("Basic "):
            return False
        try:
            decoded = base64.b64decode(auth_header[6:]).decode("utf-8")
            user, password = decoded.split(":", 1)
        except (binascii.Error, UnicodeDecodeError, ValueError):
            return False
        user_ok = secrets.compare_digest(user.encode("utf-8"), settings.dash_user.encode("utf-8"))
        pass_ok = secrets.compare_digest(password.encode("utf-8"), settings.dash_pass.encode("utf-8"))
        return user_ok and pass_ok
