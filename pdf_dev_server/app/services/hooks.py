"""Per-method request hooks.

Hooks run in order before the generic file handling. A hook either answers
the request by returning a response, or returns None to let the next hook
(and finally the generic handling) run. Headers a hook sets on `headers`
end up on whatever response is eventually sent.
"""
from typing import Dict, List, Optional
from urllib.parse import urlencode, urlsplit, urlunsplit

from fastapi.responses import Response
from starlette.datastructures import MutableHeaders

from pdf_dev_server.app.context import RequestContext
from pdf_dev_server.logger_config import setup_logger

logger = setup_logger()

CORS_TEST_PATH = "/test/pdfs/basicapi.pdf"
REDIRECT_PARAMS = ("redirectToHost", "redirectIfRange")


class MethodHook:
    def try_handle(self, ctx: RequestContext, headers: MutableHeaders) -> Optional[Response]:
        raise NotImplementedError


class CrossOriginHook(MethodHook):
    """Adds CORS headers to the cross-origin test document; never answers itself."""

    def __init__(self, path: str = CORS_TEST_PATH):
        self.path = path

    def try_handle(self, ctx, headers):
        if ctx.path != self.path:
            return None
        origin = ctx.header("origin")
        if not ctx.has_query_param("cors") or not origin:
            return None

        headers["Access-Control-Allow-Origin"] = origin
        if ctx.query_param("cors") == "withCredentials":
            headers["Access-Control-Allow-Credentials"] = "true"
        headers["Access-Control-Expose-Headers"] = "Accept-Ranges,Content-Range"
        headers["Vary"] = "Origin"
        return None


class RedirectHook(MethodHook):
    """Redirects to the same URL on another host when `redirectToHost` is given."""

    def try_handle(self, ctx, headers):
        redirect_to_host = ctx.query_param("redirectToHost")
        if not redirect_to_host:
            return None

        # Keep browsers from answering later range requests out of their cache
        headers["Cache-Control"] = "no-store,max-age=0"

        if ctx.query_param("redirectIfRange") and not ctx.header("range"):
            return None

        try:
            location = self.redirect_location(ctx, redirect_to_host)
        except ValueError as e:
            logger.error(f"Cannot redirect {ctx.url}: {str(e)}")
            return Response(status_code=500)
        return Response(status_code=302, headers={"Location": location})

    @staticmethod
    def redirect_location(ctx: RequestContext, redirect_to_host: str) -> str:
        parts = urlsplit(ctx.url)
        netloc = redirect_to_host if parts.port is None else f"{redirect_to_host}:{parts.port}"
        # The test-only parameters are dropped so the target does not redirect again
        query = urlencode([(key, value) for key, value in ctx.query if key not in REDIRECT_PARAMS])
        location = urlunsplit((parts.scheme, netloc, parts.path, query, ""))

        if urlsplit(location).hostname != redirect_to_host:
            raise ValueError(f"Invalid hostname: {redirect_to_host}")
        return location


def default_hooks() -> Dict[str, List[MethodHook]]:
    return {
        "GET": [CrossOriginHook(), RedirectHook()],
        "POST": [],
    }
