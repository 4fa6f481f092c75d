import socket
from contextlib import asynccontextmanager
from typing import Dict, List, Optional

import uvicorn
from fastapi import FastAPI, Request
from starlette.routing import Route

from pdf_dev_server.config import ServerConfig
from pdf_dev_server.app.server import DevServer
from pdf_dev_server.app.services.hooks import MethodHook
from pdf_dev_server.app.services.router import RequestRouter
from pdf_dev_server.app.services.storage_backend import StorageBackend
from pdf_dev_server.logger_config import setup_logger

# Logger setup
logger = setup_logger()


def ensure_non_zero_port(server_config: ServerConfig) -> ServerConfig:
    """Replace port 0 with a free port so request URLs carry the real one."""
    if not server_config.port:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.bind(("", 0))
            server_config.port = sock.getsockname()[1]
    return server_config


@asynccontextmanager
async def lifespan(app: FastAPI):
    server = app.state.server
    await server.start()
    yield
    await server.stop()


class DispatchEndpoint:
    """ASGI endpoint handing every request to the app's RequestRouter.

    Routes with a function endpoint only match the methods they list; an ASGI
    endpoint matches any method, so unknown verbs still get the router's 405.
    """

    async def __call__(self, scope, receive, send):
        request = Request(scope, receive)
        response = await request.app.state.router.dispatch(request)
        await response(scope, receive, send)


def create_app(server_config: Optional[ServerConfig] = None, storage: Optional[StorageBackend] = None,
               hooks: Optional[Dict[str, List[MethodHook]]] = None) -> FastAPI:
    server_config = ensure_non_zero_port(server_config or ServerConfig.from_env())
    app = FastAPI(title="PDF Development Server", lifespan=lifespan,
                  docs_url=None, redoc_url=None, openapi_url=None)

    app.state.server = DevServer(server_config, storage=storage, hooks=hooks)
    app.state.router = RequestRouter(app.state.server)
    app.router.routes.append(Route("/{full_path:path}", endpoint=DispatchEndpoint(), include_in_schema=False))

    return app


# Create app from environment settings, for `uvicorn pdf_dev_server.main:app`
app = create_app()


def main(argv=None):
    server_config = ensure_non_zero_port(ServerConfig.from_args(argv))
    setup_logger(server_config.verbose)

    logger.info("Starting PDF development server...")
    logger.info(f"Root directory: {server_config.root}")
    logger.info(f"Storage: {'Supabase bucket ' + server_config.bucket if server_config.use_supabase else server_config.data_dir}")
    logger.info(f"Server running at http://{server_config.host}:{server_config.port}/")
    uvicorn.run(
        create_app(server_config),
        host=server_config.host,
        port=server_config.port,
        log_level="debug" if server_config.verbose else "info",
    )


if __name__ == "__main__":
    main()
