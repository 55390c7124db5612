import logging
from contextlib import asynccontextmanager
from pathlib import Path

import httpx
from fastapi import FastAPI, Request, Response, HTTPException
from fastapi.responses import JSONResponse, PlainTextResponse

from .config import ConfigStore, settings
from .middleware import CORSHeadersMiddleware
from .relay import UpstreamError, decode_body, relay
from .routing import allowed_methods, find_route

logger = logging.getLogger(__name__)

BANNER = "API.ai Proxy Server v1.0"
API_DOCS = (Path(__file__).parent / "docs/api-docs.json").read_bytes()

# routes answered locally, not relayed
LOCAL_ROUTES = {"/": ["GET"], "/api-docs.json": ["GET"], "/config": ["POST"]}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown logic."""
    #---- Startup ----
    app.state.config_store = ConfigStore(settings.startup_config())
    app.state.http_client = httpx.AsyncClient(timeout=settings.upstream_timeout)
    logger.info("Relaying to %s", settings.base_url or "<unset>")

    try:
        yield
    finally:
        #---- Shutdown ----
        await app.state.http_client.aclose()

application = FastAPI(lifespan=lifespan, openapi_url=None, docs_url=None, redoc_url=None)
application.add_middleware(CORSHeadersMiddleware)


@application.exception_handler(UpstreamError)
async def upstream_error_handler(request: Request, exc: UpstreamError):
    return JSONResponse(
        status_code=exc.status,
        content={"status": exc.status, "message": exc.message},
    )


@application.get("/", response_class=PlainTextResponse)
async def banner():
    return BANNER


@application.get("/api-docs.json")
async def api_docs():
    return Response(content=API_DOCS, media_type="application/json")


async def read_body(request: Request):
    """Read and decode the inbound body, refusing anything over the size limit."""
    chunks, size = [], 0
    async for chunk in request.stream():
        size += len(chunk)
        if size > settings.max_body_bytes:
            raise HTTPException(status_code=413, detail="request entity too large")
        chunks.append(chunk)
    return decode_body(b"".join(chunks), request.headers.get("content-type"))


@application.post("/config")
async def update_config(request: Request):
    payload = await read_body(request)
    logger.info("received config: %s", payload)

    request.app.state.config_store.update(payload)
    return {"status": "OK"}


@application.api_route(
    path="/{path:path}",
    methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS", "HEAD"],
)
async def proxy(path: str, request: Request):
    if request.method == "OPTIONS":
        methods = allowed_methods("/" + path, LOCAL_ROUTES)
        if not methods:
            raise HTTPException(status_code=404, detail="No upstream route found")
        allow = ", ".join(methods)
        return PlainTextResponse(allow, headers={"Allow": allow})

    rule, path_params = find_route(request.method, "/" + path)
    if not rule:
        raise HTTPException(status_code=404, detail="No upstream route found")

    params = {**dict(request.query_params), **path_params}

    body = None
    if rule.body == "inbound":
        body = await read_body(request)
        logger.info("received body: %s", body)

    # ---- Relay ----
    config = request.app.state.config_store.snapshot()
    payload = await relay(request.app.state.http_client, rule, config, params, body)

    if rule.response == "empty":
        return Response(status_code=200)
    return JSONResponse(content=payload)
