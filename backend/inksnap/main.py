import logging
import os

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from fastapi.staticfiles import StaticFiles

from .api import api_functions, api_realtime, api_rest, api_rpc
from .core.config import settings
from .core.observability import setup_logging
from .database import Base, engine
from .realtime.bus import hub
from .services.redis_client import close_redis
from . import models  # noqa: F401  registers tables on Base.metadata

setup_logging()
logger = logging.getLogger(__name__)

Base.metadata.create_all(bind=engine)

app = FastAPI(
    title="InkSnap Gateway",
    version="1.0.0",
    description="Table, RPC, function and realtime endpoints for the InkSnap client.",
    default_response_class=ORJSONResponse,
)

os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
app.mount(
    settings.UPLOAD_PUBLIC_BASE_URL.rstrip("/") or "/static/uploads",
    StaticFiles(directory=settings.UPLOAD_DIR),
    name="uploads",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials="*" not in settings.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)
logger.info("CORS origins set to: %s", settings.CORS_ORIGINS)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Log request validation failures and return them with the usual shape."""
    errors = exc.errors()
    logger.warning("Validation error at %s: %s", request.url.path, errors)
    for err in errors:
        if tuple(err.get("loc", ())) == ("body", "file"):
            return ORJSONResponse(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                content={"detail": {"message": "No file provided", "field_errors": {"file": "required"}}},
            )
    return ORJSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": {"message": "Invalid request", "field_errors": {}, "errors": jsonable_encoder(errors)}},
    )


api_prefix = settings.API_V1_STR

app.include_router(api_rest.router, prefix=api_prefix, tags=["rest"])
app.include_router(api_rpc.router, prefix=api_prefix, tags=["rpc"])
app.include_router(api_functions.router, prefix=api_prefix, tags=["functions"])
app.include_router(api_realtime.router, prefix=api_prefix, tags=["realtime"])


@app.get("/healthz", tags=["health"])
async def healthz():
    return {"status": "ok", "realtime_subscribers": len(hub)}


@app.on_event("startup")
async def start_realtime_bus() -> None:
    await hub.start_consumer()


@app.on_event("shutdown")
async def stop_realtime_bus() -> None:
    await hub.stop_consumer()
    if settings.WS_BUS_ENABLED:
        await close_redis()


def run() -> None:
    """Console entry point: serve the gateway with uvicorn."""
    import uvicorn

    uvicorn.run(
        "inksnap.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        timeout_keep_alive=int(os.getenv("UVICORN_KEEPALIVE", "65")),
    )


if __name__ == "__main__":
    run()
