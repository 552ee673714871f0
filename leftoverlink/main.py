# leftoverlink/main.py
import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from leftoverlink.api import listings as listings_api
from leftoverlink.api import users as users_api
from leftoverlink.core.config import settings
from leftoverlink.core.errors import Internal, ListingError
from leftoverlink.deps import get_clock, get_store
from leftoverlink.tasks.expiry_sweep import run_sweep_loop

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("leftoverlink")


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.use_mongo:
        from leftoverlink.core.indexes import ensure_indexes
        from leftoverlink.db import get_client, get_db
        await ensure_indexes(get_db())

    task = None
    if settings.sweep_enabled:
        task = asyncio.create_task(
            run_sweep_loop(get_store(), settings.sweep_interval_seconds, get_clock())
        )
    try:
        yield
    finally:
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        if settings.use_mongo:
            get_client().close()


app = FastAPI(lifespan=lifespan, title="LeftoverLink API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------- Error envelope ----------------
@app.exception_handler(ListingError)
async def _listing_error(request: Request, exc: ListingError):
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)


def _validation_response(errors) -> JSONResponse:
    return JSONResponse(
        {
            "success": False,
            "kind": "validation_error",
            "message": "Validation failed",
            "errors": [{"loc": list(e["loc"]), "msg": e["msg"], "type": e["type"]} for e in errors],
        },
        status_code=400,
    )


@app.exception_handler(RequestValidationError)
async def _request_invalid(request: Request, exc: RequestValidationError):
    return _validation_response(exc.errors())


@app.exception_handler(PydanticValidationError)
async def _model_invalid(request: Request, exc: PydanticValidationError):
    return _validation_response(exc.errors(include_url=False, include_context=False))


@app.exception_handler(Exception)
async def _unexpected(request: Request, exc: Exception):
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    body = Internal().to_dict()
    if settings.debug:
        body["detail"] = repr(exc)
    return JSONResponse(body, status_code=500)


# ---------------- Include routers ----------------
app.include_router(listings_api.router)   # /api/listings
app.include_router(users_api.router)      # /api/users


# Health
@app.get("/health")
def health():
    return {"ok": True}
