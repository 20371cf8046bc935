import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from walletfeed.api.bitcoin import router as bitcoin_router
from walletfeed.api.deps import get_registry
from walletfeed.api.prices import router as prices_router
from walletfeed.api.wallets import router as wallets_router
from walletfeed.container import Container
from walletfeed.exceptions import (
    ConfigurationError,
    ExternalServiceError,
    InvalidAddressError,
    InvalidXpubError,
    UnsupportedNetworkError,
)
from walletfeed.pipeline.registry import AdapterRegistry

logger = logging.getLogger("walletfeed.api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    container = Container()
    app.state.container = container
    registry = container.registry()
    registry.detect_capabilities()
    yield
    await registry.aclose()


app = FastAPI(title="walletfeed", version="0.1.0", lifespan=lifespan)


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(UnsupportedNetworkError)
@app.exception_handler(InvalidXpubError)
@app.exception_handler(InvalidAddressError)
async def invalid_input_handler(request: Request, exc: Exception):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(ExternalServiceError)
async def external_service_error_handler(request: Request, exc: ExternalServiceError):
    logger.warning("Upstream failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=502, content={"detail": str(exc)})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    tb = traceback.format_exception(type(exc), exc, exc.__traceback__)
    logger.error("Unhandled error on %s %s:\n%s", request.method, request.url.path, "".join(tb))
    return JSONResponse(status_code=500, content={"detail": str(exc)})


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(wallets_router)
app.include_router(prices_router)
app.include_router(bitcoin_router)


@app.get("/api/health")
async def health():
    return {"status": "ok", "version": "0.1.0"}


@app.get("/api/sources")
async def sources(registry: AdapterRegistry = Depends(get_registry)):
    capabilities = registry.detect_capabilities()
    return {"sources": sorted(kind.value for kind in capabilities)}
