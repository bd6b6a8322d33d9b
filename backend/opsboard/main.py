import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from opsboard.api.v1.routes.connections import router as connections_router
from opsboard.api.v1.routes.health import router as health_router
from opsboard.api.v1.routes.ingest import router as ingest_router
from opsboard.api.v1.routes.kpis import router as kpis_router
from opsboard.api.v1.routes.mappings import router as mappings_router
from opsboard.api.v1.routes.runs import router as runs_router
from opsboard.core.config import settings
from opsboard.core.errors import OpsboardError
from opsboard.core.logging import configure_logging_if_needed

configure_logging_if_needed(settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Opsboard Ingest API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_allow_origins),
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(OpsboardError)
async def opsboard_error_handler(request: Request, exc: OpsboardError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"ok": False, "error": "Invalid request", "detail": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"ok": False, "error": str(exc) or "Internal error"})


app.include_router(health_router, prefix="/v1")
app.include_router(ingest_router)
app.include_router(connections_router)
app.include_router(mappings_router)
app.include_router(runs_router)
app.include_router(kpis_router)
