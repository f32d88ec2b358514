from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator

from appprompt.config import Settings
from appprompt.controllers import api
from appprompt.db import init_db
from appprompt.dependencies import ErrorResponse
from appprompt.logger import setup_logging
from appprompt.models import ErrorCode

settings = Settings()
setup_logging(settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await asyncio.to_thread(init_db, settings)
    logger.info("AppPrompt API started")
    yield


app = FastAPI(
    title="AppPrompt API",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(api.router)


@app.exception_handler(RequestValidationError)
async def invalid_params(request: Request, exc: RequestValidationError):
    # request bodies are parsed by hand, so only path and query params land here
    logger.debug("rejected %s %s: %s", request.method, request.url.path, exc.errors())
    err = ErrorResponse(code=ErrorCode.BAD_REQUEST, message="Invalid request parameters")
    return JSONResponse(status_code=400, content={"detail": err.model_dump(mode="json")})

Instrumentator().instrument(app).expose(app)
