#!/usr/bin/env python3

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loantrack.routes import api
from loantrack.configs import OPTIONS, CORS_ORIGINS, LOG_LEVEL
from loantrack.core import init_db
from loantrack.core.exceptions import LoantrackError
from loantrack import __version__ as VERSION

logging.basicConfig(level=LOG_LEVEL.upper())
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(
    title="Loantrack API",
    description="Loantrack: inventory and loan tracking with an audit trail",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LoantrackError)
async def loantrack_error_handler(request: Request, exc: LoantrackError):
    logger.error("Unhandled %s on %s %s", type(exc).__name__, request.method, request.url.path,
                 exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.error("Unexpected error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


app.include_router(api.router, prefix="/v1/api")

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("loantrack.app:app", **OPTIONS)
