from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from loguru import logger

from app.api.v1 import index
from app.api.v1 import account
from app.api.v1 import items
from app.api.v1 import admin

from app.core.config import settings
from app.core.errors import LedgerError
from app.core.logging import setup_logging
from app.services.ledger import Ledger

setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    ledger = Ledger.from_url(settings.database_url, echo=settings.debug)
    if settings.create_schema:
        ledger.create_schema()
    app.state.ledger = ledger
    logger.info("Ledger opened")

    yield

    ledger.close()
    logger.info("Ledger closed")


app = FastAPI(title=settings.app_name, lifespan=lifespan)

# Middlewares
origins = []

if settings.allowed_hosts:
    origins = settings.allowed_hosts.split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code}
    )


# Register routes
app.include_router(index.router, prefix="/api/v1")
app.include_router(
    account.router, prefix="/api/v1/accounts", tags=["Accounts"])
app.include_router(items.router, prefix="/api/v1/items")
app.include_router(
    admin.router, prefix="/api/v1/admin", tags=["Admin"])

# Static files serving
app.mount("/static", StaticFiles(directory=settings.static_dir), name="static")

if __name__ == "__main__":
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_config=None,
        log_level=None,
    )
