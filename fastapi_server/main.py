"""Survivor Pool API server."""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from survivor_pool.config import CORS_ORIGINS, LOG_LEVEL
from survivor_pool.core.errors import RuleViolation
from survivor_pool.routers import invitations, picks, playoff, schedule, series, users
from survivor_pool.storage import get_store
from survivor_pool.storage.base import (
    InvitationClosed,
    InvitationNotFound,
    MemberNotFound,
    SeriesNotFound,
)

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s [%(levelname)s] %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="Survivor Pool API")

# Allow CORS from the configured origins ("*" for local development)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(users.router)
app.include_router(series.router)
app.include_router(picks.router)
app.include_router(playoff.router)
app.include_router(invitations.router)
app.include_router(schedule.router)


@app.exception_handler(RuleViolation)
def rule_violation_handler(request: Request, exc: RuleViolation):
    logger.info("Refused %s %s: %s", request.method, request.url.path, exc.code)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(SeriesNotFound)
@app.exception_handler(MemberNotFound)
@app.exception_handler(InvitationNotFound)
def not_found_handler(request: Request, exc: LookupError):
    return JSONResponse(status_code=404, content={"detail": f"{type(exc).__name__.replace('NotFound', '')} not found"})


@app.exception_handler(InvitationClosed)
def invitation_closed_handler(request: Request, exc: InvitationClosed):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(PermissionError)
def permission_handler(request: Request, exc: PermissionError):
    return JSONResponse(status_code=403, content={"detail": str(exc)})


@app.on_event("startup")
def open_store():
    store = get_store()
    logger.info("Survivor Pool API ready (%s)", type(store).__name__)


@app.get("/")
def root():
    return {"name": "Survivor Pool API", "docs": "/docs"}
