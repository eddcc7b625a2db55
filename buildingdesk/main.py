import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import events, notifications, service_charges, tickets, work_orders, workflow
from .config import Base, engine, settings
from .core.errors import register_exception_handlers
from .core.logging import configure_logging
from .core.request_context import RequestIdMiddleware
from .models import models  # noqa: F401

configure_logging(settings.log_level, json_logs=settings.json_logs)
logger = logging.getLogger(__name__)

app = FastAPI(title="BuildingDesk Workflow Core")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestIdMiddleware)
register_exception_handlers(app)


@app.on_event("startup")
def startup() -> None:
    # In dev we make sure tables exist. Alembic migrations should be used for real schema evolution.
    Base.metadata.create_all(bind=engine)
    logger.info("BuildingDesk started against %s", engine.url.render_as_string(hide_password=True))


@app.get("/health", tags=["system"])
def health() -> dict:
    return {"status": "ok"}


app.include_router(tickets.router, prefix="/tickets", tags=["tickets"])
app.include_router(work_orders.router, prefix="/work-orders", tags=["work-orders"])
app.include_router(events.router, prefix="/events", tags=["events"])
app.include_router(service_charges.router, prefix="/service-charges", tags=["service-charges"])
app.include_router(notifications.router, prefix="/notifications", tags=["notifications"])
app.include_router(workflow.router, prefix="/workflow", tags=["workflow"])
