"""FastAPI application: entry point for the EV fleet operations service."""

from __future__ import annotations

import logging

from fastapi import APIRouter, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.domain.errors import NotFoundError, SchedulingError
from app.domain.models import (
    AtRiskVehicle,
    Driver,
    DriverRequest,
    Ev,
    EvRequest,
    StatusCount,
    Trip,
    TripRequest,
)
from app.logging_setup import configure_logging
from app.repos.memory import DriverRepository, EvRepository, TripRepository, seed_fleet
from app.services.fleet import FleetService
from app.services.scheduler import TripScheduler

configure_logging(settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=3600,
)

# ── Singletons (created at import time for simplicity) ────────────────
trip_repo = TripRepository()
driver_repo = DriverRepository()
ev_repo = EvRepository()

scheduler = TripScheduler(
    trip_repo=trip_repo,
    driver_repo=driver_repo,
    ev_repo=ev_repo,
    tz=settings.tzinfo,
    recheck_every_update=settings.recheck_every_update,
)
fleet = FleetService(driver_repo=driver_repo, ev_repo=ev_repo)

if settings.seed_demo_data:
    seed_fleet(trip_repo, driver_repo, ev_repo)
    logger.info("Seeded demo fleet", extra={"trips": len(trip_repo.find_all())})


@app.exception_handler(SchedulingError)
async def scheduling_error_handler(request: Request, exc: SchedulingError) -> JSONResponse:
    """Render scheduler and fleet errors as ``{error_code, message, details}``."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": exc.error_code,
            "message": exc.message,
            "details": exc.details,
        },
    )


@app.get("/health")
def health_check() -> dict:
    return {"status": "healthy", "app_name": settings.app_name}


# ── Routes ────────────────────────────────────────────────────────────

api = APIRouter(prefix="/api")


@api.get("/trips", response_model=list[Trip])
def list_trips() -> list[Trip]:
    """Return all stored trips."""
    return scheduler.get_all_trips()


@api.get("/trips/today", response_model=list[Trip])
def list_today_trips() -> list[Trip]:
    """Return trips starting today in the configured timezone."""
    return scheduler.get_today_trips()


@api.get("/trips/{trip_id}", response_model=Trip)
def get_trip(trip_id: int) -> Trip:
    trip = scheduler.get_trip(trip_id)
    if trip is None:
        raise NotFoundError("trip", trip_id)
    return trip


@api.post("/trips", response_model=Trip, status_code=201)
def create_trip(body: TripRequest) -> Trip:
    """Schedule a new trip, rejecting driver or vehicle double-bookings."""
    return scheduler.create_trip(body)


@api.put("/trips/{trip_id}", response_model=Trip)
def update_trip(trip_id: int, body: TripRequest) -> Trip:
    """Update the fields present in the body; ``end_time`` is always required."""
    return scheduler.update_trip(trip_id, body)


@api.delete("/trips/{trip_id}", status_code=204)
def delete_trip(trip_id: int) -> None:
    scheduler.delete_trip(trip_id)


@api.get("/drivers", response_model=list[Driver])
def list_drivers() -> list[Driver]:
    return fleet.list_drivers()


@api.get("/drivers/{driver_id}", response_model=Driver)
def get_driver(driver_id: int) -> Driver:
    driver = fleet.get_driver(driver_id)
    if driver is None:
        raise NotFoundError("driver", driver_id)
    return driver


@api.post("/drivers", response_model=Driver, status_code=201)
def create_driver(body: DriverRequest) -> Driver:
    return fleet.create_driver(body)


@api.put("/drivers/{driver_id}", response_model=Driver)
def update_driver(driver_id: int, body: DriverRequest) -> Driver:
    return fleet.update_driver(driver_id, body)


@api.get("/evs", response_model=list[Ev])
def list_evs() -> list[Ev]:
    return fleet.list_evs()


@api.get("/evs/{ev_id}", response_model=Ev)
def get_ev(ev_id: int) -> Ev:
    ev = fleet.get_ev(ev_id)
    if ev is None:
        raise NotFoundError("vehicle", ev_id)
    return ev


@api.post("/evs", response_model=Ev, status_code=201)
def create_ev(body: EvRequest) -> Ev:
    return fleet.create_ev(body)


@api.put("/evs/{ev_id}", response_model=Ev)
def update_ev(ev_id: int, body: EvRequest) -> Ev:
    return fleet.update_ev(ev_id, body)


@api.get("/dashboard/today-trips", response_model=list[Trip])
def dashboard_today_trips() -> list[Trip]:
    return scheduler.get_today_trips()


@api.get("/dashboard/ev-status", response_model=list[StatusCount])
def dashboard_ev_status() -> list[StatusCount]:
    """Number of vehicles per EV status."""
    return fleet.ev_status_counts()


@api.get("/dashboard/at-risk", response_model=list[AtRiskVehicle])
def dashboard_at_risk(hours: int = Query(default=4, ge=1, le=168)) -> list[AtRiskVehicle]:
    """Low-battery vehicles booked on planned trips starting within *hours*."""
    return scheduler.get_at_risk_vehicles(hours, settings.at_risk_battery_percent)


app.include_router(api)
