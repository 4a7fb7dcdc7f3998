"""Driver and vehicle bookkeeping."""

from __future__ import annotations

import logging

from app.domain.errors import NotFoundError
from app.domain.models import Driver, DriverRequest, Ev, EvRequest, StatusCount
from app.repos.memory import DriverRepository, EvRepository

logger = logging.getLogger(__name__)


class FleetService:
    """CRUD over drivers and EVs. Updates replace every field of the record."""

    def __init__(self, driver_repo: DriverRepository, ev_repo: EvRepository) -> None:
        self.driver_repo = driver_repo
        self.ev_repo = ev_repo

    def list_drivers(self) -> list[Driver]:
        return self.driver_repo.find_all()

    def get_driver(self, driver_id: int) -> Driver | None:
        return self.driver_repo.find_by_id(driver_id)

    def create_driver(self, request: DriverRequest) -> Driver:
        driver = self.driver_repo.save(Driver(**request.model_dump()))
        logger.info("Driver created", extra={"driver_id": driver.id})
        return driver

    def update_driver(self, driver_id: int, request: DriverRequest) -> Driver:
        if not self.driver_repo.exists_by_id(driver_id):
            raise NotFoundError("driver", driver_id)
        return self.driver_repo.save(Driver(id=driver_id, **request.model_dump()))

    def list_evs(self) -> list[Ev]:
        return self.ev_repo.find_all()

    def get_ev(self, ev_id: int) -> Ev | None:
        return self.ev_repo.find_by_id(ev_id)

    def create_ev(self, request: EvRequest) -> Ev:
        ev = self.ev_repo.save(Ev(**request.model_dump()))
        logger.info("Vehicle created", extra={"ev_id": ev.id})
        return ev

    def update_ev(self, ev_id: int, request: EvRequest) -> Ev:
        if not self.ev_repo.exists_by_id(ev_id):
            raise NotFoundError("vehicle", ev_id)
        return self.ev_repo.save(Ev(id=ev_id, **request.model_dump()))

    def ev_status_counts(self) -> list[StatusCount]:
        return self.ev_repo.count_by_status()
