# medvault/services/key_scheduler.py
"""
Periodic sweep over access keys.

Each tick retires keys whose expiry has passed and issues an auto-generated
key for every scheduled appointment starting inside the lookahead window that
has no key yet. Production runs tick() from a daemon thread on a fixed
interval; tests call tick(now) directly.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from medvault.core.config import get_settings
from medvault.core.exceptions import ConflictError, LedgerUnavailableError
from medvault.models.appointment import Appointment, AppointmentStatus
from medvault.services.access_key_service import (
    appointment_lock,
    deactivate_expired_keys,
    get_active_key_for_appointment,
    has_scheduled_key,
    stage_key,
)
from medvault.utils.datetime_utils import as_utc, utc_now

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    issued: int = 0
    expired: int = 0


class AutoKeyScheduler:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        interval_seconds: int | None = None,
        lookahead_minutes: int | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        settings = get_settings()
        self.session_factory = session_factory
        self.interval_seconds = interval_seconds or settings.scheduler_interval_seconds
        self.lookahead = timedelta(minutes=lookahead_minutes or settings.scheduler_lookahead_minutes)
        self.clock = clock

        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    def tick(self, now: datetime | None = None) -> SweepResult:
        """
        Run one sweep. Safe to call repeatedly: a second immediate tick
        finds nothing to issue and nothing to expire.
        """
        now = as_utc(now) if now else self.clock()
        result = SweepResult()

        db = self.session_factory()
        try:
            result.expired = deactivate_expired_keys(db, now=now)
            result.issued = self._issue_upcoming(db, now)
        finally:
            db.close()

        if result.issued or result.expired:
            logger.info(f"Key sweep at {now.isoformat()}: issued={result.issued} expired={result.expired}")
        return result

    def _issue_upcoming(self, db: Session, now: datetime) -> int:
        window_end = now + self.lookahead
        appointments = (
            db.query(Appointment)
            .filter(
                Appointment.status == AppointmentStatus.SCHEDULED,
                Appointment.scheduled_at >= now,
                Appointment.scheduled_at <= window_end,
            )
            .order_by(Appointment.scheduled_at.asc())
            .all()
        )

        issued = 0
        for appointment in appointments:
            with appointment_lock(appointment.id):
                db.refresh(appointment)
                if appointment.status != AppointmentStatus.SCHEDULED:
                    continue
                # A revoked scheduled key is not re-issued behind the patient's back
                if get_active_key_for_appointment(db, appointment.id) or has_scheduled_key(db, appointment.id):
                    continue

                try:
                    stage_key(
                        db,
                        appointment=appointment,
                        actor_id=None,
                        is_emergency_forced=False,
                        is_auto_generated=True,
                        now=now,
                    )
                    db.commit()
                except ConflictError as e:
                    db.rollback()
                    logger.warning(f"Skipped auto key for appointment {appointment.id}: {e}")
                    continue
                except SQLAlchemyError:
                    db.rollback()
                    raise
                issued += 1
        return issued

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="auto-key-scheduler", daemon=True)
        self._thread.start()
        logger.info(f"Auto key scheduler started (every {self.interval_seconds}s)")

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop after the current tick. Each deactivation is committed on its
        own, so stopping never leaves a half-updated key.
        """
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=timeout)
            self._thread = None
        logger.info("Auto key scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.tick()
            except LedgerUnavailableError:
                logger.critical("Audit ledger unavailable; stopping auto key scheduler", exc_info=True)
                self._stop_event.set()
                break
            except Exception as e:
                logger.error(f"Auto key sweep failed: {e}", exc_info=True)
            self._stop_event.wait(self.interval_seconds)
