"""
Auto key scheduler: issuance inside the lookahead window, expiry sweep,
idempotent ticks and the background thread lifecycle.
"""
import threading
from datetime import timedelta

from medvault.core.exceptions import LedgerUnavailableError
from medvault.models.access_key import AccessKey
from medvault.models.appointment import AppointmentStatus
from medvault.models.ledger_entry import LedgerAction
from medvault.services import access_key_service, ledger_service
from medvault.services.key_scheduler import AutoKeyScheduler
from medvault.utils.datetime_utils import as_utc


def _scheduler(session_factory, now, **kwargs):
    kwargs.setdefault("lookahead_minutes", 120)
    kwargs.setdefault("interval_seconds", 1)
    return AutoKeyScheduler(session_factory, clock=lambda: now, **kwargs)


def _keys(db, appointment_id):
    db.expire_all()
    return db.query(AccessKey).filter(AccessKey.appointment_id == appointment_id).all()


def test_auto_key_lifecycle(db, session_factory, appointment, now):
    scheduler = _scheduler(session_factory, now)

    result = scheduler.tick(now)

    assert result.issued == 1
    assert result.expired == 0
    (key,) = _keys(db, appointment.id)
    assert key.is_active
    assert key.is_auto_generated
    assert not key.is_emergency
    assert as_utc(key.expires_at) == as_utc(appointment.scheduled_at) + timedelta(minutes=60)

    entries = ledger_service.list_entries(db, action=LedgerAction.KEY_GENERATED)
    assert len(entries) == 1
    assert entries[0].actor_id is None
    assert entries[0].patient_id == appointment.patient_id

    # Past expiry: the sweep deactivates without writing to the ledger
    later = as_utc(key.expires_at) + timedelta(minutes=1)
    before = ledger_service.count_entries(db)
    result = scheduler.tick(later)
    assert result.expired == 1
    assert result.issued == 0
    (key,) = _keys(db, appointment.id)
    assert not key.is_active
    assert ledger_service.count_entries(db) == before


def test_second_tick_is_noop(db, session_factory, appointment, now):
    scheduler = _scheduler(session_factory, now)

    scheduler.tick(now)
    before = ledger_service.count_entries(db)
    result = scheduler.tick(now)

    assert (result.issued, result.expired) == (0, 0)
    assert len(_keys(db, appointment.id)) == 1
    assert ledger_service.count_entries(db) == before


def test_skips_appointments_outside_window_or_not_scheduled(db, session_factory, make_appointment, now):
    far = make_appointment(now + timedelta(hours=5))
    past = make_appointment(now - timedelta(minutes=10))
    cancelled = make_appointment(now + timedelta(minutes=30), status=AppointmentStatus.CANCELLED)
    completed = make_appointment(now + timedelta(minutes=30), status=AppointmentStatus.COMPLETED)

    result = _scheduler(session_factory, now).tick(now)

    assert result.issued == 0
    for apt in (far, past, cancelled, completed):
        assert _keys(db, apt.id) == []


def test_appointment_with_active_key_is_left_alone(db, session_factory, appointment, patient, now):
    forced = access_key_service.issue_key(
        db, appointment_id=appointment.id, actor_id=patient.id, is_emergency_forced=True, now=now,
    )

    result = _scheduler(session_factory, now).tick(now)

    assert result.issued == 0
    keys = _keys(db, appointment.id)
    assert [k.id for k in keys] == [forced.id]


def test_revoked_key_is_not_reissued(db, session_factory, appointment, patient, now):
    scheduler = _scheduler(session_factory, now)
    scheduler.tick(now)
    (key,) = _keys(db, appointment.id)

    access_key_service.revoke_key(db, code=key.code, actor_id=patient.id, now=now)
    result = scheduler.tick(now + timedelta(minutes=1))

    assert result.issued == 0
    assert [k.is_active for k in _keys(db, appointment.id)] == [False]


def test_background_thread_runs_ticks_and_stops(db, session_factory, appointment, now):
    scheduler = _scheduler(session_factory, now)
    ticked = threading.Event()
    original_tick = scheduler.tick

    def tick_and_signal(when=None):
        result = original_tick(when)
        ticked.set()
        return result

    scheduler.tick = tick_and_signal
    scheduler.start()
    try:
        assert ticked.wait(timeout=5)
        assert scheduler.is_running
    finally:
        scheduler.stop()

    assert not scheduler.is_running
    assert len(_keys(db, appointment.id)) == 1


def test_loop_survives_ordinary_failures(session_factory, now):
    scheduler = _scheduler(session_factory, now)
    calls = []
    second_call = threading.Event()

    def flaky_tick(when=None):
        calls.append(when)
        if len(calls) == 1:
            raise RuntimeError("transient")
        second_call.set()

    scheduler.interval_seconds = 0.01
    scheduler.tick = flaky_tick
    scheduler.start()
    try:
        assert second_call.wait(timeout=5)
    finally:
        scheduler.stop()


def test_loop_stops_when_ledger_unavailable(session_factory, now):
    scheduler = _scheduler(session_factory, now)

    def failing_tick(when=None):
        raise LedgerUnavailableError("ledger down")

    scheduler.tick = failing_tick
    scheduler.start()
    scheduler._thread.join(timeout=5)

    assert not scheduler.is_running
    scheduler.stop()
