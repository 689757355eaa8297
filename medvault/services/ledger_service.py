# medvault/services/ledger_service.py
"""
Append-only audit ledger.

append_entry() only adds the entry to the caller's session: the caller
commits it in the same transaction as the state change it records, so a
disclosure can never be persisted without its entry (or the reverse).
There is intentionally no update or delete helper.
"""

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from medvault.core.exceptions import LedgerUnavailableError
from medvault.models.ledger_entry import LedgerAction, LedgerEntry
from medvault.utils.datetime_utils import as_utc, utc_now

logger = logging.getLogger(__name__)


def append_entry(
    db: Session,
    *,
    action: LedgerAction,
    actor_id: UUID | None,
    patient_id: UUID,
    details: str,
    now: datetime | None = None,
) -> LedgerEntry:
    """
    Stage a ledger entry in the current transaction and flush it so it
    receives its sequence number.

    The details text always names the affected patient so patients can
    find entries concerning them.
    """
    patient_ref = f"patient {patient_id}"
    if str(patient_id) not in details:
        details = f"{details} ({patient_ref})"

    entry = LedgerEntry(
        action=action,
        actor_id=actor_id,
        patient_id=patient_id,
        details=details[:1000],
        timestamp=as_utc(now) if now else utc_now(),
    )

    try:
        db.add(entry)
        db.flush()
    except SQLAlchemyError as exc:
        logger.error(f"Ledger append failed for {action.value} ({patient_ref}): {exc}", exc_info=True)
        db.rollback()
        raise LedgerUnavailableError("Audit ledger is unavailable") from exc

    return entry


def list_entries_for_patient(db: Session, patient_id: UUID) -> list[LedgerEntry]:
    return (
        db.query(LedgerEntry)
        .filter(LedgerEntry.patient_id == patient_id)
        .order_by(LedgerEntry.sequence.asc())
        .all()
    )


def list_entries(
    db: Session,
    *,
    action: LedgerAction | None = None,
) -> list[LedgerEntry]:
    query = db.query(LedgerEntry)
    if action is not None:
        query = query.filter(LedgerEntry.action == action)
    return query.order_by(LedgerEntry.sequence.asc()).all()


def count_entries(db: Session) -> int:
    return db.query(LedgerEntry).count()


def has_recent_emergency_access(
    db: Session,
    patient_id: UUID,
    *,
    since: datetime,
) -> bool:
    """
    True if the patient's data was disclosed via emergency override (or an
    emergency key was forced) at or after `since`.
    """
    entry = (
        db.query(LedgerEntry)
        .filter(
            LedgerEntry.patient_id == patient_id,
            LedgerEntry.action == LedgerAction.EMERGENCY_ACCESS,
            LedgerEntry.timestamp >= as_utc(since),
        )
        .first()
    )
    return entry is not None
