# medvault/dependencies/authz.py
"""
Role-scoped dependencies.

Endpoints depend on the facade of the role they serve, e.g.:

    @router.post("/{appointment_id}/access-request")
    def request_access(appointment_id: UUID, ops: DoctorOps = Depends(get_doctor_ops)):
        ...

A caller with another role gets 403 before the endpoint body runs.
"""

from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from medvault.core.database import get_db
from medvault.core.exceptions import AuthorizationError
from medvault.dependencies.auth import get_current_user
from medvault.models.user import User
from medvault.services.role_ops import DoctorOps, LabOps, PatientOps


def _build(ops_cls, db: Session, user: User):
    try:
        return ops_cls(db, user)
    except AuthorizationError as exc:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=str(exc),
        )


def get_patient_ops(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> PatientOps:
    return _build(PatientOps, db, current_user)


def get_doctor_ops(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> DoctorOps:
    return _build(DoctorOps, db, current_user)


def get_lab_ops(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> LabOps:
    return _build(LabOps, db, current_user)
