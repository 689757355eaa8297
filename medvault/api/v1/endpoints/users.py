# medvault/api/v1/endpoints/users.py
from fastapi import APIRouter, Depends

from medvault.core.exceptions import MedVaultError
from medvault.dependencies.auth import get_current_user
from medvault.dependencies.authz import get_doctor_ops, get_patient_ops
from medvault.dependencies.errors import to_http_exception
from medvault.models.user import User
from medvault.schemas.user import EmergencyInfoUpdate, EmergencyProfileResponse, GeoFenceUpdate, UserResponse
from medvault.services.role_ops import DoctorOps, PatientOps

router = APIRouter()


@router.get("/me", response_model=UserResponse)
def read_current_user(
    current_user: User = Depends(get_current_user),
) -> UserResponse:
    """
    Return the current authenticated user.
    """
    return UserResponse.model_validate(current_user)


@router.put("/me/emergency-info", response_model=EmergencyProfileResponse)
def update_my_emergency_info(
    payload: EmergencyInfoUpdate,
    ops: PatientOps = Depends(get_patient_ops),
) -> EmergencyProfileResponse:
    """
    Replace the vital info shown to on-site doctors during an emergency override.
    """
    try:
        patient = ops.update_emergency_info(payload.emergency_info)
    except MedVaultError as exc:
        raise to_http_exception(exc)
    return EmergencyProfileResponse.model_validate(patient)


@router.put("/me/geo-fence", response_model=UserResponse)
def update_my_geo_fence(
    payload: GeoFenceUpdate,
    ops: DoctorOps = Depends(get_doctor_ops),
) -> UserResponse:
    try:
        doctor = ops.set_geo_fence(payload.is_geo_fenced)
    except MedVaultError as exc:
        raise to_http_exception(exc)
    return UserResponse.model_validate(doctor)
