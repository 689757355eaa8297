# medvault/api/v1/router.py
from fastapi import APIRouter

from medvault.api.v1.endpoints import (
    users,
    appointments,
    keys,
    records,
    lab_requests,
    emergency,
    ledger,
)

api_router = APIRouter()

api_router.include_router(users.router, prefix="/users", tags=["users"])
api_router.include_router(appointments.router, prefix="/appointments", tags=["appointments"])
api_router.include_router(keys.router, prefix="/keys", tags=["keys"])
api_router.include_router(records.router, prefix="/records", tags=["records"])
api_router.include_router(lab_requests.router, prefix="/lab-requests", tags=["lab-requests"])
api_router.include_router(emergency.router, prefix="/emergency", tags=["emergency"])
api_router.include_router(ledger.router, prefix="/ledger", tags=["ledger"])
