# patient_portal/health.py
from fastapi import APIRouter

from patient_portal.dependencies.services import get_backend_client_cached

router = APIRouter()


@router.get("/health")
def health():
    client = get_backend_client_cached()
    return {"ok": True, "mode": "mock" if client.use_mock_data else "live"}
