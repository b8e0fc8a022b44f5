from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from patient_portal.dependencies.services import get_directory_service
from patient_portal.schemas.directory import FilterStateResponse, InitialBookingData
from patient_portal.services import DirectoryService
from patient_portal.services.exceptions import ServiceError
from patient_portal.services.filters import FilterChainController
from patient_portal.tools.errors import http_error

router = APIRouter()


@router.get("/filters", response_model=FilterStateResponse)
async def filter_state(
    branch_id: Optional[int] = Query(None),
    department_id: Optional[int] = Query(None),
    doctor_id: Optional[int] = Query(None),
    service: DirectoryService = Depends(get_directory_service),
):
    """Replay a branch/department/doctor selection and return the narrowed lists."""
    controller = FilterChainController(service)
    try:
        await controller.load()
        if branch_id is not None and not await controller.select_branch(branch_id):
            raise controller.error or ServiceError("Directory lookup failed")
        if department_id is not None and not await controller.select_department(department_id):
            raise controller.error or ServiceError("Directory lookup failed")
        if doctor_id is not None:
            controller.select_doctor(doctor_id)
    except ServiceError as exc:
        raise http_error(exc) from exc
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return controller.chain.to_response()


@router.get("/initial-data", response_model=InitialBookingData)
async def initial_data(
    service: DirectoryService = Depends(get_directory_service),
):
    try:
        return await service.initial_data()
    except ServiceError as exc:
        raise http_error(exc) from exc
