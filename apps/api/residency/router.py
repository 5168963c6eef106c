from typing import List

from fastapi import APIRouter, Query

from apps.api.auth.dependency import AdminDependency
from apps.api.residency.schema import (
    FlatResponse,
    ResidencyStatusResponse,
    ToggleServiceRequest,
)
from apps.api.residency.service import ResidencyServiceDependency
from core.exceptions.authentication import ForbiddenException

router = APIRouter(prefix="/residency", tags=["Residency"])


@router.get("/status", summary="Whether the visitor service is on")
async def residency_status_endpoint(
    residency_service: ResidencyServiceDependency,
    society_name: str = Query(..., alias="societyName", min_length=1),
) -> ResidencyStatusResponse:
    return ResidencyStatusResponse(
        service_status=await residency_service.get_service_status(society_name)
    )


@router.post("/toggle-service", summary="Turn the visitor service on or off")
async def toggle_service_endpoint(
    body: ToggleServiceRequest,
    residency_service: ResidencyServiceDependency,
    admin: AdminDependency,
) -> ResidencyStatusResponse:
    if body.residency_id != admin.residency_id:
        raise ForbiddenException(
            "Not the admin of this residency", error_code="RESIDENCY_MISMATCH"
        )
    residency = await residency_service.toggle_service(body.residency_id, body.status)
    return ResidencyStatusResponse(service_status=residency.service_status)


@router.get("/{residency_id}/flats", summary="Flats for the visitor form")
async def list_flats_endpoint(
    residency_id: str, residency_service: ResidencyServiceDependency
) -> List[FlatResponse]:
    flats = await residency_service.list_flats(residency_id)
    return [
        FlatResponse(
            id=flat.id,
            number=flat.number,
            floor=flat.floor,
            block_id=flat.block_id,
            block_name=flat.block.name if flat.block else None,
        )
        for flat in flats
    ]
