# apps/api/residency/schema.py

from enum import Enum
from typing import Optional

from pydantic import Field

from core.response.models import CustomBaseModel


class ServiceStatus(str, Enum):
    ON = "ON"
    OFF = "OFF"


class ResidencyStatusResponse(CustomBaseModel):
    service_status: ServiceStatus = Field(ServiceStatus.ON)


class ToggleServiceRequest(CustomBaseModel):
    residency_id: str = Field(..., min_length=1)
    status: ServiceStatus = Field(...)


class FlatResponse(CustomBaseModel):
    id: str
    number: str
    floor: Optional[int] = None
    block_id: Optional[str] = None
    block_name: Optional[str] = None
