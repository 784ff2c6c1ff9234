"""Fleet endpoints."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, status

from ...schemas.scheduling import VehicleModel
from ...services.vehicles.fleet import default_fleet

router = APIRouter(prefix="/vehicles", tags=["vehicles"])


@router.get("/default", response_model=List[VehicleModel], status_code=status.HTTP_200_OK)
def get_default_fleet() -> List[VehicleModel]:
    return [VehicleModel.from_domain(vehicle) for vehicle in default_fleet()]
