"""Scheduling endpoints."""

from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, HTTPException, status

from ...schemas.scheduling import ScheduleRequest, ScheduleResponse, StrategyModel, result_to_response
from ...services.scheduling.runner import run_schemes
from ...services.scheduling.strategies import list_strategies

router = APIRouter(tags=["schedule"])


@router.get("/strategies", response_model=List[StrategyModel], status_code=status.HTTP_200_OK)
def get_strategies() -> List[StrategyModel]:
    return [
        StrategyModel(
            id=meta.id.value,
            name=meta.name,
            description=meta.description,
            suitable_for=meta.suitable_for,
        )
        for meta in list_strategies()
    ]


@router.post("/schedule", response_model=ScheduleResponse, status_code=status.HTTP_200_OK)
def schedule(payload: ScheduleRequest) -> ScheduleResponse:
    """Plan trips for the given orders under every scheme profile."""
    try:
        orders, vehicles, depot, options = payload.to_domain()
        result = run_schemes(orders, vehicles, depot=depot, options=options, strategy=payload.strategy)
        return result_to_response(result)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except Exception as exc:
        logging.exception(f"Error scheduling orders: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to schedule orders: {str(exc)}",
        ) from exc
