"""Plan catalog routes."""
from __future__ import annotations

from fastapi import APIRouter, Depends

from vitrine.api import schemas
from vitrine.api.dependencies.checkout import get_catalog_snapshot
from vitrine.core.errors import CatalogUnavailable
from vitrine.core.plans import CatalogSnapshot, available_durations
from vitrine.services.notifications import NOTICES

router = APIRouter(prefix="/api/v1", tags=["plans"])


@router.get("/plans", response_model=schemas.PlanListResponse)
def list_plans(snapshot: CatalogSnapshot = Depends(get_catalog_snapshot)) -> schemas.PlanListResponse:
    return schemas.PlanListResponse(
        plans=[schemas.PlanOut.from_plan(plan) for plan in snapshot.plans],
        version=snapshot.version,
        message=NOTICES[CatalogUnavailable.notice].description if snapshot.is_empty else None,
    )


@router.get("/plans/{plan_id}/durations", response_model=list[schemas.QuoteOut])
def plan_durations(
    plan_id: str,
    snapshot: CatalogSnapshot = Depends(get_catalog_snapshot),
) -> list[schemas.QuoteOut]:
    plan = snapshot.require(plan_id)
    return [schemas.QuoteOut.for_plan(plan, option) for option in available_durations(plan).values()]
