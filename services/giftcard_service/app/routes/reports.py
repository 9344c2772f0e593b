from __future__ import annotations

from fastapi import APIRouter

from ..dependencies import AdminDep, ReportsDep
from ..schemas import CardsByUserEntry, RedemptionTotalResponse, StatusSummaryResponse

router = APIRouter()


@router.get("/summary", response_model=StatusSummaryResponse)
async def status_summary(reports: ReportsDep, _admin: AdminDep) -> StatusSummaryResponse:
    summary = await reports.status_summary()
    return StatusSummaryResponse(total_issued=summary.total_issued, by_status=summary.by_status)


@router.get("/cards-by-user", response_model=list[CardsByUserEntry])
async def cards_by_user(reports: ReportsDep, _admin: AdminDep) -> list[CardsByUserEntry]:
    counts = await reports.cards_by_user()
    return [CardsByUserEntry(user_id=user_id, cards_count=count) for user_id, count in counts.items()]


@router.get("/redemptions", response_model=RedemptionTotalResponse)
async def redemption_total(reports: ReportsDep, _admin: AdminDep) -> RedemptionTotalResponse:
    return RedemptionTotalResponse(total_redeemed=await reports.total_redeemed())
