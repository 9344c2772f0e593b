from __future__ import annotations

from fastapi import APIRouter, Query, Response, status

from ..dependencies import AdminDep, CurrentUserDep, LedgerDep, ReportsDep
from ..ledger import OperationResult
from ..schemas import (
    AmountRequest,
    BulkIssueRequest,
    BulkIssueResponse,
    CardIssueRequest,
    CardIssueResponse,
    CardResponse,
    CardStatementResponse,
    ExpirySweepResponse,
    OperationResponse,
    OwnerAssignRequest,
    StatusChangeRequest,
    TransactionResponse,
    TransferRequest,
)

router = APIRouter()


async def _operation_response(
    result: OperationResult, card_id: str, response: Response, reports: ReportsDep
) -> OperationResponse:
    if result.reason == "card_not_found":
        response.status_code = status.HTTP_404_NOT_FOUND
        return OperationResponse(success=False, message=result.message, reason=result.reason)
    if not result.success:
        response.status_code = status.HTTP_409_CONFLICT
    if result.reason == "not_owned":
        # Card details stay private to the owner
        return OperationResponse(success=False, message=result.message, reason=result.reason)
    card = await reports.get_card(card_id)
    return OperationResponse(
        success=result.success,
        message=result.message,
        reason=result.reason,
        card=CardResponse.model_validate(card),
    )


@router.post("", response_model=CardIssueResponse, status_code=status.HTTP_201_CREATED)
async def issue_card(payload: CardIssueRequest, ledger: LedgerDep, _admin: AdminDep) -> CardIssueResponse:
    card_id = await ledger.issue_single(payload.initial_balance, payload.expiration_date, payload.owner_user_id)
    return CardIssueResponse(card_id=card_id)


@router.post("/bulk", response_model=BulkIssueResponse, status_code=status.HTTP_201_CREATED)
async def issue_cards_bulk(payload: BulkIssueRequest, ledger: LedgerDep, _admin: AdminDep) -> BulkIssueResponse:
    card_ids = await ledger.issue_bulk(
        payload.count, payload.initial_balance, payload.expiration_date, payload.owner_user_id
    )
    return BulkIssueResponse(
        card_ids=card_ids,
        message=f"Successfully generated {len(card_ids)} inactive gift cards",
    )


@router.post("/expire-due", response_model=ExpirySweepResponse)
async def expire_due_cards(ledger: LedgerDep, _admin: AdminDep) -> ExpirySweepResponse:
    return ExpirySweepResponse(expired=await ledger.expire_due())


@router.get("/{card_id}", response_model=CardResponse)
async def get_card(card_id: str, reports: ReportsDep, _user_id: CurrentUserDep) -> CardResponse:
    return CardResponse.model_validate(await reports.get_card(card_id))


@router.post("/{card_id}/redeem", response_model=OperationResponse)
async def redeem_card(
    card_id: str,
    payload: AmountRequest,
    response: Response,
    ledger: LedgerDep,
    reports: ReportsDep,
    current_user_id: CurrentUserDep,
) -> OperationResponse:
    result = await ledger.redeem(card_id, current_user_id, payload.amount)
    return await _operation_response(result, card_id, response, reports)


@router.post("/{card_id}/recharge", response_model=OperationResponse)
async def recharge_card(
    card_id: str,
    payload: AmountRequest,
    response: Response,
    ledger: LedgerDep,
    reports: ReportsDep,
    current_user_id: CurrentUserDep,
) -> OperationResponse:
    result = await ledger.recharge(card_id, current_user_id, payload.amount)
    return await _operation_response(result, card_id, response, reports)


@router.post("/{card_id}/transfer", response_model=OperationResponse)
async def transfer_card(
    card_id: str,
    payload: TransferRequest,
    response: Response,
    ledger: LedgerDep,
    reports: ReportsDep,
    current_user_id: CurrentUserDep,
) -> OperationResponse:
    result = await ledger.transfer(card_id, current_user_id, payload.to_user_id)
    return await _operation_response(result, card_id, response, reports)


@router.post("/{card_id}/status", response_model=OperationResponse)
async def change_card_status(
    card_id: str,
    payload: StatusChangeRequest,
    response: Response,
    ledger: LedgerDep,
    reports: ReportsDep,
    _admin: AdminDep,
) -> OperationResponse:
    result = await ledger.set_status(card_id, payload.status)
    return await _operation_response(result, card_id, response, reports)


@router.put("/{card_id}/owner", status_code=status.HTTP_204_NO_CONTENT)
async def assign_card_owner(card_id: str, payload: OwnerAssignRequest, ledger: LedgerDep, _admin: AdminDep) -> Response:
    await ledger.assign_owner(card_id, payload.user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{card_id}/transactions", response_model=CardStatementResponse)
async def card_transactions(
    card_id: str,
    reports: ReportsDep,
    _user_id: CurrentUserDep,
    cursor: int | None = Query(None, ge=0),
    limit: int = Query(50, ge=1, le=200),
) -> CardStatementResponse:
    page = await reports.card_history(card_id, cursor=cursor, limit=limit)
    return CardStatementResponse(
        card_id=page.card_id,
        entries=[TransactionResponse.model_validate(entry) for entry in page.entries],
        next_cursor=page.next_cursor,
    )
