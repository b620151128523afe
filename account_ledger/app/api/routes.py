from fastapi import APIRouter, Depends, Path, Request, Response, status

from ..core.config import Settings, get_settings
from ..core.dependencies import get_account_service, get_transaction_service
from ..models import (
    AccountResponse,
    CreateAccountRequest,
    CreateTransactionRequest,
    ErrorResponse,
)
from ..models.types import INT64_MAX, INT64_MIN
from ..services import AccountServiceBase, TransactionServiceBase, format_balance
from .cancellation import run_unit


ERROR_RESPONSES = {status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse}}

router = APIRouter(prefix="/accounts", tags=["accounts"], responses=ERROR_RESPONSES)

@router.post("", status_code=status.HTTP_201_CREATED, response_class=Response)
async def create_account(
    payload: CreateAccountRequest,
    request: Request,
    service: AccountServiceBase = Depends(get_account_service),
    settings: Settings = Depends(get_settings),
) -> Response:
    await run_unit(
        request,
        lambda cancellation: service.create_account(
            payload.account_id, payload.initial_balance, cancellation
        ),
        settings.request_timeout_seconds,
    )
    return Response(status_code=status.HTTP_201_CREATED)

@router.get("/{account_id}", response_model=AccountResponse)
def get_account(
    account_id: int = Path(..., ge=INT64_MIN, le=INT64_MAX),
    service: AccountServiceBase = Depends(get_account_service),
) -> AccountResponse:
    account = service.get_account(account_id)
    return AccountResponse(account_id=account.id, balance=format_balance(account.balance))

transaction_router = APIRouter(
    prefix="/transactions", tags=["transactions"], responses=ERROR_RESPONSES
)

@transaction_router.post(
    "",
    response_model=CreateTransactionRequest,
    status_code=status.HTTP_201_CREATED,
)
async def create_transaction(
    payload: CreateTransactionRequest,
    request: Request,
    service: TransactionServiceBase = Depends(get_transaction_service),
    settings: Settings = Depends(get_settings),
) -> CreateTransactionRequest:
    await run_unit(
        request,
        lambda cancellation: service.create_transaction(
            payload.source_account_id,
            payload.destination_account_id,
            payload.amount,
            cancellation,
        ),
        settings.request_timeout_seconds,
    )
    return payload

api_router = APIRouter()
api_router.include_router(router)
api_router.include_router(transaction_router)

__all__ = ["api_router"]
