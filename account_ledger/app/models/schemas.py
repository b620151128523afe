from pydantic import BaseModel, Field, field_validator

from .types import INT64_MAX, INT64_MIN


class CreateAccountRequest(BaseModel):
    account_id: int = Field(
        ..., ge=INT64_MIN, le=INT64_MAX, description="Externally chosen account number"
    )
    initial_balance: str = Field(..., description="Decimal literal, e.g. \"100.23344\"")

    @field_validator("account_id")
    @classmethod
    def _account_id_not_zero(cls, value: int) -> int:
        if value == 0:
            raise ValueError("invalid account_id")
        return value

    @field_validator("initial_balance")
    @classmethod
    def _initial_balance_not_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("initial_balance is empty")
        return value

class AccountResponse(BaseModel):
    account_id: int
    balance: str = Field(..., description="Balance rendered with 5 fractional digits")

class CreateTransactionRequest(BaseModel):
    source_account_id: int = Field(..., ge=INT64_MIN, le=INT64_MAX)
    destination_account_id: int = Field(..., ge=INT64_MIN, le=INT64_MAX)
    amount: str = Field(..., description="Decimal literal, e.g. \"100.12345\"")

    @field_validator("source_account_id", "destination_account_id")
    @classmethod
    def _account_id_not_zero(cls, value: int, info) -> int:
        if value == 0:
            raise ValueError(f"invalid {info.field_name}")
        return value

    @field_validator("amount")
    @classmethod
    def _amount_not_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("amount is empty")
        return value

class ErrorResponse(BaseModel):
    status: int
    detail: str
    message: str
