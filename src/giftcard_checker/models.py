from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .util.masking import mask_code


class StatusCategory(str, Enum):
    VALID = "valid"
    INVALID = "invalid"
    ALREADY_REDEEMED = "alreadyRedeemed"
    EXPIRED = "expired"
    REGION_MISMATCH = "regionMismatch"
    UNKNOWN = "unknown"
    TRANSIENT_ERROR = "transientError"


class Operation(str, Enum):
    LOOKUP = "lookup"
    REDEEM = "redeem"


@dataclass(frozen=True)
class Classification:
    status: StatusCategory
    message: str
    amount: Optional[str] = None
    currency: Optional[str] = None


@dataclass(frozen=True)
class RawPageCapture:
    text: str
    html: str
    url: str = ""


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class OutcomeRecord(BaseModel):
    """
    One terminal result per code per operation.

    `code` is masked on construction, so passing the raw code is safe (and expected).
    """

    model_config = ConfigDict(frozen=True)

    code: str
    status: StatusCategory
    amount: Optional[str] = None
    currency: Optional[str] = None
    message: str = ""
    timestamp: datetime = Field(default_factory=_utc_now)
    operation: Operation = Operation.LOOKUP

    @field_validator("code", mode="before")
    @classmethod
    def _mask(cls, value: object) -> str:
        return mask_code(None if value is None else str(value))

    @classmethod
    def from_classification(
        cls, code: str, classification: Classification, *, operation: Operation
    ) -> "OutcomeRecord":
        return cls(
            code=code,
            status=classification.status,
            amount=classification.amount,
            currency=classification.currency,
            message=classification.message,
            operation=operation,
        )

    @classmethod
    def transient_error(cls, code: str, error: Optional[BaseException], *, operation: Operation) -> "OutcomeRecord":
        message = str(error) if error is not None else "Operation failed"
        return cls(
            code=code,
            status=StatusCategory.TRANSIENT_ERROR,
            message=message or type(error).__name__,
            operation=operation,
        )
