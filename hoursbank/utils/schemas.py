from typing import Annotated, Literal, Optional

from fastapi import Path
from pydantic import BaseModel, ConfigDict, Field, StrictStr, field_validator

from ..ledger import MAX_HOURS

# SQLite INTEGER 上限
MAX_ID = 2**63 - 1
IdPath = Annotated[int, Path(ge=1, le=MAX_ID)]
HOURS_LIMIT = float(MAX_HOURS)


class _In(BaseModel):
    model_config = ConfigDict(extra="ignore")


class CustomerIn(_In):
    name: StrictStr
    contact: Optional[StrictStr] = None

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("name is required")
        return v.strip()


class CustomerPatch(_In):
    name: Optional[StrictStr] = None
    contact: Optional[StrictStr] = None

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("name must not be empty")
        return v.strip() if v is not None else v


class TxIn(_In):
    customer_id: int = Field(ge=1, le=MAX_ID)
    date: StrictStr
    hours: float = Field(allow_inf_nan=False, gt=-HOURS_LIMIT, lt=HOURS_LIMIT)
    kind: Literal["topup", "usage"] = "usage"
    note: Optional[StrictStr] = None

    @field_validator("date")
    @classmethod
    def _date_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("date is required")
        return v.strip()


class TxPatch(_In):
    customer_id: Optional[int] = Field(default=None, ge=1, le=MAX_ID)
    date: Optional[StrictStr] = None
    hours: Optional[float] = Field(default=None, allow_inf_nan=False, gt=-HOURS_LIMIT, lt=HOURS_LIMIT)
    kind: Optional[Literal["topup", "usage"]] = None
    note: Optional[StrictStr] = None

    @field_validator("date")
    @classmethod
    def _date_not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("date must not be empty")
        return v.strip() if v is not None else v
