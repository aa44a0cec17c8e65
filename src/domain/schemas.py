from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from domain.models import TransactionType, coerce_amount, coerce_date, coerce_description, coerce_type

UNAVAILABLE = "unavailable"
DEFAULT_HORIZON_DAYS = 30
MAX_HORIZON_DAYS = 365

RiskLevel = Literal["Low", "Medium", "High", "unavailable"]


class TransactionCreate(BaseModel):
    """Body of POST /api/transactions. Messages raised here are returned to the client verbatim."""

    type: TransactionType = Field(default=None, validate_default=True)
    amount: Decimal = Field(default=None, validate_default=True)
    description: str = ""
    date: Optional[dt.date] = None

    @field_validator("type", mode="before")
    @classmethod
    def validate_type(cls, value: Any) -> TransactionType:
        return coerce_type(value)

    @field_validator("amount", mode="before")
    @classmethod
    def validate_amount(cls, value: Any) -> Decimal:
        return coerce_amount(value)

    @field_validator("description", mode="before")
    @classmethod
    def validate_description(cls, value: Any) -> str:
        return coerce_description(value)

    @field_validator("date", mode="before")
    @classmethod
    def validate_date(cls, value: Any) -> Optional[dt.date]:
        return coerce_date(value)


class AnalyzeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    horizon_days: int = Field(default=DEFAULT_HORIZON_DAYS, alias="horizonDays")

    @field_validator("horizon_days", mode="before")
    @classmethod
    def normalize_horizon(cls, value: Any) -> int:
        return normalize_horizon_days(value)


def normalize_horizon_days(value: Any) -> int:
    """Missing, non-numeric and non-positive horizons fall back to the default; large ones are capped."""
    if value is None or isinstance(value, bool):
        return DEFAULT_HORIZON_DAYS
    try:
        days = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return DEFAULT_HORIZON_DAYS
    if days <= 0:
        return DEFAULT_HORIZON_DAYS
    return min(days, MAX_HORIZON_DAYS)


def _optional_days(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        days = float(value)
    except (TypeError, ValueError):
        return None
    if days != days or days in (float("inf"), float("-inf")):
        return None
    return int(round(days))


def _text_or_unavailable(value: Any) -> str:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return UNAVAILABLE


def _string_list(value: Any) -> List[str]:
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if not isinstance(value, (list, tuple)):
        return []
    items: List[str] = []
    for item in value:
        if isinstance(item, str) and item.strip():
            items.append(item.strip())
        elif isinstance(item, (int, float)) and not isinstance(item, bool):
            items.append(str(item))
    return items


class ShortageRisk(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    risk_level: RiskLevel = Field(default=UNAVAILABLE, alias="riskLevel")
    days_until_shortage: Optional[int] = Field(default=None, alias="daysUntilShortage")
    reason: str = UNAVAILABLE

    @field_validator("risk_level", mode="before")
    @classmethod
    def normalize_risk_level(cls, value: Any) -> str:
        if isinstance(value, str):
            level = value.strip().capitalize()
            if level in ("Low", "Medium", "High"):
                return level
        return UNAVAILABLE

    @field_validator("days_until_shortage", mode="before")
    @classmethod
    def normalize_days(cls, value: Any) -> Optional[int]:
        return _optional_days(value)

    @field_validator("reason", mode="before")
    @classmethod
    def normalize_reason(cls, value: Any) -> str:
        return _text_or_unavailable(value)


class AnalysisResult(BaseModel):
    """
    Provider risk assessment, validated field by field.

    Text fields that are absent or malformed read "unavailable", day counts
    read None and lists read []. `raw` is only set when the provider text
    could not be parsed as a JSON object.
    """

    model_config = ConfigDict(populate_by_name=True)

    summary: str = UNAVAILABLE
    shortage_risk: ShortageRisk = Field(default_factory=ShortageRisk, alias="shortageRisk")
    cash_runway_days: Optional[int] = Field(default=None, alias="cashRunwayDays")
    actions: List[str] = Field(default_factory=list)
    insights: List[str] = Field(default_factory=list)
    raw: Optional[str] = None

    @field_validator("summary", mode="before")
    @classmethod
    def normalize_summary(cls, value: Any) -> str:
        return _text_or_unavailable(value)

    @field_validator("shortage_risk", mode="before")
    @classmethod
    def normalize_shortage_risk(cls, value: Any) -> Union[dict, ShortageRisk]:
        if isinstance(value, (dict, ShortageRisk)):
            return value
        return {}

    @field_validator("cash_runway_days", mode="before")
    @classmethod
    def normalize_runway(cls, value: Any) -> Optional[int]:
        return _optional_days(value)

    @field_validator("actions", "insights", mode="before")
    @classmethod
    def normalize_lists(cls, value: Any) -> List[str]:
        return _string_list(value)

    @field_validator("raw", mode="before")
    @classmethod
    def normalize_raw(cls, value: Any) -> Optional[str]:
        return value if isinstance(value, str) else None

    @classmethod
    def unparsed(cls, text: str) -> "AnalysisResult":
        return cls(raw=(text or "").strip())

    @property
    def parsed(self) -> bool:
        return self.raw is None
