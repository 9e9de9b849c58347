"""Credit card and daily target models."""

import datetime as dt
import re
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


def default_card_key(name: str) -> str:
    """User-facing card id derived from a card name: "HNB Visa" -> "hnb_visa"."""
    return re.sub(r"\s+", "_", name.strip().lower())


class CreditCard(BaseModel):
    """
    A card in the registry.

    `id` is the store-assigned internal id; `card_id` is the
    user-facing identifier. Older documents reference cards by either.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[str] = None
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Display name, e.g. 'HNB Visa'"
    )
    bank: Optional[str] = Field(default=None, max_length=100)
    card_id: Optional[str] = Field(
        default=None,
        max_length=100,
        description="User-facing card identifier"
    )
    limit: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Credit limit"
    )
    created_at: Optional[dt.datetime] = None

    @model_validator(mode='after')
    def fill_card_id(self) -> 'CreditCard':
        if not self.card_id:
            self.card_id = default_card_key(self.name)
        return self

    def matches(self, key: Optional[str]) -> bool:
        """Does `key` name this card by internal id or by user-facing id?"""
        if not key:
            return False
        return key == self.id or key == self.card_id

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude={"id"})

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any]) -> 'CreditCard':
        return cls.model_validate({**data, "id": doc_id})


class DailyTarget(BaseModel):
    """Self-set spending target for one date."""

    id: Optional[str] = None
    amount: Decimal = Field(..., gt=0)
    date: dt.date
    created_at: Optional[dt.datetime] = None

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude={"id"})

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any]) -> 'DailyTarget':
        return cls.model_validate({**data, "id": doc_id})
