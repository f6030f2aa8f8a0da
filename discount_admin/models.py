from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class DiscountRule(BaseModel):
    """Canonical discount rule. Amounts and percent are stored as reductions (<= 0)."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )

    id: Optional[int] = None
    name: str
    description: str = ""
    enabled: bool = True
    stop_processing: bool = False
    sort_order: Optional[int] = None
    purchase_total: Decimal = Decimal("0")
    purchase_qty: int = 0
    max_purchase_qty: int = 0
    free_shipping: bool = False
    exclude_on_sale: bool = False
    code: Optional[str] = None
    per_user_limit: int = 0
    per_email_limit: int = 0
    total_use_limit: int = 0
    base_discount: Decimal = Field(default=Decimal("0"), le=0)
    per_item_discount: Decimal = Field(default=Decimal("0"), le=0)
    percent_discount: Decimal = Field(default=Decimal("0"), ge=-1, le=0)
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    product_ids: FrozenSet[int] = Field(default_factory=frozenset)
    product_type_ids: FrozenSet[int] = Field(default_factory=frozenset)
    user_group_ids: FrozenSet[int] = Field(default_factory=frozenset)

    @model_validator(mode="after")
    def _dates_ordered(self) -> "DiscountRule":
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError("dateFrom must not be after dateTo")
        return self


class ValidationErrorKind(str, Enum):
    INVALID_FIELD = "invalid_field"
    INVALID_AMOUNT = "invalid_amount"
    INVALID_DATE = "invalid_date"
    PERCENT_OUT_OF_RANGE = "percent_out_of_range"


class ValidationIssue(BaseModel):
    field: str
    issue: ValidationErrorKind
    value: Optional[str] = None
    message: str


class NormalizationResult(BaseModel):
    rule: Optional[DiscountRule] = None
    errors: List[ValidationIssue] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


class HealthResponse(BaseModel):
    ok: bool = True


class SuccessResponse(BaseModel):
    success: bool = True


class ErrorResponse(BaseModel):
    error: str


class SaveResponse(BaseModel):
    success: bool = True
    id: int
    discount: DiscountRule


class SaveErrorResponse(BaseModel):
    error: str
    errors: List[ValidationIssue] = Field(default_factory=list)


class CatalogItem(BaseModel):
    id: int
    name: str


class DiscountIndexView(BaseModel):
    template: str
    discounts: List[DiscountRule]


class DiscountEditView(BaseModel):
    template: str
    id: Optional[int] = None
    title: str
    discount: Optional[DiscountRule] = None
    groups: Dict[int, str] = Field(default_factory=dict)
    types: Dict[int, str] = Field(default_factory=dict)
    products: List[CatalogItem] = Field(default_factory=list)
