"""
schemas/reference.py
--------------------

Models for the reference data served from the cache. The upstream API
speaks camelCase; fields are snake_case here with camelCase aliases so
that payloads validate as they arrive and dump back unchanged. Unknown
fields are ignored, which keeps cached payloads readable after the
upstream adds columns.
"""

from __future__ import annotations

from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class ReferenceModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class Warehouse(ReferenceModel):
    id: Optional[int] = None
    name: str
    code: Optional[str] = None
    status: str = "ACTIVE"
    version: Optional[int] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Warehouse name must not be empty")
        return v.strip()


class CylinderVariant(ReferenceModel):
    id: Optional[int] = None
    name: str
    weight_kg: Optional[float] = Field(default=None, ge=0)
    active: bool = True


class Supplier(ReferenceModel):
    id: Optional[int] = None
    name: str
    contact_person: Optional[str] = None
    mobile: Optional[str] = None
    address: Optional[str] = None


class User(ReferenceModel):
    id: Optional[int] = None
    name: str
    username: Optional[str] = None
    mobile_no: Optional[str] = None
    role: str
    active: bool = True
    business_id: Optional[int] = None


class PaymentMode(ReferenceModel):
    id: Optional[int] = None
    name: str
    code: str
    description: Optional[str] = None
    is_active: bool = True
    is_bank_account_required: bool = False


class ExpenseCategory(ReferenceModel):
    id: Optional[int] = None
    name: str
    description: Optional[str] = None
    is_active: bool = True


class BusinessInfo(ReferenceModel):
    id: Optional[int] = None
    agency_name: str
    registration_number: Optional[str] = None
    gst_number: Optional[str] = None
    address: Optional[str] = None
    contact_number: Optional[str] = None
    email: Optional[str] = None


class CustomerVariantPrice(ReferenceModel):
    """Negotiated price of one cylinder variant for one customer."""
    id: Optional[int] = None
    customer_id: Optional[int] = None
    variant_id: int
    variant_name: Optional[str] = None
    sale_price: float = Field(ge=0)
    discount_price: Optional[float] = Field(default=None, ge=0)


class MonthlyPrice(ReferenceModel):
    """Base price of a variant for a month (``monthYear`` is ``YYYY-MM``)."""
    id: Optional[int] = None
    variant_id: int
    variant_name: Optional[str] = None
    month_year: str = Field(pattern=r"^\d{4}-\d{2}$")
    base_price: float = Field(ge=0)


class Customer(ReferenceModel):
    id: Optional[int] = None
    name: str
    mobile: Optional[str] = None
    address: Optional[str] = None
    active: bool = True
    last_sale_date: Optional[date] = None
    total_pending: Optional[int] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Customer name must not be empty")
        return v.strip()


class BankAccount(ReferenceModel):
    """Agency bank account; ``currentBalance`` is maintained upstream."""
    id: Optional[int] = None
    bank_name: str
    account_number: str
    account_holder_name: Optional[str] = None
    account_name: Optional[str] = None
    account_type: Optional[str] = None
    current_balance: Optional[float] = None
    is_active: bool = True
