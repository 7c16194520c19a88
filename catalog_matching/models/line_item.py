"""Pydantic models for invoice line items consumed by the matching engine.

Invoice parsing is done upstream; these models are the normalized shape the
parser hands over for every imported invoice.
"""
from pydantic import BaseModel, Field, field_validator
from datetime import date
from decimal import Decimal
from typing import List, Optional
from uuid import UUID
import re

_ITALIAN_VAT = re.compile(r"^IT(\d{11})$")


def normalize_fiscal_id(value: str) -> str:
    """Canonical form of a supplier fiscal identity (VAT number).

    Invoices from the same legal entity write the VAT number with or without
    spaces, dots and the IT country prefix; all of them key the same ledger.
    """
    compact = re.sub(r"[\s.\-]", "", value).upper()
    match = _ITALIAN_VAT.match(compact)
    if match:
        return match.group(1)
    return compact


class SupplierIdentity(BaseModel):
    """Legal identity of the supplier that issued an invoice.

    Attributes:
        fiscal_id: VAT number or tax code; the key of supplier ledgers
        name: Display name as printed on the invoice (may vary in casing)
        supplier_id: Optional id of the supplier record owned upstream
    """

    fiscal_id: str = Field(..., min_length=1, max_length=64)
    name: Optional[str] = Field(default=None, max_length=500)
    supplier_id: Optional[UUID] = None

    @field_validator("fiscal_id")
    @classmethod
    def canonical_fiscal_id(cls, v: str) -> str:
        normalized = normalize_fiscal_id(v)
        if not normalized:
            raise ValueError("fiscal_id must not be blank")
        return normalized


class InvoiceReference(BaseModel):
    """Resolved invoice identity used as price-history provenance."""

    invoice_id: str = Field(..., min_length=1, max_length=100)
    invoice_number: str = Field(..., min_length=1, max_length=100)
    invoice_date: date


class PriceObservation(BaseModel):
    """One observed price for a product on an invoice line."""

    price: Decimal
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    quantity: Optional[Decimal] = None
    unit_of_measure: Optional[str] = Field(default=None, max_length=50)
    notes: Optional[str] = None

    @field_validator("currency")
    @classmethod
    def uppercase_currency(cls, v: Optional[str]) -> Optional[str]:
        return v.upper() if v else v


class InvoiceLineItem(BaseModel):
    """A normalized invoice line as produced by the invoice parser.

    Attributes:
        line_number: Line number within the invoice (order is preserved)
        description: Free-text description, possibly empty
        quantity: Quantity invoiced (0 when absent)
        unit_price: Unit price (0 when absent)
        total_price: Line total, when the parser found one
        currency: Line currency; falls back to the invoice currency
        unit_of_measure: Unit of measure as printed (PZ, KG, ...)
        supplier: Overrides the invoice supplier when set
        article_code: Supplier article code
        vat_rate: VAT rate percentage
    """

    line_number: int = Field(..., ge=0)
    description: Optional[str] = ""
    quantity: Decimal = Decimal("0")
    unit_price: Decimal = Decimal("0")
    total_price: Optional[Decimal] = None
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    unit_of_measure: Optional[str] = Field(default=None, max_length=50)
    supplier: Optional[SupplierIdentity] = None
    article_code: Optional[str] = Field(default=None, max_length=100)
    vat_rate: Optional[Decimal] = None

    @field_validator("quantity", "unit_price", mode="before")
    @classmethod
    def none_as_zero(cls, v):
        return Decimal("0") if v is None else v

    def to_price_observation(self, default_currency: Optional[str] = None) -> PriceObservation:
        """Build the price observation consolidated into the catalog."""
        return PriceObservation(
            price=self.unit_price,
            currency=self.currency or default_currency,
            quantity=self.quantity if self.quantity > 0 else None,
            unit_of_measure=self.unit_of_measure,
        )


class InvoiceImport(BaseModel):
    """One imported invoice: provenance, supplier and ordered lines."""

    tenant_id: UUID
    invoice: InvoiceReference
    supplier: SupplierIdentity
    currency: str = Field(default="EUR", min_length=3, max_length=3)
    lines: List[InvoiceLineItem] = Field(default_factory=list)

    def supplier_for(self, line: InvoiceLineItem) -> SupplierIdentity:
        return line.supplier or self.supplier
