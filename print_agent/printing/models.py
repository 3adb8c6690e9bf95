"""
Pydantic models for print jobs and their content.

Tickets (kitchen order tickets) and bills are validated into frozen models so
the layout engine can rely on their structure. Producers in the field send a
mix of snake_case, camelCase and legacy names (kotNumber, gstin, sgst, ...);
those are accepted as validation aliases.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, List, Literal, Optional, Tuple

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

ContentKind = Literal["ticket", "bill"]
RenderMode = Literal["text", "image"]


def _aliases(*names: str) -> AliasChoices:
    return AliasChoices(*names)


def _to_display_str(v: Any) -> Any:
    if v is None:
        return v
    if isinstance(v, datetime):
        return v.strftime("%Y-%m-%d %H:%M")
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        return str(v)
    return v


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)


class TicketHeader(_Frozen):
    """Header block of a kitchen order ticket."""

    restaurant_name: str = Field(validation_alias=_aliases("restaurant_name", "restaurantName"))
    ticket_number: Optional[str] = Field(
        default=None,
        validation_alias=_aliases("ticket_number", "ticketNumber", "kotNumber"),
        examples=["K-104"],
    )
    ticket_type: str = Field(default="", validation_alias=_aliases("ticket_type", "ticketType", "kotType"))
    customer_name: str = Field(default="", validation_alias=_aliases("customer_name", "customerName"))
    order_label: str = Field(
        default="",
        description="Table, takeaway or delivery label",
        validation_alias=_aliases("order_label", "orderLabel", "orderType"),
    )
    staff_name: Optional[str] = Field(
        default=None, validation_alias=_aliases("staff_name", "staffName", "waiterName")
    )
    timestamp: str = Field(default="", validation_alias=_aliases("timestamp", "date"))

    @field_validator("ticket_number", "timestamp", "customer_name", "order_label", mode="before")
    @classmethod
    def _stringify(cls, v: Any) -> Any:
        return _to_display_str(v)


class TicketItem(_Frozen):
    name: str
    quantity: int = 0
    status: Optional[str] = None


class OrderTicket(_Frozen):
    """A kitchen order ticket (KOT)."""

    header: TicketHeader
    items: List[TicketItem]
    note: Optional[str] = None
    ordered_by: Optional[str] = Field(default=None, validation_alias=_aliases("ordered_by", "orderedBy"))
    total_item_count: Optional[int] = Field(
        default=None, validation_alias=_aliases("total_item_count", "totalItemCount", "totalItems")
    )

    @model_validator(mode="before")
    @classmethod
    def _lift_footer(cls, data: Any) -> Any:
        # Older producers nest the item count under footer.totalItems
        if isinstance(data, dict) and isinstance(data.get("footer"), dict):
            footer = data["footer"]
            if "totalItems" in footer and not any(
                k in data for k in ("total_item_count", "totalItemCount", "totalItems")
            ):
                data = {**data, "total_item_count": footer["totalItems"]}
        return data

    @property
    def item_count(self) -> int:
        if self.total_item_count is not None:
            return self.total_item_count
        return sum(item.quantity for item in self.items)


class BillHeader(_Frozen):
    """Header block of a customer bill."""

    restaurant_name: str = Field(validation_alias=_aliases("restaurant_name", "restaurantName"))
    description: Optional[str] = None
    address: Optional[str] = None
    tax_id: Optional[str] = Field(default=None, validation_alias=_aliases("tax_id", "taxId", "gstin"))
    phone: Optional[str] = Field(default=None, validation_alias=_aliases("phone", "phoneNo"))
    email: Optional[str] = None
    invoice_number: str = Field(
        default="", validation_alias=_aliases("invoice_number", "invoiceNumber", "invoice")
    )
    customer_name: str = Field(default="", validation_alias=_aliases("customer_name", "customerName"))
    order_label: str = Field(default="", validation_alias=_aliases("order_label", "orderLabel", "orderType"))
    timestamp: str = Field(default="", validation_alias=_aliases("timestamp", "date"))

    @field_validator("invoice_number", "phone", "timestamp", "customer_name", "order_label", mode="before")
    @classmethod
    def _stringify(cls, v: Any) -> Any:
        return _to_display_str(v)


class BillItem(_Frozen):
    name: str
    unit_price: float = Field(default=0.0, validation_alias=_aliases("unit_price", "unitPrice", "price"))
    quantity: int = 0

    @property
    def line_total(self) -> float:
        return self.unit_price * self.quantity


class TaxComponent(_Frozen):
    label: str
    rate: float
    amount: float = 0.0


class PaymentDetail(_Frozen):
    method: str
    amount: float


class Payment(_Frozen):
    type: str = ""
    details: List[PaymentDetail] = Field(default_factory=list)


class BillSummary(_Frozen):
    """
    Totals block of a bill.

    Amounts are passed through as given. expected_total() and is_consistent()
    expose the arithmetic invariant without correcting the input.
    """

    sub_total: float = Field(validation_alias=_aliases("sub_total", "subTotal"))
    discount_percent: float = Field(
        default=0.0, validation_alias=_aliases("discount_percent", "discountPercent", "discount")
    )
    discount_amount: float = Field(default=0.0, validation_alias=_aliases("discount_amount", "discountAmount"))
    tax_components: Tuple[TaxComponent, TaxComponent] = Field(
        validation_alias=_aliases("tax_components", "taxComponents"),
    )
    rounding_adjustment: float = Field(
        default=0.0, validation_alias=_aliases("rounding_adjustment", "roundingAdjustment", "rounded")
    )
    total: float
    payment: Optional[Payment] = None

    @model_validator(mode="before")
    @classmethod
    def _legacy_gst(cls, data: Any) -> Any:
        # sgst/cgst amounts become the two fixed-rate (2.5%) tax components
        if isinstance(data, dict) and not any(k in data for k in ("tax_components", "taxComponents")):
            data = {
                **data,
                "tax_components": (
                    {"label": "SGST", "rate": 2.5, "amount": data.get("sgst") or 0},
                    {"label": "CGST", "rate": 2.5, "amount": data.get("cgst") or 0},
                ),
            }
        return data

    @property
    def tax_total(self) -> float:
        return sum(c.amount for c in self.tax_components)

    def expected_total(self) -> float:
        return self.sub_total - self.discount_amount + self.tax_total - self.rounding_adjustment

    def is_consistent(self, tolerance: float = 0.01) -> bool:
        return abs(self.expected_total() - self.total) <= tolerance


class Bill(_Frozen):
    """A customer-facing bill with item pricing and tax breakdown."""

    header: BillHeader
    items: List[BillItem]
    summary: BillSummary


class PrinterAddress(_Frozen):
    host: str = Field(validation_alias=_aliases("host", "ipAddress", "ip"))
    port: int = Field(default=9100, ge=1, le=65535)


class PrintJob(_Frozen):
    """
    A job description handed over by the intake layer.

    content stays a plain mapping here; the pipeline validates it into an
    OrderTicket or Bill so content problems surface as ContentError.
    """

    type: ContentKind
    paper_width_profile: str = Field(
        default="MM_58",
        validation_alias=_aliases("paper_width_profile", "paperWidthProfile", "paperWidth"),
    )
    render_mode: RenderMode = Field(default="text", validation_alias=_aliases("render_mode", "renderMode"))
    content: dict[str, Any]
    printer: Optional[PrinterAddress] = None

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip().lower()
            if v == "kot":
                return "ticket"
        return v

    @field_validator("render_mode", mode="before")
    @classmethod
    def _normalize_mode(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v


@dataclass(frozen=True)
class RenderedArtifact:
    """
    A rasterized render: packed 1-bit bitmap (MSB first, row stride ceil(width/8))
    plus the source PNG bytes when they were kept.
    """

    width: int
    height: int
    bitmap: bytes
    raw_bytes: Optional[bytes] = None

    @property
    def bytes_per_row(self) -> int:
        return (self.width + 7) // 8


__all__ = [
    "Bill",
    "BillHeader",
    "BillItem",
    "BillSummary",
    "ContentKind",
    "OrderTicket",
    "Payment",
    "PaymentDetail",
    "PrintJob",
    "PrinterAddress",
    "RenderMode",
    "RenderedArtifact",
    "TaxComponent",
    "TicketHeader",
    "TicketItem",
]
