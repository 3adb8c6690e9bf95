"""
Layout engine for tickets and bills.

One engine, two outputs. Content is first turned into a list of layout
blocks (titles, key/value pairs, dividers, tables). In "text" mode the blocks
become fixed-width Lines tagged with alignment/size/bold for the device codec;
in "markup" mode the same blocks feed an HTML template for the rasterizer.

Column widths are computed once, in characters, from the paper profile:
bills split the line by ratio, tickets reserve a fixed block for quantity and
status and give the rest to the item name.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Literal, Optional, Sequence, Tuple, Union

from jinja2 import Environment, PackageLoader, StrictUndefined, select_autoescape

from print_agent.core.config import PaperProfile, RenderConfig
from print_agent.core.errors import ConfigurationError, ContentError
from print_agent.printing.models import Bill, ContentKind, OrderTicket

logger = logging.getLogger(__name__)

Align = Literal["left", "center", "right"]
Size = Literal["normal", "medium", "large"]
LayoutMode = Literal["text", "markup"]

BILL_RATIOS: Tuple[int, ...] = (6, 5, 2, 10)  # Item, Price, Qty, Total
BILL_LABELS: Tuple[str, ...] = ("Item", "Price", "Qty", "Total")
TICKET_QTY_WIDTH = 3
TICKET_STATUS_WIDTH = 6
MIN_NAME_WIDTH = 10
COLUMN_GAP = " "
KEY_WIDTH_RATIO = 0.5

STATUS_INDICATORS = {
    "NEW": "N",
    "MODIFIED": "M",
    "CANCEL": "C",
    "CANCELLED": "C",
    "REPEAT": "R",
}


@dataclass(frozen=True)
class Line:
    """One rendered text line plus the directives the codec wraps it with."""

    text: str
    align: Align = "left"
    size: Size = "normal"
    bold: bool = False
    kind: str = "text"  # "item" for the first row of an item, "item_cont" for its wrapped rows


@dataclass(frozen=True)
class Column:
    label: str
    align: Align = "left"


@dataclass(frozen=True)
class Block:
    kind: Literal["title", "text", "divider", "pair", "table", "spacer"]
    text: str = ""
    value: str = ""
    align: Align = "left"
    size: Size = "normal"
    bold: bool = False
    columns: Tuple[Column, ...] = ()
    rows: Tuple[Tuple[str, ...], ...] = ()
    widths: Tuple[int, ...] = ()
    value_align: Align = "right"
    spaced: bool = False  # blank line between table rows


def status_indicator(status: Optional[str]) -> str:
    """
    Map an item status to its one-letter indicator (case-insensitive).
    Unknown or missing statuses map to "".
    """
    if not status:
        return ""
    return STATUS_INDICATORS.get(str(status).strip().upper(), "")


def format_amount(value: float) -> str:
    """Two-decimal rendering used for every money field."""
    return f"{value:.2f}"


def format_rate(value: float) -> str:
    return f"{value:g}"


def column_widths(total: int, ratios: Sequence[int]) -> List[int]:
    """
    Split `total` characters by ratio, flooring each share.
    """
    ratio_sum = sum(ratios)
    if total <= 0 or ratio_sum <= 0:
        raise ConfigurationError(f"Cannot split {total} characters by ratios {tuple(ratios)}")
    return [(r * total) // ratio_sum for r in ratios]


def wrap_column(text: str, width: int) -> List[str]:
    """
    Greedy word-wrap to `width` characters.

    Words longer than the column are hard-split into width-sized chunks, so no
    returned line is ever wider than `width`. Empty text yields [""].
    """
    if width <= 0:
        raise ConfigurationError(f"Column width must be positive, got {width}")
    lines: List[str] = []
    current = ""
    for word in str(text or "").split():
        while len(word) > width:
            if current:
                lines.append(current)
                current = ""
            lines.append(word[:width])
            word = word[width:]
        if not word:
            continue
        if not current:
            current = word
        elif len(current) + 1 + len(word) <= width:
            current = f"{current} {word}"
        else:
            lines.append(current)
            current = word
    if current:
        lines.append(current)
    return lines or [""]


def table_rows(cells: Sequence[str], widths: Sequence[int], aligns: Sequence[Align]) -> List[str]:
    """
    Lay out one logical table row, wrapping each cell to its column.

    The first output row carries every column; continuation rows only carry
    the columns that wrapped, the others are left blank.
    """
    wrapped = [wrap_column(text, w) for text, w in zip(cells, widths)]
    height = max(len(col) for col in wrapped)
    rows: List[str] = []
    for i in range(height):
        parts = []
        for col, w, align in zip(wrapped, widths, aligns):
            cell = col[i] if i < len(col) else ""
            parts.append(cell.rjust(w) if align == "right" else cell.ljust(w))
        rows.append(COLUMN_GAP.join(parts).rstrip())
    return rows


class LayoutEngine:
    """
    Maps an OrderTicket or Bill plus a PaperProfile to render instructions.

    Usage:
        engine = LayoutEngine(profile, config)
        lines = engine.render(ticket, "ticket", mode="text")
        html = engine.render(bill, "bill", mode="markup")
    """

    def __init__(self, profile: PaperProfile, config: Optional[RenderConfig] = None) -> None:
        self.profile = profile.validate_geometry()
        self.config = config or RenderConfig()
        self.width = profile.chars_per_line

    # Primitive helpers

    def divider(self, char: str = "-") -> str:
        return char * self.width

    def key_value(self, key: str, value: str, align: Align = "right") -> List[str]:
        """
        Key on the left (at most half the line), value on the right.
        Either side wraps within its own column when it does not fit.
        """
        key_width = max(1, min(len(key), int(self.width * KEY_WIDTH_RATIO)))
        value_width = self.width - key_width - len(COLUMN_GAP)
        return table_rows((key, value), (key_width, value_width), ("left", align))

    def money(self, value: float) -> str:
        return f"{self.config.currency}{format_amount(value)}"

    # Column geometry

    def bill_widths(self, rows: Sequence[Sequence[str]] = ()) -> Tuple[int, ...]:
        """
        Ratio widths, widened so every label and every numeric cell fits on one row.

        Amounts and quantities are never wrapped. Room for them is taken from
        whichever column has the most slack, the item name last shrinking to
        its label width.
        """
        available = self.width - len(COLUMN_GAP) * (len(BILL_RATIOS) - 1)
        widths = column_widths(available, BILL_RATIOS)
        needs = [len(label) for label in BILL_LABELS]
        for cells in rows:
            for i in range(1, len(needs)):
                needs[i] = max(needs[i], len(cells[i]))
        widths = [max(w, n) for w, n in zip(widths, needs)]
        overflow = sum(widths) - available
        while overflow > 0:
            slack = [w - n for w, n in zip(widths, needs)]
            donor = max(range(len(widths)), key=lambda j: slack[j])
            if slack[donor] <= 0:
                raise ConfigurationError(f"Paper profile {self.profile.name!r} is too narrow for this bill table")
            take = min(slack[donor], overflow)
            widths[donor] -= take
            overflow -= take
        return tuple(widths)

    def ticket_widths(self, rows: Sequence[Sequence[str]] = ()) -> Tuple[int, ...]:
        qty_width = max([TICKET_QTY_WIDTH] + [len(cells[1]) for cells in rows])
        reserved = qty_width + TICKET_STATUS_WIDTH + 2 * len(COLUMN_GAP)
        name_width = self.width - reserved
        if name_width < MIN_NAME_WIDTH:
            raise ConfigurationError(f"Paper profile {self.profile.name!r} is too narrow for a ticket table")
        return (name_width, qty_width, TICKET_STATUS_WIDTH)

    # Block builders

    def ticket_blocks(self, ticket: OrderTicket) -> List[Block]:
        h = ticket.header
        blocks: List[Block] = []
        if h.ticket_type:
            blocks.append(Block("title", text=f"({h.ticket_type})", align="center", size="medium", bold=True))
        blocks.append(Block("title", text=h.restaurant_name.upper(), align="center", size="medium", bold=True))
        blocks.append(Block("spacer"))
        blocks.append(Block("divider"))
        blocks.append(Block("pair", text="KOT No:", value=h.ticket_number or "N/A", size="medium", bold=True))
        if h.customer_name:
            blocks.append(Block("pair", text="To:", value=h.customer_name, bold=True))
        if h.order_label:
            blocks.append(Block("pair", text="Type:", value=h.order_label, size="medium", bold=True))
        if h.timestamp:
            blocks.append(Block("pair", text="Date:", value=h.timestamp, bold=True))
        blocks.append(Block("divider"))

        columns = (Column("Item"), Column("Qty", align="right"), Column("Status", align="right"))
        rows = tuple(
            (item.name.strip().upper(), str(item.quantity), _bracket(status_indicator(item.status)))
            for item in ticket.items
        )
        blocks.append(Block("table", columns=columns, rows=rows, widths=self.ticket_widths(rows), size="medium", spaced=True))

        blocks.append(Block("divider"))
        blocks.append(Block("pair", text="Total Items:", value=str(ticket.item_count), bold=True))
        blocks.append(Block("divider"))
        ordered_by = ticket.ordered_by or h.staff_name
        if ordered_by:
            blocks.append(Block("pair", text="Ordered By:", value=ordered_by, bold=True))
            blocks.append(Block("spacer"))
        if ticket.note:
            blocks.append(Block("pair", text="Chef Note:", value=ticket.note, bold=True, value_align="left"))
            blocks.append(Block("spacer"))
        return blocks

    def bill_blocks(self, bill: Bill) -> List[Block]:
        h = bill.header
        s = bill.summary
        blocks: List[Block] = [
            Block("title", text=f"BILL: {h.invoice_number}", align="center", bold=True),
            Block("title", text=h.restaurant_name.upper(), align="center", size="large", bold=True),
        ]
        for extra in (h.description, h.address, f"GSTIN: {h.tax_id}" if h.tax_id else None, h.phone, h.email):
            if extra:
                blocks.append(Block("text", text=extra, align="center"))
        blocks.append(Block("divider"))
        if h.customer_name:
            blocks.append(Block("pair", text="Customer", value=h.customer_name, bold=True))
        if h.order_label:
            blocks.append(Block("pair", text="Type", value=h.order_label))
        if h.timestamp:
            blocks.append(Block("pair", text="Date", value=h.timestamp))
        blocks.append(Block("divider"))

        columns = (
            Column("Item"),
            Column("Price", align="right"),
            Column("Qty", align="right"),
            Column("Total", align="right"),
        )
        rows = tuple(
            (item.name.strip(), format_amount(item.unit_price), str(item.quantity), format_amount(item.line_total))
            for item in bill.items
        )
        blocks.append(Block("table", columns=columns, rows=rows, widths=self.bill_widths(rows)))

        blocks.append(Block("divider"))
        blocks.append(Block("pair", text="Subtotal", value=self.money(s.sub_total), bold=True))
        blocks.append(Block("divider"))
        blocks.append(
            Block("pair", text=f"Discount({format_rate(s.discount_percent)}%)", value=f"-{self.money(s.discount_amount)}")
        )
        # Both tax components are always printed, even when zero.
        for component in s.tax_components:
            label = f"{component.label} ({format_rate(component.rate)}%)"
            blocks.append(Block("pair", text=label, value=self.money(component.amount)))
        blocks.append(Block("pair", text="Round Off", value=f"-{self.money(s.rounding_adjustment)}"))
        blocks.append(Block("divider"))
        blocks.append(Block("pair", text="Total", value=self.money(s.total), size="medium", bold=True))
        if s.payment is not None:
            if s.payment.details:
                for detail in s.payment.details:
                    blocks.append(Block("pair", text=detail.method, value=self.money(detail.amount)))
            elif s.payment.type:
                blocks.append(Block("pair", text="Payment", value=s.payment.type))
        if not s.is_consistent():
            logger.warning(
                "Bill %s total %.2f differs from computed %.2f; printing as given",
                h.invoice_number or "-",
                s.total,
                s.expected_total(),
            )
        if self.config.thank_you:
            blocks.append(Block("spacer"))
            blocks.append(Block("title", text=self.config.thank_you, align="center", size="medium"))
        return blocks

    def blocks(self, content: Union[OrderTicket, Bill], kind: ContentKind) -> List[Block]:
        if kind == "ticket" and isinstance(content, OrderTicket):
            return self.ticket_blocks(content)
        if kind == "bill" and isinstance(content, Bill):
            return self.bill_blocks(content)
        raise ContentError(f"Content of type {type(content).__name__} cannot be laid out as {kind!r}")

    # Output modes

    def to_lines(self, blocks: Sequence[Block]) -> List[Line]:
        lines: List[Line] = []
        for b in blocks:
            if b.kind == "spacer":
                lines.append(Line(""))
            elif b.kind == "divider":
                lines.append(Line(self.divider()))
            elif b.kind in ("title", "text"):
                # Double-width text fits half as many characters per line.
                width = self.width // 2 if b.size == "large" else self.width
                for chunk in wrap_column(b.text, width):
                    if b.align == "right":
                        chunk = chunk.rjust(width)
                    lines.append(Line(chunk, align=_line_align(b.align), size=b.size, bold=b.bold))
            elif b.kind == "pair":
                for row in self.key_value(b.text, b.value, align=b.value_align):
                    lines.append(Line(row, size=b.size, bold=b.bold))
            elif b.kind == "table":
                aligns = tuple(c.align for c in b.columns)
                header = tuple(c.label for c in b.columns)
                for row in table_rows(header, b.widths, aligns):
                    lines.append(Line(row, bold=True))
                lines.append(Line(self.divider()))
                for i, cells in enumerate(b.rows):
                    for j, row in enumerate(table_rows(cells, b.widths, aligns)):
                        lines.append(Line(row, size=b.size, kind="item" if j == 0 else "item_cont"))
                    if b.spaced and i < len(b.rows) - 1:
                        lines.append(Line(""))
        return lines

    def to_markup(self, blocks: Sequence[Block], kind: ContentKind) -> str:
        template = _environment().get_template("receipt.html")
        total_chars = max(1, self.width)
        return template.render(
            kind=kind,
            blocks=blocks,
            width=self.profile.pixel_width,
            font_px=round(self.profile.pixel_width / (total_chars * 0.6), 1),
            percent=lambda w: round(100.0 * w / total_chars, 2),
        )

    def render(
        self,
        content: Union[OrderTicket, Bill],
        kind: ContentKind,
        mode: LayoutMode = "text",
    ) -> Union[List[Line], str]:
        """
        Lay out `content` as text lines (mode="text") or an HTML document (mode="markup").
        """
        blocks = self.blocks(content, kind)
        if mode == "text":
            return self.to_lines(blocks)
        if mode == "markup":
            return self.to_markup(blocks, kind)
        raise ConfigurationError(f"Unknown layout mode: {mode!r}")


def _bracket(indicator: str) -> str:
    return f"[{indicator}]" if indicator else ""


def _line_align(align: Align) -> Align:
    # The codec only has left/center directives; right-aligned blocks are padded instead.
    return "center" if align == "center" else "left"


_ENV: Optional[Environment] = None


def _environment() -> Environment:
    global _ENV
    if _ENV is None:
        _ENV = Environment(
            loader=PackageLoader("print_agent", "templates"),
            autoescape=select_autoescape(["html"]),
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
        )
    return _ENV


__all__ = [
    "BILL_RATIOS",
    "Block",
    "Column",
    "LayoutEngine",
    "Line",
    "column_widths",
    "format_amount",
    "status_indicator",
    "table_rows",
    "wrap_column",
]
