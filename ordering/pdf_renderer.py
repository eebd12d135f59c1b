"""
Purchase-order PDF ("bon de commande") rendering.

Layout, top to bottom:
  1. Coloured header band: logo, title, order number, emission date
  2. Metadata card: supplier, restaurant, delivery date and address
  3. Item table: bilingual product name (French over a muted
     Chinese sub-line), unit, quantity, unit price, line total.
     Rows that do not fit start a new page, which redraws the overlay
     and the header row.
  4. Totals block: item count and total amount excluding tax
  5. Footer: "Page i / n" on every page

Everything drawn comes from the stored order snapshot and the order's
creation date, and the canvas runs in reportlab's invariant mode, so
rendering the same order twice produces identical files.
"""
import logging
import os
import threading
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import ImageReader
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.cidfonts import UnicodeCIDFont
from reportlab.pdfgen import canvas

from models.purchase_order import PurchaseOrder
from .text_repair import contains_cjk, repair_text

logger = logging.getLogger(__name__)

CJK_FONT     = "STSong-Light"
LATIN_FONT   = "Helvetica"
LATIN_BOLD   = "Helvetica-Bold"

PAGE_WIDTH, PAGE_HEIGHT = A4
MARGIN        = 36
FOOTER_HEIGHT = 28
HEADER_HEIGHT = 92
CONTENT_WIDTH = PAGE_WIDTH - 2 * MARGIN

BRAND        = colors.HexColor("#1F3A5F")
BRAND_LIGHT  = colors.HexColor("#E8EEF6")
ACCENT       = colors.HexColor("#D98E04")
MUTED        = colors.HexColor("#6B7280")
ZEBRA        = colors.HexColor("#F7F8FA")
OVERLAY      = colors.HexColor("#F1F4F8")
RULE         = colors.HexColor("#D5DAE1")

# (title, width, alignment); the product column takes what is left
_COLUMNS = [
    ("Produit",  None, "left"),
    ("Unité",    62,   "left"),
    ("Qté",      42,   "right"),
    ("PU HT",    72,   "right"),
    ("Total HT", 78,   "right"),
]

ROW_HEIGHT_SINGLE = 20
ROW_HEIGHT_DOUBLE = 30
TABLE_HEADER_HEIGHT = 22
TOTALS_HEIGHT = 64

_font_lock = threading.Lock()


def register_fonts() -> None:
    """Register the built-in CJK CID font once per process."""
    with _font_lock:
        if CJK_FONT not in pdfmetrics.getRegisteredFontNames():
            pdfmetrics.registerFont(UnicodeCIDFont(CJK_FONT))


def _font_for(text: str, bold: bool = False) -> str:
    if contains_cjk(text):
        return CJK_FONT
    return LATIN_BOLD if bold else LATIN_FONT


def _fit(text: str, font: str, size: float, width: float) -> str:
    """Truncate *text* with an ellipsis so it fits in *width* points."""
    if pdfmetrics.stringWidth(text, font, size) <= width:
        return text
    ellipsis = "…" if font == CJK_FONT else "..."
    while text and pdfmetrics.stringWidth(text + ellipsis, font, size) > width:
        text = text[:-1]
    return text + ellipsis


def _column_widths() -> list[float]:
    fixed = sum(w for _, w, _ in _COLUMNS if w)
    return [w if w else CONTENT_WIDTH - fixed for _, w, _ in _COLUMNS]


@dataclass
class DocumentLine:
    primary_name: str
    secondary_name: Optional[str]
    unit: str
    quantity: int
    unit_price: float
    line_total: float


@dataclass
class OrderDocument:
    """Everything printed on a bon de commande, already cleaned up."""
    number: str
    emitted_on: datetime
    supplier_name: str
    restaurant_name: str
    delivery_date: str
    delivery_address: str
    total_items: int
    total_amount: float
    lines: list[DocumentLine] = field(default_factory=list)

    @classmethod
    def from_order(cls, order: PurchaseOrder) -> "OrderDocument":
        lines = []
        for item in order.items:
            name_fr = repair_text(item.name_fr) or None
            name_zh = repair_text(item.name_zh) or None
            primary = name_fr or name_zh or f"#{item.product_id}"
            secondary = name_zh if name_fr and name_zh and name_zh != name_fr else None
            lines.append(DocumentLine(
                primary_name=primary,
                secondary_name=secondary,
                unit=item.unit or "",
                quantity=item.quantity,
                unit_price=item.unit_price_ht,
                line_total=item.line_total,
            ))
        return cls(
            number=order.number,
            emitted_on=datetime.fromisoformat(order.created_at),
            supplier_name=order.supplier_name or "",
            restaurant_name=order.restaurant_name or "",
            delivery_date=order.delivery_date,
            delivery_address=order.delivery_address,
            total_items=order.total_items,
            total_amount=order.total_amount,
            lines=lines,
        )


class _NumberedCanvas(canvas.Canvas):
    """Canvas that defers page output so the footer can show the page count."""

    def __init__(self, *args, footer_text: str = "", **kwargs):
        super().__init__(*args, **kwargs)
        self._saved_page_states: list[dict] = []
        self._footer_text = footer_text

    def showPage(self):
        self._saved_page_states.append(dict(self.__dict__))
        self._startPage()

    def save(self):
        total = len(self._saved_page_states)
        for state in self._saved_page_states:
            self.__dict__.update(state)
            self._draw_footer(total)
            super().showPage()
        super().save()

    def _draw_footer(self, total: int) -> None:
        self.setStrokeColor(RULE)
        self.setLineWidth(0.5)
        self.line(MARGIN, MARGIN + 12, PAGE_WIDTH - MARGIN, MARGIN + 12)
        self.setFont(LATIN_FONT, 8)
        self.setFillColor(MUTED)
        self.drawString(MARGIN, MARGIN, self._footer_text)
        self.drawRightString(PAGE_WIDTH - MARGIN, MARGIN, f"Page {self._pageNumber} / {total}")


class OrderPdfRenderer:
    """
    Renders an OrderDocument to a PDF file.

    Usage:
        renderer = OrderPdfRenderer(logo_path=config.logo_path)
        renderer.render(OrderDocument.from_order(order), path)
    """

    def __init__(
        self,
        logo_path: Optional[Path] = None,
        company_name: str = "Back Office",
        currency_symbol: str = "€",
    ) -> None:
        self.logo_path = logo_path
        self.company_name = company_name
        self.currency_symbol = currency_symbol
        register_fonts()

    def render(self, document: OrderDocument, path: Path) -> Path:
        """
        Write *document* to *path*.

        The file is built next to its destination and renamed into place,
        so readers never see a half-written PDF.
        """
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_name(path.name + ".part")
        try:
            self._draw(document, tmp_path)
            os.replace(tmp_path, path)
        except Exception:
            tmp_path.unlink(missing_ok=True)
            raise
        logger.info("PDF written: %s (%d lines)", path, len(document.lines))
        return path

    # ------------------------------------------------------------------
    # Drawing
    # ------------------------------------------------------------------

    def _draw(self, doc: OrderDocument, path: Path) -> None:
        c = _NumberedCanvas(
            str(path),
            pagesize=A4,
            invariant=1,
            footer_text=f"{self.company_name} — Bon de commande {doc.number}",
        )
        c.setTitle(f"Bon de commande {doc.number}")
        c.setAuthor(self.company_name)
        c.setCreator(self.company_name)

        self._draw_overlay(c)
        y = self._draw_header_band(c, doc)
        y = self._draw_metadata_card(c, doc, y - 14)
        y = self._draw_table_header(c, y - 18)

        bottom = MARGIN + FOOTER_HEIGHT
        for index, line in enumerate(doc.lines):
            row_height = ROW_HEIGHT_DOUBLE if line.secondary_name else ROW_HEIGHT_SINGLE
            if y - row_height < bottom:
                y = self._continue_on_new_page(c, doc)
                y = self._draw_table_header(c, y)
            self._draw_row(c, line, y, row_height, zebra=index % 2 == 1)
            y -= row_height

        if y - TOTALS_HEIGHT - 12 < bottom:
            y = self._continue_on_new_page(c, doc)
        self._draw_totals(c, doc, y - 12)

        c.showPage()
        c.save()

    def _continue_on_new_page(self, c: canvas.Canvas, doc: OrderDocument) -> float:
        c.showPage()
        self._draw_overlay(c)
        top = PAGE_HEIGHT - MARGIN
        c.setFillColor(BRAND)
        c.setFont(LATIN_BOLD, 11)
        c.drawString(MARGIN, top - 12, f"Bon de commande {doc.number} (suite)")
        return top - 26

    def _draw_overlay(self, c: canvas.Canvas) -> None:
        """Decorative background: soft corner discs and a diagonal watermark."""
        c.saveState()
        c.setFillColor(OVERLAY)
        c.setStrokeColor(OVERLAY)
        c.circle(PAGE_WIDTH + 30, -30, 170, stroke=0, fill=1)
        c.circle(-50, PAGE_HEIGHT * 0.45, 90, stroke=0, fill=1)
        c.setFillColor(BRAND_LIGHT)
        c.circle(PAGE_WIDTH - 40, 60, 46, stroke=0, fill=1)

        c.translate(PAGE_WIDTH / 2, PAGE_HEIGHT / 2)
        c.rotate(35)
        c.setFillColor(OVERLAY)
        c.setFont(LATIN_BOLD, 64)
        c.drawCentredString(0, 0, "BON DE COMMANDE")
        c.restoreState()

    def _draw_header_band(self, c: canvas.Canvas, doc: OrderDocument) -> float:
        top = PAGE_HEIGHT
        band_bottom = top - HEADER_HEIGHT
        c.setFillColor(BRAND)
        c.rect(0, band_bottom, PAGE_WIDTH, HEADER_HEIGHT, stroke=0, fill=1)
        c.setFillColor(ACCENT)
        c.rect(0, band_bottom - 4, PAGE_WIDTH, 4, stroke=0, fill=1)

        logo_size = 56
        logo_x = MARGIN
        logo_y = band_bottom + (HEADER_HEIGHT - logo_size) / 2
        self._draw_logo(c, logo_x, logo_y, logo_size)

        text_x = logo_x + logo_size + 16
        c.setFillColor(colors.white)
        c.setFont(LATIN_BOLD, 22)
        c.drawString(text_x, band_bottom + 50, "Bon de commande")
        c.setFont(LATIN_FONT, 10)
        c.drawString(text_x, band_bottom + 32, self.company_name)

        c.setFont(LATIN_BOLD, 13)
        c.drawRightString(PAGE_WIDTH - MARGIN, band_bottom + 52, doc.number)
        c.setFont(LATIN_FONT, 9)
        c.drawRightString(
            PAGE_WIDTH - MARGIN, band_bottom + 34,
            f"Émis le {doc.emitted_on:%d/%m/%Y}",
        )
        return band_bottom - 4

    def _draw_logo(self, c: canvas.Canvas, x: float, y: float, size: float) -> None:
        if self.logo_path and self.logo_path.exists():
            try:
                c.drawImage(
                    ImageReader(str(self.logo_path)), x, y, size, size,
                    preserveAspectRatio=True, mask="auto",
                )
                return
            except Exception as exc:
                logger.warning("Could not draw logo %s: %s", self.logo_path, exc)

        # Monogram fallback
        c.setFillColor(colors.white)
        c.circle(x + size / 2, y + size / 2, size / 2, stroke=0, fill=1)
        initials = "".join(w[0] for w in self.company_name.split()[:2]).upper() or "BC"
        c.setFillColor(BRAND)
        c.setFont(LATIN_BOLD, size * 0.38)
        c.drawCentredString(x + size / 2, y + size / 2 - size * 0.13, initials)

    def _draw_metadata_card(self, c: canvas.Canvas, doc: OrderDocument, top: float) -> float:
        height = 84
        bottom = top - height
        c.setFillColor(colors.white)
        c.setStrokeColor(RULE)
        c.setLineWidth(0.8)
        c.roundRect(MARGIN, bottom, CONTENT_WIDTH, height, 8, stroke=1, fill=1)

        half = CONTENT_WIDTH / 2
        fields = [
            ("FOURNISSEUR", doc.supplier_name, MARGIN + 14, top - 20),
            ("RESTAURANT", doc.restaurant_name, MARGIN + half + 8, top - 20),
            ("LIVRAISON PRÉVUE", doc.delivery_date, MARGIN + 14, top - 56),
            ("ADRESSE DE LIVRAISON", doc.delivery_address, MARGIN + half + 8, top - 56),
        ]
        for label, value, x, y in fields:
            c.setFillColor(MUTED)
            c.setFont(LATIN_BOLD, 7.5)
            c.drawString(x, y, label)
            font = _font_for(value, bold=True)
            c.setFillColor(colors.black)
            c.setFont(font, 10.5)
            c.drawString(x, y - 14, _fit(value, font, 10.5, half - 24))
        return bottom

    def _draw_table_header(self, c: canvas.Canvas, top: float) -> float:
        c.setFillColor(BRAND)
        c.rect(MARGIN, top - TABLE_HEADER_HEIGHT, CONTENT_WIDTH, TABLE_HEADER_HEIGHT, stroke=0, fill=1)
        c.setFillColor(colors.white)
        c.setFont(LATIN_BOLD, 9)
        baseline = top - TABLE_HEADER_HEIGHT + 7
        x = MARGIN
        for (title, _, align), width in zip(_COLUMNS, _column_widths()):
            self._draw_cell(c, title, x, width, baseline, align)
            x += width
        return top - TABLE_HEADER_HEIGHT

    def _draw_row(self, c: canvas.Canvas, line: DocumentLine, top: float, height: float, zebra: bool) -> None:
        if zebra:
            c.setFillColor(ZEBRA)
            c.rect(MARGIN, top - height, CONTENT_WIDTH, height, stroke=0, fill=1)
        c.setStrokeColor(RULE)
        c.setLineWidth(0.4)
        c.line(MARGIN, top - height, MARGIN + CONTENT_WIDTH, top - height)

        widths = _column_widths()
        name_width = widths[0] - 12
        baseline = top - 13

        font = _font_for(line.primary_name, bold=True)
        c.setFillColor(colors.black)
        c.setFont(font, 9.5)
        c.drawString(MARGIN + 6, baseline, _fit(line.primary_name, font, 9.5, name_width))
        if line.secondary_name:
            sub_font = _font_for(line.secondary_name)
            c.setFillColor(MUTED)
            c.setFont(sub_font, 8)
            c.drawString(MARGIN + 6, baseline - 11, _fit(line.secondary_name, sub_font, 8, name_width))

        c.setFillColor(colors.black)
        values = [
            line.unit,
            str(line.quantity),
            self._money(line.unit_price),
            self._money(line.line_total),
        ]
        x = MARGIN + widths[0]
        for value, (_, _, align), width in zip(values, _COLUMNS[1:], widths[1:]):
            cell_font = _font_for(value)
            c.setFont(cell_font, 9)
            self._draw_cell(c, _fit(value, cell_font, 9, width - 12), x, width, baseline, align)
            x += width

    def _draw_totals(self, c: canvas.Canvas, doc: OrderDocument, top: float) -> None:
        width = 220
        left = PAGE_WIDTH - MARGIN - width
        c.setFillColor(BRAND_LIGHT)
        c.setStrokeColor(BRAND)
        c.setLineWidth(0.8)
        c.roundRect(left, top - TOTALS_HEIGHT, width, TOTALS_HEIGHT, 6, stroke=1, fill=1)

        c.setFillColor(colors.black)
        c.setFont(LATIN_FONT, 10)
        c.drawString(left + 12, top - 22, "Articles")
        c.drawRightString(left + width - 12, top - 22, str(doc.total_items))
        c.setFont(LATIN_BOLD, 12)
        c.drawString(left + 12, top - 46, "Total HT")
        c.drawRightString(left + width - 12, top - 46, self._money(doc.total_amount))

    @staticmethod
    def _draw_cell(c: canvas.Canvas, text: str, x: float, width: float, baseline: float, align: str) -> None:
        if align == "right":
            c.drawRightString(x + width - 6, baseline, text)
        else:
            c.drawString(x + 6, baseline, text)

    def _money(self, value: float) -> str:
        return f"{value:.2f} {self.currency_symbol}"
