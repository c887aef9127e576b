"""Two-page layout of the asset disposal certificate.

Page 1 carries the narrative: asset snapshot, reason, request/approval data and
the optional incident and change histories. Page 2 always starts with the
signature boxes followed by the verification panel (asset QR, verification
code, document QR). Footers are stamped on every page once the page count is
known, by deferring page emission until the canvas is saved.
Content that does not fit in the space left on a page continues on the next
one, so an unusually long reason or history adds pages before the signatures.

All layout coordinates are millimetres measured from the top-left corner of
the page; the drawing helpers convert to reportlab's bottom-left points.
"""
import io
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional
from xml.sax.saxutils import escape

from reportlab.lib.colors import HexColor
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader, simpleSplit
from reportlab.pdfgen import canvas
from reportlab.platypus import Paragraph, Table, TableStyle

from app.schemas.disposal import DisposalData
from app.services.identifiers import GeneratedIdentifiers

logger = logging.getLogger(__name__)

PLACEHOLDER = "—"
MAX_HISTORY_ROWS = 10
MAX_TITLE_CHARS = 50
MAX_NOTES_CHARS = 600

# ─── PAGE GEOMETRY (mm) ───
PAGE_W = A4[0] / mm
PAGE_H = A4[1] / mm
MARGIN = 15
CONTENT_W = PAGE_W - 2 * MARGIN
FOOTER_BASELINE = PAGE_H - 12
CONTENT_BOTTOM = FOOTER_BASELINE - 10
PAGE_TOP = 20

REASON_LINE_HEIGHT = 4
REASON_MIN_HEIGHT = 15
QR_SIZE = 45
PANEL_HEIGHT = 70
SIGNATURE_BOX_HEIGHT = 50

# ─── COLOR PALETTE ───
BLUE_800 = HexColor("#1E40AF")
BLUE_500 = HexColor("#3B82F6")
BLUE_50 = HexColor("#F0F9FF")
SLATE_600 = HexColor("#475569")
ROW_TINT = HexColor("#F8FAFC")
WHITE = HexColor("#FFFFFF")
BLACK = HexColor("#000000")
GRAY_80 = HexColor("#505050")
GRAY_100 = HexColor("#646464")
GRAY_120 = HexColor("#787878")
GRAY_180 = HexColor("#B4B4B4")
GRAY_200 = HexColor("#C8C8C8")

SIGNATURES = [
    ("RESPONSABLE DEL ACTIVO", "Usuario asignado"),
    ("SUPERVISOR DE ÁREA", "Validación operativa"),
    ("JEFE DE DEPARTAMENTO", "Autorización final"),
]

LEGAL_NOTICES = [
    "Este documento es válido con firmas autorizadas",
    "Conserve este documento para registros contables",
]

FOOTER_NOTICES = [
    "DOCUMENTO OFICIAL - Válido únicamente con todas las firmas y sellos correspondientes.",
    "Cualquier alteración invalida este documento. Conservar en archivo físico por 5 años.",
]


@dataclass(frozen=True)
class OptionalImage:
    """Outcome of producing an optional visual (logo or QR bitmap).

    ``data`` holds the image bytes on success. A failed attempt keeps the
    exception in ``error``; an element that was never requested has neither.
    """

    data: Optional[bytes] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.data is not None

    @classmethod
    def capture(cls, label: str, producer: Callable[..., bytes], *args, **kwargs) -> "OptionalImage":
        try:
            return cls(data=producer(*args, **kwargs))
        except Exception as e:
            logger.warning("Could not produce %s: %s", label, e)
            return cls(error=e)


@dataclass(frozen=True)
class FooterStamp:
    page: int
    total: int
    folio: str


@dataclass
class LayoutReport:
    """What the layout actually put on the page."""

    sections: List[str] = field(default_factory=list)
    titles: List[str] = field(default_factory=list)
    rows_drawn: Dict[str, int] = field(default_factory=dict)
    history_rows: Dict[str, List[List[str]]] = field(default_factory=dict)
    reason_line_count: int = 0
    reason_box_height: float = 0.0
    reason_boxes: List[float] = field(default_factory=list)
    # Lowest point reached by page content, in mm from the top of its page
    content_bottom: float = 0.0
    logo_drawn: bool = False
    asset_qr_drawn: bool = False
    document_qr_drawn: bool = False
    footer_stamps: List[FooterStamp] = field(default_factory=list)
    page_count: int = 0


class _DeferredPageCanvas(canvas.Canvas):
    """Canvas that holds finished pages until save() so footers know the total."""

    def __init__(self, *args, on_page_finish=None, **kwargs):
        canvas.Canvas.__init__(self, *args, **kwargs)
        self._saved_page_states = []
        self._on_page_finish = on_page_finish

    def showPage(self):
        self._saved_page_states.append(dict(self.__dict__))
        self._startPage()

    def save(self):
        total = len(self._saved_page_states)
        for page, state in enumerate(self._saved_page_states, start=1):
            self.__dict__.update(state)
            if self._on_page_finish is not None:
                self._on_page_finish(self, page, total)
            canvas.Canvas.showPage(self)
        canvas.Canvas.save(self)


def reason_box_height(line_count: int) -> float:
    return max(line_count * REASON_LINE_HEIGHT + 6, REASON_MIN_HEIGHT)


def _text_or_placeholder(value) -> str:
    if value is None:
        return PLACEHOLDER
    value = str(value).strip()
    return value or PLACEHOLDER


def _truncate(text: str, limit: int = MAX_TITLE_CHARS) -> str:
    return text if len(text) <= limit else text[: limit - 3] + "..."


class DisposalCertificateLayout:
    def __init__(
        self,
        data: DisposalData,
        identifiers: GeneratedIdentifiers,
        generated_at: datetime,
        asset_qr: OptionalImage = None,
        document_qr: OptionalImage = None,
        logo: OptionalImage = None,
    ):
        self.data = data
        self.identifiers = identifiers
        self.generated_at_text = generated_at.strftime("%d/%m/%Y, %H:%M:%S")
        self.asset_qr = asset_qr or OptionalImage()
        self.document_qr = document_qr or OptionalImage()
        self.logo = logo or OptionalImage()
        self.report = LayoutReport()
        self.y = 0.0
        self.c = None

    # ─── ENTRY POINT ───

    def render(self) -> bytes:
        buffer = io.BytesIO()
        self.c = _DeferredPageCanvas(buffer, pagesize=A4, on_page_finish=self._stamp_footer)
        self.c.setTitle(f"Solicitud de baja {self.identifiers.folio}")
        self.c.setAuthor("ZIII Helpdesk")
        self.c.setSubject(f"Baja de activo {self.data.asset_tag}")

        self._draw_header()
        self._draw_asset_info()
        self._draw_reason()
        self._draw_request_info()
        if self.data.tickets:
            self._draw_ticket_history()
        if self.data.changes:
            self._draw_change_history()

        # Signatures and verification always open a fresh page
        self._new_page()
        self._draw_signatures()
        self._draw_verification_panel()

        self.c.showPage()
        self.c.save()
        self.report.page_count = len(self.report.footer_stamps)
        return buffer.getvalue()

    # ─── DRAWING PRIMITIVES ───

    def _pt_y(self, top: float) -> float:
        return (PAGE_H - top) * mm

    def draw_rect(self, x, top, w, h, fill=None, stroke=None, stroke_w=0.3, radius=0):
        self.c.saveState()
        if fill:
            self.c.setFillColor(fill)
        if stroke:
            self.c.setStrokeColor(stroke)
            self.c.setLineWidth(stroke_w)
        args = (x * mm, self._pt_y(top + h), w * mm, h * mm)
        self._reach(top + h)
        if radius > 0:
            self.c.roundRect(*args, radius * mm, fill=1 if fill else 0, stroke=1 if stroke else 0)
        else:
            self.c.rect(*args, fill=1 if fill else 0, stroke=1 if stroke else 0)
        self.c.restoreState()

    def draw_line(self, x1, top1, x2, top2, color=BLACK, width=0.5):
        self.c.saveState()
        self.c.setStrokeColor(color)
        self.c.setLineWidth(width)
        self.c.line(x1 * mm, self._pt_y(top1), x2 * mm, self._pt_y(top2))
        self.c.restoreState()

    def draw_circle(self, x, top, r, fill):
        self.c.saveState()
        self.c.setFillColor(fill)
        self.c.circle(x * mm, self._pt_y(top), r * mm, fill=1, stroke=0)
        self.c.restoreState()

    def draw_text(self, text, x, top, font="Helvetica", size=9, color=BLACK, align="left"):
        self.c.saveState()
        self.c.setFont(font, size)
        self.c.setFillColor(color)
        if align == "center":
            self.c.drawCentredString(x * mm, self._pt_y(top), text)
        elif align == "right":
            self.c.drawRightString(x * mm, self._pt_y(top), text)
        else:
            self.c.drawString(x * mm, self._pt_y(top), text)
        self.c.restoreState()

    def draw_image(self, label: str, image: OptionalImage, x, top, size) -> bool:
        """Place an optional image; failures are logged and the slot stays blank."""
        if not image.ok:
            return False
        try:
            reader = ImageReader(io.BytesIO(image.data))
            self.c.drawImage(reader, x * mm, self._pt_y(top + size), size * mm, size * mm, mask="auto")
        except Exception as e:
            logger.warning("Could not place %s on certificate %s: %s", label, self.identifiers.folio, e)
            return False
        return True

    def draw_table(self, rows, col_widths, style_cmds, repeat_rows=0) -> float:
        """Draw a table at the cursor, carrying the rest over to new pages.

        Returns the height in mm of the part drawn on the last page.
        """
        table = Table(
            rows,
            colWidths=[w * mm for w in col_widths],
            repeatRows=repeat_rows,
            splitInRow=1,
        )
        table.setStyle(
            TableStyle(
                [
                    ("VALIGN", (0, 0), (-1, -1), "TOP"),
                    ("LEFTPADDING", (0, 0), (-1, -1), 2 * mm),
                    ("RIGHTPADDING", (0, 0), (-1, -1), 2 * mm),
                    ("TOPPADDING", (0, 0), (-1, -1), 1.5 * mm),
                    ("BOTTOMPADDING", (0, 0), (-1, -1), 1.5 * mm),
                ]
                + style_cmds
            )
        )
        while True:
            available = CONTENT_BOTTOM - self.y
            _w, h = table.wrapOn(self.c, CONTENT_W * mm, available * mm)
            if h / mm <= available:
                break
            parts = table.split(CONTENT_W * mm, available * mm)
            if len(parts) < 2:
                if self.y <= PAGE_TOP:
                    logger.warning("Table row taller than a page on certificate %s", self.identifiers.folio)
                    break
                self._new_page()
                continue
            head, table = parts
            _w, head_h = head.wrapOn(self.c, CONTENT_W * mm, available * mm)
            head.drawOn(self.c, MARGIN * mm, self._pt_y(self.y + head_h / mm))
            self._reach(self.y + head_h / mm)
            self._new_page()

        height = h / mm
        table.drawOn(self.c, MARGIN * mm, self._pt_y(self.y + height))
        self._reach(self.y + height)
        return height

    def _cell(self, text, size=8, bold=False, color=BLACK) -> Paragraph:
        style = ParagraphStyle(
            "cell",
            fontName="Helvetica-Bold" if bold else "Helvetica",
            fontSize=size,
            leading=size * 1.2,
            textColor=color,
        )
        return Paragraph(escape(text), style)

    def _new_page(self):
        self.c.showPage()
        self.y = PAGE_TOP

    def _ensure_space(self, height: float):
        if self.y + height > CONTENT_BOTTOM:
            self._new_page()

    def _reach(self, bottom: float):
        self.report.content_bottom = max(self.report.content_bottom, bottom)

    def _section_title(self, title: str, underline: float = 55):
        self._ensure_space(14)
        self.draw_text(title, MARGIN, self.y, font="Helvetica-Bold", size=11, color=BLUE_800)
        self.draw_line(MARGIN, self.y + 2, MARGIN + underline, self.y + 2, color=BLUE_800, width=0.5)
        self.report.titles.append(title)
        self.y += 6

    # ─── PAGE 1 ───

    def _draw_header(self):
        folio = self.identifiers.folio
        self.draw_rect(0, 0, PAGE_W, 32, fill=BLUE_800)
        self.draw_rect(0, 32, PAGE_W, 3, fill=BLUE_500)

        self.report.logo_drawn = self.draw_image("logo", self.logo, MARGIN, 4, 24)

        self.draw_text("ZIII HELPDESK", MARGIN + 28, 14, font="Helvetica-Bold", size=16, color=WHITE)
        self.draw_text("Sistema de Gestión de Activos", MARGIN + 28, 21, size=9, color=WHITE)

        right = PAGE_W - MARGIN
        self.draw_text("SOLICITUD DE BAJA DE ACTIVO", right, 12, font="Helvetica-Bold", size=11, color=WHITE, align="right")
        self.draw_text(f"Folio: {folio}", right, 20, size=8, color=WHITE, align="right")
        self.draw_text(f"Generado: {self.generated_at_text}", right, 26, size=8, color=WHITE, align="right")
        self.report.sections.append("header")
        self.y = 42

    def _key_value_rows(self, pairs):
        rows = []
        for left_label, left_value, right_label, right_value in pairs:
            rows.append(
                [
                    self._cell(left_label, bold=True, color=GRAY_100),
                    self._cell(_text_or_placeholder(left_value)),
                    self._cell(right_label, bold=True, color=GRAY_100),
                    self._cell(_text_or_placeholder(right_value) if right_label else ""),
                ]
            )
        return rows

    def _tinted_rows(self, row_count):
        return [("BACKGROUND", (0, i), (-1, i), ROW_TINT) for i in range(1, row_count, 2)]

    def _draw_asset_info(self):
        d = self.data
        self._section_title("INFORMACIÓN DEL ACTIVO")
        rows = self._key_value_rows(
            [
                ("Etiqueta", d.asset_tag, "Tipo", d.asset_type),
                ("Marca", d.brand, "Modelo", d.model),
                ("No. Serie", d.serial_number, "Estado", d.status),
                ("Sede", d.location, "Departamento", d.department),
                ("Usuario", d.assigned_user, "", None),
                ("F. Compra", d.purchase_date, "Garantía", d.warranty_date),
            ]
        )
        height = self.draw_table(rows, [25, 55, 25, 55], self._tinted_rows(len(rows)))
        self.report.sections.append("asset")
        self.y += height + 8

    def _draw_reason(self):
        self._section_title("MOTIVO DE LA SOLICITUD")
        lines = simpleSplit(self.data.reason, "Helvetica", 9, (CONTENT_W - 6) * mm)
        pending = lines
        while True:
            fits = int((CONTENT_BOTTOM - self.y - 6) // REASON_LINE_HEIGHT)
            if fits < 3 and self.y > PAGE_TOP:
                self._new_page()
                continue
            chunk, pending = pending[:fits], pending[fits:]
            height = reason_box_height(len(chunk))
            self.draw_rect(MARGIN, self.y, CONTENT_W, height, fill=ROW_TINT, stroke=GRAY_200, radius=2)
            for i, line in enumerate(chunk):
                self.draw_text(line, MARGIN + 3, self.y + 5 + i * REASON_LINE_HEIGHT, size=9)
            self.report.reason_boxes.append(height)
            if not pending:
                break
            self._new_page()

        self.report.reason_line_count = len(lines)
        self.report.reason_box_height = sum(self.report.reason_boxes)
        self.report.sections.append("reason")
        self.y += height + 8

    def _draw_request_info(self):
        d = self.data
        self._section_title("DATOS DE LA SOLICITUD")
        rows = self._key_value_rows(
            [
                ("Solicitante", d.requester_name, "Fecha Solicitud", d.request_date),
                ("Revisado por", d.approver_name, "Fecha Revisión", d.approval_date),
            ]
        )
        rows.append(
            [
                self._cell("Observaciones", bold=True, color=GRAY_100),
                self._cell(_truncate(_text_or_placeholder(d.approval_notes), MAX_NOTES_CHARS)),
                "",
                "",
            ]
        )
        style = self._tinted_rows(len(rows)) + [("SPAN", (1, 2), (3, 2))]
        height = self.draw_table(rows, [25, 55, 30, 50], style)
        self.report.sections.append("request")
        self.y += height + 8

    def _history_table(self, key, header, body, col_widths):
        body = [[_truncate(_text_or_placeholder(v)) for v in row] for row in body]
        rows = [[self._cell(h, size=7, bold=True, color=WHITE) for h in header]]
        rows.extend([self._cell(v, size=7) for v in row] for row in body)
        style = [
            ("BACKGROUND", (0, 0), (-1, 0), SLATE_600),
            ("ROWBACKGROUNDS", (0, 1), (-1, -1), [WHITE, ROW_TINT]),
        ]
        height = self.draw_table(rows, col_widths, style, repeat_rows=1)
        self.report.history_rows[key] = body
        self.report.rows_drawn[key] = len(body)
        self.report.sections.append(key)
        self.y += height + 8

    def _draw_ticket_history(self):
        tickets = self.data.tickets
        self._section_title(f"HISTORIAL DE INCIDENCIAS ({len(tickets)})", underline=60)
        body = [[t.number, t.title, t.status, t.date] for t in tickets[:MAX_HISTORY_ROWS]]
        self._history_table("tickets", ["#", "Título", "Estado", "Fecha"], body, [15, 95, 25, 25])

    def _draw_change_history(self):
        changes = self.data.changes
        self._section_title(f"HISTORIAL DE CAMBIOS ({len(changes)})", underline=60)
        body = [
            [ch.field, ch.from_value, ch.to_value, ch.date, ch.by]
            for ch in changes[:MAX_HISTORY_ROWS]
        ]
        self._history_table("changes", ["Campo", "Anterior", "Nuevo", "Fecha", "Por"], body, [30, 45, 45, 25, 35])

    # ─── PAGE 2 ───

    def _draw_signatures(self):
        self._section_title("AUTORIZACIONES", underline=40)
        self.y += 4

        box_w = (CONTENT_W - 16) / 3
        box_h = SIGNATURE_BOX_HEIGHT
        top = self.y
        for i, (role, desc) in enumerate(SIGNATURES):
            x = MARGIN + i * (box_w + 8)
            self.draw_rect(x, top, box_w, box_h, fill=WHITE, stroke=GRAY_180, radius=2)

            self.draw_circle(x + 8, top + 8, 5, fill=BLUE_800)
            self.draw_text(str(i + 1), x + 8, top + 9.5, font="Helvetica-Bold", size=8, color=WHITE, align="center")
            self.draw_text(role, x + 15, top + 9, font="Helvetica-Bold", size=7, color=BLUE_800)
            self.draw_text(desc, x + 15, top + 14, size=6, color=GRAY_120)

            self.draw_line(x + 5, top + box_h - 18, x + box_w - 5, top + box_h - 18)
            self.draw_text("Nombre:", x + 5, top + box_h - 12, size=6, color=GRAY_80)
            self.draw_line(x + 18, top + box_h - 12, x + box_w - 5, top + box_h - 12)
            self.draw_text("Fecha:", x + 5, top + box_h - 6, size=6, color=GRAY_80)
            self.draw_line(x + 16, top + box_h - 6, x + box_w / 2 - 2, top + box_h - 6)
            self.draw_text("Hora:", x + box_w / 2 + 2, top + box_h - 6, size=6, color=GRAY_80)
            self.draw_line(x + box_w / 2 + 12, top + box_h - 6, x + box_w - 5, top + box_h - 6)

        self.report.sections.append("signatures")
        self.y = top + box_h + 10

    def _draw_verification_panel(self):
        top = self.y
        folio = self.identifiers.folio
        self.draw_rect(MARGIN, top, CONTENT_W, PANEL_HEIGHT, fill=BLUE_50, stroke=BLUE_500, radius=2)
        self.draw_text("CÓDIGOS DE IDENTIFICACIÓN Y VERIFICACIÓN", MARGIN + 4, top + 6, font="Helvetica-Bold", size=9, color=BLUE_800)

        # Left slot: asset QR, left blank when there is no asset code
        left_x = MARGIN + 10
        if self.data.asset_code and self.draw_image("asset QR", self.asset_qr, left_x, top + 10, QR_SIZE):
            self.report.asset_qr_drawn = True
            self.draw_text("QR Activo", left_x + QR_SIZE / 2, top + QR_SIZE + 12, font="Helvetica-Bold", size=7, align="center")
            self.draw_text(self.data.asset_code, left_x + QR_SIZE / 2, top + QR_SIZE + 16, font="Courier", size=6, align="center")

        center_x = MARGIN + CONTENT_W / 2
        self.draw_text("CÓDIGO DE VERIFICACIÓN", center_x, top + 13, font="Helvetica-Bold", size=7, color=BLUE_800, align="center")
        code_lines = simpleSplit(self.identifiers.verification_code, "Courier-Bold", 8, 65 * mm)
        for i, line in enumerate(code_lines):
            self.draw_text(line, center_x, top + 19 + i * 3.5, font="Courier-Bold", size=8, align="center")
        self.draw_text(f"Folio: {folio}", center_x, top + 30, size=7, color=GRAY_100, align="center")
        self.draw_text(f"Generado: {self.generated_at_text}", center_x, top + 35, size=7, color=GRAY_100, align="center")
        for i, notice in enumerate(LEGAL_NOTICES):
            self.draw_text(notice, center_x, top + 42 + i * 5, size=6, color=GRAY_100, align="center")

        right_x = PAGE_W - MARGIN - 55
        if self.draw_image("document QR", self.document_qr, right_x, top + 10, QR_SIZE):
            self.report.document_qr_drawn = True
            self.draw_text("QR Documento", right_x + QR_SIZE / 2, top + QR_SIZE + 12, font="Helvetica-Bold", size=7, align="center")

        self.report.sections.append("verification")
        self.y = top + PANEL_HEIGHT + 5

    # ─── FOOTER (finishing pass) ───

    def _stamp_footer(self, _canvas, page: int, total: int):
        folio = self.identifiers.folio
        self.draw_line(MARGIN, FOOTER_BASELINE - 5, PAGE_W - MARGIN, FOOTER_BASELINE - 5, color=GRAY_200, width=0.3)
        for i, notice in enumerate(FOOTER_NOTICES):
            self.draw_text(notice, MARGIN, FOOTER_BASELINE + i * 4, size=6, color=GRAY_120)
        right = PAGE_W - MARGIN
        self.draw_text(f"Folio: {folio}", right, FOOTER_BASELINE, size=6, color=GRAY_120, align="right")
        self.draw_text(f"Pág. {page} de {total}", right, FOOTER_BASELINE + 4, size=6, color=GRAY_120, align="right")
        self.report.footer_stamps.append(FooterStamp(page=page, total=total, folio=folio))
