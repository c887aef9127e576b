import re
import unittest
from datetime import datetime

from app.schemas.disposal import ChangeEntry, DisposalData, TicketEntry
from app.services.disposal_pdf import (
    CONTENT_BOTTOM,
    MAX_HISTORY_ROWS,
    MAX_TITLE_CHARS,
    PAGE_TOP,
    DisposalCertificateLayout,
    OptionalImage,
    _truncate,
    reason_box_height,
)
from app.services.identifiers import GeneratedIdentifiers
from app.services.qr_generator import encode_qr

FOLIO = "BAJA-20250101-093000125"
CODE = "ZIII-LAP0-8877-M5F3K2QO-AB12"


def _disposal_data(**overrides) -> DisposalData:
    fields = dict(
        asset_code="AST-0042",
        asset_tag="LAP-007",
        asset_type="Laptop",
        brand="Dell",
        model="Latitude 5420",
        serial_number="SN998877",
        location="Sede Centro",
        department="Finanzas",
        assigned_user="María López",
        status="Dañado",
        purchase_date="15/03/2020",
        warranty_date=None,
        reason="Pantalla rota y batería inflada.",
        requester_name="Carlos Pérez",
        request_date="01/01/2025",
    )
    fields.update(overrides)
    return DisposalData(**fields)


def _tickets(count: int) -> list[TicketEntry]:
    return [
        TicketEntry(number=100 + i, title=f"Falla recurrente número {i} " * 4, status="Cerrado", date="02/01/2025")
        for i in range(count)
    ]


def _changes(count: int) -> list[ChangeEntry]:
    return [
        ChangeEntry(field="Sede", from_value=f"Sede {i}", to_value=f"Sede {i + 1}", date="03/01/2025", by="Ana")
        for i in range(count)
    ]


def _render(data: DisposalData, asset_qr=None, document_qr=None, logo=None):
    layout = DisposalCertificateLayout(
        data,
        GeneratedIdentifiers(folio=FOLIO, verification_code=CODE),
        generated_at=datetime(2025, 1, 1, 9, 30, 0, 125000),
        asset_qr=asset_qr,
        document_qr=document_qr,
        logo=logo,
    )
    pdf = layout.render()
    return pdf, layout.report


def _pdf_page_count(pdf: bytes) -> int:
    return len(re.findall(rb"/Type\s*/Page(?![a-zA-Z])", pdf))


class DisposalLayoutTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.qr_png = encode_qr("urn:ziii:asset:AST-0042")

    def _qr(self):
        return OptionalImage(data=self.qr_png)

    def test_minimal_record_renders_two_pages_with_footers(self):
        pdf, report = _render(_disposal_data(), self._qr(), self._qr())
        self.assertTrue(pdf.startswith(b"%PDF"))
        self.assertEqual(report.page_count, 2)
        self.assertEqual(_pdf_page_count(pdf), 2)
        self.assertEqual([(s.page, s.total) for s in report.footer_stamps], [(1, 2), (2, 2)])
        self.assertEqual({s.folio for s in report.footer_stamps}, {FOLIO})

    def test_empty_histories_omit_both_sections(self):
        _pdf, report = _render(_disposal_data(tickets=[], changes=[]), self._qr(), self._qr())
        self.assertNotIn("tickets", report.sections)
        self.assertNotIn("changes", report.sections)
        self.assertEqual(
            report.sections,
            ["header", "asset", "reason", "request", "signatures", "verification"],
        )

    def test_ticket_history_caps_rows_but_reports_true_count(self):
        _pdf, report = _render(_disposal_data(tickets=_tickets(14)), self._qr(), self._qr())
        self.assertIn("tickets", report.sections)
        self.assertNotIn("changes", report.sections)
        self.assertIn("HISTORIAL DE INCIDENCIAS (14)", report.titles)
        self.assertEqual(report.rows_drawn["tickets"], MAX_HISTORY_ROWS)
        self.assertEqual(report.page_count, 2)

    def test_change_history_is_independent_of_tickets(self):
        changes = [
            ChangeEntry(field="Sede", from_value="Centro", to_value="Norte", date="03/01/2025", by="Ana"),
            ChangeEntry(field="Estado", from_value=None, to_value="Dañado", date="04/01/2025"),
        ]
        _pdf, report = _render(_disposal_data(changes=changes), self._qr(), self._qr())
        self.assertIn("changes", report.sections)
        self.assertNotIn("tickets", report.sections)
        self.assertIn("HISTORIAL DE CAMBIOS (2)", report.titles)
        self.assertEqual(report.rows_drawn["changes"], 2)

    def test_change_history_caps_rows_but_reports_true_count(self):
        _pdf, report = _render(_disposal_data(changes=_changes(12)), self._qr(), self._qr())
        self.assertIn("HISTORIAL DE CAMBIOS (12)", report.titles)
        self.assertEqual(report.rows_drawn["changes"], MAX_HISTORY_ROWS)
        self.assertEqual(report.history_rows["changes"][-1][1], "Sede 9")
        self.assertEqual(report.page_count, 2)

    def test_long_ticket_titles_are_truncated(self):
        tickets = _tickets(2)
        _pdf, report = _render(_disposal_data(tickets=tickets), self._qr(), self._qr())
        title = report.history_rows["tickets"][0][1]
        self.assertEqual(len(title), MAX_TITLE_CHARS)
        self.assertEqual(title, tickets[0].title[:47] + "...")
        self.assertEqual(report.history_rows["tickets"][0][0], "100")

    def test_oversized_change_value_is_truncated(self):
        changes = [ChangeEntry(field="Notas", from_value="a " * 3000, to_value="b", date="03/01/2025")]
        _pdf, report = _render(_disposal_data(changes=changes), self._qr(), self._qr())
        row = report.history_rows["changes"][0]
        self.assertEqual(len(row[1]), MAX_TITLE_CHARS)
        self.assertTrue(row[1].endswith("..."))
        self.assertEqual(row[2], "b")
        self.assertLessEqual(report.content_bottom, CONTENT_BOTTOM + 1e-6)
        self.assertEqual(report.page_count, 2)

    def test_missing_asset_code_leaves_asset_slot_blank(self):
        _pdf, report = _render(_disposal_data(asset_code=None), None, self._qr())
        self.assertFalse(report.asset_qr_drawn)
        self.assertTrue(report.document_qr_drawn)
        self.assertIn("verification", report.sections)
        self.assertEqual(report.page_count, 2)

    def test_long_reason_grows_the_box(self):
        reason = "El equipo presenta fallas intermitentes de encendido y sobrecalentamiento. " * 20
        _pdf, report = _render(_disposal_data(reason=reason), self._qr(), self._qr())
        print(f"[layout] reason lines={report.reason_line_count} height={report.reason_box_height}")
        self.assertGreaterEqual(report.reason_line_count, 10)
        self.assertGreater(report.reason_box_height, reason_box_height(1))

    def test_oversized_reason_continues_on_new_pages(self):
        pdf, report = _render(_disposal_data(reason="palabra " * 1500), self._qr(), self._qr())
        print(f"[layout] reason lines={report.reason_line_count} boxes={report.reason_boxes} pages={report.page_count}")
        self.assertGreaterEqual(len(report.reason_boxes), 2)
        for height in report.reason_boxes:
            self.assertLessEqual(height, CONTENT_BOTTOM - PAGE_TOP)
        self.assertLessEqual(report.content_bottom, CONTENT_BOTTOM + 1e-6)
        self.assertEqual(report.page_count, _pdf_page_count(pdf))
        self.assertEqual([s.page for s in report.footer_stamps], list(range(1, report.page_count + 1)))
        self.assertEqual(report.sections[-2:], ["signatures", "verification"])

    def test_histories_split_across_pages_below_a_long_reason(self):
        data = _disposal_data(
            reason="palabra " * 700,
            tickets=_tickets(12),
            changes=[ch.model_copy(update={"to_value": "Texto largo " * 4}) for ch in _changes(12)],
            approval_notes="Revisado en sitio. " * 100,
        )
        pdf, report = _render(data, self._qr(), self._qr())
        self.assertLessEqual(report.content_bottom, CONTENT_BOTTOM + 1e-6)
        self.assertEqual(report.rows_drawn, {"tickets": MAX_HISTORY_ROWS, "changes": MAX_HISTORY_ROWS})
        self.assertGreaterEqual(report.page_count, 3)
        self.assertEqual(report.page_count, _pdf_page_count(pdf))

    def test_short_reason_keeps_minimum_box(self):
        _pdf, report = _render(_disposal_data(reason="Obsoleto"), self._qr(), self._qr())
        self.assertEqual(report.reason_line_count, 1)
        self.assertEqual(report.reason_box_height, reason_box_height(1))
        self.assertEqual(reason_box_height(1), 15)

    def test_unreadable_qr_is_skipped_and_logged(self):
        broken = OptionalImage(data=b"definitely not a png")
        with self.assertLogs("app.services.disposal_pdf", level="WARNING") as logs:
            pdf, report = _render(_disposal_data(), broken, broken)
        self.assertFalse(report.asset_qr_drawn)
        self.assertFalse(report.document_qr_drawn)
        self.assertEqual(report.page_count, 2)
        self.assertTrue(pdf.startswith(b"%PDF"))
        self.assertTrue(any("document QR" in line for line in logs.output))

    def test_failed_capture_keeps_error(self):
        def _explode(_content):
            raise RuntimeError("encoder offline")

        with self.assertLogs("app.services.disposal_pdf", level="WARNING"):
            result = OptionalImage.capture("document QR", _explode, "payload")
        self.assertFalse(result.ok)
        self.assertIsInstance(result.error, RuntimeError)

    def test_logo_is_drawn_when_available(self):
        _pdf, report = _render(_disposal_data(), self._qr(), self._qr(), logo=OptionalImage(data=self.qr_png))
        self.assertTrue(report.logo_drawn)
        _pdf, report = _render(_disposal_data(), self._qr(), self._qr())
        self.assertFalse(report.logo_drawn)


class TruncateTests(unittest.TestCase):
    def test_short_text_is_kept(self):
        self.assertEqual(_truncate("Lento"), "Lento")
        self.assertEqual(_truncate("x" * MAX_TITLE_CHARS), "x" * MAX_TITLE_CHARS)

    def test_long_text_is_cut_with_ellipsis(self):
        self.assertEqual(_truncate("x" * (MAX_TITLE_CHARS + 1)), "x" * 47 + "...")
        self.assertEqual(_truncate("abcdefghij", limit=8), "abcde...")


if __name__ == "__main__":
    unittest.main()
