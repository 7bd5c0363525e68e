"""
    Report rendering for Loantrack: PDF summaries with reportlab and
    spreadsheets with openpyxl. Every export is recorded in the audit trail.

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

import datetime
import logging
from collections import Counter
from io import BytesIO
from xml.sax.saxutils import escape
from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import cm
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle
from loantrack.core.audit import ActorContext, AuditService
from loantrack.core.exceptions import ReportGenerationError, Result
from loantrack.core.models import Item, ItemStatus, LoanStatus
from loantrack.core.utils import as_utc, utcnow
from loantrack.schemas.report import PDF, XLSX, ReportResult

logger = logging.getLogger(__name__)

MAX_SPREADSHEET_ROWS = 1000
TOP_CATEGORIES = 10
ACTIVITY_DAYS = 30
TITLE = "Loantrack Inventory"

STATUS_LABELS = {
    ItemStatus.Available: "Available",
    ItemStatus.OnLoan: "On loan",
    ItemStatus.Maintenance: "Maintenance",
    ItemStatus.Decommissioned: "Decommissioned",
}

HEADER_FONT = Font(bold=True, color="FFFFFF")
HEADER_FILL = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")

GRID_STYLE = TableStyle([
    ('BACKGROUND', (0, 0), (-1, 0), colors.lightgrey),
    ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
    ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
    ('VALIGN', (0, 0), (-1, -1), 'TOP'),
])


def percent(part, total):
    return f"{(part * 100.0 / total) if total else 0:.1f}%"


def _footer(canvas, doc):
    canvas.saveState()
    canvas.setFont('Helvetica', 8)
    canvas.drawCentredString(A4[0] / 2, 1 * cm, f"Page {doc.page} - {TITLE}")
    canvas.restoreState()


def render_pdf(story) -> bytes:
    buffer = BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4,
                            leftMargin=2 * cm, rightMargin=2 * cm,
                            topMargin=2 * cm, bottomMargin=2 * cm)
    doc.build(story, onFirstPage=_footer, onLaterPages=_footer)
    return buffer.getvalue()


def render_xlsx(title, headers, rows) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = title
    for col, header in enumerate(headers, start=1):
        cell = ws.cell(row=1, column=col, value=header)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
    for row_idx, row in enumerate(rows, start=2):
        for col, value in enumerate(row, start=1):
            ws.cell(row=row_idx, column=col, value=value)
    for col, header in enumerate(headers, start=1):
        ws.column_dimensions[ws.cell(row=1, column=col).column_letter].width = max(12, len(header) + 4)
    buffer = BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def stamp(now=None):
    return (now or utcnow()).strftime("%Y%m%d_%H%M%S")


class ReportService:

    def __init__(self, uow):
        self.uow = uow
        self.audit = AuditService(uow)
        self.styles = getSampleStyleSheet()

    def _heading(self, text):
        return [
            Paragraph(text, self.styles['Title']),
            Paragraph(f"Generated on {utcnow():%d/%m/%Y %H:%M:%S} UTC", self.styles['Normal']),
            Spacer(1, 0.5 * cm),
        ]

    def _render(self, kind, renderer, *args):
        try:
            return renderer(*args)
        except Exception as e:
            logger.exception("Failed to render %s report", kind)
            raise ReportGenerationError(f"Failed to render {kind} report") from e

    def _empty_inventory_story(self):
        story = self._heading("Inventory Status Report")
        story.append(Paragraph("NO DATA AVAILABLE", self.styles['Heading2']))
        story.append(Paragraph(
            "There are no items in the inventory yet. Add items and try again.",
            self.styles['Normal']))
        return story

    def _inventory_story(self, items, loans):
        total = len(items)
        by_status = Counter(i.status for i in items)
        loan_status = Counter(l.status for l in loans)

        story = self._heading("Inventory Status Report")
        story.append(Paragraph("General statistics", self.styles['Heading2']))
        rows = [["Concept", "Count", "Share"], ["Total items", total, "100%"]]
        for status in ItemStatus:
            rows.append([STATUS_LABELS[status], by_status[status], percent(by_status[status], total)])
        rows.append(["Total loans", len(loans), "-"])
        rows.append(["Active loans", loan_status[LoanStatus.Delivered], "-"])
        rows.append(["Pending loans", loan_status[LoanStatus.Pending], "-"])
        table = Table(rows, colWidths=[8 * cm, 3 * cm, 4 * cm])
        table.setStyle(GRID_STYLE)
        story.extend([table, Spacer(1, 0.8 * cm)])

        story.append(Paragraph("Distribution by category", self.styles['Heading2']))
        categories = Counter(i.category for i in items).most_common(TOP_CATEGORIES)
        cat_rows = [["Category", "Items", "Share"]]
        cat_rows.extend([name, count, percent(count, total)] for name, count in categories)
        table = Table(cat_rows, colWidths=[8 * cm, 3 * cm, 4 * cm])
        table.setStyle(GRID_STYLE)
        story.extend([table, Spacer(1, 0.8 * cm)])

        story.append(Paragraph("Summary", self.styles['Heading2']))
        story.append(Paragraph(
            f"Utilisation rate: {percent(by_status[ItemStatus.OnLoan], total)}",
            self.styles['Normal']))
        if loan_status[LoanStatus.Pending]:
            story.append(Paragraph(
                f"Pending loans: {loan_status[LoanStatus.Pending]}", self.styles['Normal']))
        story.append(Paragraph(
            f"Distinct categories: {len(set(i.category for i in items))}", self.styles['Normal']))
        return story

    def inventory_status_pdf(self, actor: ActorContext) -> Result:
        items = self.uow.items.get_all()
        loans = self.uow.loans.get_all()
        logger.info("Rendering inventory status: %d items, %d loans", len(items), len(loans))

        story = self._inventory_story(items, loans) if items else self._empty_inventory_story()
        content = self._render("inventory status", render_pdf, story)

        with self.uow.atomic(actor):
            self.audit.record(
                actor, "Reports", "EXPORT_PDF", "InventoryStatus",
                None, {"report_type": "InventoryStatus", "item_count": len(items)},
                "Inventory status report exported to PDF")
        return Result.success(ReportResult(f"inventory_status_{stamp()}.pdf", content, PDF))

    def items_pdf(self, actor: ActorContext) -> Result:
        items = self.uow.items.query().order_by(Item.code).all()
        if items:
            story = self._heading("Item Listing")
            story.append(Paragraph(f"Total: {len(items)} items", self.styles['Normal']))
            story.append(Spacer(1, 0.4 * cm))
            rows = [["Code", "Name", "Category", "Status", "Location"]]
            rows.extend(
                [i.code, Paragraph(escape(i.name), self.styles['Normal']), i.category,
                 STATUS_LABELS[i.status], i.location or ""]
                for i in items)
            table = Table(rows, colWidths=[2.5 * cm, 5.5 * cm, 3 * cm, 3 * cm, 3 * cm], repeatRows=1)
            table.setStyle(GRID_STYLE)
            story.append(table)
        else:
            story = self._empty_inventory_story()
        content = self._render("item listing", render_pdf, story)

        with self.uow.atomic(actor):
            self.audit.record(
                actor, "Reports", "EXPORT_PDF", "AllItems",
                None, {"item_count": len(items)}, "Item listing exported to PDF")
        return Result.success(ReportResult(f"items_{stamp()}.pdf", content, PDF))

    def loans_xlsx(self, actor: ActorContext) -> Result:
        loans = self.uow.loans.get_all()[:MAX_SPREADSHEET_ROWS]
        rows = [
            [loan.id,
             loan.user.name if loan.user else "Unknown",
             loan.item.name if loan.item else "Unknown",
             loan.status.name,
             loan.request_date,
             loan.delivery_date,
             loan.return_date]
            for loan in loans
        ]
        headers = ["ID", "User", "Item", "Status", "Requested", "Delivered", "Returned"]
        content = self._render("loans", render_xlsx, "Loans", headers, rows)

        with self.uow.atomic(actor):
            self.audit.record(
                actor, "Reports", "EXPORT_EXCEL", "Loans",
                None, {"loan_count": len(rows)}, "Loans exported to Excel")
        return Result.success(ReportResult(f"loans_{stamp()}.xlsx", content, XLSX))

    def user_activity_xlsx(self, actor: ActorContext, from_date=None, to_date=None) -> Result:
        to_date = as_utc(to_date) or utcnow()
        from_date = as_utc(from_date) or to_date - datetime.timedelta(days=ACTIVITY_DAYS)
        if from_date > to_date:
            return Result.invalid("from_date must not be after to_date")

        logs = self.uow.audit_logs.get_by_date_range(from_date, to_date)[:MAX_SPREADSHEET_ROWS]
        rows = [
            [log.action_date, log.action_by, log.table_name, log.action,
             log.primary_key, log.action_description or ""]
            for log in logs
        ]
        headers = ["Date", "User", "Table", "Action", "Key", "Description"]
        content = self._render("user activity", render_xlsx, "Activity", headers, rows)

        with self.uow.atomic(actor):
            self.audit.record(
                actor, "Reports", "EXPORT_EXCEL", "UserActivity",
                None, {"from_date": from_date, "to_date": to_date, "entry_count": len(rows)},
                "User activity exported to Excel")
        return Result.success(ReportResult(f"user_activity_{stamp()}.xlsx", content, XLSX))
