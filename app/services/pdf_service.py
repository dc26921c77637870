"""
Invoice PDF rendering with reportlab.
"""
import logging
from io import BytesIO

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Image as PdfImage
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from app.config import settings
from app.exceptions import DependencyError, ValidationError
from app.models.client import Client
from app.models.invoice import Invoice
from app.models.task import Task, TaskImage
from app.services import storage_service

logger = logging.getLogger(__name__)

IMAGES_PER_ROW = 3


def _money(amount: float, currency: str) -> str:
    return f"{amount:,.2f} {currency}"


def _image_cells(images: list[TaskImage]) -> list:
    cells = []
    for img in images:
        try:
            path = storage_service.path_for(img.storage_id)
        except ValidationError:
            continue
        if not path.exists():
            logger.warning("Invoice image %s missing on disk, skipped", img.id)
            continue
        cells.append(PdfImage(str(path), width=1.9 * inch, height=1.4 * inch, kind="proportional"))
    return cells


def render_invoice(invoice: Invoice, client: Client, task: Task, images: list[TaskImage]) -> bytes:
    """Render an invoice to PDF bytes. Raises DependencyError if reportlab fails."""
    buffer = BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4, topMargin=0.5 * inch, bottomMargin=0.5 * inch)
    styles = getSampleStyleSheet()

    title_style = ParagraphStyle(
        "InvoiceTitle",
        parent=styles["Heading1"],
        fontSize=22,
        textColor=colors.HexColor("#166534"),
        alignment=TA_CENTER,
        spaceAfter=12,
    )
    heading_style = ParagraphStyle(
        "InvoiceHeading",
        parent=styles["Heading2"],
        fontSize=13,
        textColor=colors.HexColor("#1f2937"),
        spaceAfter=6,
    )
    normal_style = ParagraphStyle(
        "InvoiceNormal",
        parent=styles["Normal"],
        fontSize=10,
        textColor=colors.HexColor("#374151"),
    )

    elements = [Paragraph("TAX INVOICE", title_style), Spacer(1, 0.2 * inch)]

    issued = invoice.created_at.strftime("%d %b %Y") if invoice.created_at else ""
    due = invoice.due_date.strftime("%d %b %Y") if invoice.due_date else "-"
    info = Table(
        [[
            Paragraph(f"<b>{settings.COMPANY_NAME}</b>", normal_style),
            Paragraph(
                f"<b>Invoice #:</b> {invoice.invoice_number}<br/>"
                f"<b>Date:</b> {issued}<br/>"
                f"<b>Due:</b> {due}",
                normal_style,
            ),
        ]],
        colWidths=[3.5 * inch, 3 * inch],
    )
    info.setStyle(TableStyle([("VALIGN", (0, 0), (-1, -1), "TOP")]))
    elements += [info, Spacer(1, 0.3 * inch)]

    elements.append(Paragraph("<b>Bill To:</b>", heading_style))
    bill_to = f"<b>{client.name}</b>"
    if client.address:
        bill_to += f"<br/>{client.address}"
    if client.phone:
        bill_to += f"<br/>Phone: {client.phone}"
    elements += [Paragraph(bill_to, normal_style), Spacer(1, 0.2 * inch)]

    elements += [
        Paragraph(f"<b>Service:</b> {task.title}", normal_style),
        Spacer(1, 0.2 * inch),
    ]

    rows = [["Description", "Qty", "Unit price", "Amount"]]
    for line in invoice.items:
        rows.append([
            Paragraph(line.description, normal_style),
            f"{line.quantity:g} {line.unit}".strip(),
            _money(line.unit_price, invoice.currency),
            _money(line.total, invoice.currency),
        ])
    items_table = Table(rows, colWidths=[3 * inch, 1 * inch, 1.2 * inch, 1.3 * inch])
    items_table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#f3f4f6")),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("ALIGN", (1, 0), (-1, -1), "RIGHT"),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
        ("TOPPADDING", (0, 0), (-1, -1), 6),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
    ]))
    elements += [items_table, Spacer(1, 0.2 * inch)]

    totals = [
        ["", "", "Subtotal:", _money(invoice.subtotal, invoice.currency)],
        ["", "", f"Tax ({invoice.tax_rate:g}%):", _money(invoice.tax_amount, invoice.currency)],
    ]
    if invoice.discount:
        totals.append(["", "", "Discount:", f"-{_money(invoice.discount, invoice.currency)}"])
    totals.append(["", "", "TOTAL:", _money(invoice.total, invoice.currency)])
    totals_table = Table(totals, colWidths=[3 * inch, 1 * inch, 1.2 * inch, 1.3 * inch])
    totals_table.setStyle(TableStyle([
        ("ALIGN", (2, 0), (-1, -1), "RIGHT"),
        ("FONTNAME", (2, -1), (-1, -1), "Helvetica-Bold"),
        ("LINEABOVE", (2, -1), (-1, -1), 1, colors.black),
    ]))
    elements += [totals_table, Spacer(1, 0.3 * inch)]

    cells = _image_cells(images)
    if cells:
        elements.append(Paragraph("<b>Work photos</b>", heading_style))
        grid = [cells[i:i + IMAGES_PER_ROW] for i in range(0, len(cells), IMAGES_PER_ROW)]
        grid[-1] += [""] * (IMAGES_PER_ROW - len(grid[-1]))
        elements += [Table(grid, colWidths=[2.1 * inch] * IMAGES_PER_ROW), Spacer(1, 0.3 * inch)]

    if invoice.notes:
        elements += [Paragraph("<b>Notes:</b>", heading_style), Paragraph(invoice.notes, normal_style)]

    footer_style = ParagraphStyle("Footer", parent=styles["Normal"], fontSize=8, textColor=colors.grey, alignment=TA_CENTER)
    elements += [Spacer(1, 0.4 * inch), Paragraph("Thank you for your business!", footer_style)]

    try:
        doc.build(elements)
    except Exception as e:
        logger.error("PDF rendering failed for invoice %s: %s", invoice.invoice_number, e)
        raise DependencyError("PDF generation failed") from e
    return buffer.getvalue()
