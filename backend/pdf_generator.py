"""
PDF report generators for inspection job packs.

Four reports, each built with ReportLab platypus from pre-fetched rows:

1. Defect / Anomaly Report - one detail sheet per anomaly with photos
2. Defect Summary          - landscape table of all anomalies by priority
3. Diver Log               - movements per dive deployment
4. Video Log               - deduplicated events per video tape

Every page carries the same header band (logo, company, report title,
revision, page x of y, date, form no) drawn from the page callback, and a
footer with page number and print date. Documents are built twice: the
first pass counts pages so the second can print "Page x of N".

Output is returned as bytes when ReportConfig.return_blob is set, otherwise
written to {prefix}_{ReportType}.pdf and the file path is returned.
"""

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from io import BytesIO
from typing import Any, Callable, Dict, List, Optional, Union
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_LEFT
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import (
    Image,
    KeepTogether,
    PageBreak,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

import attachments as storage
from config import COMPANY_NAME, COMPANY_LOGO_PATH, REPORT_FORM_NO, REPORT_REVISION, REPORT_OUTPUT_FOLDER
from report_data import (
    DEFAULT_PRIORITY_COLOR,
    RECTIFIED_COLOR,
    format_counter,
    format_datetime,
    format_depth,
    friendly_event_type,
    is_rectified,
    priority_style,
    sort_by_priority,
    sort_tapes,
)

logger = logging.getLogger(__name__)

# =============================================================================
# STYLING CONSTANTS
# =============================================================================

BRAND_BLUE = colors.HexColor("#1f3a5f")
BRAND_LIGHT = colors.HexColor("#e8eef6")
LABEL_GRAY = colors.HexColor("#e5e7eb")
ROW_ALT = colors.HexColor("#f8f9fa")
RECTIFIED_TINT = (229, 255, 229)

MARGIN = 12 * mm
HEADER_HEIGHT = 24 * mm
FOOTER_HEIGHT = 10 * mm

IMAGE_EXTENSIONS = {"png", "jpg", "jpeg", "gif"}

REPORT_ANOMALY = "AnomalyReport"
REPORT_DEFECT_SUMMARY = "DefectSummary"
REPORT_DIVER_LOG = "DiverLog"
REPORT_VIDEO_LOG = "VideoLog"


@dataclass
class ReportConfig:
    """Per-request report options."""
    report_no_prefix: str = "REPORT"
    report_year: Optional[str] = None
    prepared_by: str = ""
    reviewed_by: str = ""
    approved_by: str = ""
    watermark: str = ""
    show_contractor_logo: bool = True
    show_page_numbers: bool = True
    print_friendly: bool = False
    return_blob: bool = True
    output_dir: Optional[str] = None

    _ALIASES = {
        "reportNoPrefix": "report_no_prefix",
        "reportYear": "report_year",
        "preparedBy": "prepared_by",
        "reviewedBy": "reviewed_by",
        "approvedBy": "approved_by",
        "showContractorLogo": "show_contractor_logo",
        "showPageNumbers": "show_page_numbers",
        "printFriendly": "print_friendly",
        "returnBlob": "return_blob",
    }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ReportConfig":
        """Build from request data; camelCase keys are accepted too."""
        config = cls()
        for key, value in (data or {}).items():
            name = cls._ALIASES.get(key, key)
            if name.startswith("_") or not hasattr(config, name) or value is None:
                continue
            default = getattr(cls, name, None)
            if isinstance(default, bool) and isinstance(value, str):
                value = value.lower() in ("1", "true", "yes", "on")
            setattr(config, name, value)
        return config


@dataclass
class CompanySettings:
    company_name: str = ""
    logo_path: Optional[str] = None

    @classmethod
    def from_config(cls) -> "CompanySettings":
        return cls(company_name=COMPANY_NAME, logo_path=COMPANY_LOGO_PATH or None)


@dataclass
class ReportContext:
    """Job pack / structure details printed on every report."""
    project_description: str = ""
    field_name: str = ""
    installation: str = ""
    sow_report_no: str = ""
    vessel: str = ""
    contractor_logo_path: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)


def _get_styles() -> Dict[str, ParagraphStyle]:
    """Create consistent paragraph styles for the reports."""
    base = getSampleStyleSheet()

    return {
        "subsection": ParagraphStyle(
            "Subsection",
            parent=base["Heading3"],
            fontSize=10,
            textColor=BRAND_BLUE,
            spaceBefore=8,
            spaceAfter=4,
        ),
        "defect_title": ParagraphStyle(
            "DefectTitle",
            parent=base["Normal"],
            fontName="Helvetica-Bold",
            fontSize=10,
            spaceAfter=4,
        ),
        "body": ParagraphStyle(
            "Body",
            parent=base["Normal"],
            fontSize=9,
            spaceAfter=6,
            leading=12,
        ),
        "table_header": ParagraphStyle(
            "TableHeader",
            parent=base["Normal"],
            fontName="Helvetica-Bold",
            fontSize=8,
            textColor=colors.white,
            alignment=TA_CENTER,
        ),
        "table_cell": ParagraphStyle(
            "TableCell",
            parent=base["Normal"],
            fontSize=7.5,
            leading=9.5,
        ),
        "label": ParagraphStyle(
            "Label",
            parent=base["Normal"],
            fontName="Helvetica-Bold",
            fontSize=8,
            leading=10,
        ),
        "section_bar": ParagraphStyle(
            "SectionBar",
            parent=base["Normal"],
            fontName="Helvetica-Bold",
            fontSize=8.5,
            textColor=colors.white,
            alignment=TA_LEFT,
        ),
        "empty": ParagraphStyle(
            "Empty",
            parent=base["Normal"],
            fontSize=10,
            textColor=colors.gray,
            alignment=TA_CENTER,
            spaceBefore=30,
        ),
    }


def _text(value: Any, fallback: str = "-") -> str:
    if value is None or value == "":
        return fallback
    return escape(str(value)).replace("\n", "<br/>")


def _cell(value: Any, style: ParagraphStyle, fallback: str = "-") -> Paragraph:
    return Paragraph(_text(value, fallback), style)


def _rgb(triple) -> colors.Color:
    r, g, b = triple
    return colors.Color(r / 255.0, g / 255.0, b / 255.0)


def _tint(bg, ratio: float = 0.80):
    """Very light tint of a priority color for the findings cell."""
    if tuple(bg) == DEFAULT_PRIORITY_COLOR[0]:
        return (255, 255, 255)
    return tuple(min(255, c + int((255 - c) * ratio)) for c in bg)


# =============================================================================
# PAGE FURNITURE
# =============================================================================

class _PagePainter:
    """onFirstPage / onLaterPages callback drawing the header band and footer."""

    def __init__(self, title: str, company: CompanySettings, config: ReportConfig,
                 context: ReportContext, total_pages: Optional[int] = None):
        self.title = title
        self.company = company
        self.config = config
        self.context = context
        self.total_pages = total_pages
        self.page_count = 0
        self.printed = datetime.now().strftime("%d/%m/%Y %H:%M")

    def _logo(self) -> Optional[str]:
        candidates = []
        if self.config.show_contractor_logo and self.context.contractor_logo_path:
            candidates.append(self.context.contractor_logo_path)
        if self.company.logo_path:
            candidates.append(self.company.logo_path)
        for path in candidates:
            if path and os.path.exists(path):
                return path
        return None

    def __call__(self, canvas, doc):
        self.page_count = max(self.page_count, canvas.getPageNumber())
        page_w, page_h = doc.pagesize
        canvas.saveState()
        self._draw_header(canvas, doc, page_w, page_h)
        if self.config.watermark:
            self._draw_watermark(canvas, page_w, page_h)
        self._draw_footer(canvas, doc, page_w)
        canvas.restoreState()

    def _page_label(self, canvas) -> str:
        total = self.total_pages or canvas.getPageNumber()
        return f"Page {canvas.getPageNumber()} of {total}"

    def _draw_header(self, canvas, doc, page_w, page_h):
        top = page_h - MARGIN
        band_y = top - HEADER_HEIGHT
        width = page_w - 2 * MARGIN
        side_w = 48 * mm

        if self.config.print_friendly:
            canvas.setStrokeColor(colors.black)
            canvas.setFillColor(colors.white)
            canvas.rect(MARGIN, band_y, width, HEADER_HEIGHT, stroke=1, fill=1)
            text_color = colors.black
        else:
            canvas.setFillColor(BRAND_BLUE)
            canvas.rect(MARGIN, band_y, width, HEADER_HEIGHT, stroke=0, fill=1)
            text_color = colors.white

        logo = self._logo()
        if logo:
            try:
                canvas.drawImage(logo, MARGIN + 2 * mm, band_y + 2 * mm,
                                 width=side_w - 4 * mm, height=HEADER_HEIGHT - 4 * mm,
                                 preserveAspectRatio=True, mask="auto")
            except (IOError, OSError) as e:
                logger.warning(f"Could not draw report logo {logo}: {e}")

        canvas.setFillColor(text_color)
        center_x = MARGIN + width / 2
        canvas.setFont("Helvetica-Bold", 10)
        canvas.drawCentredString(center_x, top - 8 * mm, self.company.company_name or "")
        canvas.setFont("Helvetica-Bold", 13)
        canvas.drawCentredString(center_x, top - 16 * mm, self.title.upper())

        right_x = MARGIN + width - 2 * mm
        canvas.setFont("Helvetica", 7.5)
        lines = [
            f"Revision: {REPORT_REVISION}",
            self._page_label(canvas),
            f"Date: {datetime.now().strftime('%d/%m/%Y')}",
            f"Form No: {REPORT_FORM_NO or '-'}",
        ]
        for i, line in enumerate(lines):
            canvas.drawRightString(right_x, top - (5 + i * 5) * mm, line)

    def _draw_watermark(self, canvas, page_w, page_h):
        canvas.saveState()
        canvas.setFont("Helvetica-Bold", 60)
        canvas.setFillColor(colors.Color(0.85, 0.85, 0.85, alpha=0.35))
        canvas.translate(page_w / 2, page_h / 2)
        canvas.rotate(45)
        canvas.drawCentredString(0, 0, self.config.watermark)
        canvas.restoreState()

    def _draw_footer(self, canvas, doc, page_w):
        canvas.setFont("Helvetica", 8)
        canvas.setFillColor(colors.gray)
        y = MARGIN / 2 + 2 * mm
        canvas.drawString(MARGIN, y, f"Printed: {self.printed}")
        if self.config.show_page_numbers:
            canvas.drawRightString(page_w - MARGIN, y, self._page_label(canvas))


def _render(title: str, pagesize, build_elements: Callable[[], List],
            company: CompanySettings, config: ReportConfig, context: ReportContext) -> bytes:
    """Build the document twice so every page knows the total page count."""

    def build(total_pages: Optional[int]):
        buffer = BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=pagesize,
            leftMargin=MARGIN,
            rightMargin=MARGIN,
            topMargin=MARGIN + HEADER_HEIGHT + 4 * mm,
            bottomMargin=MARGIN + FOOTER_HEIGHT,
            title=title,
            author=company.company_name or "Inspection Dashboard",
        )
        painter = _PagePainter(title, company, config, context, total_pages)
        doc.build(build_elements(), onFirstPage=painter, onLaterPages=painter)
        return buffer.getvalue(), painter.page_count

    _, total = build(None)
    pdf_bytes, _ = build(total)
    return pdf_bytes


def report_filename(config: ReportConfig, report_type: str) -> str:
    prefix = config.report_no_prefix or "REPORT"
    if config.report_year:
        prefix = f"{prefix}-{config.report_year}"
    return f"{prefix}_{report_type}.pdf"


def _deliver(pdf_bytes: bytes, config: ReportConfig, report_type: str) -> Union[bytes, str]:
    if config.return_blob:
        return pdf_bytes
    folder = config.output_dir or REPORT_OUTPUT_FOLDER
    os.makedirs(folder, exist_ok=True)
    path = os.path.join(folder, report_filename(config, report_type))
    with open(path, "wb") as f:
        f.write(pdf_bytes)
    logger.info(f"Report written to {path}")
    return path


def _section_bar(text: str, styles: Dict, width: float) -> Table:
    bar = Table([[Paragraph(_text(text), styles["section_bar"])]], colWidths=[width])
    bar.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, -1), BRAND_BLUE),
        ("TOPPADDING", (0, 0), (-1, -1), 4),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
    ]))
    return bar


def _grid_table(table_data: List[List], col_widths: List[float]) -> Table:
    table = Table(table_data, colWidths=col_widths, repeatRows=1)
    style_commands = [
        ("BACKGROUND", (0, 0), (-1, 0), BRAND_BLUE),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.gray),
        ("TOPPADDING", (0, 0), (-1, -1), 3),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 3),
    ]
    for i in range(2, len(table_data), 2):
        style_commands.append(("BACKGROUND", (0, i), (-1, i), ROW_ALT))
    table.setStyle(TableStyle(style_commands))
    return table


# =============================================================================
# 1. DEFECT / ANOMALY REPORT
# =============================================================================

def _rov_diver(record: Dict[str, Any]):
    if record.get("diver_name"):
        return "Diver:", record["diver_name"]
    if record.get("rov_name"):
        return "ROV:", record["rov_name"]
    if record.get("deployment_no"):
        return "ROV Dep:", record["deployment_no"]
    return "ROV/Diver:", "N/A"


def _recording(record: Dict[str, Any]) -> str:
    tape = (record.get("tape_no") or "").strip()
    ref = (record.get("video_ref") or "").strip()
    return f"{tape} {ref}".strip() or "N/A"


def _attachment_images(record: Dict[str, Any], width: float, max_height: float) -> List[Image]:
    images = []
    for att in record.get("attachments") or []:
        meta = att.get("meta") or {}
        path = meta.get("file_path")
        if not path or storage.file_extension(path) not in IMAGE_EXTENSIONS:
            continue
        local = storage.local_path(meta.get("bucket") or "attachments", path)
        if not os.path.exists(local):
            logger.warning(f"Attachment file missing for report: {local}")
            continue
        img = Image(local)
        scale = min(width / img.imageWidth, max_height / img.imageHeight, 1.0)
        img.drawWidth = img.imageWidth * scale
        img.drawHeight = img.imageHeight * scale
        images.append(img)
    return images


def _build_anomaly_sheet(record: Dict[str, Any], context: ReportContext,
                         styles: Dict, width: float) -> List:
    elements = []
    label = styles["label"]
    cell = styles["table_cell"]

    priority = record.get("priority") or "Normal"
    bg, text = priority_style(priority, None, record.get("priority_color"))
    inspected = format_datetime(record.get("inspection_date")) if record.get("inspection_date") else "N/A"
    vessel = record.get("main_vessel") or record.get("dive_vessel") or context.vessel or "N/A"
    rov_label, rov_value = _rov_diver(record)

    grid = [
        [Paragraph("Project Description:", label), _cell(context.project_description, cell, "N/A"), "", ""],
        [Paragraph("Priority:", label), Paragraph(f"<b>{_text(priority)}</b>", cell),
         Paragraph("Anomaly Ref:", label), _cell(record.get("display_ref_no") or record.get("ref_no"), cell, "N/A")],
        [Paragraph("Field:", label), _cell(context.field_name, cell, "N/A"),
         Paragraph("Installation:", label), _cell(context.installation, cell, "N/A")],
        [Paragraph("Report No.:", label), _cell(record.get("sow_report_no") or context.sow_report_no, cell, "N/A"),
         Paragraph("Date:", label), _cell(inspected, cell)],
        [Paragraph("Vessel:", label), _cell(vessel, cell),
         Paragraph("DVD/Recording:", label), _cell(_recording(record), cell)],
        [Paragraph(rov_label, label), _cell(rov_value, cell),
         Paragraph("Component:", label), _cell(record.get("component_qid"), cell, "N/A")],
    ]
    col = width / 4
    table = Table(grid, colWidths=[col * 0.8, col * 1.2, col * 0.8, col * 1.2])
    table.setStyle(TableStyle([
        ("SPAN", (1, 0), (3, 0)),
        ("BACKGROUND", (0, 0), (0, -1), LABEL_GRAY),
        ("BACKGROUND", (2, 1), (2, -1), LABEL_GRAY),
        ("BACKGROUND", (1, 1), (1, 1), _rgb(bg)),
        ("TEXTCOLOR", (1, 1), (1, 1), _rgb(text)),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.black),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
    ]))
    elements.append(table)
    elements.append(Spacer(1, 8))

    elements.append(Paragraph("Anomaly Description:", styles["subsection"]))
    defect_title = record.get("defect_type") or "VARIATION TO SPECIFICATION"
    elements.append(Paragraph(f"<u>{_text(defect_title.upper())}</u>", styles["defect_title"]))
    elements.append(Paragraph(_text(record.get("description") or record.get("observations"), "No description."),
                              styles["body"]))
    if is_rectified(record) and record.get("rectified_remarks"):
        elements.append(Paragraph(f"<b>Rectified:</b> {_text(record['rectified_remarks'])}", styles["body"]))

    images = _attachment_images(record, width - 10 * mm, 110 * mm)
    if images:
        elements.append(Paragraph("Photo/Video Capture/Sketch:", styles["subsection"]))
        caption = (record.get("description") or "")[:100]
        for i, img in enumerate(images, start=1):
            elements.append(KeepTogether([
                img,
                Paragraph(f"Photo {i}: {_text(caption, '')}", styles["body"]),
            ]))
    return elements


def generate_defect_anomaly_report(records: List[Dict[str, Any]], context: ReportContext,
                                   company: Optional[CompanySettings] = None,
                                   config: Optional[ReportConfig] = None) -> Union[bytes, str]:
    """
    One detail sheet (one or more pages) per anomaly.

    Args:
        records: anomaly rows, each optionally carrying "attachments"
        context: job pack / structure details
        company: header settings (defaults from configuration)
        config: report options

    Returns:
        PDF bytes, or the written file path when config.return_blob is False
    """
    company = company or CompanySettings.from_config()
    config = config or ReportConfig()
    styles = _get_styles()
    width = A4[0] - 2 * MARGIN

    def build_elements():
        if not records:
            return [Paragraph("No anomalies found.", styles["empty"])]
        elements = []
        for i, record in enumerate(records):
            if i > 0:
                elements.append(PageBreak())
            elements.extend(_build_anomaly_sheet(record, context, styles, width))
        return elements

    pdf_bytes = _render("Anomaly Report", A4, build_elements, company, config, context)
    logger.info(f"Anomaly report generated: {len(records)} anomalies")
    return _deliver(pdf_bytes, config, REPORT_ANOMALY)


# =============================================================================
# 2. DEFECT SUMMARY
# =============================================================================

def _build_summary_subheader(context: ReportContext, count: int, styles: Dict) -> List:
    return [
        Paragraph(
            f"<b>Project:</b> {_text(context.project_description)} &nbsp;&nbsp; "
            f"<b>Installation:</b> {_text(context.installation)} &nbsp;&nbsp; "
            f"<b>Report No.:</b> {_text(context.sow_report_no)} &nbsp;&nbsp; "
            f"<b>Total Anomalies:</b> {count}",
            styles["body"],
        ),
    ]


def _build_priority_legend(color_map: Dict[str, str], styles: Dict) -> List:
    entries = sort_by_priority([{"priority": k} for k in color_map])
    if not entries:
        return []
    row = []
    style_commands = [("GRID", (0, 0), (-1, -1), 0.5, colors.gray)]
    for i, entry in enumerate(entries):
        name = entry["priority"]
        bg, text = priority_style(name, color_map)
        row.append(Paragraph(_text(name.title()), styles["table_cell"]))
        style_commands.append(("BACKGROUND", (i, 0), (i, 0), _rgb(bg)))
        style_commands.append(("TEXTCOLOR", (i, 0), (i, 0), _rgb(text)))
    legend = Table([row], colWidths=[28 * mm] * len(row), hAlign="LEFT")
    legend.setStyle(TableStyle(style_commands))
    return [legend, Spacer(1, 6)]


def _build_summary_table(records: List[Dict[str, Any]], color_map: Dict[str, str],
                         styles: Dict, width: float) -> Table:
    header_style = styles["table_header"]
    cell = styles["table_cell"]
    headers = ["#", "Anomaly Ref No.", "Recording\n(Counter)", "Defect Code",
               "Defect Type", "Priority", "Inspection Findings"]
    table_data = [[Paragraph(_text(h), header_style) for h in headers]]
    style_commands = []

    for idx, rec in enumerate(records, start=1):
        priority = rec.get("priority") or "-"
        bg, text = priority_style(priority, color_map, rec.get("priority_color"))
        rectified = is_rectified(rec)

        tape = (rec.get("tape_no") or "").strip()
        counter = format_counter(rec.get("video_ref"))
        if tape:
            recording = f"{tape} ({counter})" if counter else tape
        else:
            recording = counter or "-"

        findings = rec.get("description") or rec.get("observations") or "-"
        if rectified and rec.get("rectified_remarks"):
            findings += f"\n\nRectified: {rec['rectified_remarks']}"
        priority_text = f"{priority}\nRECTIFIED" if rectified else priority

        table_data.append([
            Paragraph(f"<b>{idx}</b>", cell),
            _cell(rec.get("display_ref_no") or rec.get("ref_no") or f"#{idx}", cell),
            _cell(recording, cell),
            _cell(rec.get("defect_type"), cell),
            _cell(rec.get("category"), cell),
            Paragraph(f"<b>{_text(priority_text)}</b>", ParagraphStyle(
                f"Priority{idx}", parent=cell, alignment=TA_CENTER,
                textColor=_rgb(RECTIFIED_COLOR[1] if rectified else text),
            )),
            _cell(findings, cell),
        ])
        cell_bg = RECTIFIED_COLOR[0] if rectified else bg
        findings_bg = RECTIFIED_TINT if rectified else _tint(bg)
        style_commands.append(("BACKGROUND", (5, idx), (5, idx), _rgb(cell_bg)))
        style_commands.append(("BACKGROUND", (6, idx), (6, idx), _rgb(findings_bg)))

    fixed = [8 * mm, 28 * mm, 30 * mm, 35 * mm, 22 * mm, 20 * mm]
    table = Table(table_data, colWidths=fixed + [width - sum(fixed)], repeatRows=1)
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), BRAND_BLUE),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.gray),
        ("TOPPADDING", (0, 0), (-1, -1), 3),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 3),
    ] + style_commands))
    return table


def _build_signatories(config: ReportConfig, styles: Dict, width: float) -> List:
    label = styles["label"]
    cell = styles["table_cell"]
    col = width / 3
    rows = [
        [Paragraph("Prepared By", label), Paragraph("Reviewed By", label), Paragraph("Approved By", label)],
        [_cell(config.prepared_by, cell, ""), _cell(config.reviewed_by, cell, ""), _cell(config.approved_by, cell, "")],
        [Paragraph("Signature:", cell) for _ in range(3)],
        [Paragraph("Date:", cell) for _ in range(3)],
    ]
    table = Table(rows, colWidths=[col] * 3, rowHeights=[None, None, 14 * mm, None])
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), BRAND_LIGHT),
        ("BOX", (0, 0), (-1, -1), 0.5, colors.black),
        ("INNERGRID", (0, 0), (-1, -1), 0.25, colors.gray),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
    ]))
    return [Spacer(1, 14), KeepTogether([table])]


def generate_defect_summary_report(records: List[Dict[str, Any]], context: ReportContext,
                                   priority_colors: Optional[Dict[str, str]] = None,
                                   company: Optional[CompanySettings] = None,
                                   config: Optional[ReportConfig] = None) -> Union[bytes, str]:
    """
    Landscape summary table of every anomaly, ordered by priority.

    Args:
        records: anomaly rows
        context: job pack / structure details
        priority_colors: {priority label: "R,G,B"} from the library
        company: header settings (defaults from configuration)
        config: report options (signatories come from here)

    Returns:
        PDF bytes, or the written file path when config.return_blob is False
    """
    company = company or CompanySettings.from_config()
    config = config or ReportConfig()
    color_map = {k.lower(): v for k, v in (priority_colors or {}).items()}
    styles = _get_styles()
    pagesize = landscape(A4)
    width = pagesize[0] - 2 * MARGIN
    ordered = sort_by_priority(records)

    def build_elements():
        elements = []
        elements.extend(_build_summary_subheader(context, len(ordered), styles))
        elements.extend(_build_priority_legend(color_map, styles))
        if ordered:
            elements.append(_build_summary_table(ordered, color_map, styles, width))
        else:
            elements.append(Paragraph("No anomalies found.", styles["empty"]))
        elements.extend(_build_signatories(config, styles, width))
        return elements

    pdf_bytes = _render("Defect Summary", pagesize, build_elements, company, config, context)
    logger.info(f"Defect summary generated: {len(ordered)} anomalies")
    return _deliver(pdf_bytes, config, REPORT_DEFECT_SUMMARY)


# =============================================================================
# 3. DIVER LOG
# =============================================================================

def _dive_heading(job: Dict[str, Any]) -> str:
    dive = f"Dive No: {job.get('dive_no') or '-'}"
    if job.get("dive_type"):
        dive += f" [{job['dive_type']}]"
    return " | ".join([
        dive,
        f"Diver: {job.get('diver_name') or '-'}",
        f"Supervisor: {job.get('dive_supervisor') or '-'}",
        f"Date: {job.get('dive_date') or '-'}",
        f"Start: {job.get('start_time') or '-'}",
    ])


def _build_movement_table(movements: List[Dict[str, Any]], styles: Dict, width: float) -> Table:
    header_style = styles["table_header"]
    cell = styles["table_cell"]
    table_data = [[Paragraph(h, header_style) for h in ["#", "Movement", "Depth", "Date &amp; Time"]]]
    col_widths = [10 * mm, width - 70 * mm, 22 * mm, 38 * mm]

    if not movements:
        table_data.append([Paragraph("No movement records found for this deployment.", cell), "", "", ""])
        table = _grid_table(table_data, col_widths)
        table.setStyle(TableStyle([("SPAN", (0, 1), (-1, 1))]))
        return table

    for idx, mov in enumerate(movements, start=1):
        movement = mov.get("movement_type") or "-"
        if mov.get("remarks"):
            movement = f"{movement}\n{mov['remarks']}"
        table_data.append([
            _cell(idx, cell),
            _cell(movement, cell),
            _cell(format_depth(mov.get("depth_meters")), cell),
            _cell(format_datetime(mov.get("movement_time")), cell),
        ])
    return _grid_table(table_data, col_widths)


def generate_diver_log_report(jobs: List[Dict[str, Any]], context: ReportContext,
                              company: Optional[CompanySettings] = None,
                              config: Optional[ReportConfig] = None) -> Union[bytes, str]:
    """One section per dive deployment with its movement table."""
    company = company or CompanySettings.from_config()
    config = config or ReportConfig()
    styles = _get_styles()
    width = A4[0] - 2 * MARGIN

    def build_elements():
        if not jobs:
            return [Paragraph("No diver log records found.", styles["empty"])]
        elements = []
        for job in jobs:
            elements.append(_section_bar(_dive_heading(job), styles, width))
            elements.append(_build_movement_table(job.get("movements") or [], styles, width))
            elements.append(Spacer(1, 10))
        return elements

    pdf_bytes = _render("Diver Log", A4, build_elements, company, config, context)
    logger.info(f"Diver log generated: {len(jobs)} dives")
    return _deliver(pdf_bytes, config, REPORT_DIVER_LOG)


# =============================================================================
# 4. VIDEO LOG
# =============================================================================

def _build_event_table(tape: Dict[str, Any], styles: Dict, width: float) -> Table:
    header_style = styles["table_header"]
    cell = styles["table_cell"]
    headers = ["#", "Dive No", "Action / Remarks", "Timecode", "Date &amp; Time"]
    table_data = [[Paragraph(h, header_style) for h in headers]]

    for idx, log in enumerate(tape.get("logs") or [], start=1):
        action = friendly_event_type(log.get("event_type"))
        if log.get("remarks"):
            action = f"{action} - {log['remarks']}"
        table_data.append([
            _cell(idx, cell),
            _cell(tape.get("dive_no"), cell),
            _cell(action, cell),
            _cell(log.get("timecode_start"), cell),
            _cell(format_datetime(log.get("event_time")), cell),
        ])
    col_widths = [10 * mm, 20 * mm, width - 90 * mm, 24 * mm, 36 * mm]
    return _grid_table(table_data, col_widths)


def generate_video_log_report(tapes: List[Dict[str, Any]], context: ReportContext,
                              company: Optional[CompanySettings] = None,
                              config: Optional[ReportConfig] = None) -> Union[bytes, str]:
    """One section per tape (ordered by tape number) with its event table."""
    company = company or CompanySettings.from_config()
    config = config or ReportConfig()
    styles = _get_styles()
    width = A4[0] - 2 * MARGIN
    ordered = sort_tapes(tapes)

    def build_elements():
        if not ordered:
            return [Paragraph("No video log records found.", styles["empty"])]
        elements = []
        for tape in ordered:
            heading = (f"Tape No: {tape.get('tape_no') or '-'} | "
                       f"Dive No: {tape.get('dive_no') or '-'} | "
                       f"Chapter: {tape.get('chapter_no') or '-'}")
            elements.append(_section_bar(heading, styles, width))
            elements.append(_build_event_table(tape, styles, width))
            elements.append(Spacer(1, 10))
        return elements

    pdf_bytes = _render("Video Log", A4, build_elements, company, config, context)
    logger.info(f"Video log generated: {len(ordered)} tapes")
    return _deliver(pdf_bytes, config, REPORT_VIDEO_LOG)
