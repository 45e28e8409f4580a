"""Per-vehicle audit report: a cover page merged with the uploaded PDFs."""

import io
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Callable, List, Optional, Union
from urllib.parse import urlparse

from fpdf import FPDF
from fpdf.enums import XPos, YPos
from pypdf import PdfReader, PdfWriter
from pypdf.errors import PdfReadError
from tabulate import tabulate

from .errors import ReportError
from .vehicle import Vehicle

logger = logging.getLogger(__name__)

PDF_MAGIC = b"%PDF-"
LINE_HEIGHT = 4.5

Fetch = Callable[[str], Optional[bytes]]


@dataclass
class Attachment:
    name: str
    data: bytes
    pages: int = 0


@dataclass
class AuditReport:
    """Everything that goes into one vehicle's audit PDF."""

    plate: str
    cover_sheet: str
    attachments: List[Attachment] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    @property
    def filename(self) -> str:
        return f"fleetguard-audit-{self.plate}.pdf"


def make_cover_sheet(
    vehicle: Vehicle,
    today: Optional[date] = None,
    generated_at: Optional[datetime] = None,
) -> str:
    """Plain-text cover sheet: vehicle identity and every binder slot."""
    generated_at = generated_at or datetime.now()
    lines = [
        "FleetGuard - Vehicle Audit Report",
        f"Generated: {generated_at:%Y-%m-%d %H:%M}",
        "",
        f"Vehicle: {vehicle.plate}  {vehicle.name or ''}".rstrip(),
        f"Make/Model: {vehicle.make_model or '-'}",
        f"VIN: {vehicle.vin or '-'}   Province: {vehicle.province or '-'}",
        f"Compliance: {vehicle.compliance_percent()}%",
        "",
        "Included documents:",
    ]
    rows = [
        [
            doc.type.value,
            doc.status_as_of(today).value,
            doc.expiry_date or "-",
            doc.file.name if doc.file else "(missing)",
        ]
        for doc in vehicle.documents
    ]
    lines.append(
        tabulate(rows, headers=["Document", "Status", "Expires", "File"], tablefmt="simple")
    )
    return "\n".join(lines) + "\n"


def cover_pdf(text: str) -> bytes:
    """Render cover sheet text onto letter pages in a monospaced font."""
    pdf = FPDF(format="letter")
    pdf.set_auto_page_break(True, margin=15)
    pdf.add_page()
    pdf.set_font("Courier", size=9)
    for line in text.splitlines():
        if not line.strip():
            pdf.ln(LINE_HEIGHT)
            continue
        # Core fonts only cover latin-1
        line = line.encode("latin-1", "replace").decode("latin-1")
        pdf.multi_cell(0, LINE_HEIGHT, line, new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    return bytes(pdf.output())


def _page_count(name: str, data: bytes) -> Optional[int]:
    """Pages in a readable, unencrypted PDF; None (with a warning) otherwise."""
    try:
        reader = PdfReader(io.BytesIO(data))
        if reader.is_encrypted:
            logger.warning("Skipping encrypted PDF %s", name)
            return None
        pages = len(reader.pages)
    except PdfReadError as e:
        logger.warning("Skipping unreadable PDF %s: %s", name, e)
        return None
    if not pages:
        logger.warning("Skipping unreadable PDF %s: no pages", name)
        return None
    return pages


def build_audit_report(
    vehicle: Vehicle,
    fetch: Fetch,
    today: Optional[date] = None,
    generated_at: Optional[datetime] = None,
) -> AuditReport:
    """
    Collect the cover sheet and every uploaded PDF for a vehicle.

    Files that are not PDFs, cannot be fetched, cannot be parsed or are
    encrypted are skipped with a warning rather than failing the report.
    """
    report = AuditReport(
        plate=vehicle.plate,
        cover_sheet=make_cover_sheet(vehicle, today, generated_at),
    )
    for doc in vehicle.documents:
        file = doc.file
        if file is None:
            continue
        if not file.is_pdf:
            logger.warning("Skipping non-PDF file %s (%s)", file.name, doc.type.value)
            report.skipped.append(file.name)
            continue
        try:
            data = fetch(file.url)
        except OSError as e:
            logger.warning("Skipping unreadable file %s: %s", file.name, e)
            data = None
        if not data:
            report.skipped.append(file.name)
            continue
        if not data.startswith(PDF_MAGIC):
            logger.warning("Skipping %s: not PDF data", file.name)
            report.skipped.append(file.name)
            continue
        pages = _page_count(file.name, data)
        if pages is None:
            report.skipped.append(file.name)
            continue
        report.attachments.append(Attachment(f"{doc.type.value} - {file.name}", data, pages))
    return report


def report_bytes(report: AuditReport) -> bytes:
    """The report as one PDF: cover page first, then each attachment bookmarked."""
    writer = PdfWriter()
    writer.append(PdfReader(io.BytesIO(cover_pdf(report.cover_sheet))), outline_item="Cover")
    for attachment in report.attachments:
        writer.append(PdfReader(io.BytesIO(attachment.data)), outline_item=attachment.name)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


def write_audit_report(report: AuditReport, directory: Union[str, Path]) -> Path:
    """Write the report PDF into directory and return its path."""
    path = Path(directory) / report.filename
    try:
        path.write_bytes(report_bytes(report))
    except OSError as e:
        raise ReportError(f"Could not write {path}: {e}") from e
    return path


def local_fetcher(base_dir: Union[str, Path]) -> Fetch:
    """
    Fetch file URLs from the local filesystem.

    Relative paths and file:// URLs resolve against base_dir; anything
    else (placeholders such as '#', remote URLs) yields None.
    """
    base = Path(base_dir)

    def fetch(url: str) -> Optional[bytes]:
        parsed = urlparse(url)
        if parsed.scheme not in ("", "file") or not parsed.path or parsed.path == "#":
            return None
        path = base / parsed.path.lstrip("/") if parsed.scheme == "" else Path(parsed.path)
        if not path.is_file():
            return None
        return path.read_bytes()

    return fetch
