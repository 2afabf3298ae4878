"""Certificate rendering.

``CertificateService`` talks to a ``CertificateRenderer``; the default
implementation lays out a one-page landscape PDF with reportlab.
"""

import io
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import landscape, letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer


@dataclass(frozen=True)
class CertificateData:
    """Everything printed on a certificate."""

    student_name: str
    issue_date: datetime
    certificate_number: str
    organization_name: str | None = None
    location_name: str | None = None
    grade_band: str | None = None


class CertificateRenderingError(Exception):
    """The renderer could not produce a document."""


class CertificateRenderer(Protocol):
    media_type: str

    def render(self, data: CertificateData) -> bytes: ...


class ReportLabCertificateRenderer:
    """Render certificates as PDF documents."""

    media_type = "application/pdf"

    def __init__(self, title: str = "Foundation School"):
        self.title = title
        self.styles = getSampleStyleSheet()
        self._setup_custom_styles()

    def _setup_custom_styles(self) -> None:
        self.styles.add(ParagraphStyle(
            name="CertificateTitle",
            parent=self.styles["Title"],
            fontSize=34,
            leading=40,
            alignment=TA_CENTER,
            textColor=colors.darkblue,
        ))
        self.styles.add(ParagraphStyle(
            name="CertificateBody",
            parent=self.styles["Normal"],
            fontSize=16,
            leading=22,
            alignment=TA_CENTER,
        ))
        self.styles.add(ParagraphStyle(
            name="StudentName",
            parent=self.styles["Heading1"],
            fontSize=30,
            leading=36,
            alignment=TA_CENTER,
            spaceBefore=12,
            spaceAfter=12,
        ))
        self.styles.add(ParagraphStyle(
            name="CertificateFooter",
            parent=self.styles["Normal"],
            fontSize=11,
            alignment=TA_CENTER,
            textColor=colors.gray,
        ))

    def _draw_border(self, canvas, doc) -> None:
        width, height = doc.pagesize
        canvas.saveState()
        canvas.setStrokeColor(colors.darkblue)
        canvas.setLineWidth(4)
        canvas.rect(0.4 * inch, 0.4 * inch, width - 0.8 * inch, height - 0.8 * inch)
        canvas.setLineWidth(1)
        canvas.rect(0.55 * inch, 0.55 * inch, width - 1.1 * inch, height - 1.1 * inch)
        canvas.restoreState()

    def render(self, data: CertificateData) -> bytes:
        """Build the PDF and return its bytes.

        Raises:
            CertificateRenderingError: If reportlab fails to build the document
        """
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=landscape(letter),
            title=f"{self.title} certificate {data.certificate_number}",
            topMargin=1.1 * inch,
            bottomMargin=0.9 * inch,
        )

        elements = [
            Paragraph("Certificate of Completion", self.styles["CertificateTitle"]),
            Spacer(1, 0.3 * inch),
            Paragraph("This certifies that", self.styles["CertificateBody"]),
            Paragraph(escape(data.student_name), self.styles["StudentName"]),
            Paragraph(
                f"has successfully completed {escape(self.title)}",
                self.styles["CertificateBody"],
            ),
        ]
        if data.grade_band:
            elements.append(
                Paragraph(f"with {escape(data.grade_band)}", self.styles["CertificateBody"])
            )

        elements.append(Spacer(1, 0.4 * inch))
        elements.append(
            Paragraph(
                f"Issued {data.issue_date.strftime('%d %B %Y')}",
                self.styles["CertificateBody"],
            )
        )

        place = " | ".join(
            escape(part) for part in (data.organization_name, data.location_name) if part
        )
        if place:
            elements.append(Paragraph(place, self.styles["CertificateBody"]))

        elements.append(Spacer(1, 0.5 * inch))
        elements.append(
            Paragraph(
                f"Certificate No. {escape(data.certificate_number)}",
                self.styles["CertificateFooter"],
            )
        )

        try:
            doc.build(elements, onFirstPage=self._draw_border)
        except Exception as e:
            raise CertificateRenderingError(str(e)) from e
        return buffer.getvalue()
