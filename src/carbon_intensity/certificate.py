"""
Certificate formatting for finished CI results.

Everything here reads a `CICalculationResult` and presentation metadata and
formats it; numbers are copied from the result, never recomputed.
"""
import os
import logging
from dataclasses import dataclass
from datetime import date, datetime
from io import BytesIO
from xml.sax.saxutils import escape
from typing import Any, Dict, Optional, Union

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle

from .constants import REPORT_STATUSES, ReportStatus, VERIFICATION_LEVELS
from .errors import InvalidInputError
from .models import CICalculationResult

logger = logging.getLogger(__name__)

METHODOLOGY_LABELS = {
    "RED_II": "EU Renewable Energy Directive II",
    "RTFO": "UK Renewable Transport Fuel Obligation",
    "ISO_14064": "ISO 14064 GHG Standard",
    "ISCC": "International Sustainability & Carbon Certification",
    "RSB": "Roundtable on Sustainable Biomaterials",
}

SCOPE_LABELS = {
    1: "Scope 1 - Direct Emissions",
    2: "Scope 2 - Indirect Energy",
    3: "Scope 3 - Value Chain",
}

ISSUER = "Australian Biofuel Feedstock Index"
DEFAULT_VERIFIER = "ABFI Auditor"

DateLike = Union[date, datetime, str, None]


@dataclass(frozen=True)
class CertificateMetadata:
    """Descriptive data printed on a certificate alongside the result."""
    report_id: str
    supplier_name: str
    feedstock_name: str
    status: ReportStatus = "draft"
    verifier_name: Optional[str] = None
    verified_at: DateLike = None
    expiry_date: DateLike = None

    def __post_init__(self):
        if self.status not in REPORT_STATUSES:
            raise InvalidInputError(
                f"Unknown report status {self.status!r}. Expected one of: {', '.join(REPORT_STATUSES)}"
            )


# ============================================================================
# DISPLAY HELPERS
# ============================================================================

def format_ci_value(ci_value: float) -> str:
    return f"{ci_value:.2f} gCO2e/MJ"


def format_ghg_savings(savings: float) -> str:
    """One decimal; savings above 100% (net-negative CI) are shown as they are."""
    return f"{savings:.1f}%"


def compliance_status(compliant: bool) -> str:
    return "Compliant" if compliant else "Non-Compliant"


def _to_date(value: DateLike) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def format_date(value: DateLike) -> str:
    """'12 March 2024' style, '-' when absent."""
    d = _to_date(value)
    if d is None:
        return "-"
    return f"{d.day} {d.strftime('%B %Y')}"


def _iso(value: DateLike) -> Optional[str]:
    d = _to_date(value)
    return d.isoformat() if d else None


# ============================================================================
# JSON PROJECTION
# ============================================================================

def certificate_json(result: CICalculationResult, metadata: CertificateMetadata) -> Dict[str, Any]:
    """Structured certificate data for API responses."""
    period = result.reporting_period
    return {
        "certificate": {
            "report_id": metadata.report_id,
            "issued_date": _iso(metadata.verified_at),
            "expiry_date": _iso(metadata.expiry_date),
            "status": metadata.status,
            "methodology": result.methodology,
            "methodology_label": METHODOLOGY_LABELS[result.methodology],
            "registry_version": result.registry_version,
        },
        "supplier": {
            "name": metadata.supplier_name,
        },
        "feedstock": {
            "name": metadata.feedstock_name,
            "category": result.feedstock_category,
        },
        "reporting_period": {
            "start": period.start.isoformat() if period else None,
            "end": period.end.isoformat() if period else None,
            "reference_year": result.reference_year,
        },
        "carbon_intensity": {
            "total_ci_value": result.total_ci_value,
            "ci_rating": result.ci_rating,
            "ci_score": result.ci_score,
            "ghg_savings_percentage": result.ghg_savings_percentage,
        },
        "emissions": {
            "scope1": {
                "cultivation": result.scope1_cultivation,
                "processing": result.scope1_processing,
                "transport": result.scope1_transport,
                "total": result.scope1_total,
            },
            "scope2": {
                "electricity": result.scope2_electricity,
                "steam_heat": result.scope2_steam_heat,
                "total": result.scope2_total,
            },
            "scope3": {
                "upstream_inputs": result.scope3_upstream_inputs,
                "land_use_change": result.scope3_land_use_change,
                "distribution": result.scope3_distribution,
                "end_of_life": result.scope3_end_of_life,
                "total": result.scope3_total,
            },
        },
        "compliance": {
            "red_ii": result.red_ii_compliant,
            "rtfo": result.rtfo_compliant,
            "cfp": result.cfp_compliant,
            "iscc": result.iscc_compliant,
            "rsb": result.rsb_compliant,
        },
        "verification": {
            "status": metadata.status,
            "verified_at": _iso(metadata.verified_at),
            "verified_by": metadata.verifier_name,
            "level": result.verification_level,
        },
        "data_quality": {
            "level": result.data_quality_level,
            "uncertainty_range": {
                "low": result.uncertainty_range_low,
                "high": result.uncertainty_range_high,
            },
            "field_sources": dict(result.field_sources),
        },
    }


# ============================================================================
# PRINTABLE DOCUMENTS
# ============================================================================

def _verification_statement(result: CICalculationResult, metadata: CertificateMetadata) -> str:
    return (
        f"This certificate has been independently verified by {metadata.verifier_name or DEFAULT_VERIFIER} "
        f"on {format_date(metadata.verified_at)}. The carbon intensity values presented in this certificate "
        f"have been calculated in accordance with the {METHODOLOGY_LABELS[result.methodology]} methodology "
        f"and represent the greenhouse gas emissions associated with the production and processing of the "
        f"specified feedstock during the reporting period."
    )


def _period_text(result: CICalculationResult) -> str:
    if result.reporting_period is None:
        return "-"
    return f"{format_date(result.reporting_period.start)} - {format_date(result.reporting_period.end)}"


def render_certificate_markdown(result: CICalculationResult, metadata: CertificateMetadata) -> str:
    """Printable certificate as a Markdown document."""
    lines = []
    if metadata.status != "verified":
        lines.append("> **DRAFT** - not verified")
        lines.append("")
    lines.append("# Carbon Intensity Certificate")
    lines.append(f"*{ISSUER}* | {METHODOLOGY_LABELS[result.methodology]}")
    lines.append("")
    lines.append("## Report")
    lines.append(f"- **Report ID:** {metadata.report_id}")
    lines.append(f"- **Supplier:** {metadata.supplier_name}")
    lines.append(f"- **Feedstock:** {metadata.feedstock_name} ({result.feedstock_category})")
    lines.append(f"- **Reporting Period:** {_period_text(result)}")
    lines.append(f"- **Reference Year:** {result.reference_year if result.reference_year is not None else '-'}")
    lines.append("")
    lines.append("## Key Metrics")
    lines.append("| Carbon Intensity | Rating | GHG Savings |")
    lines.append("|---|---|---|")
    lines.append(
        f"| {result.total_ci_value:.1f} gCO2e/MJ | {result.ci_rating} | "
        f"{format_ghg_savings(result.ghg_savings_percentage)} |"
    )
    lines.append("")
    lines.append("## Emissions Breakdown")
    lines.append("| Scope | gCO2e/MJ |")
    lines.append("|---|---|")
    lines.append(f"| {SCOPE_LABELS[1]} | {result.scope1_total:.2f} |")
    lines.append(f"| {SCOPE_LABELS[2]} | {result.scope2_total:.2f} |")
    lines.append(f"| {SCOPE_LABELS[3]} | {result.scope3_total:.2f} |")
    lines.append(
        f"| Uncertainty range | {result.uncertainty_range_low:.2f} - {result.uncertainty_range_high:.2f} |"
    )
    lines.append("")
    lines.append("## Compliance")
    lines.append(f"- RED II: {compliance_status(result.red_ii_compliant).upper()}")
    lines.append(f"- RTFO: {compliance_status(result.rtfo_compliant).upper()}")
    lines.append(f"- CFP: {compliance_status(result.cfp_compliant).upper()}")
    lines.append("")
    lines.append("## Status")
    lines.append(f"- **Status:** {metadata.status.upper()}")
    lines.append(f"- **Verification Level:** {VERIFICATION_LEVELS[result.verification_level]['label']}")
    lines.append(f"- **Issued:** {format_date(metadata.verified_at)}")
    lines.append(
        f"- **Valid Until:** "
        f"{format_date(metadata.expiry_date) if metadata.expiry_date else '12 months from issue'}"
    )
    if metadata.status == "verified":
        lines.append("")
        lines.append("### Verification Statement")
        lines.append(_verification_statement(result, metadata))
    lines.append("")
    lines.append(
        f"---\nCertificate generated by ABFI Platform | Report ID: {metadata.report_id} | "
        f"Registry version: {result.registry_version}"
    )
    return "\n".join(lines) + "\n"


def save_certificate_md(result: CICalculationResult, metadata: CertificateMetadata, output_dir: str) -> str:
    os.makedirs(output_dir, exist_ok=True)
    path = os.path.join(output_dir, f"certificate_{metadata.report_id}.md")
    with open(path, "w", encoding="utf-8") as f:
        f.write(render_certificate_markdown(result, metadata))
    logger.info(f"Certificate saved to {path}")
    return path


def _table(rows, col_widths, header=True) -> Table:
    t = Table(rows, hAlign="LEFT", colWidths=col_widths)
    style = [
        ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
        ("FONTNAME", (0, 0), (-1, -1), "Helvetica"),
        ("FONTSIZE", (0, 0), (-1, -1), 10),
        ("PADDING", (0, 0), (-1, -1), 6),
    ]
    if header:
        style += [
            ("BACKGROUND", (0, 0), (-1, 0), colors.lightgrey),
            ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ]
    t.setStyle(TableStyle(style))
    return t


def build_certificate_pdf_bytes(result: CICalculationResult, metadata: CertificateMetadata) -> bytes:
    """A4 certificate PDF."""
    styles = getSampleStyleSheet()
    story = []

    title = "Carbon Intensity Certificate"
    if metadata.status != "verified":
        title += " (DRAFT)"
    story.append(Paragraph(title, styles["Title"]))
    story.append(Paragraph(escape(f"{ISSUER} | {METHODOLOGY_LABELS[result.methodology]}"), styles["Normal"]))
    story.append(Spacer(1, 12))

    info = [
        ["Report ID", metadata.report_id],
        ["Supplier", metadata.supplier_name],
        ["Feedstock", f"{metadata.feedstock_name} ({result.feedstock_category})"],
        ["Reporting Period", _period_text(result)],
        ["Reference Year", str(result.reference_year) if result.reference_year is not None else "-"],
    ]
    story.append(_table(info, [140, 350], header=False))
    story.append(Spacer(1, 12))

    story.append(Paragraph("Key Metrics", styles["Heading2"]))
    metrics = [
        ["Carbon Intensity", "Rating", "GHG Savings"],
        [f"{result.total_ci_value:.1f} gCO2e/MJ", result.ci_rating, format_ghg_savings(result.ghg_savings_percentage)],
    ]
    story.append(_table(metrics, [165, 160, 165]))
    story.append(Spacer(1, 12))

    story.append(Paragraph("Emissions Breakdown", styles["Heading2"]))
    scopes = [
        ["Scope", "gCO2e/MJ"],
        [SCOPE_LABELS[1], f"{result.scope1_total:.2f}"],
        [SCOPE_LABELS[2], f"{result.scope2_total:.2f}"],
        [SCOPE_LABELS[3], f"{result.scope3_total:.2f}"],
        ["Uncertainty range", f"{result.uncertainty_range_low:.2f} - {result.uncertainty_range_high:.2f}"],
    ]
    story.append(_table(scopes, [300, 190]))
    story.append(Spacer(1, 12))

    story.append(Paragraph("Compliance", styles["Heading2"]))
    compliance = [
        ["RED II", "RTFO", "CFP"],
        [
            compliance_status(result.red_ii_compliant).upper(),
            compliance_status(result.rtfo_compliant).upper(),
            compliance_status(result.cfp_compliant).upper(),
        ],
    ]
    story.append(_table(compliance, [165, 160, 165]))
    story.append(Spacer(1, 12))

    status = [
        ["Status", metadata.status.upper()],
        ["Issued", format_date(metadata.verified_at)],
        ["Valid Until", format_date(metadata.expiry_date) if metadata.expiry_date else "12 months from issue"],
    ]
    story.append(_table(status, [140, 350], header=False))

    if metadata.status == "verified":
        story.append(Spacer(1, 12))
        story.append(Paragraph("Verification Statement", styles["Heading3"]))
        story.append(Paragraph(escape(_verification_statement(result, metadata)), styles["Normal"]))

    story.append(Spacer(1, 18))
    story.append(Paragraph(escape(
        f"Certificate generated by ABFI Platform | Report ID: {metadata.report_id} | "
        f"Registry version: {result.registry_version}"
    ), styles["Normal"]))

    buf = BytesIO()
    doc = SimpleDocTemplate(
        buf,
        pagesize=A4,
        title=f"CI Certificate {metadata.report_id}",
        leftMargin=36,
        rightMargin=36,
        topMargin=36,
        bottomMargin=36,
    )
    doc.build(story)
    return buf.getvalue()
