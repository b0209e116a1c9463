import os
import logging
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

import pandas as pd

from .audit import CalculationAudit
from .calculator import calculate_ci
from .config import read_table
from .constants import EMISSION_FIELDS, DECIMALS
from .errors import InvalidInputError
from .models import CIEmissionInput, CICalculationResult, ActivityData, TransportLeg, ReportingPeriod, parse_date
from .registry import DEFAULT_REGISTRY, EmissionFactorRegistry
from .utils.calculations import is_finite_number

logger = logging.getLogger(__name__)

# Report columns
COL_LABEL = "Label"
COL_CATEGORY = "Feedstock Category"
COL_METHODOLOGY = "Methodology"
COL_TOTAL_CI = "Total CI (gCO2e/MJ)"
COL_RATING = "Rating"
COL_SAVINGS = "GHG Savings (%)"
COL_ERROR = "Error"

SCOPE_COLUMNS = {
    "scope1_total": "Scope 1 (gCO2e/MJ)",
    "scope2_total": "Scope 2 (gCO2e/MJ)",
    "scope3_total": "Scope 3 (gCO2e/MJ)",
}

_TRUE = {"true", "yes", "y", "1"}
_FALSE = {"false", "no", "n", "0"}


def _blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _text(row: Mapping[str, Any], key: str) -> Optional[str]:
    value = row.get(key)
    return None if _blank(value) else str(value).strip()


def _number(row: Mapping[str, Any], key: str) -> Optional[float]:
    value = row.get(key)
    if _blank(value):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidInputError(f"Column '{key}' must be numeric, got {value!r}")
    if not is_finite_number(number):
        raise InvalidInputError(f"Column '{key}' must be a finite number, got {value!r}")
    return number


def _flag(row: Mapping[str, Any], key: str) -> Optional[bool]:
    value = row.get(key)
    if _blank(value):
        return None
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise InvalidInputError(f"Column '{key}' must be yes/no, got {value!r}")


def input_from_row(row: Mapping[str, Any]) -> CIEmissionInput:
    """
    Convert one input sheet row to a CIEmissionInput.

    Columns use the snake_case field names. Blank cells (None, '' or NaN) mean
    "not supplied", so the sub-category falls back to its default. Optional
    activity columns: output_mj, electricity_kwh, transport_mode,
    transport_tonnes, transport_km; reporting period: period_start, period_end.
    """
    category = _text(row, "feedstock_category")
    methodology = _text(row, "methodology")
    if category is None:
        raise InvalidInputError("Column 'feedstock_category' is required")
    if methodology is None:
        raise InvalidInputError("Column 'methodology' is required")

    activity = None
    output_mj = _number(row, "output_mj")
    if output_mj is not None:
        legs = ()
        mode = _text(row, "transport_mode")
        if mode is not None:
            legs = (TransportLeg(
                mode=mode,  # type: ignore[arg-type]
                tonnes=_number(row, "transport_tonnes") or 0.0,
                distance_km=_number(row, "transport_km") or 0.0,
            ),)
        activity = ActivityData(
            output_mj=output_mj,
            electricity_kwh=_number(row, "electricity_kwh"),
            transport_legs=legs,
        )

    period = None
    start, end = _text(row, "period_start"), _text(row, "period_end")
    if start and end:
        try:
            period = ReportingPeriod(start=parse_date(start), end=parse_date(end))
        except ValueError as e:
            raise InvalidInputError(f"Malformed reporting period {start!r} - {end!r}: {e}")

    year = _number(row, "reference_year")
    if year is not None and not year.is_integer():
        raise InvalidInputError(f"Column 'reference_year' must be a whole year, got {year!r}")

    return CIEmissionInput(
        feedstock_category=category,  # type: ignore[arg-type]
        methodology=methodology,  # type: ignore[arg-type]
        region=_text(row, "region"),
        data_quality_level=_text(row, "data_quality_level") or "default",  # type: ignore[arg-type]
        verification_level=_text(row, "verification_level") or "self_declared",  # type: ignore[arg-type]
        reference_year=int(year) if year is not None else None,
        reporting_period=period,
        is_new_installation=_flag(row, "is_new_installation"),
        activity=activity,
        **{name: _number(row, name) for name in EMISSION_FIELDS},
    )


def result_to_row(result: CICalculationResult, label: str = "") -> Dict[str, Any]:
    """Flatten a result into one report row."""
    entry: Dict[str, Any] = {
        COL_LABEL: label,
        COL_CATEGORY: result.feedstock_category,
        COL_METHODOLOGY: result.methodology,
        "Region": result.region or "",
        "Data Quality": result.data_quality_level,
        "Verification": result.verification_level,
    }
    for name in EMISSION_FIELDS:
        entry[name] = getattr(result, name)
    for attr, col in SCOPE_COLUMNS.items():
        entry[col] = getattr(result, attr)
    entry.update({
        COL_TOTAL_CI: result.total_ci_value,
        COL_RATING: result.ci_rating,
        "CI Score": result.ci_score,
        COL_SAVINGS: result.ghg_savings_percentage,
        "RED II": result.red_ii_compliant,
        "RTFO": result.rtfo_compliant,
        "CFP": result.cfp_compliant,
        "ISCC": result.iscc_compliant,
        "RSB": result.rsb_compliant,
        "Uncertainty Low": result.uncertainty_range_low,
        "Uncertainty High": result.uncertainty_range_high,
        "Defaulted Fields": ", ".join(
            name for name, source in result.field_sources.items() if source.startswith("default")
        ),
        "Warnings": "; ".join(result.warnings),
        "Registry Version": result.registry_version,
        COL_ERROR: "",
    })
    return entry


def run_batch(
    df: pd.DataFrame,
    registry: EmissionFactorRegistry = DEFAULT_REGISTRY,
    audit: Optional[CalculationAudit] = None,
) -> pd.DataFrame:
    """
    Calculate every row of an input sheet.

    Rows rejected with InvalidInputError are reported with their error and the
    batch continues. IncompleteInputError and RegistryError are defects in the
    registry or the engine and abort the batch.
    """
    rows: List[Dict[str, Any]] = []
    total = len(df)
    for n, (idx, row) in enumerate(df.iterrows(), 1):
        label = _text(row, "label") or f"row {idx}"
        logger.debug(f"Processing ({n}/{total}): {label}")
        try:
            result = calculate_ci(input_from_row(row), registry, audit)
        except InvalidInputError as e:
            logger.error(f"Skipping {label}: {e}")
            rows.append({
                COL_LABEL: label,
                COL_CATEGORY: _text(row, "feedstock_category") or "",
                COL_METHODOLOGY: _text(row, "methodology") or "",
                COL_ERROR: str(e),
            })
            continue
        rows.append(result_to_row(result, label))

    report_df = pd.DataFrame(rows)
    failed = int((report_df[COL_ERROR] != "").sum()) if not report_df.empty else 0
    logger.info(f"Batch complete: {total - failed} calculated, {failed} rejected")
    return report_df


def load_batch_input(path: str) -> pd.DataFrame:
    """Read a batch input sheet (.csv or .xlsx)."""
    if not os.path.exists(path):
        raise FileNotFoundError(path)
    df = read_table(path)
    df.columns = [str(c).strip() for c in df.columns]
    logger.info(f"Loaded {len(df)} rows from {path}")
    return df


def format_report_dataframe(df: pd.DataFrame) -> pd.DataFrame:
    """
    Presentation copy of a batch report: numeric columns rounded, rows sorted
    by total CI with rejected rows last.
    """
    out = df.copy()
    numeric = out.select_dtypes(include="number").columns
    out[numeric] = out[numeric].round(DECIMALS)
    if COL_TOTAL_CI in out.columns:
        out = out.sort_values(COL_TOTAL_CI, na_position="last", kind="stable").reset_index(drop=True)
    return out


def save_batch_report(df: pd.DataFrame, reports_dir: str, basename: str = "ci_batch_report") -> str:
    """Write the formatted report as CSV; falls back to a timestamped name if the file is locked."""
    os.makedirs(reports_dir, exist_ok=True)
    out_file = os.path.join(reports_dir, f"{basename}.csv")
    report_df = format_report_dataframe(df)
    try:
        report_df.to_csv(out_file, index=False)
    except PermissionError:
        ts = datetime.now().strftime("%Y%m%d_%H%M%S")
        fallback_file = os.path.join(reports_dir, f"{basename}_{ts}.csv")
        logger.warning(f"Could not save to {out_file} (File Locked?). Saving to {fallback_file} instead.")
        report_df.to_csv(fallback_file, index=False)
        out_file = fallback_file
    logger.info(f"Report saved to: {out_file}")
    return out_file
