import logging
import os
import uuid

from .audit import CalculationAudit
from .batch import run_batch, load_batch_input, save_batch_report, COL_CATEGORY, COL_TOTAL_CI, COL_ERROR
from .calculator import calculate_ci
from .certificate import CertificateMetadata, save_certificate_md, build_certificate_pdf_bytes
from .config import PROJECT_ROOT, DEFAULT_CONFIG_PATH
from .errors import InvalidInputError
from .logging_conf import setup_logging
from .registry import load_registry, export_registry_workbook
from .utils.input_helpers import (
    prompt_choice, prompt_yes_no, prompt_emission_input, print_header, print_result_overview,
    style_prompt, C_SUCCESS, C_RESET,
)
from .visualization import Visualizer

logger = logging.getLogger(__name__)

REPORTS_DIR = os.path.join(PROJECT_ROOT, "reports")
AUDIT_DIR = os.path.join(PROJECT_ROOT, "logs")


def run_single(registry):
    emission_input = prompt_emission_input()
    audit = CalculationAudit()

    try:
        result = calculate_ci(emission_input, registry, audit)
    except InvalidInputError as e:
        logger.error(f"Input rejected: {e}")
        return

    print_result_overview(result)

    if prompt_yes_no("Write calculation audit log?", default=False):
        audit.write(AUDIT_DIR)

    if prompt_yes_no("Generate certificate?", default=True):
        print_header("Step 4: Certificate Details")
        report_id = input(style_prompt("Report ID [blank = generated]: ")).strip() or uuid.uuid4().hex[:8].upper()
        supplier = input(style_prompt("Supplier name: ")).strip() or "Unknown supplier"
        feedstock = input(style_prompt("Feedstock name: ")).strip() or result.feedstock_category
        metadata = CertificateMetadata(report_id=report_id, supplier_name=supplier, feedstock_name=feedstock)

        save_certificate_md(result, metadata, REPORTS_DIR)
        pdf_path = os.path.join(REPORTS_DIR, f"certificate_{report_id}.pdf")
        with open(pdf_path, "wb") as f:
            f.write(build_certificate_pdf_bytes(result, metadata))
        print(f"{C_SUCCESS}Certificate PDF saved to: {pdf_path}{C_RESET}")

    if prompt_yes_no("Save charts?", default=False):
        vis = Visualizer(mode="single_run")
        vis.generate_all_single_run_plots(result)


def run_batch_file(registry):
    print_header("Batch Calculation")
    path = input(style_prompt("Path to input sheet (.csv / .xlsx): ")).strip().strip('"')
    try:
        df = load_batch_input(path)
    except FileNotFoundError:
        logger.error(f"Input sheet not found at {path}")
        return

    audit = CalculationAudit() if prompt_yes_no("Record audit trail?", default=False) else None
    report_df = run_batch(df, registry, audit)
    out_file = save_batch_report(report_df, REPORTS_DIR)
    print(f"{C_SUCCESS}Report saved to: {out_file}{C_RESET}")
    if audit is not None:
        audit.write(AUDIT_DIR)

    ok = report_df[report_df[COL_ERROR] == ""] if COL_ERROR in report_df.columns else report_df
    if not ok.empty:
        print(ok.groupby(COL_CATEGORY)[[COL_TOTAL_CI]].mean())

    try:
        vis = Visualizer(mode="batch_run")
        vis.generate_all_batch_plots(report_df)
        print(f"\nCharts saved to: {vis.session_dir}")
    except (OSError, ValueError) as e:
        logger.error(f"Batch visualization failed: {e}")


def main():
    setup_logging(console_level=logging.INFO)

    print_header("Feedstock Carbon Intensity Calculator")

    registry_path = DEFAULT_CONFIG_PATH
    if prompt_yes_no("Load emission factor overrides from a parameter sheet?", default=False):
        registry_path = input(style_prompt(f"Parameter sheet path [default={DEFAULT_CONFIG_PATH}]: ")).strip() \
            or DEFAULT_CONFIG_PATH
    registry = load_registry(registry_path)
    logger.info(f"Emission factor registry version {registry.version}")

    mode = prompt_choice(
        "Mode",
        ["Single Calculation (Interactive)", "Batch File", "Export Registry"],
        default="Single Calculation (Interactive)",
    )

    if mode == "Batch File":
        run_batch_file(registry)
    elif mode == "Export Registry":
        os.makedirs(REPORTS_DIR, exist_ok=True)
        out = export_registry_workbook(registry, os.path.join(REPORTS_DIR, f"emission_factors_{registry.version}.xlsx"))
        print(f"{C_SUCCESS}Registry exported to: {out}{C_RESET}")
    else:
        run_single(registry)


if __name__ == "__main__":
    main()
