import logging
from typing import List, Optional

import colorama
from colorama import Fore, Style, Back

from ..constants import (
    FEEDSTOCK_CATEGORIES, CI_METHODOLOGIES, DATA_QUALITY_LEVELS, VERIFICATION_LEVEL_NAMES,
    SCOPE1_FIELDS, SCOPE2_FIELDS, SCOPE3_FIELDS, GRID_EMISSION_FACTORS,
)
from ..models import CIEmissionInput, CICalculationResult

colorama.init(autoreset=True)

logger = logging.getLogger(__name__)

# Style Constants
C_HEADER = Fore.CYAN + Style.BRIGHT
C_PROMPT = Fore.YELLOW
C_CHOICE = Fore.MAGENTA
C_ERROR = Fore.RED
C_SUCCESS = Fore.GREEN
C_RESET = Style.RESET_ALL


def style_prompt(prompt_text: str) -> str:
    """Helper to wrap input prompt in color."""
    return f"{C_PROMPT}{prompt_text}{C_RESET}"


def print_header(text: str):
    """Print a styled header."""
    print(f"\n{C_HEADER}{'='*60}")
    print(f"{text.center(60)}")
    print(f"{'='*60}{C_RESET}")


def prompt_choice(label: str, options: List[str], default: str) -> str:
    """
    Prompt user to pick one value from a list of options; returns the chosen option.
    Supports selecting by index (1-based) or typing the name.
    """
    display_parts = []
    for idx, opt in enumerate(options, 1):
        display_parts.append(f"[{C_SUCCESS}{idx}{C_PROMPT}] {C_CHOICE}{opt}{C_PROMPT}")
    opts_str = " / ".join(display_parts)

    while True:
        print(f"\n{C_PROMPT}{label} options:{C_RESET} {opts_str}")
        s = input(style_prompt(f"Select option (name or number) [default={default}]: ")).strip().lower()

        if not s:
            return default

        if s.isdigit():
            idx = int(s)
            if 1 <= idx <= len(options):
                return options[idx-1]

        for opt in options:
            if s == opt.lower():
                return opt

        logger.warning(f"Invalid choice '{s}'. Please enter a number 1-{len(options)} or the option name.")


def prompt_yes_no(label: str, default: bool) -> bool:
    """
    Prompt user for yes/no answer, returning True/False.
    """
    d = "y" if default else "n"
    opts = f"{C_CHOICE}y{C_PROMPT}/{C_CHOICE}n{C_PROMPT}"
    while True:
        s = input(style_prompt(f"{label} [{opts}] (default={d}): ")).strip().lower()
        if not s:
            return default
        if s in ("y", "yes"):
            return True
        if s in ("n", "no"):
            return False
        logger.warning("Please answer y or n.")


def prompt_optional_float(label: str) -> Optional[float]:
    """
    Prompt for a number; blank input returns None (value will be defaulted).
    """
    while True:
        s = input(style_prompt(f"{label} [blank = default]: ")).strip()
        if not s:
            return None
        try:
            return float(s)
        except ValueError:
            logger.warning(f"'{s}' is not a number.")


def _field_label(name: str) -> str:
    scope, rest = name.split("_", 1)
    return f"{scope.capitalize()} {rest.replace('_', ' ')} (gCO2e/MJ)"


def prompt_emission_input() -> CIEmissionInput:
    """
    Step 1-3: classification, optional region and any measured sub-category values.
    """
    print_header("Step 1: Feedstock Classification")
    category = prompt_choice("Feedstock category", list(FEEDSTOCK_CATEGORIES), default="oilseed")
    methodology = prompt_choice("Calculation methodology", list(CI_METHODOLOGIES), default="RED_II")
    regions = ["none"] + [r for r in GRID_EMISSION_FACTORS if r != "national"]
    region = prompt_choice("Grid region", regions, default="none")
    is_new = prompt_yes_no("New installation (RED II 65% threshold)?", default=False)

    print_header("Step 2: Data Quality")
    dq = prompt_choice("Data quality level", list(DATA_QUALITY_LEVELS), default="default")
    verification = prompt_choice("Verification level", list(VERIFICATION_LEVEL_NAMES), default="self_declared")

    print_header("Step 3: Measured Emissions")
    print(f"{C_HEADER}Leave a field blank to use the {category} default.{C_RESET}")
    measured = {}
    for name in SCOPE1_FIELDS + SCOPE2_FIELDS + SCOPE3_FIELDS:
        measured[name] = prompt_optional_float(_field_label(name))

    return CIEmissionInput(
        feedstock_category=category,  # type: ignore[arg-type]
        methodology=methodology,  # type: ignore[arg-type]
        region=None if region == "none" else region,
        data_quality_level=dq,  # type: ignore[arg-type]
        verification_level=verification,  # type: ignore[arg-type]
        is_new_installation=is_new,
        **measured,
    )


def print_result_overview(result: CICalculationResult):
    """
    Common reporting for a finished calculation.
    """
    print(f"\n{Back.BLACK}{C_HEADER}{'='*60}")
    print(f"   CI RESULT: {result.feedstock_category.upper()} / {result.methodology}")
    print(f"{'='*60}{Style.RESET_ALL}")

    print(f"\n{C_HEADER}Emissions by sub-category (gCO2e/MJ):{C_RESET}")
    for scope, values in result.scope_breakdown().items():
        for name, val in values.items():
            source = result.field_sources.get(name, "")
            print(f"  {name:<28} : {val:>8.3f}   [{source}]")
    print(f"{'-'*60}")
    print(f"  Scope 1 total                : {result.scope1_total:.3f}")
    print(f"  Scope 2 total                : {result.scope2_total:.3f}")
    print(f"  Scope 3 total                : {result.scope3_total:.3f}")
    print(f"  {Style.BRIGHT}TOTAL CI                     : {C_SUCCESS}{result.total_ci_value:.3f}{C_RESET} "
          f"{Style.BRIGHT}gCO2e/MJ{C_RESET}")

    print(f"\n{C_HEADER}Rating & Savings:{C_RESET}")
    print(f"  Rating:        {result.ci_rating}  (score {result.ci_score:.1f})")
    print(f"  GHG savings:   {result.ghg_savings_percentage:.1f}%")
    print(f"  Uncertainty:   {result.uncertainty_range_low:.2f} - {result.uncertainty_range_high:.2f} "
          f"(x{result.uncertainty_multiplier:.3f})")

    print(f"\n{C_HEADER}Compliance:{C_RESET}")
    for label, ok in (("RED II", result.red_ii_compliant), ("RTFO", result.rtfo_compliant),
                      ("CFP", result.cfp_compliant), ("ISCC", result.iscc_compliant),
                      ("RSB", result.rsb_compliant)):
        color = C_SUCCESS if ok else C_ERROR
        print(f"  {label:<8}: {color}{'PASS' if ok else 'FAIL'}{C_RESET}")

    for warning in result.warnings:
        logger.warning(warning)
    print(f"{'='*60}\n")
