import os
import pandas as pd
import logging
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)

# Parameter sheets are looked up relative to the project root when no path is given:
# <root>/data/registry/emission_factors.xlsx
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
DEFAULT_CONFIG_PATH = os.path.join(PROJECT_ROOT, "data", "registry", "emission_factors.xlsx")


def read_table(path: str) -> pd.DataFrame:
    if path.lower().endswith(".csv"):
        return pd.read_csv(path)
    return pd.read_excel(path)


def load_parameter_table(path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load registry parameters from an Excel (.xlsx) or CSV sheet.
    Expected columns: Key, Value (Unit, Section, Description are informational).
    Returns a dictionary of Key -> Value; empty when the file does not exist.
    """
    path = path or DEFAULT_CONFIG_PATH
    config: Dict[str, Any] = {}
    if not os.path.exists(path):
        logger.warning(f"Parameter sheet not found at {path}. Using built-in registry.")
        return config

    df = read_table(path)
    if "Key" not in df.columns or "Value" not in df.columns:
        logger.warning(f"Parameter sheet {path} missing 'Key' or 'Value' columns.")
        return config

    for _, row in df.iterrows():
        if pd.isna(row["Key"]):
            continue
        key = str(row["Key"]).strip()
        val = row["Value"]
        if pd.isna(val):
            logger.debug(f"Skipping empty value for '{key}'")
            continue
        config[key] = val

    logger.info(f"Loaded {len(config)} parameters from {path}")
    return config
