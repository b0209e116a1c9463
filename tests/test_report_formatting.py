import numpy as np
import pandas as pd

from carbon_intensity.batch import (
    format_report_dataframe, save_batch_report, COL_LABEL, COL_TOTAL_CI, COL_ERROR,
)


def _raw_report():
    return pd.DataFrame({
        COL_LABEL: ["tallow", "rejected", "uco"],
        COL_TOTAL_CI: [11.30000001, np.nan, 8.8000000001],
        "GHG Savings (%)": [87.97872340, np.nan, 90.63829787],
        "RED II": [True, np.nan, True],
        COL_ERROR: ["", "Unknown feedstock category 'corn'", ""],
        "ExtraColumn": ["KeepMe", "KeepMe", "KeepMe"],
    })


def test_dataframe_formatting():
    raw = _raw_report()
    formatted = format_report_dataframe(raw)

    assert list(formatted[COL_LABEL]) == ["uco", "tallow", "rejected"]
    assert formatted.loc[0, COL_TOTAL_CI] == 8.8
    assert formatted.loc[0, "GHG Savings (%)"] == 90.64
    assert np.isnan(formatted.loc[2, COL_TOTAL_CI])
    assert "ExtraColumn" in formatted.columns
    # input left alone
    assert raw.loc[0, COL_LABEL] == "tallow"
    assert raw.loc[2, COL_TOTAL_CI] == 8.8000000001


def test_save_batch_report(tmp_path):
    out_file = save_batch_report(_raw_report(), str(tmp_path / "reports"))
    assert out_file.endswith("ci_batch_report.csv")

    saved = pd.read_csv(out_file)
    assert list(saved[COL_LABEL]) == ["uco", "tallow", "rejected"]
    assert saved.loc[2, COL_ERROR].startswith("Unknown feedstock category")
