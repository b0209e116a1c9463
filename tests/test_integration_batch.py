import os

import numpy as np
import pandas as pd
import pytest

from carbon_intensity.audit import CalculationAudit
from carbon_intensity.batch import (
    load_batch_input, run_batch, save_batch_report, COL_LABEL, COL_TOTAL_CI, COL_ERROR,
)
from carbon_intensity.registry import load_registry
from carbon_intensity.visualization import Visualizer


@pytest.fixture
def input_sheet(tmp_path):
    df = pd.DataFrame([
        {"label": "Canola A", "feedstock_category": "oilseed", "methodology": "RED_II",
         "region": "NSW", "scope1_cultivation": 9.0, "scope1_processing": np.nan},
        {"label": "UCO Depot", "feedstock_category": "UCO", "methodology": "ISCC",
         "region": np.nan, "scope1_cultivation": np.nan, "scope1_processing": np.nan},
        {"label": "Corn", "feedstock_category": "corn", "methodology": "RED_II",
         "region": np.nan, "scope1_cultivation": np.nan, "scope1_processing": np.nan},
        {"label": "MSW", "feedstock_category": "waste", "methodology": "RSB",
         "region": "TAS", "scope1_cultivation": np.nan, "scope1_processing": 5.0},
    ])
    path = tmp_path / "batch_input.xlsx"
    df.to_excel(path, index=False)
    return path


def test_full_batch_execution(input_sheet, tmp_path):
    df = load_batch_input(str(input_sheet))
    audit = CalculationAudit(session_id="batch")
    report = run_batch(df, load_registry(str(tmp_path / "no_overrides.xlsx")), audit)

    assert len(report) == 4
    assert (report[COL_ERROR] != "").sum() == 1
    assert len(audit.entries) > 0

    out_file = save_batch_report(report, str(tmp_path / "reports"))
    assert os.path.exists(out_file)
    saved = pd.read_csv(out_file)
    assert saved[COL_LABEL].iloc[0] == "UCO Depot"
    assert saved[COL_TOTAL_CI].iloc[0] == pytest.approx(8.8)

    vis = Visualizer(mode="batch_run", output_root=str(tmp_path / "plots"))
    paths = vis.generate_all_batch_plots(report)
    assert len(paths) == 2
    assert all(os.path.exists(p) and p.endswith(".png") for p in paths)
    assert vis.session_dir.startswith(str(tmp_path / "plots" / "batch_run"))


def test_missing_input_sheet(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_batch_input(str(tmp_path / "missing.csv"))


def test_single_run_plots(uco_result, tmp_path):
    vis = Visualizer(mode="single_run", output_root=str(tmp_path))
    paths = vis.generate_all_single_run_plots(uco_result, "UCO Depot")
    assert [os.path.basename(p) for p in paths] == ["scope_breakdown_uco_depot.png", "waterfall_uco_depot.png"]
    assert all(os.path.getsize(p) > 0 for p in paths)


def test_batch_plots_skip_empty_report(tmp_path):
    vis = Visualizer(mode="batch_run", output_root=str(tmp_path))
    assert vis.plot_batch_ci(pd.DataFrame()) is None
    rejected_only = pd.DataFrame({COL_LABEL: ["x"], COL_TOTAL_CI: [np.nan], COL_ERROR: ["bad"]})
    assert vis.plot_batch_scope_stack(rejected_only) is None
