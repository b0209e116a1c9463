import matplotlib.pyplot as plt
import pandas as pd
import os
import logging
from datetime import datetime
from typing import List, Optional

from .batch import COL_LABEL, COL_TOTAL_CI, COL_RATING, COL_ERROR, SCOPE_COLUMNS
from .constants import EMISSION_FIELDS, CI_RATING_THRESHOLDS, FAILING_RATING
from .config import PROJECT_ROOT
from .models import CICalculationResult

logger = logging.getLogger(__name__)

# ============================================================================
# VISUALIZER CLASS
# ============================================================================

report_directory = os.path.join(PROJECT_ROOT, 'reports')


class Visualizer:
    def __init__(self, mode: str = "single_run", output_root: Optional[str] = None):
        """
        Initialize Visualizer.
        mode: 'single_run' (for interactive) or 'batch_run' (for a batch sheet)
        output_root: base folder for plots, defaults to <project>/reports
        """
        self.mode = mode
        self.output_root = output_root or report_directory
        self._setup_style()
        self.session_dir = self._create_session_dir()

    def _setup_style(self):
        """Configure matplotlib for clean report plots."""
        plt.rcParams.update(plt.rcParamsDefault)

        plt.rcParams.update({
            'font.family': 'sans-serif',
            'font.sans-serif': ['Arial', 'Helvetica', 'Calibri', 'DejaVu Sans'],
            'font.size': 12,
            'axes.titlesize': 16,
            'axes.titleweight': 'bold',
            'axes.labelsize': 13,
            'xtick.labelsize': 11,
            'ytick.labelsize': 11,
            'legend.fontsize': 11,
            'text.color': '#2C3E50',
            'axes.labelcolor': '#2C3E50',
            'xtick.color': '#2C3E50',
            'ytick.color': '#2C3E50'
        })

        plt.rcParams.update({
            'axes.spines.top': False,
            'axes.spines.right': False,
            'axes.spines.left': False,
            'axes.spines.bottom': True,
            'axes.linewidth': 1.2,
            'grid.color': '#E0E0E0',
            'grid.linestyle': ':',
            'grid.linewidth': 1.0,
            'axes.grid': True,
            'axes.grid.axis': 'y',
            'axes.axisbelow': True
        })

        self.colors = {
            'scope1': '#D32F2F',
            'scope2': '#FF8A65',
            'scope3': '#5D6D7E',
            'credit': '#388E3C',
            'total': '#2C3E50',
            'text': '#2C3E50',
        }
        # Rating -> bar colour, best to worst
        self.rating_colors = {
            'A+': '#1B5E20', 'A': '#388E3C', 'B+': '#7CB342', 'B': '#C0CA33',
            'C+': '#FDD835', 'C': '#FFB300', 'D': '#F4511E', FAILING_RATING: '#B71C1C',
        }

    def _create_session_dir(self) -> str:
        """Create the specific directory for this session's plots."""
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        subdir = "batch_run" if self.mode == "batch_run" else "single_run"
        path = os.path.join(self.output_root, subdir, timestamp)
        os.makedirs(path, exist_ok=True)
        return path

    def get_save_path(self, filename: str) -> str:
        return os.path.join(self.session_dir, filename)

    def _save(self, fig, filename: str, what: str) -> str:
        plt.tight_layout()
        filepath = self.get_save_path(filename)
        fig.savefig(filepath, dpi=150, bbox_inches='tight')
        plt.close(fig)
        logger.info(f"   [Plot] Saved {what} to: {filepath}")
        return filepath

    # ============================================================================
    # SINGLE RUN PLOTS
    # ============================================================================

    def plot_scope_breakdown(self, result: CICalculationResult, label: str = "") -> str:
        """Bar chart of the three scope totals plus the total CI."""
        names = ["Scope 1", "Scope 2", "Scope 3", "Total"]
        values = [result.scope1_total, result.scope2_total, result.scope3_total, result.total_ci_value]
        bar_colors = [self.colors['scope1'], self.colors['scope2'], self.colors['scope3'], self.colors['total']]

        fig, ax = plt.subplots(figsize=(9, 6), dpi=150)
        bars = ax.bar(names, values, color=bar_colors, alpha=0.85, width=0.6, edgecolor='none')
        ax.axhline(0, color=self.colors['text'], linewidth=0.8)

        ax.set_ylabel("gCO2e/MJ", fontweight='bold')
        title = f"Carbon Intensity by Scope ({result.ci_rating})"
        ax.set_title(f"{title}\n{label or result.feedstock_category}", pad=20, loc='left')

        span = max(abs(v) for v in values) or 1.0
        for bar, value in zip(bars, values):
            offset = span * 0.01
            y = value + offset if value >= 0 else value - offset
            ax.text(bar.get_x() + bar.get_width() / 2., y, f'{value:.2f}',
                    ha='center', va='bottom' if value >= 0 else 'top',
                    fontsize=10, fontweight='bold', color=self.colors['text'])

        safe_name = (label or result.feedstock_category).replace(" ", "_").lower()
        return self._save(fig, f"scope_breakdown_{safe_name}.png", "scope breakdown")

    def plot_waterfall(self, result: CICalculationResult, label: str = "") -> str:
        """Waterfall from the nine sub-categories to the total CI; credits step down."""
        values = [getattr(result, name) for name in EMISSION_FIELDS]
        names = [name.replace("_", "\n", 1).replace("_", " ") for name in EMISSION_FIELDS]

        fig, ax = plt.subplots(figsize=(14, 7), dpi=150)
        running = 0.0
        for i, (name, value) in enumerate(zip(EMISSION_FIELDS, values)):
            scope_key = name.split("_", 1)[0]
            color = self.colors['credit'] if value < 0 else self.colors[scope_key]
            ax.bar(i, value, bottom=running, color=color, edgecolor='white', width=0.6)
            running += value
        ax.bar(len(values), result.total_ci_value, color=self.colors['total'], width=0.6)

        ax.set_xticks(range(len(values) + 1))
        ax.set_xticklabels(names + ["Total"], rotation=45, ha='right', fontsize=9)
        ax.set_ylabel("gCO2e/MJ", fontweight='bold')
        ax.set_title(f"Emission Build-up\n{label or result.feedstock_category}", loc='left', pad=20)

        safe_name = (label or result.feedstock_category).replace(" ", "_").lower()
        return self._save(fig, f"waterfall_{safe_name}.png", "waterfall")

    # ============================================================================
    # BATCH PLOTS
    # ============================================================================

    def _calculated_rows(self, df: pd.DataFrame) -> pd.DataFrame:
        if df.empty or COL_TOTAL_CI not in df.columns:
            return df.iloc[0:0]
        subset = df[df[COL_TOTAL_CI].notna()]
        if COL_ERROR in subset.columns:
            subset = subset[subset[COL_ERROR].fillna("") == ""]
        return subset

    def plot_batch_ci(self, df: pd.DataFrame) -> Optional[str]:
        """Horizontal bars of total CI per row, coloured by rating, with rating bounds."""
        subset = self._calculated_rows(df)
        if subset.empty:
            return None
        subset = subset.sort_values(COL_TOTAL_CI)

        fig, ax = plt.subplots(figsize=(12, max(4, 0.4 * len(subset) + 2)), dpi=150)
        bar_colors = [self.rating_colors.get(r, self.colors['total']) for r in subset[COL_RATING]]
        bars = ax.barh(subset[COL_LABEL].astype(str), subset[COL_TOTAL_CI], color=bar_colors,
                       edgecolor='white', linewidth=1.5)

        for rating, upper in CI_RATING_THRESHOLDS:
            if upper <= subset[COL_TOTAL_CI].max() * 1.1:
                ax.axvline(upper, color='#9E9E9E', linestyle='--', linewidth=0.8)
                ax.text(upper, len(subset) - 0.4, rating, fontsize=8, color='#616161', ha='center')

        ax.set_xlabel("Carbon Intensity (gCO2e/MJ)", fontweight='bold')
        ax.set_title("Carbon Intensity Ranking", loc='left', pad=15)
        ax.grid(True, axis='x', linestyle=':', alpha=0.5)

        for bar in bars:
            width = bar.get_width()
            ax.text(width, bar.get_y() + bar.get_height() / 2, f' {width:.2f}',
                    va='center', fontsize=9, fontweight='bold')

        return self._save(fig, "batch_ci_ranking.png", "CI ranking")

    def plot_batch_scope_stack(self, df: pd.DataFrame) -> Optional[str]:
        """Stacked scope totals per row; negative scope totals stack below zero."""
        subset = self._calculated_rows(df)
        if subset.empty:
            return None

        fig, ax = plt.subplots(figsize=(max(8, 0.6 * len(subset) + 4), 7), dpi=150)
        x = range(len(subset))
        pos_bottom = [0.0] * len(subset)
        neg_bottom = [0.0] * len(subset)
        for key, col in SCOPE_COLUMNS.items():
            vals = subset[col].tolist()
            bottoms = [pb if v >= 0 else nb for v, pb, nb in zip(vals, pos_bottom, neg_bottom)]
            ax.bar(x, vals, bottom=bottoms, label=col, color=self.colors[key.split("_")[0]],
                   edgecolor='white', linewidth=0.5)
            pos_bottom = [pb + max(v, 0.0) for v, pb in zip(vals, pos_bottom)]
            neg_bottom = [nb + min(v, 0.0) for v, nb in zip(vals, neg_bottom)]

        ax.axhline(0, color=self.colors['text'], linewidth=0.8)
        ax.set_xticks(list(x))
        ax.set_xticklabels(subset[COL_LABEL].astype(str), rotation=45, ha='right')
        ax.set_ylabel("gCO2e/MJ", fontweight='bold')
        ax.set_title("Scope Composition by Feedstock", loc='left', pad=20)
        ax.legend(bbox_to_anchor=(1.02, 1), loc='upper left', frameon=False, fontsize=9)

        return self._save(fig, "batch_scope_stack.png", "scope stack")

    # ============================================================================
    # COMPREHENSIVE PLOT GENERATOR
    # ============================================================================

    def generate_all_single_run_plots(self, result: CICalculationResult, label: str = "") -> List[str]:
        paths = [
            self.plot_scope_breakdown(result, label),
            self.plot_waterfall(result, label),
        ]
        logger.info(f"   [Complete] All single-run plots saved to: {self.session_dir}")
        return paths

    def generate_all_batch_plots(self, df: pd.DataFrame) -> List[str]:
        paths = [p for p in (self.plot_batch_ci(df), self.plot_batch_scope_stack(df)) if p]
        logger.info(f"   [Complete] All batch plots saved to: {self.session_dir}")
        return paths
