import os
import logging
from datetime import datetime
from typing import Dict, Any, List, Optional

logger = logging.getLogger(__name__)


class CalculationAudit:
    """
    Ordered trail of calculation steps for one or more CI calculations.

    Entries are kept in memory; `write()` renders them to a text log. The
    calculator only appends to an audit it is handed, so a calculation without
    an audit performs no I/O.
    """

    def __init__(self, session_id: Optional[str] = None):
        self.enabled = True
        self.session_id = session_id or datetime.now().strftime("%Y%m%d_%H%M%S")
        self.entries: List[Dict[str, Any]] = []

    def log_calculation(self, context: str, formula: str, variables: Dict[str, Any], result: float, unit: str = ""):
        """
        Record a calculation step.

        Args:
            context: Description of what is being calculated (e.g., "Scope 1 total")
            formula: Text representation of equation (e.g., "cultivation + processing + transport")
            variables: Dict of actual values used (e.g., {"cultivation": 0.0, "processing": 3.5})
            result: The final result
            unit: Unit of the result (e.g., "gCO2e/MJ")
        """
        if not self.enabled:
            return
        self.entries.append({
            "timestamp": datetime.now().strftime("%H:%M:%S"),
            "context": context,
            "formula": formula,
            "variables": dict(variables),
            "result": result,
            "unit": unit,
        })

    def render(self) -> str:
        lines = [
            "=== EMISSION CALCULATION AUDIT LOG ===",
            f"Session: {self.session_id}",
            "======================================",
            "",
        ]
        for entry in self.entries:
            lines.append(f"[{entry['timestamp']}] {entry['context']}")
            lines.append(f"  Formula: {entry['formula']}")
            vars_str = ", ".join([f"{k}={v}" for k, v in entry["variables"].items()])
            lines.append(f"  Inputs:  {vars_str}")
            result = entry["result"]
            if isinstance(result, float):
                lines.append(f"  Result:  {result:.4f} {entry['unit']}")
            else:
                lines.append(f"  Result:  {result} {entry['unit']}")
            lines.append("-" * 40)
        return "\n".join(lines) + "\n"

    def write(self, log_dir: str) -> str:
        """Write the trail to <log_dir>/audit_<session>.txt and return the path."""
        os.makedirs(log_dir, exist_ok=True)
        log_file = os.path.join(log_dir, f"audit_{self.session_id}.txt")
        with open(log_file, "w", encoding="utf-8") as f:
            f.write(self.render())
        logger.info(f"Audit log written to {log_file}")
        return log_file
