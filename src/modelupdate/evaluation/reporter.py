from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import numpy as np
import pandas as pd

from ..core.config import OptimOptions
from ..optimization.problem import IterationSnapshot, UpdateProblem, UpdateSummary
from ..utils.io_utils import atomic_write_text


def snapshots_to_frame(snapshots: List[IterationSnapshot]) -> pd.DataFrame:
    """Iteration trace: one row per snapshot."""
    rows = []
    for snapshot in snapshots:
        comparison = snapshot.comparison
        row = {
            "iteration": snapshot.iteration,
            "duration": snapshot.duration,
            "cost": snapshot.cost,
            "max_error": snapshot.max_error(),
            "max_error_mac": float(np.max(comparison.errors_mac)) if comparison.num_modes else np.nan,
            "is_success": snapshot.is_success,
        }
        for i, (error, pair) in enumerate(zip(comparison.error_frequencies, comparison.pairs)):
            row[f"error_{i}"] = error
            row[f"pair_{i}"] = pair[0]
        rows.append(row)
    frame = pd.DataFrame(rows)
    if not frame.empty:
        frame = frame.set_index("iteration")
    return frame


def comparison_frame(snapshot: IterationSnapshot, problem: UpdateProblem) -> pd.DataFrame:
    """Target modes against the paired modes of a snapshot."""
    target = problem.target_solution
    comparison = snapshot.comparison
    rows = []
    for i, index in enumerate(problem.target_indices):
        pair_index, mac = comparison.pairs[i]
        rows.append({
            "target": target.names[index],
            "target_frequency": target.frequencies[index],
            "weight": problem.target_weights[i],
            "pair": snapshot.solution.names[pair_index] if pair_index >= 0 else "",
            "frequency": snapshot.solution.frequencies[pair_index] if pair_index >= 0 else np.nan,
            "diff_frequency": comparison.diff_frequencies[i],
            "error_frequency": comparison.error_frequencies[i],
            "mac": mac,
        })
    return pd.DataFrame(rows)


def build_update_report(
    problem: UpdateProblem,
    options: OptimOptions,
    snapshots: List[IterationSnapshot],
    summary: Optional[UpdateSummary],
    path: Path | str,
) -> str:
    lines: list[str] = []
    lines.append("=== Problem ===")
    lines.append(f"Target modes: {len(problem.target_indices)}")
    lines.append(f"Selected elements: {len(problem.selections())}")
    lines.append(f"Vertex matches: {len(problem.vertex_matches)}")
    lines.append("")
    lines.append("=== Options ===")
    for key, value in options.to_dict().items():
        lines.append(f"{key}: {value}")
    lines.append("")
    lines.append("=== Solver ===")
    if summary is None:
        lines.append("Updating was not performed")
    else:
        lines.extend(summary.lines())
        lines.append(f"Success: {summary.is_success}")
    lines.append("")
    lines.append("=== Final modes ===")
    if snapshots:
        final = snapshots[-1]
        lines.append(f"Iteration: {final.iteration}")
        table = comparison_frame(final, problem)
        lines.append(table.to_string(index=False, float_format=lambda value: f"{value:.6g}"))
    else:
        lines.append("No feasible iterations")
    text = "\n".join(lines)
    atomic_write_text(Path(path), text)
    return text
