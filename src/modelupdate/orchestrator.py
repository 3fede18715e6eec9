"""High-level orchestrator for the complete model updating workflow.

This module provides the UpdateOrchestrator class which coordinates the
analyses of one project: modal analysis of the initial model, updating of the
model against the target modes and persistence of the results.

Workflow
--------
1. run_modal()   : Modal analysis of the initial model
2. run_update()  : Least-squares updating against the target modes
3. write_outputs(): Iteration trace, summary and report files
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional

from .core.modal import ModalSolution
from .core.solvers import ModalSolver, OptimSolver
from .evaluation.reporter import build_update_report, snapshots_to_frame
from .optimization.problem import IterationSnapshot
from .preprocessing.problem_builder import ProjectInput, model_to_dict
from .utils.io_utils import save_csv, save_json

logger = logging.getLogger(__name__)


class UpdateOrchestrator:
    """High-level pipeline:
        run_modal()  -> modal solution of the initial model
        run_update() -> iteration snapshots
        write_outputs() -> files in the output directory
    Keeps the project objects and the solvers in one place.
    """
    def __init__(self, project: ProjectInput) -> None:
        self.project = project
        self.modal_solver = ModalSolver("Modal analysis", project.model, project.config.modal)
        self.optim_solver = OptimSolver("Updating", project.model, project.problem, project.config.optim)

    def run_modal(self) -> Optional[ModalSolution]:
        """Modal analysis of the initial model."""
        return self.modal_solver.solve()

    def run_update(self) -> List[IterationSnapshot]:
        """Update the model; returns the snapshot of every feasible iteration."""
        return self.optim_solver.solve()

    def stop(self) -> None:
        self.optim_solver.stop()

    def write_outputs(self, output_dir: Path | str) -> Dict[str, Path]:
        """Persist the iteration trace, the summary and the text report."""
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        snapshots = self.optim_solver.solutions
        summary = self.optim_solver.driver.summary
        paths = {
            "trace": output_dir / "iterations.csv",
            "summary": output_dir / "summary.json",
            "report": output_dir / "report.txt",
        }
        save_csv(snapshots_to_frame(snapshots), paths["trace"])

        result = {
            "options": self.project.config.optim.to_dict(),
            "constraints": self.project.problem.constraints.to_dict(),
            "num_iterations": len(snapshots),
            "summary": None if summary is None else {
                "num_iterations": summary.num_iterations,
                "num_evaluations": summary.num_evaluations,
                "initial_cost": summary.initial_cost,
                "final_cost": summary.final_cost,
                "duration": summary.duration,
                "is_success": summary.is_success,
                "message": summary.message,
            },
        }
        if snapshots:
            final = snapshots[-1]
            result["final_modes"] = final.solution.to_dict()
            result["model"] = model_to_dict(final.model)
            paths["model"] = output_dir / "model.json"
            save_json(result["model"], paths["model"])
        save_json(result, paths["summary"])

        build_update_report(self.project.problem, self.project.config.optim, snapshots, summary, paths["report"])
        logger.info("Results written to %s", output_dir)
        return paths
