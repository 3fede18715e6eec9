from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional, Sequence

from .orchestrator import UpdateOrchestrator
from .preprocessing.problem_builder import load_project
from .utils.logging_utils import get_logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="modal model updating CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common(sub):
        sub.add_argument("--config", default="config/update.yaml")
        sub.add_argument("--log-level", default="INFO")
        sub.add_argument("--num-threads", type=int, default=None)
        sub.add_argument("--output-dir", default="outputs")
        return sub

    add_common(subparsers.add_parser("modal", help="Run the modal analysis of the model"))
    add_common(subparsers.add_parser("update", help="Update the model against the target modes"))

    return parser


def _run_modal(orchestrator: UpdateOrchestrator, logger) -> int:
    solution = orchestrator.run_modal()
    if solution is None or solution.is_empty():
        logger.error("Modal analysis produced no modes")
        return 1
    for name, frequency in zip(solution.names, solution.frequencies):
        print(f"{name:>10s}: {frequency:12.6f} Hz")
    return 0


def _run_update(orchestrator: UpdateOrchestrator, output_dir: Path, logger) -> int:
    snapshots = orchestrator.run_update()
    paths = orchestrator.write_outputs(output_dir)
    if not snapshots:
        logger.error("Updating produced no feasible iterations")
        return 1
    final = snapshots[-1]
    logger.info("Final iteration %d: success=%s (%s)", final.iteration, final.is_success, final.message)
    logger.info("Report: %s", paths["report"])
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logger = get_logger("modelupdate", args.log_level)

    try:
        project = load_project(args.config)
    except (FileNotFoundError, KeyError, ValueError) as exc:
        logger.error("Could not load %s: %s", args.config, exc)
        return 2
    if args.num_threads is not None:
        project.config.optim.num_threads = args.num_threads

    orchestrator = UpdateOrchestrator(project)
    if args.command == "modal":
        return _run_modal(orchestrator, logger)
    if args.command == "update":
        return _run_update(orchestrator, Path(args.output_dir), logger)
    parser.error(f"Unknown command {args.command}")
    return 2


if __name__ == "__main__":
    sys.exit(main())
