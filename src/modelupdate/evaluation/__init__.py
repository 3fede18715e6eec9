"""Reporting of updating results."""

from .reporter import build_update_report, comparison_frame, snapshots_to_frame

__all__ = ["build_update_report", "comparison_frame", "snapshots_to_frame"]
