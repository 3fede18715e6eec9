"""Utility helpers: logging, IO and thread pools."""

from .io_utils import atomic_write_text, load_nested_config, load_yaml, save_csv, save_json
from .logging_utils import get_logger
from .parallel import run_with_timeout, worker_map

__all__ = [
    "atomic_write_text",
    "load_nested_config",
    "load_yaml",
    "save_csv",
    "save_json",
    "get_logger",
    "run_with_timeout",
    "worker_map",
]
