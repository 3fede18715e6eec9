"""General IO helpers for configuration, iteration tables, and reports."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd
import yaml


def load_yaml(path: str | Path) -> dict:
    """Load a YAML file into a dictionary."""
    with open(path, "r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


def load_nested_config(path: str | Path) -> dict:
    """Load master config supporting include directives.

    Each included file becomes a top-level key named after its stem; keys of
    the master file other than ``include`` are kept and win over included ones.
    """
    path = Path(path)
    master = load_yaml(path)
    if "include" not in master:
        return master

    config: dict[str, Any] = {}
    for rel in master["include"]:
        sub_path = path.parent / rel
        config[sub_path.stem] = load_yaml(sub_path)
    for key, value in master.items():
        if key != "include":
            config[key] = value
    return config


def _to_builtin(obj: Any) -> Any:
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, np.generic):
        return obj.item()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def save_json(obj: Any, path: str | Path) -> None:
    """Serialize an object to JSON with indentation (numpy aware)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as handle:
        json.dump(obj, handle, indent=2, default=_to_builtin)


def save_csv(df_or_arr: Any, path: str | Path) -> None:
    """Persist a pandas DataFrame or array-like object as CSV."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    if hasattr(df_or_arr, "to_csv"):
        index_label = getattr(getattr(df_or_arr, "index", None), "name", None)
        df_or_arr.to_csv(path, index=True, index_label=index_label)
    else:
        pd.DataFrame(df_or_arr).to_csv(path, index=False)


def atomic_write_text(path: str | Path, text: str) -> None:
    """Atomically write text to a file by using a temporary file swap."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(text, encoding="utf-8")
    tmp_path.replace(path)
