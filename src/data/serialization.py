"""Helpers for turning DataFrame values into JSON-ready Python values."""

from typing import Any, Optional

import numpy as np
import pandas as pd


def convert_numpy_types(obj: Any) -> Any:
    """Convert numpy types to native Python types for JSON serialization."""
    if isinstance(obj, np.integer):
        return int(obj)
    elif isinstance(obj, np.floating):
        return float(obj)
    elif isinstance(obj, np.bool_):
        return bool(obj)
    elif isinstance(obj, np.ndarray):
        return obj.tolist()
    elif isinstance(obj, dict):
        return {k: convert_numpy_types(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [convert_numpy_types(item) for item in obj]
    else:
        return obj


def is_missing(value: Any) -> bool:
    return value is None or (not isinstance(value, (list, dict)) and pd.isna(value))


def format_date(value: Any) -> Optional[str]:
    """Render a DATE column value as ``YYYY-MM-DD``."""
    if is_missing(value):
        return None
    return pd.Timestamp(value).strftime("%Y-%m-%d")


def format_timestamp(value: Any) -> Optional[str]:
    """Render a TIMESTAMP column value in ISO 8601."""
    if is_missing(value):
        return None
    return pd.Timestamp(value).isoformat()


def optional_int(value: Any) -> Optional[int]:
    if is_missing(value):
        return None
    return int(value)
