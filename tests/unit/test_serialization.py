"""
Unit tests for DataFrame value conversion helpers.
"""

import json

import numpy as np
import pandas as pd
import pytest

from data.serialization import (
    convert_numpy_types,
    format_date,
    format_timestamp,
    is_missing,
    optional_int,
)


@pytest.mark.unit
def test_convert_numpy_types_nested():
    converted = convert_numpy_types(
        {
            "seats": np.int64(151),
            "share": np.float64(0.5),
            "winner": np.bool_(True),
            "ids": np.array([1, 2]),
            "rows": [{"votes": np.int32(7)}],
        }
    )

    assert converted == {
        "seats": 151,
        "share": 0.5,
        "winner": True,
        "ids": [1, 2],
        "rows": [{"votes": 7}],
    }
    assert type(converted["seats"]) is int
    json.dumps(converted)


@pytest.mark.unit
def test_missing_values():
    assert is_missing(None)
    assert is_missing(np.nan)
    assert is_missing(pd.NaT)
    assert not is_missing(0)
    assert not is_missing("")
    assert not is_missing([])


@pytest.mark.unit
def test_optional_int():
    assert optional_int(np.float64(120000.0)) == 120000
    assert optional_int(np.nan) is None
    assert optional_int(None) is None


@pytest.mark.unit
def test_date_formatting():
    assert format_date(pd.Timestamp("2008-12-29")) == "2008-12-29"
    assert format_date(pd.NaT) is None
    assert format_timestamp(pd.Timestamp("2026-01-05 10:30:00")) == "2026-01-05T10:30:00"
    assert format_timestamp(None) is None
