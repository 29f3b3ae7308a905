"""Input and parameter validation shared by the store, the miner and the rule generator."""

from __future__ import annotations

import math
import numbers
from typing import TYPE_CHECKING, Any

import numpy as np

from .exceptions import InvalidInputError, InvalidParameterError

if TYPE_CHECKING:
    import pandas as pd


def _is_bool(value: Any) -> bool:
    return isinstance(value, (bool, np.bool_))


def check_threshold(name: str, value: Any) -> float:
    """Return *value* as a float, raising unless it lies in ``(0, 1]``."""
    if _is_bool(value) or not isinstance(value, numbers.Real):
        raise InvalidParameterError(f"`{name}` must be a number within the interval `(0, 1]`. Got {value!r}.")
    value = float(value)
    if math.isnan(value) or not 0.0 < value <= 1.0:
        raise InvalidParameterError(f"`{name}` must be a positive number within the interval `(0, 1]`. Got {value}.")
    return value


def check_lift_threshold(value: Any) -> float | None:
    if value is None:
        return None
    if _is_bool(value) or not isinstance(value, numbers.Real) or math.isnan(value) or value < 0:
        raise InvalidParameterError(f"`lift_threshold` must be a non-negative number or None. Got {value!r}.")
    return float(value)


def check_lengths(minlen: Any, maxlen: Any) -> tuple[int, int | None]:
    """Validate the itemset length bounds; ``maxlen=None`` means unbounded."""
    if _is_bool(minlen) or not isinstance(minlen, numbers.Integral):
        raise InvalidParameterError(f"`minlen` must be an integer >= 1. Got {minlen!r}.")
    if minlen < 1:
        raise InvalidParameterError(f"`minlen` must be >= 1. Got {minlen}.")
    if maxlen is None:
        return int(minlen), None
    if _is_bool(maxlen) or not isinstance(maxlen, numbers.Integral):
        raise InvalidParameterError(f"`maxlen` must be an integer >= 1 or None. Got {maxlen!r}.")
    if maxlen < 1:
        raise InvalidParameterError(f"`maxlen` must be >= 1. Got {maxlen}.")
    if minlen > maxlen:
        raise InvalidParameterError(f"`minlen` ({minlen}) must not exceed `maxlen` ({maxlen}).")
    return int(minlen), int(maxlen)


def check_n_jobs(n_jobs: Any) -> int:
    if _is_bool(n_jobs) or not isinstance(n_jobs, numbers.Integral) or n_jobs == 0 or n_jobs < -1:
        raise InvalidParameterError(f"`n_jobs` must be a positive integer or -1. Got {n_jobs!r}.")
    return int(n_jobs)


def valid_onehot_check(df: pd.DataFrame) -> None:
    """Validate a one-hot / boolean DataFrame before turning it into baskets.

    Allowed values are 0/1 or True/False. NaN is rejected.
    """
    import pandas as pd

    if df.shape[1] == 0:
        raise InvalidInputError("The one-hot DataFrame has no item columns.")

    if hasattr(df, "sparse"):
        values = df.sparse.to_coo().tocoo().data
    else:
        if df.dtypes.apply(pd.api.types.is_bool_dtype).all():
            return
        if pd.isna(df).any().any():
            raise InvalidInputError("NaN values are not permitted in a one-hot DataFrame.")
        values = df.values

    check_onehot_values(values)


def check_onehot_values(values: Any) -> None:
    """Raise unless every entry of *values* (an array) is 0/1 or True/False."""
    values = np.asarray(values)
    idxs = np.where((values != 1) & (values != 0))
    if len(idxs[0]) > 0:
        val = values[tuple(loc[0] for loc in idxs)]
        raise InvalidInputError(f"The allowed values for a one-hot DataFrame are True, False, 0, 1. Found value {val}")
