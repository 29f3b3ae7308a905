"""pytest configuration and shared fixtures."""

from __future__ import annotations

import os
import sys

import numpy as np
import pandas as pd
import pytest

# Ensure tests/ dir is on path so test_minebase imports work
sys.path.insert(0, os.path.dirname(__file__))

# ---------------------------------------------------------------------------
# Corpora
# ---------------------------------------------------------------------------

WORKED_EXAMPLE = [
    ["apple", "beer", "rice", "meat"],
    ["apple", "beer", "rice"],
    ["apple", "beer"],
    ["apple", "pear"],
    ["milk", "beer", "rice", "meat"],
    ["milk", "beer", "rice"],
    ["milk", "beer"],
    ["milk", "pear"],
]

ONE_ARY = np.array(
    [
        [0, 0, 0, 1, 0, 1, 1, 1, 1, 0, 1],
        [0, 0, 1, 1, 0, 1, 0, 1, 1, 0, 1],
        [1, 0, 0, 1, 0, 1, 1, 0, 0, 0, 0],
        [0, 1, 0, 0, 0, 1, 1, 0, 0, 1, 1],
        [0, 1, 0, 1, 1, 1, 0, 0, 1, 0, 0],
    ]
)

COLS = [
    "Apple",
    "Corn",
    "Dill",
    "Eggs",
    "Ice cream",
    "Kidney Beans",
    "Milk",
    "Nutmeg",
    "Onion",
    "Unicorn",
    "Yogurt",
]


@pytest.fixture()
def worked_baskets() -> list[list[str]]:
    return [list(b) for b in WORKED_EXAMPLE]


@pytest.fixture()
def worked_store():
    from arminer import TransactionStore

    return TransactionStore.build(WORKED_EXAMPLE)


@pytest.fixture()
def onehot_df() -> pd.DataFrame:
    return pd.DataFrame(ONE_ARY, columns=COLS).astype(bool)


@pytest.fixture()
def long_df() -> pd.DataFrame:
    rows = [(tid, item) for tid, basket in enumerate(WORKED_EXAMPLE, start=100) for item in basket]
    return pd.DataFrame(rows, columns=["order_id", "product"])
