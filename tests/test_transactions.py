"""Tests for the transaction store and its builders."""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest
from scipy.sparse import csr_matrix

from arminer import InvalidInputError, TransactionStore, canonical, read_baskets
from arminer.transactions import as_store


def test_canonical() -> None:
    assert canonical(["b", "a", "a"]) == ("a", "b")
    assert canonical("a") == ("a",)
    assert canonical([2, "a", 1]) == (1, 2, "a")
    with pytest.raises(InvalidInputError):
        canonical([1, (1, 2)])


def test_build_normalises(worked_store) -> None:
    assert worked_store.total_baskets() == 8
    assert worked_store.items == ["apple", "beer", "meat", "milk", "pear", "rice"]
    assert worked_store.occurrence_count(["apple"]) == 4
    assert worked_store.occurrence_count(["beer", "rice"]) == 4
    assert worked_store.baskets_containing(["apple", "beer", "rice"]) == frozenset({0, 1})


def test_duplicates_and_empty_baskets() -> None:
    store = TransactionStore.build([["a", "a", "b"], [], ["b"], ["b", "b"]])
    assert store.total_baskets() == 3
    assert store.occurrence_count("b") == 3
    # positions refer to the input, so the dropped basket leaves a gap
    assert store.baskets_containing("b") == frozenset({0, 2, 3})


def test_unknown_item() -> None:
    store = TransactionStore.build([["a"]])
    assert store.baskets_containing(["zzz"]) == frozenset()
    assert store.occurrence_count(["a", "zzz"]) == 0
    with pytest.raises(KeyError, match="zzz"):
        store.encode(["zzz"])


def test_empty_inputs() -> None:
    with pytest.raises(InvalidInputError, match="empty"):
        TransactionStore.build([])
    with pytest.raises(InvalidInputError, match="empty"):
        TransactionStore.build([[], set()])
    with pytest.raises(InvalidInputError):
        TransactionStore.build("abc")


def test_malformed_items() -> None:
    with pytest.raises(InvalidInputError, match="missing"):
        TransactionStore.build([["a"], [None]])
    with pytest.raises(InvalidInputError, match="comparable"):
        TransactionStore.build([[1], [(1, 2)]])


def test_labels() -> None:
    store = TransactionStore.build({"t1": ["a"], "t2": ["a", "b"], "t3": []})
    assert store.basket_ids == ["t1", "t2"]
    assert store.baskets_containing(["a"]) == frozenset({"t1", "t2"})
    assert store.baskets_containing(["b"]) == frozenset({"t2"})

    store = TransactionStore.build([["a"], ["b"]], labels=["x", "y"])
    assert store.baskets_containing("b") == frozenset({"y"})
    with pytest.raises(InvalidInputError, match="labels"):
        TransactionStore.build([["a"], ["b"]], labels=["x"])


def test_postings_read_only(worked_store) -> None:
    beer = worked_store.encode(["beer"])[0]
    postings = worked_store.postings(beer)
    np.testing.assert_array_equal(postings, [0, 1, 2, 4, 5, 6])
    assert postings.dtype == np.int64
    assert not postings.flags.writeable
    np.testing.assert_array_equal(worked_store.item_counts(), [4, 6, 2, 4, 2, 4])


def test_encode_decode(worked_store) -> None:
    ids = worked_store.encode(["rice", "apple"])
    assert ids == (0, 5)
    assert worked_store.decode(reversed(ids)) == ("apple", "rice")


def test_intersect_matches_scan(worked_store) -> None:
    ids = worked_store.encode(["beer", "rice", "meat"])
    expected = [pos for pos in range(len(worked_store)) if set(ids) <= worked_store.basket(pos)]
    np.testing.assert_array_equal(worked_store.intersect(ids), expected)
    np.testing.assert_array_equal(worked_store.intersect(()), np.arange(8))


def test_from_transactions(long_df) -> None:
    store = TransactionStore.from_transactions(long_df, transaction_col="order_id", item_col="product")
    assert store.total_baskets() == 8
    assert store.baskets_containing(["apple", "pear"]) == frozenset({103})

    # default columns are the first two
    assert TransactionStore.from_transactions(long_df).total_baskets() == 8


def test_from_transactions_drops_missing_items() -> None:
    df = pd.DataFrame({"order": [1, 1, 2, 2, 2], "item": ["a", "b", "a", "c", None]})
    store = TransactionStore.from_transactions(df)
    assert store.items == ["a", "b", "c"]
    assert store.baskets_containing("a") == frozenset({1, 2})


def test_from_transactions_errors() -> None:
    with pytest.raises(InvalidInputError, match="at least 2 columns"):
        TransactionStore.from_transactions(pd.DataFrame({"a": [1]}))
    with pytest.raises(InvalidInputError, match="not found"):
        TransactionStore.from_transactions(pd.DataFrame({"a": [1], "b": [2]}), item_col="item")


def test_from_onehot(onehot_df) -> None:
    store = TransactionStore.from_onehot(onehot_df)
    assert store.total_baskets() == 5
    assert store.occurrence_count(["Kidney Beans"]) == 5
    assert store.occurrence_count(["Eggs"]) == 4


def test_from_onehot_matrix() -> None:
    dense = np.array([[True, False, True], [False, False, True], [False, False, False]])
    store = TransactionStore.from_onehot(dense, item_names=["x", "y", "z"])
    assert store.total_baskets() == 2
    assert store.items == ["x", "z"]

    store = TransactionStore.from_onehot(csr_matrix(dense.astype(np.int8)))
    assert store.items == [0, 2]
    assert store.occurrence_count([2]) == 2

    with pytest.raises(InvalidInputError, match="item names"):
        TransactionStore.from_onehot(dense, item_names=["x"])


def test_from_onehot_rejects_nan() -> None:
    df = pd.DataFrame({"a": [1.0, np.nan], "b": [0.0, 1.0]})
    with pytest.raises(InvalidInputError, match="NaN"):
        TransactionStore.from_onehot(df)


def test_from_polars(long_df) -> None:
    pl = pytest.importorskip("polars")
    store = TransactionStore.from_transactions(pl.from_pandas(long_df))
    assert store.total_baskets() == 8
    assert store.occurrence_count(["milk"]) == 4


def test_read_baskets(tmp_path) -> None:
    path = tmp_path / "baskets.txt"
    path.write_text("apple, beer\nbeer\n\nrice,,apple\n")
    assert read_baskets(path) == [["apple", "beer"], ["beer"], [], ["rice", "apple"]]

    tsv = tmp_path / "baskets.tsv"
    tsv.write_text("apple\tbeer\nmilk\n")
    assert read_baskets(tsv, sep="\t") == [["apple", "beer"], ["milk"]]

    store = as_store(str(path))
    assert store.total_baskets() == 3


def test_as_store_passthrough(worked_store) -> None:
    assert as_store(worked_store) is worked_store
    assert "n_baskets=8" in repr(worked_store)


def test_duplicate_labels_rejected() -> None:
    with pytest.raises(InvalidInputError, match="'x' is used more than once"):
        TransactionStore.build([["a"], ["a"], ["b"]], labels=["x", "x", "y"])

    onehot = pd.DataFrame({"a": [True, True], "b": [False, True]}, index=["t1", "t1"])
    with pytest.raises(InvalidInputError, match="unique"):
        TransactionStore.from_onehot(onehot)


def test_containing_size_matches_count() -> None:
    store = TransactionStore.build([["a"], ["a"], ["b"]], labels=["x", "z", "y"])
    for itemset in (["a"], ["b"], ["a", "b"]):
        assert len(store.baskets_containing(itemset)) == store.occurrence_count(itemset)


def test_from_onehot_matrix_rejects_other_values() -> None:
    dense = np.array([[1, 0, 2], [0, 1, 1]])
    with pytest.raises(InvalidInputError, match="Found value 2"):
        TransactionStore.from_onehot(dense)
    with pytest.raises(InvalidInputError, match="Found value 5"):
        TransactionStore.from_onehot(csr_matrix(np.array([[0, 5], [1, 0]])))
