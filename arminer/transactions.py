"""Transaction store: normalised baskets plus one postings list per item."""

from __future__ import annotations

import math
import time
import typing
from collections import Counter
from collections.abc import Hashable, Iterable, Mapping, Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any

import numpy as np

from .exceptions import InvalidInputError

if TYPE_CHECKING:
    import pandas as pd
    import polars as pl

Item = Hashable
Itemset = tuple
BasketId = Hashable


def item_sort_key(item: Any) -> tuple[bool, Any]:
    """Canonical item order: non-strings first, then natural order."""
    return (isinstance(item, str), item)


def canonical(items: Iterable[Item]) -> Itemset:
    """Return *items* as a canonical itemset (deduplicated, sorted tuple)."""
    if isinstance(items, (str, bytes)):
        items = (items,)
    try:
        return tuple(sorted(set(items), key=item_sort_key))
    except TypeError as e:
        raise InvalidInputError(f"Items must be mutually comparable: {e}") from e


def _is_missing(item: Any) -> bool:
    return item is None or (isinstance(item, float) and math.isnan(item))


class TransactionStore:
    """Immutable, indexed view of a basket corpus.

    Items are assigned stable integer ids following the canonical item order,
    so an itemset of ids sorted ascending decodes to a canonical itemset of
    labels.  For every item the store keeps a sorted ``int64`` array of the
    (positional) baskets containing it; occurrence counting is a postings
    intersection rather than a rescan.

    Use :meth:`build` (or one of the ``from_*`` constructors) instead of
    calling ``__init__`` directly.
    """

    def __init__(
        self,
        baskets: list[frozenset[int]],
        items: list[Item],
        basket_ids: list[BasketId],
    ) -> None:
        self._baskets = baskets
        self._items = items
        self._basket_ids = basket_ids
        self._item_index: dict[Item, int] = {item: i for i, item in enumerate(items)}
        self._positional = basket_ids == list(range(len(basket_ids)))

        postings: list[list[int]] = [[] for _ in items]
        for pos, basket in enumerate(baskets):
            for item_id in basket:
                postings[item_id].append(pos)
        self._postings: list[np.ndarray] = [np.asarray(p, dtype=np.int64) for p in postings]
        for p in self._postings:
            p.setflags(write=False)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def build(
        cls,
        baskets: Sequence[Iterable[Item]] | Mapping[BasketId, Iterable[Item]],
        labels: Sequence[BasketId] | None = None,
        verbose: int = 0,
    ) -> TransactionStore:
        """Normalise and index a basket collection.

        Parameters
        ----------
        baskets : sequence of iterables, or mapping label -> iterable
            The corpus.  Duplicate items inside a basket collapse to one
            occurrence; baskets left empty are dropped.  Identical baskets are
            independent records and are counted separately.
        labels : sequence, optional
            Explicit basket identifiers (one per basket).  Ignored when
            *baskets* is a mapping, whose keys are used instead.  Defaults to
            the basket position in the input.
        verbose : int, default=0
            Print progress details.

        Raises
        ------
        InvalidInputError
            If the collection is empty, every basket is empty, an item is
            ``None`` / NaN / not comparable with the other items, or a basket
            label is repeated.
        """
        if isinstance(baskets, (str, bytes)):
            raise InvalidInputError("Expected a collection of baskets, got a single string.")

        if isinstance(baskets, Mapping):
            labels = list(baskets.keys())
            raw = list(baskets.values())
        else:
            raw = list(baskets)
            if labels is not None:
                labels = list(labels)
                if len(labels) != len(raw):
                    raise InvalidInputError(f"Got {len(labels)} labels for {len(raw)} baskets.")

        if labels is not None and len(set(labels)) != len(labels):
            dup = next(label for label, n in Counter(labels).items() if n > 1)
            raise InvalidInputError(f"Basket labels must be unique, {dup!r} is used more than once.")

        if not raw:
            raise InvalidInputError("The basket collection is empty.")

        t0 = 0.0
        if verbose:
            print(f"[{time.strftime('%X')}] Normalising {len(raw):,} baskets...")
            t0 = time.perf_counter()

        deduped: list[tuple[BasketId, frozenset[Item]]] = []
        for pos, basket in enumerate(raw):
            if isinstance(basket, (str, bytes)):
                basket = (basket,)
            items = frozenset(basket)
            if any(_is_missing(item) for item in items):
                raise InvalidInputError(f"Basket {pos} contains a missing item identifier (None/NaN).")
            if items:
                deduped.append((labels[pos] if labels is not None else pos, items))

        if not deduped:
            raise InvalidInputError("Every basket is empty after removing duplicate items.")

        universe: set[Item] = set()
        for _, items in deduped:
            universe.update(items)
        try:
            all_items = sorted(universe, key=item_sort_key)
        except TypeError as e:
            raise InvalidInputError(f"Item identifiers must be mutually comparable: {e}") from e
        item_to_idx = {item: i for i, item in enumerate(all_items)}

        encoded = [frozenset(item_to_idx[item] for item in items) for _, items in deduped]
        basket_ids = [bid for bid, _ in deduped]

        if verbose:
            dropped = len(raw) - len(deduped)
            print(
                f"[{time.strftime('%X')}] Found {len(all_items):,} unique items in {len(deduped):,} baskets "
                f"({dropped:,} empty dropped) in {time.perf_counter() - t0:.2f}s."
            )

        return cls(encoded, all_items, basket_ids)

    @classmethod
    def from_transactions(
        cls,
        data: pd.DataFrame | pl.DataFrame | Any,
        transaction_col: str | None = None,
        item_col: str | None = None,
        verbose: int = 0,
    ) -> TransactionStore:
        """Build a store from long-format data (one row per basket/item pair).

        Parameters
        ----------
        data : pandas.DataFrame or polars.DataFrame
            At least two columns: a transaction identifier and an item.
        transaction_col : str, optional
            Transaction column.  Defaults to the first column.
        item_col : str, optional
            Item column.  Defaults to the second column.  Rows with a missing
            item are skipped.
        verbose : int, default=0
            Print progress details.
        """
        df = _to_pandas(data)
        cols = list(df.columns)
        if len(cols) < 2:
            raise InvalidInputError(
                f"DataFrame must have at least 2 columns (transaction id + item), got {len(cols)}: {cols}"
            )

        txn_col = transaction_col or cols[0]
        itm_col = item_col or cols[1]
        if txn_col not in df.columns:
            raise InvalidInputError(f"Transaction column '{txn_col}' not found. Available columns: {cols}")
        if itm_col not in df.columns:
            raise InvalidInputError(f"Item column '{itm_col}' not found. Available columns: {cols}")

        if verbose:
            print(f"[{time.strftime('%X')}] Grouping long-format DataFrame (shape={df.shape}) into baskets...")

        df = df.loc[df[itm_col].notna(), [txn_col, itm_col]]
        grouped = df.groupby(txn_col, sort=False)[itm_col].agg(list)
        return cls.build(
            {_to_python(tid): [_to_python(i) for i in items] for tid, items in grouped.items()},
            verbose=verbose,
        )

    @classmethod
    def from_onehot(
        cls,
        df: pd.DataFrame | pl.DataFrame | Any,
        item_names: Sequence[Item] | None = None,
        verbose: int = 0,
    ) -> TransactionStore:
        """Build a store from a one-hot matrix (rows = baskets, columns = items).

        Accepts a dense or sparse pandas DataFrame, a polars DataFrame, a 2-D
        numpy array or a scipy sparse matrix.  For arrays and matrices
        *item_names* supplies the column labels (default: column positions).
        """
        from ._validation import check_onehot_values, valid_onehot_check

        if type(df).__name__ == "DataFrame" and getattr(type(df), "__module__", "").startswith("polars"):
            df = _to_pandas(df)

        if hasattr(df, "columns"):
            valid_onehot_check(df)
            names = list(item_names) if item_names is not None else [_to_python(c) for c in df.columns]
            index = [_to_python(i) for i in df.index]
            if hasattr(df, "sparse"):
                csr = df.sparse.to_coo().tocsr()
            else:
                from scipy import sparse as sp

                csr = sp.csr_matrix(np.asarray(df.values, dtype=bool))
        else:
            from scipy import sparse as sp

            if isinstance(df, np.ndarray) and df.ndim != 2:
                raise InvalidInputError(f"numpy array must be 2-D, got shape {df.shape}")
            csr = sp.csr_matrix(df, copy=True)
            check_onehot_values(csr.data)
            names = list(item_names) if item_names is not None else list(range(csr.shape[1]))
            index = None

        if len(names) != csr.shape[1]:
            raise InvalidInputError(f"Got {len(names)} item names for {csr.shape[1]} columns.")

        csr.eliminate_zeros()
        indptr, indices = csr.indptr, csr.indices
        baskets = [[names[j] for j in indices[indptr[r] : indptr[r + 1]]] for r in range(csr.shape[0])]
        return cls.build(baskets, labels=index, verbose=verbose)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def total_baskets(self) -> int:
        return len(self._baskets)

    @property
    def n_items(self) -> int:
        return len(self._items)

    @property
    def items(self) -> list[Item]:
        """Item labels, indexed by item id."""
        return list(self._items)

    @property
    def basket_ids(self) -> list[BasketId]:
        return list(self._basket_ids)

    def encode(self, itemset: Iterable[Item]) -> tuple[int, ...]:
        """Map item labels to a sorted tuple of item ids.

        Raises
        ------
        KeyError
            If an item never occurs in the corpus.
        """
        if isinstance(itemset, (str, bytes)):
            itemset = (itemset,)
        try:
            return tuple(sorted({self._item_index[item] for item in itemset}))
        except KeyError as e:
            raise KeyError(f"Item {e.args[0]!r} does not occur in any basket.") from None

    def decode(self, ids: Iterable[int]) -> Itemset:
        return tuple(self._items[i] for i in sorted(ids))

    def postings(self, item_id: int) -> np.ndarray:
        """Sorted positions of the baskets containing item *item_id* (read-only)."""
        return self._postings[item_id]

    def item_counts(self) -> np.ndarray:
        """Occurrence count of every single item, indexed by item id."""
        return np.fromiter((len(p) for p in self._postings), dtype=np.int64, count=len(self._postings))

    def basket(self, position: int) -> frozenset[int]:
        return self._baskets[position]

    def intersect(self, ids: Sequence[int]) -> np.ndarray:
        """Positions of the baskets containing every item id in *ids*."""
        if not ids:
            return np.arange(len(self._baskets), dtype=np.int64)
        lists = sorted((self._postings[i] for i in ids), key=len)
        result = lists[0]
        for other in lists[1:]:
            if len(result) == 0:
                break
            result = np.intersect1d(result, other, assume_unique=True)
        return result

    def baskets_containing(self, itemset: Iterable[Item]) -> frozenset[BasketId]:
        """Identifiers of the baskets containing every item of *itemset*.

        Items absent from the corpus yield an empty set.
        """
        try:
            ids = self.encode(itemset)
        except KeyError:
            return frozenset()
        positions = self.intersect(ids)
        if self._positional:
            return frozenset(int(p) for p in positions)
        return frozenset(self._basket_ids[p] for p in positions)

    def occurrence_count(self, itemset: Iterable[Item]) -> int:
        try:
            ids = self.encode(itemset)
        except KeyError:
            return 0
        return int(len(self.intersect(ids)))

    def __len__(self) -> int:
        return len(self._baskets)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(n_baskets={len(self._baskets)}, n_items={len(self._items)})"


# ---------------------------------------------------------------------------
# Readers and coercion helpers
# ---------------------------------------------------------------------------


def read_baskets(path: str | Path, sep: str = ",", encoding: str = "utf-8") -> list[list[str]]:
    """Read one basket per line, items separated by *sep*.

    Surrounding whitespace is stripped from every item; blank fields are
    ignored.  Blank lines produce empty baskets, which the store drops.
    """
    baskets: list[list[str]] = []
    with open(path, encoding=encoding) as f:
        for line in f:
            baskets.append([tok.strip() for tok in line.rstrip("\r\n").split(sep) if tok.strip()])
    return baskets


def as_store(data: Any, verbose: int = 0) -> TransactionStore:
    """Coerce any supported corpus representation into a :class:`TransactionStore`."""
    if isinstance(data, TransactionStore):
        return data
    if isinstance(data, (str, Path)):
        return TransactionStore.build(read_baskets(data), verbose=verbose)

    mod = getattr(type(data), "__module__", "") or ""
    if type(data).__name__ == "DataFrame" and (mod.startswith("pandas") or mod.startswith("polars")):
        df = _to_pandas(data)
        if _looks_onehot(df):
            return TransactionStore.from_onehot(df, verbose=verbose)
        return TransactionStore.from_transactions(df, verbose=verbose)
    if isinstance(data, np.ndarray) and data.ndim == 2 and data.dtype == bool:
        return TransactionStore.from_onehot(data, verbose=verbose)

    return TransactionStore.build(data, verbose=verbose)


def _looks_onehot(df: pd.DataFrame) -> bool:
    import pandas as pd

    if hasattr(df, "sparse"):
        return True
    return df.shape[1] > 0 and bool(df.dtypes.apply(pd.api.types.is_bool_dtype).all())


def _to_pandas(data: Any) -> pd.DataFrame:
    import pandas as pd

    if isinstance(data, pd.DataFrame):
        return data
    if hasattr(data, "to_pandas"):
        return typing.cast("pd.DataFrame", data.to_pandas())
    raise InvalidInputError(f"Expected a pandas or polars DataFrame, got {type(data)}")


def _to_python(value: Any) -> Any:
    """Unwrap numpy scalars so item labels hash and compare like builtins."""
    if isinstance(value, np.generic):
        return value.item()
    return value
