"""Level-wise (A-Priori) frequent itemset mining."""

from __future__ import annotations

import logging
import threading
import time
import warnings
from collections.abc import Iterable, Iterator, Mapping, Sequence
from typing import TYPE_CHECKING, Any

from ._validation import check_lengths, check_n_jobs, check_threshold
from .candidates import IdItemset, generate_candidates, seed_candidates
from .config import STRATEGIES, MiningConfig, Strategy
from .exceptions import EmptyResultWarning, InvalidParameterError, MiningCancelledError
from .model import Miner, RuleMinerMixin
from .support import SupportCounter, SupportRecord
from .transactions import Item, Itemset, TransactionStore, _to_python, as_store, canonical, item_sort_key

if TYPE_CHECKING:
    import pandas as pd

logger = logging.getLogger(__name__)


class FrequentItemsets(Mapping[Itemset, SupportRecord]):
    """Read-only mapping from frequent itemset to its :class:`SupportRecord`.

    Keys are canonical itemsets (tuples of item labels).  Lookups accept any
    iterable of items in any order, so ``fi[("beer", "apple")]`` and
    ``fi[{"apple", "beer"}]`` return the same record.

    Itemsets shorter than ``minlen`` are kept internally, since rule
    generation needs their supports, but are not part of the mapping.
    """

    def __init__(
        self,
        counts: Mapping[IdItemset, int],
        items: Sequence[Item],
        n_baskets: int,
        support_threshold: float | None = None,
        minlen: int = 1,
    ) -> None:
        self._counts = dict(counts)
        self._items = list(items)
        self._item_index = {item: i for i, item in enumerate(self._items)}
        self._n = n_baskets
        self.support_threshold = support_threshold
        self.minlen = minlen
        self._visible = sorted((s for s in self._counts if len(s) >= minlen), key=lambda s: (len(s), s))

    # ------------------------------------------------------------------
    # Mapping interface
    # ------------------------------------------------------------------

    def _encode(self, items: Iterable[Item]) -> IdItemset:
        if isinstance(items, (str, bytes)):
            items = (items,)
        try:
            return tuple(sorted({self._item_index[item] for item in items}))
        except (KeyError, TypeError):
            raise KeyError(items) from None

    def _decode(self, ids: IdItemset) -> Itemset:
        return tuple(self._items[i] for i in ids)

    def __getitem__(self, items: Iterable[Item]) -> SupportRecord:
        ids = self._encode(items)
        if len(ids) < self.minlen or ids not in self._counts:
            raise KeyError(self._decode(ids))
        count = self._counts[ids]
        return SupportRecord(count, count / self._n)

    def __iter__(self) -> Iterator[Itemset]:
        return (self._decode(s) for s in self._visible)

    def __len__(self) -> int:
        return len(self._visible)

    def __contains__(self, items: object) -> bool:
        try:
            self[items]  # type: ignore[index]
        except KeyError:
            return False
        return True

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def n_baskets(self) -> int:
        return self._n

    @property
    def universe(self) -> list[Item]:
        """Every item of the mined corpus, in canonical order."""
        return list(self._items)

    def count(self, items: Iterable[Item]) -> int:
        return self[items].count

    def support(self, items: Iterable[Item]) -> float:
        return self[items].support

    def of_length(self, k: int) -> dict[Itemset, SupportRecord]:
        return {self._decode(s): self._record(s) for s in self._visible if len(s) == k}

    def maximal(self) -> list[Itemset]:
        """Frequent itemsets with no frequent proper superset."""
        covered = self._covered(lambda sub, sup: True)
        return [self._decode(s) for s in self._visible if s not in covered]

    def closed(self) -> list[Itemset]:
        """Frequent itemsets with no proper superset of equal support."""
        covered = self._covered(lambda sub, sup: self._counts[sub] == self._counts[sup])
        return [self._decode(s) for s in self._visible if s not in covered]

    def _covered(self, same: Any) -> set[IdItemset]:
        # Downward closure: any frequent superset implies a frequent superset one item larger.
        covered: set[IdItemset] = set()
        for sup in self._counts:
            for i in range(len(sup)):
                sub = sup[:i] + sup[i + 1 :]
                if sub in self._counts and same(sub, sup):
                    covered.add(sub)
        return covered

    def _record(self, ids: IdItemset) -> SupportRecord:
        count = self._counts[ids]
        return SupportRecord(count, count / self._n)

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    def to_pandas(self) -> pd.DataFrame:
        """Tabular report with columns ``support``, ``itemsets`` and ``count``.

        Rows are sorted by descending support, then by itemset.  The number of
        baskets is stored in ``df.attrs["num_itemsets"]``.
        """
        import pandas as pd

        rows = sorted(
            self._visible,
            key=lambda s: (-self._counts[s], len(s), [item_sort_key(self._items[i]) for i in s]),
        )
        df = pd.DataFrame(
            {
                "support": [self._counts[s] / self._n for s in rows],
                "itemsets": [self._decode(s) for s in rows],
                "count": [self._counts[s] for s in rows],
            },
            columns=["support", "itemsets", "count"],
        )
        df["support"] = df["support"].astype(float)
        df["count"] = df["count"].astype("int64")
        df.attrs["num_itemsets"] = self._n
        return df

    @classmethod
    def from_pandas(cls, df: pd.DataFrame | Any, num_itemsets: int | None = None) -> FrequentItemsets:
        """Rebuild a collection from a ``support / itemsets`` DataFrame.

        The basket count comes from *num_itemsets* or ``df.attrs["num_itemsets"]``.
        """
        import pandas as pd

        if not isinstance(df, pd.DataFrame):
            if hasattr(df, "to_pandas"):
                df = df.to_pandas()
            else:
                raise TypeError(f"Expected a pandas/polars DataFrame, got {type(df)}")

        if "support" not in df.columns:
            raise ValueError("The input DataFrame must contain a 'support' column")
        if "itemsets" not in df.columns:
            raise ValueError("The input DataFrame must contain an 'itemsets' column")

        if num_itemsets is None:
            if "num_itemsets" not in df.attrs:
                raise InvalidParameterError(
                    "`num_itemsets` (the number of baskets) is required when the DataFrame does not carry it."
                )
            num_itemsets = int(df.attrs["num_itemsets"])
        if num_itemsets < 1:
            raise InvalidParameterError(f"`num_itemsets` must be >= 1. Got {num_itemsets}.")

        labelled = [canonical([_to_python(x) for x in iset]) for iset in df["itemsets"]]
        universe: set[Item] = set()
        for iset in labelled:
            universe.update(iset)
        items = sorted(universe, key=item_sort_key)
        index = {item: i for i, item in enumerate(items)}

        if "count" in df.columns:
            counts_raw = [int(c) for c in df["count"]]
        else:
            counts_raw = [round(float(s) * num_itemsets) for s in df["support"]]

        counts = {tuple(index[item] for item in iset): c for iset, c in zip(labelled, counts_raw) if iset}
        minlen = min((len(s) for s in counts), default=1)
        return cls(counts, items, num_itemsets, minlen=minlen)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(n_itemsets={len(self)}, n_baskets={self._n}, "
            f"support_threshold={self.support_threshold})"
        )


def mine(
    data: TransactionStore | Any,
    support_threshold: float = 0.1,
    maxlen: int | None = None,
    minlen: int = 1,
    strategy: Strategy = "intersection",
    n_jobs: int = 1,
    cancel_event: threading.Event | None = None,
    verbose: int = 0,
) -> FrequentItemsets:
    """Find every itemset whose support reaches *support_threshold*.

    Breadth-first A-Priori: level ``k`` is counted completely before the
    candidates of level ``k + 1`` are generated from its frequent itemsets.

    Parameters
    ----------
    data : TransactionStore or any corpus accepted by :func:`arminer.transactions.as_store`
        The baskets to mine.
    support_threshold : float, default=0.1
        Minimum support in ``(0, 1]``.  An itemset is frequent when
        ``count / n_baskets >= support_threshold``.
    maxlen : int | None, default=None
        Largest itemset size explored.  ``None`` means unbounded.
    minlen : int, default=1
        Smallest itemset size reported in the result mapping.
    strategy : {"intersection", "scan"}, default="intersection"
        Support counting strategy.
    n_jobs : int, default=1
        Threads used to count the candidates of one level.
    cancel_event : threading.Event | None, default=None
        Checked before each level; when set the run stops with
        :class:`~arminer.exceptions.MiningCancelledError`.
    verbose : int, default=0
        Print progress per level.

    Returns
    -------
    FrequentItemsets

    Raises
    ------
    InvalidParameterError
        If a parameter is out of range (checked before anything is counted).
    InvalidInputError
        If the corpus is empty or malformed.
    """
    support_threshold = check_threshold("support_threshold", support_threshold)
    minlen, maxlen = check_lengths(minlen, maxlen)
    check_n_jobs(n_jobs)
    if strategy not in STRATEGIES:
        raise InvalidParameterError(f"`strategy` must be one of {STRATEGIES}. Got {strategy!r}.")

    store = as_store(data, verbose=verbose)
    counter = SupportCounter(store, strategy=strategy, n_jobs=n_jobs)
    n = store.total_baskets()

    t_start = time.perf_counter()
    if verbose:
        print(
            f"[{time.strftime('%X')}] Mining {n:,} baskets / {store.n_items:,} items "
            f"(support_threshold={support_threshold}, maxlen={maxlen}, strategy={strategy})..."
        )

    frequent: dict[IdItemset, int] = {}
    level = 1
    candidates = seed_candidates(store.n_items)
    while candidates:
        if cancel_event is not None and cancel_event.is_set():
            raise MiningCancelledError(level)

        t0 = time.perf_counter()
        counts = counter.count_many(candidates)
        level_frequent = [c for c in candidates if counts[c] / n >= support_threshold]
        frequent.update((c, counts[c]) for c in level_frequent)

        logger.debug("level %d: %d candidates, %d frequent", level, len(candidates), len(level_frequent))
        if verbose:
            print(
                f"[{time.strftime('%X')}] Level {level}: {len(candidates):,} candidates, "
                f"{len(level_frequent):,} frequent ({time.perf_counter() - t0:.2f}s)."
            )

        if not level_frequent or (maxlen is not None and level >= maxlen):
            break
        level += 1
        candidates = generate_candidates(level_frequent)

    result = FrequentItemsets(frequent, store.items, n, support_threshold=support_threshold, minlen=minlen)
    if verbose:
        print(
            f"[{time.strftime('%X')}] Found {len(result):,} frequent itemsets "
            f"in {time.perf_counter() - t_start:.2f}s."
        )
    if len(result) == 0:
        warnings.warn(
            f"No itemset reaches support_threshold={support_threshold} "
            f"(minlen={minlen}); try a lower threshold.",
            EmptyResultWarning,
            stacklevel=2,
        )
    return result


class Apriori(Miner, RuleMinerMixin):
    """A-Priori frequent itemset and association rule miner.

    Examples
    --------
    >>> model = Apriori([["apple", "beer"], ["apple", "rice"]], support_threshold=0.5)
    >>> model.mine().support(["apple"])
    1.0
    >>> [str(rule) for rule in model.rules(confidence_threshold=0.5).sort(by="lift")]
    ['{apple} => {beer}', '{apple} => {rice}', '{beer} => {apple}', '{rice} => {apple}']
    """

    def __init__(
        self,
        data: TransactionStore | Any,
        config: MiningConfig | None = None,
        verbose: int = 0,
        **params: Any,
    ) -> None:
        """Initialize the miner.

        Parameters
        ----------
        data : TransactionStore, list of baskets, mapping, DataFrame or path
            The corpus (see :func:`arminer.transactions.as_store`).
        config : MiningConfig | None, default=None
            Mining parameters.  Keyword *params* override individual fields.
        verbose : int, default=0
            If > 0, print progress details to standard output.
        **params
            Any :class:`~arminer.config.MiningConfig` field, e.g.
            ``support_threshold=0.2, maxlen=3``.
        """
        if config is None:
            config = MiningConfig.from_dict(params)
        elif params:
            config = config.replace(**params)
        self.config = config
        super().__init__(data, verbose=verbose)

    def mine(self, cancel_event: threading.Event | None = None, **kwargs: Any) -> FrequentItemsets:
        """Execute A-Priori on the stored baskets.

        Keyword arguments override the corresponding config fields for this
        call only.
        """
        config = self.config.replace(**kwargs) if kwargs else self.config
        return mine(
            self.store,
            support_threshold=config.support_threshold,
            maxlen=config.maxlen,
            minlen=config.minlen,
            strategy=config.strategy,
            n_jobs=config.n_jobs,
            cancel_event=cancel_event,
            verbose=self.verbose,
        )

    def __repr__(self) -> str:
        fitted = getattr(self, "_result", None) is not None
        return (
            f"{type(self).__name__}("
            f"support_threshold={self.config.support_threshold}, "
            f"confidence_threshold={self.config.confidence_threshold}, "
            f"maxlen={self.config.maxlen}, "
            f"fitted={fitted})"
        )


def apriori(
    data: TransactionStore | Any,
    support_threshold: float = 0.1,
    maxlen: int | None = None,
    minlen: int = 1,
    strategy: Strategy = "intersection",
    n_jobs: int = 1,
    verbose: int = 0,
) -> FrequentItemsets:
    """Find frequent itemsets using the A-Priori algorithm.

    This module-level function relies on the Object-Oriented APIs.
    """
    return Apriori(
        data,
        support_threshold=support_threshold,
        maxlen=maxlen,
        minlen=minlen,
        strategy=strategy,
        n_jobs=n_jobs,
        verbose=verbose,
    ).mine()
