"""Support counting over a :class:`~arminer.transactions.TransactionStore`."""

from __future__ import annotations

import os
from collections.abc import Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from ._validation import check_n_jobs
from .candidates import IdItemset
from .config import STRATEGIES, Strategy
from .exceptions import InvalidParameterError
from .transactions import TransactionStore


@dataclass(frozen=True)
class SupportRecord:
    """Occurrence count of an itemset and its support fraction."""

    count: int
    support: float


class SupportCounter:
    """Memoized occurrence counter for id-itemsets.

    Parameters
    ----------
    store : TransactionStore
        The corpus.  It is only read.
    strategy : {"intersection", "scan"}, default="intersection"
        ``"intersection"`` intersects postings lists (shortest first);
        ``"scan"`` checks every basket for containment.
    n_jobs : int, default=1
        Threads used by :meth:`count_many`.  ``-1`` uses ``os.cpu_count()``.
    """

    def __init__(self, store: TransactionStore, strategy: Strategy = "intersection", n_jobs: int = 1) -> None:
        if strategy not in STRATEGIES:
            raise InvalidParameterError(f"`strategy` must be one of {STRATEGIES}. Got {strategy!r}.")
        n_jobs = check_n_jobs(n_jobs)
        self.store = store
        self.strategy = strategy
        self.n_jobs = (os.cpu_count() or 1) if n_jobs == -1 else n_jobs
        self._n = store.total_baskets()
        self._counts: dict[IdItemset, int] = {}

    def _count_uncached(self, itemset: IdItemset) -> int:
        if self.strategy == "scan":
            wanted = frozenset(itemset)
            return sum(1 for pos in range(self._n) if wanted <= self.store.basket(pos))
        return int(len(self.store.intersect(itemset)))

    def record(self, count: int) -> SupportRecord:
        return SupportRecord(count, count / self._n)

    def count(self, itemset: IdItemset) -> SupportRecord:
        """Count of one itemset, computed at most once per counter."""
        cached = self._counts.get(itemset)
        if cached is None:
            cached = self._counts[itemset] = self._count_uncached(itemset)
        return self.record(cached)

    def count_many(self, candidates: Sequence[IdItemset]) -> dict[IdItemset, int]:
        """Counts for a whole level.

        Returns only once every candidate has been counted.  Worker threads
        read the store and return plain integers; the memo is only written
        from the calling thread.
        """
        todo = [c for c in dict.fromkeys(candidates) if c not in self._counts]
        if self.n_jobs > 1 and len(todo) > 1:
            with ThreadPoolExecutor(max_workers=min(self.n_jobs, len(todo))) as pool:
                counts = list(pool.map(self._count_uncached, todo))
        else:
            counts = [self._count_uncached(c) for c in todo]
        self._counts.update(zip(todo, counts))
        return {c: self._counts[c] for c in candidates}

    def seed(self, counts: Iterable[tuple[IdItemset, int]]) -> None:
        """Record counts that are already known (e.g. single-item postings lengths)."""
        for itemset, n in counts:
            self._counts.setdefault(itemset, int(n))

    def __contains__(self, itemset: object) -> bool:
        return itemset in self._counts

    def __len__(self) -> int:
        return len(self._counts)
