"""Apriori candidate generation: prefix join followed by subset pruning.

Itemsets here are tuples of item ids sorted ascending, as produced by
:meth:`arminer.transactions.TransactionStore.encode`.
"""

from __future__ import annotations

import itertools
from collections.abc import Collection, Iterable

IdItemset = tuple[int, ...]


def seed_candidates(n_items: int) -> list[IdItemset]:
    """Size-1 candidates: every item observed in the corpus."""
    return [(i,) for i in range(n_items)]


def join(frequent_k: Iterable[IdItemset]) -> list[IdItemset]:
    """Join step: union of every pair of size-k itemsets sharing k-1 items.

    Pairs are only joined when they share their first k-1 items.  When every
    k-subset of a (k+1)-itemset is frequent, the two subsets dropping its last
    and its second-to-last item are frequent and share that prefix, so after
    pruning this yields the same candidates as joining all pairs.
    """
    ordered = sorted(set(frequent_k))
    if not ordered:
        return []
    k = len(ordered[0])

    candidates: list[IdItemset] = []
    for _, group in itertools.groupby(ordered, key=lambda s: s[: k - 1]):
        block = list(group)
        for i, left in enumerate(block):
            for right in block[i + 1 :]:
                candidates.append(left + (right[-1],))
    return candidates


def has_infrequent_subset(candidate: IdItemset, frequent_k: Collection[IdItemset]) -> bool:
    """Whether any of the ``len(candidate)`` subsets of size k is missing from *frequent_k*."""
    k = len(candidate) - 1
    return any(subset not in frequent_k for subset in itertools.combinations(candidate, k))


def generate_candidates(frequent_k: Iterable[IdItemset]) -> list[IdItemset]:
    """Size-(k+1) candidates whose every size-k subset is in *frequent_k*.

    Parameters
    ----------
    frequent_k : iterable of tuple[int, ...]
        The frequent itemsets of one level, all of the same size k >= 1.

    Returns
    -------
    list[tuple[int, ...]]
        Distinct candidates in ascending order.
    """
    frequent = frozenset(frequent_k)
    sizes = {len(s) for s in frequent}
    if len(sizes) > 1:
        raise ValueError(f"All itemsets of a level must have the same size, got sizes {sorted(sizes)}.")

    return [c for c in join(frequent) if not has_infrequent_subset(c, frequent)]
