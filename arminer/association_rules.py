"""Association rule generation from mined frequent itemsets."""

from __future__ import annotations

import logging
import math
import time
import warnings
from collections.abc import Hashable, Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, overload

from ._validation import check_lengths, check_lift_threshold, check_threshold
from .candidates import IdItemset, generate_candidates
from .config import Appearance
from .exceptions import EmptyResultWarning, InvalidParameterError
from .transactions import Itemset, item_sort_key

if TYPE_CHECKING:
    import pandas as pd

    from .mine import FrequentItemsets

logger = logging.getLogger(__name__)

ALL_METRICS = [
    "antecedent support",
    "consequent support",
    "support",
    "confidence",
    "lift",
    "leverage",
    "conviction",
    "zhangs_metric",
    "jaccard",
    "certainty",
    "kulczynski",
]


@dataclass(frozen=True, eq=False)
class Rule:
    """A rule ``antecedent -> consequent`` and its interestingness metrics.

    Two rules are equal when their antecedent and consequent are equal;
    ``{a} -> {b}`` and ``{b} -> {a}`` are different rules.
    """

    antecedent: Itemset
    consequent: Itemset
    count: int
    support: float
    confidence: float
    lift: float
    antecedent_support: float
    consequent_support: float

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Rule):
            return NotImplemented
        return (self.antecedent, self.consequent) == (other.antecedent, other.consequent)

    def __hash__(self) -> int:
        return hash((self.antecedent, self.consequent))

    @property
    def itemset(self) -> Itemset:
        return tuple(sorted(self.antecedent + self.consequent, key=item_sort_key))

    @property
    def leverage(self) -> float:
        return self.support - self.antecedent_support * self.consequent_support

    @property
    def conviction(self) -> float:
        if self.confidence >= 1.0:
            return math.inf
        return (1.0 - self.consequent_support) / (1.0 - self.confidence)

    @property
    def zhangs_metric(self) -> float:
        denom = max(
            self.support * (1.0 - self.antecedent_support),
            self.antecedent_support * (self.consequent_support - self.support),
        )
        if denom == 0:
            return 0.0
        return self.leverage / denom

    @property
    def jaccard(self) -> float:
        return self.support / (self.antecedent_support + self.consequent_support - self.support)

    @property
    def certainty(self) -> float:
        if self.consequent_support >= 1.0:
            return 0.0
        return (self.confidence - self.consequent_support) / (1.0 - self.consequent_support)

    @property
    def kulczynski(self) -> float:
        return 0.5 * (self.support / self.antecedent_support + self.support / self.consequent_support)

    def metric(self, name: str) -> float:
        """Value of a metric by its report name, e.g. ``"antecedent support"``."""
        if name not in ALL_METRICS:
            raise InvalidParameterError(f"Unknown metric {name!r}. Choose one of {ALL_METRICS}.")
        return float(getattr(self, name.replace(" ", "_")))

    def __str__(self) -> str:
        lhs = ", ".join(map(str, self.antecedent))
        rhs = ", ".join(map(str, self.consequent))
        return f"{{{lhs}}} => {{{rhs}}}"

    def __repr__(self) -> str:
        return (
            f"Rule({self}, support={self.support:.4g}, confidence={self.confidence:.4g}, lift={self.lift:.4g})"
        )


class RuleSet(Sequence[Rule]):
    """Immutable, ordered collection of :class:`Rule` records."""

    def __init__(self, rules: Iterable[Rule] = ()) -> None:
        self._rules: tuple[Rule, ...] = tuple(rules)

    @overload
    def __getitem__(self, index: int) -> Rule: ...

    @overload
    def __getitem__(self, index: slice) -> RuleSet: ...

    def __getitem__(self, index: int | slice) -> Rule | RuleSet:
        if isinstance(index, slice):
            return RuleSet(self._rules[index])
        return self._rules[index]

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._rules)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RuleSet):
            return NotImplemented
        return self._rules == other._rules

    __hash__ = None  # type: ignore[assignment]

    def sort(self, by: str | Sequence[str] = "lift", ascending: bool = False) -> RuleSet:
        """Return the rules ordered by one or more metrics.

        Ties keep a deterministic order (by antecedent, then consequent).
        """
        keys = [by] if isinstance(by, str) else list(by)
        for key in keys:
            if key not in ALL_METRICS:
                raise InvalidParameterError(f"Unknown metric {key!r}. Choose one of {ALL_METRICS}.")

        sign = 1.0 if ascending else -1.0

        def sort_key(rule: Rule) -> tuple:
            return (
                tuple(sign * rule.metric(k) for k in keys),
                [item_sort_key(i) for i in rule.antecedent],
                [item_sort_key(i) for i in rule.consequent],
            )

        return RuleSet(sorted(self._rules, key=sort_key))

    def head(self, n: int = 5) -> RuleSet:
        return RuleSet(self._rules[:n])

    def filter(
        self,
        antecedent_contains: Iterable[Hashable] | None = None,
        consequent_contains: Iterable[Hashable] | None = None,
        min_support: float | None = None,
        min_confidence: float | None = None,
        min_lift: float | None = None,
    ) -> RuleSet:
        """Keep rules matching every given condition.

        ``antecedent_contains`` / ``consequent_contains`` match when the side
        holds at least one of the listed items.
        """
        lhs = _as_item_set(antecedent_contains)
        rhs = _as_item_set(consequent_contains)

        def keep(rule: Rule) -> bool:
            if lhs is not None and lhs.isdisjoint(rule.antecedent):
                return False
            if rhs is not None and rhs.isdisjoint(rule.consequent):
                return False
            if min_support is not None and rule.support < min_support:
                return False
            if min_confidence is not None and rule.confidence < min_confidence:
                return False
            return min_lift is None or rule.lift >= min_lift

        return RuleSet(r for r in self._rules if keep(r))

    def non_redundant(self) -> RuleSet:
        """Drop rules for which a more general rule is at least as confident.

        A rule ``X -> Y`` is redundant when some ``X' -> Y`` with ``X'`` a
        proper subset of ``X`` has confidence >= that of ``X -> Y``.
        """
        by_consequent: dict[Itemset, list[Rule]] = {}
        for rule in self._rules:
            by_consequent.setdefault(rule.consequent, []).append(rule)

        redundant: set[Rule] = set()
        for group in by_consequent.values():
            for rule in group:
                lhs = set(rule.antecedent)
                for other in group:
                    if (
                        len(other.antecedent) < len(lhs)
                        and lhs.issuperset(other.antecedent)
                        and other.confidence >= rule.confidence
                    ):
                        redundant.add(rule)
                        break
        return RuleSet(r for r in self._rules if r not in redundant)

    def to_pandas(self, return_metrics: Sequence[str] = ALL_METRICS) -> pd.DataFrame:
        """Tabular report: ``antecedents``, ``consequents`` and the requested metrics."""
        import pandas as pd

        for name in return_metrics:
            if name not in ALL_METRICS:
                raise InvalidParameterError(f"Unknown metric {name!r}. Choose one of {ALL_METRICS}.")

        result = pd.DataFrame(
            {
                "antecedents": [r.antecedent for r in self._rules],
                "consequents": [r.consequent for r in self._rules],
            },
            columns=["antecedents", "consequents"],
        )
        for name in return_metrics:
            result[name] = pd.Series([r.metric(name) for r in self._rules], dtype=float)
        return result

    def __repr__(self) -> str:
        return f"RuleSet(n_rules={len(self._rules)})"


def _as_item_set(items: Iterable[Hashable] | None) -> frozenset[Hashable] | None:
    if items is None:
        return None
    if isinstance(items, (str, bytes)):
        return frozenset((items,))
    return frozenset(items)


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------


def _splits(
    counts: dict[IdItemset, int],
    itemset: IdItemset,
    min_confidence: float | None,
) -> Iterator[tuple[IdItemset, IdItemset, int]]:
    """Yield ``(antecedent, consequent, antecedent_count)`` for one frequent itemset.

    Consequents grow one item per round.  A consequent is only extended when
    it passed the confidence threshold: moving more items from the
    antecedent to the consequent can only raise the antecedent's count, so
    confidence never increases.
    """
    count = counts[itemset]
    consequents: list[IdItemset] = [(i,) for i in itemset]
    while consequents and len(consequents[0]) < len(itemset):
        passing: list[IdItemset] = []
        for consequent in consequents:
            antecedent = tuple(i for i in itemset if i not in consequent)
            antecedent_count = counts.get(antecedent)
            if antecedent_count is None:
                raise KeyError(
                    f"Missing support for {antecedent!r}, a subset of frequent itemset {itemset!r}. "
                    "Frequent itemsets must be closed under subsets."
                )
            if min_confidence is None or count / antecedent_count >= min_confidence:
                passing.append(consequent)
                yield antecedent, consequent, antecedent_count
        consequents = generate_candidates(passing) if passing else []


def _enumerate_rules(
    frequent: FrequentItemsets,
    min_confidence: float | None,
    minlen: int = 1,
    maxlen: int | None = None,
) -> Iterator[Rule]:
    counts = frequent._counts
    items = frequent._items
    n = frequent.n_baskets

    def decode(ids: IdItemset) -> Itemset:
        return tuple(items[i] for i in ids)

    for itemset in sorted(counts, key=lambda s: (len(s), s)):
        size = len(itemset)
        if size < max(2, minlen) or (maxlen is not None and size > maxlen):
            continue
        count = counts[itemset]
        for antecedent, consequent, antecedent_count in _splits(counts, itemset, min_confidence):
            consequent_count = counts.get(consequent)
            if consequent_count is None:
                raise KeyError(f"Missing support for {consequent!r}, a subset of frequent itemset {itemset!r}.")
            yield Rule(
                antecedent=decode(antecedent),
                consequent=decode(consequent),
                count=count,
                support=count / n,
                confidence=count / antecedent_count,
                lift=count * n / (antecedent_count * consequent_count),
                antecedent_support=antecedent_count / n,
                consequent_support=consequent_count / n,
            )


def _as_frequent(frequent: FrequentItemsets | pd.DataFrame | Any, num_itemsets: int | None) -> FrequentItemsets:
    from .mine import FrequentItemsets

    if isinstance(frequent, FrequentItemsets):
        return frequent
    return FrequentItemsets.from_pandas(frequent, num_itemsets=num_itemsets)


def generate_rules(
    frequent: FrequentItemsets | pd.DataFrame | Any,
    confidence_threshold: float = 0.8,
    lift_threshold: float | None = None,
    appearance: Appearance | dict[str, Any] | None = None,
    minlen: int = 1,
    maxlen: int | None = None,
    num_itemsets: int | None = None,
    verbose: int = 0,
) -> RuleSet:
    """Derive association rules from frequent itemsets.

    Every frequent itemset of size >= 2 is split into all non-empty
    antecedent / consequent pairs.  Confidence and lift are computed from the
    already-known supports; nothing is counted again.

    Parameters
    ----------
    frequent : FrequentItemsets or pandas.DataFrame
        Output of :func:`arminer.mine` (or a ``support / itemsets`` DataFrame).
    confidence_threshold : float, default=0.8
        Minimum confidence in ``(0, 1]``.
    lift_threshold : float | None, default=None
        Minimum lift.  ``None`` disables the lift filter.
    appearance : Appearance | dict | None, default=None
        Restricts which items may appear on which side of a rule.
    minlen : int, default=1
        Minimum size of the itemset behind a rule (rules always have >= 2 items).
    maxlen : int | None, default=None
        Maximum size of the itemset behind a rule.
    num_itemsets : int | None, default=None
        Number of baskets; only needed for DataFrame input without
        ``attrs["num_itemsets"]``.
    verbose : int, default=0
        Print progress details.

    Returns
    -------
    RuleSet
        The rules, ordered by itemset size, then itemset, then consequent size.

    Raises
    ------
    InvalidParameterError
        If a threshold or length bound is out of range.
    """
    confidence_threshold = check_threshold("confidence_threshold", confidence_threshold)
    lift_threshold = check_lift_threshold(lift_threshold)
    minlen, maxlen = check_lengths(minlen, maxlen)
    if isinstance(appearance, Mapping):
        appearance = Appearance(**appearance)
    elif appearance is not None and not isinstance(appearance, Appearance):
        raise InvalidParameterError(
            f"`appearance` must be an Appearance, a mapping or None. Got {type(appearance).__name__}."
        )
    if appearance is not None and appearance.is_unrestricted:
        appearance = None

    frequent = _as_frequent(frequent, num_itemsets)

    t0 = time.perf_counter()
    if verbose:
        print(
            f"[{time.strftime('%X')}] Generating rules from {len(frequent):,} frequent itemsets "
            f"(confidence_threshold={confidence_threshold}, lift_threshold={lift_threshold})..."
        )

    kept: list[Rule] = []
    n_candidates = 0
    for rule in _enumerate_rules(frequent, confidence_threshold, minlen=minlen, maxlen=maxlen):
        n_candidates += 1
        if lift_threshold is not None and rule.lift < lift_threshold:
            continue
        if appearance is not None and not appearance.allows(rule.antecedent, rule.consequent):
            continue
        kept.append(rule)

    logger.debug("%d rules pass confidence, %d kept after lift/appearance filters", n_candidates, len(kept))
    if verbose:
        print(f"[{time.strftime('%X')}] Kept {len(kept):,} rules in {time.perf_counter() - t0:.2f}s.")

    if not kept:
        warnings.warn(
            f"No rule reaches confidence_threshold={confidence_threshold}"
            + (f" and lift_threshold={lift_threshold}" if lift_threshold is not None else "")
            + "; try lower thresholds.",
            EmptyResultWarning,
            stacklevel=2,
        )
    return RuleSet(kept)


def association_rules(
    df: FrequentItemsets | pd.DataFrame | Any,
    num_itemsets: int | None = None,
    metric: str = "confidence",
    min_threshold: float = 0.8,
    return_metrics: list[str] = ALL_METRICS,
) -> pd.DataFrame:
    """Generate association rules filtered on any metric, as a DataFrame.

    Parameters
    ----------
    df : FrequentItemsets or pandas.DataFrame
        Frequent itemsets; a DataFrame needs ``support`` and ``itemsets``
        columns (``FrequentItemsets.to_pandas()`` output).
    num_itemsets : int | None, default=None
        Number of baskets.  Read from ``df.attrs["num_itemsets"]`` when omitted.
    metric : str, default='confidence'
        One of :data:`ALL_METRICS`.
    min_threshold : float, default=0.8
        Minimum value of *metric* for a rule to be kept.
    return_metrics : list[str]
        Metric columns to include.

    Returns
    -------
    pandas.DataFrame
        Columns ``antecedents``, ``consequents`` and the requested metrics.
        Itemsets are tuples in canonical item order.

    Raises
    ------
    ValueError
        If required columns are missing or the metric is unknown.
    KeyError
        If a subset of a frequent itemset has no support entry.
    """
    if metric not in ALL_METRICS:
        raise InvalidParameterError(f"Unknown metric {metric!r}. Choose one of {ALL_METRICS}.")

    frequent = _as_frequent(df, num_itemsets)

    # Confidence is the only metric the enumeration can prune on.
    min_confidence = min_threshold if metric == "confidence" else None
    rules = RuleSet(
        r for r in _enumerate_rules(frequent, min_confidence) if r.metric(metric) >= min_threshold
    )
    if not rules:
        warnings.warn(
            f"No rule reaches {metric} >= {min_threshold}.",
            EmptyResultWarning,
            stacklevel=2,
        )
    return rules.to_pandas(return_metrics)
