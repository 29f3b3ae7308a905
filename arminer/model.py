from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Hashable, Iterable, Sequence
from typing import TYPE_CHECKING, Any

from .exceptions import InvalidParameterError
from .transactions import TransactionStore, as_store

if TYPE_CHECKING:
    import pandas as pd
    import polars as pl
    from typing_extensions import Self

    from .association_rules import RuleSet
    from .mine import FrequentItemsets


class RuleMinerMixin:
    """Mixin for association rules and recommendations on frequent itemset models."""

    # Config fields that only affect rule generation; the rest need a re-mine.
    _RULE_PARAMS = frozenset({"confidence_threshold", "lift_threshold", "appearance", "minlen", "maxlen"})

    # Cache: (metric, min_threshold) -> RuleSet
    _rules_cache: dict[tuple[str, float], Any] | None = None

    def _invalidate_rules_cache(self) -> None:
        """Clear the cached association rules (call after re-mining)."""
        self._rules_cache = None

    def rules(self, **kwargs: Any) -> RuleSet:
        """Generate association rules from the mined frequent itemsets.

        Thresholds, length bounds and appearance constraints come from the
        model's :class:`~arminer.config.MiningConfig`; keyword arguments
        override them for this call (``confidence_threshold``,
        ``lift_threshold``, ``appearance``, ``minlen``, ``maxlen``).

        Returns
        -------
        RuleSet

        Raises
        ------
        InvalidParameterError
            For a mining-only field such as ``support_threshold``; re-mine
            with :meth:`fit` instead.
        """
        from .association_rules import generate_rules

        mining_only = sorted(set(kwargs) - self._RULE_PARAMS)
        if mining_only:
            raise InvalidParameterError(
                f"rules() only accepts {sorted(self._RULE_PARAMS)}; {mining_only} change mining, "
                "pass them to fit() or the constructor."
            )
        config = self.config.replace(**kwargs) if kwargs else self.config  # type: ignore[attr-defined]
        return generate_rules(
            self.predict(),  # type: ignore[attr-defined]
            confidence_threshold=config.confidence_threshold,
            lift_threshold=config.lift_threshold,
            appearance=config.appearance,
            minlen=config.minlen,
            maxlen=config.maxlen,
            verbose=getattr(self, "verbose", 0),
        )

    def association_rules(
        self,
        metric: str = "confidence",
        min_threshold: float = 0.8,
        return_metrics: list[str] | None = None,
    ) -> pd.DataFrame:
        """Generate association rules filtered on any metric, as a DataFrame.

        Parameters
        ----------
        metric : str, default='confidence'
            The metric to evaluate if a rule is of interest.
        min_threshold : float, default=0.8
            The minimum threshold for the evaluation metric.
        return_metrics : list[str] | None, default=None
            List of metrics to include in the resulting DataFrame. Defaults to all available metrics.

        Returns
        -------
        pd.DataFrame
            DataFrame of strong association rules.
        """
        from .association_rules import ALL_METRICS
        from .association_rules import association_rules as _assoc_rules

        if return_metrics is None:
            return_metrics = ALL_METRICS

        return _assoc_rules(
            self.predict(),  # type: ignore[attr-defined]
            metric=metric,
            min_threshold=min_threshold,
            return_metrics=return_metrics,
        )

    def recommend_for_cart(self, items: Iterable[Hashable], n: int = 5) -> list[Hashable]:
        """Suggest items to add to an active cart using association rules.

        Parameters
        ----------
        items : iterable
            The items currently in the cart or basket.
        n : int, default=5
            The maximum number of items to recommend.

        Returns
        -------
        list
            Recommended items, ordered by lift and then confidence.

        Notes
        -----
        Only rules with lift >= 1 are used.  They are computed once and cached
        with the key ``("lift", 1.0)``; :meth:`fit` clears the cache.
        """
        cache_key = ("lift", 1.0)
        cached = self._rules_cache.get(cache_key) if self._rules_cache is not None else None
        if cached is None:
            # rules() may fit the model, which resets the cache
            cached = self.rules().filter(min_lift=1.0).sort(by=["lift", "confidence"])
            if self._rules_cache is None:
                self._rules_cache = {}
            self._rules_cache[cache_key] = cached

        cart = set(items)
        suggestions: list[Hashable] = []
        for rule in cached:
            if not cart.issuperset(rule.antecedent):
                continue
            for item in rule.consequent:
                if item not in cart and item not in suggestions:
                    suggestions.append(item)
                    if len(suggestions) >= n:
                        return suggestions
        return suggestions


class Miner(ABC):
    """Base class for pattern mining algorithms.

    Wraps the input corpus in a :class:`~arminer.transactions.TransactionStore`
    once, at construction time, and provides the sklearn-style
    ``fit()`` / ``predict()`` pair on top of :meth:`mine`.
    """

    def __init__(self, data: TransactionStore | Any, verbose: int = 0) -> None:
        """Initialize the miner.

        Parameters
        ----------
        data : TransactionStore | Any
            A store, a sequence of baskets, a ``label -> basket`` mapping, a
            long-format or one-hot DataFrame, or a path to a one-basket-per-line file.
        verbose : int, default=0
            If > 0, print progress details to standard output.
        """
        self.verbose = verbose
        self.store = as_store(data, verbose=verbose)
        self._result: FrequentItemsets | None = None

        # Keep track of the number of baskets for metric calculations later
        self._num_itemsets = self.store.total_baskets()

    def __dir__(self) -> list[str]:
        return [k for k in super().__dir__() if not k.startswith("_")]

    @classmethod
    def from_transactions(
        cls,
        data: pd.DataFrame | pl.DataFrame | Any,
        transaction_col: str | None = None,
        item_col: str | None = None,
        verbose: int = 0,
        **kwargs: Any,
    ) -> Self:
        """Load long-format transactional data into the algorithm.

        Parameters
        ----------
        data
            Pandas / Polars DataFrame with (at least) two columns: one for the
            transaction identifier and one for the item.
        transaction_col
            Name of the column that identifies transactions. If ``None`` the
            first column is used.
        item_col
            Name of the column that contains item values. If ``None`` the
            second column is used.
        verbose : int, default=0
            Whether to print progress details.
        **kwargs
            Algorithm-specific parameters saved into the Miner (e.g., ``support_threshold``).
        """
        store = TransactionStore.from_transactions(
            data, transaction_col=transaction_col, item_col=item_col, verbose=verbose
        )
        return cls(store, verbose=verbose, **kwargs)

    @classmethod
    def from_onehot(
        cls,
        data: pd.DataFrame | pl.DataFrame | Any,
        item_names: Sequence[Hashable] | None = None,
        verbose: int = 0,
        **kwargs: Any,
    ) -> Self:
        """Load a one-hot matrix (rows = baskets, columns = items) into the algorithm."""
        store = TransactionStore.from_onehot(data, item_names=item_names, verbose=verbose)
        return cls(store, verbose=verbose, **kwargs)

    @abstractmethod
    def mine(self, **kwargs: Any) -> FrequentItemsets:
        """Execute the mining algorithm and return frequent patterns.

        Must be implemented by subclasses.
        """

    def fit(self, **kwargs: Any) -> Self:
        """Sklearn-compatible alias for ``mine()``. Runs the mining algorithm.

        Returns
        -------
        self
        """
        self._result = self.mine(**kwargs)
        if isinstance(self, RuleMinerMixin):
            self._invalidate_rules_cache()
        return self

    def predict(self, **kwargs: Any) -> FrequentItemsets:
        """Return the last mined result, or run ``fit()`` first."""
        if self._result is None:
            self.fit(**kwargs)
        return self._result  # type: ignore[return-value]
