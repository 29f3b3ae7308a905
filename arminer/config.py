"""Mining configuration and item appearance constraints."""

from __future__ import annotations

import dataclasses
from collections.abc import Hashable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

from ._validation import check_lengths, check_lift_threshold, check_n_jobs, check_threshold
from .exceptions import InvalidParameterError

Side = Literal["lhs", "rhs", "both", "none"]
Strategy = Literal["intersection", "scan"]

_SIDES = ("lhs", "rhs", "both", "none")
STRATEGIES = ("intersection", "scan")


@dataclass(frozen=True)
class Appearance:
    """Restrict on which side of a rule each item may appear.

    Attributes
    ----------
    lhs : frozenset
        Items that may only appear in the antecedent.
    rhs : frozenset
        Items that may only appear in the consequent.
    both : frozenset
        Items allowed on either side.
    none : frozenset
        Items that must not appear in any rule.
    default : {"both", "lhs", "rhs", "none"}
        Side assigned to every item not listed above.

    Examples
    --------
    Only produce rules that predict ``"beer"``:

    >>> app = Appearance(rhs=["beer"], default="lhs")
    >>> app.allows(["apple"], ["beer"]), app.allows(["beer"], ["apple"])
    (True, False)
    """

    lhs: frozenset[Hashable] = field(default_factory=frozenset)
    rhs: frozenset[Hashable] = field(default_factory=frozenset)
    both: frozenset[Hashable] = field(default_factory=frozenset)
    none: frozenset[Hashable] = field(default_factory=frozenset)
    default: Side = "both"

    def __post_init__(self) -> None:
        if self.default not in _SIDES:
            raise InvalidParameterError(f"`default` must be one of {_SIDES}. Got {self.default!r}.")

        seen: dict[Hashable, str] = {}
        for side in _SIDES:
            items = getattr(self, side)
            if isinstance(items, (str, bytes)):
                items = (items,)
            items = frozenset(items)
            object.__setattr__(self, side, items)
            for item in items:
                if item in seen:
                    raise InvalidParameterError(
                        f"Item {item!r} is listed under both `{seen[item]}` and `{side}`."
                    )
                seen[item] = side

    def side(self, item: Hashable) -> Side:
        for side in _SIDES:
            if item in getattr(self, side):
                return side  # type: ignore[return-value]
        return self.default

    def allows(self, antecedent: Iterable[Hashable], consequent: Iterable[Hashable]) -> bool:
        """Whether a rule ``antecedent -> consequent`` satisfies the constraints."""
        for item in antecedent:
            if self.side(item) not in ("lhs", "both"):
                return False
        for item in consequent:
            if self.side(item) not in ("rhs", "both"):
                return False
        return True

    @property
    def is_unrestricted(self) -> bool:
        return self.default == "both" and not (self.lhs or self.rhs or self.none)


@dataclass(frozen=True)
class MiningConfig:
    """Validated parameters for one mining run.

    Every field is checked in ``__post_init__`` so that an invalid
    configuration fails before any counting starts.

    Attributes
    ----------
    support_threshold : float, default=0.1
        Minimum support (fraction of baskets) in ``(0, 1]``.
    confidence_threshold : float, default=0.8
        Minimum rule confidence in ``(0, 1]``.
    lift_threshold : float | None, default=None
        Minimum rule lift.  ``None`` disables the lift filter.
    maxlen : int | None, default=None
        Maximum itemset length.  ``None`` means bounded only by the item universe.
    minlen : int, default=1
        Minimum length of reported itemsets and of the itemset behind each rule.
    appearance : Appearance | None, default=None
        Antecedent / consequent pinning for rule generation.
    strategy : {"intersection", "scan"}, default="intersection"
        Support counting strategy: postings-list intersection or full basket scan.
    n_jobs : int, default=1
        Worker threads used to count one level.  ``-1`` uses every CPU.
    """

    support_threshold: float = 0.1
    confidence_threshold: float = 0.8
    lift_threshold: float | None = None
    maxlen: int | None = None
    minlen: int = 1
    appearance: Appearance | None = None
    strategy: Strategy = "intersection"
    n_jobs: int = 1

    def __post_init__(self) -> None:
        object.__setattr__(self, "support_threshold", check_threshold("support_threshold", self.support_threshold))
        object.__setattr__(
            self, "confidence_threshold", check_threshold("confidence_threshold", self.confidence_threshold)
        )
        object.__setattr__(self, "lift_threshold", check_lift_threshold(self.lift_threshold))
        minlen, maxlen = check_lengths(self.minlen, self.maxlen)
        object.__setattr__(self, "minlen", minlen)
        object.__setattr__(self, "maxlen", maxlen)
        object.__setattr__(self, "n_jobs", check_n_jobs(self.n_jobs))
        if self.strategy not in STRATEGIES:
            raise InvalidParameterError(f"`strategy` must be one of {STRATEGIES}. Got {self.strategy!r}.")
        if isinstance(self.appearance, Mapping):
            object.__setattr__(self, "appearance", Appearance(**self.appearance))
        elif self.appearance is not None and not isinstance(self.appearance, Appearance):
            raise InvalidParameterError(
                f"`appearance` must be an Appearance, a mapping or None. Got {type(self.appearance).__name__}."
            )

    @classmethod
    def from_dict(cls, params: Mapping[str, Any]) -> MiningConfig:
        """Build a config from a plain mapping, rejecting unknown keys."""
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = sorted(set(params) - known)
        if unknown:
            raise InvalidParameterError(f"Unknown mining parameter(s): {unknown}. Allowed: {sorted(known)}.")
        return cls(**params)

    def replace(self, **changes: Any) -> MiningConfig:
        """Return a copy with *changes* applied (and validated)."""
        return MiningConfig.from_dict({**dataclasses.asdict(self), "appearance": self.appearance, **changes})
