"""A-Priori frequent itemset and association rule mining."""

from .association_rules import ALL_METRICS, Rule, RuleSet, association_rules, generate_rules
from .candidates import generate_candidates, seed_candidates
from .config import Appearance, MiningConfig
from .exceptions import EmptyResultWarning, InvalidInputError, InvalidParameterError, MiningCancelledError
from .mine import Apriori, FrequentItemsets, apriori, mine
from .model import Miner, RuleMinerMixin
from .support import SupportCounter, SupportRecord
from .transactions import TransactionStore, canonical, read_baskets

__all__ = [
    "apriori",
    "Apriori",
    "mine",
    "FrequentItemsets",
    "SupportRecord",
    "SupportCounter",
    "TransactionStore",
    "read_baskets",
    "canonical",
    "generate_candidates",
    "seed_candidates",
    "generate_rules",
    "association_rules",
    "Rule",
    "RuleSet",
    "ALL_METRICS",
    "MiningConfig",
    "Appearance",
    "Miner",
    "RuleMinerMixin",
    "InvalidInputError",
    "InvalidParameterError",
    "MiningCancelledError",
    "EmptyResultWarning",
]
