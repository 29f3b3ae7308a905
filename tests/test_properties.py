"""Property checks against a brute-force enumeration on small random corpora."""

from __future__ import annotations

import itertools
import random
import warnings

import pytest

from arminer import EmptyResultWarning, TransactionStore, generate_candidates, generate_rules, mine

SEEDS = [0, 1, 2, 3, 7, 42]


def random_corpus(seed: int, n_baskets: int = 40, n_items: int = 8) -> list[list[str]]:
    rng = random.Random(seed)
    items = [f"i{j}" for j in range(n_items)]
    corpus = []
    for _ in range(n_baskets):
        size = rng.randint(1, 5)
        corpus.append(rng.sample(items, size))
    return corpus


def brute_force(corpus: list[list[str]], threshold: float) -> dict[tuple, int]:
    baskets = [frozenset(b) for b in corpus]
    universe = sorted(set().union(*baskets))
    result = {}
    for k in range(1, len(universe) + 1):
        found = False
        for combo in itertools.combinations(universe, k):
            count = sum(1 for b in baskets if b.issuperset(combo))
            if count / len(baskets) >= threshold:
                result[combo] = count
                found = True
        if not found:
            break
    return result


def _mine_quietly(corpus, **kwargs):
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", EmptyResultWarning)
        return mine(corpus, **kwargs)


@pytest.mark.parametrize("seed", SEEDS)
@pytest.mark.parametrize("threshold", [0.05, 0.1, 0.25])
def test_matches_brute_force(seed: int, threshold: float) -> None:
    corpus = random_corpus(seed)
    res = _mine_quietly(corpus, support_threshold=threshold)
    assert {k: v.count for k, v in res.items()} == brute_force(corpus, threshold)


@pytest.mark.parametrize("seed", SEEDS)
def test_monotonicity(seed: int) -> None:
    res = _mine_quietly(random_corpus(seed), support_threshold=0.05)
    for itemset, record in res.items():
        for k in range(1, len(itemset)):
            for subset in itertools.combinations(itemset, k):
                assert subset in res
                assert res[subset].support >= record.support


@pytest.mark.parametrize("seed", SEEDS)
def test_pruning_completeness(seed: int) -> None:
    corpus = random_corpus(seed)
    store = TransactionStore.build(corpus)
    expected = brute_force(corpus, 0.05)
    by_level: dict[int, set[tuple[int, ...]]] = {}
    for itemset in expected:
        by_level.setdefault(len(itemset), set()).add(store.encode(itemset))

    for k, level in by_level.items():
        candidates = set(generate_candidates(level))
        following = by_level.get(k + 1, set())
        # every frequent (k+1)-itemset survives candidate generation
        assert following <= candidates
        # every survivor has only frequent k-subsets
        for candidate in candidates:
            assert all(sub in level for sub in itertools.combinations(candidate, k))


@pytest.mark.parametrize("seed", SEEDS)
def test_rule_invariants(seed: int) -> None:
    res = _mine_quietly(random_corpus(seed), support_threshold=0.05)
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", EmptyResultWarning)
        rules = generate_rules(res, confidence_threshold=0.01)

    index = {(r.antecedent, r.consequent): r for r in rules}
    for rule in rules:
        assert 0 < rule.confidence <= 1
        assert not set(rule.antecedent) & set(rule.consequent)
        assert rule.itemset in res
        assert rule.support == pytest.approx(res[rule.itemset].support)
        assert rule.confidence == pytest.approx(res[rule.itemset].count / res[rule.antecedent].count)
        reverse = index[(rule.consequent, rule.antecedent)]
        assert rule.lift == pytest.approx(reverse.lift)


@pytest.mark.parametrize("seed", SEEDS)
def test_idempotence(seed: int) -> None:
    corpus = random_corpus(seed)
    first = _mine_quietly(corpus, support_threshold=0.1)
    second = _mine_quietly(list(reversed(corpus)), support_threshold=0.1, strategy="scan", n_jobs=2)
    assert dict(first.items()) == dict(second.items())

    with warnings.catch_warnings():
        warnings.simplefilter("ignore", EmptyResultWarning)
        assert set(generate_rules(first, confidence_threshold=0.3)) == set(generate_rules(second, confidence_threshold=0.3))


def test_maximal_and_closed(worked_store) -> None:
    res = mine(worked_store, support_threshold=0.25)
    maximal = set(res.maximal())
    assert maximal == {
        ("pear",),
        ("apple", "beer", "rice"),
        ("beer", "meat", "rice"),
        ("beer", "milk", "rice"),
    }
    closed = set(res.closed())
    assert maximal <= closed
    # rice always comes with beer
    assert ("rice",) not in closed
    assert ("beer", "rice") in closed
