from __future__ import annotations

import pytest

from arminer import Appearance, InvalidParameterError, MiningConfig


def test_defaults() -> None:
    config = MiningConfig()
    assert config.support_threshold == 0.1
    assert config.confidence_threshold == 0.8
    assert config.lift_threshold is None
    assert config.maxlen is None
    assert config.minlen == 1
    assert config.appearance is None
    assert config.strategy == "intersection"
    assert config.n_jobs == 1


def test_from_dict_rejects_unknown_keys() -> None:
    with pytest.raises(InvalidParameterError, match="min_support"):
        MiningConfig.from_dict({"min_support": 0.2})
    config = MiningConfig.from_dict({"support_threshold": 0.2, "maxlen": 3})
    assert config.support_threshold == 0.2
    assert config.maxlen == 3


@pytest.mark.parametrize(
    "params",
    [
        {"support_threshold": 0},
        {"support_threshold": 1.01},
        {"confidence_threshold": 0},
        {"lift_threshold": -0.5},
        {"maxlen": 0},
        {"minlen": 0},
        {"minlen": 4, "maxlen": 3},
        {"minlen": 1.5},
        {"strategy": "bitmap"},
        {"n_jobs": 0},
        {"appearance": ["beer"]},
    ],
)
def test_invalid_values(params) -> None:
    with pytest.raises(InvalidParameterError):
        MiningConfig(**params)


def test_replace_revalidates() -> None:
    config = MiningConfig(support_threshold=0.2, appearance={"rhs": ["beer"]})
    assert isinstance(config.appearance, Appearance)

    changed = config.replace(maxlen=2)
    assert changed.maxlen == 2
    assert changed.support_threshold == 0.2
    assert changed.appearance == config.appearance
    assert config.maxlen is None

    with pytest.raises(InvalidParameterError):
        config.replace(support_threshold=2)
    with pytest.raises(InvalidParameterError):
        config.replace(bogus=1)


def test_appearance_sides() -> None:
    app = Appearance(lhs=["apple"], rhs="beer", none=["pear"])
    assert app.rhs == frozenset({"beer"})
    assert app.side("apple") == "lhs"
    assert app.side("pear") == "none"
    assert app.side("rice") == "both"
    assert app.allows(["apple", "rice"], ["beer"])
    assert not app.allows(["beer"], ["apple"])
    assert not app.allows(["apple"], ["pear"])
    assert not app.is_unrestricted
    assert Appearance().is_unrestricted


def test_appearance_errors() -> None:
    with pytest.raises(InvalidParameterError, match="listed under both"):
        Appearance(lhs=["beer"], rhs=["beer"])
    with pytest.raises(InvalidParameterError, match="default"):
        Appearance(default="left")


def test_numpy_scalars_accepted() -> None:
    import numpy as np

    config = MiningConfig(
        support_threshold=np.float32(0.5),
        confidence_threshold=np.float64(0.75),
        lift_threshold=np.int64(1),
        minlen=np.int64(1),
        maxlen=np.int32(2),
        n_jobs=np.int64(2),
    )
    assert config.support_threshold == 0.5
    assert type(config.maxlen) is int
    assert type(config.n_jobs) is int
    with pytest.raises(InvalidParameterError):
        MiningConfig(maxlen=np.bool_(True))
    with pytest.raises(InvalidParameterError):
        MiningConfig(maxlen=np.float64(2.0))
