import pytest

from cv_analyzer.services.scoring import clamp_score, overall_score


@pytest.mark.parametrize("subscores, expected", [
    ((80, 60, 70), 70),
    ((100, 100), 100),
    ((0,), 0),
    ((70, 71), 71),      # 70.5 rounds half-up
    ((33, 33, 34), 33),
])
def test_overall_is_rounded_mean(subscores, expected):
    assert overall_score(subscores) == expected


def test_overall_accepts_floats():
    assert overall_score([79.6, 60.2, 70.1]) == 70


def test_overall_rejects_empty():
    with pytest.raises(ValueError):
        overall_score([])


@pytest.mark.parametrize("bad", [-1, 101, float("nan")])
def test_overall_rejects_out_of_range(bad):
    with pytest.raises(ValueError):
        overall_score([50, bad])


def test_clamp_score():
    assert clamp_score(64.5) == 65
    assert clamp_score(130) == 100
    assert clamp_score(-3) == 0
