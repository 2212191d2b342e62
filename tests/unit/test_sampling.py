"""Tests for the next-token Sampler."""

from __future__ import annotations

import numpy as np
import pytest

from voxscribe.exceptions import ConfigError, ShapeError
from voxscribe.pipeline.sampling import Sampler


class TestGreedy:
    def test_argmax(self) -> None:
        assert Sampler().sample(np.array([0.1, 3.0, -1.0, 2.9])) == 1

    def test_first_index_on_ties(self) -> None:
        assert Sampler().sample(np.array([1.0, 5.0, 5.0, 5.0])) == 1

    def test_uses_last_row_of_2d_logits(self) -> None:
        logits = np.array([[9.0, 0.0, 0.0], [0.0, 0.0, 9.0]])
        assert Sampler()(logits) == 2

    def test_greedy_needs_no_rng(self) -> None:
        sampler = Sampler(temperature=0.0)
        assert sampler.is_greedy
        assert Sampler.from_seed(0.0, seed=None).is_greedy

    def test_empty_logits(self) -> None:
        with pytest.raises(ShapeError):
            Sampler().sample(np.array([]))


class TestValidation:
    def test_negative_temperature(self) -> None:
        with pytest.raises(ConfigError):
            Sampler(temperature=-0.1)

    @pytest.mark.parametrize("top_p", [0.0, -0.5, 1.01])
    def test_top_p_range(self, top_p: float) -> None:
        with pytest.raises(ConfigError):
            Sampler(top_p=top_p)

    def test_sampling_requires_rng(self) -> None:
        with pytest.raises(ConfigError, match="random generator"):
            Sampler(temperature=0.7)


class TestSampling:
    def test_same_seed_same_tokens(self) -> None:
        logits = np.log(np.array([0.1, 0.2, 0.3, 0.4]))
        a = Sampler.from_seed(1.0, seed=1234)
        b = Sampler.from_seed(1.0, seed=1234)
        assert [a.sample(logits) for _ in range(50)] == [b.sample(logits) for _ in range(50)]

    def test_injected_rng_is_used(self) -> None:
        logits = np.zeros(10)
        rng_a = np.random.default_rng(7)
        rng_b = np.random.default_rng(7)
        expected = [int(rng_b.choice(np.arange(10), p=np.full(10, 0.1))) for _ in range(5)]
        sampler = Sampler(temperature=1.0, rng=rng_a)
        assert [sampler.sample(logits) for _ in range(5)] == expected

    def test_top_p_restricts_to_nucleus(self) -> None:
        # probabilities 0.5, 0.3, 0.15, 0.05 -> nucleus for 0.75 is {0, 1}
        logits = np.log(np.array([0.5, 0.3, 0.15, 0.05]))
        sampler = Sampler(temperature=1.0, top_p=0.75, rng=np.random.default_rng(0))
        drawn = {sampler.sample(logits) for _ in range(300)}
        assert drawn <= {0, 1}
        assert drawn == {0, 1}

    def test_tiny_top_p_is_effectively_greedy(self) -> None:
        logits = np.array([0.0, 2.0, 1.0])
        sampler = Sampler(temperature=1.0, top_p=1e-6, rng=np.random.default_rng(3))
        assert {sampler.sample(logits) for _ in range(50)} == {1}

    def test_low_temperature_sharpens(self) -> None:
        logits = np.array([1.0, 2.0])
        sampler = Sampler(temperature=0.01, rng=np.random.default_rng(5))
        assert {sampler.sample(logits) for _ in range(100)} == {1}
