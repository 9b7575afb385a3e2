"""Tests for the seeded linear congruential generator."""

import pytest
from py_worldgen.core.lcg_prng import SeededRandom

# First five next_int(100) draws for seed 42
SEED_42_INTS = [25, 8, 57, 22, 37]


class TestSeededRandom:
    """Test the LCG stream."""

    def test_reference_sequence(self):
        """Test the documented next_int sequence for seed 42."""
        rng = SeededRandom(42)
        assert [rng.next_int(100) for _ in range(5)] == SEED_42_INTS

    def test_first_state(self):
        """Test the first state transition."""
        rng = SeededRandom(42)
        value = rng.next()

        assert rng.state == 1083814273
        assert value == 1083814273 / 2 ** 32

    def test_values_in_unit_interval(self):
        """Test that draws stay in [0, 1)."""
        rng = SeededRandom(12345)
        for _ in range(1000):
            value = rng.next()
            assert 0.0 <= value < 1.0

    def test_same_seed_same_stream(self):
        """Test reproducibility."""
        a = SeededRandom(7)
        b = SeededRandom(7)
        assert [a.next() for _ in range(50)] == [b.next() for _ in range(50)]

    def test_different_seeds_differ(self):
        """Test that different seeds produce different streams."""
        a = SeededRandom(1)
        b = SeededRandom(2)
        assert [a.next() for _ in range(10)] != [b.next() for _ in range(10)]

    def test_seed_reduced_to_32_bits(self):
        """Test that seeds wrap to 32 bits."""
        a = SeededRandom(2 ** 32 + 5)
        b = SeededRandom(5)
        assert a.next() == b.next()

    def test_next_float_range(self):
        """Test next_float bounds."""
        rng = SeededRandom(99)
        for _ in range(200):
            value = rng.next_float(-3.0, 5.0)
            assert -3.0 <= value < 5.0

    def test_call_count(self):
        """Test that derived helpers count one draw each."""
        rng = SeededRandom(3)
        rng.next()
        rng.next_int(10)
        rng.next_float(0, 1)
        assert rng.call_count == 3


class TestShuffle:
    """Test Fisher-Yates shuffling."""

    def test_is_permutation(self):
        """Test that shuffling keeps every element."""
        rng = SeededRandom(42)
        items = list(range(20))
        rng.shuffle(items)
        assert sorted(items) == list(range(20))

    def test_deterministic(self):
        """Test that the same seed gives the same order."""
        first = SeededRandom(11).shuffle(list(range(30)))
        second = SeededRandom(11).shuffle(list(range(30)))
        assert first == second

    def test_draw_count(self):
        """Test that shuffling n items uses n - 1 draws."""
        rng = SeededRandom(5)
        rng.shuffle(list(range(10)))
        assert rng.call_count == 9

    def test_sample(self):
        """Test sampling without replacement."""
        rng = SeededRandom(8)
        picked = rng.sample(["a", "b", "c", "d"], 2)
        assert len(picked) == 2
        assert len(set(picked)) == 2

    def test_choice_empty(self):
        """Test that choice rejects empty sequences."""
        with pytest.raises(IndexError):
            SeededRandom(1).choice([])
