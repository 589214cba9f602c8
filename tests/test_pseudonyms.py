"""Tests for pseudonym generation."""

import random

import pytest

from battletools_lib.logtools.errors import InvalidLogError
from battletools_lib.logtools.ids import to_id
from battletools_lib.logtools.pseudonyms import PseudonymPool, generate_cvc_names, overlaps


class TestCvcNames:
    def test_name_count(self):
        assert len(generate_cvc_names()) == 19 * 5 * 19

    def test_names_are_unique(self):
        names = generate_cvc_names()
        assert len(set(names)) == len(names)

    def test_name_shape(self):
        for name in generate_cvc_names()[:50]:
            assert len(name) == 3
            assert name[0].isupper()
            assert name[1] in "aeiou"


class TestOverlaps:
    def test_equal_ids(self):
        assert overlaps("ab", "ab")

    def test_containment(self):
        assert overlaps("bax07", "bax")
        assert overlaps("ax0", "bax07")

    def test_short_ids_only_compared_for_equality(self):
        assert not overlaps("bax07", "ax")


class TestPseudonymPool:
    """Test pseudonym assignment within one battle."""

    def test_draws_are_distinct(self):
        pool = PseudonymPool(random.Random(0))
        drawn = [pool.draw() for _ in range(500)]
        assert len({to_id(name) for name in drawn}) == 500

    def test_pseudonym_shape(self):
        name = PseudonymPool(random.Random(1)).draw()
        assert len(name) == 5
        assert name[:3].isalpha()
        assert name[3:].isdigit()

    def test_avoids_original_ids(self):
        pool = PseudonymPool(random.Random(2))
        avoid = {"annika", "rusthater"}
        for _ in range(200):
            candidate = to_id(pool.draw(avoid))
            assert all(not overlaps(candidate, original) for original in avoid)

    def test_seeded_pools_repeat(self):
        first = PseudonymPool(random.Random(3))
        second = PseudonymPool(random.Random(3))
        assert [first.draw() for _ in range(5)] == [second.draw() for _ in range(5)]

    def test_unseeded_pools_differ(self):
        draws = {PseudonymPool().draw() for _ in range(10)}
        assert len(draws) > 1

    def test_pool_grows_past_name_list(self):
        pool = PseudonymPool(random.Random(4))
        drawn = [pool.draw({"annika"}) for _ in range(3000)]

        assert len({to_id(name) for name in drawn}) == 3000
        assert all(len(name) == 5 for name in drawn[:1805])
        assert all(len(name) == 6 for name in drawn[1805:])

    def test_exhausted_pool_raises(self):
        pool = PseudonymPool(random.Random(4))
        pool._names = ["Bax"]
        assert pool.remaining == 5

        drawn = [pool.draw() for _ in range(5)]

        assert [len(name) for name in drawn] == [5, 6, 7, 8, 9]
        assert pool.remaining == 0
        with pytest.raises(InvalidLogError, match="Exhausted"):
            pool.draw()
