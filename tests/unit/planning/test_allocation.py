import pytest

from exam_service.core.exceptions import InvalidAllocation
from exam_service.core.utils import get_rng
from exam_service.planning.allocation import allocate_by_weight


class TestAllocateByWeight:
    def test_exact_split(self) -> None:
        assert allocate_by_weight(10, [("A", 70), ("B", 30)]) == {"A": 7, "B": 3}

    def test_core1_blueprint_over_90(self) -> None:
        weights = [("1.0", 13), ("2.0", 23), ("3.0", 25), ("4.0", 11), ("5.0", 28)]
        result = allocate_by_weight(90, weights)
        assert result == {"1.0": 12, "2.0": 21, "3.0": 22, "4.0": 10, "5.0": 25}

    def test_core2_blueprint_over_90(self) -> None:
        weights = [("1.0", 28), ("2.0", 28), ("3.0", 23), ("4.0", 21)]
        result = allocate_by_weight(90, weights)
        assert sum(result.values()) == 90
        assert result == {"1.0": 25, "2.0": 25, "3.0": 21, "4.0": 19}

    def test_ties_broken_by_input_order(self) -> None:
        assert allocate_by_weight(1, [("a", 1), ("b", 1)]) == {"a": 1, "b": 0}
        assert allocate_by_weight(2, [("a", 1), ("b", 1), ("c", 1)]) == {
            "a": 1,
            "b": 1,
            "c": 0,
        }

    def test_zero_total(self) -> None:
        assert allocate_by_weight(0, [("a", 3), ("b", 1)]) == {"a": 0, "b": 0}

    def test_zero_weight_key_gets_nothing(self) -> None:
        assert allocate_by_weight(5, [("a", 0), ("b", 1)]) == {"a": 0, "b": 5}

    def test_preserves_key_order(self) -> None:
        result = allocate_by_weight(7, [("z", 1), ("a", 5), ("m", 2)])
        assert list(result) == ["z", "a", "m"]

    def test_sum_and_bounds_hold_for_random_weights(self) -> None:
        rng = get_rng(7)
        for _ in range(200):
            n_keys = int(rng.integers(1, 8))
            total = int(rng.integers(0, 200))
            weights = [(f"k{i}", int(rng.integers(1, 50))) for i in range(n_keys)]
            result = allocate_by_weight(total, weights)

            assert sum(result.values()) == total
            weight_sum = sum(w for _, w in weights)
            for key, w in weights:
                exact = total * w / weight_sum
                assert int(exact) <= result[key] <= int(exact) + 1

    def test_float_weights(self) -> None:
        result = allocate_by_weight(3, [("a", 0.5), ("b", 0.25), ("c", 0.25)])
        assert sum(result.values()) == 3
        assert result["a"] >= 1


class TestAllocateErrors:
    def test_negative_total(self) -> None:
        with pytest.raises(InvalidAllocation):
            allocate_by_weight(-1, [("a", 1)])

    def test_empty_keys(self) -> None:
        with pytest.raises(InvalidAllocation):
            allocate_by_weight(5, [])

    def test_duplicate_keys(self) -> None:
        with pytest.raises(InvalidAllocation):
            allocate_by_weight(5, [("a", 1), ("a", 2)])

    def test_negative_weight(self) -> None:
        with pytest.raises(InvalidAllocation):
            allocate_by_weight(5, [("a", -1), ("b", 2)])

    def test_zero_weight_sum(self) -> None:
        with pytest.raises(InvalidAllocation):
            allocate_by_weight(5, [("a", 0), ("b", 0)])
