import pytest
from enumerable import Enumerable, CursorMovedError, EnumerableStatic


class TestRangeFactory:
    """Test range construction"""

    def test_single_argument_is_count(self):
        assert Enumerable.range(5).to_list() == [0, 1, 2, 3, 4]
        assert Enumerable.range(0, 5).to_list() == [0, 1, 2, 3, 4]

    def test_start_and_count(self):
        assert Enumerable.range(3, 5).to_list() == [3, 4, 5, 6, 7]

    def test_negative_start(self):
        assert Enumerable.range(-2, 3).to_list() == [-2, -1, 0]

    def test_zero_count(self):
        assert Enumerable.range(7, 0).to_list() == []

    def test_negative_count_is_empty(self):
        assert Enumerable.range(3, -4).to_list() == []
        assert Enumerable.range(-4).to_list() == []

    def test_huge_range_is_lazy(self):
        assert Enumerable.range(10 ** 15).skip(2).first() == 2


class TestWrapFactory:
    """Test wrapping existing iterables"""

    def test_wrap_generator(self):
        gen = (x * x for x in range(4))
        assert Enumerable.from_iterable(gen).to_list() == [0, 1, 4, 9]

    def test_wrap_string(self):
        assert Enumerable.from_iterable("abc").map(str.upper).to_list() == ["A", "B", "C"]

    def test_wrap_does_not_copy_list(self):
        """The wrapped list is read through its own iterator"""
        data = [1, 2]
        seq = Enumerable.from_iterable(data)
        data.append(3)
        assert seq.to_list() == [1, 2, 3]

    def test_direct_construction_from_iterator(self):
        assert Enumerable(iter([4, 5])).to_list() == [4, 5]

    def test_class_satisfies_static_shape(self):
        factory: EnumerableStatic = Enumerable
        assert factory.range(2).to_list() == [0, 1]
        assert factory.from_iterable([9]).to_list() == [9]


class TestSinglePass:
    """Chaining moves the cursor into the new stage"""

    def test_parent_cannot_be_pulled_after_chaining(self):
        parent = Enumerable.range(5)
        child = parent.map(lambda x: x + 1)

        with pytest.raises(CursorMovedError):
            parent.to_list()

        assert child.to_list() == [1, 2, 3, 4, 5]

    def test_parent_cannot_be_chained_twice(self):
        parent = Enumerable.range(5)
        parent.filter(lambda x: x % 2 == 0)

        with pytest.raises(CursorMovedError):
            parent.filter(lambda x: x % 2 == 1)

    def test_moved_error_is_runtime_error(self):
        parent = Enumerable.range(1)
        parent.take(1)

        with pytest.raises(RuntimeError):
            iter(parent)


class TestErrorPropagation:
    """Failures from callbacks and sources propagate unchanged"""

    def test_callback_error_propagates(self):
        seq = Enumerable.range(5).map(lambda x: 10 // (x - 2))

        with pytest.raises(ZeroDivisionError):
            seq.to_list()

    def test_predicate_error_propagates_from_terminal(self):
        def explode(x):
            raise KeyError(x)

        with pytest.raises(KeyError):
            Enumerable.range(3).some(explode)

    def test_source_error_propagates(self):
        def broken():
            yield 1
            raise IOError("source went away")

        seq = Enumerable.from_iterable(broken()).map(lambda x: x * 2)

        with pytest.raises(IOError, match="source went away"):
            seq.to_list()

    def test_error_surfaces_only_at_terminal(self):
        """A faulty callback is not invoked while chaining"""
        seq = Enumerable.range(3).filter(lambda x: 1 / 0)

        with pytest.raises(ZeroDivisionError):
            seq.count()
