"""
Lazy, single-pass enumerable built on a pull-based cursor.

Every transformation (filter, map, take, take_while, skip, skip_while) is a
specialization of one fused pull loop, so a chain of stages never buffers
intermediate results and can stop early on unbounded sources. Only the
terminal operations (to_list, count, reduce, find, first, some, every)
advance the cursor.
"""

from types import GeneratorType
from typing import Any, Callable, Generic, Iterable, Iterator, List, Optional, Protocol, TypeVar

T = TypeVar("T")
R = TypeVar("R")
A = TypeVar("A")


class _Nothing:
    """Marker for "no such element", distinct from a legitimate None."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self):
        return "NOTHING"

    def __bool__(self):
        return False


NOTHING = _Nothing()


class CursorMovedError(RuntimeError):
    """Raised when a sequence is used after its cursor moved into a new stage."""


class EnumerableStatic(Protocol):
    """Shape of the two ways an Enumerable is originally produced."""

    def from_iterable(self, iterable: Iterable[T]) -> "Enumerable[T]":
        ...

    def range(self, start: int, count: Optional[int] = None) -> "Enumerable[int]":
        ...


def _latched(iterator: Iterator[T]) -> Iterator[T]:
    # generators stay exhausted once they return, whatever the source does
    yield from iterator


def _always(x) -> bool:
    return True


def _identity(x):
    return x


class Enumerable(Generic[T]):
    """
    A chainable, lazy, one-shot sequence over a single owned cursor.

    Chaining moves the cursor into the new stage; the parent can no longer
    be pulled from. Terminal operations consume the cursor, so a drained
    sequence keeps answering with empty/identity results.
    """

    def __init__(self, cursor: Iterable[T]):
        if not isinstance(cursor, GeneratorType):
            cursor = _latched(iter(cursor))
        self._cursor: Optional[Iterator[T]] = cursor

    # --------- factories ----------
    @classmethod
    def from_iterable(cls, iterable: Iterable[T]) -> "Enumerable[T]":
        """Wrap any (possibly infinite) iterable without materializing it."""
        return cls(iterable)

    @classmethod
    def range(cls, start: int, count: Optional[int] = None) -> "Enumerable[int]":
        """Yield [start, start+count). A single argument is the count."""
        if count is None:
            return cls.range(0, start)

        def _generate():
            end = start + count
            idx = start
            while idx < end:
                yield idx
                idx += 1

        return cls(_generate())

    # --------- chainable operators (lazy) ----------
    def filter(self, predicate: Callable[[T], bool]) -> "Enumerable[T]":
        return self._stage(_always, predicate, _identity)

    def map(self, selector: Callable[[T], R]) -> "Enumerable[R]":
        return self._stage(_always, _always, selector)

    def take(self, count: int) -> "Enumerable[T]":
        """Stop after `count` elements, without pulling a `count+1`-th one."""
        pulled = 0

        def proceed(x):
            nonlocal pulled
            pulled += 1
            return pulled <= count

        def spent():
            return pulled >= count

        return self._stage(proceed, _always, _identity, spent)

    def take_while(self, predicate: Callable[[T], bool]) -> "Enumerable[T]":
        return self._stage(predicate, _always, _identity)

    def skip(self, count: int) -> "Enumerable[T]":
        skipped = 0

        def emit(x):
            nonlocal skipped
            skipped += 1
            return skipped > count

        return self._stage(_always, emit, _identity)

    def skip_while(self, predicate: Callable[[T], bool]) -> "Enumerable[T]":
        """Drop every element matching `predicate`.

        The predicate is re-tested on each element and never latches, so a
        later match is dropped again: [1, 2, 3, 1, 2, 3] -> [3, 3] for x < 3.
        """
        return self._stage(_always, lambda x: not predicate(x), _identity)

    # --------- reducing operations (force evaluation) ----------
    def to_list(self) -> List[T]:
        return list(self._owned_cursor())

    to_array = to_list

    def count(self) -> int:
        return self.reduce(lambda acc, x: acc + 1, 0)

    def reduce(self, combine: Callable[[A, T], A], initial: A) -> A:
        """Left fold from `initial`; an empty source returns `initial`."""
        value = initial
        for item in self._owned_cursor():
            value = combine(value, item)
        return value

    def find(self, predicate: Callable[[T], bool], default: Any = None) -> Any:
        """Return the first element satisfying `predicate`, or `default`."""
        for item in self._owned_cursor():
            if predicate(item):
                return item
        return default

    def first(self, default: Any = None) -> Any:
        return self.find(_always, default)

    def some(self, predicate: Callable[[T], bool]) -> bool:
        for item in self._owned_cursor():
            if predicate(item):
                return True
        return False

    def every(self, predicate: Callable[[T], bool]) -> bool:
        return not self.some(lambda x: not predicate(x))

    any = some
    all = every

    # --------- iterator protocol ----------
    def __iter__(self) -> Iterator[T]:
        return self._owned_cursor()

    # --------- helpers ----------
    def _owned_cursor(self) -> Iterator[T]:
        if self._cursor is None:
            raise CursorMovedError(
                "sequence was chained into another stage; pull from that stage instead"
            )
        return self._cursor

    def _stage(
        self,
        proceed: Callable[[T], bool],
        emit: Callable[[T], bool],
        transform: Callable[[T], Any],
        spent: Optional[Callable[[], bool]] = None,
    ) -> "Enumerable[Any]":
        upstream = self._owned_cursor()
        self._cursor = None

        def _pull():
            while spent is None or not spent():
                try:
                    x = next(upstream)
                except StopIteration:
                    return
                if not proceed(x):
                    return
                if emit(x):
                    yield transform(x)

        return Enumerable(_pull())
