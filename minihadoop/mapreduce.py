"""
User-facing capabilities: map, reduce and partition
"""

from abc import ABC, abstractmethod
from typing import Iterable, Iterator, Tuple

from minihadoop.common.writable import Writable

Pair = Tuple[Writable, Writable]


class Mapper(ABC):
    """Turns one input record into zero or more intermediate pairs"""

    @abstractmethod
    def map(self, key, value) -> Iterable[Pair]:
        """
        Map one input record

        Args:
            key: Input key (line number for text inputs)
            value: Input value (line contents for text inputs)

        Yields:
            (key, value) tuples of map-output Writables
        """


class Reducer(ABC):
    """Folds all values seen for one key into final output pairs"""

    @abstractmethod
    def reduce(self, key: Writable, values: Iterator[Writable]) -> Iterable[Pair]:
        """
        Reduce one key group

        Args:
            key: The group key
            values: Iterator over every value emitted for key

        Yields:
            (key, value) tuples of output Writables. Returning a single
            Writable instead emits (key, result).
        """


class Partitioner(ABC):
    """Assigns an intermediate key to a reduce partition"""

    @abstractmethod
    def get_partition(self, key: Writable, value: Writable, num_partitions: int) -> int:
        """Return a partition number in [0, num_partitions)"""


class FunctionMapper(Mapper):
    """Mapper backed by a plain map(key, value) function"""

    def __init__(self, func):
        self.func = func

    def map(self, key, value):
        return self.func(key, value)

    def __repr__(self):
        return f"FunctionMapper({getattr(self.func, '__name__', self.func)!r})"


class FunctionReducer(Reducer):
    """Reducer backed by a plain reduce(key, values) function"""

    def __init__(self, func):
        self.func = func

    def reduce(self, key, values):
        return self.func(key, values)

    def __repr__(self):
        return f"FunctionReducer({getattr(self.func, '__name__', self.func)!r})"


def iter_reduce_output(key: Writable, result) -> Iterator[Pair]:
    """Normalize what a reducer returned into (key, value) tuples"""
    if result is None:
        return
    if isinstance(result, Writable):
        yield (key, result)
        return
    for out_key, out_value in result:
        yield (out_key, out_value)
