"""
Writable serialization contract
Records that cross the map/reduce boundary implement write/read_fields and
get byte-level encode/decode for free. Streams carry no type tags: readers
must know which concrete class to expect.
"""

import io
import struct
from abc import ABC, abstractmethod
from functools import total_ordering
from typing import BinaryIO, Iterator, NamedTuple, Type

from minihadoop.common.errors import SerializationError

_INT = struct.Struct('>i')
INT_MIN = -(2 ** 31)
INT_MAX = 2 ** 31 - 1


def _read_exact(stream: BinaryIO, size: int) -> bytes:
    """Read exactly size bytes or raise SerializationError"""
    data = stream.read(size)
    if len(data) != size:
        raise SerializationError(
            f"Truncated input: expected {size} bytes, got {len(data)}")
    return data


def read_int(stream: BinaryIO) -> int:
    return _INT.unpack(_read_exact(stream, _INT.size))[0]


def write_int(stream: BinaryIO, value: int):
    if not INT_MIN <= value <= INT_MAX:
        raise SerializationError(f"Integer {value} does not fit in 4 bytes")
    stream.write(_INT.pack(value))


class Writable(ABC):
    """A value with a byte-exact binary encoding"""

    @abstractmethod
    def write(self, stream: BinaryIO):
        """Serialize this value onto a binary stream"""

    @abstractmethod
    def read_fields(self, stream: BinaryIO):
        """Replace this value's state with one read from a binary stream"""

    def encode(self) -> bytes:
        buffer = io.BytesIO()
        self.write(buffer)
        return buffer.getvalue()

    @classmethod
    def decode(cls, data: bytes):
        """
        Decode exactly one value of this class from data

        Raises:
            SerializationError: If data is truncated, malformed, or has
                trailing bytes after the value
        """
        stream = io.BytesIO(data)
        instance = cls()
        instance.read_fields(stream)
        if stream.tell() != len(data):
            raise SerializationError(
                f"{len(data) - stream.tell()} trailing bytes after {cls.__name__}")
        return instance


@total_ordering
class Text(Writable):
    """
    A UTF-8 string Writable

    Wire format is a 4-byte big-endian signed length followed by that many
    bytes of UTF-8. Equality, hashing and ordering use the decoded string.
    """

    def __init__(self, value: str = ""):
        self.set(value)

    def get(self) -> str:
        return self._value

    def set(self, value: str):
        if not isinstance(value, str):
            raise TypeError(f"Text holds str, not {type(value).__name__}")
        self._value = value

    def write(self, stream: BinaryIO):
        try:
            data = self._value.encode('utf-8')
        except UnicodeEncodeError as e:
            raise SerializationError(f"Cannot encode Text as UTF-8: {e}") from e
        write_int(stream, len(data))
        stream.write(data)

    def read_fields(self, stream: BinaryIO):
        length = read_int(stream)
        if length < 0:
            raise SerializationError(f"Negative Text length: {length}")
        data = _read_exact(stream, length)
        try:
            self._value = data.decode('utf-8')
        except UnicodeDecodeError as e:
            raise SerializationError(f"Invalid UTF-8 in Text: {e}") from e

    def clone(self) -> 'Text':
        return Text(self._value)

    __copy__ = clone

    def __eq__(self, other):
        if not isinstance(other, Text):
            return NotImplemented
        return self._value == other._value

    def __lt__(self, other):
        if not isinstance(other, Text):
            return NotImplemented
        return self._value < other._value

    def __hash__(self):
        return hash(self._value)

    def __str__(self):
        return self._value

    def __repr__(self):
        return f"Text({self._value!r})"


@total_ordering
class IntWritable(Writable):
    """A signed 32-bit integer Writable, 4 bytes big-endian"""

    def __init__(self, value: int = 0):
        self.set(value)

    def get(self) -> int:
        return self._value

    def set(self, value: int):
        if not isinstance(value, int) or isinstance(value, bool):
            raise TypeError(f"IntWritable holds int, not {type(value).__name__}")
        self._value = value

    def write(self, stream: BinaryIO):
        write_int(stream, self._value)

    def read_fields(self, stream: BinaryIO):
        self._value = read_int(stream)

    def clone(self) -> 'IntWritable':
        return IntWritable(self._value)

    __copy__ = clone

    def __eq__(self, other):
        if not isinstance(other, IntWritable):
            return NotImplemented
        return self._value == other._value

    def __lt__(self, other):
        if not isinstance(other, IntWritable):
            return NotImplemented
        return self._value < other._value

    def __hash__(self):
        return hash(self._value)

    def __str__(self):
        return str(self._value)

    def __repr__(self):
        return f"IntWritable({self._value})"


class KeyValue(NamedTuple):
    """One record flowing from map to reduce"""
    key: Writable
    value: Writable


def read_pairs(stream: BinaryIO, key_cls: Type[Writable],
               value_cls: Type[Writable]) -> Iterator[KeyValue]:
    """
    Iterate key/value pairs from a flat stream of serialized Writables

    Args:
        stream: Seekable binary stream positioned at a record boundary
        key_cls: Writable class of every key
        value_cls: Writable class of every value

    Yields:
        KeyValue pairs in stream order

    Raises:
        SerializationError: If the stream ends partway through a record
    """
    while True:
        position = stream.tell()
        if not stream.read(1):
            return
        stream.seek(position)

        key = key_cls()
        key.read_fields(stream)
        value = value_cls()
        value.read_fields(stream)
        yield KeyValue(key, value)
