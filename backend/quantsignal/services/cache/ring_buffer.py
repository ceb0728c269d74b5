"""
Ring Buffer - Fixed-size circular buffer for candle history.

O(1) append and O(1) indexed access. When full, the oldest item is
overwritten.
"""

from typing import Generic, Iterator, List, Optional, TypeVar

T = TypeVar("T")


class RingBuffer(Generic[T]):
    """
    Fixed-capacity circular array indexed by position.

    Example:
        buf = RingBuffer[float](maxlen=3)
        for price in (1.0, 2.0, 3.0, 4.0):
            buf.append(price)
        list(buf)  # [2.0, 3.0, 4.0]
        buf[-1]    # 4.0
    """

    __slots__ = ("_buffer", "_maxlen", "_head", "_size")

    def __init__(self, maxlen: int):
        if maxlen <= 0:
            raise ValueError("maxlen must be positive")
        self._buffer: List[Optional[T]] = [None] * maxlen
        self._maxlen = maxlen
        self._head = 0  # Next write position
        self._size = 0

    def append(self, item: T) -> None:
        self._buffer[self._head] = item
        self._head = (self._head + 1) % self._maxlen
        if self._size < self._maxlen:
            self._size += 1

    def __len__(self) -> int:
        return self._size

    def __bool__(self) -> bool:
        return self._size > 0

    def __getitem__(self, index: int) -> T:
        """buf[0] is the oldest item, buf[-1] the newest."""
        if self._size == 0:
            raise IndexError("buffer is empty")

        if index < 0:
            index = self._size + index

        if index < 0 or index >= self._size:
            raise IndexError(f"index {index} out of range for size {self._size}")

        start = (self._head - self._size) % self._maxlen
        return self._buffer[(start + index) % self._maxlen]

    def __iter__(self) -> Iterator[T]:
        """Iterate from oldest to newest."""
        for i in range(self._size):
            yield self[i]

    def newest(self) -> Optional[T]:
        return self[-1] if self._size > 0 else None
