from . import DecompressionError

DEFAULT_BUFFER_SIZE = 0xFFF0


def _read_into(source, view: memoryview) -> int:
    """Read from ``source`` into ``view``; returns number of bytes read (``0`` when exhausted)."""
    readinto = getattr(source, "readinto", None)
    if readinto is not None:
        read_size = readinto(view) or 0  # non-blocking sources may return None
    else:
        data = source.read(len(view))
        if not data:
            return 0
        read_size = len(data)
        if read_size <= len(view):
            view[:read_size] = data

    if read_size > len(view):
        raise DecompressionError(
            "Invalid input stream detected, more bytes supplied than expected "
            f"({read_size} > {len(view)})."
        )
    return read_size


class InputBuffer:
    """Fixed-capacity window of compressed bytes not yet consumed by the decoder.

    Bytes live in ``buffer[offset : offset + count]``.
    The backing ``bytearray`` is allocated once and compacted in place.
    """

    def __init__(self, capacity: int = DEFAULT_BUFFER_SIZE):
        if capacity < 1:
            raise ValueError("Input buffer capacity must be positive.")
        self.buffer = bytearray(capacity)
        self.capacity = capacity
        self.offset = 0
        self.count = 0

    def __len__(self):
        return self.count

    def view(self) -> memoryview:
        return memoryview(self.buffer)[self.offset : self.offset + self.count]

    def consume(self, n: int):
        if not 0 <= n <= self.count:
            raise ValueError(f"Cannot consume {n} bytes; only {self.count} available.")
        self.offset += n
        self.count -= n

    def compact(self):
        """Move the unconsumed region to the start of the buffer."""
        if self.offset and self.count:
            self.buffer[: self.count] = self.buffer[self.offset : self.offset + self.count]
        self.offset = 0

    def refill(self, source) -> int:
        """Compact, then read from ``source`` until full or exhausted.

        Parameters
        ----------
        source: FileLike
            Object with a ``readinto`` or ``read`` method.

        Returns
        -------
        int
            Number of new bytes obtained. ``0`` means the source currently has nothing more to give.
        """
        self.compact()
        view = memoryview(self.buffer)
        new_bytes = 0
        while self.count < self.capacity:
            read_size = _read_into(source, view[self.count :])
            if not read_size:
                break
            self.count += read_size
            new_bytes += read_size
        return new_bytes
