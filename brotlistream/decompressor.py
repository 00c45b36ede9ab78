import codecs
import io
import logging
import warnings
import weakref
from io import BytesIO
from typing import Optional

from . import DecompressionError, TruncatedStreamError
from ._buffer import DEFAULT_BUFFER_SIZE, InputBuffer
from .engine import DecodeStatus, get_engine

log = logging.getLogger(__name__)

_CHUNK_SIZE = 1 << 16
_READ_MODES = ("r", "rb", "br", "rt", "tr")


def _release_leaked(engine, name):
    warnings.warn(f"unclosed {name}", ResourceWarning, stacklevel=2)
    engine.cleanup()


def _destination(buf, offset, count) -> memoryview:
    if buf is None:
        raise TypeError("buf must be a writable bytes-like object, not None")
    view = memoryview(buf)
    if view.readonly:
        raise TypeError("buf must be a writable bytes-like object")
    view = view.cast("B")

    if offset < 0:
        raise ValueError(f"offset must be non-negative, got {offset}")
    if count is None:
        count = max(len(view) - offset, 0)
    if count < 0:
        raise ValueError(f"count must be non-negative, got {count}")
    if len(view) - offset < count:
        raise ValueError("Invalid argument offset and count")
    return view[offset : offset + count]


class Decompressor:
    """Read-only stream of data decompressed from a file or stream.

    Can be used as a context manager to automatically handle file
    opening and closing:

    .. code-block:: python

        with brotlistream.Decompressor("compressed.br") as f:
            decompressed_data = f.read()
    """

    def __init__(
        self,
        f,
        *,
        mode: str = "rb",
        engine="brotli",
        dictionary: Optional[bytes] = None,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        leave_open: bool = False,
        strict: bool = False,
    ):
        """
        Parameters
        ----------
        f: Union[file, str, Path]
            File-like object to read compressed bytes from.
            Anything without a ``read`` method is opened as a path, and is always closed on :meth:`close`.
        mode: str
            Must be a read mode; this stream only decompresses.
        engine: Union[str, Callable]
            Decoder engine name (``"brotli"``, ``"zlib"``, ``"gzip"``, ``"deflate"``)
            or a factory accepting a keyword-only ``dictionary`` argument.
            Defaults to ``"brotli"``.
        dictionary: Optional[bytes]
            Custom dictionary the data was compressed with, if the engine supports one.
        buffer_size: int
            Capacity of the compressed input buffer in bytes.
            Defaults to ``0xFFF0``.
        leave_open: bool
            Don't close ``f`` when this stream is closed.
        strict: bool
            Raise :exc:`~brotlistream.TruncatedStreamError` when a read produces nothing because
            ``f`` ran dry before the compressed stream ended.
            By default such a read returns ``0`` bytes and :attr:`status` stays ``NEEDS_MORE_INPUT``.
        """
        if f is None:
            raise TypeError("f must be a file-like object or a path, not None")

        if mode not in _READ_MODES:
            raise ValueError(f"Invalid mode {mode!r}; only decompression (read) modes are supported.")

        if isinstance(engine, str):
            engine = get_engine(engine)

        is_path = not hasattr(f, "read")  # It's probably a path-like object.
        if not is_path:
            readable = getattr(f, "readable", None)
            if readable is not None and not readable():
                raise ValueError("Stream does not support read.")

        # Everything that can reject arguments runs before a path is opened.
        self._input_buffer = InputBuffer(buffer_size)
        self._engine = engine(dictionary=dictionary)

        if is_path:
            try:
                f = open(str(f), "rb")
            except BaseException:
                self._engine.cleanup()
                raise
            leave_open = False

        self._f = f
        self._leave_open = leave_open
        self._strict = strict
        self._closed = False
        self._finalizer = weakref.finalize(self, _release_leaked, self._engine, type(self).__name__)
        self.status = DecodeStatus.NEEDS_MORE_INPUT

    @property
    def finished(self) -> bool:
        """Whether the compressed stream has been completely decoded."""
        return self.status is DecodeStatus.SUCCESS

    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_open(self):
        if self._closed or self._f is None:
            raise ValueError("I/O operation on closed stream.")

    def readinto(self, buf, offset: int = 0, count: Optional[int] = None) -> int:
        """Decompresses data into provided buffer.

        Parameters
        ----------
        buf: bytearray
            Buffer to decode data into.
        offset: int
            Position in ``buf`` to start writing at.
        count: Optional[int]
            Maximum number of bytes to write. Defaults to the rest of ``buf``.

        Returns
        -------
        int
            Number of bytes decompressed into buffer.
            Less than requested (possibly ``0``) when the compressed stream has ended,
            or when the source has no more data for now; check :attr:`status` to tell them apart.
        """
        self._ensure_open()
        out = _destination(buf, offset, count)

        input_buffer = self._input_buffer
        engine = self._engine
        written = 0
        starved = False
        while out and not self.status.terminal:
            refilled = None
            if self.status is DecodeStatus.NEEDS_MORE_INPUT:
                refilled = input_buffer.refill(self._f)
                if not refilled and not input_buffer.count:
                    starved = True
                    break

            consumed, produced = self._step(engine, input_buffer.view(), out)
            input_buffer.consume(consumed)
            out = out[produced:]
            written += produced

            if refilled == 0 and self.status is DecodeStatus.NEEDS_MORE_INPUT and not (consumed or produced):
                log.debug("Decoder made no progress on %d buffered bytes.", input_buffer.count)
                starved = True
                break

        if starved and not written and out and self._strict:
            raise TruncatedStreamError("Compressed stream ended before the decoder finished.")
        return written

    def _step(self, engine, data, out):
        status, consumed, produced = engine.step(data, out)
        self.status = status
        if status is DecodeStatus.ERROR:
            log.debug("Decoder error %d: %s", engine.error_code, engine.error_message)
            raise DecompressionError(
                f"Decompression failed with error code: {engine.error_code} ({engine.error_message})",
                error_code=engine.error_code,
            )
        if status is DecodeStatus.SUCCESS:
            log.debug("Compressed stream complete.")
        return consumed, produced

    def read(self, size: int = -1) -> bytearray:
        """Decompresses data to bytes.

        Parameters
        ----------
        size: int
            Maximum number of bytes to return.
            If a negative value is provided, all data will be returned.
            Defaults to ``-1``.

        Returns
        -------
        bytearray
            Decompressed data.
        """
        self._ensure_open()
        if size == 0:
            return bytearray()

        chunk_size = _CHUNK_SIZE
        out = []
        while True:
            buf = bytearray(chunk_size if size < 0 else size)
            chunk_size <<= 1  # Keep allocating larger chunks as we go on.
            read_size = self.readinto(buf)
            if read_size < len(buf):
                del buf[read_size:]
                if read_size:
                    out.append(buf)
                break
            out.append(buf)
            if size > 0:
                break
        if not out:
            return bytearray()
        return out[0] if len(out) == 1 else bytearray(b"".join(out))

    def readall(self) -> bytearray:
        return self.read(-1)

    def flush(self):
        """No-op; a decompression stream never holds data to be written."""
        self._ensure_open()

    def readable(self) -> bool:
        if self._closed or self._f is None:
            return False
        readable = getattr(self._f, "readable", None)
        return True if readable is None else readable()

    def seekable(self) -> bool:
        return False

    def writable(self) -> bool:
        return False

    def write(self, data):
        raise io.UnsupportedOperation("write is only supported in compress mode")

    def seek(self, offset, whence=io.SEEK_SET):
        raise io.UnsupportedOperation("seek")

    def tell(self):
        raise io.UnsupportedOperation("tell")

    def truncate(self, size=None):
        raise io.UnsupportedOperation("truncate")

    @property
    def length(self):
        raise io.UnsupportedOperation("length")

    @length.setter
    def length(self, value):
        raise io.UnsupportedOperation("length")

    @property
    def position(self):
        raise io.UnsupportedOperation("position")

    @position.setter
    def position(self, value):
        raise io.UnsupportedOperation("position")

    def close(self):
        """Releases the decoder and closes the input file or stream, unless ``leave_open`` was set.

        Safe to call more than once.
        """
        if self._finalizer.detach() is not None:
            self._engine.cleanup()
            log.debug("Released decoder engine (status=%s).", self.status.name)
        self._closed = True

        f, self._f = self._f, None
        if f is not None and not self._leave_open:
            try:
                f.close()
            except Exception:
                log.warning("Failed to close underlying stream.", exc_info=True)

    def __enter__(self):
        """Use :class:`Decompressor` as a context manager.

        .. code-block:: python

           with brotlistream.Decompressor("input.br") as f:
               decompressed_data = f.read()
        """
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        """Calls :meth:`~Decompressor.close` on contextmanager exit."""
        self.close()


class TextDecompressor(Decompressor):
    """Decompresses a file or stream into text."""

    def __init__(self, f, *, encoding: str = "utf-8", errors: str = "strict", **kwargs):
        super().__init__(f, **kwargs)
        self._decoder = codecs.getincrementaldecoder(encoding)(errors)

    def read(self, size: int = -1) -> str:
        """Decompresses data to text.

        Parameters
        ----------
        size: int
            Maximum number of bytes to decompress.
            If a negative value is provided, all data will be returned.
            Defaults to ``-1``.

        Returns
        -------
        str
            Decompressed text.
            A multi-byte character split across reads is returned by the read that completes it.
        """
        data = super().read(size)
        return self._decoder.decode(bytes(data), final=self.finished)


def decompress(data: bytes, *, engine="brotli", dictionary: Optional[bytes] = None) -> bytearray:
    """Single-call to decompress data.

    Parameters
    ----------
    data: bytes
        Compressed data to decompress.
    engine: Union[str, Callable]
        Decoder engine name or factory. Defaults to ``"brotli"``.
    dictionary: Optional[bytes]
        Custom dictionary the data was compressed with, if the engine supports one.

    Raises
    ------
    TruncatedStreamError
        ``data`` ends before the compressed stream does.

    Returns
    -------
    bytearray
        Decompressed data.
    """
    with BytesIO(data) as f, Decompressor(f, engine=engine, dictionary=dictionary) as d:
        out = d.read()
        if not d.finished:
            raise TruncatedStreamError("Compressed stream ended before the decoder finished.")
        return out
