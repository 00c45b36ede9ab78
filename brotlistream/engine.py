"""Decoder engines driven one ``step`` at a time by :class:`~brotlistream.Decompressor`.

An engine consumes some prefix of the compressed ``data`` it is offered, writes decoded
bytes into the front of ``out``, and reports how far it got in a :class:`StepResult`.
``out`` is only borrowed for the duration of the call.
"""
import re
import zlib
from enum import Enum
from typing import NamedTuple, Optional, Protocol

import brotli

from . import DecompressionError


class DecodeStatus(Enum):
    NEEDS_MORE_INPUT = "needs_more_input"
    NEEDS_MORE_OUTPUT = "needs_more_output"
    SUCCESS = "success"
    ERROR = "error"

    @property
    def terminal(self) -> bool:
        return self is DecodeStatus.SUCCESS or self is DecodeStatus.ERROR


class StepResult(NamedTuple):
    status: DecodeStatus
    consumed: int
    produced: int


class DecoderEngine(Protocol):
    error_code: int
    error_message: str

    def step(self, data: memoryview, out: memoryview) -> StepResult: ...

    def cleanup(self) -> None: ...


# The binding raises ``brotli.error`` without exposing BrotliDecoderErrorCode.
BROTLI_ERROR_CODE = -1


class BrotliEngine:
    """Brotli decoder session backed by :class:`brotli.Decompressor`.

    Each step asks the binding for at most ``len(out)`` decoded bytes.
    Input the binding took but has not decoded yet stays inside it; while it
    (or undelivered output) remains, steps report :attr:`DecodeStatus.NEEDS_MORE_OUTPUT`
    and feed no new input.
    """

    def __init__(self, *, dictionary: Optional[bytes] = None):
        if dictionary is not None:
            raise ValueError("The brotli engine does not support custom dictionaries.")
        self._decompressor = brotli.Decompressor()
        self.error_code = 0
        self.error_message = ""

    def step(self, data: memoryview, out: memoryview) -> StepResult:
        if not out:  # output_buffer_limit=0 would not bound anything
            return StepResult(DecodeStatus.NEEDS_MORE_OUTPUT, 0, 0)

        d = self._decompressor
        chunk_input = bytes(data) if d.can_accept_more_data() else b""
        try:
            chunk = d.process(chunk_input, output_buffer_limit=len(out))
        except brotli.error as e:
            self.error_code = BROTLI_ERROR_CODE
            self.error_message = str(e)
            return StepResult(DecodeStatus.ERROR, 0, 0)

        produced = len(chunk)
        if produced > len(out):
            raise DecompressionError(f"Decoder returned {produced} bytes for a {len(out)} byte output limit.")
        out[:produced] = chunk

        if d.is_finished():
            status = DecodeStatus.SUCCESS
        elif not d.can_accept_more_data():
            status = DecodeStatus.NEEDS_MORE_OUTPUT
        else:
            status = DecodeStatus.NEEDS_MORE_INPUT
        return StepResult(status, len(chunk_input), produced)

    def cleanup(self):
        self._decompressor = None


_ZLIB_ERROR_CODE = re.compile(r"Error (-?\d+)")
_Z_DATA_ERROR = -3


class ZlibEngine:
    """DEFLATE decoder session backed by :func:`zlib.decompressobj`.

    ``wbits`` selects the framing, exactly as for :func:`zlib.decompressobj`:
    ``15`` for zlib, ``31`` for gzip, ``-15`` for raw deflate.
    """

    def __init__(self, *, dictionary: Optional[bytes] = None, wbits: int = zlib.MAX_WBITS):
        if dictionary is None:
            self._decompressor = zlib.decompressobj(wbits)
        else:
            self._decompressor = zlib.decompressobj(wbits, zdict=bytes(dictionary))
        self.error_code = 0
        self.error_message = ""

    def step(self, data: memoryview, out: memoryview) -> StepResult:
        if not out:  # max_length=0 would mean "unbounded"
            return StepResult(DecodeStatus.NEEDS_MORE_OUTPUT, 0, 0)

        d = self._decompressor
        try:
            chunk = d.decompress(data, len(out))
        except zlib.error as e:
            match = _ZLIB_ERROR_CODE.search(str(e))
            self.error_code = int(match.group(1)) if match else _Z_DATA_ERROR
            self.error_message = str(e)
            return StepResult(DecodeStatus.ERROR, 0, 0)

        produced = len(chunk)
        out[:produced] = chunk

        if d.eof:
            return StepResult(DecodeStatus.SUCCESS, len(data) - len(d.unused_data), produced)

        consumed = len(data) - len(d.unconsumed_tail)
        if produced == len(out):
            # zlib may still hold decoded bytes even with all input consumed.
            status = DecodeStatus.NEEDS_MORE_OUTPUT
        else:
            status = DecodeStatus.NEEDS_MORE_INPUT
        return StepResult(status, consumed, produced)

    def cleanup(self):
        self._decompressor = None


def _gzip_engine(*, dictionary=None):
    return ZlibEngine(dictionary=dictionary, wbits=16 + zlib.MAX_WBITS)


def _deflate_engine(*, dictionary=None):
    return ZlibEngine(dictionary=dictionary, wbits=-zlib.MAX_WBITS)


_ENGINES = {
    "brotli": BrotliEngine,
    "zlib": ZlibEngine,
    "gzip": _gzip_engine,
    "deflate": _deflate_engine,
}


def get_engine(name: str):
    """Get an engine factory by name.

    Parameters
    ----------
    name : str
        One of ``"brotli"``, ``"zlib"``, ``"gzip"``, ``"deflate"``.

    Returns
    -------
    callable
        Factory accepting a keyword-only ``dictionary`` argument.
    """
    try:
        return _ENGINES[name.lower()]
    except KeyError:
        raise ValueError(f"Unknown engine: {name}. Valid options are {', '.join(map(repr, _ENGINES))}") from None
