__version__ = "0.1.0"


class DecompressionError(Exception):
    """Compressed input could not be decoded.

    Attributes
    ----------
    error_code: Optional[int]
        Engine-defined error code, if the failure came from the decoder engine.
    """

    def __init__(self, message, error_code=None):
        super().__init__(message)
        self.error_code = error_code


class TruncatedStreamError(DecompressionError):
    """Source was exhausted before the compressed stream ended."""


from ._buffer import DEFAULT_BUFFER_SIZE, InputBuffer
from .decompressor import Decompressor, TextDecompressor, decompress
from .engine import BrotliEngine, DecodeStatus, DecoderEngine, StepResult, ZlibEngine, get_engine


def open(f, mode="rb", **kwargs):
    if "w" in mode or "a" in mode or "+" in mode or "x" in mode:
        raise ValueError("brotlistream only supports reading (decompression).")

    if "r" in mode:
        return Decompressor(f, mode=mode, **kwargs) if "b" in mode else TextDecompressor(f, mode=mode, **kwargs)
    else:
        raise ValueError
