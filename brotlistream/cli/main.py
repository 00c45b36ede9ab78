import sys
from pathlib import Path
from typing import Annotated, Literal, Optional

from cyclopts import App, Parameter, validators

import brotlistream

app = App(help="Decompress Brotli (or DEFLATE) data as a stream.", version=brotlistream.__version__)

EngineType = Literal["brotli", "zlib", "gzip", "deflate"]


def open_input(input_: Optional[Path]):
    return sys.stdin.buffer if input_ is None else input_.open("rb")


def open_output(output: Optional[Path]):
    return sys.stdout.buffer if output is None else output.open("wb")


@app.command()
def decompress(
    input_: Annotated[Optional[Path], Parameter(name=["--input", "-i"])] = None,
    output: Annotated[Optional[Path], Parameter(name=["--output", "-o"])] = None,
    *,
    engine: Annotated[EngineType, Parameter(name=["--engine", "-e"])] = "brotli",
    chunk_size: Annotated[
        int,
        Parameter(
            name=["--chunk-size", "-c"],
            validator=validators.Number(gte=1),
        ),
    ] = 1 << 16,
    strict: bool = True,
):
    """Decompress an input file or stream.

    Parameters
    ----------
    input_: Optional[Path]
        Input file to decompress. Defaults to stdin.
    output: Optional[Path]
        Output decompressed file. Defaults to stdout.
    engine: Literal["brotli", "zlib", "gzip", "deflate"]
        Compressed data format.
    chunk_size: int
        Number of decompressed bytes to request per read.
    strict: bool
        Fail if the input ends before the compressed stream does.
    """
    src = open_input(input_)
    dst = open_output(output)
    try:
        with brotlistream.Decompressor(src, engine=engine, leave_open=input_ is None) as d:
            buf = bytearray(chunk_size)
            while True:
                read_size = d.readinto(buf)
                if not read_size:
                    break
                dst.write(buf[:read_size])
            if strict and not d.finished:
                raise brotlistream.TruncatedStreamError("Compressed stream ended before the decoder finished.")
    finally:
        dst.flush()
        if output is not None:
            dst.close()


def run_app():
    app()
