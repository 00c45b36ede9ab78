import unittest
import zlib

import brotli

from brotlistream.engine import BrotliEngine, DecodeStatus, ZlibEngine, get_engine


class TestBrotliEngine(unittest.TestCase):
    def test_pending_output(self):
        compressed = brotli.compress(b"hello world")
        engine = BrotliEngine()
        out = bytearray(5)

        status, consumed, produced = engine.step(memoryview(compressed), memoryview(out))
        self.assertEqual(status, DecodeStatus.NEEDS_MORE_OUTPUT)
        self.assertEqual(consumed, len(compressed))
        self.assertEqual(produced, 5)
        self.assertEqual(out, b"hello")

        # Pending output is drained without consuming more input.
        status, consumed, produced = engine.step(memoryview(b""), memoryview(out))
        self.assertEqual(status, DecodeStatus.NEEDS_MORE_OUTPUT)
        self.assertEqual((consumed, produced), (0, 5))
        self.assertEqual(out, b" worl")

        status, consumed, produced = engine.step(memoryview(b""), memoryview(out))
        self.assertEqual(status, DecodeStatus.SUCCESS)
        self.assertEqual((consumed, produced), (0, 1))
        self.assertEqual(out[:1], b"d")

    def test_needs_more_input(self):
        compressed = brotli.compress(b"foo foo foo" * 100)
        engine = BrotliEngine()
        out = bytearray(4096)

        status, consumed, _ = engine.step(memoryview(compressed[:2]), memoryview(out))
        self.assertEqual(status, DecodeStatus.NEEDS_MORE_INPUT)
        self.assertEqual(consumed, 2)

    def test_output_bounded_by_out(self):
        compressed = brotli.compress(b"\0" * (1 << 20), quality=1)
        engine = BrotliEngine()
        out = bytearray(1)

        status, consumed, produced = engine.step(memoryview(compressed), memoryview(out))
        self.assertEqual(status, DecodeStatus.NEEDS_MORE_OUTPUT)
        self.assertEqual(consumed, len(compressed))
        self.assertEqual(produced, 1)

        # Held input is worked off without taking more.
        status, consumed, produced = engine.step(memoryview(b"ignored"), memoryview(out))
        self.assertEqual(status, DecodeStatus.NEEDS_MORE_OUTPUT)
        self.assertEqual((consumed, produced), (0, 1))

    def test_dictionary_unsupported(self):
        with self.assertRaises(ValueError):
            BrotliEngine(dictionary=b"foo")


class TestZlibEngine(unittest.TestCase):
    def test_bounded_output(self):
        compressed = zlib.compress(b"hello world")
        engine = ZlibEngine()
        out = bytearray(5)

        status, consumed, produced = engine.step(memoryview(compressed), memoryview(out))
        self.assertEqual(status, DecodeStatus.NEEDS_MORE_OUTPUT)
        self.assertEqual(produced, 5)
        self.assertEqual(out, b"hello")
        self.assertLessEqual(consumed, len(compressed))

    def test_trailing_data_not_consumed(self):
        compressed = zlib.compress(b"foo")
        engine = ZlibEngine()
        out = bytearray(16)

        status, consumed, produced = engine.step(memoryview(compressed + b"trailing"), memoryview(out))
        self.assertEqual(status, DecodeStatus.SUCCESS)
        self.assertEqual(consumed, len(compressed))
        self.assertEqual(out[:produced], b"foo")

    def test_error_code(self):
        engine = ZlibEngine()
        status, consumed, produced = engine.step(memoryview(b"not a zlib stream"), memoryview(bytearray(16)))
        self.assertEqual(status, DecodeStatus.ERROR)
        self.assertEqual(engine.error_code, -3)
        self.assertTrue(engine.error_message)

    def test_dictionary(self):
        zdict = b"hello world, hello everyone"
        c = zlib.compressobj(zdict=zdict)
        compressed = c.compress(b"hello world") + c.flush()

        engine = ZlibEngine(dictionary=zdict)
        out = bytearray(32)
        status, _, produced = engine.step(memoryview(compressed), memoryview(out))
        self.assertEqual(status, DecodeStatus.SUCCESS)
        self.assertEqual(out[:produced], b"hello world")


class TestGetEngine(unittest.TestCase):
    def test_names(self):
        self.assertIs(get_engine("brotli"), BrotliEngine)
        self.assertIs(get_engine("ZLIB"), ZlibEngine)
        for name in ("gzip", "deflate"):
            with self.subTest(name=name):
                self.assertIsInstance(get_engine(name)(), ZlibEngine)

    def test_unknown(self):
        with self.assertRaises(ValueError):
            get_engine("lzma")
