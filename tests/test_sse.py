import asyncio
import unittest
from collections.abc import AsyncIterator

from fakes import split_every, sse_body

from multi_llm.sse import SSEDecoder, iter_frames


def _decode_all(chunks: list[bytes]) -> list[str]:
    decoder = SSEDecoder()
    frames: list[str] = []
    for chunk in chunks:
        frames.extend(decoder.feed(chunk))
    frames.extend(decoder.flush())
    return frames


async def _aiter(chunks: list[bytes]) -> AsyncIterator[bytes]:
    for chunk in chunks:
        yield chunk


class SSEDecoderTests(unittest.TestCase):
    def setUp(self) -> None:
        self.body = sse_body({"n": 1}, {"text": "你好, world"}, {"n": 3})

    def test_whole_body(self) -> None:
        frames = _decode_all([self.body])
        self.assertEqual(frames, ['{"n": 1}', '{"text": "你好, world"}', '{"n": 3}'])

    def test_arbitrary_chunk_boundaries_give_same_frames(self) -> None:
        expected = _decode_all([self.body])
        for size in (1, 2, 3, 5, 7, 64):
            with self.subTest(size=size):
                self.assertEqual(_decode_all(split_every(self.body, size)), expected)

    def test_partial_line_is_kept_until_completed(self) -> None:
        decoder = SSEDecoder()
        self.assertEqual(decoder.feed(b'data: {"a"'), [])
        self.assertEqual(decoder.feed(b": 1}\n"), ['{"a": 1}'])

    def test_multibyte_character_split_across_chunks(self) -> None:
        raw = 'data: "é中"\n'.encode()
        # split inside the two-byte and the three-byte sequence
        chunks = [raw[:8], raw[8:10], raw[10:]]
        self.assertEqual(_decode_all(chunks), ['"é中"'])

    def test_ignores_non_data_lines(self) -> None:
        body = b": keep-alive\nevent: message\nid: 7\n\ndata: {}\r\n\r\ndata:\n"
        self.assertEqual(_decode_all([body]), ["{}"])

    def test_stops_at_sentinel(self) -> None:
        decoder = SSEDecoder()
        frames = decoder.feed(b"data: 1\ndata: [DONE]\ndata: 2\n")
        self.assertEqual(frames, ["1"])
        self.assertTrue(decoder.done)
        self.assertEqual(decoder.feed(b"data: 3\n"), [])
        self.assertEqual(decoder.flush(), [])

    def test_flush_emits_unterminated_last_line(self) -> None:
        decoder = SSEDecoder()
        self.assertEqual(decoder.feed(b"data: tail"), [])
        self.assertEqual(decoder.flush(), ["tail"])

    def test_iter_frames_stops_at_sentinel(self) -> None:
        chunks = split_every(sse_body({"n": 1}) + b"data: after\n", 4)

        async def collect() -> list[str]:
            return [frame async for frame in iter_frames(_aiter(chunks))]

        self.assertEqual(asyncio.run(collect()), ['{"n": 1}'])

    def test_iter_frames_ends_with_transport(self) -> None:
        chunks = [sse_body({"n": 1}, done=False)]

        async def collect() -> list[str]:
            return [frame async for frame in iter_frames(_aiter(chunks))]

        self.assertEqual(asyncio.run(collect()), ['{"n": 1}'])


if __name__ == "__main__":
    unittest.main()
