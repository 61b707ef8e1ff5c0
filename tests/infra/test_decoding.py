import asyncio

import pytest

from storage_gateway.infra.storage.decoding import (
    ChunkedTextDecoder,
    decode_all,
    decode_stream,
)

SAMPLE = "Grüße, こんにちは 😀 €"


def _split(data: bytes, size: int) -> list[bytes]:
    return [data[i : i + size] for i in range(0, len(data), size)]


@pytest.mark.parametrize("size", [1, 2, 3, 5])
def test_chunk_boundaries_inside_characters(size):
    data = SAMPLE.encode("utf-8")

    assert decode_all(_split(data, size)) == SAMPLE


def test_feed_holds_back_partial_character():
    decoder = ChunkedTextDecoder()
    euro = "€".encode("utf-8")

    assert decoder.feed(euro[:2]) == ""
    assert decoder.feed(euro[2:]) == "€"
    assert decoder.finish() == "€"


def test_truncated_stream_raises_on_finish():
    decoder = ChunkedTextDecoder()
    decoder.feed("€".encode("utf-8")[:2])

    with pytest.raises(UnicodeDecodeError):
        decoder.finish()


def test_empty_stream():
    assert decode_all([]) == ""


def test_decode_stream_async():
    async def chunks():
        for chunk in _split(SAMPLE.encode("utf-16-le"), 3):
            yield chunk

    assert asyncio.run(decode_stream(chunks(), "utf-16-le")) == SAMPLE
