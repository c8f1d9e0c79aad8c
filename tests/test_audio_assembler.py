import base64

import pytest

from voice_relay.services.audio_assembler import (
    AudioAssembler,
    AudioDecodeError,
    decode_audio,
)


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def test_completes_after_threshold_without_last_marker() -> None:
    assembler = AudioAssembler(threshold=10)
    chunks = [_b64(bytes([index]) * 3) for index in range(10)]

    for number, chunk in enumerate(chunks[:9], start=1):
        result = assembler.ingest(chunk, number, False, "audio/webm")
        assert result.complete is False

    result = assembler.ingest(chunks[9], 10, False, "audio/webm")

    assert result.complete is True
    assert result.fragment_count == 10
    assert result.payload == b"".join(bytes([index]) * 3 for index in range(10))
    assert result.mime_type == "audio/webm"
    assert assembler.pending == 0


def test_last_chunk_marker_completes_early() -> None:
    assembler = AudioAssembler(threshold=10)

    assembler.ingest(_b64(b"abc"), 1, False, "audio/webm")
    assembler.ingest(_b64(b"def"), 2, False)
    result = assembler.ingest(_b64(b"ghi"), 3, True)

    assert result.complete is True
    assert result.fragment_count == 3
    assert result.payload == b"abcdefghi"


def test_structured_container_waits_for_last_marker() -> None:
    assembler = AudioAssembler(threshold=2)

    for number in range(1, 5):
        result = assembler.ingest(_b64(b"xyz"), number, False, "audio/flac")
        assert result.complete is False

    result = assembler.ingest(_b64(b"xyz"), 5, True, "audio/flac")
    assert result.complete is True
    assert result.fragment_count == 5


def test_first_chunk_discards_previous_utterance() -> None:
    assembler = AudioAssembler(threshold=10)
    assembler.ingest(_b64(b"old"), 1, False, "audio/webm")
    assembler.ingest(_b64(b"old"), 2, False)

    assembler.ingest(_b64(b"new"), 0, False, "audio/ogg")

    assert assembler.pending == 1
    assert assembler.mime_type == "audio/ogg"
    result = assembler.ingest(_b64(b"end"), 2, True)
    assert result.payload == b"newend"


def test_separately_padded_fragments_are_decoded_individually() -> None:
    assembler = AudioAssembler(threshold=10)
    assembler.ingest(_b64(b"a"), 1, False, "audio/webm")
    result = assembler.ingest(_b64(b"bc"), 2, True)

    assert result.payload == b"abc"


def test_default_mime_type_when_missing() -> None:
    assembler = AudioAssembler(threshold=1)
    result = assembler.ingest(_b64(b"abc"), 1, False)
    assert result.complete is True
    assert result.mime_type == "audio/mp3"


def test_invalid_base64_raises_decode_error() -> None:
    with pytest.raises(AudioDecodeError):
        decode_audio("abc")

    assembler = AudioAssembler(threshold=10)
    with pytest.raises(AudioDecodeError):
        assembler.ingest("abcde", 1, True, "audio/webm")
    assert assembler.pending == 0


def test_arrival_times_are_recorded() -> None:
    ticks = iter([1.0, 2.5])
    assembler = AudioAssembler(threshold=10, clock=lambda: next(ticks))

    assembler.ingest(_b64(b"abc"), 1, False)
    assert assembler.last_chunk_at == 1.0
    assembler.ingest(_b64(b"def"), 2, False)
    assert assembler.last_chunk_at == 2.5
