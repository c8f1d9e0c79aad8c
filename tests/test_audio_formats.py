from voice_relay.utils.audio_formats import (
    AudioFormat,
    classify_audio,
    describe_audio,
    is_structured_container,
)

WEBM_HEADER = b"\x1a\x45\xdf\xa3" + b"\x00" * 12


def test_signature_wins_over_mime_type() -> None:
    assert classify_audio(WEBM_HEADER, "audio/wav") is AudioFormat.OGG_OPUS
    assert classify_audio(b"OggS" + b"\x00" * 8, None) is AudioFormat.OGG_OPUS
    assert classify_audio(b"fLaC" + b"\x00" * 8, "audio/mp3") is AudioFormat.FLAC


def test_mime_rules_in_order() -> None:
    payload = b"\x00\x01\x02\x03"
    assert classify_audio(payload, "audio/webm;codecs=opus") is AudioFormat.OGG_OPUS
    assert classify_audio(payload, "audio/flac") is AudioFormat.FLAC
    assert classify_audio(payload, "audio/mulaw") is AudioFormat.MULAW
    assert classify_audio(payload, "audio/amr-wb") is AudioFormat.AMR_WB
    assert classify_audio(payload, "audio/amr") is AudioFormat.AMR
    assert classify_audio(payload, "audio/ogg") is AudioFormat.OGG_OPUS
    assert classify_audio(payload, "audio/speex") is AudioFormat.SPEEX_WITH_HEADER_BYTE
    assert classify_audio(payload, "audio/wav") is AudioFormat.LINEAR16


def test_unknown_and_mp3_fall_back_to_linear16() -> None:
    assert classify_audio(b"ID3\x03", "audio/mp3") is AudioFormat.LINEAR16
    assert classify_audio(b"", None) is AudioFormat.LINEAR16


def test_describe_audio_sample_rates() -> None:
    container = describe_audio(WEBM_HEADER, "audio/webm")
    assert container.sample_rate_hertz is None
    assert container.channel_count == 2
    assert container.is_container

    assert describe_audio(b"fLaC....", "audio/flac").sample_rate_hertz is None
    assert describe_audio(b"....", "audio/flac").sample_rate_hertz == 16000
    assert describe_audio(b"....", "audio/l16;rate=24000").sample_rate_hertz == 24000
    assert describe_audio(b"....", "audio/wav").sample_rate_hertz == 16000
    assert describe_audio(b"....", "audio/mulaw").sample_rate_hertz == 8000
    assert describe_audio(b"....", "audio/amr").sample_rate_hertz == 8000
    assert describe_audio(b"....", "audio/amr-wb").sample_rate_hertz == 16000


def test_structured_container_detection() -> None:
    assert is_structured_container("audio/FLAC")
    assert not is_structured_container("audio/webm")
    assert not is_structured_container(None)
