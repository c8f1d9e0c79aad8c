import pytest

from voice_relay.services.voices import (
    FullVoice,
    VoiceName,
    VoiceSelector,
    language_code_from_name,
    list_voices,
    normalize_voice_input,
    resolve_voice,
    selector_for_name,
)


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("hi-IN-Chirp3-HD-Orus", "hi-IN"),
        ("en-IN-Chirp3-HD-Zephyr", "en-IN"),
        ("en-US-Standard-A", "en-US"),
        ("Orus", None),
        ("en-IN", None),
    ],
)
def test_language_code_from_name(name: str, expected: str | None) -> None:
    assert language_code_from_name(name) == expected


def test_name_update_derives_language_and_gender() -> None:
    current = VoiceSelector()

    updated = resolve_voice(current, VoiceName("hi-IN-Chirp3-HD-Zephyr"))

    assert updated == VoiceSelector(
        language_code="hi-IN", gender="FEMALE", name="hi-IN-Chirp3-HD-Zephyr"
    )


def test_name_without_prefix_keeps_language() -> None:
    current = VoiceSelector(language_code="hi-IN", gender="MALE", name="hi-IN-Chirp3-HD-Orus")

    updated = resolve_voice(current, VoiceName("Custom"))

    assert updated.language_code == "hi-IN"
    assert updated.gender == "MALE"
    assert updated.name == "Custom"


def test_full_voice_replaces_selector() -> None:
    current = VoiceSelector(language_code="hi-IN", gender="FEMALE", name="hi-IN-Chirp3-HD-Zephyr")

    updated = resolve_voice(
        current, FullVoice(language_code="en-US", gender="MALE", name="en-US-Standard-B")
    )

    assert updated.as_payload() == {
        "languageCode": "en-US",
        "ssmlGender": "MALE",
        "name": "en-US-Standard-B",
    }


def test_normalize_voice_input() -> None:
    assert normalize_voice_input("  hi-IN-Chirp3-HD-Orus ") == VoiceName("hi-IN-Chirp3-HD-Orus")
    assert normalize_voice_input("") is None
    assert normalize_voice_input(None) is None
    assert normalize_voice_input({"name": "x", "languageCode": "en-US"}) == FullVoice(
        language_code="en-US", gender=None, name="x"
    )
    with pytest.raises(ValueError):
        normalize_voice_input(42)


def test_catalog_is_copied() -> None:
    voices = list_voices()
    assert {voice["name"] for voice in voices} == {
        "en-IN-Chirp3-HD-Orus",
        "en-IN-Chirp3-HD-Zephyr",
        "hi-IN-Chirp3-HD-Orus",
        "hi-IN-Chirp3-HD-Zephyr",
    }
    voices[0]["languageCodes"].append("xx-XX")
    assert "xx-XX" not in list_voices()[0]["languageCodes"]


def test_selector_for_name() -> None:
    assert selector_for_name("hi-IN-Chirp3-HD-Orus").language_code == "hi-IN"
