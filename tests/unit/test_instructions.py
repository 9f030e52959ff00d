# pylint: disable=missing-module-docstring,missing-function-docstring

import pytest

from constants import DEFAULT_OPENING_MESSAGE
from session.instructions import (
    PROFICIENCY_LEVELS,
    build_instructions,
    build_session_config,
    voice_for_language,
)


def test_levels_match_class_options() -> None:
    assert list(PROFICIENCY_LEVELS) == [
        "1-2", "3-4", "5-6", "7-8", "ap-language", "ap-literature",
    ]


@pytest.mark.parametrize(
    "language, voice",
    [
        ("spanish", "alloy"),
        ("french", "shimmer"),
        ("vietnamese", "nova"),
        ("english", "echo"),
        ("Spanish", "alloy"),
        ("klingon", "echo"),
    ],
)
def test_voice_per_language(language: str, voice: str) -> None:
    assert voice_for_language(language) == voice


def test_instructions_carry_level_topic_and_language() -> None:
    text = build_instructions("french", "1-2", "At the bakery")

    assert "helping a student learn french" in text
    assert "PROFICIENCY LEVEL: Novice Low-High" in text
    assert "Speak very slowly and clearly." in text
    assert "CONVERSATION TOPIC: At the bakery" in text
    assert "No rubric provided" in text
    assert text.endswith('introducing the topic: "At the bakery"')


def test_rubric_flag_changes_assessment_context() -> None:
    text = build_instructions("spanish", "7-8", "Travel", has_rubric=True)

    assert "Assess responses based on the provided rubric" in text


def test_unknown_level_lists_valid_options() -> None:
    with pytest.raises(ValueError) as excinfo:
        build_instructions("spanish", "9-10", "Travel")

    message = str(excinfo.value)
    assert "Invalid class level: 9-10" in message
    assert "ap-literature" in message


def test_missing_fields_are_named() -> None:
    with pytest.raises(ValueError) as excinfo:
        build_instructions("", "3-4", "  ")

    message = str(excinfo.value)
    assert "learning_language" in message
    assert "conversation_prompt" in message
    assert "class_level" not in message


def test_session_config_defaults() -> None:
    config = build_session_config("vietnamese", "5-6", "Family")

    assert config.voice == "nova"
    assert config.opening_message == DEFAULT_OPENING_MESSAGE
    assert config.input_audio_format == "pcm16"
    assert config.transcription_model == "whisper-1"
    assert "Family" in config.instructions


def test_session_config_overrides() -> None:
    config = build_session_config(
        "spanish", "3-4", "Food", opening_message=None, voice="verse"
    )

    assert config.voice == "verse"
    assert config.opening_message is None
