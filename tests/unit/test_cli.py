# pylint: disable=missing-module-docstring,missing-function-docstring

import pytest

from cli.main import ConsoleListener, build_parser, session_config_from_args
from session.transcript import Speaker, TranscriptEntry


def test_defaults_build_tutor_session() -> None:
    args = build_parser().parse_args([])

    config = session_config_from_args(args)

    assert config.voice == "alloy"
    assert config.opening_message
    assert "learn spanish" in config.instructions


def test_custom_instructions_and_no_opening() -> None:
    args = build_parser().parse_args(
        ["--instructions", "Only speak French.", "--voice", "shimmer", "--no-opening"]
    )

    config = session_config_from_args(args)

    assert config.instructions == "Only speak French."
    assert config.voice == "shimmer"
    assert config.opening_message is None


def test_level_choices_are_enforced() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args(["--level", "9-10"])


def test_console_listener_keeps_final_entries_only(capsys: pytest.CaptureFixture[str]) -> None:
    listener = ConsoleListener()

    listener.on_transcription_received(TranscriptEntry(speaker=Speaker.AI, text="Ho", is_final=False))
    listener.on_transcription_received(TranscriptEntry(speaker=Speaker.AI, text="Hola"))
    listener.on_transcription_received(TranscriptEntry(speaker=Speaker.USER, text="Buenas"))

    assert [entry.text for entry in listener.transcript] == ["Hola", "Buenas"]
    err = capsys.readouterr().err
    assert "tutor: Hola" in err
    assert "you: Buenas" in err


def test_console_listener_plays_audio_through_bridge() -> None:
    class FakeBridge:
        def __init__(self) -> None:
            self.chunks: list[bytes] = []

        def playback(self, pcm: bytes) -> None:
            self.chunks.append(pcm)

    listener = ConsoleListener()
    bridge = FakeBridge()
    listener.attach_bridge(bridge)

    listener.on_audio_received(b"\x00\x01")

    assert bridge.chunks == [b"\x00\x01"]
