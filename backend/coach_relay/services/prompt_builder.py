"""Assembles the realtime session configuration handed to the provider."""

from __future__ import annotations

import unicodedata
from pathlib import Path

from coach_relay.config import Settings
from coach_relay.schemas.sessions import MAX_DISPLAY_NAME_LENGTH, SessionConfig

PROMPT_DIR = Path(__file__).resolve().parent.parent / "prompts"


def clean_display_name(raw: str | None) -> str | None:
    """Drop control characters and surrounding whitespace from a client label."""
    if raw is None:
        return None
    cleaned = "".join(ch for ch in raw if unicodedata.category(ch)[0] != "C").strip()
    return cleaned[:MAX_DISPLAY_NAME_LENGTH] or None


class PromptBuilder:
    """Load the coach persona and build realtime instructions."""

    def __init__(self, settings: Settings, prompt_dir: Path = PROMPT_DIR) -> None:
        self._settings = settings
        self._prompt_dir = prompt_dir
        self._persona: str | None = None

    def load_persona(self) -> str:
        if self._persona is None:
            self._persona = (
                (self._prompt_dir / "coach_persona.md").read_text(encoding="utf-8").strip()
            )
        return self._persona

    def build_instructions(self, display_name: str | None = None) -> str:
        instructions = self.load_persona()
        name = clean_display_name(display_name)
        if name:
            instructions += f"\n\nThe athlete you are coaching is named {name}."
        return instructions

    def build_session_config(self, display_name: str | None = None) -> SessionConfig:
        instructions = self.build_instructions(display_name)

        if self._settings.provider == "azure":
            turn_detection = {
                "type": "server_vad",
                "threshold": 0.6,
                "prefix_padding_ms": 300,
                "silence_duration_ms": 800,
            }
        else:
            turn_detection = {
                "type": "semantic_vad",
                "interrupt_response": True,
            }

        return SessionConfig(
            model=self._settings.realtime_model,
            voice=self._settings.voice_name,
            instructions=instructions,
            turn_detection=turn_detection,
            input_audio_transcription={"model": "whisper-1"},
            modalities=["text", "audio"],
        )
