"""Text-to-speech for the drive player.

Uses litellm's speech endpoint (OpenAI tts-1 by default) and returns MP3 bytes.
"""

import logging
import time
from typing import Optional

import litellm

from .models import Artifact
from .observability import log as obs_log

logger = logging.getLogger(__name__)


class SpeechSynthesizer:
    """Text-to-speech through litellm.speech."""

    def __init__(
        self,
        model: str = "openai/tts-1",
        voice: str = "nova",
        api_key: Optional[str] = None,
        api_base: Optional[str] = None,
    ):
        """Initialize the synthesizer.

        Args:
            model: litellm speech model name
            voice: Voice name for the provider
            api_key: Optional API key (litellm falls back to its env vars)
            api_base: Optional custom endpoint
        """
        self.model = model
        self.voice = voice
        self.api_key = api_key
        self.api_base = api_base

    def synthesize(self, text: str) -> bytes:
        """Convert text to MP3 audio.

        Args:
            text: Text to speak

        Returns:
            MP3 bytes

        Raises:
            ValueError: If text is empty
            RuntimeError: If the provider call fails
        """
        if not text or not text.strip():
            raise ValueError("No text to speak")

        kwargs = {
            "model": self.model,
            "voice": self.voice,
            "input": text,
            "response_format": "mp3",
        }
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.api_base:
            kwargs["api_base"] = self.api_base

        start_time = time.time()
        try:
            response = litellm.speech(**kwargs)
            audio = response.content
        except Exception as e:
            obs_log(
                "tts.call",
                model=self.model,
                status="error",
                error=str(e),
                duration_ms=int((time.time() - start_time) * 1000),
            )
            logger.error(f"Speech synthesis failed: {e}")
            raise RuntimeError(f"Speech synthesis failed: {e}") from e

        obs_log(
            "tts.call",
            model=self.model,
            status="success",
            chars=len(text),
            bytes=len(audio),
            duration_ms=int((time.time() - start_time) * 1000),
        )
        logger.info(f"Synthesized {len(text)} chars into {len(audio)} bytes of audio")
        return audio


def speech_text(artifact: Artifact, mode: str, enricher, storage) -> str:
    """Pick the text the player should speak for an artifact.

    Summary mode speaks the summary (or the title before enrichment). Full
    mode speaks full_audio_text, expanding it once through the enricher.
    """
    if mode == "full":
        return enricher.full_audio_text(storage, artifact)
    return artifact.summary or artifact.title
