from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Any, Protocol

import httpx
from pydantic import BaseModel, ValidationError, model_validator

from clipline.errors import ProviderError, ProviderHTTPError

logger = logging.getLogger(__name__)

TTS_WITH_TIMESTAMPS_PATH = "/v1/text-to-speech/{voice_id}/with-timestamps"
DEFAULT_SAMPLE_RATE = 24000


class Alignment(BaseModel):
    characters: list[str]
    character_start_times_seconds: list[float]
    character_end_times_seconds: list[float]

    @model_validator(mode="after")
    def _check_arrays(self) -> "Alignment":
        n = len(self.characters)
        if n == 0 or n != len(self.character_start_times_seconds) or n != len(self.character_end_times_seconds):
            raise ValueError("alignment arrays are empty or of unequal length")
        return self


def sample_rate_from_output_format(output_format: str | None) -> int:
    """``pcm_24000`` -> 24000; anything unparseable falls back to 24 kHz."""
    fmt = (output_format or "").lower()
    if fmt.startswith("pcm_"):
        try:
            rate = int(fmt[4:])
        except ValueError:
            return DEFAULT_SAMPLE_RATE
        if rate > 0:
            return rate
    return DEFAULT_SAMPLE_RATE


@dataclass
class SpeechResult:
    pcm: bytes
    alignment: Alignment
    output_format: str

    @property
    def sample_rate(self) -> int:
        return sample_rate_from_output_format(self.output_format)


class SpeechSynthesizer(Protocol):
    async def synthesize(self, text: str) -> SpeechResult: ...


class ElevenLabsClient:
    def __init__(
        self,
        api_key: str,
        *,
        voice_id: str,
        model_id: str | None = None,
        output_format: str = "pcm_24000",
        base_url: str = "https://api.elevenlabs.io",
        timeout_sec: float = 300,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not api_key:
            raise ValueError("ElevenLabs API key is required")
        self.api_key = api_key
        self.voice_id = voice_id
        self.model_id = model_id
        self.output_format = output_format
        self.base_url = base_url.rstrip("/")
        self.timeout_sec = timeout_sec
        self._transport = transport

    @classmethod
    def from_settings(cls, settings) -> "ElevenLabsClient":
        return cls(
            settings.elevenlabs_api_key,
            voice_id=settings.elevenlabs_voice_id,
            model_id=settings.elevenlabs_model_id,
            output_format=settings.elevenlabs_output_format,
            base_url=settings.elevenlabs_base_url,
            timeout_sec=settings.elevenlabs_timeout_sec,
        )

    async def synthesize(self, text: str) -> SpeechResult:
        url = self.base_url + TTS_WITH_TIMESTAMPS_PATH.format(voice_id=self.voice_id)
        payload: dict[str, Any] = {"text": text}
        if self.model_id:
            payload["model_id"] = self.model_id
        headers = {"xi-api-key": self.api_key, "Accept": "application/json"}

        try:
            async with httpx.AsyncClient(timeout=self.timeout_sec, transport=self._transport) as client:
                resp = await client.post(
                    url,
                    params={"output_format": self.output_format},
                    headers=headers,
                    json=payload,
                )
        except httpx.TransportError as exc:
            raise ProviderError(f"ElevenLabs request failed: {exc}", component="elevenlabs") from exc

        if resp.status_code >= 400:
            raise ProviderHTTPError(resp.status_code, resp.text, component="elevenlabs", url=url)

        try:
            data = resp.json()
            pcm = base64.b64decode(data.get("audio_base64") or "", validate=True)
            alignment = Alignment.model_validate(data.get("alignment") or {})
        except (ValueError, binascii.Error, ValidationError) as exc:
            raise ProviderError(f"ElevenLabs returned malformed payload: {exc}", component="elevenlabs") from exc
        if not pcm:
            raise ProviderError("ElevenLabs returned empty audio", component="elevenlabs")

        logger.info(
            f"[tts] synthesized {len(text)} chars -> {len(pcm)} bytes, "
            f"{len(alignment.characters)} aligned characters"
        )
        return SpeechResult(pcm=pcm, alignment=alignment, output_format=self.output_format)
