"""Tests for the ElevenLabs speech client."""

import base64
import json

import httpx
import pytest

from clipline.errors import ProviderError, ProviderHTTPError
from clipline.integrations.elevenlabs import Alignment, ElevenLabsClient, sample_rate_from_output_format
from conftest import alignment_for


def _client(handler, **kwargs):
    return ElevenLabsClient(
        "xi-secret",
        voice_id="voice-1",
        model_id="eleven_multilingual_v2",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def _ok_payload(text="hi there", pcm=b"\x01\x02" * 10):
    return {"audio_base64": base64.b64encode(pcm).decode(), "alignment": alignment_for(text)}


@pytest.mark.parametrize(
    "fmt,expected",
    [("pcm_24000", 24000), ("pcm_16000", 16000), ("PCM_44100", 44100), ("pcm_x", 24000), ("mp3_44100_128", 24000), (None, 24000)],
)
def test_sample_rate_from_output_format(fmt, expected):
    assert sample_rate_from_output_format(fmt) == expected


def test_alignment_rejects_unequal_arrays():
    with pytest.raises(ValueError):
        Alignment(characters=["a", "b"], character_start_times_seconds=[0.0], character_end_times_seconds=[0.1, 0.2])


async def test_synthesize_request_shape():
    seen = {}

    def handler(request):
        seen["url"] = request.url
        seen["key"] = request.headers.get("xi-api-key")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=_ok_payload())

    result = await _client(handler).synthesize("hi there")

    assert seen["url"].path == "/v1/text-to-speech/voice-1/with-timestamps"
    assert seen["url"].params["output_format"] == "pcm_24000"
    assert seen["key"] == "xi-secret"
    assert seen["body"] == {"text": "hi there", "model_id": "eleven_multilingual_v2"}
    assert result.pcm == b"\x01\x02" * 10
    assert result.sample_rate == 24000
    assert result.alignment.characters == list("hi there")


async def test_http_error_surfaces_status():
    def handler(request):
        return httpx.Response(401, text="unauthorized")

    with pytest.raises(ProviderHTTPError) as exc_info:
        await _client(handler).synthesize("hi")
    assert exc_info.value.status_code == 401


async def test_malformed_alignment_rejected():
    def handler(request):
        payload = _ok_payload()
        payload["alignment"]["character_end_times_seconds"] = []
        return httpx.Response(200, json=payload)

    with pytest.raises(ProviderError):
        await _client(handler).synthesize("hi there")


async def test_empty_audio_rejected():
    def handler(request):
        return httpx.Response(200, json=_ok_payload(pcm=b""))

    with pytest.raises(ProviderError):
        await _client(handler).synthesize("hi there")


async def test_transport_error_wrapped():
    def handler(request):
        raise httpx.ConnectTimeout("slow", request=request)

    with pytest.raises(ProviderError):
        await _client(handler).synthesize("hi")
