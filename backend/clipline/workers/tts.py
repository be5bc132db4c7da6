from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from clipline.errors import InputDataError
from clipline.integrations.elevenlabs import SpeechSynthesizer
from clipline.media.wav import pcm16_mono_duration, write_pcm16_mono
from clipline.models import SourceType, Stage
from clipline.services.stages import complete_tts, next_item_in_stage
from clipline.workers.base import PollingWorker

logger = logging.getLogger(__name__)


class TtsWorker(PollingWorker):
    """Script text -> speech WAV + per-character timestamps."""

    name = "tts"

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        synthesizer: SpeechSynthesizer,
        *,
        poll_seconds: float = 10,
    ):
        super().__init__(session_factory, poll_seconds=poll_seconds)
        self.synthesizer = synthesizer

    async def run_once(self, session: AsyncSession) -> bool:
        item = await next_item_in_stage(session, [Stage.awaiting_tts], SourceType.generated)
        if item is None:
            return False

        script = Path(item.script_file_path or "")
        if not item.script_file_path or not script.is_file():
            raise InputDataError(
                f"script file missing for work item {item.id}",
                component=self.name,
                details={"path": item.script_file_path},
            )
        raw = script.read_bytes()
        text = raw.decode("utf-8", errors="replace").strip()
        if not text:
            raise InputDataError(f"script file empty for work item {item.id}", component=self.name)

        logger.info(f"[tts] synthesizing work item {item.id} ({len(text)} chars)")
        speech = await self.synthesizer.synthesize(text)

        wav_path = Path(item.wav_path) if item.wav_path else script.parent / f"audio_{item.id:06d}.wav"
        ts_path = script.parent / f"timestamps_{item.id:06d}.json"

        # overwrite so the audio always matches the saved alignment
        write_pcm16_mono(wav_path, speech.pcm, speech.sample_rate)
        ts_path.write_text(
            json.dumps({"alignment": speech.alignment.model_dump()}, ensure_ascii=False, indent=2),
            encoding="utf-8",
        )

        ends = speech.alignment.character_end_times_seconds
        duration = ends[-1] if ends else pcm16_mono_duration(speech.pcm, speech.sample_rate)

        complete_tts(
            item,
            wav_path=str(wav_path),
            timestamps_path=str(ts_path),
            audio_duration_seconds=duration,
            script_sha1=hashlib.sha1(raw).hexdigest(),
        )
        await session.commit()
        logger.info(f"[tts] work item {item.id} done: wav={wav_path} duration={duration:.2f}s")
        return True
