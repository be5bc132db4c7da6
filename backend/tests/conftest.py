"""Shared fixtures: temporary SQLite store and in-memory collaborators."""

import tempfile
from pathlib import Path

import pytest
from sqlalchemy import event

from clipline import models  # noqa: F401
from clipline.db import Base, create_engine, create_session_factory
from clipline.errors import MediaToolError
from clipline.integrations.elevenlabs import Alignment, SpeechResult
from clipline.integrations.postiz import IntegrationInfo, UploadedMedia


def alignment_for(text, char_seconds=0.1, start=0.0):
    """Per-character alignment with evenly spaced characters."""
    chars = list(text)
    starts = [round(start + i * char_seconds, 4) for i in range(len(chars))]
    ends = [round(s + char_seconds * 0.9, 4) for s in starts]
    return {
        "characters": chars,
        "character_start_times_seconds": starts,
        "character_end_times_seconds": ends,
    }


class FakeMediaTool:
    """Writes placeholder files and records every call."""

    def __init__(self, default_duration=120.0, split_durations=None):
        self.default_duration = default_duration
        self.split_durations = list(split_durations or [])
        self.durations = {}
        self.renders = []
        self.frames = []
        self.concats = []
        self.fail_split = False

    async def probe_duration(self, path):
        return self.durations.get(str(path), self.default_duration)

    async def split(self, source, segment_seconds, out_dir):
        if self.fail_split:
            raise MediaToolError("split failed", returncode=1, stderr="boom")
        out_dir.mkdir(parents=True, exist_ok=True)
        paths = []
        for n, duration in enumerate(self.split_durations, start=1):
            part = out_dir / f"part_{n:03d}.mp4"
            part.write_bytes(b"part")
            self.durations[str(part)] = duration
            paths.append(part)
        return paths

    async def concat(self, parts, output):
        self.concats.append((list(parts), output))
        output.write_bytes(b"merged")
        self.durations[str(output)] = sum(self.durations.get(str(p), 0.0) for p in parts)
        return output

    async def render(self, job):
        self.renders.append(job)
        job.output.write_bytes(b"rendered")
        return job.output

    async def frame(self, source, output, at_seconds, spec):
        self.frames.append((source, output, at_seconds, spec))
        output.write_bytes(b"jpg")
        return output


class FakeSynthesizer:
    def __init__(self, char_seconds=0.1):
        self.char_seconds = char_seconds
        self.calls = []

    async def synthesize(self, text):
        self.calls.append(text)
        alignment = Alignment.model_validate(alignment_for(text, self.char_seconds))
        pcm = b"\x00\x01" * 2400
        return SpeechResult(pcm=pcm, alignment=alignment, output_format="pcm_24000")


class FakePostingProvider:
    def __init__(self, integrations=None):
        self.integrations = integrations if integrations is not None else [
            IntegrationInfo(id="yt-1", identifier="youtube", name="Main channel"),
        ]
        self.uploads = []
        self.bodies = []

    async def list_integrations(self):
        return list(self.integrations)

    async def upload(self, path):
        self.uploads.append(Path(path))
        n = len(self.uploads)
        return UploadedMedia(id=f"media-{n}", path=f"https://cdn.example/{n}/{Path(path).name}")

    async def schedule_post(self, body):
        self.bodies.append(body)
        return f"post-{len(self.bodies)}"


@pytest.fixture
def tmp_dir():
    """Provide a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as d:
        yield Path(d)


@pytest.fixture
async def engine(tmp_dir):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_dir / 'clipline.db'}")

    @event.listens_for(engine.sync_engine, "connect")
    def enable_foreign_keys(dbapi_connection, connection_record):
        # ON DELETE CASCADE / SET NULL are off by default on SQLite
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def media():
    return FakeMediaTool()


@pytest.fixture
def synthesizer():
    return FakeSynthesizer()


@pytest.fixture
def provider():
    return FakePostingProvider()
