from functools import lru_cache

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env(name: str) -> AliasChoices:
    return AliasChoices(name, f"CLIPLINE_{name}")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="",
        extra="ignore",
        populate_by_name=True,
    )

    app_name: str = "clipline"
    environment: str = Field(default="local", validation_alias=_env("ENVIRONMENT"))
    log_level: str = Field(default="INFO", validation_alias=_env("LOG_LEVEL"))
    database_url: str = Field(
        default="postgresql+asyncpg://postgres:postgres@db:5432/clipline",
        validation_alias=_env("DATABASE_URL"),
    )

    # Speech synthesis (ElevenLabs)
    elevenlabs_api_key: str | None = Field(default=None, validation_alias=_env("ELEVENLABS_KEY"))
    elevenlabs_base_url: str = Field(default="https://api.elevenlabs.io", validation_alias=_env("ELEVENLABS_BASE_URL"))
    elevenlabs_voice_id: str = Field(default="21m00Tcm4TlvDq8ikWAM", validation_alias=_env("ELEVENLABS_VOICE_ID"))
    elevenlabs_model_id: str = Field(default="eleven_multilingual_v2", validation_alias=_env("ELEVENLABS_MODEL_ID"))
    elevenlabs_output_format: str = Field(default="pcm_24000", validation_alias=_env("ELEVENLABS_OUTPUT_FORMAT"))
    elevenlabs_timeout_sec: int = Field(default=300, validation_alias=_env("ELEVENLABS_TIMEOUT_SEC"))

    # Posting provider (Postiz public API)
    postiz_api_key: str | None = Field(default=None, validation_alias=_env("POSTIZ_API_KEY"))
    postiz_base_url: str | None = Field(default=None, validation_alias=_env("POSTIZ_BASE_PUBLIC_V1"))
    postiz_timeout_sec: int = Field(default=600, validation_alias=_env("POSTIZ_TIMEOUT_SEC"))
    postiz_max_retries: int = Field(default=5, validation_alias=_env("POSTIZ_MAX_RETRIES"))
    default_platform: str = Field(default="youtube", validation_alias=_env("DEFAULT_PLATFORM"))
    schedule_lead_minutes: int = Field(default=5, validation_alias=_env("SCHEDULE_LEAD_MINUTES"))

    # Media tool
    ffmpeg_bin: str = Field(default="ffmpeg", validation_alias=_env("FFMPEG_BIN"))
    ffprobe_bin: str = Field(default="ffprobe", validation_alias=_env("FFPROBE_BIN"))
    video_encoder: str | None = Field(default=None, validation_alias=_env("VIDEO_ENCODER"))
    fonts_dir: str | None = Field(default=None, validation_alias=_env("FONTS_DIR"))
    thumb_font_path: str = Field(
        default="/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
        validation_alias=_env("THUMB_FONT"),
    )
    media_timeout_sec: int = Field(default=1800, validation_alias=_env("MEDIA_TIMEOUT_SEC"))

    # Pipeline tuning
    premade_root: str | None = Field(default=None, validation_alias=_env("PREMADE_ROOT"))
    backgrounds_root: str = Field(default="/data/backgrounds", validation_alias=_env("BACKGROUNDS_ROOT"))
    bg_end_buffer_seconds: float = Field(default=10.0, ge=0, validation_alias=_env("BG_VIDEO_END_BUFFER_SECONDS"))
    lead_in_seconds: float = Field(default=1.0, ge=0, validation_alias=_env("LEAD_IN_SECONDS"))
    caption_offset_seconds: float = Field(default=0.0, validation_alias=_env("CAPTION_OFFSET"))
    series_lease_minutes: int = Field(default=10, validation_alias=_env("SERIES_LEASE_MINUTES"))
    segment_tolerance_seconds: float = Field(default=0.25, validation_alias=_env("SEGMENT_TOLERANCE_SECONDS"))

    # Worker loops
    workers_enabled: bool = Field(default=True, validation_alias=_env("WORKERS_ENABLED"))
    tts_enabled: bool = Field(default=True, validation_alias=_env("TTS_ENABLED"))
    render_enabled: bool = Field(default=True, validation_alias=_env("RENDER_ENABLED"))
    thumbnail_enabled: bool = Field(default=True, validation_alias=_env("THUMBNAIL_ENABLED"))
    splitter_enabled: bool = Field(default=True, validation_alias=_env("SPLITTER_ENABLED"))
    scheduler_enabled: bool = Field(default=True, validation_alias=_env("SCHEDULER_ENABLED"))
    tts_poll_seconds: float = Field(default=10, validation_alias=_env("TTS_POLL_SECONDS"))
    render_poll_seconds: float = Field(default=10, validation_alias=_env("RENDER_POLL_SECONDS"))
    thumbnail_poll_seconds: float = Field(default=10, validation_alias=_env("THUMBNAIL_POLL_SECONDS"))
    premade_thumbnail_poll_seconds: float = Field(default=15, validation_alias=_env("PREMADE_THUMBNAIL_POLL_SECONDS"))
    splitter_poll_seconds: float = Field(default=15, validation_alias=_env("SPLITTER_POLL_SECONDS"))
    scheduler_poll_seconds: float = Field(default=30, validation_alias=_env("SCHEDULER_POLL_SECONDS"))

    @property
    def async_database_url(self) -> str:
        if self.database_url.startswith("postgresql+"):
            return self.database_url
        if self.database_url.startswith("postgresql://"):
            return self.database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return self.database_url

    @property
    def tts_configured(self) -> bool:
        return bool(self.elevenlabs_api_key)

    @property
    def postiz_configured(self) -> bool:
        return bool(self.postiz_api_key and self.postiz_base_url)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
