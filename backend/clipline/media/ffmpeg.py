"""ffmpeg/ffprobe backed media tool."""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from clipline.errors import MediaToolError
from clipline.media.tool import RenderJob
from clipline.services.captions import OUTPUT_HEIGHT, OUTPUT_WIDTH
from clipline.services.thumbnail_text import ThumbnailSpec

logger = logging.getLogger(__name__)

FALLBACK_ENCODERS = ("h264_v4l2m2m", "h264_omx", "libx264")


def _kill(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass


async def run_cmd(cmd: list[str], timeout: float | None = None) -> tuple[str, str]:
    """Run a command and return stdout/stderr.

    The child is killed when ``timeout`` elapses or the awaiting task is
    cancelled.
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as exc:
        raise MediaToolError(f"executable not found: {cmd[0]}", cmd=cmd) from exc

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout)
    except asyncio.TimeoutError:
        _kill(proc)
        await proc.wait()
        raise MediaToolError(f"command timed out after {timeout}s", cmd=cmd)
    except asyncio.CancelledError:
        _kill(proc)
        raise

    stdout_dec = stdout.decode(errors="ignore") if stdout else ""
    stderr_dec = stderr.decode(errors="ignore") if stderr else ""
    if proc.returncode != 0:
        raise MediaToolError(
            f"command failed with code {proc.returncode}: {' '.join(cmd[:5])}...; stderr: {stderr_dec[-400:]}",
            returncode=proc.returncode,
            stderr=stderr_dec,
            cmd=cmd,
        )
    return stdout_dec, stderr_dec


def escape_filter_path(path: str | Path) -> str:
    p = str(path).replace("\\", "/")
    return p.replace(":", "\\:").replace("'", "\\'")


def escape_drawtext(text: str) -> str:
    return (
        text.replace("\\", "\\\\")
        .replace(":", "\\:")
        .replace("'", "\\'")
        .replace("\r", "")
        .replace("\n", "\\n")
    )


def _num(value: float) -> str:
    return f"{value:.3f}"


class FfmpegMediaTool:
    def __init__(
        self,
        *,
        ffmpeg_bin: str = "ffmpeg",
        ffprobe_bin: str = "ffprobe",
        timeout_sec: float | None = 1800,
        video_encoder: str | None = None,
        fonts_dir: str | None = None,
        thumb_font_path: str | None = None,
    ):
        self.ffmpeg_bin = ffmpeg_bin
        self.ffprobe_bin = ffprobe_bin
        self.timeout_sec = timeout_sec
        self.video_encoder = (video_encoder or "").strip() or None
        self.fonts_dir = (fonts_dir or "").strip() or None
        self.thumb_font_path = thumb_font_path

    @classmethod
    def from_settings(cls, settings) -> "FfmpegMediaTool":
        return cls(
            ffmpeg_bin=settings.ffmpeg_bin,
            ffprobe_bin=settings.ffprobe_bin,
            timeout_sec=settings.media_timeout_sec,
            video_encoder=settings.video_encoder,
            fonts_dir=settings.fonts_dir,
            thumb_font_path=settings.thumb_font_path,
        )

    def encoders(self) -> list[str]:
        ordered: list[str] = []
        for enc in (self.video_encoder, *FALLBACK_ENCODERS):
            if enc and enc not in ordered:
                ordered.append(enc)
        return ordered

    async def probe_duration(self, path: Path) -> float:
        cmd = [
            self.ffprobe_bin, "-v", "error",
            "-show_entries", "format=duration",
            "-of", "default=noprint_wrappers=1:nokey=1",
            str(path),
        ]
        stdout, _ = await run_cmd(cmd, self.timeout_sec)
        try:
            return float(stdout.strip())
        except ValueError as exc:
            raise MediaToolError(f"ffprobe returned no duration for {path}", cmd=cmd) from exc

    async def split(self, source: Path, segment_seconds: int, out_dir: Path) -> list[Path]:
        out_dir.mkdir(parents=True, exist_ok=True)
        cmd = [
            self.ffmpeg_bin, "-hide_banner", "-y",
            "-i", str(source),
            "-c", "copy",
            "-map", "0",
            "-f", "segment",
            "-segment_time", str(segment_seconds),
            "-segment_start_number", "1",
            "-reset_timestamps", "1",
            str(out_dir / "part_%03d.mp4"),
        ]
        await run_cmd(cmd, self.timeout_sec)
        return sorted(out_dir.glob("part_*.mp4"))

    async def concat(self, parts: list[Path], output: Path) -> Path:
        list_file = output.with_suffix(".concat.txt")
        lines = []
        for part in parts:
            safe = str(part.resolve()).replace("'", "'\\''")
            lines.append(f"file '{safe}'")
        list_file.write_text("\n".join(lines) + "\n", encoding="utf-8")
        cmd = [
            self.ffmpeg_bin, "-hide_banner", "-y",
            "-f", "concat", "-safe", "0",
            "-i", str(list_file),
            "-c", "copy",
            str(output),
        ]
        try:
            await run_cmd(cmd, self.timeout_sec)
        finally:
            list_file.unlink(missing_ok=True)
        return output

    def render_filter(self, subtitles: Path) -> str:
        fonts = f":fontsdir='{escape_filter_path(self.fonts_dir)}'" if self.fonts_dir else ""
        return (
            f"scale={OUTPUT_WIDTH}:{OUTPUT_HEIGHT}:force_original_aspect_ratio=increase,"
            f"crop={OUTPUT_WIDTH}:{OUTPUT_HEIGHT},"
            f"ass=filename='{escape_filter_path(subtitles)}':original_size={OUTPUT_WIDTH}x{OUTPUT_HEIGHT}{fonts}"
        )

    def render_command(self, job: RenderJob, encoder: str) -> list[str]:
        delay_ms = max(0, int(round(job.audio_delay_seconds * 1000)))
        cmd = [self.ffmpeg_bin, "-y"]
        if job.loop:
            cmd += ["-stream_loop", "-1"]
        cmd += ["-ss", _num(job.offset_seconds), "-i", str(job.background), "-i", str(job.audio)]
        if delay_ms > 0:
            cmd += ["-af", f"adelay={delay_ms}|{delay_ms}"]
        cmd += [
            "-t", _num(job.duration_seconds),
            "-vf", self.render_filter(job.subtitles),
            "-map", "0:v:0", "-map", "1:a:0",
            "-c:v", encoder,
            "-pix_fmt", "yuv420p",
            "-r", "30",
            "-c:a", "aac", "-b:a", "192k",
            "-shortest",
            str(job.output),
        ]
        return cmd

    async def render(self, job: RenderJob) -> Path:
        last: MediaToolError | None = None
        for encoder in self.encoders():
            try:
                await run_cmd(self.render_command(job, encoder), self.timeout_sec)
                logger.info(f"[media] rendered {job.output.name} with {encoder}")
                return job.output
            except MediaToolError as exc:
                logger.warning(f"[media] encoder {encoder} failed: {exc.stderr[-200:] or exc.message}")
                last = exc
        raise MediaToolError(
            f"render failed with all encoders ({', '.join(self.encoders())})",
            returncode=last.returncode if last else None,
            stderr=last.stderr if last else "",
        )

    def frame_filter(self, spec: ThumbnailSpec) -> str:
        font = ""
        if self.thumb_font_path and Path(self.thumb_font_path).is_file():
            font = f"fontfile='{escape_filter_path(self.thumb_font_path)}':"
        return (
            f"scale={OUTPUT_WIDTH}:{OUTPUT_HEIGHT}:force_original_aspect_ratio=increase,"
            f"crop={OUTPUT_WIDTH}:{OUTPUT_HEIGHT},"
            f"eq=saturation=1.35:contrast=1.05,"
            f"drawbox=x=0:y=0:w=iw:h=ih:color=black@{spec.darkness:.2f}:t=fill,"
            f"drawtext={font}"
            f"text='{escape_drawtext(spec.text)}':"
            f"fontsize={spec.font_size}:"
            f"fontcolor=#FFCC00:"
            f"borderw={spec.border}:bordercolor=black:"
            f"shadowx=2:shadowy=2:shadowcolor=black@0.6:"
            f"line_spacing=18:"
            f"box=1:boxcolor=black@0.22:boxborderw=28:"
            f"x=(w-text_w)/2:y=(h-text_h)/2"
        )

    async def frame(self, source: Path, output: Path, at_seconds: float, spec: ThumbnailSpec) -> Path:
        if not spec.text.strip():
            raise ValueError("thumbnail text is required")
        cmd = [
            self.ffmpeg_bin, "-hide_banner", "-y",
            "-ss", _num(at_seconds),
            "-i", str(source),
            "-vframes", "1",
            "-vf", self.frame_filter(spec),
            str(output),
        ]
        await run_cmd(cmd, self.timeout_sec)
        return output
