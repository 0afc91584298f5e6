"""
FFmpeg command construction for the Relaycast relay.

The relay reads the browser's container stream from stdin, re-encodes
it with a fixed low-latency H.264/AAC profile, and writes the same
encoded packets to every destination through FFmpeg's ``tee`` muxer.
Each destination is an independent tee slave with ``onfail=ignore`` so
a dead endpoint does not stop delivery to the others.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from rc_common.config import Settings

from relay.destinations import DestinationSpec


class EncoderProfile(BaseModel):
    """Fixed encoding parameters applied to every relay.

    Attributes:
        video_codec: FFmpeg video encoder.
        preset: x264 speed preset.
        tune: x264 tuning.
        video_bitrate: Target video bitrate, also used as ``-maxrate``.
        video_bufsize: Rate-control buffer size.
        keyframe_interval: GOP size in frames.
        frame_rate: Fixed output frame rate.
        audio_codec: FFmpeg audio encoder.
        audio_bitrate: Audio bitrate.
        audio_sample_rate: Audio sample rate in Hz.
    """

    model_config = {"frozen": True}

    video_codec: str = Field(default="libx264")
    preset: str = Field(default="veryfast")
    tune: str = Field(default="zerolatency")
    video_bitrate: str = Field(default="1000k")
    video_bufsize: str = Field(default="2000k")
    keyframe_interval: int = Field(default=30, gt=0)
    frame_rate: int = Field(default=30, gt=0)
    audio_codec: str = Field(default="aac")
    audio_bitrate: str = Field(default="128k")
    audio_sample_rate: int = Field(default=44_100, gt=0)

    @classmethod
    def from_settings(cls, settings: Settings) -> EncoderProfile:
        """Build the profile from the ``RC_`` settings."""
        return cls(
            video_bitrate=settings.video_bitrate,
            video_bufsize=settings.video_bufsize,
            keyframe_interval=settings.keyframe_interval,
            frame_rate=settings.frame_rate,
            audio_bitrate=settings.audio_bitrate,
            audio_sample_rate=settings.audio_sample_rate,
        )

    def encoder_args(self) -> list[str]:
        """Return the video + audio encoding arguments."""
        return [
            "-c:v", self.video_codec,
            "-preset", self.preset,
            "-tune", self.tune,
            "-b:v", self.video_bitrate,
            "-maxrate", self.video_bitrate,
            "-bufsize", self.video_bufsize,
            "-g", str(self.keyframe_interval),
            "-r", str(self.frame_rate),
            "-c:a", self.audio_codec,
            "-b:a", self.audio_bitrate,
            "-ar", str(self.audio_sample_rate),
        ]


class TeeSlave(BaseModel):
    """One fan-out output of the tee muxer.

    Attributes:
        url: Destination URL (already validated by ``DestinationSpec``).
        container: Output container format for this slave.
        ignore_failure: Keep the other slaves running if this one fails.
    """

    model_config = {"frozen": True}

    url: str
    container: str = "flv"
    ignore_failure: bool = True

    def render(self) -> str:
        options = [f"f={self.container}"]
        if self.ignore_failure:
            options.append("onfail=ignore")
        return f"[{':'.join(options)}]{self.url}"


def tee_slaves(spec: DestinationSpec) -> list[TeeSlave]:
    """Return one failure-tolerant FLV slave per destination, in order."""
    return [TeeSlave(url=url) for url in spec.urls]


def build_tee_target(slaves: list[TeeSlave]) -> str:
    """Join *slaves* into the single tee output argument."""
    if not slaves:
        raise ValueError("tee muxer needs at least one slave")
    return "|".join(slave.render() for slave in slaves)


def build_relay_command(
    spec: DestinationSpec,
    *,
    profile: EncoderProfile | None = None,
    ffmpeg_path: str = "ffmpeg",
) -> list[str]:
    """Return the full argv for a relay subprocess.

    Args:
        spec: Validated destinations.
        profile: Encoding parameters; defaults to ``EncoderProfile()``.
        ffmpeg_path: FFmpeg executable.

    Returns:
        An argv list suitable for ``asyncio.create_subprocess_exec``.
    """
    profile = profile or EncoderProfile()
    return [
        ffmpeg_path,
        "-hide_banner",
        "-loglevel", "warning",
        "-re",
        "-i", "pipe:0",
        *profile.encoder_args(),
        "-map", "0:v",
        "-map", "0:a?",
        "-f", "tee",
        build_tee_target(tee_slaves(spec)),
    ]
