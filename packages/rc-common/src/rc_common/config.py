"""
Environment-based configuration management for Relaycast.

Uses pydantic-settings to load configuration values from environment
variables and .env files. The relay, chat and gateway packages all read
their settings from this module to ensure consistent configuration
handling.

All environment variables are prefixed with ``RC_`` to avoid collisions.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration loaded from ``RC_``-prefixed environment variables.

    Attributes:
        host: Bind address for the gateway (HTTP + Socket.IO).
        port: Bind port for the gateway.
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_json: Render log lines as JSON instead of console output.
        cors_allowed_origins: Origins accepted by the Socket.IO server.
        socket_max_buffer_bytes: Largest inbound Socket.IO message in bytes.
        ffmpeg_path: Executable used for the relay subprocess.
        video_bitrate: Target (and max) video bitrate passed to the encoder.
        video_bufsize: Encoder rate-control buffer size.
        keyframe_interval: GOP size in frames.
        frame_rate: Fixed output frame rate.
        audio_bitrate: AAC bitrate.
        audio_sample_rate: AAC sample rate in Hz.
        relay_stop_timeout_s: Seconds to wait after SIGINT before SIGKILL.
        youtube_client_id: OAuth client id for the YouTube Data API.
        youtube_client_secret: OAuth client secret.
        youtube_redirect_uri: Redirect URI registered for the OAuth client.
        youtube_access_token: Default (shared) access token.
        youtube_refresh_token: Default (shared) refresh token.
        youtube_api_base_url: Base URL of the YouTube Data API v3.
        oauth_auth_url: Google OAuth consent URL.
        oauth_token_url: Google OAuth token endpoint.
        chat_locate_max_attempts: Attempts to find a live broadcast before giving up.
        chat_locate_retry_delay_s: Fixed delay between locate attempts.
        chat_poll_interval_s: Fixed chat polling period.
        http_timeout_s: Timeout for outbound HTTP calls.
    """

    model_config = SettingsConfigDict(
        env_prefix="RC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Gateway ──
    host: str = Field(default="0.0.0.0", description="Gateway bind address.")
    port: int = Field(default=4000, ge=1, le=65535, description="Gateway bind port.")
    cors_allowed_origins: str = Field(
        default="*",
        description="Comma separated origins accepted by Socket.IO, or '*'.",
    )
    socket_max_buffer_bytes: int = Field(
        default=10_000_000,
        gt=0,
        description="Largest Socket.IO message accepted (media chunks).",
    )

    # ── Logging ──
    log_level: str = Field(default="INFO", description="Logging level.")
    log_json: bool = Field(default=True, description="Emit JSON log lines.")

    # ── Relay / FFmpeg ──
    ffmpeg_path: str = Field(default="ffmpeg", description="FFmpeg executable.")
    video_bitrate: str = Field(default="1000k", description="Video bitrate cap.")
    video_bufsize: str = Field(default="2000k", description="Encoder buffer size.")
    keyframe_interval: int = Field(default=30, gt=0, description="GOP size in frames.")
    frame_rate: int = Field(default=30, gt=0, description="Output frame rate.")
    audio_bitrate: str = Field(default="128k", description="AAC bitrate.")
    audio_sample_rate: int = Field(default=44_100, gt=0, description="AAC sample rate.")
    relay_stop_timeout_s: float = Field(
        default=5.0,
        gt=0.0,
        description="Seconds to wait for the relay to exit after SIGINT.",
    )

    # ── YouTube / OAuth ──
    youtube_client_id: str = Field(default="", description="OAuth client id.")
    youtube_client_secret: str = Field(default="", description="OAuth client secret.")
    youtube_redirect_uri: str = Field(
        default="http://localhost:4000/oauth2callback",
        description="OAuth redirect URI.",
    )
    youtube_access_token: str = Field(default="", description="Default access token.")
    youtube_refresh_token: str = Field(default="", description="Default refresh token.")
    youtube_api_base_url: str = Field(
        default="https://www.googleapis.com/youtube/v3",
        description="YouTube Data API v3 base URL.",
    )
    oauth_auth_url: str = Field(
        default="https://accounts.google.com/o/oauth2/v2/auth",
        description="Google OAuth consent URL.",
    )
    oauth_token_url: str = Field(
        default="https://oauth2.googleapis.com/token",
        description="Google OAuth token endpoint.",
    )

    # ── Chat ──
    chat_locate_max_attempts: int = Field(
        default=10,
        ge=1,
        description="Attempts to locate a live broadcast before giving up.",
    )
    chat_locate_retry_delay_s: float = Field(
        default=5.0,
        ge=0.0,
        description="Delay between broadcast locate attempts.",
    )
    chat_poll_interval_s: float = Field(
        default=5.0,
        gt=0.0,
        description="Live chat polling period.",
    )
    http_timeout_s: float = Field(default=10.0, gt=0.0, description="Outbound HTTP timeout.")

    @property
    def cors_origins(self) -> str | list[str]:
        """Origins in the shape python-socketio expects."""
        if self.cors_allowed_origins.strip() == "*":
            return "*"
        return [o.strip() for o in self.cors_allowed_origins.split(",") if o.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the cached application settings singleton.

    Returns:
        The global ``Settings`` instance.
    """
    return Settings()
