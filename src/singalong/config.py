"""Configuration management for Singalong."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SINGALONG_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Offline pitch tracking
    min_frequency_hz: float = Field(
        default=80.0,
        description="Lowest fundamental the offline tracker reports",
    )
    max_frequency_hz: float = Field(
        default=2000.0,
        description="Highest fundamental the offline tracker reports",
    )
    hop_seconds: float = Field(
        default=0.3,
        description="Time between the starts of consecutive analysis windows",
    )
    window_seconds: float = Field(
        default=0.25,
        description="Length of each analysis window",
    )
    highpass_alpha: float = Field(
        default=0.95,
        description="Coefficient of the single-pole high-pass filter applied per window",
    )
    min_correlation: float = Field(
        default=0.05,
        description="Normalized autocorrelation a window must exceed to yield a pitch",
    )
    min_samples: int = Field(
        default=1000,
        description="Buffers shorter than this produce no pitch observations",
    )
    max_decoded_bytes: int = Field(
        default=500 * 1024 * 1024,
        description="Decoded audio above this size is skipped (degraded, empty result)",
    )

    # Note segmentation
    pitch_tolerance_hz: float = Field(
        default=20.0,
        description="Max distance from a note's running average pitch to keep extending it",
    )
    max_gap_seconds: float = Field(
        default=0.1,
        description="Max silence between a note's end and the next observation",
    )
    min_note_seconds: float = Field(
        default=0.2,
        description="Notes shorter than this are discarded",
    )
    max_note_seconds: float = Field(
        default=3.0,
        description="Notes longer than this are clamped",
    )
    min_note_gap_seconds: float = Field(
        default=0.0,
        description="Minimum spacing enforced between consecutive notes",
    )
    observation_seconds: float = Field(
        default=0.25,
        description="How long a single pitch observation lasts (usually the window length)",
    )

    # Live pitch tracking
    live_min_frequency_hz: float = Field(default=75.0, description="Lowest live pitch")
    live_max_frequency_hz: float = Field(default=800.0, description="Highest live pitch")
    volume_threshold: float = Field(
        default=0.005,
        description="RMS below which a microphone frame counts as silence",
    )
    yin_threshold: float = Field(
        default=0.15,
        description="CMND value a dip must fall under to be taken as the period",
    )
    max_cmnd: float = Field(
        default=0.5,
        description="Estimates whose CMND is at or above this are rejected",
    )
    smoothing_weight: float = Field(
        default=0.3,
        description="Weight of the new estimate when blending with the previous one",
    )
    smoothing_max_jump_hz: float = Field(
        default=100.0,
        description="Changes at or above this are taken raw instead of blended",
    )
    live_sample_rate: int = Field(default=44100, description="Microphone sample rate")
    live_frame_size: int = Field(default=2048, description="Samples per microphone frame")

    # Vocal separation
    separation_model: str = Field(
        default="model_bs_roformer_ep_317_sdr_12.9755.ckpt",
        description="audio-separator model used to isolate vocals",
    )
    model_dir: Path = Field(
        default=Path("~/.cache/singalong/models").expanduser(),
        description="Directory for downloaded separation models",
    )
    separation_timeout: float = Field(
        default=600.0,
        description="Seconds before a single separation attempt is abandoned",
    )
    separation_retries: int = Field(
        default=2,
        description="Extra attempts after a failed separation",
    )
    separation_backoff: float = Field(
        default=2.0,
        description="Initial delay between separation attempts, doubled each retry",
    )

    log_level: str = Field(default="INFO", description="Log level for the singalong logger")


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def configure(**overrides: object) -> Settings:
    """Configure settings with overrides. Useful for testing."""
    global _settings
    _settings = Settings(**overrides)  # type: ignore[arg-type]
    return _settings
