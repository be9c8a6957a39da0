from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from .config import HW_MAX_PIXEL_RATE, HW_VIDEO_ENCODER, SW_PRESET, SW_VIDEO_ENCODER
from .elements import AspectClass


@dataclass(frozen=True)
class QualityProfile:
    width: int
    height: int
    fps: int
    video_kbps: int
    audio_kbps: int

    @property
    def size(self) -> str:
        return f"{self.width}x{self.height}"

    @property
    def pixel_rate(self) -> int:
        return self.width * self.height * self.fps


@dataclass(frozen=True)
class EncoderChoice:
    codec: str
    hardware: bool
    # Software-only rate control; None on the hardware path.
    gop: Optional[int] = None
    maxrate_kbps: Optional[int] = None
    bufsize_kbps: Optional[int] = None
    preset: Optional[str] = None


# Highest fidelity first.
QUALITY_TIERS: Dict[AspectClass, Tuple[QualityProfile, ...]] = {
    AspectClass.WIDESCREEN: (
        QualityProfile(1920, 1080, 50, 6000, 192),
        QualityProfile(1920, 1080, 25, 4500, 160),
        QualityProfile(1280, 720, 30, 2500, 128),
        QualityProfile(854, 480, 30, 1200, 96),
        QualityProfile(640, 360, 25, 700, 64),
    ),
    AspectClass.LEGACY: (
        QualityProfile(1440, 1080, 25, 4500, 160),
        QualityProfile(960, 720, 30, 2000, 128),
        QualityProfile(640, 480, 30, 1000, 96),
        QualityProfile(480, 360, 25, 600, 64),
    ),
}


def clamp_tier(aspect: AspectClass, tier: int) -> int:
    table = QUALITY_TIERS[aspect]
    return max(0, min(int(tier), len(table) - 1))


def resolve(aspect: AspectClass, tier: int) -> QualityProfile:
    """Look up a tier, clamping out-of-range indexes to the nearest end of the table."""
    return QUALITY_TIERS[aspect][clamp_tier(aspect, tier)]


def choose_encoder(
    profile: QualityProfile,
    *,
    hw_codec: str = HW_VIDEO_ENCODER,
    sw_codec: str = SW_VIDEO_ENCODER,
    max_pixel_rate: int = HW_MAX_PIXEL_RATE,
    preset: str = SW_PRESET,
) -> EncoderChoice:
    """
    Pick the hardware encoder unless the profile is beyond what it can do
    in real time (resolution and frame rate together), then fall back to
    the software encoder with its own rate control.
    """
    if profile.pixel_rate <= max_pixel_rate:
        return EncoderChoice(codec=hw_codec, hardware=True)
    return EncoderChoice(
        codec=sw_codec,
        hardware=False,
        gop=profile.fps * 2,
        maxrate_kbps=profile.video_kbps,
        bufsize_kbps=profile.video_kbps * 2,
        preset=preset,
    )
