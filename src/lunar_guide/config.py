"""
Configuration management for the lunar guide.
"""

from dataclasses import dataclass, field
from pathlib import Path
import dataclasses

import yaml

from .guidance import HORIZONTAL_FOV, VERTICAL_FOV, VIEW_THRESHOLD
from .orientation import DEFAULT_SMOOTHING_ALPHA
from .sources import LocationOptions


@dataclass
class SmoothingConfig:
    """Orientation smoothing configuration."""

    alpha: float = DEFAULT_SMOOTHING_ALPHA  # Lower = smoother/slower


@dataclass
class GuidanceConfig:
    """Guidance geometry."""

    view_threshold: float = VIEW_THRESHOLD
    horizontal_fov: float = HORIZONTAL_FOV
    vertical_fov: float = VERTICAL_FOV


@dataclass
class LocationConfig:
    """Observer location and acquisition settings."""

    # Without GPS the location must be configured manually
    latitude: float = 41.0082
    longitude: float = 28.9784
    timeout_s: float = 15.0
    maximum_age_s: float = 0.0
    high_accuracy: bool = True

    def to_options(self) -> LocationOptions:
        return LocationOptions(
            timeout_s=self.timeout_s,
            maximum_age_s=self.maximum_age_s,
            high_accuracy=self.high_accuracy,
        )


@dataclass
class CameraConfig:
    """Camera capture settings."""

    enabled: bool = False
    index: int = 0
    width: int = 1280
    height: int = 720


@dataclass
class BlessingConfig:
    """Remote blessing text generation."""

    model: str = "gemini-2.5-flash"
    api_key_env: str = "GEMINI_API_KEY"
    temperature: float = 0.8
    max_output_tokens: int = 50
    timeout_s: float = 10.0


@dataclass
class Config:
    """Main configuration container."""

    smoothing: SmoothingConfig = field(default_factory=SmoothingConfig)
    guidance: GuidanceConfig = field(default_factory=GuidanceConfig)
    location: LocationConfig = field(default_factory=LocationConfig)
    camera: CameraConfig = field(default_factory=CameraConfig)
    blessing: BlessingConfig = field(default_factory=BlessingConfig)

    verbose: bool = False

    @classmethod
    def from_yaml(cls, path: Path) -> "Config":
        """Load configuration from YAML file."""
        with open(path, "r") as f:
            data = yaml.safe_load(f)
        return cls._from_dict(data or {})

    @classmethod
    def _from_dict(cls, data: dict) -> "Config":
        """Create Config from dictionary."""
        config = cls()

        if "smoothing" in data:
            config.smoothing = SmoothingConfig(**data["smoothing"])
        if "guidance" in data:
            config.guidance = GuidanceConfig(**data["guidance"])
        if "location" in data:
            config.location = LocationConfig(**data["location"])
        if "camera" in data:
            config.camera = CameraConfig(**data["camera"])
        if "blessing" in data:
            config.blessing = BlessingConfig(**data["blessing"])

        config.verbose = data.get("verbose", False)

        return config

    def to_yaml(self, path: Path) -> None:
        """Save configuration to YAML file."""
        data = dataclasses.asdict(self)
        with open(path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)
