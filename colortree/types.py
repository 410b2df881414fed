"""Core types for the color clustering engine."""
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import NamedTuple

# Largest refinement depth the engine accepts; effectively unbounded.
HIERARCHICAL_MAX = 2 ** 32 - 1

CHANNEL_BITS = 8

# Pixel visits per incremental step.
DEFAULT_BATCH_SIZE = 25600


class Color(NamedTuple):
    """8-bit RGB color."""
    r: int
    g: int
    b: int

    def diff(self, other: "Color") -> "ColorDelta":
        return ColorDelta(self.r - other.r, self.g - other.g, self.b - other.b)

    def to_hex(self) -> str:
        return "#{:02x}{:02x}{:02x}".format(self.r, self.g, self.b)

    @classmethod
    def from_hex(cls, text: str) -> "Color":
        """Parse ``RRGGBB`` or ``#RRGGBB``."""
        text = text.lstrip("#")
        if len(text) != 6:
            raise ValueError(f"Expected RRGGBB color, got {text!r}")
        return cls(int(text[0:2], 16), int(text[2:4], 16), int(text[4:6], 16))


class ColorDelta(NamedTuple):
    """Signed per-channel difference of two colors."""
    r: int
    g: int
    b: int

    def abs(self) -> "ColorDelta":
        return ColorDelta(abs(self.r), abs(self.g), abs(self.b))


class KeyingAction(Enum):
    """How pixels of the key color take part in clustering."""
    KEEP = auto()        # no special treatment
    DISCARD = auto()     # grouped apart and left out of the output
    BACKGROUND = auto()  # all of them form one background cluster


class ColorSpace(Enum):
    """Color difference metric used for deepening."""
    RGB = auto()
    OKLAB = auto()


class StepStatus(Enum):
    """Outcome of one incremental builder step."""
    PENDING = auto()
    FINISHED = auto()


@dataclass(frozen=True)
class RunnerConfig:
    """Configuration for the clustering runner."""
    # Growing
    diagonal: bool = False
    same_color_shift: int = 4
    same_color_tolerance: int = 1

    # Refinement
    hierarchical: int = HIERARCHICAL_MAX
    good_min_area: int = 16
    good_max_area: int = 256 * 256
    deepen_diff: int = 64
    hollow_neighbours: int = 1

    # Keying
    key_color: Color = field(default_factory=lambda: Color(0, 0, 0))
    keying_action: KeyingAction = KeyingAction.KEEP

    # Metric and pacing
    color_space: ColorSpace = ColorSpace.RGB
    batch_size: int = DEFAULT_BATCH_SIZE

    def validate(self) -> None:
        """Raise ConfigurationError if any field is out of range."""
        if not 0 <= self.same_color_shift < CHANNEL_BITS:
            raise ConfigurationError(
                f"same_color_shift must be in [0, {CHANNEL_BITS}), "
                f"got {self.same_color_shift}"
            )
        if self.same_color_tolerance < 0:
            raise ConfigurationError(
                f"same_color_tolerance must be >= 0, got {self.same_color_tolerance}"
            )
        if self.hierarchical < 0:
            raise ConfigurationError(f"hierarchical must be >= 0, got {self.hierarchical}")
        if self.batch_size < 1:
            raise ConfigurationError(f"batch_size must be >= 1, got {self.batch_size}")
        if self.good_min_area < 0 or self.good_min_area > self.good_max_area:
            raise ConfigurationError(
                f"Invalid good area range ({self.good_min_area}, {self.good_max_area})"
            )
        if self.deepen_diff < 0 or self.hollow_neighbours < 0:
            raise ConfigurationError("deepen_diff and hollow_neighbours must be >= 0")


def default_config() -> RunnerConfig:
    """Return a fully populated default configuration."""
    return RunnerConfig()


class ClusteringError(Exception):
    """Base exception for clustering errors."""
    pass


class ConfigurationError(ClusteringError):
    """Raised when a configuration can not produce a usable builder."""
    pass
