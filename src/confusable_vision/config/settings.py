"""Configuration settings for Confusable Vision."""

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from confusable_vision.domain import FontCategory
from confusable_vision.exceptions import ConfigurationError


class SsimMethod(str, Enum):
    """Available structural-similarity implementations."""

    GREY = "grey"
    REFERENCE = "reference"


class ExecutorKind(str, Enum):
    """Worker pool flavour."""

    PROCESS = "process"
    THREAD = "thread"


class RenderConfig(BaseModel):
    """Configuration for glyph rendering."""

    canvas_size: int = Field(
        default=64,
        ge=16,
        le=512,
        description="Square canvas size for single characters",
    )
    sequence_canvas_width: int = Field(
        default=128,
        ge=16,
        le=1024,
        description="Canvas width for multi-character sequences (height = canvas_size)",
    )
    font_fill_ratio: float = Field(
        default=0.75,
        gt=0.1,
        le=1.0,
        description="Font size as a fraction of canvas height",
    )
    check_coverage: bool = Field(
        default=True,
        description="Consult the font cmap before rendering",
    )

    @property
    def font_size(self) -> int:
        """Pixel font size shared by characters and sequences."""
        return round(self.canvas_size * self.font_fill_ratio)


class NormalizeConfig(BaseModel):
    """Configuration for image normalisation."""

    target_size: int = Field(
        default=48,
        ge=16,
        le=256,
        description="Side of the canonical square image",
    )
    ink_threshold: int = Field(
        default=10,
        ge=1,
        le=254,
        description="Pixels darker than 255 - threshold count as ink",
    )
    crop_margin: int = Field(
        default=0,
        ge=0,
        le=16,
        description="Background pixels kept around the ink box when cropping",
    )


class FilterConfig(BaseModel):
    """Configuration for the pair filter policy."""

    ink_coverage_min: float = Field(
        default=0.03,
        ge=0.0,
        le=1.0,
        description="Minimum ink fraction of each normalised image",
    )
    width_ratio_max: float = Field(
        default=2.0,
        ge=1.0,
        description="Maximum ratio between the two ink widths",
    )
    phash_prefilter_min: float | None = Field(
        default=None,
        ge=0.0,
        le=1.0,
        description="Skip SSIM when pHash similarity is below this (None = off)",
    )


class ScoringConfig(BaseModel):
    """Configuration for similarity scoring."""

    ssim_method: SsimMethod = Field(
        default=SsimMethod.GREY,
        description="SSIM implementation used by workers",
    )


class ProcessingConfig(BaseModel):
    """Configuration for the worker pool."""

    max_workers: int | None = Field(
        default=None,
        ge=1,
        description="Max workers (None = auto)",
    )
    chunk_size: int = Field(
        default=64,
        ge=1,
        le=10000,
        description="Work items shipped to a worker per task",
    )
    executor: ExecutorKind = Field(
        default=ExecutorKind.PROCESS,
        description="Use worker processes or threads",
    )


class FontDefinition(BaseModel):
    """A font the registry should try to load."""

    family: str
    path: Path
    category: FontCategory = FontCategory.STANDARD
    face_index: int = Field(default=0, ge=0)


class FontConfig(BaseModel):
    """Configuration for the font registry."""

    definitions: list[FontDefinition] = Field(
        default_factory=lambda: list(DEFAULT_FONT_DEFINITIONS),
        description="Fonts to register",
    )
    fallback_dirs: list[Path] = Field(
        default_factory=list,
        description="Directories scanned for fallback fonts, most preferred first",
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    log_file: Path | None = Field(
        default=None,
        description="Path to log file",
    )
    log_level: str = Field(
        default="WARNING",
        description="Console log level",
    )
    file_log_level: str = Field(
        default="DEBUG",
        description="File log level (more verbose)",
    )


class ConfusableVisionSettings(BaseModel):
    """Main application settings."""

    render: RenderConfig = Field(default_factory=RenderConfig)
    normalize: NormalizeConfig = Field(default_factory=NormalizeConfig)
    filters: FilterConfig = Field(default_factory=FilterConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    processing: ProcessingConfig = Field(default_factory=ProcessingConfig)
    fonts: FontConfig = Field(default_factory=FontConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


DEFAULT_FONT_DEFINITIONS: list[FontDefinition] = [
    # macOS
    FontDefinition(family="Arial", path=Path("/System/Library/Fonts/Supplemental/Arial.ttf")),
    FontDefinition(family="Verdana", path=Path("/System/Library/Fonts/Supplemental/Verdana.ttf")),
    FontDefinition(family="Tahoma", path=Path("/System/Library/Fonts/Supplemental/Tahoma.ttf")),
    FontDefinition(family="Georgia", path=Path("/System/Library/Fonts/Supplemental/Georgia.ttf")),
    FontDefinition(
        family="Times New Roman",
        path=Path("/System/Library/Fonts/Supplemental/Times New Roman.ttf"),
    ),
    FontDefinition(
        family="Courier New",
        path=Path("/System/Library/Fonts/Supplemental/Courier New.ttf"),
    ),
    FontDefinition(
        family="STIX Two Math",
        path=Path("/System/Library/Fonts/Supplemental/STIXTwoMath.otf"),
        category=FontCategory.SPECIALIZED,
    ),
    # Linux
    FontDefinition(
        family="DejaVu Sans",
        path=Path("/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf"),
    ),
    FontDefinition(
        family="DejaVu Serif",
        path=Path("/usr/share/fonts/truetype/dejavu/DejaVuSerif.ttf"),
    ),
    FontDefinition(
        family="DejaVu Sans Mono",
        path=Path("/usr/share/fonts/truetype/dejavu/DejaVuSansMono.ttf"),
    ),
    FontDefinition(
        family="Liberation Sans",
        path=Path("/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf"),
    ),
    FontDefinition(
        family="Liberation Serif",
        path=Path("/usr/share/fonts/truetype/liberation/LiberationSerif-Regular.ttf"),
    ),
]


def get_default_settings() -> ConfusableVisionSettings:
    """Get default application settings."""
    return ConfusableVisionSettings()


def load_settings(path: Path | None) -> ConfusableVisionSettings:
    """Load settings from a JSON file, or defaults when no path is given.

    Args:
        path: Path to a JSON settings file

    Returns:
        Validated settings

    Raises:
        ConfigurationError: If the file is missing or fails validation
    """
    if path is None:
        return get_default_settings()

    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(str(path), str(e)) from e

    try:
        return ConfusableVisionSettings.model_validate_json(text)
    except ValidationError as e:
        raise ConfigurationError(str(path), str(e)) from e
