"""
Preview payload wire models.

Pydantic models for the item pushed to the display during live preview. The
wire format uses snake_case keys, an externally tagged border effect
(``{"Pulse": {"colors": [...]}}``) and content wrapped as
``{"type": "Image", "data": {"type": "Image", ...}}``.

Image animation is carried on the wire as ``TimelineModel``; the keyframe
engine works on ``signpreview.animation.Timeline`` and the two are converted
with ``ImageContent.get_timeline`` / ``ImageContent.with_timeline``.
"""

from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator

from ..animation import Timeline, TimelineValidationError, Transform
from ..const import DEFAULT_COLOR, DEFAULT_TEXT, DEFAULT_TEXT_SPEED

ColorChannel = Annotated[int, Field(ge=0, le=255)]
RGBColor = Tuple[ColorChannel, ColorChannel, ColorChannel]


class ContentType(str, Enum):
    """Content kinds a playlist item can show."""

    TEXT = "Text"
    IMAGE = "Image"
    CLOCK = "Clock"
    ANIMATION = "Animation"


class BorderEffectType(str, Enum):
    """Border effects drawn around the content."""

    NONE = "None"
    RAINBOW = "Rainbow"
    PULSE = "Pulse"
    SPARKLE = "Sparkle"
    GRADIENT = "Gradient"


COLORED_BORDER_EFFECTS = (BorderEffectType.PULSE, BorderEffectType.SPARKLE, BorderEffectType.GRADIENT)


class BorderEffect(BaseModel):
    """Border effect; colored kinds carry a palette."""

    model_config = ConfigDict(frozen=True)

    kind: BorderEffectType = Field(BorderEffectType.NONE, description="Effect kind")
    colors: Tuple[RGBColor, ...] = Field(default_factory=tuple, description="Palette for Pulse/Sparkle/Gradient")

    def to_dict(self) -> Dict[str, Any]:
        """Externally tagged wire form."""
        if self.kind in COLORED_BORDER_EFFECTS:
            return {self.kind.value: {"colors": [list(color) for color in self.colors]}}
        return {self.kind.value: None}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "BorderEffect":
        """Parse the wire form; a missing effect means None."""
        if not data:
            return cls()
        key, value = next(iter(data.items()))
        kind = BorderEffectType(key)
        colors = value.get("colors") if isinstance(value, dict) else None
        if kind in COLORED_BORDER_EFFECTS:
            return cls(kind=kind, colors=tuple(tuple(color) for color in colors or ()))
        return cls(kind=kind)


class TextFormatting(BaseModel):
    """Inline formatting flags for a text segment."""

    bold: Optional[bool] = None
    italic: Optional[bool] = None
    underline: Optional[bool] = None


class TextSegment(BaseModel):
    """A colored or formatted character range of the text."""

    start: int = Field(..., ge=0, description="Starting character index")
    end: int = Field(..., ge=0, description="Ending character index (exclusive)")
    text: Optional[str] = None
    color: Optional[RGBColor] = None
    formatting: Optional[TextFormatting] = None


class TextContent(BaseModel):
    """Static or scrolling text."""

    type: Literal["Text"] = "Text"
    text: str = DEFAULT_TEXT
    scroll: bool = False
    color: RGBColor = DEFAULT_COLOR
    speed: float = Field(DEFAULT_TEXT_SPEED, ge=0, description="Scroll speed (higher = faster)")
    text_segments: Optional[List[TextSegment]] = None


class TransformModel(BaseModel):
    """Image placement on the wire."""

    x: float = 0
    y: float = 0
    scale: float = Field(1.0, gt=0, le=1)

    def to_transform(self) -> Transform:
        return Transform(x=self.x, y=self.y, scale=self.scale)

    @classmethod
    def from_transform(cls, transform: Transform) -> "TransformModel":
        return cls(x=transform.x, y=transform.y, scale=transform.scale)


class KeyframeModel(BaseModel):
    """One keyframe on the wire."""

    timestamp_ms: int = Field(..., ge=0)
    x: float
    y: float
    scale: float = Field(..., gt=0, le=1)


class TimelineModel(BaseModel):
    """Image animation on the wire."""

    keyframes: List[KeyframeModel] = Field(default_factory=list)
    iterations: Optional[int] = Field(None, ge=0, description="Cycles to play, 0 = infinite")


class ImageContent(BaseModel):
    """Uploaded image with placement and optional keyframe animation."""

    type: Literal["Image"] = "Image"
    image_id: Optional[str] = None
    natural_width: int = Field(0, ge=0)
    natural_height: int = Field(0, ge=0)
    transform: Optional[TransformModel] = None
    animation: Optional[TimelineModel] = None

    def get_timeline(self) -> Optional[Timeline]:
        """Engine timeline for the animation, or None when there is none."""
        if self.animation is None:
            return None
        try:
            return Timeline.from_dict(self.animation.model_dump())
        except TimelineValidationError:
            return None

    def with_timeline(self, timeline: Optional[Timeline]) -> "ImageContent":
        """Copy carrying the given timeline (None removes the animation)."""
        animation = None if timeline is None else TimelineModel.model_validate(timeline.to_dict())
        return self.model_copy(update={"animation": animation})

    def with_transform(self, transform: Transform) -> "ImageContent":
        return self.model_copy(update={"transform": TransformModel.from_transform(transform)})


class ClockFormat(str, Enum):
    """Clock display format."""

    H24 = "24h"
    H12 = "12h"


class ClockContent(BaseModel):
    """Live clock."""

    type: Literal["Clock"] = "Clock"
    format: ClockFormat = ClockFormat.H24
    show_seconds: bool = False
    color: RGBColor = DEFAULT_COLOR


class AnimationPreset(str, Enum):
    """Built-in full-panel animations rendered by the display."""

    PULSE = "Pulse"
    PALETTE_WAVE = "PaletteWave"
    DUAL_PULSE = "DualPulse"
    COLOR_FADE = "ColorFade"
    STROBE = "Strobe"
    SPARKLE = "Sparkle"
    PLASMA = "Plasma"
    MOSAIC_TWINKLE = "MosaicTwinkle"


class AnimationContent(BaseModel):
    """Preset animation; only the parameters of the chosen preset are set."""

    type: Literal["Animation"] = "Animation"
    preset: AnimationPreset = AnimationPreset.PULSE
    colors: List[RGBColor] = Field(default_factory=list)
    cycle_ms: Optional[int] = Field(None, ge=1)
    wave_count: Optional[int] = Field(None, ge=1)
    phase_offset: Optional[float] = None
    drift_speed: Optional[float] = None
    flash_ms: Optional[int] = Field(None, ge=0)
    fade_ms: Optional[int] = Field(None, ge=0)
    randomize: Optional[bool] = None
    randomization_factor: Optional[float] = Field(None, ge=0, le=1)
    density: Optional[float] = None
    twinkle_ms: Optional[int] = Field(None, ge=0)
    flow_speed: Optional[float] = None
    noise_scale: Optional[float] = None
    tile_size: Optional[int] = Field(None, ge=1)
    border_size: Optional[int] = Field(None, ge=0)
    border_color: Optional[RGBColor] = None


PreviewContent = Annotated[
    Union[TextContent, ImageContent, ClockContent, AnimationContent],
    Field(discriminator="type"),
]

_content_adapter: TypeAdapter = TypeAdapter(PreviewContent)


def content_from_dict(data: Dict[str, Any]) -> Union[TextContent, ImageContent, ClockContent, AnimationContent]:
    """Parse content ``data`` (the inner object carrying its own ``type``)."""
    return _content_adapter.validate_python(data)


class PreviewPayload(BaseModel):
    """
    Item pushed to the display during live preview.

    Exactly one of ``duration`` (seconds) or ``repeat_count`` (0 = infinite)
    is present, chosen by content type and whether the content is animated.
    """

    model_config = ConfigDict(frozen=True)

    border_effect: BorderEffect = Field(default_factory=BorderEffect)
    content: PreviewContent
    duration: Optional[int] = Field(None, ge=1, description="Display time in seconds")
    repeat_count: Optional[int] = Field(None, ge=0, description="Repetitions, 0 = infinite")

    @model_validator(mode="after")
    def _check_timing(self) -> "PreviewPayload":
        if (self.duration is None) == (self.repeat_count is None):
            raise ValueError("Exactly one of duration or repeat_count must be set")
        return self

    @property
    def content_type(self) -> ContentType:
        return ContentType(self.content.type)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data: Dict[str, Any] = {
            "border_effect": self.border_effect.to_dict(),
            "content": {
                "type": self.content.type,
                "data": self.content.model_dump(mode="json", exclude_none=True),
            },
        }
        if self.duration is not None:
            data["duration"] = self.duration
        else:
            data["repeat_count"] = self.repeat_count
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PreviewPayload":
        """Create from dictionary in wire form."""
        content = data.get("content") or {}
        content_data = dict(content.get("data") or {})
        content_data.setdefault("type", content.get("type"))
        return cls(
            border_effect=BorderEffect.from_dict(data.get("border_effect")),
            content=content_from_dict(content_data),
            duration=data.get("duration"),
            repeat_count=data.get("repeat_count"),
        )
