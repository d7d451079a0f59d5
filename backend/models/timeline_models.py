"""
Pydantic models for the multi-track timeline editing core.

This module implements the in-memory data model used by the timeline
operators. It supports:
- Tracks holding scrubbers (clips) and the transitions between them
- Composite scrubbers (groups) that own deep copies of their children
- Resolution presets for the output canvas
- A flattened, render-ready view of the timeline (TimelineDataItem)

Geometry is stored in pixels at the current zoom level; trims are stored in
frames. Every model round-trips losslessly through model_dump()/model_validate().
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal
from uuid import uuid4

from pydantic import BaseModel, Field, model_validator


def generate_id() -> str:
    """Return a fresh identifier for scrubbers, tracks and transitions."""
    return str(uuid4())


# =============================================================================
# ENUMS
# =============================================================================


class MediaType(str, Enum):
    """Kind of media a scrubber plays."""
    VIDEO = "video"
    IMAGE = "image"
    AUDIO = "audio"
    TEXT = "text"
    COMPOSITE = "groupped_scrubber"


class TransitionPresentation(str, Enum):
    """Visual style of a transition."""
    FADE = "fade"
    WIPE = "wipe"
    CLOCK_WIPE = "clockWipe"
    SLIDE = "slide"
    FLIP = "flip"
    IRIS = "iris"


class TransitionTiming(str, Enum):
    """Timing curve of a transition."""
    SPRING = "spring"
    LINEAR = "linear"


class Resolution(str, Enum):
    """Output canvas presets."""
    FOUR_K = "4k"
    SHORTS = "shorts"

    @property
    def width(self) -> int:
        return 1080 if self is Resolution.SHORTS else 3840

    @property
    def height(self) -> int:
        return 1920 if self is Resolution.SHORTS else 2160


# Kinds that can never sit on either side of a transition.
TRANSITION_FORBIDDEN_TYPES = frozenset({MediaType.AUDIO, MediaType.COMPOSITE})


# =============================================================================
# MEDIA
# =============================================================================


class TextProperties(BaseModel):
    """Styling for text scrubbers."""
    text_content: str = Field(default="", description="Text to render")
    font_size: float = Field(default=48, gt=0)
    font_family: str = Field(default="Arial")
    color: str = Field(default="#ffffff")
    text_align: Literal["left", "center", "right"] = "center"
    font_weight: Literal["normal", "bold"] = "normal"
    template: Literal["normal", "glassy"] | None = Field(
        default=None,
        description="Preset page style; may override the properties above"
    )


class MediaBinItem(BaseModel):
    """
    A media entry produced by the ingestion collaborator.

    The timeline only reads it to seed a new scrubber's kind and initial
    geometry; it never re-fetches the underlying bytes.
    """
    id: str = Field(default_factory=generate_id)
    name: str = Field(default="")
    media_type: MediaType
    media_url_local: str | None = None
    media_url_remote: str | None = None
    media_width: float = Field(default=0, ge=0)
    media_height: float = Field(default=0, ge=0)
    duration_in_seconds: float = Field(
        default=0,
        ge=0,
        description="Natural duration (0 for text and images)"
    )
    text: TextProperties | None = None
    groupped_scrubbers: list[Scrubber] | None = Field(
        default=None,
        description="Children when a composite is moved back to the bin"
    )
    groupped_transitions: list[Transition] | None = None


# =============================================================================
# TIMELINE ENTITIES
# =============================================================================


class Transition(BaseModel):
    """
    A timed blend attached to the facing edges of one or two scrubbers.

    Scrubber A:  [==========]
    Transition:        [====]
    Scrubber B:        [==========]

    - intro: only right_scrubber_id is set
    - outro: only left_scrubber_id is set
    - bridging: both are set, and the scrubbers may overlap by the
      transition's pixel width
    """
    id: str = Field(default_factory=generate_id)
    presentation: TransitionPresentation = TransitionPresentation.FADE
    timing: TransitionTiming = TransitionTiming.LINEAR
    duration_in_frames: int = Field(gt=0, description="Length of the blend in frames")
    left_scrubber_id: str | None = Field(
        default=None,
        description="Scrubber the transition starts from (None for an intro)"
    )
    right_scrubber_id: str | None = Field(
        default=None,
        description="Scrubber the transition goes to (None for an outro)"
    )

    @model_validator(mode="after")
    def _require_one_side(self) -> Transition:
        if self.left_scrubber_id is None and self.right_scrubber_id is None:
            raise ValueError("A transition needs at least one adjacent scrubber")
        return self

    @property
    def scrubber_ids(self) -> list[str]:
        return [
            sid for sid in (self.left_scrubber_id, self.right_scrubber_id)
            if sid is not None
        ]


class TransitionTemplate(BaseModel):
    """A transition picked from the palette, before its endpoints are resolved."""
    id: str | None = None
    presentation: TransitionPresentation = TransitionPresentation.FADE
    timing: TransitionTiming = TransitionTiming.LINEAR
    duration_in_frames: int = Field(default=15, gt=0)


class Scrubber(BaseModel):
    """
    One item placed on a track.

    A composite scrubber (media_type == COMPOSITE) owns deep copies of the
    scrubbers it was grouped from in groupped_scrubbers. Children keep the
    absolute geometry they had when grouped; ungrouping maps it back through
    the composite's current bounds.
    """
    id: str = Field(default_factory=generate_id)
    name: str = Field(default="")
    media_type: MediaType
    media_url_local: str | None = None
    media_url_remote: str | None = None
    media_width: float = Field(default=0, ge=0)
    media_height: float = Field(default=0, ge=0)
    duration_in_seconds: float = Field(default=0, ge=0)
    text: TextProperties | None = None
    source_media_bin_id: str = Field(default="", description="Media entry this scrubber came from")

    left: float = Field(default=0, ge=0, description="Horizontal position in pixels")
    width: float = Field(gt=0, description="Width in pixels")
    y: int = Field(default=0, ge=0, description="Index of the track holding the scrubber")

    trim_before: int | None = Field(default=None, description="Frames skipped at the start")
    trim_after: int | None = Field(default=None, description="Frames skipped at the end")

    groupped_scrubbers: list[Scrubber] | None = None
    groupped_transitions: list[Transition] | None = None

    left_transition_id: str | None = Field(default=None, description="Incoming transition")
    right_transition_id: str | None = Field(default=None, description="Outgoing transition")

    left_player: float = 0
    top_player: float = 0
    width_player: float = 0
    height_player: float = 0
    is_dragging: bool = False

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def is_composite(self) -> bool:
        return self.media_type == MediaType.COMPOSITE

    @property
    def transition_ids(self) -> list[str]:
        return [
            tid for tid in (self.left_transition_id, self.right_transition_id)
            if tid is not None
        ]

    def overlaps(self, other: Scrubber) -> bool:
        """Half-open span intersection: touching edges do not overlap."""
        return self.left < other.right and other.left < self.right


class ScrubberUpdate(BaseModel):
    """Editable fields of a scrubber. Unset fields are left untouched."""
    name: str | None = None
    left: float | None = Field(default=None, ge=0)
    width: float | None = Field(default=None, gt=0)
    y: int | None = Field(default=None, ge=0)
    trim_before: int | None = Field(default=None, ge=0)
    trim_after: int | None = Field(default=None, ge=0)
    left_player: float | None = None
    top_player: float | None = None
    width_player: float | None = None
    height_player: float | None = None
    is_dragging: bool | None = None
    text: TextProperties | None = None


class TrackState(BaseModel):
    """A lane of scrubbers plus the transitions that live on it."""
    id: str = Field(default_factory=generate_id)
    scrubbers: list[Scrubber] = Field(default_factory=list)
    transitions: list[Transition] = Field(default_factory=list)

    def find_scrubber(self, scrubber_id: str) -> Scrubber | None:
        return next((s for s in self.scrubbers if s.id == scrubber_id), None)

    def find_transition(self, transition_id: str) -> Transition | None:
        return next((t for t in self.transitions if t.id == transition_id), None)

    def sorted_scrubbers(self) -> list[Scrubber]:
        return sorted(self.scrubbers, key=lambda s: s.left)


class TimelineState(BaseModel):
    """
    Top-level timeline value - the list of tracks and the output resolution.

    Owned by the TimelineStore. Operators never mutate a TimelineState they
    receive; they return a new one.
    """
    tracks: list[TrackState] = Field(default_factory=list)
    resolution: Resolution = Field(default=Resolution.FOUR_K)

    def find_track(self, track_id: str) -> TrackState | None:
        return next((t for t in self.tracks if t.id == track_id), None)

    def track_index(self, track_id: str) -> int:
        """Index of the track, or -1 when it does not exist."""
        for index, track in enumerate(self.tracks):
            if track.id == track_id:
                return index
        return -1

    def find_scrubber(self, scrubber_id: str) -> tuple[int, Scrubber] | None:
        """Find a top-level scrubber. Returns (track_index, scrubber) or None."""
        for index, track in enumerate(self.tracks):
            scrubber = track.find_scrubber(scrubber_id)
            if scrubber is not None:
                return index, scrubber
        return None

    def find_transition(self, transition_id: str) -> tuple[int, Transition] | None:
        for index, track in enumerate(self.tracks):
            transition = track.find_transition(transition_id)
            if transition is not None:
                return index, transition
        return None

    def all_scrubbers(self) -> list[Scrubber]:
        return [s for track in self.tracks for s in track.scrubbers]

    def all_transitions(self) -> dict[str, Transition]:
        return {t.id: t for track in self.tracks for t in track.transitions}

    @classmethod
    def create_default(cls, track_count: int = 4) -> TimelineState:
        """Create an empty 4K timeline with the given number of tracks."""
        return cls(
            tracks=[TrackState(id=f"track-{i + 1}") for i in range(track_count)],
            resolution=Resolution.FOUR_K,
        )


# Self-referencing children
Scrubber.model_rebuild()
MediaBinItem.model_rebuild()


# =============================================================================
# RENDER VIEW
# =============================================================================


class TimelineDataScrubber(BaseModel):
    """A scrubber as the renderer sees it: absolute times instead of pixels."""
    id: str
    media_type: MediaType
    media_url_local: str | None = None
    media_url_remote: str | None = None
    width: float
    start_time: float = Field(description="Seconds from timeline start")
    end_time: float = Field(description="Seconds from timeline start")
    duration: float = Field(description="Seconds on the timeline")
    track_id: str
    track_index: int
    media_width: float = 0
    media_height: float = 0
    text: TextProperties | None = None

    left_player: float = 0
    top_player: float = 0
    width_player: float = 0
    height_player: float = 0

    trim_before: int | None = None
    trim_after: int | None = None

    left_transition_id: str | None = None
    right_transition_id: str | None = None
    groupped_scrubbers: list[Scrubber] | None = None


class TimelineDataItem(BaseModel):
    """Flattened timeline consumed by the render/export pipeline."""
    scrubbers: list[TimelineDataScrubber] = Field(default_factory=list)
    transitions: dict[str, Transition] = Field(default_factory=dict)
    resolution: Resolution = Resolution.FOUR_K
    width: int = 3840
    height: int = 2160


# =============================================================================
# RESPONSE MODELS
# =============================================================================


class TimelineDiff(BaseModel):
    """Diff between two timeline values."""
    tracks_added: list[str] = Field(default_factory=list)
    tracks_removed: list[str] = Field(default_factory=list)
    scrubbers_added: list[str] = Field(default_factory=list)
    scrubbers_removed: list[str] = Field(default_factory=list)
    scrubbers_modified: list[str] = Field(default_factory=list)
    transitions_added: list[str] = Field(default_factory=list)
    transitions_removed: list[str] = Field(default_factory=list)
    summary: str = Field(default="", description="Human-readable summary")


class EditResult(BaseModel):
    """Outcome of one timeline command."""
    ok: bool = True
    operation_type: str
    count: int = Field(default=0, description="Number of entities affected")
    error: str | None = None
    error_code: str | None = None
    warnings: list[str] = Field(default_factory=list)
    data: dict[str, Any] = Field(default_factory=dict)
