"""
Timeline Store - owner of the current timeline and the command surface.

Every command hands the current TimelineState to a pure editor function,
commits the returned value, records history where required and notifies
subscribers. Editor failures (TimelineError) are converted to an
EditResult at this boundary, so a rejected command leaves the timeline,
history and subscribers untouched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from pydantic import ValidationError

from models.timeline_models import (
    EditResult,
    MediaBinItem,
    Resolution,
    Scrubber,
    ScrubberUpdate,
    TimelineDataItem,
    TimelineState,
    TransitionTemplate,
)
from operators import (
    collision_operator,
    group_operator,
    timeline_editor,
    transition_operator,
)
from operators.history_operator import HistoryEntry, HistoryManager
from operators.timeline_operator import (
    CollisionError,
    ScrubberNotFoundError,
    TimelineError,
    TrackNotFoundError,
    TransitionNotFoundError,
    diff_timelines,
    get_scrubber,
    get_track_at,
)
from utils.coordinates import clamp_zoom, pixels_per_second, zoomed_in, zoomed_out
from utils.settings import (
    DEFAULT_TIMELINE_WIDTH,
    DEFAULT_TRACK_COUNT,
    DEFAULT_ZOOM,
    EXPANSION_AMOUNT,
    EXPANSION_THRESHOLD,
    HISTORY_LIMIT,
)
from utils.timeline_data import build_timeline_data
from utils.timeline_integrity import find_integrity_issues

logger = logging.getLogger(__name__)

Subscriber = Callable[[TimelineState], None]


@dataclass
class _Change:
    timeline: TimelineState
    count: int = 1
    data: dict[str, Any] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)


def _error_result(operation_type: str, e: Exception) -> EditResult:
    """Convert an editor exception to a failed EditResult."""
    if isinstance(e, (TrackNotFoundError, ScrubberNotFoundError, TransitionNotFoundError)):
        logger.warning("%s failed: %s", operation_type, e)
        return EditResult(ok=False, operation_type=operation_type, error=str(e), error_code=e.error_code)
    elif isinstance(e, TimelineError):
        logger.info("%s rejected: %s", operation_type, e)
        return EditResult(ok=False, operation_type=operation_type, error=str(e), error_code=e.error_code)
    elif isinstance(e, ValidationError):
        logger.info("%s rejected invalid input: %s", operation_type, e)
        return EditResult(
            ok=False,
            operation_type=operation_type,
            error=str(e),
            error_code="validation_error",
        )
    raise e


class TimelineStore:
    def __init__(
        self,
        timeline: TimelineState | None = None,
        zoom_level: float = DEFAULT_ZOOM,
        timeline_width: float = DEFAULT_TIMELINE_WIDTH,
        history_limit: int = HISTORY_LIMIT,
    ):
        self._timeline = timeline or TimelineState.create_default(DEFAULT_TRACK_COUNT)
        self._zoom_level = clamp_zoom(zoom_level)
        self.timeline_width = timeline_width
        self.history = HistoryManager(limit=history_limit)
        self._subscribers: list[Subscriber] = []

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def timeline(self) -> TimelineState:
        return self._timeline

    @property
    def zoom_level(self) -> float:
        return self._zoom_level

    @property
    def pixels_per_second(self) -> float:
        return pixels_per_second(self._zoom_level)

    @property
    def can_undo(self) -> bool:
        return self.history.can_undo

    @property
    def can_redo(self) -> bool:
        return self.history.can_redo

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback for every committed timeline. Returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _commit(self, timeline: TimelineState) -> None:
        self._timeline = timeline
        for callback in list(self._subscribers):
            callback(timeline)

    def _run(
        self,
        operation_type: str,
        edit: Callable[[TimelineState], _Change],
        record_history: bool = True,
        invalidate_redo: bool = False,
    ) -> EditResult:
        before = self._timeline
        try:
            change = edit(before)
        except (TimelineError, ValidationError) as e:
            return _error_result(operation_type, e)

        if change.count == 0 or change.timeline is before:
            return EditResult(
                operation_type=operation_type,
                count=0,
                warnings=change.warnings,
                data=change.data,
            )

        if record_history:
            self.history.record(before, self._zoom_level)
        elif invalidate_redo:
            self.history.invalidate_redo()

        summary = diff_timelines(before, change.timeline).summary
        logger.debug("%s: %s", operation_type, summary)
        self._commit(change.timeline)

        return EditResult(
            operation_type=operation_type,
            count=change.count,
            warnings=change.warnings,
            data={**change.data, "summary": summary},
        )

    # =========================================================================
    # TRACKS
    # =========================================================================

    def add_track(self) -> EditResult:
        def _edit(timeline: TimelineState) -> _Change:
            new_timeline, track = timeline_editor.add_track(timeline)
            return _Change(new_timeline, data={"track_id": track.id})

        return self._run("add_track", _edit)

    def delete_track(self, track_id: str) -> EditResult:
        def _edit(timeline: TimelineState) -> _Change:
            return _Change(timeline_editor.remove_track(timeline, track_id))

        return self._run("delete_track", _edit)

    # =========================================================================
    # SCRUBBERS
    # =========================================================================

    def add_scrubber_to_track(self, track_id: str, scrubber: Scrubber | dict) -> EditResult:
        def _edit(timeline: TimelineState) -> _Change:
            candidate = Scrubber.model_validate(scrubber) if isinstance(scrubber, dict) else scrubber
            new_timeline = timeline_editor.add_scrubber(timeline, track_id, candidate)
            return _Change(new_timeline, data={"scrubber_id": candidate.id})

        return self._run("add_scrubber", _edit)

    def drop_media_on_track(
        self,
        item: MediaBinItem | dict,
        track_id: str,
        drop_left_px: float,
    ) -> EditResult:
        def _edit(timeline: TimelineState) -> _Change:
            media = MediaBinItem.model_validate(item) if isinstance(item, dict) else item
            new_timeline, scrubber = timeline_editor.drop_media(
                timeline,
                media,
                track_id,
                drop_left_px,
                self.pixels_per_second,
                self.timeline_width,
            )
            return _Change(new_timeline, data={"scrubber_id": scrubber.id, "left": scrubber.left})

        return self._run("drop_media", _edit)

    def update_scrubber(self, scrubber_id: str, update: ScrubberUpdate | dict) -> EditResult:
        def _edit(timeline: TimelineState) -> _Change:
            changes = ScrubberUpdate.model_validate(update) if isinstance(update, dict) else update
            return _Change(
                timeline_editor.update_scrubber(
                    timeline, scrubber_id, changes, self.pixels_per_second
                )
            )

        return self._run("update_scrubber", _edit)

    def move_scrubber(self, scrubber_id: str, left: float, y: int | None = None) -> EditResult:
        """
        Interactive drag. Collisions never fail the command: the scrubber
        snaps next to what it hit, or stays put (count 0). Scrubbers chained
        by transitions, and their transitions, move together.
        """
        def _edit(timeline: TimelineState) -> _Change:
            track_index, original = get_scrubber(timeline, scrubber_id)
            target_y = track_index if y is None else y
            get_track_at(timeline, target_y)

            connected = collision_operator.get_connected_elements(timeline, scrubber_id)
            linked = [eid for eid in connected if timeline.find_scrubber(eid) is not None]

            if len(linked) > 1 or original.transition_ids:
                try:
                    new_timeline = collision_operator.move_connected_group(
                        timeline,
                        scrubber_id,
                        max(0.0, left) - original.left,
                        target_y - track_index,
                    )
                except CollisionError as e:
                    return _Change(timeline, count=0, warnings=[str(e)])
                return _Change(new_timeline, count=len(linked), data={"moved": linked})

            proposed = original.model_copy(deep=True, update={"left": max(0.0, left), "y": target_y})
            final = collision_operator.resolve_collision(
                timeline, proposed, original, self.timeline_width
            )
            if final is None or final == original:
                return _Change(timeline, count=0)
            new_timeline = timeline_editor.place_scrubber(timeline, final)
            return _Change(new_timeline, data={"left": final.left, "y": final.y})

        return self._run("move_scrubber", _edit, record_history=False, invalidate_redo=True)

    def delete_scrubber(self, scrubber_id: str) -> EditResult:
        def _edit(timeline: TimelineState) -> _Change:
            new_timeline, removed = timeline_editor.delete_scrubber(timeline, scrubber_id)
            return _Change(new_timeline, data={"removed_transition_ids": sorted(removed)})

        return self._run("delete_scrubber", _edit)

    def delete_scrubbers_by_media_id(self, media_id: str) -> EditResult:
        def _edit(timeline: TimelineState) -> _Change:
            new_timeline, scrubber_ids, transition_ids = timeline_editor.delete_scrubbers_by_media(
                timeline, media_id
            )
            return _Change(
                new_timeline,
                count=len(scrubber_ids),
                data={
                    "removed_scrubber_ids": scrubber_ids,
                    "removed_transition_ids": sorted(transition_ids),
                },
            )

        return self._run("delete_media", _edit)

    def set_resolution(self, resolution: Resolution | str) -> EditResult:
        try:
            target = Resolution(resolution)
        except ValueError as e:
            logger.info("set_resolution rejected: %s", e)
            return EditResult(
                ok=False,
                operation_type="set_resolution",
                error=str(e),
                error_code="invalid_resolution",
            )

        def _edit(timeline: TimelineState) -> _Change:
            if target == timeline.resolution:
                return _Change(timeline, count=0)
            return _Change(timeline_editor.set_resolution(timeline, target))

        return self._run("set_resolution", _edit, record_history=False)

    def split_scrubber_at_ruler(self, ruler_px: float, selected_ids: list[str]) -> EditResult:
        def _edit(timeline: TimelineState) -> _Change:
            new_timeline, count = timeline_editor.split_scrubber(
                timeline, ruler_px, selected_ids, self.pixels_per_second
            )
            return _Change(new_timeline, count=count)

        return self._run("split_scrubber", _edit)

    # =========================================================================
    # TRANSITIONS
    # =========================================================================

    def add_transition(
        self,
        track_id: str,
        template: TransitionTemplate | dict,
        drop_position: float,
    ) -> EditResult:
        def _edit(timeline: TimelineState) -> _Change:
            palette_item = (
                TransitionTemplate.model_validate(template)
                if isinstance(template, dict)
                else template
            )
            new_timeline, transition = transition_operator.add_transition(
                timeline, track_id, palette_item, drop_position, self.pixels_per_second
            )
            return _Change(new_timeline, data={"transition_id": transition.id})

        return self._run("add_transition", _edit)

    def delete_transition(self, transition_id: str) -> EditResult:
        def _edit(timeline: TimelineState) -> _Change:
            new_timeline, warnings = transition_operator.remove_transition(
                timeline, transition_id, self.pixels_per_second
            )
            return _Change(new_timeline, warnings=warnings)

        return self._run("delete_transition", _edit)

    # =========================================================================
    # GROUPS
    # =========================================================================

    def group_scrubbers(self, scrubber_ids: list[str]) -> EditResult:
        def _edit(timeline: TimelineState) -> _Change:
            new_timeline, composite = group_operator.group_scrubbers(
                timeline, scrubber_ids, self.pixels_per_second
            )
            return _Change(
                new_timeline,
                count=len(composite.groupped_scrubbers or []),
                data={"group_id": composite.id},
            )

        return self._run("group_scrubbers", _edit)

    def ungroup_scrubber(self, group_id: str) -> EditResult:
        def _edit(timeline: TimelineState) -> _Change:
            new_timeline, restored = group_operator.ungroup_scrubber(timeline, group_id)
            return _Change(
                new_timeline,
                count=len(restored),
                data={"scrubber_ids": [s.id for s in restored]},
            )

        return self._run("ungroup_scrubber", _edit)

    def move_group_to_media_bin(self, group_id: str) -> EditResult:
        def _edit(timeline: TimelineState) -> _Change:
            new_timeline, item = group_operator.move_group_to_media_bin(
                timeline, group_id, self.pixels_per_second
            )
            return _Change(new_timeline, data={"media_item": item.model_dump(mode="json")})

        return self._run("move_group_to_media_bin", _edit)

    def get_connected_elements(self, element_id: str) -> list[str]:
        return collision_operator.get_connected_elements(self._timeline, element_id)

    # =========================================================================
    # ZOOM / VIEWPORT
    # =========================================================================

    def _set_zoom(self, operation_type: str, zoom_level: float) -> EditResult:
        target = clamp_zoom(zoom_level)

        def _edit(timeline: TimelineState) -> _Change:
            if target == self._zoom_level:
                return _Change(timeline, count=0, data={"zoom_level": target})
            ratio = target / self._zoom_level
            new_timeline = timeline_editor.rescale_timeline(timeline, ratio)
            self._zoom_level = target
            return _Change(new_timeline, data={"zoom_level": target})

        return self._run(operation_type, _edit, record_history=False)

    def zoom_in(self) -> EditResult:
        return self._set_zoom("zoom_in", zoomed_in(self._zoom_level))

    def zoom_out(self) -> EditResult:
        return self._set_zoom("zoom_out", zoomed_out(self._zoom_level))

    def zoom_reset(self) -> EditResult:
        return self._set_zoom("zoom_reset", DEFAULT_ZOOM)

    def expand_timeline(self, container_width: float, scroll_left: float) -> EditResult:
        """Grow the timeline when the visible right edge comes close to its end."""
        visible_right = scroll_left + container_width
        expanded = visible_right >= self.timeline_width - EXPANSION_THRESHOLD
        if expanded:
            self.timeline_width += EXPANSION_AMOUNT
            logger.debug("Timeline expanded to %.0fpx", self.timeline_width)
        return EditResult(
            operation_type="expand_timeline",
            count=1 if expanded else 0,
            data={"timeline_width": self.timeline_width},
        )

    # =========================================================================
    # HISTORY
    # =========================================================================

    def begin_transform(self) -> EditResult:
        """Snapshot the timeline before an interactive drag or resize."""
        recorded = self.history.record(self._timeline, self._zoom_level)
        return EditResult(operation_type="begin_transform", count=1 if recorded else 0)

    def _restore(self, entry: HistoryEntry) -> TimelineState:
        if entry.zoom_level == self._zoom_level:
            return entry.timeline
        return timeline_editor.rescale_timeline(
            entry.timeline, self._zoom_level / entry.zoom_level
        )

    def undo(self) -> EditResult:
        if not self.history.can_undo:
            return EditResult(
                ok=False,
                operation_type="undo",
                error="Nothing to undo",
                error_code="nothing_to_undo",
            )
        with self.history.applying():
            entry = self.history.undo(self._timeline, self._zoom_level)
            self._commit(self._restore(entry))
        return EditResult(operation_type="undo", count=1)

    def redo(self) -> EditResult:
        if not self.history.can_redo:
            return EditResult(
                ok=False,
                operation_type="redo",
                error="Nothing to redo",
                error_code="nothing_to_redo",
            )
        with self.history.applying():
            entry = self.history.redo(self._timeline, self._zoom_level)
            self._commit(self._restore(entry))
        return EditResult(operation_type="redo", count=1)

    # =========================================================================
    # VIEWS & PERSISTENCE
    # =========================================================================

    def get_timeline_data(self) -> TimelineDataItem:
        return build_timeline_data(self._timeline, self.pixels_per_second)

    def export_state(self) -> dict[str, Any]:
        return self._timeline.model_dump(mode="json")

    def load_state(self, data: dict[str, Any]) -> EditResult:
        """Replace the timeline with externally persisted state. Not recorded in history."""
        try:
            timeline = TimelineState.model_validate(data)
        except ValidationError as e:
            return _error_result("load_state", e)

        issues = find_integrity_issues(timeline)
        for issue in issues:
            logger.warning("Loaded timeline: %s", issue)

        self._commit(timeline)
        return EditResult(
            operation_type="load_state",
            count=len(timeline.all_scrubbers()),
            warnings=issues,
        )
