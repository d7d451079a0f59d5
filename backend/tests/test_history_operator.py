from models.timeline_models import TimelineState
from operators.history_operator import HistoryManager


def _timeline(track_count: int) -> TimelineState:
    return TimelineState.create_default(track_count)


class TestHistoryManager:
    def test_record_and_undo(self):
        history = HistoryManager()
        history.record(_timeline(1), 1)

        entry = history.undo(_timeline(2), 1)

        assert len(entry.timeline.tracks) == 1
        assert history.redo_depth == 1
        assert not history.can_undo

    def test_redo_mirrors_undo(self):
        history = HistoryManager()
        history.record(_timeline(1), 1)
        history.undo(_timeline(2), 1)

        entry = history.redo(_timeline(1), 1)

        assert len(entry.timeline.tracks) == 2
        assert history.undo_depth == 1
        assert not history.can_redo

    def test_empty_stacks_return_none(self):
        history = HistoryManager()

        assert history.undo(_timeline(1), 1) is None
        assert history.redo(_timeline(1), 1) is None

    def test_record_clears_redo(self):
        history = HistoryManager()
        history.record(_timeline(1), 1)
        history.undo(_timeline(2), 1)

        history.record(_timeline(3), 1)

        assert not history.can_redo

    def test_snapshots_are_copies(self):
        history = HistoryManager()
        timeline = _timeline(1)
        history.record(timeline, 1)
        timeline.tracks.append(_timeline(1).tracks[0])

        assert len(history.undo(timeline, 1).timeline.tracks) == 1

    def test_capacity_drops_oldest(self):
        history = HistoryManager(limit=3)
        for count in range(1, 6):
            history.record(_timeline(count), 1)

        assert history.undo_depth == 3
        depths = [len(history.undo(_timeline(9), 1).timeline.tracks) for _ in range(3)]
        assert depths == [5, 4, 3]

    def test_recording_suppressed_while_applying(self):
        history = HistoryManager()

        with history.applying():
            assert history.is_applying
            assert history.record(_timeline(1), 1) is False

        assert not history.is_applying
        assert history.undo_depth == 0

    def test_invalidate_redo(self):
        history = HistoryManager()
        history.record(_timeline(1), 1)
        history.undo(_timeline(2), 1)

        history.invalidate_redo()

        assert not history.can_redo
        assert history.undo_depth == 0

    def test_entry_keeps_zoom(self):
        history = HistoryManager()
        history.record(_timeline(1), 2.25)

        assert history.undo(_timeline(1), 1).zoom_level == 2.25
