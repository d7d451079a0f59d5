from __future__ import annotations

from utils.settings import (
    BASE_PIXELS_PER_SECOND,
    DEFAULT_ZOOM,
    MAX_ZOOM,
    MIN_ZOOM,
    TIMELINE_FPS,
    ZOOM_STEP,
)


def clamp_zoom(zoom: float) -> float:
    return max(MIN_ZOOM, min(MAX_ZOOM, zoom))


def pixels_per_second(zoom: float = DEFAULT_ZOOM) -> float:
    return BASE_PIXELS_PER_SECOND * clamp_zoom(zoom)


def to_pixels(seconds: float, zoom: float = DEFAULT_ZOOM) -> float:
    return seconds * pixels_per_second(zoom)


def to_seconds(px: float, zoom: float = DEFAULT_ZOOM) -> float:
    return px / pixels_per_second(zoom)


def frames_to_pixels(frames: float, pps: float) -> float:
    """Pixel width of a frame count at the given pixels-per-second."""
    return (frames / TIMELINE_FPS) * pps


def pixels_to_frames(px: float, pps: float) -> float:
    return (px / pps) * TIMELINE_FPS


def zoomed_in(zoom: float) -> float:
    return min(MAX_ZOOM, zoom * ZOOM_STEP)


def zoomed_out(zoom: float) -> float:
    return max(MIN_ZOOM, zoom / ZOOM_STEP)


def zoom_ratio(old_zoom: float, new_zoom: float) -> float:
    """Multiplier that carries pixel geometry from old_zoom to new_zoom."""
    return clamp_zoom(new_zoom) / clamp_zoom(old_zoom)
