"""
graticule.py - Latitude/longitude grid lines over a tiled web map

Given a viewport in tile-pixel space, decides which parallels and meridians
are visible, positions and clips them in screen pixels, and places their
labels. The result is a pair of ordered descriptor sequences (lines, labels)
for a rendering surface to draw.

Coordinate chain:
    map units (0..1) -> world pixels -> projected meters (EPSG:3857)
    -> degrees (EPSG:4326), and back to screen pixels per candidate line.

Everything here is a pure function of (Viewport, TileGeometry,
GraticuleConfig); nothing is cached between calls except the read-only
default projection.
"""

import math
from dataclasses import dataclass, field, asdict
from functools import lru_cache
from typing import Callable, List, Optional, Tuple

import numpy as np

from graticule_state import (
    LATITUDE_LIMIT,
    LONGITUDE_LIMIT,
    GraticuleConfig,
    TileGeometry,
    Viewport,
)
from map_utils import (
    PROJECTED_EXTENT,
    SpaceMapper,
    WebMercatorProjection,
    as_float_array,
    clamp_degrees,
)

# === Style Constants ===
GRATICULE_STROKE_COLOR = "#6d5b33"
GRATICULE_STROKE_WIDTH = 3
GRATICULE_DASH = (4, 2)
LABEL_FONT_SIZE = 14
LABEL_PADDING_PX = 5          # Gap between a line and its label
LONGITUDE_LABEL_ROTATION = 90  # Meridian labels read along the line

LATITUDE = "latitude"
LONGITUDE = "longitude"

# Step values are snapped to this many decimals to absorb float drift
SNAP_DECIMALS = 9


@lru_cache(maxsize=1)
def default_projection() -> WebMercatorProjection:
    """Shared read-only Web Mercator projection."""
    return WebMercatorProjection()


def _snap(value: float) -> float:
    return round(value, SNAP_DECIMALS) + 0.0


def floor_to_multiple(value: float, step: float) -> float:
    """Round value down to a multiple of step (23, 10 -> 20)."""
    return _snap(math.floor(_snap(value / step)) * step)


def ceil_to_multiple(value: float, step: float) -> float:
    """Round value up to a multiple of step (23, 10 -> 30)."""
    return _snap(math.ceil(_snap(value / step)) * step)


def format_degrees(value: float) -> str:
    """Label text for a degree value: 30, -85, 12.5."""
    text = f"{value:.6f}".rstrip("0").rstrip(".")
    return "0" if text in ("-0", "") else text


# === Descriptors ===

@dataclass(frozen=True)
class LineStyle:
    """Stroke settings shared by every graticule line."""
    stroke: str = GRATICULE_STROKE_COLOR
    stroke_width: float = GRATICULE_STROKE_WIDTH
    dash: Tuple[float, ...] = GRATICULE_DASH

    @property
    def dasharray(self) -> str:
        return ",".join(f"{d:g}" for d in self.dash)


@dataclass(frozen=True)
class GridLine:
    """A parallel or meridian to stroke.

    Attributes:
        axis: LATITUDE or LONGITUDE
        value: Signed degree value of the line
        anchor: (x, y) screen offset applied to the segment
        segment: (x1, y1, x2, y2) relative to the anchor
        style: Stroke settings
    """
    axis: str
    value: float
    anchor: Tuple[float, float]
    segment: Tuple[float, float, float, float]
    style: LineStyle = field(default_factory=LineStyle)

    @property
    def absolute_segment(self) -> Tuple[float, float, float, float]:
        """Segment in screen pixels with the anchor applied."""
        ax, ay = self.anchor
        x1, y1, x2, y2 = self.segment
        return (ax + x1, ay + y1, ax + x2, ay + y2)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class Label:
    """Text placed next to a grid line."""
    text: str
    position: Tuple[float, float]
    rotation: float
    axis: str
    value: float
    font_size: float = LABEL_FONT_SIZE

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class GraticuleResult:
    """Ordered drawing instructions for one render pass."""
    lines: Tuple[GridLine, ...] = ()
    labels: Tuple[Label, ...] = ()
    debug: Optional[dict] = None

    def lines_for_axis(self, axis: str) -> List[GridLine]:
        return [line for line in self.lines if line.axis == axis]

    def to_dict(self) -> dict:
        data = {
            "lines": [line.to_dict() for line in self.lines],
            "labels": [label.to_dict() for label in self.labels],
        }
        if self.debug is not None:
            data["debug"] = self.debug
        return data


# === Step range selection ===

@dataclass(frozen=True)
class AxisExtent:
    """Visible span of one axis, in world pixels and in degrees.

    Attributes:
        start: World pixel of the leading screen edge (top or left)
        finish: World pixel of the trailing screen edge (bottom or right)
        start_deg: Degrees at the leading edge, clamped to the axis limit
        finish_deg: Degrees at the trailing edge, clamped to the axis limit
        world_size: Pixel size of the whole world
        limit: Axis hard limit (85 or 180)
        step: Line spacing in degrees
    """
    start: float
    finish: float
    start_deg: float
    finish_deg: float
    world_size: float
    limit: float
    step: float

    @property
    def seam(self) -> float:
        return self.world_size / 2


@dataclass(frozen=True)
class StepRange:
    """Inclusive range of degree magnitudes to scan on one axis."""
    start: float
    end: float
    case: str


@dataclass(frozen=True)
class RangeRule:
    """One row of the step range decision table."""
    case: str
    applies: Callable[[AxisExtent], bool]
    resolve: Callable[[AxisExtent], StepRange]


def _full_range(case: str) -> Callable[[AxisExtent], StepRange]:
    def resolve(extent: AxisExtent) -> StepRange:
        return StepRange(0, extent.limit, case)
    return resolve


def _before_seam(extent: AxisExtent) -> StepRange:
    # Only the leading edge is replaced by the limit here
    start_deg = extent.start_deg
    case = "before_seam"
    if extent.start < 0:
        start_deg = extent.limit
        case = "before_seam_past_edge"
    return StepRange(
        floor_to_multiple(abs(extent.finish_deg), extent.step),
        ceil_to_multiple(abs(start_deg), extent.step),
        case,
    )


def _after_seam(extent: AxisExtent) -> StepRange:
    # Only the trailing edge is replaced by the limit here
    finish_deg = extent.finish_deg
    case = "after_seam"
    if extent.finish > extent.world_size:
        finish_deg = extent.limit
        case = "after_seam_past_edge"
    return StepRange(
        floor_to_multiple(abs(extent.start_deg), extent.step),
        ceil_to_multiple(abs(finish_deg), extent.step),
        case,
    )


def _straddles_seam(extent: AxisExtent) -> StepRange:
    return StepRange(
        0,
        max(
            ceil_to_multiple(abs(extent.start_deg), extent.step),
            ceil_to_multiple(abs(extent.finish_deg), extent.step),
        ),
        "straddles_seam",
    )


# Evaluated top to bottom, first match wins; the last row always matches
STEP_RANGE_RULES: Tuple[RangeRule, ...] = (
    RangeRule(
        "spans_both_edges",
        lambda e: e.start < 0 and e.finish > e.world_size,
        _full_range("spans_both_edges"),
    ),
    RangeRule(
        "past_near_edge_across_seam",
        lambda e: e.start < 0 and e.finish > e.seam,
        _full_range("past_near_edge_across_seam"),
    ),
    RangeRule(
        "past_far_edge_across_seam",
        lambda e: e.finish > e.world_size and e.start < e.seam,
        _full_range("past_far_edge_across_seam"),
    ),
    RangeRule("before_seam", lambda e: e.finish < e.seam, _before_seam),
    RangeRule("after_seam", lambda e: e.start > e.seam, _after_seam),
    RangeRule("straddles_seam", lambda e: True, _straddles_seam),
)


def select_step_range(extent: AxisExtent) -> StepRange:
    """Pick the range of multiples of step to scan for one axis."""
    for rule in STEP_RANGE_RULES:
        if rule.applies(extent):
            return rule.resolve(extent)
    raise AssertionError("step range table has no default row")


def step_values(start: float, end: float, step: float, limit: float) -> List[float]:
    """Degree magnitudes to visit, from start to end inclusive.

    Values are start + k * step. When the next value would overshoot the
    limit without landing on it, the limit itself is visited instead, so
    the pole or antimeridian line is always considered once. No value
    exceeds the limit.

    Args:
        start: First magnitude (a multiple of step, >= 0)
        end: Last magnitude to consider
        step: Spacing in degrees, > 0
        limit: Axis hard limit

    Returns:
        Strictly increasing list of magnitudes
    """
    if not step > 0:
        raise ValueError(f"step must be positive, got {step}")

    values = []
    value = _snap(min(start, limit))
    end = _snap(end)
    k = 0
    while value <= end:
        values.append(value)
        if value >= limit:
            break
        k += 1
        value = _snap(start + k * step)
        if value > limit:
            value = _snap(limit)
    return values


# === Line generation ===

def _clip_span(start: float, finish: float, world_size: float) -> Tuple[float, float]:
    """Limit a screen span (world pixels) to the world's own extent."""
    return (0 if start < 0 else start, world_size if finish > world_size else finish)


def _signed(value: float, sign: int) -> float:
    return sign * value if value else 0.0


def _latitude_lines(
    values: List[float],
    projection,
    mapper: SpaceMapper,
    viewport: Viewport,
    x_start: float,
    x_finish: float,
) -> Tuple[List[GridLine], List[Label]]:
    lines: List[GridLine] = []
    labels: List[Label] = []
    if not values:
        return lines, labels

    magnitudes = as_float_array(values)
    _, meters = projection.forward(np.zeros_like(magnitudes), magnitudes)
    meters = as_float_array(meters)
    screen_up = mapper.meters_to_screen_y(-meters)
    screen_down = mapper.meters_to_screen_y(meters)

    x1, x2 = _clip_span(x_start, x_finish, mapper.world_size)
    anchor_x = -mapper.left

    for value, up, down in zip(values, screen_up, screen_down):
        for sign, y, allowed in ((-1, float(up), True), (1, float(down), value > 0)):
            if not (allowed and 0 < y < viewport.height_px):
                continue
            signed_value = _signed(value, sign)
            lines.append(GridLine(
                axis=LATITUDE,
                value=signed_value,
                anchor=(anchor_x, y),
                segment=(x1, 0.0, x2, 0.0),
            ))
            labels.append(Label(
                text=format_degrees(signed_value),
                position=(0.0, y + LABEL_PADDING_PX),
                rotation=0,
                axis=LATITUDE,
                value=signed_value,
            ))
    return lines, labels


def _longitude_lines(
    values: List[float],
    projection,
    mapper: SpaceMapper,
    viewport: Viewport,
    y_start: float,
    y_finish: float,
) -> Tuple[List[GridLine], List[Label]]:
    lines: List[GridLine] = []
    labels: List[Label] = []
    if not values:
        return lines, labels

    magnitudes = as_float_array(values)
    meters, _ = projection.forward(magnitudes, np.zeros_like(magnitudes))
    meters = as_float_array(meters)
    screen_left = mapper.meters_to_screen_x(-meters)
    screen_right = mapper.meters_to_screen_x(meters)

    y1, y2 = _clip_span(y_start, y_finish, mapper.world_size)
    anchor_y = -mapper.top

    for value, left, right in zip(values, screen_left, screen_right):
        for sign, x, allowed in ((-1, float(left), True), (1, float(right), value > 0)):
            if not (allowed and 0 < x < viewport.width_px):
                continue
            signed_value = _signed(value, sign)
            lines.append(GridLine(
                axis=LONGITUDE,
                value=signed_value,
                anchor=(x, anchor_y),
                segment=(0.0, y1, 0.0, y2),
            ))
            labels.append(Label(
                text=format_degrees(signed_value),
                position=(x - LABEL_PADDING_PX, 0.0),
                rotation=LONGITUDE_LABEL_ROTATION,
                axis=LONGITUDE,
                value=signed_value,
            ))
    return lines, labels


def compute_graticule(
    viewport: Viewport,
    tiles: TileGeometry,
    config: GraticuleConfig,
    projection=None,
    debug: bool = False,
) -> GraticuleResult:
    """Compute graticule lines and labels for a viewport.

    Args:
        viewport: Visible map area
        tiles: Tile layer geometry
        config: Graticule settings; steps are clamped to the configured bounds
        projection: Object with forward(lon, lat) and inverse(x, y) accepting
            numpy arrays; defaults to Web Mercator via pyproj
        debug: Attach intermediate values to the result

    Returns:
        GraticuleResult with latitude lines first, then longitude lines,
        and one label per line in the same order
    """
    if not config.show or viewport.is_degenerate:
        return GraticuleResult(debug={"skipped": True} if debug else None)

    if projection is None:
        projection = default_projection()

    width = viewport.width_px
    height = viewport.height_px
    latitudes_step, longitudes_step = config.effective_steps

    world_size = tiles.world_size(viewport.zoom)
    mapper = SpaceMapper.for_viewport(world_size, viewport.center_x, viewport.center_y, width, height)

    center_x = mapper.map_to_world(viewport.center_x)
    center_y = mapper.map_to_world(viewport.center_y)
    x_start = center_x - width * 0.5
    x_finish = center_x + width * 0.5
    y_start = center_y - height * 0.5
    y_finish = center_y + height * 0.5

    # Degrees at the four screen edges, in one projection call. Edges past the
    # world are pinned to the projected extent so longitudes do not wrap.
    edge_meters = np.clip(
        mapper.world_to_meters(np.array([x_start, x_finish, y_start, y_finish])),
        -PROJECTED_EXTENT,
        PROJECTED_EXTENT,
    )
    edge_lons, edge_lats = projection.inverse(
        np.array([edge_meters[0], edge_meters[1], 0.0, 0.0]),
        np.array([0.0, 0.0, edge_meters[2], edge_meters[3]]),
    )
    edge_lons = as_float_array(edge_lons)
    edge_lats = as_float_array(edge_lats)

    latitude_extent = AxisExtent(
        start=y_start,
        finish=y_finish,
        start_deg=clamp_degrees(float(edge_lats[2]), LATITUDE_LIMIT),
        finish_deg=clamp_degrees(float(edge_lats[3]), LATITUDE_LIMIT),
        world_size=world_size,
        limit=LATITUDE_LIMIT,
        step=latitudes_step,
    )
    longitude_extent = AxisExtent(
        start=x_start,
        finish=x_finish,
        start_deg=clamp_degrees(float(edge_lons[0]), LONGITUDE_LIMIT),
        finish_deg=clamp_degrees(float(edge_lons[1]), LONGITUDE_LIMIT),
        world_size=world_size,
        limit=LONGITUDE_LIMIT,
        step=longitudes_step,
    )

    latitude_range = select_step_range(latitude_extent)
    longitude_range = select_step_range(longitude_extent)
    latitude_values = step_values(latitude_range.start, latitude_range.end, latitudes_step, LATITUDE_LIMIT)
    longitude_values = step_values(longitude_range.start, longitude_range.end, longitudes_step, LONGITUDE_LIMIT)

    lat_lines, lat_labels = _latitude_lines(
        latitude_values, projection, mapper, viewport, x_start, x_finish
    )
    lon_lines, lon_labels = _longitude_lines(
        longitude_values, projection, mapper, viewport, y_start, y_finish
    )

    debug_info = None
    if debug:
        debug_info = {
            "world_size": world_size,
            "rounded_zoom": tiles.rounded_zoom(viewport.zoom),
            "left": x_start,
            "right": x_finish,
            "top": y_start,
            "bottom": y_finish,
            "latitudes_step": latitudes_step,
            "longitudes_step": longitudes_step,
            "latitude_extent_deg": [latitude_extent.start_deg, latitude_extent.finish_deg],
            "longitude_extent_deg": [longitude_extent.start_deg, longitude_extent.finish_deg],
            "latitude_range": asdict(latitude_range),
            "longitude_range": asdict(longitude_range),
            "latitude_candidates": len(latitude_values),
            "longitude_candidates": len(longitude_values),
        }

    return GraticuleResult(
        lines=tuple(lat_lines + lon_lines),
        labels=tuple(lat_labels + lon_labels),
        debug=debug_info,
    )
