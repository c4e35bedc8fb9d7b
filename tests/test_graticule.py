"""
Tests for graticule module.

Run with: pytest tests/test_graticule.py -v

These tests are designed to catch:
1. Wrong step ranges around the world seam and the world edges
2. Lines missing at the 85° / 180° limits, or values beyond them
3. Duplicate lines (zero emitted twice, limit visited twice)
4. Segments leaking outside the viewport
"""

import math
import numpy as np
import pytest

from graticule import (
    LATITUDE,
    LONGITUDE,
    STEP_RANGE_RULES,
    AxisExtent,
    GraticuleResult,
    ceil_to_multiple,
    compute_graticule,
    floor_to_multiple,
    format_degrees,
    select_step_range,
    step_values,
)
from graticule_state import GraticuleConfig, TileGeometry, Viewport

EPSILON = 1e-6


# === Test Fixtures ===

@pytest.fixture
def tiles():
    return TileGeometry(tile_size_px=256, max_zoom=18)


@pytest.fixture
def config30():
    """30° grid on both axes, no auto step."""
    return GraticuleConfig(latitudes_step=30, longitudes_step=30, auto_step=False)


@pytest.fixture
def world_view():
    """Whole world (256px at zoom 8) centered in a 1000x1000 viewport."""
    return Viewport(width_px=1000, height_px=1000, center_x=0.5, center_y=0.5, zoom=8)


def values(result: GraticuleResult, axis: str):
    return [line.value for line in result.lines_for_axis(axis)]


class SphericalMercator:
    """Minimal projection on a sphere, for checking the projection hook."""

    R = 6378137.0

    def forward(self, lon, lat):
        lon = np.asarray(lon, dtype=float)
        lat = np.asarray(lat, dtype=float)
        x = self.R * np.radians(lon)
        y = self.R * np.log(np.tan(np.pi / 4 + np.radians(lat) / 2))
        return x, y

    def inverse(self, x, y):
        x = np.asarray(x, dtype=float)
        y = np.asarray(y, dtype=float)
        lon = np.degrees(x / self.R)
        lat = np.degrees(2 * np.arctan(np.exp(y / self.R)) - np.pi / 2)
        return lon, lat


# === Helpers ===

class TestRounding:
    """Tests for floor_to_multiple / ceil_to_multiple."""

    def test_floor(self):
        assert floor_to_multiple(23, 10) == 20
        assert floor_to_multiple(30, 10) == 30
        assert floor_to_multiple(0, 10) == 0

    def test_ceil(self):
        assert ceil_to_multiple(23, 10) == 30
        assert ceil_to_multiple(30, 10) == 30
        assert ceil_to_multiple(85, 30) == 90

    def test_fractional_step(self):
        """Float drift does not push an exact multiple to the next one."""
        assert floor_to_multiple(0.3, 0.1) == pytest.approx(0.3)
        assert ceil_to_multiple(0.3, 0.1) == pytest.approx(0.3)
        assert floor_to_multiple(0.25, 0.1) == pytest.approx(0.2)
        assert ceil_to_multiple(0.25, 0.1) == pytest.approx(0.3)


class TestFormatDegrees:
    """Tests for label text."""

    def test_integers(self):
        assert format_degrees(30) == "30"
        assert format_degrees(-85) == "-85"
        assert format_degrees(180.0) == "180"

    def test_fractions(self):
        assert format_degrees(12.5) == "12.5"
        assert format_degrees(0.001) == "0.001"

    def test_negative_zero(self):
        """Zero never carries a sign."""
        assert format_degrees(-0.0) == "0"
        assert format_degrees(0) == "0"


class TestStepValues:
    """Tests for step_values (candidate magnitudes on one axis)."""

    def test_latitude_limit_visited(self):
        """85 is visited even though it is not a multiple of 30."""
        assert step_values(0, 85, 30, 85) == [0, 30, 60, 85]

    def test_end_past_limit(self):
        """A rounded-up end beyond the limit still stops at the limit."""
        assert step_values(0, 90, 30, 85) == [0, 30, 60, 85]

    def test_longitude_exact_multiple(self):
        """180 is a multiple of 30 and appears once."""
        assert step_values(0, 180, 30, 180) == [0, 30, 60, 90, 120, 150, 180]

    def test_overshoot_to_limit(self):
        """175 + 7 overshoots 180, so 180 itself comes next."""
        result = step_values(0, 182, 7, 180)
        assert result[-2:] == [175, 180]
        assert len(result) == 27

    def test_end_below_limit(self):
        """Scanning stops at end when end is below the limit."""
        assert step_values(0, 60, 30, 85) == [0, 30, 60]
        assert step_values(20, 40, 10, 85) == [20, 30, 40]

    def test_single_value(self):
        assert step_values(60, 60, 30, 85) == [60]
        assert step_values(85, 85, 5, 85) == [85]

    def test_start_after_end(self):
        assert step_values(40, 30, 10, 85) == []

    def test_fractional_step_snapped(self):
        """Values are exact multiples, not accumulated float sums."""
        result = step_values(0, 1, 0.1, 85)
        assert len(result) == 11
        assert result[3] == 0.3
        assert result[-1] == 1.0

    def test_minimum_step(self):
        """Smallest step still terminates with the limit as the last value."""
        result = step_values(0, 85, 0.001, 85)
        assert result[-1] == 85
        assert len(result) == 85001
        assert all(b > a for a, b in zip(result, result[1:]))

    def test_non_positive_step(self):
        with pytest.raises(ValueError):
            step_values(0, 85, 0, 85)
        with pytest.raises(ValueError):
            step_values(0, 85, -1, 85)
        with pytest.raises(ValueError):
            step_values(0, 85, math.nan, 85)


class TestSelectStepRange:
    """Tests for the step range decision table."""

    def extent(self, start, finish, start_deg=-70.3, finish_deg=-23, world_size=256, limit=85, step=10):
        return AxisExtent(
            start=start, finish=finish, start_deg=start_deg, finish_deg=finish_deg,
            world_size=world_size, limit=limit, step=step,
        )

    def test_spans_both_edges(self):
        """Viewport wider than the world scans everything."""
        r = select_step_range(self.extent(-10, 300))
        assert (r.start, r.end, r.case) == (0, 85, "spans_both_edges")

    def test_past_near_edge_across_seam(self):
        r = select_step_range(self.extent(-10, 200))
        assert (r.start, r.end, r.case) == (0, 85, "past_near_edge_across_seam")

    def test_past_far_edge_across_seam(self):
        r = select_step_range(self.extent(100, 300, limit=180))
        assert (r.start, r.end, r.case) == (0, 180, "past_far_edge_across_seam")

    def test_before_seam(self):
        """Magnitudes shrink toward the seam, so finish gives the start."""
        r = select_step_range(self.extent(10, 100, start_deg=-70.3, finish_deg=-23))
        assert (r.start, r.end, r.case) == (20, 80, "before_seam")

    def test_before_seam_past_edge(self):
        """Leading edge past the world is replaced by the limit."""
        r = select_step_range(self.extent(-10, 100, start_deg=-70.3, finish_deg=-23))
        assert (r.start, r.end, r.case) == (20, 90, "before_seam_past_edge")
        assert step_values(r.start, r.end, 10, 85)[-1] == 85

    def test_after_seam(self):
        r = select_step_range(self.extent(150, 200, start_deg=20.1, finish_deg=55))
        assert (r.start, r.end, r.case) == (20, 60, "after_seam")

    def test_after_seam_past_edge(self):
        """Trailing edge past the world is replaced by the limit."""
        r = select_step_range(self.extent(150, 300, start_deg=20.1, finish_deg=55))
        assert (r.start, r.end, r.case) == (20, 90, "after_seam_past_edge")

    def test_straddles_seam(self):
        """Viewport across the seam scans from 0 to the larger edge."""
        r = select_step_range(self.extent(100, 200, start_deg=-12, finish_deg=33))
        assert (r.start, r.end, r.case) == (0, 40, "straddles_seam")

    def test_first_match_wins(self):
        """Spanning both edges also satisfies the later rows."""
        e = self.extent(-10, 300)
        matching = [rule.case for rule in STEP_RANGE_RULES if rule.applies(e)]
        assert matching[0] == "spans_both_edges"
        assert len(matching) > 1

    def test_last_rule_always_applies(self):
        assert STEP_RANGE_RULES[-1].applies(self.extent(128, 128))


# === Full computation ===

class TestWholeWorldView:
    """Zoomed-out view where the whole world fits in the viewport."""

    def test_latitude_values_and_order(self, world_view, tiles, config30):
        """Zero first, then the upper/lower pair for each magnitude."""
        result = compute_graticule(world_view, tiles, config30)
        assert values(result, LATITUDE) == [0, -30, 30, -60, 60, -85, 85]

    def test_longitude_values(self, world_view, tiles, config30):
        result = compute_graticule(world_view, tiles, config30)
        lon = values(result, LONGITUDE)
        assert sorted(lon) == [-180, -150, -120, -90, -60, -30, 0, 30, 60, 90, 120, 150, 180]
        assert lon[0] == 0

    def test_latitude_lines_come_first(self, world_view, tiles, config30):
        result = compute_graticule(world_view, tiles, config30)
        axes = [line.axis for line in result.lines]
        assert axes == sorted(axes, key=lambda a: a != LATITUDE)

    def test_equator_position(self, world_view, tiles, config30):
        """Equator sits at the vertical center, with a "0" label."""
        result = compute_graticule(world_view, tiles, config30)
        equator = [line for line in result.lines_for_axis(LATITUDE) if line.value == 0]
        assert len(equator) == 1
        assert equator[0].anchor[1] == pytest.approx(500)

        zero_labels = [label for label in result.labels if label.axis == LATITUDE and label.text == "0"]
        assert len(zero_labels) == 1
        assert zero_labels[0].position == pytest.approx((0, 505))
        assert zero_labels[0].rotation == 0

    def test_upper_latitudes_are_negative(self, world_view, tiles, config30):
        """Lines above the equator carry negative values."""
        result = compute_graticule(world_view, tiles, config30)
        for line in result.lines_for_axis(LATITUDE):
            y = line.anchor[1]
            if line.value < 0:
                assert y < 500
            elif line.value > 0:
                assert y > 500

    def test_latitude_segment_spans_world(self, world_view, tiles, config30):
        """Parallels run across the world only, not the whole viewport."""
        result = compute_graticule(world_view, tiles, config30)
        line = result.lines_for_axis(LATITUDE)[0]
        assert line.anchor[0] == pytest.approx(372)
        assert line.segment == pytest.approx((0, 0, 256, 0))
        x1, _, x2, _ = line.absolute_segment
        assert (x1, x2) == pytest.approx((372, 628))

    def test_antimeridian_at_world_edges(self, world_view, tiles, config30):
        result = compute_graticule(world_view, tiles, config30)
        by_value = {line.value: line for line in result.lines_for_axis(LONGITUDE)}
        assert by_value[-180].anchor[0] == pytest.approx(372)
        assert by_value[180].anchor[0] == pytest.approx(628)
        assert by_value[0].anchor[0] == pytest.approx(500)

    def test_longitude_labels(self, world_view, tiles, config30):
        """Meridian labels sit left of the line, rotated 90°."""
        result = compute_graticule(world_view, tiles, config30)
        labels = [label for label in result.labels if label.axis == LONGITUDE]
        lines = result.lines_for_axis(LONGITUDE)
        for label, line in zip(labels, lines):
            assert label.rotation == 90
            assert label.value == line.value
            assert label.position == pytest.approx((line.anchor[0] - 5, 0))
            assert label.text == format_degrees(line.value)

    def test_one_label_per_line(self, world_view, tiles, config30):
        result = compute_graticule(world_view, tiles, config30)
        assert len(result.labels) == len(result.lines) == 20
        assert [label.value for label in result.labels] == [line.value for line in result.lines]

    def test_line_style(self, world_view, tiles, config30):
        result = compute_graticule(world_view, tiles, config30)
        style = result.lines[0].style
        assert style.stroke == "#6d5b33"
        assert style.stroke_width == 3
        assert style.dasharray == "4,2"


class TestPartialViews:
    """Zoomed-in views that only see part of the world."""

    def test_upper_half(self, tiles):
        """View above the equator, left/right edges inside the world."""
        viewport = Viewport(width_px=1000, height_px=400, center_x=0.5, center_y=0.25, zoom=11)
        config = GraticuleConfig(latitudes_step=10, longitudes_step=10, auto_step=False)
        result = compute_graticule(viewport, tiles, config, debug=True)

        assert result.debug["world_size"] == 2048
        assert result.debug["latitude_range"] == {"start": 40, "end": 80, "case": "before_seam"}
        assert sorted(values(result, LATITUDE)) == [-70, -60, -50]

        assert result.debug["longitude_range"]["case"] == "straddles_seam"
        assert sorted(values(result, LONGITUDE)) == [v * 10 for v in range(-8, 9)]

    def test_lower_half(self, tiles):
        viewport = Viewport(width_px=1000, height_px=400, center_x=0.5, center_y=0.75, zoom=11)
        config = GraticuleConfig(latitudes_step=10, longitudes_step=10, auto_step=False)
        result = compute_graticule(viewport, tiles, config, debug=True)

        assert result.debug["latitude_range"]["case"] == "after_seam"
        assert sorted(values(result, LATITUDE)) == [50, 60, 70]

    def test_segment_clipped_to_viewport(self, tiles):
        """World wider than the viewport: parallels span exactly the viewport."""
        viewport = Viewport(width_px=1000, height_px=400, center_x=0.5, center_y=0.25, zoom=11)
        config = GraticuleConfig(latitudes_step=10, longitudes_step=10, auto_step=False)
        result = compute_graticule(viewport, tiles, config)

        for line in result.lines_for_axis(LATITUDE):
            x1, _, x2, _ = line.absolute_segment
            assert (x1, x2) == pytest.approx((0, 1000))

    def test_segment_clipped_at_world_edge(self, tiles):
        """Left edge past the world: parallels start where the world starts."""
        viewport = Viewport(width_px=1000, height_px=400, center_x=0.1, center_y=0.25, zoom=11)
        config = GraticuleConfig(latitudes_step=10, longitudes_step=10, auto_step=False)
        result = compute_graticule(viewport, tiles, config)

        line = result.lines_for_axis(LATITUDE)[0]
        x1, _, x2, _ = line.absolute_segment
        assert x1 == pytest.approx(295.2)
        assert x2 == pytest.approx(1000)

    def test_world_corner(self, tiles):
        """Viewport centered on the world's top-left corner."""
        viewport = Viewport(width_px=1000, height_px=1000, center_x=0, center_y=0, zoom=8)
        config = GraticuleConfig(latitudes_step=30, longitudes_step=30, auto_step=False)
        result = compute_graticule(viewport, tiles, config, debug=True)

        assert result.debug["latitude_range"]["case"] == "spans_both_edges"
        assert result.debug["longitude_range"]["case"] == "spans_both_edges"
        assert len(result.lines_for_axis(LATITUDE)) == 7
        assert len(result.lines_for_axis(LONGITUDE)) == 13

    def test_near_pole(self, tiles):
        """Leading edge past the top of the world: -85 is reached exactly."""
        viewport = Viewport(width_px=1000, height_px=1000, center_x=0.5, center_y=0.001, zoom=12)
        config = GraticuleConfig(latitudes_step=1, longitudes_step=1, auto_step=False)
        result = compute_graticule(viewport, tiles, config, debug=True)

        assert result.debug["latitude_range"]["case"] == "before_seam_past_edge"
        lat = values(result, LATITUDE)
        assert min(lat) == -85
        assert all(abs(v) <= 85 for v in lat)

    def test_near_antimeridian(self, tiles):
        viewport = Viewport(width_px=1000, height_px=1000, center_x=0.001, center_y=0.5, zoom=12)
        config = GraticuleConfig(latitudes_step=1, longitudes_step=1, auto_step=False)
        result = compute_graticule(viewport, tiles, config, debug=True)

        assert result.debug["longitude_range"]["case"] == "before_seam_past_edge"
        lon = values(result, LONGITUDE)
        assert min(lon) == -180
        assert all(abs(v) <= 180 for v in lon)

    def test_right_edge_on_seam(self, tiles, config30):
        """Left edge past the world, right edge exactly on the seam.

        The left edge must read as -180, not a wrapped longitude, so the
        western meridians stay in range.
        """
        viewport = Viewport(width_px=200, height_px=200, center_x=0.109375, center_y=0.5, zoom=8)
        result = compute_graticule(viewport, tiles, config30, debug=True)

        assert result.debug["left"] == -72
        assert result.debug["right"] == 128
        assert result.debug["longitude_extent_deg"][0] == pytest.approx(-180)
        assert result.debug["longitude_range"]["case"] == "straddles_seam"
        assert result.debug["longitude_range"]["end"] == 180
        assert sorted(values(result, LONGITUDE)) == [-180, -150, -120, -90, -60, -30]

    def test_seam_edge_continuous(self, tiles, config30):
        """Nudging the view off the seam only adds the line at the border."""
        exact = Viewport(width_px=200, height_px=200, center_x=0.109375, center_y=0.5, zoom=8)
        nudged = Viewport(width_px=200, height_px=200, center_x=0.109376, center_y=0.5, zoom=8)

        exact_lon = set(values(compute_graticule(exact, tiles, config30), LONGITUDE))
        nudged_lon = set(values(compute_graticule(nudged, tiles, config30), LONGITUDE))
        assert nudged_lon - exact_lon == {0}


VIEWPORT_CASES = [
    (0.5, 0.5, 8),
    (0.1, 0.9, 9.4),
    (0.0, 0.0, 12),
    (1.0, 1.0, 10),
    (0.25, 0.75, 11.5),
    (0.49, 0.51, 15),
    (0.9, 0.02, 13),
]
STEP_CASES = [(30, 30), (7, 13), (0.5, 1)]


class TestInvariants:
    """Properties that hold for every viewport."""

    @pytest.mark.parametrize("center_x,center_y,zoom", VIEWPORT_CASES)
    @pytest.mark.parametrize("lat_step,lon_step", STEP_CASES)
    def test_properties(self, tiles, center_x, center_y, zoom, lat_step, lon_step):
        """No duplicates, values within limits, segments inside the viewport."""
        viewport = Viewport(width_px=900, height_px=700, center_x=center_x, center_y=center_y, zoom=zoom)
        config = GraticuleConfig(latitudes_step=lat_step, longitudes_step=lon_step, auto_step=False)
        result = compute_graticule(viewport, tiles, config)

        lat = values(result, LATITUDE)
        lon = values(result, LONGITUDE)
        assert len(lat) == len(set(lat))
        assert len(lon) == len(set(lon))
        assert all(abs(v) <= 85 for v in lat)
        assert all(abs(v) <= 180 for v in lon)

        for line in result.lines:
            x1, y1, x2, y2 = line.absolute_segment
            for x in (x1, x2):
                assert -EPSILON <= x <= viewport.width_px + EPSILON
            for y in (y1, y2):
                assert -EPSILON <= y <= viewport.height_px + EPSILON

        assert len(result.labels) == len(result.lines)

    @pytest.mark.parametrize("center_x,center_y,zoom", VIEWPORT_CASES)
    def test_idempotent(self, tiles, config30, center_x, center_y, zoom):
        """Same input, same output."""
        viewport = Viewport(width_px=800, height_px=600, center_x=center_x, center_y=center_y, zoom=zoom)
        assert compute_graticule(viewport, tiles, config30) == compute_graticule(viewport, tiles, config30)

    def test_limits_included_when_in_range(self, world_view, tiles):
        """Non-dividing step still draws the 85° and 180° lines."""
        config = GraticuleConfig(latitudes_step=20, longitudes_step=50, auto_step=False)
        result = compute_graticule(world_view, tiles, config)
        assert {-85, 85} <= set(values(result, LATITUDE))
        assert {-180, 180} <= set(values(result, LONGITUDE))


class TestSkippedOutput:
    """Inputs that produce no drawing instructions."""

    def test_show_false(self, world_view, tiles):
        config = GraticuleConfig(show=False)
        result = compute_graticule(world_view, tiles, config)
        assert result.lines == ()
        assert result.labels == ()

    @pytest.mark.parametrize("viewport", [
        Viewport(width_px=0, height_px=1000),
        Viewport(width_px=1000, height_px=-5),
        Viewport(width_px=1000, height_px=1000, center_x=math.nan),
        Viewport(width_px=1000, height_px=1000, zoom=math.inf),
    ])
    def test_degenerate_viewport(self, tiles, config30, viewport):
        result = compute_graticule(viewport, tiles, config30)
        assert result == GraticuleResult()

    def test_degenerate_debug(self, tiles, config30):
        result = compute_graticule(Viewport(width_px=0, height_px=0), tiles, config30, debug=True)
        assert result.lines == ()
        assert result.debug == {"skipped": True}


class TestStepClamping:
    """Out-of-range steps are clamped, never raised."""

    def test_tiny_and_negative_steps(self, tiles):
        viewport = Viewport(width_px=1000, height_px=1000, center_x=0.5, center_y=0.5, zoom=20)
        config = GraticuleConfig(latitudes_step=0, longitudes_step=-5, auto_step=False)
        result = compute_graticule(viewport, tiles, config, debug=True)

        assert result.debug["latitudes_step"] == 0.001
        assert result.debug["longitudes_step"] == 0.001
        lat = sorted(values(result, LATITUDE))
        assert len(lat) > 1
        for a, b in zip(lat, lat[1:]):
            assert b - a == pytest.approx(0.001)

    def test_huge_step(self, world_view, tiles):
        """A step above 180 is clamped to 180."""
        config = GraticuleConfig(latitudes_step=1000, longitudes_step=1000, auto_step=False)
        result = compute_graticule(world_view, tiles, config)
        assert values(result, LATITUDE) == [0, -85, 85]
        assert values(result, LONGITUDE) == [0, -180, 180]

    def test_nan_step_uses_standard(self, world_view, tiles):
        config = GraticuleConfig(latitudes_step=math.nan, longitudes_step=math.nan, auto_step=False)
        result = compute_graticule(world_view, tiles, config)
        assert values(result, LONGITUDE) == [0, -120, 120, -180, 180]


class TestProjectionHook:
    """Tests for passing a projection explicitly."""

    def test_spherical_projection(self, world_view, tiles, config30):
        """Any projection with array forward/inverse can drive the engine."""
        result = compute_graticule(world_view, tiles, config30, projection=SphericalMercator())
        default = compute_graticule(world_view, tiles, config30)

        assert values(result, LATITUDE) == values(default, LATITUDE)
        for ours, theirs in zip(result.lines, default.lines):
            assert ours.anchor == pytest.approx(theirs.anchor, abs=1e-6)


class TestDebugInfo:
    """Tests for the debug dictionary."""

    def test_debug_off_by_default(self, world_view, tiles, config30):
        assert compute_graticule(world_view, tiles, config30).debug is None

    def test_debug_values(self, world_view, tiles, config30):
        result = compute_graticule(world_view, tiles, config30, debug=True)
        debug = result.debug
        assert debug["world_size"] == 256
        assert debug["rounded_zoom"] == 0
        assert debug["left"] == pytest.approx(-372)
        assert debug["right"] == pytest.approx(628)
        assert debug["latitude_candidates"] == 4
        assert debug["longitude_candidates"] == 7
        assert debug["latitude_extent_deg"] == [-85, 85]

    def test_to_dict(self, world_view, tiles, config30):
        data = compute_graticule(world_view, tiles, config30, debug=True).to_dict()
        assert len(data["lines"]) == 20
        assert data["lines"][0]["axis"] == LATITUDE
        assert data["labels"][0]["text"] == "0"
        assert "debug" in data
