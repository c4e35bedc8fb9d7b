"""
Rendering helper functions for graticule SVG output.

These functions draw the line and label descriptors produced by
graticule.compute_graticule onto an svgwrite Drawing. The engine decides
what is visible; this module only strokes and writes text.
"""

from typing import Iterable, Optional, Tuple

import svgwrite
from shapely.geometry import LineString, box as shapely_box

from graticule import GraticuleResult, GridLine, Label
from graticule_state import TileGeometry, Viewport
from map_utils import Bounds, LayerManager, LayerZOrder, SpaceMapper

# === SVG Style Constants ===
BACKGROUND_COLOR = "#ffffff"
WORLD_FILL_COLOR = "#f5f0e1"      # Parchment tint for the map area
LABEL_COLOR = "#6d5b33"
LABEL_FONT_FAMILY = "sans-serif"
DEBUG_FONT_SIZE = 11
DEBUG_LINE_HEIGHT = 14
DEBUG_COLOR = "#333333"


def world_rect_for(viewport: Viewport, tiles: TileGeometry) -> Bounds:
    """Screen rectangle covered by the whole world."""
    world_size = tiles.world_size(viewport.zoom)
    mapper = SpaceMapper.for_viewport(
        world_size, viewport.center_x, viewport.center_y, viewport.width_px, viewport.height_px
    )
    min_x, min_y = mapper.world_to_screen(0, 0)
    max_x, max_y = mapper.world_to_screen(world_size, world_size)
    return Bounds(min_x=min_x, max_x=max_x, min_y=min_y, max_y=max_y)


def clip_segment(
    segment: Tuple[float, float, float, float],
    width: float,
    height: float
) -> Optional[Tuple[Tuple[float, float], Tuple[float, float]]]:
    """Clip a screen segment to the viewport rectangle.

    Args:
        segment: (x1, y1, x2, y2) in screen pixels
        width: Viewport width
        height: Viewport height

    Returns:
        ((x1, y1), (x2, y2)) of the visible part, or None if nothing is visible
    """
    x1, y1, x2, y2 = segment
    if (x1, y1) == (x2, y2):
        return None

    viewport_bounds = Bounds(min_x=0, max_x=width, min_y=0, max_y=height)
    clipped = LineString([(x1, y1), (x2, y2)]).intersection(shapely_box(*viewport_bounds.as_tuple()))
    if clipped.is_empty or clipped.geom_type != "LineString":
        return None

    coords = list(clipped.coords)
    return (coords[0], coords[-1])


def render_lines(
    lines: Iterable[GridLine],
    layer,
    dwg,
    width: float,
    height: float
) -> int:
    """Render grid lines to an SVG layer.

    Args:
        lines: Line descriptors
        layer: SVG group to add lines to
        dwg: svgwrite Drawing object
        width: Viewport width used for clipping
        height: Viewport height used for clipping

    Returns:
        Number of lines rendered
    """
    count = 0
    for line in lines:
        clipped = clip_segment(line.absolute_segment, width, height)
        if clipped is None:
            continue

        start, end = clipped
        props = {
            'start': start,
            'end': end,
            'stroke': line.style.stroke,
            'stroke_width': line.style.stroke_width,
        }
        if line.style.dash:
            props['stroke_dasharray'] = line.style.dasharray
        layer.add(dwg.line(**props))
        count += 1
    return count


def render_labels(labels: Iterable[Label], layer, dwg) -> int:
    """Render line labels to an SVG layer.

    Labels hang below their insert point (like canvas text with a top
    baseline) and rotate around it.

    Returns:
        Number of labels rendered
    """
    count = 0
    for label in labels:
        x, y = label.position
        text_elem = dwg.text(
            label.text,
            insert=(x, y),
            font_size=label.font_size,
            fill=LABEL_COLOR,
            font_family=LABEL_FONT_FAMILY,
            dominant_baseline="hanging",
        )
        if label.rotation:
            text_elem['transform'] = f"rotate({label.rotation}, {x}, {y})"
        layer.add(text_elem)
        count += 1
    return count


def render_debug(debug: dict, layer, dwg) -> int:
    """Write debug key/value pairs in the top-left corner."""
    count = 0
    for i, (key, value) in enumerate(sorted(debug.items())):
        layer.add(dwg.text(
            f"{key}: {value}",
            insert=(8, 8 + (i + 1) * DEBUG_LINE_HEIGHT),
            font_size=DEBUG_FONT_SIZE,
            fill=DEBUG_COLOR,
            font_family="monospace",
        ))
        count += 1
    return count


def render_graticule_svg(
    result: GraticuleResult,
    viewport: Viewport,
    output_path: Optional[str] = None,
    world_rect: Optional[Bounds] = None,
) -> svgwrite.Drawing:
    """Render a graticule result to an SVG drawing of the viewport size.

    Args:
        result: Output of compute_graticule
        viewport: Viewport the result was computed for
        output_path: Save the drawing here when given
        world_rect: Optional screen bounds of the world, shaded as the map area

    Returns:
        The svgwrite Drawing
    """
    if viewport.is_degenerate:
        width = height = 0
    else:
        width = viewport.width_px
        height = viewport.height_px

    dwg = svgwrite.Drawing(
        output_path or "graticule.svg",
        size=(f"{width:.0f}px", f"{height:.0f}px"),
        viewBox=f"0 0 {width:.0f} {height:.0f}",
    )

    layers = LayerManager(dwg)
    background = layers.register_layer("Background", LayerZOrder.BACKGROUND)
    labels_layer = layers.register_layer("Graticule_Labels", LayerZOrder.GRATICULE_LABELS)
    lines_layer = layers.register_layer("Graticule_Lines", LayerZOrder.GRATICULE_LINES)

    background.add(dwg.rect(insert=(0, 0), size=("100%", "100%"), fill=BACKGROUND_COLOR))
    if world_rect is not None and not viewport.is_degenerate:
        background.add(dwg.rect(
            insert=(world_rect.min_x, world_rect.min_y),
            size=(world_rect.width, world_rect.height),
            fill=WORLD_FILL_COLOR,
        ))

    render_labels(result.labels, labels_layer, dwg)
    render_lines(result.lines, lines_layer, dwg, width, height)

    if result.debug:
        debug_layer = layers.register_layer("Debug", LayerZOrder.DEBUG)
        render_debug(result.debug, debug_layer, dwg)

    layers.assemble()

    if output_path:
        dwg.save()
    return dwg
