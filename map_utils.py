"""
Utility classes for graticule generation.

This module provides reusable components for coordinate transformation
between map units, world pixels, projected meters and screen pixels,
bounds management, and SVG layer management.
"""

import math
from dataclasses import dataclass
from typing import Tuple, List, Dict, Optional, Any

import numpy as np
from pyproj import Transformer

# Valid range of the Web Mercator plane on both axes (meters)
PROJECTED_EXTENT = 20037508.3427892


@dataclass(frozen=True)
class Bounds:
    """Represents a rectangular bounds in a coordinate system.

    Attributes:
        min_x: Western/left boundary
        max_x: Eastern/right boundary
        min_y: Top boundary (screen and world pixels grow downward)
        max_y: Bottom boundary
    """
    min_x: float
    max_x: float
    min_y: float
    max_y: float

    @property
    def width(self) -> float:
        """Width of the bounds."""
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        """Height of the bounds."""
        return self.max_y - self.min_y

    def as_tuple(self) -> Tuple[float, float, float, float]:
        """Return bounds as (min_x, min_y, max_x, max_y) tuple."""
        return (self.min_x, self.min_y, self.max_x, self.max_y)


@dataclass(frozen=True)
class LinearInterpolation:
    """Affine map through two points (x0, y0) and (x1, y1).

    y = y0 + (x - x0) * (y1 - y0) / (x1 - x0)

    Works on scalars and numpy arrays alike.
    """
    x0: float
    y0: float
    x1: float
    y1: float

    def __post_init__(self):
        if self.x0 == self.x1:
            raise ValueError("Interpolation points must have distinct x values")

    @property
    def slope(self) -> float:
        return (self.y1 - self.y0) / (self.x1 - self.x0)

    def __call__(self, x):
        return self.y0 + (x - self.x0) * self.slope

    def inverse(self) -> 'LinearInterpolation':
        """Return the interpolation mapping y back to x."""
        return LinearInterpolation(self.y0, self.x0, self.y1, self.x1)


class SpaceMapper:
    """Maps between map units, world pixels, projected meters and screen pixels.

    Built fresh for every viewport. World pixels are measured from the
    top-left corner of the whole map at the current discrete zoom, screen
    pixels from the top-left corner of the viewport.

    Attributes:
        world_size: Pixel size of the whole world
        left: World pixel x of the viewport's left edge
        top: World pixel y of the viewport's top edge
    """

    def __init__(self, world_size: float, left: float, top: float):
        self.world_size = world_size
        self.left = left
        self.top = top

        self.map_to_world = LinearInterpolation(0, 0, 1, world_size)
        self.world_to_meters = LinearInterpolation(
            0, -PROJECTED_EXTENT, world_size, PROJECTED_EXTENT
        )
        self.meters_to_screen_x = LinearInterpolation(
            -PROJECTED_EXTENT, -left, PROJECTED_EXTENT, -left + world_size
        )
        self.meters_to_screen_y = LinearInterpolation(
            -PROJECTED_EXTENT, -top, PROJECTED_EXTENT, -top + world_size
        )

    @classmethod
    def for_viewport(
        cls,
        world_size: float,
        center_x: float,
        center_y: float,
        width: float,
        height: float
    ) -> 'SpaceMapper':
        """Create a mapper for a viewport centered at normalized (center_x, center_y)."""
        left = center_x * world_size - width * 0.5
        top = center_y * world_size - height * 0.5
        return cls(world_size, left, top)

    @property
    def meters_to_world(self) -> LinearInterpolation:
        return self.world_to_meters.inverse()

    def screen_to_world(self, sx: float, sy: float) -> Tuple[float, float]:
        """Convert a screen pixel to a world pixel."""
        return (sx + self.left, sy + self.top)

    def world_to_screen(self, wx: float, wy: float) -> Tuple[float, float]:
        """Convert a world pixel to a screen pixel."""
        return (wx - self.left, wy - self.top)

    def screen_to_meters(self, sx: float, sy: float) -> Tuple[float, float]:
        """Convert a screen pixel to projected meters.

        Equivalent to world_to_meters(screen_to_world(...)) and the exact
        inverse of the meters_to_screen_* maps.
        """
        return (
            self.meters_to_screen_x.inverse()(sx),
            self.meters_to_screen_y.inverse()(sy)
        )

    def meters_to_screen(self, mx: float, my: float) -> Tuple[float, float]:
        """Convert projected meters to a screen pixel."""
        return (self.meters_to_screen_x(mx), self.meters_to_screen_y(my))


class WebMercatorProjection:
    """Geographic <-> projected-meters transform for the tile plane.

    Wraps pyproj transformers between WGS84 (EPSG:4326) and Web Mercator
    (EPSG:3857). Both directions accept scalars or numpy arrays and always
    use (x, y) = (lon, lat) axis order.
    """

    WGS84 = "EPSG:4326"
    WEB_MERCATOR = "EPSG:3857"

    def __init__(self, projected_crs: str = WEB_MERCATOR):
        self.projected_crs = projected_crs
        self._from_wgs84 = Transformer.from_crs(self.WGS84, projected_crs, always_xy=True)
        self._to_wgs84 = Transformer.from_crs(projected_crs, self.WGS84, always_xy=True)

    def forward(self, lon, lat):
        """Convert degrees to projected meters.

        Args:
            lon: Longitude in degrees
            lat: Latitude in degrees

        Returns:
            Tuple of (x_m, y_m)
        """
        return self._from_wgs84.transform(lon, lat)

    def inverse(self, x, y):
        """Convert projected meters to degrees.

        Args:
            x: Easting in meters
            y: Northing in meters

        Returns:
            Tuple of (longitude, latitude)
        """
        return self._to_wgs84.transform(x, y)


def clamp_degrees(value: float, limit: float) -> float:
    """Clamp a degree value to [-limit, limit], keeping its sign.

    NaN (an undefined projection result) clamps to +limit.
    """
    if math.isnan(value):
        return limit
    return max(-limit, min(limit, value))


def as_float_array(values) -> np.ndarray:
    """Coerce a scalar or sequence to a 1-D float array."""
    return np.atleast_1d(np.asarray(values, dtype=float))


class LayerManager:
    """Manages SVG layer groups and their z-ordering.

    Layers are registered with a z-order value (higher = on top).

    Attributes:
        layers: Dictionary mapping layer ID to layer info
    """

    def __init__(self, dwg):
        """Initialize the layer manager.

        Args:
            dwg: svgwrite Drawing object
        """
        self.dwg = dwg
        self.layers: Dict[str, Dict[str, Any]] = {}

    def register_layer(
        self,
        layer_id: str,
        z_order: int,
        visible: bool = True,
        clip_path: Optional[str] = None
    ) -> Any:
        """Register and create a new layer group.

        Args:
            layer_id: Unique identifier for the layer
            z_order: Stacking order (higher values render on top)
            visible: Whether the layer is visible by default
            clip_path: Optional clip-path URL for the layer

        Returns:
            The created SVG group element
        """
        group = self.dwg.g(id=layer_id)

        if not visible:
            group['visibility'] = 'hidden'

        if clip_path:
            group['clip-path'] = clip_path

        self.layers[layer_id] = {
            'group': group,
            'z_order': z_order,
            'visible': visible
        }
        return group

    def get_layers_by_z_order(self) -> List[Any]:
        """Get layer groups sorted by z-order (lowest first)."""
        sorted_layers = sorted(self.layers.values(), key=lambda info: info['z_order'])
        return [info['group'] for info in sorted_layers]

    def assemble(self, parent=None):
        """Add all layers to parent (the drawing by default) in z-order."""
        target = parent if parent is not None else self.dwg
        for layer in self.get_layers_by_z_order():
            target.add(layer)


# Z-order constants for graticule drawings
class LayerZOrder:
    """Standard z-order values for graticule layers.

    Lower values render first (underneath).
    """
    BACKGROUND = 0
    GRATICULE_LABELS = 100
    GRATICULE_LINES = 110
    DEBUG = 1000
