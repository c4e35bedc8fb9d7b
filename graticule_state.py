"""
graticule_state.py - Viewport, tile geometry and graticule configuration

Flat immutable records consumed by the graticule engine, plus the host-side
helpers that derive world size from zoom, clamp step sizes, rescale steps on
zoom change, and read/write JSON configuration files.
"""

import json
import math
from dataclasses import dataclass, asdict, fields, replace
from pathlib import Path
from typing import Optional, Tuple

# === Configuration ===
CONFIG_PATH = Path("graticule_config.json")
DEFAULTS_PATH = Path(__file__).parent / "graticule_defaults.json"

# Axis limits (degrees); Web Mercator is not drawn past 85° latitude
LATITUDE_LIMIT = 85
LONGITUDE_LIMIT = 180

# Step bounds and standard step (degrees)
MIN_STEP = 0.001
MAX_STEP = 180
STANDARD_STEP = 120

# Tile layer defaults
TILE_SIZE_PX = 256
MAX_ZOOM = 18


@dataclass(frozen=True)
class Viewport:
    """Visible part of the map.

    Attributes:
        width_px: Viewport width in screen pixels
        height_px: Viewport height in screen pixels
        center_x: Normalized world x of the viewport center (0..1)
        center_y: Normalized world y of the viewport center (0..1)
        zoom: Map zoom (log2 of the world pixel size)
    """
    width_px: float
    height_px: float
    center_x: float = 0.5
    center_y: float = 0.5
    zoom: float = 8.0

    @property
    def is_degenerate(self) -> bool:
        """True when nothing can be drawn into this viewport."""
        values = (self.width_px, self.height_px, self.center_x, self.center_y, self.zoom)
        if not all(math.isfinite(v) for v in values):
            return True
        return self.width_px <= 0 or self.height_px <= 0


@dataclass(frozen=True)
class TileGeometry:
    """Static tile layer settings of a map instance."""
    tile_size_px: int = TILE_SIZE_PX
    max_zoom: int = MAX_ZOOM

    def __post_init__(self):
        if not self.tile_size_px > 0:
            raise ValueError(f"tile_size_px must be positive, got {self.tile_size_px}")
        if not self.max_zoom >= 0:
            raise ValueError(f"max_zoom must be non-negative, got {self.max_zoom}")

    def rounded_zoom(self, zoom: float) -> int:
        """Nearest integral tile zoom for a map zoom, clamped to [0, max_zoom].

        Halves round up, matching how the tile layer picks its level.
        """
        tile_zoom = zoom - math.log2(self.tile_size_px)
        if math.isnan(tile_zoom):
            return 0
        tile_zoom = max(0.0, min(float(self.max_zoom), tile_zoom))
        return int(math.floor(tile_zoom + 0.5))

    def world_size(self, zoom: float) -> int:
        """Pixel size of the whole world at the nearest integral tile zoom."""
        return self.tile_size_px * 2 ** self.rounded_zoom(zoom)


@dataclass(frozen=True)
class GraticuleConfig:
    """Graticule settings owned by the host.

    Attributes:
        latitudes_step: Spacing between latitude lines (degrees)
        longitudes_step: Spacing between longitude lines (degrees)
        latitudes_step_standard: Latitude step at tile zoom 0, used by auto step
        longitudes_step_standard: Longitude step at tile zoom 0, used by auto step
        min_step: Smallest allowed step
        max_step: Largest allowed step
        show: Whether the graticule is drawn at all
        auto_step: Whether steps follow the zoom level
    """
    latitudes_step: float = STANDARD_STEP
    longitudes_step: float = STANDARD_STEP
    latitudes_step_standard: float = STANDARD_STEP
    longitudes_step_standard: float = STANDARD_STEP
    min_step: float = MIN_STEP
    max_step: float = MAX_STEP
    show: bool = True
    auto_step: bool = True

    def __post_init__(self):
        if not 0 < self.min_step <= self.max_step < math.inf:
            raise ValueError(
                f"Step bounds must satisfy 0 < min_step <= max_step, "
                f"got [{self.min_step}, {self.max_step}]"
            )

    def clamp_step(self, step: float, fallback: Optional[float] = None) -> float:
        """Clamp a step to [min_step, max_step].

        NaN is replaced by fallback (itself clamped), or max_step.
        """
        if math.isnan(step):
            if fallback is None or math.isnan(fallback):
                return self.max_step
            step = fallback
        return max(self.min_step, min(self.max_step, step))

    @property
    def effective_steps(self) -> Tuple[float, float]:
        """(latitudes_step, longitudes_step) clamped for use by the engine."""
        return (
            self.clamp_step(self.latitudes_step, self.latitudes_step_standard),
            self.clamp_step(self.longitudes_step, self.longitudes_step_standard),
        )


def rescale_steps(config: GraticuleConfig, zoom: float, tiles: TileGeometry) -> GraticuleConfig:
    """Rescale both steps to the zoom level when auto step is on.

    step = standard_step / 2^rounded_zoom, clamped to the step bounds.
    Returns the config unchanged when auto step or the graticule is off.
    """
    if not (config.auto_step and config.show):
        return config

    factor = 2 ** tiles.rounded_zoom(zoom)
    return replace(
        config,
        latitudes_step=config.clamp_step(config.latitudes_step_standard / factor),
        longitudes_step=config.clamp_step(config.longitudes_step_standard / factor),
    )


def _as_float(name: str, value) -> float:
    if isinstance(value, bool):
        raise ValueError(f"'{name}' must be a number, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"'{name}' must be a number, got {value!r}") from None
    if not math.isfinite(number):
        raise ValueError(f"'{name}' must be finite, got {value!r}")
    return number


def _as_int(name: str, value) -> int:
    number = _as_float(name, value)
    if not number.is_integer():
        raise ValueError(f"'{name}' must be a whole number, got {value!r}")
    return int(number)


def _as_bool(name: str, value) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"'{name}' must be true or false, got {value!r}")
    return value


# Field type -> parser for JSON values
FIELD_PARSERS = {
    float: _as_float,
    int: _as_int,
    bool: _as_bool,
}


def _from_dict(cls, data: Optional[dict]):
    """Build a dataclass from a dict, ignoring unknown keys.

    Values are checked against the field types; numbers must be finite.

    Raises:
        ValueError: If a value has the wrong type or the record is invalid
    """
    if data is None:
        return cls()
    if not isinstance(data, dict):
        raise ValueError(f"Expected an object for {cls.__name__}, got {type(data).__name__}")
    values = {
        f.name: FIELD_PARSERS[f.type](f.name, data[f.name])
        for f in fields(cls)
        if f.name in data
    }
    return cls(**values)


def config_from_dict(data: dict) -> Tuple[Viewport, TileGeometry, GraticuleConfig]:
    """Map a JSON document onto the configuration records.

    Expected layout (all sections optional, viewport size defaults to 1000px):
        {"viewport": {...}, "tiles": {...}, "graticule": {...}}
    """
    if not isinstance(data, dict):
        raise ValueError(f"Expected a configuration object, got {type(data).__name__}")
    viewport_data = data.get("viewport") or {}
    if not isinstance(viewport_data, dict):
        raise ValueError(f"Expected an object for viewport, got {type(viewport_data).__name__}")
    viewport = _from_dict(Viewport, {"width_px": 1000, "height_px": 1000, **viewport_data})
    tiles = _from_dict(TileGeometry, data.get("tiles"))
    graticule = _from_dict(GraticuleConfig, data.get("graticule"))
    return viewport, tiles, graticule


def config_to_dict(viewport: Viewport, tiles: TileGeometry, graticule: GraticuleConfig) -> dict:
    """Inverse of config_from_dict."""
    return {
        "viewport": asdict(viewport),
        "tiles": asdict(tiles),
        "graticule": asdict(graticule),
    }


def load_config_from_file(
    config_path: Path = CONFIG_PATH
) -> Optional[Tuple[Viewport, TileGeometry, GraticuleConfig]]:
    """Load configuration from a JSON file if it exists."""
    config_path = Path(config_path)
    if not config_path.exists():
        return None

    print(f"Loading configuration from {config_path}...")
    try:
        with open(config_path) as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {config_path}: {e}") from e

    return config_from_dict(data)


def save_config_to_file(
    config_path: Path,
    viewport: Viewport,
    tiles: TileGeometry,
    graticule: GraticuleConfig
) -> None:
    """Write configuration to a JSON file."""
    with open(config_path, "w") as f:
        json.dump(config_to_dict(viewport, tiles, graticule), f, indent=2)
