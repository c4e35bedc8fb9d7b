#!/usr/bin/env python3
"""
graticule_map.py - Render a latitude/longitude graticule for a map viewport

Reads the viewport, tile and graticule settings from graticule_config.json
(or --config), computes the visible grid lines, and writes them as SVG and
optionally as JSON descriptors.

Usage:
    python graticule_map.py
    python graticule_map.py --config my_view.json --output output/view.svg --json output/view.json
"""

import argparse
import json
import sys
from pathlib import Path

from graticule import LATITUDE, LONGITUDE, compute_graticule
from graticule_state import (
    CONFIG_PATH,
    GraticuleConfig,
    TileGeometry,
    Viewport,
    load_config_from_file,
    rescale_steps,
)
from render_helpers import render_graticule_svg, world_rect_for

OUTPUT_DIR = Path("output")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Render a latitude/longitude graticule for a tiled map viewport",
        epilog="""Examples:
  python graticule_map.py
  python graticule_map.py --config views/pacific.json --debug
  python graticule_map.py --output output/world.svg --json output/world.json
""",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument("--config", default=str(CONFIG_PATH),
                        help="JSON configuration file (default: graticule_config.json)")
    parser.add_argument("--output", default=str(OUTPUT_DIR / "graticule.svg"),
                        help="SVG output path")
    parser.add_argument("--json", dest="json_path", default=None,
                        help="Also write line and label descriptors as JSON")
    parser.add_argument("--debug", action="store_true",
                        help="Include intermediate values in the output")
    return parser


def main(argv=None) -> int:
    """Generate a graticule drawing."""
    args = build_parser().parse_args(argv)

    try:
        loaded = load_config_from_file(Path(args.config))
    except (ValueError, TypeError) as e:
        print(f"Error: {e}")
        return 1

    if loaded is None:
        print(f"No {args.config} found, using default configuration...")
        viewport, tiles, config = Viewport(width_px=1000, height_px=1000), TileGeometry(), GraticuleConfig()
    else:
        viewport, tiles, config = loaded

    config = rescale_steps(config, viewport.zoom, tiles)
    latitudes_step, longitudes_step = config.effective_steps

    print("=" * 60)
    print("Graticule Generator")
    print("=" * 60)
    print(f"Viewport: {viewport.width_px:.0f} x {viewport.height_px:.0f}px "
          f"@ center ({viewport.center_x:.4f}, {viewport.center_y:.4f}), zoom {viewport.zoom:.2f}")
    print(f"World size: {tiles.world_size(viewport.zoom)}px "
          f"(tile {tiles.tile_size_px}px, max zoom {tiles.max_zoom})")
    print(f"Steps: {latitudes_step:g}° latitude, {longitudes_step:g}° longitude"
          f"{' (auto)' if config.auto_step else ''}")

    if not config.show:
        print("  Graticule is hidden (show = false)")

    result = compute_graticule(viewport, tiles, config, debug=args.debug)

    print(f"  {len(result.lines_for_axis(LATITUDE))} latitude lines, "
          f"{len(result.lines_for_axis(LONGITUDE))} longitude lines, "
          f"{len(result.labels)} labels")

    output_path = Path(args.output)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    render_graticule_svg(result, viewport, str(output_path), world_rect=world_rect_for(viewport, tiles))
    print(f"  Saved SVG to {output_path}")

    if args.json_path:
        json_path = Path(args.json_path)
        json_path.parent.mkdir(parents=True, exist_ok=True)
        with open(json_path, "w") as f:
            json.dump(result.to_dict(), f, indent=2)
        print(f"  Saved descriptors to {json_path}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
