#!/usr/bin/env python3
"""
Graticule - Web Server

A simple Flask server that:
1. Computes graticule lines and labels for a viewport passed as query params
2. Renders the same graticule as SVG
3. Stores default settings for map clients
4. Rescales graticule steps for a new zoom level (auto step)

Usage:
    python map_server.py

Then request e.g. http://localhost:8080/api/graticule.svg?width=1000&height=800&zoom=10
"""

import json
import math
import threading
from dataclasses import asdict

from flask import Flask, request, jsonify, Response

from graticule import compute_graticule
from graticule_state import (
    DEFAULTS_PATH,
    GraticuleConfig,
    TileGeometry,
    Viewport,
    config_from_dict,
    config_to_dict,
    rescale_steps,
    save_config_to_file,
)
from render_helpers import render_graticule_svg, world_rect_for

app = Flask(__name__)

defaults_lock = threading.Lock()

TRUE_VALUES = ('1', 'true', 'yes', 'on')
FALSE_VALUES = ('0', 'false', 'no', 'off')


def load_defaults() -> dict:
    """Read stored defaults, or the built-in ones when none are saved."""
    if DEFAULTS_PATH.exists():
        with open(DEFAULTS_PATH) as f:
            return json.load(f)
    return config_to_dict(Viewport(width_px=1000, height_px=1000), TileGeometry(), GraticuleConfig())


def parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in TRUE_VALUES:
        return True
    if lowered in FALSE_VALUES:
        return False
    raise ValueError(f"Not a boolean: {value!r}")


def parse_request_config(args):
    """Build (viewport, tiles, config) from query parameters over the stored defaults.

    Raises:
        ValueError: If a parameter cannot be parsed
    """
    defaults = load_defaults()
    viewport_data = dict(defaults.get('viewport') or {})
    tiles_data = dict(defaults.get('tiles') or {})
    graticule_data = dict(defaults.get('graticule') or {})

    float_params = {
        'width': (viewport_data, 'width_px'),
        'height': (viewport_data, 'height_px'),
        'center_x': (viewport_data, 'center_x'),
        'center_y': (viewport_data, 'center_y'),
        'zoom': (viewport_data, 'zoom'),
        'latitudes_step': (graticule_data, 'latitudes_step'),
        'longitudes_step': (graticule_data, 'longitudes_step'),
    }
    int_params = {
        'tile_size': (tiles_data, 'tile_size_px'),
        'max_zoom': (tiles_data, 'max_zoom'),
    }
    bool_params = {
        'auto_step': (graticule_data, 'auto_step'),
        'show': (graticule_data, 'show'),
    }

    for name, (target, key) in float_params.items():
        if name in args:
            try:
                value = float(args[name])
            except ValueError:
                raise ValueError(f"Invalid number for '{name}': {args[name]!r}")
            if not math.isfinite(value):
                raise ValueError(f"Non-finite value for '{name}': {args[name]!r}")
            target[key] = value
    for name, (target, key) in int_params.items():
        if name in args:
            try:
                target[key] = int(args[name])
            except ValueError:
                raise ValueError(f"Invalid integer for '{name}': {args[name]!r}")
    for name, (target, key) in bool_params.items():
        if name in args:
            target[key] = parse_bool(args[name])

    viewport, tiles, config = config_from_dict({
        'viewport': viewport_data,
        'tiles': tiles_data,
        'graticule': graticule_data,
    })

    # Explicit steps win over auto step
    if 'latitudes_step' not in args and 'longitudes_step' not in args:
        config = rescale_steps(config, viewport.zoom, tiles)

    return viewport, tiles, config


@app.route('/api/graticule', methods=['GET'])
def get_graticule():
    """Compute graticule lines and labels as JSON."""
    try:
        viewport, tiles, config = parse_request_config(request.args)
        debug = parse_bool(request.args.get('debug', 'false'))
    except (ValueError, TypeError, KeyError) as e:
        return jsonify({'error': str(e)}), 400

    try:
        result = compute_graticule(viewport, tiles, config, debug=debug)
        payload = result.to_dict()
        payload['config'] = config_to_dict(viewport, tiles, config)
        return jsonify(payload)
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@app.route('/api/graticule.svg', methods=['GET'])
def get_graticule_svg():
    """Render the graticule for the requested viewport as SVG."""
    try:
        viewport, tiles, config = parse_request_config(request.args)
        debug = parse_bool(request.args.get('debug', 'false'))
    except (ValueError, TypeError, KeyError) as e:
        return jsonify({'error': str(e)}), 400

    try:
        result = compute_graticule(viewport, tiles, config, debug=debug)
        dwg = render_graticule_svg(result, viewport, world_rect=world_rect_for(viewport, tiles))
        return Response(dwg.tostring(), mimetype='image/svg+xml')
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@app.route('/api/defaults', methods=['GET'])
def get_defaults():
    """Get graticule defaults from graticule_defaults.json."""
    try:
        return jsonify(load_defaults())
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@app.route('/api/defaults', methods=['POST'])
def save_defaults():
    """Validate and save graticule defaults to graticule_defaults.json."""
    defaults = request.get_json(silent=True)
    if not defaults:
        return jsonify({'error': 'No defaults provided'}), 400

    try:
        viewport, tiles, config = config_from_dict(defaults)
    except (ValueError, TypeError, KeyError) as e:
        return jsonify({'error': f'Invalid defaults: {e}'}), 400

    try:
        with defaults_lock:
            save_config_to_file(DEFAULTS_PATH, viewport, tiles, config)
        return jsonify({'success': True, 'message': 'Defaults saved'})
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@app.route('/api/auto-step', methods=['POST'])
def auto_step():
    """Rescale graticule steps for a zoom level.

    Body: {"zoom": 10.3, "graticule": {...}, "tiles": {...}}
    """
    body = request.get_json(silent=True)
    if not body or 'zoom' not in body:
        return jsonify({'error': 'zoom is required'}), 400

    try:
        _, tiles, config = config_from_dict({
            'tiles': body.get('tiles'),
            'graticule': body.get('graticule'),
        })
        zoom = float(body['zoom'])
        if not math.isfinite(zoom):
            raise ValueError(f"zoom must be finite, got {body['zoom']!r}")
    except (ValueError, TypeError, KeyError) as e:
        return jsonify({'error': str(e)}), 400

    rescaled = rescale_steps(config, zoom, tiles)
    return jsonify({
        'graticule': asdict(rescaled),
        'rounded_zoom': tiles.rounded_zoom(zoom),
    })


if __name__ == '__main__':
    PORT = 8080  # Using 8080 to avoid conflict with AirPlay on macOS

    print("=" * 50)
    print("Graticule - Web Server")
    print("=" * 50)
    print()
    print(f"Graticule JSON: http://localhost:{PORT}/api/graticule")
    print(f"Graticule SVG:  http://localhost:{PORT}/api/graticule.svg")
    print()
    print("Press Ctrl+C to stop the server")
    print("=" * 50)

    app.run(debug=False, port=PORT, threaded=True)
