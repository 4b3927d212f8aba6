#!/usr/bin/env python3
"""
Accent: pick unused reference palette colors for a base palette.

Put your base colors in base-colors.json (a JSON array of hex codes) and the
reference palette in pantone-colors.json, then run:

    accent [--file base-colors]

Selected colors are logged one per line with a lookup URL for each.
"""

import argparse
import json
import logging
from pathlib import Path

from accent_cache import FileRoundCache, NullRoundCache
from accent_config import DEFAULT_BASE_FILE, LOG_DATE_FORMAT, LOG_FORMAT, AccentSettings
from accent_errors import AccentError, ColorFileError
from accent_picker import AccentPicker
from color_math import Color


logger = logging.getLogger(__name__)


def load_colors_file(name, data_dir='.'):
    """Load <name>.json from data_dir as colors sorted by hex code."""
    path = Path(data_dir) / f"{name}.json"
    try:
        with open(path, encoding='utf-8') as f:
            entries = json.load(f)
    except FileNotFoundError as e:
        raise ColorFileError(path, "file not found") from e
    except json.JSONDecodeError as e:
        raise ColorFileError(path, f"invalid JSON ({e})") from e
    except (OSError, UnicodeDecodeError) as e:
        raise ColorFileError(path, f"cannot read file ({e})") from e

    if not isinstance(entries, list):
        raise ColorFileError(path, "expected a JSON array of hex codes")

    colors = []
    for entry in entries:
        try:
            colors.append(Color.from_hex(entry))
        except ValueError as e:
            raise ColorFileError(path, str(e)) from e
    colors.sort(key=lambda color: color.hex)
    logger.info("%s.json loaded.", name)
    return colors


def format_color(color):
    return {
        'hex': color.hex,
        'url': color.url,
        'luma': color.luma,
    }


def print_color(color):
    logger.info("Selected color: %s", json.dumps(format_color(color)))


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Pick reference palette colors as far as possible from your base colors")
    parser.add_argument('--file', default=DEFAULT_BASE_FILE,
                        help="Base colors file name, without the .json extension (default: %(default)s)")
    return parser.parse_args(argv)


def main(argv=None):
    """Main function."""
    args = parse_args(argv)

    try:
        settings = AccentSettings.from_env(args.file)
    except ValueError as e:
        logging.basicConfig(format=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
        logger.error("Invalid configuration: %s", e)
        return 1
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    cache = FileRoundCache(settings.cache_dir) if settings.use_cache else NullRoundCache()
    try:
        base_colors = load_colors_file(settings.base_file, settings.data_dir)
        palette = load_colors_file(settings.palette_file, settings.data_dir)
        selected = AccentPicker(base_colors, palette, cache=cache, settings=settings).run()
    except AccentError as e:
        logger.error("%s", e)
        return 1

    for color in selected:
        print_color(color)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
