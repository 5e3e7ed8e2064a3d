"""
Bracket style configuration.

Styles are plain dicts. ``merge_style`` lays caller overrides over
``DEFAULT_STYLE`` (nested ``round_header`` and ``line_info`` are merged key by
key) and ``get_calculated_styles`` adds the derived ``column_width`` and
``row_height`` used by the layout code.
"""
import copy
import logging
import os
import re

import yaml

logger = logging.getLogger(__name__)


class StyleError(ValueError):
    """Raised when a style configuration cannot be used."""


DEFAULT_STYLE = {
    'width': 300,
    'box_height': 110,
    'canvas_padding': 25,
    'space_between_columns': 50,
    'space_between_rows': 50,
    'connector_color': 'rgb(47, 54, 72)',
    'connector_color_highlight': '#DDD',
    'round_header': {
        'is_shown': True,
        'height': 40,
        'margin_bottom': 25,
        'font_size': 16,
        'font_color': 'white',
        'background_color': 'rgb(47, 54, 72)',
        'font_family': '"Roboto", "Arial", "Helvetica", "sans-serif"',
        'round_text_generator': None,
    },
    'round_separator_width': 24,
    'line_info': {
        'separation': -13,
        'home_visitor_spread': 0.5,
    },
    'horizontal_offset': 13,
    'won_by_walk_over_text': 'WO',
    'lost_by_no_show_text': 'NS',
}

NESTED_KEYS = ('round_header', 'line_info')

NUMERIC_KEYS = ('width', 'box_height', 'canvas_padding', 'space_between_columns',
                'space_between_rows', 'round_separator_width', 'horizontal_offset')

# line_info.separation is negative by default
NESTED_NUMERIC_KEYS = {
    'round_header': (('height', False), ('margin_bottom', False), ('font_size', False)),
    'line_info': (('separation', True), ('home_visitor_spread', True)),
}

# Spellings used by the JavaScript bracket options that don't snake_case cleanly
_KEY_ALIASES = {
    'won_bywalk_over_text': 'won_by_walk_over_text',
}


def _snake_case(key: str) -> str:
    key = re.sub(r'(?<!^)(?=[A-Z])', '_', key).lower()
    return _KEY_ALIASES.get(key, key)


def _normalize_keys(values: dict, allowed: dict, section: str = None) -> dict:
    normalized = {}
    for key, value in values.items():
        name = _snake_case(str(key))
        if name not in allowed:
            where = f"{section}." if section else ''
            logger.warning(f"Ignoring unknown style option '{where}{key}'")
            continue
        normalized[name] = value
    return normalized


def _check_number(name: str, value, may_be_negative: bool = False):
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        raise StyleError(f"Style option '{name}' must be a number, got {value!r}")
    if value < 0 and not may_be_negative:
        raise StyleError(f"Style option '{name}' must not be negative")


def merge_style(overrides: dict = None) -> dict:
    """Return a full style dict with ``overrides`` applied over the defaults."""
    style = copy.deepcopy(DEFAULT_STYLE)
    if not overrides:
        return style
    if not isinstance(overrides, dict):
        raise StyleError(f"Style must be a mapping, got {type(overrides).__name__}")

    for key, value in _normalize_keys(overrides, DEFAULT_STYLE).items():
        if key in NESTED_KEYS:
            if value is None:
                continue
            if not isinstance(value, dict):
                raise StyleError(f"Style option '{key}' must be a mapping")
            style[key].update(_normalize_keys(value, DEFAULT_STYLE[key], key))
        else:
            style[key] = value

    for key in NUMERIC_KEYS:
        _check_number(key, style[key])
    for section, keys in NESTED_NUMERIC_KEYS.items():
        for key, may_be_negative in keys:
            _check_number(f"{section}.{key}", style[section][key], may_be_negative)

    generator = style['round_header'].get('round_text_generator')
    if generator is not None and not callable(generator):
        raise StyleError("round_header.round_text_generator must be callable")
    return style


def get_calculated_styles(style: dict = None) -> dict:
    """Add ``column_width`` and ``row_height`` to a (merged) style."""
    style = style if style is not None else DEFAULT_STYLE
    column_width = style['width'] + style['space_between_columns']
    row_height = style['box_height'] + style['space_between_rows']
    return {**style, 'row_height': row_height, 'column_width': column_width}


def round_header_offset(style: dict) -> float:
    """Vertical space the round header row takes above the matches."""
    header = style['round_header']
    if not header.get('is_shown'):
        return 0
    return header['height'] + header['margin_bottom']


def load_style(path: str) -> dict:
    """Load a YAML style file and merge it over the defaults.

    A missing or empty file yields the default style.
    """
    if not path or not os.path.exists(path):
        return merge_style()
    with open(path, 'r', encoding='utf-8') as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise StyleError(f"Failed to parse style file {path}: {e}") from e
    if not data:
        return merge_style()
    return merge_style(data)
