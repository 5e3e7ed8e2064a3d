"""
Flask web application for Playoff Bracket Layout.

Serves double elimination brackets exported by the league app (or generated
from a seeded team list) as layout JSON and as SVG.
"""
import os
import glob
import re
import yaml
from filelock import FileLock
from flask import Flask, request, jsonify, Response, abort
from core.bracket_layout import DoubleEliminationBracket
from core.double_elimination import load_bracket
from core.highlight import HoverStore, SET_HOVERED_PARTYID, resolve_party_id
from core.models import BracketDataError, load_matches
from core.settings import StyleError, load_style

app = Flask(__name__)

BASE_DIR = os.path.dirname(os.path.dirname(__file__))
DATA_DIR = os.environ.get('BRACKET_DATA_DIR', os.path.join(BASE_DIR, 'data'))
FILL_BYES = os.environ.get('BRACKET_FILL_BYES', '').lower() in ('1', 'true', 'yes')

os.makedirs(DATA_DIR, exist_ok=True)
_data_lock = FileLock(os.path.join(DATA_DIR, '.lock'), timeout=10)


def _slugify(name: str) -> str:
    """Convert division name to filesystem-safe slug."""
    slug = name.lower().strip()
    slug = re.sub(r'[^a-z0-9\s-]', '', slug)
    slug = re.sub(r'[\s-]+', '-', slug)
    slug = slug.strip('-')
    return slug or 'division'


def _brackets_dir() -> str:
    return os.path.join(DATA_DIR, 'brackets')


def _style_file() -> str:
    return os.path.join(DATA_DIR, 'style.yaml')


def _division_path(slug: str) -> str:
    return os.path.join(_brackets_dir(), f'{_slugify(slug)}.yaml')


def list_divisions() -> list:
    """Return slugs of all divisions with a bracket file."""
    paths = glob.glob(os.path.join(_brackets_dir(), '*.yaml'))
    return sorted(os.path.splitext(os.path.basename(path))[0] for path in paths)


def load_division(slug: str):
    """Load a division bracket file, or None if it doesn't exist.

    The file either holds the exported ``upper`` / ``lower`` match lists or
    a ``teams`` list (seed order) with optional ``results`` and
    ``bracket_reset``, in which case the bracket is generated (see ``load_bracket``).
    """
    path = _division_path(slug)
    with _data_lock:
        if not os.path.exists(path):
            return None
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    if not data:
        return {'upper': [], 'lower': []}
    if not isinstance(data, dict):
        raise BracketDataError(f'{os.path.basename(path)} must hold a mapping')
    return load_bracket(data)


def load_site_style() -> dict:
    """Load the site-wide style, falling back to defaults if it can't be read."""
    style_file = _style_file()
    with _data_lock:
        try:
            return load_style(style_file)
        except StyleError as e:
            app.logger.warning(f'Failed to parse {style_file}: {e}')
            return load_style(None)


def _build_bracket(matches, style=None, hovered=None) -> DoubleEliminationBracket:
    hover_store = HoverStore()
    if hovered is not None:
        hover_store.set_hovered(hovered)
    return DoubleEliminationBracket(matches, style=style, hover_store=hover_store, fill_byes=FILL_BYES)


def _error(message: str, status: int = 400):
    return jsonify({'success': False, 'error': message}), status


@app.route('/api/health')
def health():
    return jsonify({'status': 'ok'})


@app.route('/api/divisions')
def api_divisions():
    return jsonify({'divisions': list_divisions()})


def _division_bracket(slug: str) -> DoubleEliminationBracket:
    matches = load_division(slug)
    if matches is None:
        abort(404)
    hovered = resolve_party_id(matches, request.args.get('hovered'))
    return _build_bracket(matches, load_site_style(), hovered)


@app.route('/api/divisions/<slug>/bracket')
def api_division_bracket(slug):
    """Layout JSON for one division."""
    try:
        bracket = _division_bracket(slug)
        layout = bracket.layout()
    except (BracketDataError, yaml.YAMLError) as e:
        app.logger.warning(f'Bracket data for division {slug} is invalid: {e}')
        return _error(str(e))
    app.logger.info(f'Laid out division {slug}: {len(layout.positions)} matches')
    return jsonify({'success': True, 'division': slug, 'layout': layout.to_dict()})


@app.route('/divisions/<slug>/bracket.svg')
def division_bracket_svg(slug):
    try:
        bracket = _division_bracket(slug)
        svg = bracket.render_svg()
    except (BracketDataError, yaml.YAMLError) as e:
        app.logger.warning(f'Bracket data for division {slug} is invalid: {e}')
        return _error(str(e))
    app.logger.info(f'Rendered division {slug} as SVG')
    return Response(svg, mimetype='image/svg+xml')


def _posted_bracket() -> DoubleEliminationBracket:
    """Build a bracket from a ``{matches, style, hover}`` JSON body."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise BracketDataError('Request body must be a JSON object')
    matches = load_matches(data.get('matches'))
    style = data.get('style') or {}
    if not isinstance(style, dict):
        raise StyleError("'style' must be an object")
    bracket = _build_bracket(matches, style)
    hover = data.get('hover')
    if hover is not None and not isinstance(hover, dict):
        raise BracketDataError("'hover' must be an object")
    if hover:
        bracket.hover_store.dispatch({'type': SET_HOVERED_PARTYID, 'payload': hover})
    return bracket


@app.errorhandler(404)
def not_found(e):
    return _error('Not found', 404)


@app.route('/api/bracket/layout', methods=['POST'])
def api_bracket_layout():
    try:
        bracket = _posted_bracket()
        layout = bracket.layout()
    except (BracketDataError, StyleError) as e:
        return _error(str(e))
    return jsonify({'success': True, 'layout': layout.to_dict()})


@app.route('/api/bracket/svg', methods=['POST'])
def api_bracket_svg():
    try:
        svg = _posted_bracket().render_svg()
    except (BracketDataError, StyleError) as e:
        return _error(str(e))
    return Response(svg, mimetype='image/svg+xml')


if __name__ == '__main__':
    app.run(debug=True, port=5000)
