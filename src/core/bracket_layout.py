"""
Double elimination bracket assembly.

Puts the upper bracket on top, the lower bracket below it and the grand final
(plus an optional bracket-reset game) in the columns right of the longer
half, all in one coordinate space. Geometry comes from ``positions``, the
column trees from ``match_graph``, box contents from ``match_view``.
"""
import logging
import math
from typing import Dict, List, NamedTuple, Optional, Tuple

from .connectors import BracketSnippet, lower_connectors, match_connectors, upper_connectors
from .highlight import HoverStore
from .match_graph import MatchIndex, generate_columns, insert_bye_matches, natural_sort_key
from .match_view import DefaultMatchRenderer, build_match_view
from .models import Match, load_matches
from .positions import (
    Position,
    final_game_position,
    lower_bracket_depth,
    lower_bracket_position,
    upper_bracket_position,
    vertical_position,
)
from .round_header import build_round_header
from .settings import get_calculated_styles, merge_style, round_header_offset
from .svg import render_bracket_svg

logger = logging.getLogger(__name__)

UPPER = 'upper'
LOWER = 'lower'
FINAL = 'final'


class SvgDimensions(NamedTuple):
    game_width: float
    game_height: float
    start_position: Tuple[float, float]


class PositionRecord(NamedTuple):
    match_id: object
    bracket: str
    column_index: int
    row_index: int
    x: float
    y: float

    def to_dict(self):
        return {
            'matchId': self.match_id,
            'bracket': self.bracket,
            'columnIndex': self.column_index,
            'rowIndex': self.row_index,
            'x': self.x,
            'y': self.y,
        }


def calculate_svg_dimensions(num_rows, num_columns, row_height, column_width, canvas_padding,
                             round_header, current_round=None) -> SvgDimensions:
    bracket_height = num_rows * row_height
    bracket_width = num_columns * column_width
    header = round_header['height'] + round_header['margin_bottom'] if round_header.get('is_shown') else 0
    game_height = bracket_height + canvas_padding * 2 + header
    game_width = bracket_width + canvas_padding * 2
    # Scroll offset that brings the current round into view
    start_x = -(int(current_round) * column_width - canvas_padding * 2) if current_round else 0
    return SvgDimensions(game_width, game_height, (start_x, 0))


def _first_by_name(matches):
    if not matches:
        return None
    return sorted(matches, key=lambda m: natural_sort_key(m.name))[0]


def find_finals(upper: List[Match], lower: List[Match]) -> Tuple[Optional[Match], Optional[Match], List[Match]]:
    """Locate the last match of each half and the chain of finals.

    The grand final is the match fed by both an upper and a lower bracket
    match; every match its winner moves on to (a bracket reset) is part of the
    finals too. Without such a match each half simply ends at the first match
    whose winner leaves it.
    """
    upper_ids = {m.id for m in upper}
    lower_ids = {m.id for m in lower}
    index = MatchIndex(list(upper) + list(lower))

    converging = None
    for match in index.matches:
        feeders = index.predecessors(match.id)
        if any(f.id in upper_ids for f in feeders) and any(f.id in lower_ids for f in feeders):
            converging = match
            break

    if converging is None:
        upper_final = next((m for m in upper if m.next_match_id not in upper_ids), None)
        lower_final = next((m for m in lower if m.next_match_id not in lower_ids), None)
        return upper_final, lower_final, []

    finals = [converging]
    seen = {converging.id}
    current = index.successor(converging)
    while current is not None and current.id not in seen:
        finals.append(current)
        seen.add(current.id)
        current = index.successor(current)

    feeders = [f for f in index.predecessors(converging.id) if f.id not in seen]
    upper_final = _first_by_name([f for f in feeders if f.id in upper_ids])
    lower_final = _first_by_name([f for f in feeders if f.id in lower_ids])
    return upper_final, lower_final, finals


def _rows_spanned(columns, depth_of) -> int:
    rows = 0
    for column_index, column in enumerate(columns):
        if not column:
            continue
        # Row units from the top of the column to the bottom of its last match
        last = vertical_position(len(column) - 1, depth_of(column_index), 1) + 1
        rows = max(rows, last)
    return math.ceil(rows)


class BracketLayout:
    """Result of laying out a bracket: column trees, geometry and views."""

    def __init__(self):
        self.upper_columns: List[List[Match]] = []
        self.lower_columns: List[List[Match]] = []
        self.finals: List[Match] = []
        self.positions: Dict[object, PositionRecord] = {}
        self.match_views = []
        self.connectors = []
        self.headers = []
        self.width = 0
        self.height = 0
        self.upper_height = 0
        self.lower_height = 0
        self.start_position = (0, 0)

    def position_of(self, match_id) -> Optional[Position]:
        record = self.positions.get(match_id)
        if record is None:
            return None
        return Position(record.x, record.y)

    def columns_to_ids(self, columns):
        return [[m.id for m in column] for column in columns]

    def to_dict(self) -> dict:
        return {
            'width': self.width,
            'height': self.height,
            'startPosition': list(self.start_position),
            'columns': {
                UPPER: self.columns_to_ids(self.upper_columns),
                LOWER: self.columns_to_ids(self.lower_columns),
                FINAL: [m.id for m in self.finals],
            },
            'positions': [record.to_dict() for record in self.positions.values()],
            'headers': [{'columnIndex': h.column_index, 'label': h.label, 'x': h.x, 'y': h.y}
                        for h in self.headers],
            'connectors': [{'side': c.side, 'd': c.d, 'highlighted': c.highlighted, 'color': c.color}
                           for c in self.connectors],
            'matches': [view.to_dict() for view in self.match_views],
        }


class DoubleEliminationBracket:
    """Lays out and renders one double elimination bracket.

    ``matches`` is ``{'upper': [...], 'lower': [...]}`` holding ``Match``
    objects or their wire dicts. Each instance owns its ``HoverStore``
    unless one is passed in.
    """

    def __init__(self, matches, style: dict = None, match_renderer=None, hover_store: HoverStore = None,
                 current_round=None, fill_byes: bool = False):
        halves = load_matches(matches)
        self.upper = halves['upper']
        self.lower = halves['lower']
        self.style = merge_style(style)
        self.match_renderer = match_renderer or DefaultMatchRenderer()
        self.hover_store = hover_store if hover_store is not None else HoverStore()
        self.current_round = current_round
        self.fill_byes = fill_byes

    def _place(self, layout, match, bracket, column_index, row_index, position):
        layout.positions[match.id] = PositionRecord(match.id, bracket, column_index, row_index,
                                                    position.x, position.y)

    def _snippet(self, match, index, layout, bracket, column_index):
        """Feeders of ``match`` placed in the previous column of its half."""
        feeders = [
            f for f in index.predecessors(match.id)
            if f.id in layout.positions
            and layout.positions[f.id].bracket == bracket
            and layout.positions[f.id].column_index == column_index - 1
        ]
        feeders.sort(key=lambda f: layout.positions[f.id].row_index)
        if len(feeders) >= 2:
            return BracketSnippet(feeders[0], feeders[1], match)
        if len(feeders) == 1:
            return BracketSnippet(None, feeders[0], match)
        return BracketSnippet(None, None, match)

    def _feeder_rows(self, layout, snippet):
        top = snippet.previous_top_match
        bottom = snippet.previous_bottom_match
        return (layout.positions[top.id].row_index if top else 0,
                layout.positions[bottom.id].row_index if bottom else 0)

    def _add_view(self, layout, match, column_index, row_index, position, previous_bottom_match):
        layout.match_views.append(build_match_view(
            match, row_index, column_index, self.style,
            hover_store=self.hover_store,
            previous_bottom_match=previous_bottom_match,
            x=position.x,
            y=position.y + round_header_offset(self.style),
        ))

    def layout(self) -> BracketLayout:
        styles = get_calculated_styles(self.style)
        canvas_padding = styles['canvas_padding']
        row_height = styles['row_height']
        column_width = styles['column_width']
        hovered = self.hover_store.hovered_party_id
        layout = BracketLayout()

        upper_final, lower_final, finals = find_finals(self.upper, self.lower)
        final_ids = {m.id for m in finals}
        upper_matches = [m for m in self.upper if m.id not in final_ids]
        lower_matches = [m for m in self.lower if m.id not in final_ids]
        if self.fill_byes:
            upper_matches = insert_bye_matches(upper_final, upper_matches)
        upper_index = MatchIndex(upper_matches)
        lower_index = MatchIndex(lower_matches)

        layout.upper_columns = generate_columns(upper_final, upper_index)
        layout.lower_columns = generate_columns(lower_final, lower_index)
        layout.finals = finals
        first_round_match_count = len(layout.lower_columns[0]) if layout.lower_columns else 0

        upper_dims = calculate_svg_dimensions(
            _rows_spanned(layout.upper_columns, lambda c: c),
            len(layout.upper_columns), row_height, column_width, canvas_padding,
            styles['round_header'], self.current_round)
        lower_dims = calculate_svg_dimensions(
            _rows_spanned(layout.lower_columns, lambda c: lower_bracket_depth(c, first_round_match_count)),
            len(layout.lower_columns), row_height, column_width, canvas_padding,
            styles['round_header'], self.current_round)
        final_column = max(len(layout.upper_columns), len(layout.lower_columns))
        total_rounds = final_column + len(finals)
        full_dims = calculate_svg_dimensions(0, total_rounds, row_height, column_width, canvas_padding,
                                             styles['round_header'], self.current_round)
        layout.upper_height = upper_dims.game_height
        layout.lower_height = lower_dims.game_height if layout.lower_columns else 0
        lower_offset_y = upper_dims.game_height

        for column_index, column in enumerate(layout.upper_columns):
            for row_index, match in enumerate(column):
                position = upper_bracket_position(row_index, column_index, canvas_padding, row_height,
                                                  column_width)
                self._place(layout, match, UPPER, column_index, row_index, position)
                snippet = self._snippet(match, upper_index, layout, UPPER, column_index)
                if column_index > 0:
                    layout.connectors.extend(upper_connectors(
                        snippet, row_index, column_index, self.style,
                        previous_rows=self._feeder_rows(layout, snippet),
                        hovered_party_id=hovered))
                self._add_view(layout, match, column_index, row_index, position, snippet.previous_bottom_match)

        for column_index, column in enumerate(layout.lower_columns):
            for row_index, match in enumerate(column):
                position = lower_bracket_position(row_index, column_index, canvas_padding, row_height,
                                                  column_width, offset_y=lower_offset_y,
                                                  first_round_match_count=first_round_match_count)
                self._place(layout, match, LOWER, column_index, row_index, position)
                snippet = self._snippet(match, lower_index, layout, LOWER, column_index)
                if column_index > 0:
                    layout.connectors.extend(lower_connectors(
                        snippet, row_index, column_index, self.style,
                        previous_rows=self._feeder_rows(layout, snippet),
                        offset_y=lower_offset_y,
                        first_round_match_count=first_round_match_count,
                        hovered_party_id=hovered))
                self._add_view(layout, match, column_index, row_index, position, snippet.previous_bottom_match)

        previous = None
        for offset, match in enumerate(finals):
            column_index = final_column + offset
            position = final_game_position(0, column_index, canvas_padding, row_height, column_width,
                                           upper_dims.game_height, upper_dims.game_height,
                                           lower_dims.game_height)
            if previous is None:
                snippet = BracketSnippet(upper_final, lower_final, match)
            else:
                snippet = BracketSnippet(None, previous, match)
            self._place(layout, match, FINAL, column_index, 0, position)
            top = snippet.previous_top_match
            bottom = snippet.previous_bottom_match
            layout.connectors.extend(match_connectors(
                snippet, position,
                layout.position_of(top.id) if top else None,
                layout.position_of(bottom.id) if bottom else None,
                self.style, hovered))
            self._add_view(layout, match, column_index, 0, position, bottom)
            previous = match

        for column_index in range(total_rounds):
            x = column_index * column_width + canvas_padding
            layout.headers.append(build_round_header(column_index, total_rounds, x, self.style,
                                                     self._round_text(layout, column_index)))

        box_bottom = max((view.y + styles['box_height'] + canvas_padding for view in layout.match_views),
                         default=0)
        layout.width = full_dims.game_width
        layout.height = max(layout.upper_height + layout.lower_height, box_bottom)
        layout.start_position = full_dims.start_position
        logger.debug(f"Laid out bracket: {len(layout.positions)} matches, {total_rounds} rounds, "
                     f"{layout.width}x{layout.height}")
        return layout

    def _round_text(self, layout, column_index):
        for columns in (layout.upper_columns, layout.lower_columns):
            if column_index >= len(columns):
                continue
            for match in columns[column_index]:
                if match.tournament_round_text and not match.extra.get('isBye'):
                    return match.tournament_round_text
        return ''

    def render_svg(self, layout: BracketLayout = None) -> str:
        layout = layout or self.layout()
        return render_bracket_svg(layout, self.match_renderer, get_calculated_styles(self.style))
