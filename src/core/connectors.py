"""
Connector lines between a match and the one or two matches feeding it.
"""
from typing import List, NamedTuple, Optional, Tuple

from .models import Match
from .positions import Position, lower_bracket_position, upper_bracket_position
from .settings import get_calculated_styles, round_header_offset

TOP = -1
BOTTOM = 1


class BracketSnippet(NamedTuple):
    previous_top_match: Optional[Match]
    previous_bottom_match: Optional[Match]
    current_match: Match


class ConnectorPath(NamedTuple):
    side: str
    d: str
    highlighted: bool
    color: str


def _participant_ids(match: Optional[Match]):
    if match is None:
        return []
    return [p.id for p in match.participants]


def connector_highlight(bracket_snippet: BracketSnippet, hovered_party_id) -> Tuple[bool, bool]:
    """Whether the (top, bottom) connector lies on the hovered team's path.

    A segment is lit when the hovered participant played both the feeder and
    the current match.
    """
    if hovered_party_id is None:
        return False, False
    in_current = hovered_party_id in _participant_ids(bracket_snippet.current_match)
    top = in_current and hovered_party_id in _participant_ids(bracket_snippet.previous_top_match)
    bottom = in_current and hovered_party_id in _participant_ids(bracket_snippet.previous_bottom_match)
    return top, bottom


def _fmt(value) -> str:
    # Keep integral coordinates free of a trailing ".0"
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.2f}".rstrip('0').rstrip('.')


def _path_data(multiplier: int, current: Position, previous: Position, style: dict) -> str:
    middle = style['box_height'] / 2
    header = round_header_offset(style)
    line_info = style['line_info']
    start_x = current.x - style['horizontal_offset'] - line_info['separation']
    start_y = current.y + line_info['home_visitor_spread'] * multiplier + middle + header
    previous_lines_area = previous.x + style['width'] - line_info['separation']

    if abs(current.y - previous.y) < 1:
        commands = [f"M{_fmt(start_x)} {_fmt(start_y)}", f"H{_fmt(previous_lines_area)}"]
    else:
        gutter = current.x - style['round_separator_width'] / 2 - style['horizontal_offset']
        commands = [
            f"M{_fmt(start_x)} {_fmt(start_y)}",
            f"H{_fmt(gutter)}",
            f"V{_fmt(previous.y + middle + header)}",
            f"H{_fmt(previous_lines_area)}",
        ]
    return ' '.join(commands)


def match_connectors(bracket_snippet: BracketSnippet, current_position: Position,
                     previous_top_position: Optional[Position], previous_bottom_position: Optional[Position],
                     style: dict, hovered_party_id=None) -> List[ConnectorPath]:
    style = get_calculated_styles(style)
    top_highlighted, bottom_highlighted = connector_highlight(bracket_snippet, hovered_party_id)
    paths = []
    for side, multiplier, position, highlighted in (
        ('top', TOP, previous_top_position, top_highlighted),
        ('bottom', BOTTOM, previous_bottom_position, bottom_highlighted),
    ):
        if position is None:
            continue
        color = style['connector_color_highlight'] if highlighted else style['connector_color']
        paths.append(ConnectorPath(side, _path_data(multiplier, current_position, position, style),
                                   highlighted, color))
    return paths


def _feeder_rows(row_index: int, previous_rows):
    if previous_rows is not None:
        return previous_rows
    previous_bottom_row = (row_index + 1) * 2 - 1
    return previous_bottom_row - 1, previous_bottom_row


def upper_connectors(bracket_snippet: BracketSnippet, row_index: int, column_index: int, style: dict,
                     previous_rows: Tuple[int, int] = None, offset_x: float = 0, offset_y: float = 0,
                     hovered_party_id=None) -> List[ConnectorPath]:
    """Connectors for an upper bracket match.

    ``previous_rows`` gives the (top, bottom) row indices of the feeders in
    the previous column; by default they are ``2r`` and ``2r + 1``.
    """
    calculated = get_calculated_styles(style)

    def position(row, column):
        return upper_bracket_position(row, column, calculated['canvas_padding'], calculated['row_height'],
                                      calculated['column_width'], offset_x, offset_y)

    top_row, bottom_row = _feeder_rows(row_index, previous_rows)
    return match_connectors(
        bracket_snippet,
        position(row_index, column_index),
        position(top_row, column_index - 1) if bracket_snippet.previous_top_match else None,
        position(bottom_row, column_index - 1) if bracket_snippet.previous_bottom_match else None,
        style,
        hovered_party_id,
    )


def lower_connectors(bracket_snippet: BracketSnippet, row_index: int, column_index: int, style: dict,
                     previous_rows: Tuple[int, int] = None, offset_x: float = 0, offset_y: float = 0,
                     first_round_match_count: int = 0, hovered_party_id=None) -> List[ConnectorPath]:
    """Connectors for a lower bracket match, using the depth-capped geometry."""
    calculated = get_calculated_styles(style)

    def position(row, column):
        return lower_bracket_position(row, column, calculated['canvas_padding'], calculated['row_height'],
                                      calculated['column_width'], offset_x, offset_y, first_round_match_count)

    top_row, bottom_row = _feeder_rows(row_index, previous_rows)
    return match_connectors(
        bracket_snippet,
        position(row_index, column_index),
        position(top_row, column_index - 1) if bracket_snippet.previous_top_match else None,
        position(bottom_row, column_index - 1) if bracket_snippet.previous_bottom_match else None,
        style,
        hovered_party_id,
    )
