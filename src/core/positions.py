"""
Pixel geometry for bracket matches.

Each round doubles the vertical spacing of the previous one, so a match in
column ``c`` sits halfway between its two feeders in column ``c - 1``.
The lower bracket advances at half the pace of the upper one (it alternates
between rounds that merge lower-bracket winners and rounds that absorb
upper-bracket losers), so its depth is ``ceil(c / 2)``, capped so the columns
never spread further than the first lower round allows.
"""
import math
from typing import NamedTuple


class Position(NamedTuple):
    x: float
    y: float


def vertical_starting_point(column_index: int, row_height: float) -> float:
    """Vertical offset of the first row in a column."""
    return 2 ** column_index * (row_height / 2) - row_height / 2


def column_increment(column_index: int, row_height: float) -> float:
    """Distance between two consecutive rows of a column."""
    return 2 ** column_index * row_height


def height_increase(column_index: int, row_index: int, row_height: float) -> float:
    return column_increment(column_index, row_height) * row_index


def vertical_position(row_index: int, column_index: int, row_height: float) -> float:
    return height_increase(column_index, row_index, row_height) + vertical_starting_point(column_index, row_height)


def upper_bracket_position(row_index: int, column_index: int, canvas_padding: float, row_height: float,
                           column_width: float, offset_x: float = 0, offset_y: float = 0) -> Position:
    y = vertical_position(row_index, column_index, row_height)
    x = column_index * column_width
    return Position(x + canvas_padding + offset_x, y + canvas_padding + offset_y)


def lower_bracket_column_index(column_index: int) -> int:
    return math.ceil(column_index / 2)


def lower_bracket_depth(column_index: int, first_round_match_count: int = 0) -> int:
    """Effective column depth used for lower bracket vertical spacing."""
    depth = lower_bracket_column_index(column_index)
    if first_round_match_count > 0:
        max_depth = math.floor(math.log2(first_round_match_count))
        depth = min(depth, max_depth)
    return depth


def lower_bracket_position(row_index: int, column_index: int, canvas_padding: float, row_height: float,
                           column_width: float, offset_x: float = 0, offset_y: float = 0,
                           first_round_match_count: int = 0) -> Position:
    depth = lower_bracket_depth(column_index, first_round_match_count)
    y = vertical_position(row_index, depth, row_height)
    return Position(column_index * column_width + canvas_padding + offset_x,
                    y + canvas_padding + offset_y)


def final_game_position(row_index: int, column_index: int, canvas_padding: float, row_height: float,
                        column_width: float, game_height: float, upper_bracket_height: float,
                        lower_bracket_height: float, offset_x: float = 0, offset_y: float = 0) -> Position:
    """Position of the grand final, scaled between the two bracket halves.

    ``row_index`` is accepted for symmetry with the other calculators; the
    final always occupies a single row.
    """
    ratio = lower_bracket_height / upper_bracket_height if upper_bracket_height else 1
    y = game_height * ratio - row_height
    return Position(column_index * column_width + canvas_padding + offset_x,
                    y + canvas_padding + offset_y)
