"""
Round header labels shown above each bracket column.
"""
from typing import Callable, NamedTuple, Optional


class RoundHeader(NamedTuple):
    column_index: int
    label: str
    x: float
    y: float
    width: float


def round_label(column_index: int, num_of_rounds: int, tournament_round_text: str = '',
                round_text_generator: Optional[Callable[[int, int], str]] = None) -> str:
    """Label for the round shown in ``column_index`` (0-indexed).

    A caller supplied ``round_text_generator(round_number, total_rounds)``
    takes precedence over the default "Round N" / "Semi-final" / "Final".
    """
    round_number = column_index + 1
    if round_text_generator is not None:
        return round_text_generator(round_number, num_of_rounds)
    if round_number == num_of_rounds:
        return 'Final'
    if round_number == num_of_rounds - 1:
        return 'Semi-final'
    if round_number < num_of_rounds - 1:
        return f"Round {tournament_round_text or round_number}"
    return ''


def build_round_header(column_index: int, num_of_rounds: int, x: float, style: dict,
                       tournament_round_text: str = '', y: float = 0) -> RoundHeader:
    round_header = style['round_header']
    label = round_label(column_index, num_of_rounds, tournament_round_text,
                        round_header.get('round_text_generator'))
    return RoundHeader(column_index, label, x, y + style['canvas_padding'], style['width'])
