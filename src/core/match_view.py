"""
Per-match view-model and the pluggable match box renderer.

``build_match_view`` decides which participant goes in the top and bottom
slot, who won (including walkovers the data doesn't flag explicitly) and the
name/result fallbacks shown for unresolved or forfeited slots.
"""
from typing import Optional

from .highlight import HoverStore
from .match_graph import BYE_NAME, sort_teams_seed_order
from .models import Match, MatchParticipant, MatchState
from .settings import get_calculated_styles
from .svg import element

# Matches in these states won't get a team later, so empty slots stay blank
DECIDED_STATES = (
    MatchState.WALK_OVER,
    MatchState.NO_SHOW,
    MatchState.DONE,
    MatchState.SCORE_DONE,
    MatchState.NO_PARTY,
)

TBD = 'TBD'


def team_name_fallback(match: Match) -> str:
    return '' if match.state in DECIDED_STATES else TBD


def result_fallback(match: Match, participant: Optional[MatchParticipant], style: dict) -> str:
    if participant is None:
        return ''
    if participant.status:
        by_status = {
            MatchState.WALK_OVER: style['won_by_walk_over_text'],
            MatchState.NO_SHOW: style['lost_by_no_show_text'],
            MatchState.NO_PARTY: '',
        }
        return by_status.get(participant.status, '')
    if match.walked_over(participant):
        return style['won_by_walk_over_text']
    return ''


class MatchView:
    """Everything a ``MatchRenderer`` needs to draw one match box."""

    def __init__(self, match, row_index, column_index, top_party, bottom_party, top_won, bottom_won,
                 top_hovered, bottom_hovered, team_name_fallback, styles, hover_store=None,
                 x=0, y=0, top_text='', bottom_text=''):
        self.match = match
        self.row_index = row_index
        self.column_index = column_index
        self.top_party = top_party
        self.bottom_party = bottom_party
        self.top_won = top_won
        self.bottom_won = bottom_won
        self.top_hovered = top_hovered
        self.bottom_hovered = bottom_hovered
        self.team_name_fallback = team_name_fallback
        self.computed_styles = styles
        self.connector_color = styles['connector_color']
        self.hover_store = hover_store
        self.x = x
        self.y = y
        self.top_text = top_text
        self.bottom_text = bottom_text

    @property
    def scores_display(self) -> str:
        return self.match.extra.get('scoresDisplay') or ''

    @property
    def is_bye(self) -> bool:
        return bool(self.match.extra.get('isBye')) or self.match.name == BYE_NAME

    def result_fallback(self, party: MatchParticipant) -> str:
        return result_fallback(self.match, party, self.computed_styles)

    def on_mouse_enter(self, party_id):
        if self.hover_store is not None:
            self.hover_store.set_hovered(party_id, self.match.id, self.row_index, self.column_index)

    def on_mouse_leave(self):
        if self.hover_store is not None:
            self.hover_store.clear()

    def to_dict(self) -> dict:
        return {
            'matchId': self.match.id,
            'rowIndex': self.row_index,
            'columnIndex': self.column_index,
            'x': self.x,
            'y': self.y,
            'topParty': self.top_party.to_dict(),
            'bottomParty': self.bottom_party.to_dict(),
            'topWon': self.top_won,
            'bottomWon': self.bottom_won,
            'topHovered': self.top_hovered,
            'bottomHovered': self.bottom_hovered,
            'topText': self.top_text,
            'bottomText': self.bottom_text,
            'scoresDisplay': self.scores_display,
        }

    def __repr__(self):
        return f"MatchView(match={self.match.id}, row={self.row_index}, column={self.column_index})"


def build_match_view(match: Match, row_index: int, column_index: int, style: dict = None,
                     hover_store: HoverStore = None, previous_bottom_match: Match = None,
                     x: float = 0, y: float = 0, top_text: str = '', bottom_text: str = '') -> MatchView:
    styles = get_calculated_styles(style)
    hovered_party_id = hover_store.hovered_party_id if hover_store is not None else None

    sorted_teams = sort_teams_seed_order(match.participants, previous_bottom_match)
    top = sorted_teams[0] if len(sorted_teams) > 0 else None
    bottom = sorted_teams[1] if len(sorted_teams) > 1 else None

    top_won = match.participant_won(top)
    bottom_won = match.participant_won(bottom)
    name_fallback = team_name_fallback(match)

    def view_party(party, won):
        if party is None:
            return MatchParticipant(name=name_fallback, result_text='')
        return party.copy(
            name=party.name or name_fallback,
            result_text=party.result_text or result_fallback(match, party, styles),
            is_winner=won,
        )

    def hovered(party):
        return hovered_party_id is not None and party is not None and party.has_id and party.id == hovered_party_id

    return MatchView(
        match=match,
        row_index=row_index,
        column_index=column_index,
        top_party=view_party(top, top_won),
        bottom_party=view_party(bottom, bottom_won),
        top_won=top_won,
        bottom_won=bottom_won,
        top_hovered=hovered(top),
        bottom_hovered=hovered(bottom),
        team_name_fallback=name_fallback,
        styles=styles,
        hover_store=hover_store,
        x=x,
        y=y,
        top_text=top_text,
        bottom_text=bottom_text,
    )


class MatchRenderer:
    """Draws the inside of a match box as an SVG fragment.

    The fragment is placed in a ``width`` x ``box_height`` viewport, so
    coordinates start at 0, 0.
    """

    def render(self, view: MatchView) -> str:
        raise NotImplementedError


class DefaultMatchRenderer(MatchRenderer):
    def __init__(self, background='#ffffff', border='#d1d5db', text_color='#111827',
                 muted_color='#6b7280', won_background='rgba(16, 185, 129, 0.1)', won_color='#059669',
                 hover_color='#10b981', font_family='system-ui, sans-serif', font_size=12):
        self.background = background
        self.border = border
        self.text_color = text_color
        self.muted_color = muted_color
        self.won_background = won_background
        self.won_color = won_color
        self.hover_color = hover_color
        self.font_family = font_family
        self.font_size = font_size

    def _text(self, x, y, value, **attrs):
        base = {
            'x': x,
            'y': y,
            'font-family': self.font_family,
            'font-size': self.font_size,
            'dominant-baseline': 'middle',
        }
        base.update(attrs)
        return element('text', base, text=value)

    def render_bye(self, view: MatchView) -> str:
        width = view.computed_styles['width']
        height = view.computed_styles['box_height']
        team = next((p.name for p in (view.top_party, view.bottom_party) if p.name and p.name != BYE_NAME),
                    view.team_name_fallback)
        return element('g', {'class': 'match bye', 'opacity': 0.7}, [
            element('rect', {'x': 0.5, 'y': 0.5, 'width': width - 1, 'height': height - 1, 'rx': 6,
                             'fill': self.background, 'stroke': self.border, 'stroke-dasharray': '4 3'}),
            self._text(width / 2, height / 2, f"{team} ({BYE_NAME})".strip(), fill=self.muted_color,
                       **{'text-anchor': 'middle'}),
        ])

    def render_party(self, party: MatchParticipant, won: bool, hovered: bool, top: float, row_height: float,
                     width: float) -> str:
        children = []
        if won:
            children.append(element('rect', {'x': 1, 'y': top, 'width': width - 2, 'height': row_height,
                                             'fill': self.won_background}))
        if hovered:
            children.append(element('rect', {'x': 1, 'y': top, 'width': width - 2, 'height': row_height,
                                             'fill': 'none', 'stroke': self.hover_color}))
        color = self.won_color if won else self.text_color
        weight = 600 if won else 400
        middle = top + row_height / 2
        children.append(self._text(8, middle, party.name or '', fill=color, **{'font-weight': weight}))
        children.append(self._text(width - 8, middle, party.result_text or '', fill=color,
                                   **{'font-weight': weight, 'text-anchor': 'end'}))
        return element('g', {'class': 'party', 'data-party-id': party.id}, children)

    def render(self, view: MatchView) -> str:
        if view.is_bye:
            return self.render_bye(view)
        width = view.computed_styles['width']
        height = view.computed_styles['box_height']
        row_height = height / 2
        children = [
            element('rect', {'x': 0.5, 'y': 0.5, 'width': width - 1, 'height': height - 1, 'rx': 6,
                             'fill': self.background, 'stroke': self.border}),
            self.render_party(view.top_party, view.top_won, view.top_hovered, 0, row_height, width),
            element('line', {'x1': 0, 'y1': row_height, 'x2': width, 'y2': row_height, 'stroke': self.border}),
            self.render_party(view.bottom_party, view.bottom_won, view.bottom_hovered, row_height, row_height,
                              width),
        ]
        if view.scores_display:
            children.append(self._text(width / 2, height - 6, f"Sets: {view.scores_display}", fill=self.muted_color,
                                       **{'class': 'scores', 'text-anchor': 'middle',
                                          'font-size': self.font_size - 2}))
        return element('g', {'class': 'match'}, children)
