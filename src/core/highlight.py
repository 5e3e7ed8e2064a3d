"""
Hover state shared by every match and connector of one rendered bracket.

Each bracket render owns its own ``HoverStore``; nothing here is module-global.
"""
from typing import NamedTuple, Optional

SET_HOVERED_PARTYID = 'SET_HOVERED_PARTYID'


class UnknownActionError(RuntimeError):
    """Raised when the hover reducer receives an action it doesn't handle."""


class HoverState(NamedTuple):
    hovered_match_id: Optional[object] = None
    hovered_party_id: Optional[object] = None
    hovered_column_index: Optional[int] = None
    hovered_row_index: Optional[int] = None


INITIAL_STATE = HoverState()


def _payload_value(payload, snake, camel):
    if snake in payload:
        return payload[snake]
    return payload.get(camel)


def hover_reducer(previous_state: HoverState, action: dict) -> HoverState:
    action_type = action.get('type') if isinstance(action, dict) else None
    if action_type == SET_HOVERED_PARTYID:
        payload = action.get('payload') or {}
        return previous_state._replace(
            hovered_party_id=_payload_value(payload, 'party_id', 'partyId'),
            hovered_column_index=_payload_value(payload, 'column_index', 'columnIndex'),
            hovered_row_index=_payload_value(payload, 'row_index', 'rowIndex'),
            hovered_match_id=_payload_value(payload, 'match_id', 'matchId'),
        )
    raise UnknownActionError(f"Unknown action type: {action_type}")


class HoverStore:
    def __init__(self, state: HoverState = INITIAL_STATE):
        self._state = state

    @property
    def state(self) -> HoverState:
        return self._state

    @property
    def hovered_party_id(self):
        return self._state.hovered_party_id

    def dispatch(self, action: dict) -> HoverState:
        self._state = hover_reducer(self._state, action)
        return self._state

    def set_hovered(self, party_id, match_id=None, row_index=None, column_index=None) -> HoverState:
        return self.dispatch({
            'type': SET_HOVERED_PARTYID,
            'payload': {
                'party_id': party_id,
                'match_id': match_id,
                'row_index': row_index,
                'column_index': column_index,
            },
        })

    def clear(self) -> HoverState:
        return self.dispatch({'type': SET_HOVERED_PARTYID, 'payload': None})

    def __repr__(self):
        return f"HoverStore(state={self._state})"


def resolve_party_id(matches: dict, raw):
    """Map a party id given as text (query string, command line) onto the id used in the data.

    Numeric ids come back as ints when a participant carries that int id;
    anything unmatched is returned unchanged.
    """
    if raw is None or raw == '':
        return None
    for half in ('upper', 'lower'):
        for match in matches.get(half, []):
            for party_id in match.participant_ids():
                if str(party_id) == raw:
                    return party_id
    return raw
