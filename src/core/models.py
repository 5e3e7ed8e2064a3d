class BracketDataError(ValueError):
    """Raised when a match record cannot be turned into a bracket node."""


class MatchState:
    PLAYED = 'PLAYED'
    NO_SHOW = 'NO_SHOW'
    WALK_OVER = 'WALK_OVER'
    NO_PARTY = 'NO_PARTY'
    DONE = 'DONE'
    SCORE_DONE = 'SCORE_DONE'

    ALL = (PLAYED, NO_SHOW, WALK_OVER, NO_PARTY, DONE, SCORE_DONE)
    # Participant status is a subset of the match states
    PARTICIPANT_STATUSES = (PLAYED, NO_SHOW, WALK_OVER, NO_PARTY)


MATCH_STATES = {state: state for state in MatchState.ALL}

# Older exports spell walkover without the underscore
_STATE_ALIASES = {'WALKOVER': MatchState.WALK_OVER}

_MATCH_KEYS = {
    'id': 'id',
    'name': 'name',
    'nextMatchId': 'next_match_id',
    'next_match_id': 'next_match_id',
    'nextLooserMatchId': 'next_looser_match_id',
    'next_looser_match_id': 'next_looser_match_id',
    'tournamentRoundText': 'tournament_round_text',
    'tournament_round_text': 'tournament_round_text',
    'startTime': 'start_time',
    'start_time': 'start_time',
    'state': 'state',
    'participants': 'participants',
}


def _normalize_state(value, allowed, what):
    if value is None or value == '':
        return None
    value = _STATE_ALIASES.get(value, value)
    if value not in allowed:
        raise BracketDataError(f"Unknown {what} '{value}'")
    return value


def _check_id(value, what):
    # Ids are used as dict keys and compared across matches
    if value is None:
        return value
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise BracketDataError(f"{what} must be a string or an integer, got {value!r}")
    return value


def _pick(data, camel, snake, default=None):
    if camel in data:
        return data[camel]
    return data.get(snake, default)


class MatchParticipant:
    def __init__(self, id=None, name=None, result_text=None, is_winner=False, status=None):
        self.id = _check_id(id, "Participant id")
        self.name = name
        self.result_text = result_text
        self.is_winner = bool(is_winner)
        self.status = _normalize_state(status, MatchState.PARTICIPANT_STATUSES, 'participant status')

    @classmethod
    def from_dict(cls, data):
        if isinstance(data, cls):
            return data
        if not isinstance(data, dict):
            raise BracketDataError(f"Participant must be a mapping, got {type(data).__name__}")
        return cls(
            id=data.get('id'),
            name=data.get('name'),
            result_text=_pick(data, 'resultText', 'result_text'),
            is_winner=_pick(data, 'isWinner', 'is_winner', False),
            status=data.get('status'),
        )

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'resultText': self.result_text,
            'isWinner': self.is_winner,
            'status': self.status,
        }

    def copy(self, **changes):
        values = {
            'id': self.id,
            'name': self.name,
            'result_text': self.result_text,
            'is_winner': self.is_winner,
            'status': self.status,
        }
        values.update(changes)
        return MatchParticipant(**values)

    @property
    def has_id(self):
        return self.id is not None and self.id != ''

    def __repr__(self):
        return f"MatchParticipant(id={self.id}, name={self.name}, is_winner={self.is_winner}, status={self.status})"


class Match:
    def __init__(self, id, name='', next_match_id=None, next_looser_match_id=None,
                 tournament_round_text='', start_time='', state=None, participants=None, extra=None):
        if id is None:
            raise BracketDataError("Match is missing an id")
        participants = [MatchParticipant.from_dict(p) for p in (participants or [])]
        if len(participants) > 2:
            raise BracketDataError(f"Match {id} has {len(participants)} participants, at most 2 allowed")
        self.id = _check_id(id, "Match id")
        self.name = name or ''
        self.next_match_id = _check_id(next_match_id, f"nextMatchId of match {id!r}")
        self.next_looser_match_id = _check_id(next_looser_match_id, f"nextLooserMatchId of match {id!r}")
        self.tournament_round_text = tournament_round_text or ''
        self.start_time = start_time or ''
        self.state = _normalize_state(state, MatchState.ALL, 'match state')
        self.participants = participants
        self.extra = dict(extra) if extra else {}

    @classmethod
    def from_dict(cls, data):
        """Build a match from its wire record (camelCase or snake_case keys).

        Keys the model does not know about are kept in ``extra`` so custom
        renderers can still read them (court, week, scores display...).
        """
        if isinstance(data, cls):
            return data
        if not isinstance(data, dict):
            raise BracketDataError(f"Match must be a mapping, got {type(data).__name__}")
        if 'id' not in data:
            raise BracketDataError(f"Match record without id: {data!r}")
        values = {}
        extra = {}
        for key, value in data.items():
            field = _MATCH_KEYS.get(key)
            if field is None:
                extra[key] = value
            else:
                values[field] = value
        participants = values.pop('participants', None) or []
        if not isinstance(participants, list):
            raise BracketDataError(f"Match {data['id']} participants must be a list")
        return cls(participants=participants, extra=extra, **values)

    def to_dict(self):
        data = {
            'id': self.id,
            'name': self.name,
            'nextMatchId': self.next_match_id,
            'nextLooserMatchId': self.next_looser_match_id,
            'tournamentRoundText': self.tournament_round_text,
            'startTime': self.start_time,
            'state': self.state,
            'participants': [p.to_dict() for p in self.participants],
        }
        for key, value in self.extra.items():
            data.setdefault(key, value)
        return data

    def copy(self, **changes):
        values = {
            'id': self.id,
            'name': self.name,
            'next_match_id': self.next_match_id,
            'next_looser_match_id': self.next_looser_match_id,
            'tournament_round_text': self.tournament_round_text,
            'start_time': self.start_time,
            'state': self.state,
            'participants': [p.copy() for p in self.participants],
            'extra': self.extra,
        }
        values.update(changes)
        return Match(**values)

    def participant_ids(self):
        return [p.id for p in self.participants if p.has_id]

    def has_participant(self, party_id):
        if party_id is None:
            return False
        return any(p.id == party_id for p in self.participants)

    def walked_over(self, participant):
        """True when ``participant`` wins because the opponent never showed up."""
        if participant is None or not participant.has_id:
            return False
        teams_with_id = [p for p in self.participants if p.has_id]
        return self.state == MatchState.WALK_OVER and len(teams_with_id) < 2

    def participant_won(self, participant):
        if participant is None:
            return False
        return (participant.status == MatchState.WALK_OVER
                or self.walked_over(participant)
                or participant.is_winner)

    def __repr__(self):
        return f"Match(id={self.id}, name={self.name}, next_match_id={self.next_match_id}, state={self.state})"


def load_matches(data):
    """Normalize a ``{'upper': [...], 'lower': [...]}`` mapping into Match lists."""
    if data is None:
        return {'upper': [], 'lower': []}
    if not isinstance(data, dict):
        raise BracketDataError("Bracket data must be a mapping with 'upper' and 'lower' lists")
    result = {}
    for half in ('upper', 'lower'):
        records = data.get(half) or []
        if not isinstance(records, list):
            raise BracketDataError(f"'{half}' must be a list of matches")
        result[half] = [Match.from_dict(record) for record in records]
    return result
