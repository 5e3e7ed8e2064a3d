"""
Column reconstruction for one half of a double elimination bracket.

Matches arrive as a flat list where each match only knows where its winner
(``next_match_id``) and loser (``next_looser_match_id``) go. ``MatchIndex``
materializes that list once into an id-indexed arena with resolved
predecessors; the column builders walk it backwards from the last match of the
sub-bracket.
"""
import logging
import re
from collections import defaultdict
from typing import Dict, List, Optional, Tuple

from .models import Match, MatchParticipant, MatchState

logger = logging.getLogger(__name__)

BYE_NAME = 'BYE'


def natural_sort_key(name) -> List:
    """Sort key comparing digit runs numerically ("Match 2" < "Match 10")."""
    parts = re.split(r'(\d+)', str(name or ''))
    return [int(part) if i % 2 else part.casefold() for i, part in enumerate(parts)]


def sort_alphanumerically(a, b) -> int:
    key_a, key_b = natural_sort_key(a), natural_sort_key(b)
    if key_a < key_b:
        return -1
    if key_a > key_b:
        return 1
    return 0


class MatchIndex:
    """Matches indexed by id with their predecessors resolved."""

    def __init__(self, matches):
        self.matches = list(matches)
        self.by_id: Dict[object, Match] = {}
        self._predecessors = defaultdict(list)
        self._loser_predecessors = defaultdict(list)

        for match in self.matches:
            if match.id in self.by_id:
                logger.debug(f"Duplicate match id {match.id!r}, keeping the first occurrence")
                continue
            self.by_id[match.id] = match
            if match.next_match_id is not None:
                self._predecessors[match.next_match_id].append(match)
            if match.next_looser_match_id is not None:
                self._loser_predecessors[match.next_looser_match_id].append(match)

        # Stable sort keeps input order for equal names
        for feeders in self._predecessors.values():
            feeders.sort(key=lambda m: natural_sort_key(m.name))
        for feeders in self._loser_predecessors.values():
            feeders.sort(key=lambda m: natural_sort_key(m.name))

    def __contains__(self, match_id):
        return match_id in self.by_id

    def __len__(self):
        return len(self.by_id)

    def get(self, match_id) -> Optional[Match]:
        return self.by_id.get(match_id)

    def predecessors(self, match_id) -> List[Match]:
        """Matches whose winner advances into ``match_id``."""
        return list(self._predecessors.get(match_id, []))

    def loser_predecessors(self, match_id) -> List[Match]:
        """Matches whose loser drops into ``match_id``."""
        return list(self._loser_predecessors.get(match_id, []))

    def successor(self, match: Match) -> Optional[Match]:
        return self.by_id.get(match.next_match_id)

    def loser_successor(self, match: Match) -> Optional[Match]:
        return self.by_id.get(match.next_looser_match_id)

    def previous_round(self, matches_column) -> List[Match]:
        result = []
        for match in matches_column:
            result.extend(self._predecessors.get(match.id, []))
        return result


def _as_index(list_of_matches) -> MatchIndex:
    if isinstance(list_of_matches, MatchIndex):
        return list_of_matches
    return MatchIndex(list_of_matches)


def previous_round(matches_column, list_of_matches) -> List[Match]:
    """Return the round feeding ``matches_column``, in bracket seeding order.

    For every match of the column, the matches pointing at it are sorted by
    name (numeric aware) and appended, so the result keeps the column order.
    References to ids that are not in ``list_of_matches`` are ignored.
    """
    return _as_index(list_of_matches).previous_round(matches_column)


def generate_columns(final_match: Optional[Match], list_of_matches) -> List[List[Match]]:
    """Rebuild the columns of a sub-bracket ending in ``final_match``.

    Columns are returned first round first, the last column being
    ``[final_match]``. A match is placed at most once, so reference cycles in
    malformed data stop the walk instead of looping.
    """
    if final_match is None:
        return []
    index = _as_index(list_of_matches)
    placed = {final_match.id}
    columns = [[final_match]]
    current = [final_match]
    while True:
        previous = []
        for match in index.previous_round(current):
            if match.id in placed:
                logger.debug(f"Match {match.id!r} already placed, skipping repeated reference")
                continue
            placed.add(match.id)
            previous.append(match)
        if not previous:
            break
        columns.insert(0, previous)
        current = previous
    return columns


def previous_matches_at(column_index: int, columns: List[List[Match]],
                        previous_bottom_row_index: int) -> Tuple[Optional[Match], Optional[Match]]:
    """Return the (top, bottom) matches of the previous column feeding a row.

    The bottom feeder sits at ``previous_bottom_row_index`` and the top one
    right above it. First-round columns have no feeders.
    """
    if column_index == 0 or column_index > len(columns):
        return None, None
    previous_column = columns[column_index - 1]

    def at(row_index):
        if 0 <= row_index < len(previous_column):
            return previous_column[row_index]
        return None

    return at(previous_bottom_row_index - 1), at(previous_bottom_row_index)


def seed_order_key(previous_bottom_match: Optional[Match]):
    """Key placing the participant coming from the bottom feeder second."""
    bottom_ids = previous_bottom_match.participant_ids() if previous_bottom_match else []

    def key(party: MatchParticipant) -> int:
        return 1 if party.has_id and party.id in bottom_ids else 0

    return key


def sort_teams_seed_order(teams, previous_bottom_match: Optional[Match] = None) -> List[MatchParticipant]:
    return sorted(teams, key=seed_order_key(previous_bottom_match))


def _next_bye_id(used_ids, start=-1):
    bye_id = start
    while bye_id in used_ids:
        bye_id -= 1
    return bye_id


def insert_bye_matches(final_match: Optional[Match], list_of_matches) -> List[Match]:
    """Pad a sub-bracket with BYE walkover matches so every round halves.

    Fields that aren't a power of two often send top seeds straight into the
    second round, which gives that round a single feeder and leaves columns
    like 2-2-1 that the exponential spacing draws on top of each other. Each
    missing feeder of a real match gets a synthetic BYE match (negative id)
    won by the team that skipped the round. Returns a new list; the input
    matches are not modified.
    """
    matches = list(list_of_matches)
    if final_match is None:
        return matches
    index = MatchIndex(matches)
    columns = generate_columns(final_match, index)
    used_ids = set(index.by_id) | {final_match.id}
    byes = []
    bye_id = -1

    for column in columns[1:]:
        for match in column:
            feeders = index.predecessors(match.id)
            missing = 2 - len(feeders)
            if missing <= 0:
                continue
            fed_ids = {pid for feeder in feeders for pid in feeder.participant_ids()}
            direct = [p for p in match.participants if p.has_id and p.id not in fed_ids]
            for slot in range(missing):
                bye_id = _next_bye_id(used_ids, bye_id)
                used_ids.add(bye_id)
                if slot < len(direct):
                    team = direct[slot].copy(is_winner=True, status=MatchState.WALK_OVER, result_text=None)
                else:
                    team = MatchParticipant(id=f'bye-team-{bye_id}', is_winner=True, status=MatchState.WALK_OVER)
                byes.append(Match(
                    id=bye_id,
                    name=BYE_NAME,
                    next_match_id=match.id,
                    tournament_round_text=BYE_NAME,
                    state=MatchState.WALK_OVER,
                    participants=[
                        team,
                        MatchParticipant(id=f'bye-{bye_id}', name=BYE_NAME, status=MatchState.NO_SHOW),
                    ],
                    extra={'isBye': True},
                ))
                logger.debug(f"Inserted BYE match {bye_id} feeding match {match.id!r}")
    return matches + byes
