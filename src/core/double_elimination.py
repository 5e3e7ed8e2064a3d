"""
Double elimination bracket generation and result propagation.

In double elimination:
- Teams must lose twice to be eliminated
- Winners Bracket (upper): Teams that haven't lost yet
- Losers Bracket (lower): Teams that have lost once
- Grand Final: Winners bracket champion vs Losers bracket champion
- Bracket Reset: If losers bracket winner wins Grand Final, a final match decides the champion

The generator produces the same ``{'upper': [...], 'lower': [...]}`` match
lists the renderer consumes, so a division can be drawn before any game is
played and redrawn as results come in.
"""
import logging
import math
from collections import deque
from typing import Dict, List, Optional, Tuple

from .elimination import calculate_bracket_size, calculate_byes, generate_bracket_order, seed_teams
from .match_graph import MatchIndex
from .models import BracketDataError, Match, MatchParticipant, MatchState, load_matches

logger = logging.getLogger(__name__)

GRAND_FINAL = 'GF'
BRACKET_RESET = 'BR'

# Slot sources while the bracket is being wired
_TEAM = 'team'
_WINNER = 'winner'
_LOSER = 'loser'

# Names of the id-less placeholders that hold a slot until its team is known
WINNER_LABEL = 'Winner #{}'
LOSER_LABEL = 'Loser #{}'


def slot_label(kind: str, match_id) -> str:
    """Placeholder name for the slot fed by the winner or loser of ``match_id``."""
    return (WINNER_LABEL if kind == _WINNER else LOSER_LABEL).format(match_id)


def get_losers_round_name(round_num: int, total_losers_rounds: int) -> str:
    """Get the name for a losers bracket round (0-indexed)."""
    rounds_from_end = total_losers_rounds - round_num - 1
    if rounds_from_end == 0:
        return "Losers Final"
    elif rounds_from_end == 1:
        return "Losers Semifinal"
    else:
        return f"Losers Round {round_num + 1}"


def get_winners_round_name(teams_in_round: int) -> str:
    """Get the name for a winners bracket round."""
    if teams_in_round == 2:
        return "Winners Final"
    elif teams_in_round == 4:
        return "Winners Semifinal"
    elif teams_in_round == 8:
        return "Winners Quarterfinal"
    else:
        return f"Winners Round of {teams_in_round}"


def calculate_losers_bracket_rounds(bracket_size: int) -> int:
    """
    Calculate number of rounds in losers bracket.
    For N teams in winners bracket (power of 2):
    - Winners bracket has log2(N) rounds
    - Losers bracket has 2 * (log2(N) - 1) rounds

    Pattern: minor, major, minor, major, ... ending with a major round
    """
    if bracket_size < 2:
        return 0
    winners_rounds = int(math.log2(bracket_size))
    return 2 * (winners_rounds - 1)


def _winners_slots(round_num: int, num_matches: int, bracket_order: List[int], seed_to_team: Dict,
                   prefix: str) -> List[List[Tuple]]:
    if round_num == 0:
        return [
            [(_TEAM, seed_to_team.get(bracket_order[i * 2])), (_TEAM, seed_to_team.get(bracket_order[i * 2 + 1]))]
            for i in range(num_matches)
        ]
    prev_round_code = f"{prefix}W{round_num}"
    return [
        [(_WINNER, f"{prev_round_code}-M{i * 2 + 1}"), (_WINNER, f"{prev_round_code}-M{i * 2 + 2}")]
        for i in range(num_matches)
    ]


def _losers_rounds(bracket_size: int, total_losers_rounds: int, prefix: str) -> List[List[List[Tuple]]]:
    """
    Slots of every losers bracket round.

    The losers bracket alternates between:
    - Minor rounds (even indices: 0, 2, 4...): Only losers bracket teams compete
      (round 0 pairs off the losers of winners round 1)
    - Major rounds (odd indices: 1, 3, 5...): Losers from winners bracket drop in
    """
    rounds = []
    current_losers_count = bracket_size // 2
    winners_round_idx = 1

    for round_num in range(total_losers_rounds):
        if round_num == 0:
            num_matches = current_losers_count // 2
            slots = [
                [(_LOSER, f"{prefix}W1-M{i * 2 + 1}"), (_LOSER, f"{prefix}W1-M{i * 2 + 2}")]
                for i in range(num_matches)
            ]
            current_losers_count = num_matches
        elif round_num % 2 == 1:
            winners_round_idx += 1
            slots = [
                [(_LOSER, f"{prefix}W{winners_round_idx}-M{i + 1}"), (_WINNER, f"{prefix}L{round_num}-M{i + 1}")]
                for i in range(current_losers_count)
            ]
        else:
            num_matches = current_losers_count // 2
            slots = [
                [(_WINNER, f"{prefix}L{round_num}-M{i * 2 + 1}"), (_WINNER, f"{prefix}L{round_num}-M{i * 2 + 2}")]
                for i in range(num_matches)
            ]
            current_losers_count = num_matches
        rounds.append(slots)

    return rounds


def generate_double_elimination_matches(teams, prefix: str = "", bracket_reset: bool = False) -> Dict[str, List[Match]]:
    """
    Generate the full double elimination bracket for a list of teams.

    Args:
        teams: Team entries in seed order (see ``seed_teams``)
        prefix: Prefix for match names ("" for Gold, "S" for Silver)
        bracket_reset: Add the "if necessary" match after the Grand Final

    Returns ``{'upper': [...], 'lower': [...]}``. Match ids are sequential
    integers, names are the match codes (W1-M1, L2-M1, GF...). The Grand
    Final and the reset match live in ``upper``.

    First round byes are WALK_OVER matches with a single participant. Lower
    bracket matches that can only ever receive one team are WALK_OVER, those
    that can receive none are NO_PARTY.

    Slots waiting on another match hold an id-less participant named after
    their source ("Winner #3", "Loser #5"), replaced when the team advances.
    Slots that will never receive a team stay empty.
    """
    seeded_teams = seed_teams(teams)
    if len(seeded_teams) < 2:
        return {'upper': [], 'lower': []}

    bracket_size = calculate_bracket_size(len(seeded_teams))
    total_winners_rounds = int(math.log2(bracket_size))
    total_losers_rounds = calculate_losers_bracket_rounds(bracket_size)
    seed_to_team = {seed: (team_id, name) for team_id, name, seed in seeded_teams}
    bracket_order = generate_bracket_order(bracket_size)

    # code -> plan, in creation order (every slot refers to an earlier code)
    planned = {}

    def add(code, half, round_text, slots, extra=None):
        planned[code] = {
            'id': len(planned) + 1,
            'half': half,
            'round_text': round_text,
            'slots': slots,
            'extra': extra or {},
            'next': None,
            'loser_next': None,
        }

    current_teams_count = bracket_size
    for round_num in range(total_winners_rounds):
        num_matches = current_teams_count // 2
        round_name = get_winners_round_name(current_teams_count)
        for i, slots in enumerate(_winners_slots(round_num, num_matches, bracket_order, seed_to_team, prefix)):
            add(f"{prefix}W{round_num + 1}-M{i + 1}", 'upper', str(round_num + 1), slots, {'roundName': round_name})
        current_teams_count //= 2

    upper_final = f"{prefix}W{total_winners_rounds}-M1"
    for round_num, round_slots in enumerate(_losers_rounds(bracket_size, total_losers_rounds, prefix)):
        round_name = get_losers_round_name(round_num, total_losers_rounds)
        for i, slots in enumerate(round_slots):
            add(f"{prefix}L{round_num + 1}-M{i + 1}", 'lower', str(round_num + 1), slots, {'roundName': round_name})

    if total_losers_rounds:
        lower_final = (_WINNER, f"{prefix}L{total_losers_rounds}-M1")
    else:
        # Two teams: the first round loser goes straight to the Grand Final
        lower_final = (_LOSER, upper_final)
    grand_final = f"{prefix}{GRAND_FINAL}"
    add(grand_final, 'upper', GRAND_FINAL, [(_WINNER, upper_final), lower_final], {'roundName': 'Grand Final'})
    if bracket_reset:
        add(f"{prefix}{BRACKET_RESET}", 'upper', BRACKET_RESET, [(_WINNER, grand_final), (_LOSER, grand_final)],
            {'roundName': 'Bracket Reset', 'ifNecessary': True})

    # Wire next / next-looser references and work out which slots stay empty
    dead_winner = {}
    dead_loser = {}
    for code, plan in planned.items():
        plan['dead'] = []
        for kind, ref in plan['slots']:
            if kind == _TEAM:
                plan['dead'].append(ref is None)
            elif kind == _WINNER:
                planned[ref]['next'] = code
                plan['dead'].append(dead_winner[ref])
            else:
                planned[ref]['loser_next'] = code
                plan['dead'].append(dead_loser[ref])
        dead_slots = sum(plan['dead'])
        dead_winner[code] = dead_slots == 2
        dead_loser[code] = dead_slots >= 1
        if dead_slots == 2:
            plan['state'] = MatchState.NO_PARTY
        elif dead_slots == 1:
            plan['state'] = MatchState.WALK_OVER
        else:
            plan['state'] = None

    bracket = {'upper': [], 'lower': []}
    for code, plan in planned.items():
        participants = []
        for (kind, ref), dead in zip(plan['slots'], plan['dead']):
            if dead:
                continue
            if kind == _TEAM:
                participants.append(MatchParticipant(id=ref[0], name=ref[1]))
            else:
                participants.append(MatchParticipant(name=slot_label(kind, planned[ref]['id'])))
        extra = dict(plan['extra'])
        if plan['half'] == 'upper' and plan['round_text'] == '1' and len(participants) == 1:
            extra['isBye'] = True
        bracket[plan['half']].append(Match(
            id=plan['id'],
            name=code,
            next_match_id=planned[plan['next']]['id'] if plan['next'] else None,
            next_looser_match_id=planned[plan['loser_next']]['id'] if plan['loser_next'] else None,
            tournament_round_text=plan['round_text'],
            state=plan['state'],
            participants=participants,
            extra=extra,
        ))

    logger.debug(f"Generated double elimination bracket for {len(seeded_teams)} teams "
                 f"({calculate_byes(len(seeded_teams))} byes, "
                 f"{len(bracket['upper'])} upper, {len(bracket['lower'])} lower matches)")
    return bracket


def determine_winner(sets):
    """Determine winner from set scores. Returns (winner_index, set_wins)."""
    if not sets:
        return None, (0, 0)

    wins = [0, 0]
    for set_score in sets:
        if len(set_score) >= 2 and set_score[0] is not None and set_score[1] is not None:
            if set_score[0] > set_score[1]:
                wins[0] += 1
            elif set_score[1] > set_score[0]:
                wins[1] += 1

    # Auto-detect winner (best of 3: need 2 wins, single set: need 1 win)
    if wins[0] >= 2 or (len(sets) == 1 and wins[0] > wins[1]):
        return 0, tuple(wins)
    elif wins[1] >= 2 or (len(sets) == 1 and wins[1] > wins[0]):
        return 1, tuple(wins)

    return None, tuple(wins)


def format_set_scores(sets, winner_idx: Optional[int] = None) -> str:
    """Set scores as "25-20  25-22", from the winner's point of view."""
    scores = []
    for set_score in sets:
        if len(set_score) < 2 or set_score[0] is None or set_score[1] is None:
            continue
        first, second = set_score[0], set_score[1]
        if winner_idx == 1:
            first, second = second, first
        scores.append(f"{first}-{second}")
    return '  '.join(scores)


def _check_sets(match_id, sets):
    if not isinstance(sets, list):
        raise BracketDataError(f"Sets of match {match_id!r} must be a list of score pairs")
    for set_score in sets:
        if not isinstance(set_score, (list, tuple)) or not all(
                score is None or (isinstance(score, (int, float)) and not isinstance(score, bool))
                for score in set_score):
            raise BracketDataError(f"Match {match_id!r} has an invalid set score {set_score!r}")


def _lookup(matches_by_key: Dict, match_id) -> Optional[Match]:
    # Result files keyed by YAML/JSON strings still match integer ids
    match = matches_by_key.get(match_id)
    if match is None:
        match = matches_by_key.get(str(match_id))
    return match


def apply_results(bracket: Dict[str, List], results: Dict) -> Dict[str, List[Match]]:
    """
    Record played games on a copy of the bracket.

    ``results`` maps match id to ``{'sets': [[a, b], ...]}`` (scores listed in
    participant order) or ``{'winner': party_id}``. Scored matches become
    SCORE_DONE with the set count (or the points of a single set) as result
    text and the set scores in ``extra['scoresDisplay']``. Winner-only
    matches become DONE.

    Only matches whose teams are already known can take a result, see
    ``record_results`` for results further down the bracket.
    """
    copied = {half: [Match.from_dict(m).copy() for m in bracket.get(half, [])] for half in ('upper', 'lower')}
    matches_by_key = {}
    for match in copied['upper'] + copied['lower']:
        matches_by_key.setdefault(match.id, match)
        matches_by_key.setdefault(str(match.id), match)

    for match_id, result in (results or {}).items():
        match = _lookup(matches_by_key, match_id)
        if match is None:
            raise BracketDataError(f"Result for unknown match {match_id!r}")
        if not isinstance(result, dict):
            raise BracketDataError(f"Result for match {match_id!r} must be a mapping")

        if 'sets' in result:
            if len(match.participant_ids()) != 2:
                raise BracketDataError(f"Match {match_id!r} needs two participants before it can be scored")
            sets = result['sets'] or []
            _check_sets(match_id, sets)
            winner_idx, set_wins = determine_winner(sets)
            scores = format_set_scores(sets, winner_idx)
            if scores:
                match.extra['scoresDisplay'] = scores
            if len(sets) == 1 and len(sets[0]) >= 2:
                texts = (sets[0][0], sets[0][1])
            else:
                texts = set_wins
            for i, participant in enumerate(match.participants):
                participant.result_text = str(texts[i]) if texts[i] is not None else None
                participant.is_winner = i == winner_idx
                participant.status = MatchState.PLAYED
            if winner_idx is not None:
                match.state = MatchState.SCORE_DONE
        elif 'winner' in result:
            winner_id = result['winner']
            if len(match.participant_ids()) != 2:
                raise BracketDataError(f"Match {match_id!r} needs two participants before it has a winner")
            if not match.has_participant(winner_id):
                raise BracketDataError(f"Winner {winner_id!r} does not play in match {match_id!r}")
            for participant in match.participants:
                participant.is_winner = participant.id == winner_id
                participant.status = MatchState.PLAYED
            match.state = MatchState.DONE
        else:
            raise BracketDataError(f"Result for match {match_id!r} has neither 'sets' nor 'winner'")

    return copied


def match_outcome(match: Match) -> Tuple[Optional[MatchParticipant], Optional[MatchParticipant]]:
    """Return (winner, loser) of a decided match, or (None, None).

    Walkover winners count. A walkover produces no loser.
    """
    winners = [p for p in match.participants if p.has_id and match.participant_won(p)]
    if len(winners) != 1:
        return None, None
    winner = winners[0]
    others = [p for p in match.participants if p is not winner and p.has_id and p.status != MatchState.NO_SHOW]
    if match.state == MatchState.WALK_OVER or not others:
        return winner, None
    return winner, others[0]


def _advance(target: Optional[Match], participant: Optional[MatchParticipant], label: str):
    if target is None or participant is None:
        return
    if target.has_participant(participant.id):
        return
    arriving = MatchParticipant(id=participant.id, name=participant.name)
    for slot, placeholder in enumerate(target.participants):
        if not placeholder.has_id and placeholder.name == label:
            target.participants[slot] = arriving
            return
    if len(target.participants) >= 2:
        logger.debug(f"Match {target.id!r} is full, not advancing {participant.id!r}")
        return
    target.participants.append(arriving)


def _topological_order(index: MatchIndex) -> List[Match]:
    matches = list(index.by_id.values())
    indegree = {match.id: 0 for match in matches}
    for match in matches:
        for target in (match.next_match_id, match.next_looser_match_id):
            if target in indegree:
                indegree[target] += 1

    queue = deque(match for match in matches if indegree[match.id] == 0)
    ordered = []
    while queue:
        match = queue.popleft()
        ordered.append(match)
        for target in (match.next_match_id, match.next_looser_match_id):
            if target in indegree:
                indegree[target] -= 1
                if indegree[target] == 0:
                    queue.append(index.get(target))

    if len(ordered) < len(matches):
        stuck = [match.id for match in matches if indegree[match.id] > 0]
        logger.warning(f"Match references form a cycle, not propagating into {stuck}")
    return ordered


def propagate_results(bracket: Dict[str, List]) -> Dict[str, List[Match]]:
    """
    Advance decided matches on a copy of the bracket.

    Winners move along ``next_match_id``, losers along ``next_looser_match_id``,
    in dependency order so one call settles chains of walkovers. The
    "if necessary" reset match only fills when the lower bracket champion
    wins the Grand Final.
    """
    copied = {half: [Match.from_dict(m).copy() for m in bracket.get(half, [])] for half in ('upper', 'lower')}
    index = MatchIndex(copied['upper'] + copied['lower'])
    lower_ids = {match.id for match in copied['lower']}

    for match in _topological_order(index):
        winner, loser = match_outcome(match)
        if winner is None:
            continue
        successor = index.successor(match)
        loser_successor = index.loser_successor(match)
        if successor is not None and successor.extra.get('ifNecessary'):
            upper_champions = [match_outcome(m)[0] for m in index.predecessors(match.id) if m.id not in lower_ids]
            if any(champion is not None and champion.id == winner.id for champion in upper_champions):
                logger.debug(f"Upper bracket champion won match {match.id!r}, reset not needed")
                continue
        _advance(successor, winner, slot_label(_WINNER, match.id))
        _advance(loser_successor, loser, slot_label(_LOSER, match.id))

    return copied


def record_results(bracket: Dict[str, List], results: Dict) -> Dict[str, List[Match]]:
    """
    Apply a whole set of results to a bracket and advance the teams.

    Results are applied one match at a time in bracket order, propagating
    after each, so a result for a later round finds the teams that earlier
    results sent there.
    """
    bracket = propagate_results(bracket)
    pending = dict(results or {})
    if not pending:
        return bracket

    index = MatchIndex(bracket['upper'] + bracket['lower'])
    for match in _topological_order(index):
        for key in (match.id, str(match.id)):
            if key in pending:
                bracket = propagate_results(apply_results(bracket, {key: pending.pop(key)}))

    if pending:
        # Unknown ids, or matches caught in a reference cycle
        bracket = propagate_results(apply_results(bracket, pending))
    logger.debug(f"Recorded {len(results)} results")
    return bracket


def load_bracket(data) -> Dict[str, List[Match]]:
    """
    Build a bracket from the contents of a bracket file.

    The mapping holds either the exported ``upper`` / ``lower`` match lists,
    or a ``teams`` list in seed order with optional ``results`` and
    ``bracket_reset``, in which case the bracket is generated.
    """
    if isinstance(data, dict) and 'teams' in data:
        teams = data['teams'] or []
        if not isinstance(teams, list):
            raise BracketDataError("'teams' must be a list")
        results = data.get('results') or {}
        if not isinstance(results, dict):
            raise BracketDataError("'results' must map match ids to results")
        bracket = generate_double_elimination_matches(teams, bracket_reset=bool(data.get('bracket_reset')))
        return record_results(bracket, results)
    return load_matches(data)
