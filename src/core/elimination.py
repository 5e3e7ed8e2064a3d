"""
Seeding helpers shared by the bracket generator.
"""
import math
from typing import Dict, List, Tuple, Union

from .models import BracketDataError

TeamEntry = Union[str, Tuple, Dict]


def calculate_bracket_size(num_teams: int) -> int:
    """Calculate the bracket size (next power of 2)."""
    if num_teams <= 0:
        return 0
    return 2 ** math.ceil(math.log2(num_teams))


def calculate_byes(num_teams: int) -> int:
    """Calculate number of byes needed."""
    bracket_size = calculate_bracket_size(num_teams)
    return bracket_size - num_teams


def generate_bracket_order(bracket_size: int) -> List[int]:
    """
    Generate the standard tournament bracket order.
    This ensures that if all higher seeds win, they meet in the proper rounds.

    For 8 teams: [1, 8, 4, 5, 2, 7, 3, 6]
    This gives matchups: 1v8, 4v5, 2v7, 3v6
    Winners: 1v4 side, 2v3 side
    Final: 1v2 (if chalk)
    """
    if bracket_size < 2:
        return [1] if bracket_size == 1 else []
    if bracket_size == 2:
        return [1, 2]

    half_size = bracket_size // 2
    upper_half = generate_bracket_order(half_size)

    # Lower half is the complement of the upper half
    lower_half = [bracket_size + 1 - seed for seed in upper_half]

    result = []
    for u, l in zip(upper_half, lower_half):
        result.extend([u, l])

    return result


def seed_teams(teams: List[TeamEntry]) -> List[Tuple[object, str, int]]:
    """
    Normalize a division's team list into (team_id, team_name, seed) tuples.

    Accepts plain names (id = name), (id, name) tuples, or dicts with 'id',
    'name' and optional 'seed'. Without explicit seeds, list order is seed
    order. Returns the teams sorted by seed.
    """
    seeded = []
    for position, team in enumerate(teams, start=1):
        if isinstance(team, str):
            team_id, name, seed = team, team, position
        elif isinstance(team, (tuple, list)) and len(team) >= 2:
            team_id, name = team[0], team[1]
            seed = team[2] if len(team) > 2 else position
        elif isinstance(team, dict) and ('id' in team or 'name' in team):
            name = team.get('name')
            team_id = team.get('id', name)
            seed = team.get('seed', position)
        else:
            raise BracketDataError(f"Cannot read team entry {team!r}")
        seeded.append((team_id, name, seed))

    seeds = [seed for _, _, seed in seeded]
    if len(set(seeds)) != len(seeds):
        raise BracketDataError("Duplicate seeds in team list")
    ids = [team_id for team_id, _, _ in seeded]
    if len(set(ids)) != len(ids):
        raise BracketDataError("Duplicate team ids in team list")

    seeded.sort(key=lambda t: t[2])
    # Re-number so seeds are 1..N even if the source skipped values
    return [(team_id, name, i) for i, (team_id, name, _) in enumerate(seeded, start=1)]
