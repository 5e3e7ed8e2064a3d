"""
Shared pytest fixtures for bracket layout tests.

Running tests:
    pytest tests/                  - full suite
    pytest tests/ -m "not slow"   - skip the larger generated brackets
"""
import pytest
import sys
import os

from filelock import FileLock

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from core.double_elimination import generate_double_elimination_matches
from core.models import Match, MatchParticipant
from core.settings import merge_style


def make_match(id, name=None, next_match_id=None, participants=None, **kwargs):
    """Build a Match from (id, name) participant pairs."""
    parties = [MatchParticipant(id=p[0], name=p[1]) if isinstance(p, tuple) else p
               for p in (participants or [])]
    return Match(id=id, name=name or f'M{id}', next_match_id=next_match_id, participants=parties, **kwargs)


@pytest.fixture
def style():
    """Default style, merged."""
    return merge_style()


@pytest.fixture
def four_two_one():
    """Upper bracket only: 4 first-round matches, 2 semis, 1 final."""
    return {
        'upper': [
            make_match(1, 'R1-M1', 5, [('t1', 'Team 1'), ('t8', 'Team 8')]),
            make_match(2, 'R1-M2', 5, [('t4', 'Team 4'), ('t5', 'Team 5')]),
            make_match(3, 'R1-M3', 6, [('t2', 'Team 2'), ('t7', 'Team 7')]),
            make_match(4, 'R1-M4', 6, [('t3', 'Team 3'), ('t6', 'Team 6')]),
            make_match(5, 'R2-M1', 7),
            make_match(6, 'R2-M2', 7),
            make_match(7, 'R3-M1'),
        ],
        'lower': [],
    }


@pytest.fixture
def eight_teams():
    return [f'Team {i}' for i in range(1, 9)]


@pytest.fixture
def eight_team_bracket(eight_teams):
    return generate_double_elimination_matches(eight_teams)


@pytest.fixture
def four_team_bracket():
    return generate_double_elimination_matches(['A', 'B', 'C', 'D'])


@pytest.fixture
def client():
    """Create a test client."""
    from app import app
    app.config['TESTING'] = True
    with app.test_client() as client:
        yield client


@pytest.fixture
def temp_data_dir(tmp_path, monkeypatch):
    """Point the service at a temporary data directory with a brackets folder."""
    import app as app_module

    (tmp_path / "brackets").mkdir()
    monkeypatch.setattr(app_module, 'DATA_DIR', str(tmp_path))
    monkeypatch.setattr(app_module, '_data_lock', FileLock(str(tmp_path / '.lock'), timeout=10))
    monkeypatch.setattr(app_module, 'FILL_BYES', False)
    return tmp_path
