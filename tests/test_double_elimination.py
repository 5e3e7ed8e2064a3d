"""
Tests for double elimination bracket generation and result propagation.
"""
import pytest

from core.double_elimination import (
    apply_results,
    calculate_losers_bracket_rounds,
    determine_winner,
    format_set_scores,
    generate_double_elimination_matches,
    get_losers_round_name,
    get_winners_round_name,
    load_bracket,
    match_outcome,
    propagate_results,
    record_results,
)
from core.models import BracketDataError, Match, MatchState


def by_name(bracket, name):
    return next(m for half in ('upper', 'lower') for m in bracket[half] if m.name == name)


def ids_of(bracket):
    return {m.name: m.id for half in ('upper', 'lower') for m in bracket[half]}


def play(bracket, name, winner_first=True):
    """Score a match 2-0 for the first (or second) participant and propagate."""
    sets = [[25, 20], [25, 18]] if winner_first else [[20, 25], [18, 25]]
    bracket = apply_results(bracket, {by_name(bracket, name).id: {'sets': sets}})
    return propagate_results(bracket)


class TestLosersRoundName:
    """Tests for get_losers_round_name."""

    def test_losers_final(self):
        """Last round (round_num == total - 1) is Losers Final."""
        assert get_losers_round_name(3, 4) == "Losers Final"

    def test_losers_semifinal(self):
        assert get_losers_round_name(2, 4) == "Losers Semifinal"

    def test_losers_numbered_round(self):
        assert get_losers_round_name(0, 4) == "Losers Round 1"


class TestWinnersRoundName:
    """Tests for get_winners_round_name."""

    def test_named_rounds(self):
        assert get_winners_round_name(2) == "Winners Final"
        assert get_winners_round_name(4) == "Winners Semifinal"
        assert get_winners_round_name(8) == "Winners Quarterfinal"

    def test_round_of_n(self):
        assert get_winners_round_name(16) == "Winners Round of 16"


class TestLosersBracketRounds:
    """Tests for calculate_losers_bracket_rounds."""

    def test_sizes(self):
        assert calculate_losers_bracket_rounds(2) == 0
        assert calculate_losers_bracket_rounds(4) == 2
        assert calculate_losers_bracket_rounds(8) == 4
        assert calculate_losers_bracket_rounds(16) == 6

    def test_too_small(self):
        assert calculate_losers_bracket_rounds(1) == 0


class TestGenerateMatches:
    """Tests for generate_double_elimination_matches."""

    def test_eight_team_structure(self, eight_team_bracket):
        names = [m.name for m in eight_team_bracket['upper']]
        assert names == ['W1-M1', 'W1-M2', 'W1-M3', 'W1-M4', 'W2-M1', 'W2-M2', 'W3-M1', 'GF']
        assert [m.name for m in eight_team_bracket['lower']] == ['L1-M1', 'L1-M2', 'L2-M1', 'L2-M2',
                                                                  'L3-M1', 'L4-M1']

    def test_ids_sequential(self, eight_team_bracket):
        ids = sorted(ids_of(eight_team_bracket).values())
        assert ids == list(range(1, 15))

    def test_first_round_seeding(self, eight_team_bracket):
        first = by_name(eight_team_bracket, 'W1-M1')
        assert [p.name for p in first.participants] == ['Team 1', 'Team 8']
        second = by_name(eight_team_bracket, 'W1-M2')
        assert [p.name for p in second.participants] == ['Team 4', 'Team 5']

    def test_winner_wiring(self, eight_team_bracket):
        ids = ids_of(eight_team_bracket)
        assert by_name(eight_team_bracket, 'W1-M1').next_match_id == ids['W2-M1']
        assert by_name(eight_team_bracket, 'W1-M4').next_match_id == ids['W2-M2']
        assert by_name(eight_team_bracket, 'W3-M1').next_match_id == ids['GF']
        assert by_name(eight_team_bracket, 'L4-M1').next_match_id == ids['GF']
        assert by_name(eight_team_bracket, 'GF').next_match_id is None

    def test_loser_wiring(self, eight_team_bracket):
        ids = ids_of(eight_team_bracket)
        assert by_name(eight_team_bracket, 'W1-M1').next_looser_match_id == ids['L1-M1']
        assert by_name(eight_team_bracket, 'W1-M3').next_looser_match_id == ids['L1-M2']
        assert by_name(eight_team_bracket, 'W2-M2').next_looser_match_id == ids['L2-M2']
        assert by_name(eight_team_bracket, 'W3-M1').next_looser_match_id == ids['L4-M1']
        assert by_name(eight_team_bracket, 'L2-M1').next_match_id == ids['L3-M1']

    def test_round_text(self, eight_team_bracket):
        assert by_name(eight_team_bracket, 'W2-M1').tournament_round_text == '2'
        assert by_name(eight_team_bracket, 'L3-M1').tournament_round_text == '3'
        assert by_name(eight_team_bracket, 'GF').tournament_round_text == 'GF'
        assert by_name(eight_team_bracket, 'L4-M1').extra['roundName'] == 'Losers Final'

    def test_no_byes_in_full_field(self, eight_team_bracket):
        assert all(m.state is None for half in eight_team_bracket.values() for m in half)

    def test_byes_are_walkovers(self):
        bracket = generate_double_elimination_matches([f'Team {i}' for i in range(1, 6)])
        first = by_name(bracket, 'W1-M1')
        assert first.state == MatchState.WALK_OVER
        assert [p.name for p in first.participants] == ['Team 1']
        assert first.extra['isBye'] is True

    def test_dead_lower_slots(self):
        """With 5 teams, L1-M2 only ever gets bye losers, L1-M1 gets one real loser."""
        bracket = generate_double_elimination_matches([f'Team {i}' for i in range(1, 6)])
        assert by_name(bracket, 'L1-M1').state == MatchState.WALK_OVER
        assert by_name(bracket, 'L1-M2').state == MatchState.NO_PARTY
        assert by_name(bracket, 'L2-M2').state == MatchState.WALK_OVER
        assert by_name(bracket, 'L3-M1').state is None

    def test_prefix(self):
        bracket = generate_double_elimination_matches(['A', 'B', 'C', 'D'], prefix='S')
        assert [m.name for m in bracket['upper']] == ['SW1-M1', 'SW1-M2', 'SW2-M1', 'SGF']

    def test_bracket_reset(self):
        bracket = generate_double_elimination_matches(['A', 'B', 'C', 'D'], bracket_reset=True)
        ids = ids_of(bracket)
        reset = by_name(bracket, 'BR')
        grand_final = by_name(bracket, 'GF')
        assert grand_final.next_match_id == ids['BR']
        assert grand_final.next_looser_match_id == ids['BR']
        assert reset.extra['ifNecessary'] is True

    def test_two_teams(self):
        bracket = generate_double_elimination_matches(['A', 'B'])
        assert bracket['lower'] == []
        ids = ids_of(bracket)
        first = by_name(bracket, 'W1-M1')
        assert first.next_match_id == ids['GF']
        assert first.next_looser_match_id == ids['GF']

    def test_too_few_teams(self):
        assert generate_double_elimination_matches(['A']) == {'upper': [], 'lower': []}

    def test_pending_slots_named_after_source(self, four_team_bracket):
        second = by_name(four_team_bracket, 'W2-M1')
        assert [p.name for p in second.participants] == ['Winner #1', 'Winner #2']
        assert second.participant_ids() == []
        assert [p.name for p in by_name(four_team_bracket, 'L1-M1').participants] == ['Loser #1', 'Loser #2']
        assert [p.name for p in by_name(four_team_bracket, 'L2-M1').participants] == ['Loser #3', 'Winner #4']

    def test_dead_slots_have_no_label(self):
        bracket = generate_double_elimination_matches([f'Team {i}' for i in range(1, 6)])
        assert [p.name for p in by_name(bracket, 'L1-M1').participants] == ['Loser #2']
        assert by_name(bracket, 'L1-M2').participants == []


class TestDetermineWinner:
    """Tests for determine_winner."""

    def test_best_of_three(self):
        assert determine_winner([[25, 20], [20, 25], [15, 10]]) == (0, (2, 1))

    def test_straight_sets(self):
        assert determine_winner([[20, 25], [18, 25]]) == (1, (0, 2))

    def test_single_set(self):
        assert determine_winner([[21, 19]]) == (0, (1, 0))

    def test_undecided(self):
        assert determine_winner([[25, 20], [20, 25]]) == (None, (1, 1))

    def test_empty(self):
        assert determine_winner([]) == (None, (0, 0))

    def test_missing_scores_ignored(self):
        assert determine_winner([[25, None], [25, 20], [25, 20]]) == (0, (2, 0))


class TestApplyResults:
    """Tests for apply_results."""

    def test_sets_mark_winner(self, four_team_bracket):
        match_id = by_name(four_team_bracket, 'W1-M1').id
        result = apply_results(four_team_bracket, {match_id: {'sets': [[25, 20], [25, 22]]}})
        match = by_name(result, 'W1-M1')
        assert match.state == MatchState.SCORE_DONE
        assert [p.result_text for p in match.participants] == ['2', '0']
        assert [p.is_winner for p in match.participants] == [True, False]
        assert all(p.status == MatchState.PLAYED for p in match.participants)

    def test_input_not_modified(self, four_team_bracket):
        match_id = by_name(four_team_bracket, 'W1-M1').id
        apply_results(four_team_bracket, {match_id: {'sets': [[25, 20], [25, 22]]}})
        assert by_name(four_team_bracket, 'W1-M1').state is None

    def test_single_set_shows_points(self, four_team_bracket):
        match_id = by_name(four_team_bracket, 'W1-M2').id
        result = apply_results(four_team_bracket, {match_id: {'sets': [[19, 21]]}})
        match = by_name(result, 'W1-M2')
        assert [p.result_text for p in match.participants] == ['19', '21']
        assert match.participants[1].is_winner

    def test_string_keys(self, four_team_bracket):
        match_id = by_name(four_team_bracket, 'W1-M1').id
        result = apply_results(four_team_bracket, {str(match_id): {'winner': 'A'}})
        match = by_name(result, 'W1-M1')
        assert match.state == MatchState.DONE
        assert match.participants[0].is_winner

    def test_unknown_match(self, four_team_bracket):
        with pytest.raises(BracketDataError):
            apply_results(four_team_bracket, {999: {'winner': 'A'}})

    def test_winner_must_play(self, four_team_bracket):
        match_id = by_name(four_team_bracket, 'W1-M1').id
        with pytest.raises(BracketDataError):
            apply_results(four_team_bracket, {match_id: {'winner': 'C'}})

    def test_unscheduled_match_cannot_be_scored(self, four_team_bracket):
        match_id = by_name(four_team_bracket, 'GF').id
        with pytest.raises(BracketDataError):
            apply_results(four_team_bracket, {match_id: {'sets': [[25, 20]]}})

    def test_result_needs_sets_or_winner(self, four_team_bracket):
        match_id = by_name(four_team_bracket, 'W1-M1').id
        with pytest.raises(BracketDataError):
            apply_results(four_team_bracket, {match_id: {'score': '2-0'}})

    def test_scores_display_from_winner_side(self, four_team_bracket):
        result = apply_results(four_team_bracket, {1: {'sets': [[20, 25], [25, 23], [12, 15]]}})
        match = by_name(result, 'W1-M1')
        assert match.participants[1].is_winner
        assert match.extra['scoresDisplay'] == '25-20  23-25  15-12'

    def test_winner_only_result_has_no_scores(self, four_team_bracket):
        result = apply_results(four_team_bracket, {1: {'winner': 'A'}})
        assert 'scoresDisplay' not in by_name(result, 'W1-M1').extra

    @pytest.mark.parametrize('sets', ['25-20', ['25-20'], [['25', '20']], [[True, False]]])
    def test_invalid_sets(self, four_team_bracket, sets):
        with pytest.raises(BracketDataError):
            apply_results(four_team_bracket, {1: {'sets': sets}})

    def test_winner_needs_both_teams(self, four_team_bracket):
        bracket = play(four_team_bracket, 'W1-M1')
        with pytest.raises(BracketDataError):
            apply_results(bracket, {3: {'winner': 'A'}})


class TestFormatSetScores:
    """Tests for format_set_scores."""

    def test_participant_order_without_winner(self):
        assert format_set_scores([[25, 20], [20, 25]]) == '25-20  20-25'

    def test_incomplete_sets_skipped(self):
        assert format_set_scores([[25, 20], [None, 3]], 0) == '25-20'
        assert format_set_scores([]) == ''


class TestPropagateResults:
    """Tests for propagate_results."""

    def test_winner_and_loser_advance(self, four_team_bracket):
        bracket = play(four_team_bracket, 'W1-M1')
        assert by_name(bracket, 'W2-M1').participant_ids() == ['A']
        assert by_name(bracket, 'L1-M1').participant_ids() == ['D']

    def test_advanced_copy_is_fresh(self, four_team_bracket):
        bracket = play(four_team_bracket, 'W1-M1')
        advanced = by_name(bracket, 'W2-M1').participants[0]
        assert advanced.is_winner is False
        assert advanced.result_text is None
        assert advanced.status is None

    def test_idempotent(self, four_team_bracket):
        bracket = play(four_team_bracket, 'W1-M1')
        again = propagate_results(bracket)
        assert by_name(again, 'W2-M1').participant_ids() == ['A']

    def test_walkover_chain(self):
        """Byes advance their team, and lower matches that only get one team pass it on."""
        bracket = generate_double_elimination_matches([f'Team {i}' for i in range(1, 6)])
        bracket = propagate_results(bracket)
        assert by_name(bracket, 'W2-M1').participant_ids() == ['Team 1']
        assert by_name(bracket, 'W2-M2').participant_ids() == ['Team 2', 'Team 3']
        assert by_name(bracket, 'L1-M1').participant_ids() == []

        bracket = play(bracket, 'W1-M2')
        assert by_name(bracket, 'W2-M1').participant_ids() == ['Team 1', 'Team 4']
        assert by_name(bracket, 'L1-M1').participant_ids() == ['Team 5']
        # L1-M1 is a walkover, so Team 5 goes straight on to L2-M1
        assert by_name(bracket, 'L2-M1').participant_ids() == ['Team 5']

    def test_full_run_to_grand_final(self, four_team_bracket):
        bracket = four_team_bracket
        for name in ('W1-M1', 'W1-M2', 'W2-M1', 'L1-M1', 'L2-M1'):
            bracket = play(bracket, name)
        assert by_name(bracket, 'W2-M1').participant_ids() == ['A', 'B']
        assert by_name(bracket, 'L2-M1').participant_ids() == ['B', 'D']
        assert by_name(bracket, 'GF').participant_ids() == ['A', 'B']

    def test_reset_only_when_lower_champion_wins(self):
        teams = ['A', 'B', 'C', 'D']
        bracket = generate_double_elimination_matches(teams, bracket_reset=True)
        for name in ('W1-M1', 'W1-M2', 'W2-M1', 'L1-M1', 'L2-M1'):
            bracket = play(bracket, name)

        upper_wins = play(bracket, 'GF')
        assert by_name(upper_wins, 'BR').participant_ids() == []

        lower_wins = play(bracket, 'GF', winner_first=False)
        assert sorted(by_name(lower_wins, 'BR').participant_ids()) == ['A', 'B']

    def test_cycle_logged(self, caplog):
        bracket = {'upper': [Match(id=1, next_match_id=2), Match(id=2, next_match_id=1)], 'lower': []}
        result = propagate_results(bracket)
        assert len(result['upper']) == 2
        assert 'cycle' in caplog.text


class TestMatchOutcome:
    """Tests for match_outcome."""

    def test_pending(self, four_team_bracket):
        assert match_outcome(by_name(four_team_bracket, 'W1-M1')) == (None, None)

    def test_walkover_has_no_loser(self):
        match = Match(id=1, state='WALK_OVER', participants=[{'id': 'a'}])
        winner, loser = match_outcome(match)
        assert winner.id == 'a'
        assert loser is None

    def test_no_show_opponent_not_a_loser(self):
        match = Match(id=1, participants=[{'id': 'a', 'status': 'WALK_OVER'}, {'id': 'b', 'status': 'NO_SHOW'}])
        winner, loser = match_outcome(match)
        assert (winner.id, loser) == ('a', None)


class TestRecordResults:
    """Tests for record_results."""

    FULL_RUN = {
        6: {'winner': 'A'},
        5: {'winner': 'B'},
        3: {'winner': 'A'},
        1: {'sets': [[25, 20], [25, 22]]},
        2: {'winner': 'B'},
        4: {'sets': [[25, 10], [25, 10]]},
    }

    def test_later_rounds_find_their_teams(self, four_team_bracket):
        bracket = record_results(four_team_bracket, {1: {'winner': 'A'}, 2: {'winner': 'B'}, 3: {'winner': 'A'}})
        assert by_name(bracket, 'W2-M1').state == MatchState.DONE
        assert [p.name for p in by_name(bracket, 'GF').participants] == ['A', 'Winner #5']
        assert by_name(bracket, 'L2-M1').participant_ids() == ['B']

    def test_full_run_in_any_order(self, four_team_bracket):
        bracket = record_results(four_team_bracket, self.FULL_RUN)
        assert by_name(bracket, 'L1-M1').participant_ids() == ['D', 'C']
        assert by_name(bracket, 'L2-M1').participant_ids() == ['B', 'D']
        grand_final = by_name(bracket, 'GF')
        assert grand_final.participant_ids() == ['A', 'B']
        assert grand_final.state == MatchState.DONE

    def test_string_keys(self, four_team_bracket):
        results = {str(key): value for key, value in self.FULL_RUN.items()}
        assert by_name(record_results(four_team_bracket, results), 'GF').state == MatchState.DONE

    def test_no_results_still_propagates_byes(self):
        bracket = generate_double_elimination_matches([f'Team {i}' for i in range(1, 6)])
        assert by_name(record_results(bracket, None), 'W2-M1').participant_ids() == ['Team 1']

    def test_unknown_match(self, four_team_bracket):
        with pytest.raises(BracketDataError):
            record_results(four_team_bracket, {1: {'winner': 'A'}, 99: {'winner': 'A'}})

    def test_eliminated_team_cannot_win_later(self, four_team_bracket):
        with pytest.raises(BracketDataError):
            record_results(four_team_bracket, {1: {'winner': 'A'}, 2: {'winner': 'B'}, 3: {'winner': 'D'}})

    def test_reset_filled_after_lower_champion_wins(self):
        bracket = generate_double_elimination_matches(['A', 'B', 'C', 'D'], bracket_reset=True)
        results = dict(self.FULL_RUN)
        results[6] = {'winner': 'B'}
        reset = by_name(record_results(bracket, results), 'BR')
        assert reset.participant_ids() == ['B', 'A']


class TestLoadBracket:
    """Tests for load_bracket."""

    def test_exported_lists(self):
        bracket = load_bracket({'upper': [{'id': 1, 'name': 'Final'}]})
        assert [m.id for m in bracket['upper']] == [1]
        assert bracket['lower'] == []

    def test_teams_with_results(self):
        bracket = load_bracket({'teams': ['A', 'B', 'C', 'D'], 'bracket_reset': True,
                                'results': {1: {'winner': 'A'}, 2: {'winner': 'B'}, 3: {'sets': [[25, 20]]}}})
        assert by_name(bracket, 'W2-M1').extra['scoresDisplay'] == '25-20'
        assert by_name(bracket, 'GF').participant_ids() == ['A']
        assert by_name(bracket, 'BR').participants[0].name == 'Winner #6'

    @pytest.mark.parametrize('data', [
        {'teams': 'A, B, C'},
        {'teams': ['A', 'B'], 'results': [['A']]},
        ['A', 'B'],
    ])
    def test_invalid(self, data):
        with pytest.raises(BracketDataError):
            load_bracket(data)
