"""Grand final / reset state transitions and completion detection."""

import pytest
from sqlmodel import Session

from finals.errors import NotFoundError, StructuralError, ValidationError
from finals.models.tournament import GrandFinalState, Tournament
from finals.services.bracket_topology import build_topology
from finals.services.grand_final import (
    completion_status,
    resolve_grand_final,
    resolve_reset,
    winners_finalist_position,
)

WINNERS_FINALIST = 11
LOSERS_FINALIST = 22


class TestResolveGrandFinal:
    def test_winners_finalist_wins_outright(self):
        t = resolve_grand_final(GrandFinalState.NOT_PLAYED, WINNERS_FINALIST, LOSERS_FINALIST, WINNERS_FINALIST)
        assert t.state == GrandFinalState.COMPLETE
        assert t.is_complete is True
        assert t.champion_id == WINNERS_FINALIST
        assert t.reset_pairing is None

    def test_losers_finalist_win_requires_reset(self):
        t = resolve_grand_final(GrandFinalState.NOT_PLAYED, WINNERS_FINALIST, LOSERS_FINALIST, LOSERS_FINALIST)
        assert t.state == GrandFinalState.GRAND_FINAL_PLAYED
        assert t.is_complete is False
        assert t.champion_id is None
        assert t.reset_pairing == (LOSERS_FINALIST, WINNERS_FINALIST)

    def test_winners_finalist_in_position_two(self):
        t = resolve_grand_final(
            GrandFinalState.NOT_PLAYED, LOSERS_FINALIST, WINNERS_FINALIST, WINNERS_FINALIST,
            winners_position=2,
        )
        assert t.is_complete is True
        assert t.champion_id == WINNERS_FINALIST

    def test_winner_must_be_a_player(self):
        with pytest.raises(ValidationError, match="not a grand final player"):
            resolve_grand_final(GrandFinalState.NOT_PLAYED, WINNERS_FINALIST, LOSERS_FINALIST, 99)

    @pytest.mark.parametrize("state", [GrandFinalState.GRAND_FINAL_PLAYED, GrandFinalState.COMPLETE])
    def test_grand_final_cannot_be_replayed(self, state):
        with pytest.raises(ValidationError, match="already played"):
            resolve_grand_final(state, WINNERS_FINALIST, LOSERS_FINALIST, WINNERS_FINALIST)


class TestResolveReset:
    @pytest.mark.parametrize("winner", [WINNERS_FINALIST, LOSERS_FINALIST])
    def test_reset_always_decides(self, winner):
        t = resolve_reset(GrandFinalState.GRAND_FINAL_PLAYED, winner)
        assert t.state == GrandFinalState.COMPLETE
        assert t.champion_id == winner

    @pytest.mark.parametrize("state", [GrandFinalState.NOT_PLAYED, GrandFinalState.COMPLETE])
    def test_reset_requires_pending_state(self, state):
        with pytest.raises(ValidationError, match="not pending"):
            resolve_reset(state, WINNERS_FINALIST)


def test_winners_finalist_feeds_position_one():
    assert winners_finalist_position(build_topology()) == 1


def test_topology_without_winners_final_is_structural_error():
    specs = [s for s in build_topology() if s.match_number != 7]
    with pytest.raises(StructuralError):
        winners_finalist_position(specs)


def test_completion_status_defaults_to_incomplete(session: Session):
    tournament = Tournament(name="Not Started")
    session.add(tournament)
    session.commit()
    session.refresh(tournament)

    status = completion_status(session, tournament.id)
    assert status.is_complete is False
    assert status.champion_id is None


def test_completion_status_reports_champion(session: Session):
    tournament = Tournament(name="Done", finals_state=GrandFinalState.COMPLETE.value, champion_id=5)
    session.add(tournament)
    session.commit()
    session.refresh(tournament)

    status = completion_status(session, tournament.id)
    assert status.is_complete is True
    assert status.champion_id == 5


def test_completion_status_unknown_tournament(session: Session):
    with pytest.raises(NotFoundError):
        completion_status(session, 4242)
