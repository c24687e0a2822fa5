"""Roster Service Tests - registration, elimination, results."""

import random

import pytest

from conftest import build_tournament
from livetourney.tournament.models import (
    ClockState,
    Player,
    RegistrationStatus,
    TournamentStatus,
    TournamentType,
)
from livetourney.tournament.roster import RosterService
from livetourney.tournament.seating import SeatingService
from livetourney.utils.errors import (
    DuplicateRegistrationError,
    InactivePlayerError,
    InvalidRequestError,
    InvalidStateError,
    NotFoundError,
    RegistrationClosedError,
)


@pytest.fixture
def roster():
    return RosterService(SeatingService(random.Random(11)))


class TestRegister:
    def test_register_unseated_before_draw(self, roster):
        tournament = build_tournament([0, 0])
        registration = roster.register(tournament, Player(player_id="alice", username="Alice"))

        assert registration.status == RegistrationStatus.REGISTERED
        assert registration.tournament_id == tournament.tournament_id
        assert not registration.is_seated

    def test_late_registration_auto_seated(self, roster):
        tournament = build_tournament([4, 2])
        registration = roster.register(tournament, Player(player_id="late"))

        small = tournament.sorted_tables()[1]
        assert registration.table_id == small.table_id
        assert registration.seat_number not in (1, 2)

    def test_duplicate_rejected(self, roster):
        tournament = build_tournament([])
        roster.register(tournament, Player(player_id="bob"))
        with pytest.raises(DuplicateRegistrationError):
            roster.register(tournament, Player(player_id="bob"))

    def test_closed_registration(self, roster):
        tournament = build_tournament([])
        tournament.registration_closed = True
        with pytest.raises(RegistrationClosedError):
            roster.register(tournament, Player(player_id="carol"))

    def test_finished_tournament(self, roster):
        tournament = build_tournament([])
        tournament.clock = ClockState(status=TournamentStatus.FINISHED)
        with pytest.raises(InvalidStateError):
            roster.register(tournament, Player(player_id="dave"))

    def test_display_name_fallbacks(self):
        assert Player(player_id="1", username="ace").display_name == "ace"
        assert Player(player_id="2", first_name="Kim", last_name="Lee").display_name == "Kim Lee"
        assert Player(player_id="3").display_name == "3"


class TestEliminate:
    def test_place_is_active_count(self, roster):
        tournament = build_tournament([5, 5])
        victim = tournament.active_registrations[0]

        roster.eliminate(tournament, victim.registration_id)

        assert victim.status == RegistrationStatus.ELIMINATED
        assert victim.finishing_place == 10
        assert not victim.is_seated
        assert victim.points == 0

    def test_free_tournament_awards_points(self, roster):
        tournament = build_tournament([5, 5], tournament_type=TournamentType.FREE)
        players = tournament.active_registrations

        for victim in players[:6]:
            roster.eliminate(tournament, victim.registration_id)
        fourth = players[6]
        roster.eliminate(tournament, fourth.registration_id, bounty_count=2)

        assert fourth.finishing_place == 4
        assert fourth.bounty_count == 2
        assert fourth.points == 7 + 2
        assert players[0].points == 1

    def test_already_eliminated(self, roster):
        tournament = build_tournament([3])
        victim = tournament.active_registrations[0]
        roster.eliminate(tournament, victim.registration_id)

        with pytest.raises(InactivePlayerError):
            roster.eliminate(tournament, victim.registration_id)

    def test_negative_bounty(self, roster):
        tournament = build_tournament([3])
        with pytest.raises(InvalidRequestError):
            roster.eliminate(tournament, tournament.active_registrations[0].registration_id, -1)

    def test_unknown_registration(self, roster):
        with pytest.raises(NotFoundError):
            roster.eliminate(build_tournament([3]), "nobody")


class TestCrownWinner:
    def test_sole_survivor_wins(self, roster):
        tournament = build_tournament([4], tournament_type=TournamentType.FREE)
        players = tournament.active_registrations
        for victim in players[:3]:
            roster.eliminate(tournament, victim.registration_id)

        winner = roster.crown_winner(tournament, winner_bounty_count=3)

        assert winner is players[3]
        assert winner.finishing_place == 1
        assert winner.status == RegistrationStatus.ELIMINATED
        assert winner.points == 2 + 3
        assert tournament.active_player_count == 0

    def test_no_winner_with_several_left(self, roster):
        tournament = build_tournament([3])
        assert roster.crown_winner(tournament) is None
        assert tournament.active_player_count == 3


class TestCounters:
    def test_rebuy_and_addon(self, roster):
        tournament = build_tournament([2])
        registration = tournament.active_registrations[0]

        roster.rebuy(tournament, registration.registration_id)
        roster.rebuy(tournament, registration.registration_id)
        roster.addon(tournament, registration.registration_id)

        assert registration.rebuy_count == 2
        assert registration.addon_count == 1

    def test_remove_deletes_registration_and_seat(self, roster):
        tournament = build_tournament([2])
        registration = tournament.active_registrations[0]

        roster.remove(tournament, registration.registration_id)

        assert registration.registration_id not in tournament.registrations
        assert len(tournament.occupied_seats(registration.table_id)) == 1
