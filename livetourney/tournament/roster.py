"""
Roster Service - registrations, eliminations and results.

등록/탈락/순위/포인트 처리. 좌석 배정은 SeatingService에 위임한다.
"""

from typing import Optional

from livetourney.logging_config import get_logger
from livetourney.utils.errors import (
    DuplicateRegistrationError,
    InactivePlayerError,
    InvalidRequestError,
    InvalidStateError,
    RegistrationClosedError,
)

from .models import Player, Registration, RegistrationStatus, Tournament, TournamentType
from .points import calculate_points
from .seating import SeatingService

logger = get_logger(__name__)


class RosterService:
    """Registration lifecycle on a loaded Tournament aggregate."""

    def __init__(self, seating: SeatingService):
        self.seating = seating

    def register(self, tournament: Tournament, player: Player) -> Registration:
        """Register a player; seats them automatically once seating exists."""
        if tournament.is_finished:
            raise InvalidStateError("Tournament already finished", status="FINISHED")
        if tournament.registration_closed:
            raise RegistrationClosedError(tournament.tournament_id)
        if tournament.find_registration_by_player(player.player_id) is not None:
            raise DuplicateRegistrationError(player.player_id, tournament.tournament_id)

        seating_started = tournament.has_seating
        registration = Registration(
            tournament_id=tournament.tournament_id,
            player=player,
        )
        tournament.registrations[registration.registration_id] = registration

        # 이미 좌석 배정이 시작된 경우 늦은 등록자 자동 배정
        if seating_started and self.seating.auto_assign(tournament, registration):
            logger.info(
                "late_registration_seated",
                tournament_id=tournament.tournament_id,
                registration_id=registration.registration_id,
                table_id=registration.table_id,
                seat_number=registration.seat_number,
            )

        return registration

    def remove(self, tournament: Tournament, registration_id: str) -> Registration:
        registration = self.seating.get_registration(tournament, registration_id)
        del tournament.registrations[registration_id]
        return registration

    def eliminate(
        self,
        tournament: Tournament,
        registration_id: str,
        bounty_count: int = 0,
    ) -> Registration:
        """
        Knock a player out.

        Finishing place is the number of players still in (including this one).
        FREE tournaments record bounties and ranked points.
        """
        if tournament.is_finished:
            raise InvalidStateError("Tournament already finished", status="FINISHED")
        if bounty_count < 0:
            raise InvalidRequestError(
                "Bounty count must not be negative",
                details={"bountyCount": bounty_count},
            )

        registration = self.seating.get_registration(tournament, registration_id)
        if not registration.is_active:
            raise InactivePlayerError(registration_id)

        place = tournament.active_player_count
        registration.status = RegistrationStatus.ELIMINATED
        registration.finishing_place = place

        if tournament.tournament_type == TournamentType.FREE:
            registration.bounty_count = bounty_count
            registration.points = calculate_points(
                len(tournament.registrations), place, bounty_count
            )

        registration.unseat()
        return registration

    def crown_winner(
        self,
        tournament: Tournament,
        winner_bounty_count: Optional[int] = None,
    ) -> Optional[Registration]:
        """Give first place to the sole remaining player, if there is exactly one."""
        remaining = tournament.active_registrations
        if len(remaining) != 1:
            return None

        winner = remaining[0]
        winner.status = RegistrationStatus.ELIMINATED
        winner.finishing_place = 1

        if tournament.tournament_type == TournamentType.FREE:
            bounties = winner.bounty_count if winner_bounty_count is None else winner_bounty_count
            winner.bounty_count = bounties
            winner.points = calculate_points(len(tournament.registrations), 1, bounties)

        winner.unseat()
        logger.info(
            "winner_crowned",
            tournament_id=tournament.tournament_id,
            registration_id=winner.registration_id,
            points=winner.points,
        )
        return winner

    def rebuy(self, tournament: Tournament, registration_id: str) -> Registration:
        registration = self.seating.get_registration(tournament, registration_id)
        registration.rebuy_count += 1
        return registration

    def addon(self, tournament: Tournament, registration_id: str) -> Registration:
        registration = self.seating.get_registration(tournament, registration_id)
        registration.addon_count += 1
        return registration
