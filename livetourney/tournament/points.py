"""
Ranked points for FREE tournaments.

Place P out of N players:
- P >= 4: N - P + 1 (first out gets 1 point)
- 3rd: points of 4th + 3
- 2nd: points of 3rd + 3
- 1st: points of 4th * 2
Every knockout (bounty) adds one point.
"""

from livetourney.utils.errors import InvalidRequestError


def calculate_points(total_players: int, place: int, bounties: int = 0) -> int:
    """Points awarded for finishing ``place`` of ``total_players``."""
    if place < 1 or place > total_players:
        raise InvalidRequestError(
            "Invalid place",
            details={"place": place, "totalPlayers": total_players},
        )

    if place >= 4:
        place_points = total_players - place + 1
    else:
        # 4위가 받았을 점수 기준 (4명 미만이면 0)
        fourth = max(0, total_players - 3)
        if place == 3:
            place_points = fourth + 3
        elif place == 2:
            place_points = fourth + 6
        else:
            place_points = fourth * 2

    return place_points + bounties
