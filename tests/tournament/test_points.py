"""Ranked points tests."""

import pytest

from livetourney.tournament.points import calculate_points
from livetourney.utils.errors import InvalidRequestError


class TestCalculatePoints:
    @pytest.mark.parametrize(
        "place,expected",
        [
            (10, 1),  # 첫 탈락자
            (5, 6),
            (4, 7),
            (3, 10),
            (2, 13),
            (1, 14),
        ],
    )
    def test_ten_player_table(self, place, expected):
        assert calculate_points(10, place, 0) == expected

    def test_bounties_added(self):
        assert calculate_points(10, 7, 2) == 4 + 2
        assert calculate_points(10, 1, 3) == 14 + 3

    def test_small_field(self):
        # 4명 미만: 4위 기준 점수는 0
        assert calculate_points(3, 3, 0) == 3
        assert calculate_points(3, 2, 0) == 6
        assert calculate_points(3, 1, 0) == 0
        assert calculate_points(2, 1, 1) == 1

    @pytest.mark.parametrize("place", [0, -1, 11])
    def test_invalid_place(self, place):
        with pytest.raises(InvalidRequestError):
            calculate_points(10, place, 0)
