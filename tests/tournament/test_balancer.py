"""
Table Balancer Tests.

- break_table emitted iff 0 < active(last) <= free seats on the other tables
- balance_tables emitted iff no break and max - min > 1
- applying a break-table recommendation never double-books a seat
"""

import random

import pytest
from hypothesis import given, settings, strategies as st

from conftest import assert_no_double_booking, build_tournament
from livetourney.tournament.balancer import (
    BalanceTablesRecommendation,
    BreakTableRecommendation,
    TableBalancer,
)
from livetourney.tournament.models import RegistrationStatus
from livetourney.tournament.seating import SeatingService


def tables_by_number(tournament):
    return {t.table_number: t for t in tournament.tables.values()}


class TestBreakTable:
    def test_nine_eight_one_breaks_last_table(self):
        tournament = build_tournament([9, 8, 1])
        tables = tables_by_number(tournament)

        rec = TableBalancer().recommend(tournament)

        assert isinstance(rec, BreakTableRecommendation)
        assert rec.action == "break_table"
        assert rec.table_id == tables[3].table_id
        assert rec.players_to_move == 1
        # 테이블 1은 만석 - 테이블 2의 첫 빈 좌석 9번
        move = rec.moves[0]
        assert move.target_table_id == tables[2].table_id
        assert move.target_seat == 9
        assert rec.assignments == ["Player 3-1 → Table 2, Seat 9"]
        assert rec.message == "Break Table 3:\nPlayer 3-1 → Table 2, Seat 9"

    def test_nine_eight_one_apply_deletes_table(self):
        tournament = build_tournament([9, 8, 1])
        tables = tables_by_number(tournament)
        rec = TableBalancer().recommend(tournament)

        moved = SeatingService(random.Random(1)).apply_break_table(tournament, rec)

        assert moved == 1
        assert tables[3].table_id not in tournament.tables
        assert len(tournament.seated_at(tables[2].table_id)) == 9
        assert_no_double_booking(tournament)
        assert TableBalancer().recommend(tournament) is None

    def test_fills_first_free_seats_in_table_order(self):
        tournament = build_tournament([7, 7, 3])
        tables = tables_by_number(tournament)

        rec = TableBalancer().recommend(tournament)

        assert isinstance(rec, BreakTableRecommendation)
        targets = [(m.target_table_id, m.target_seat) for m in rec.moves]
        assert targets == [
            (tables[1].table_id, 8),
            (tables[1].table_id, 9),
            (tables[2].table_id, 8),
        ]

    def test_fills_gaps_left_by_eliminations(self):
        tournament = build_tournament([9, 9, 2])
        tables = tables_by_number(tournament)
        for registration in tournament.seated_at(tables[1].table_id):
            if registration.seat_number in (2, 5):
                registration.status = RegistrationStatus.ELIMINATED
                registration.unseat()

        rec = TableBalancer().recommend(tournament)

        assert [(m.target_table_id, m.target_seat) for m in rec.moves] == [
            (tables[1].table_id, 2),
            (tables[1].table_id, 5),
        ]

    def test_not_enough_room_elsewhere(self):
        # 마지막 테이블 3명, 다른 테이블 빈 좌석 2개 → 해체 불가, 균형 권고
        tournament = build_tournament([8, 8, 3])
        rec = TableBalancer().recommend(tournament)

        assert isinstance(rec, BalanceTablesRecommendation)
        assert rec.count == 2

    def test_empty_last_table_is_not_broken(self):
        tournament = build_tournament([5, 5, 0])
        rec = TableBalancer().recommend(tournament)

        assert isinstance(rec, BalanceTablesRecommendation)
        assert rec.to_table_number == 3

    def test_to_dict(self):
        rec = TableBalancer().recommend(build_tournament([9, 8, 1]))
        data = rec.to_dict()

        assert data["action"] == "break_table"
        assert data["table_number"] == 3
        assert data["players_to_move"] == 1
        assert data["moves"][0]["target_seat"] == 9
        assert BreakTableRecommendation.from_dict(data) == rec


class TestBalanceTables:
    def test_six_three_moves_one(self):
        # 8석 테이블: 테이블 1 빈 좌석 2개 < 3명이라 해체 대신 균형
        tournament = build_tournament([6, 3], max_seats=8)
        tables = tables_by_number(tournament)

        rec = TableBalancer().recommend(tournament)

        assert isinstance(rec, BalanceTablesRecommendation)
        assert rec.action == "balance_tables"
        assert rec.from_table_id == tables[1].table_id
        assert rec.to_table_id == tables[2].table_id
        assert rec.count == 1
        assert rec.message == "Move 1 player(s) from Table 1 to Table 2"

    def test_six_three_with_nine_seats_prefers_break(self):
        rec = TableBalancer().recommend(build_tournament([6, 3], max_seats=9))
        assert isinstance(rec, BreakTableRecommendation)
        assert rec.players_to_move == 3

    def test_first_fullest_to_first_emptiest(self):
        tournament = build_tournament([4, 8, 8], max_seats=8)
        tables = tables_by_number(tournament)

        rec = TableBalancer().recommend(tournament)

        assert isinstance(rec, BalanceTablesRecommendation)
        assert rec.from_table_id == tables[2].table_id
        assert rec.to_table_id == tables[1].table_id
        assert rec.count == 2

    @pytest.mark.parametrize("counts", [[9, 8], [8, 9], [9, 9, 8]])
    def test_balanced_tables_need_nothing(self, counts):
        assert TableBalancer().recommend(build_tournament(counts)) is None

    @pytest.mark.parametrize("counts", [[], [9], [2]])
    def test_fewer_than_two_tables(self, counts):
        assert TableBalancer().recommend(build_tournament(counts)) is None

    def test_eliminated_players_not_counted(self):
        tournament = build_tournament([8, 8], max_seats=9)
        tables = tables_by_number(tournament)
        for registration in tournament.seated_at(tables[2].table_id)[:3]:
            registration.status = RegistrationStatus.ELIMINATED

        rec = TableBalancer().recommend(tournament)

        assert isinstance(rec, BalanceTablesRecommendation)
        assert rec.count == 1


class TestBalancerProperties:
    @given(
        counts=st.lists(st.integers(min_value=0, max_value=9), min_size=2, max_size=6),
        max_seats=st.integers(min_value=2, max_value=10),
    )
    @settings(max_examples=150)
    def test_emission_conditions(self, counts, max_seats):
        counts = [min(c, max_seats) for c in counts]
        tournament = build_tournament(counts, max_seats=max_seats)

        rec = TableBalancer().recommend(tournament)

        last = counts[-1]
        free_elsewhere = sum(max_seats - c for c in counts[:-1])
        if 0 < last <= free_elsewhere:
            assert isinstance(rec, BreakTableRecommendation)
            assert rec.players_to_move == last
        elif max(counts) - min(counts) > 1:
            assert isinstance(rec, BalanceTablesRecommendation)
            assert rec.count == (max(counts) - min(counts)) // 2
        else:
            assert rec is None

    @given(
        counts=st.lists(st.integers(min_value=0, max_value=9), min_size=2, max_size=6),
        max_seats=st.integers(min_value=2, max_value=10),
    )
    @settings(max_examples=150)
    def test_applying_break_never_double_books(self, counts, max_seats):
        counts = [min(c, max_seats) for c in counts]
        tournament = build_tournament(counts, max_seats=max_seats)
        before = tournament.active_player_count

        rec = TableBalancer().recommend(tournament)
        if not isinstance(rec, BreakTableRecommendation):
            return

        SeatingService(random.Random(0)).apply_break_table(tournament, rec)

        assert rec.table_id not in tournament.tables
        assert tournament.active_player_count == before
        assert all(r.is_seated for r in tournament.active_registrations)
        assert_no_double_booking(tournament)
