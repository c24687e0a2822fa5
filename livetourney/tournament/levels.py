"""
Level Schedule - blind structure of one tournament.

레벨 목록은 토너먼트 진행 중 불변이며, 구조 변경 시 통째로 교체된다.
Levels are 1-based, contiguous and gapless; the clock addresses them by a
0-based ``current_level_index``.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from livetourney.utils.errors import InvalidRequestError


@dataclass(frozen=True)
class Level:
    """One blind level (or break) of the schedule."""

    index: int
    small_blind: int
    big_blind: int
    ante: int = 0
    duration_minutes: int = 20
    is_break: bool = False

    @property
    def duration_seconds(self) -> int:
        return self.duration_minutes * 60

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "small_blind": self.small_blind,
            "big_blind": self.big_blind,
            "ante": self.ante,
            "duration_minutes": self.duration_minutes,
            "is_break": self.is_break,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Level":
        return cls(
            index=int(data["index"]),
            small_blind=int(data["small_blind"]),
            big_blind=int(data["big_blind"]),
            ante=int(data.get("ante", 0)),
            duration_minutes=int(data["duration_minutes"]),
            is_break=bool(data.get("is_break", False)),
        )


class LevelSchedule:
    """
    Ordered, validated list of levels.

    Invariants:
    - indices run 1..n without duplicates or gaps
    - blinds and ante are >= 0, durations are > 0
    """

    def __init__(self, levels: Iterable[Level] = ()):
        ordered = tuple(sorted(levels, key=lambda lv: lv.index))
        self._validate(ordered)
        self._levels: Tuple[Level, ...] = ordered

    @staticmethod
    def _validate(levels: Tuple[Level, ...]) -> None:
        for position, level in enumerate(levels, start=1):
            if level.index != position:
                raise InvalidRequestError(
                    "Level indices must be contiguous and start at 1",
                    details={"expected": position, "found": level.index},
                )
            if level.small_blind < 0 or level.big_blind < 0 or level.ante < 0:
                raise InvalidRequestError(
                    "Blinds and ante must not be negative",
                    details={"index": level.index},
                )
            if level.duration_minutes <= 0:
                raise InvalidRequestError(
                    "Level duration must be positive",
                    details={"index": level.index},
                )

    @classmethod
    def from_dicts(cls, raw_levels: Iterable[Mapping[str, Any]]) -> "LevelSchedule":
        """Build a schedule from loose level dicts, numbering them in list order.

        Accepts ``duration`` as an alias of ``duration_minutes``; missing blinds
        and ante default to 0.
        """
        levels: List[Level] = []
        for position, raw in enumerate(raw_levels, start=1):
            duration = raw.get("duration_minutes", raw.get("duration", 0))
            try:
                levels.append(
                    Level(
                        index=position,
                        small_blind=int(raw.get("small_blind") or 0),
                        big_blind=int(raw.get("big_blind") or 0),
                        ante=int(raw.get("ante") or 0),
                        duration_minutes=int(duration or 0),
                        is_break=bool(raw.get("is_break", False)),
                    )
                )
            except (TypeError, ValueError) as exc:
                raise InvalidRequestError(
                    f"Invalid level data: {exc}", details={"index": position}
                ) from exc
        return cls(levels)

    def __len__(self) -> int:
        return len(self._levels)

    def __iter__(self) -> Iterator[Level]:
        return iter(self._levels)

    def __getitem__(self, position: int) -> Level:
        return self._levels[position]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LevelSchedule):
            return NotImplemented
        return self._levels == other._levels

    def __repr__(self) -> str:
        return f"LevelSchedule({len(self._levels)} levels)"

    @property
    def last_index(self) -> int:
        """0-based position of the last level (-1 when empty)."""
        return len(self._levels) - 1

    def at(self, position: int) -> Optional[Level]:
        """Level at 0-based position, or None when out of range."""
        if 0 <= position < len(self._levels):
            return self._levels[position]
        return None

    def to_list(self) -> List[Dict[str, Any]]:
        return [level.to_dict() for level in self._levels]

    @classmethod
    def from_list(cls, data: Iterable[Mapping[str, Any]]) -> "LevelSchedule":
        return cls(Level.from_dict(item) for item in data)


def create_standard_blind_structure(
    starting_sb: int = 25,
    levels: int = 15,
    duration_minutes: int = 20,
    break_every: int = 0,
    break_minutes: int = 10,
) -> LevelSchedule:
    """표준 블라인드 구조 생성.

    Args:
        starting_sb: 시작 스몰 블라인드
        levels: 총 블라인드 레벨 수 (브레이크 제외)
        duration_minutes: 레벨당 시간 (분)
        break_every: N 레벨마다 브레이크 삽입 (0이면 없음)
        break_minutes: 브레이크 시간 (분)

    Returns:
        LevelSchedule
    """
    result: List[Level] = []
    sb = starting_sb

    for i in range(1, levels + 1):
        bb = sb * 2

        # 레벨 5부터 앤티 추가
        ante = max(sb // 4, 25) if i >= 5 else 0

        result.append(Level(
            index=len(result) + 1,
            small_blind=sb,
            big_blind=bb,
            ante=ante,
            duration_minutes=duration_minutes,
        ))

        if break_every and i % break_every == 0 and i < levels:
            result.append(Level(
                index=len(result) + 1,
                small_blind=0,
                big_blind=0,
                duration_minutes=break_minutes,
                is_break=True,
            ))

        # 다음 레벨 SB 계산 (약 1.5배 증가, 반올림 단위만큼은 반드시 증가)
        if sb < 100:
            step = 25
            grown = int(sb * 1.5)
        elif sb < 500:
            step = 50
            grown = int(sb * 1.4)
        else:
            step = 100
            grown = int(sb * 1.3)
        sb = max((grown + step // 2) // step * step, sb + step)

    return LevelSchedule(result)
