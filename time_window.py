"""
借用時段規則

所有「哪一天、星期幾、幾點」的判斷都以固定的參考時區（預設台北）計算，
不使用伺服器或使用者的當地時間。

規則：
- 週日不開放
- 最早 07:00，更早的開始時間往後移到 07:00
- 每次最多 3 小時
- 最晚結束：週一、週三 18:00，其它日 21:30；超過就截短（truncated）
- 截短後沒有剩餘時間 -> 當天已太晚
"""
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Dict, FrozenSet, List, Optional, Sequence
from zoneinfo import ZoneInfo

import config
from errors import InvalidStart, RejectedDay, WindowExhausted
from models import Venue

TZ = ZoneInfo(config.REFERENCE_TZ)

# Python weekday(): 0=Mon ... 6=Sun
MONDAY, WEDNESDAY, SUNDAY = 0, 2, 6

# 可受理的最晚年份，再往後換算時區或加上借用長度會超出 datetime 範圍
LAST_YEAR = 9998


@dataclass(frozen=True)
class WindowRules:
    closed_days: FrozenSet[int] = frozenset({SUNDAY})
    day_start: time = time(7, 0)
    max_length: timedelta = timedelta(hours=3)
    early_close: time = time(18, 0)
    early_close_days: FrozenSet[int] = frozenset({MONDAY, WEDNESDAY})
    late_close: time = time(21, 30)

    def ceiling_for(self, day: date) -> time:
        return self.early_close if day.weekday() in self.early_close_days else self.late_close


DEFAULT_RULES = WindowRules()

# 個別場地若有不同規則在這裡覆寫
VENUE_RULES: Dict[Venue, WindowRules] = {}


def rules_for(venue: Optional[Venue]) -> WindowRules:
    return VENUE_RULES.get(venue, DEFAULT_RULES)


@dataclass(frozen=True)
class Window:
    start: datetime
    end: datetime
    truncated: bool = False
    requested: Optional[datetime] = field(default=None, compare=False)

    @property
    def length(self) -> timedelta:
        return self.end - self.start


def parse_start(raw: str) -> datetime:
    """ISO-8601 字串 -> 帶時區的 datetime；沒有時區的字串視為參考時區的時間"""
    if not isinstance(raw, str) or not raw.strip():
        raise InvalidStart()
    try:
        parsed = datetime.fromisoformat(raw.strip())
    except ValueError:
        raise InvalidStart()
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=TZ)
    if not 1 < parsed.year <= LAST_YEAR:
        raise InvalidStart()
    return parsed


def _at(day: date, clock: time) -> datetime:
    return datetime.combine(day, clock, tzinfo=TZ)


def normalize_window(
    requested_start: datetime,
    venue: Optional[Venue] = None,
    rules: Optional[WindowRules] = None,
) -> Window:
    """把申請的開始時間轉成實際借用區間 [start, end)"""
    rules = rules or rules_for(venue)
    try:
        local = requested_start.astimezone(TZ)
    except OverflowError:
        raise InvalidStart()
    day = local.date()

    if day.weekday() in rules.closed_days:
        raise RejectedDay("該日不開放借用")

    floor = _at(day, rules.day_start)
    start = max(local, floor)

    try:
        target = start + rules.max_length
    except OverflowError:
        raise InvalidStart()
    ceiling = _at(day, rules.ceiling_for(day))
    end = min(target, ceiling)

    if end <= start:
        raise WindowExhausted(f"該日最晚結束 {ceiling.strftime('%H:%M')}")

    return Window(start=start, end=end, truncated=end < target, requested=requested_start)


def build_repeat_starts(first_start: datetime, weeks_days: Sequence[Sequence[int]]) -> List[datetime]:
    """
    依第一筆開始時間與每週勾選的星期（0=日 ... 6=六），產生多週的開始時間。
    保留參考時區的時分秒；至少兩週；回傳已去重、排序。只供預覽，不會寫入資料庫。
    """
    base = first_start.astimezone(TZ)
    clock = base.timetz().replace(tzinfo=None)

    # 以第一筆所在週的星期日當基準
    week0 = base.date() - timedelta(days=(base.weekday() + 1) % 7)

    total_weeks = max(2, len(weeks_days))
    out = set()
    for w in range(total_weeks):
        days = weeks_days[w] if w < len(weeks_days) else []
        for d in set(days):
            if not 0 <= d <= 6:
                continue
            out.add(_at(week0 + timedelta(days=w * 7 + d), clock))
    return sorted(out)
