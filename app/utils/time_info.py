"""
TIME INFORMATION UTILITY
========================

Builds the "current date" line appended to the first-answer system prompt.
With it the LLM can say how old its knowledge is relative to today (e.g.
"私の知識は2023年9月までです"), which is what the search analyzer looks for.
Written in Japanese like the rest of the prompt.
"""

import datetime
from typing import Optional

_WEEKDAYS = ["月", "火", "水", "木", "金", "土", "日"]


def get_time_information(now: Optional[datetime.datetime] = None) -> str:
    """Return e.g. '現在の日時: 2026年10月18日(日) 14時05分'."""
    now = now or datetime.datetime.now()
    weekday = _WEEKDAYS[now.weekday()]
    return (
        f"現在の日時: {now.year}年{now.month}月{now.day}日({weekday}) "
        f"{now.hour:02d}時{now.minute:02d}分"
    )
