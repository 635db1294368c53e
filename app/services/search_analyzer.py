"""
SEARCH ANALYZER MODULE
======================

Decides from the LLM's first answer whether that answer should be re-done with
web search results. The answer is in Japanese, so every rule is a Japanese
lexical cue.

needs_web_search(text, today) is a pure function: the pattern lists are built
on every call from `today` (several rules mention the current or previous
year), nothing is cached between calls.

DECISION ORDER (first decisive rule wins):
  1. Years mentioned as "YYYY年": a future year -> True; only years older than
     OLD_YEAR_THRESHOLD and no recency word -> False.
  2. Strong patterns (explicit knowledge-cutoff admissions) -> True.
  3. Exclusion patterns (explicit confidence) -> False.
  4. MODERATE_MATCH_THRESHOLD or more moderate patterns (soft recency cues) -> True.
  5. Short answer admitting it does not know -> True.
  6. "YYYY年現在/時点" or "YYYY年M月" pointing well into the past, unless the
     sentence states a historical fact (founded, released, ...) -> True.
  7. Otherwise False.

Some combinations look odd in isolation (a cutoff admission naming an old
year resolves False at step 1). The order is intentional; keep it.
"""

import datetime
import re
from typing import List, Optional, Pattern


# Years older than (current year - OLD_YEAR_THRESHOLD) count as settled history.
OLD_YEAR_THRESHOLD = 2

# This many distinct moderate-pattern matches trigger a search.
MODERATE_MATCH_THRESHOLD = 2

# Answers shorter than this (in characters) are checked for "I don't know".
SHORT_ANSWER_THRESHOLD = 100

_YEAR_PATTERN = re.compile(r"(\d{4})年")
_RECENT_TERMS = re.compile(r"最新|最近|現在|今の")
_UNCERTAINTY_TERMS = re.compile(r"わかりません|不明|確認できません|把握していません")
_TIME_CONTEXT_PATTERN = re.compile(r"(\d{4})年(現在|時点)")
_MONTH_YEAR_PATTERN = re.compile(r"(\d{4})年(\d{1,2})月")
_HISTORICAL_FACT_PATTERN = re.compile(r"(発売|設立|創業|創立|開始|発表|公開)(された|した|れた)")


# ==============================================================================
# PATTERN TABLES
# ==============================================================================

def get_strong_patterns(current_year: int) -> List[Pattern]:
    """Explicit admissions that the model's knowledge stops somewhere."""
    return [
        re.compile(r"私の(知識|情報|データ)(は|が|では)(.{0,10})(まで|更新|制限)", re.IGNORECASE),
        re.compile(r"私が(持っている|アクセスできる)(情報|データ|知識)(は|が)(.{0,10})(まで|古い|限られて)", re.IGNORECASE),
        re.compile(r"(\d{4})年(.*?)までの(情報|データ)", re.IGNORECASE),
        re.compile(r"最新の(情報|データ|アップデート)(が|は)(ない|ありません)", re.IGNORECASE),
        re.compile(r"現時点での正確な(情報|データ)(は|が)(わから|把握|確認でき)", re.IGNORECASE),
        re.compile(r"私の(トレーニング|学習)(データ|期間)(は|が)(.{0,15})(まで|終了|制限)", re.IGNORECASE),
        re.compile(rf"{current_year - 1}年(以前|まで)の(情報|データ)", re.IGNORECASE),
        re.compile(rf"{current_year - 2}年(以前|まで)の(情報|データ)", re.IGNORECASE),
    ]


def get_moderate_patterns(current_year: int) -> List[Pattern]:
    """Soft recency cues; one alone is not enough."""
    return [
        re.compile(r"最新の(状況|バージョン|リリース|製品|技術)", re.IGNORECASE),
        re.compile(rf"{current_year}年(の|における)", re.IGNORECASE),
        re.compile(rf"{current_year - 1}年以降", re.IGNORECASE),
        re.compile(r"最近の(傾向|動向|発展|変化)", re.IGNORECASE),
        re.compile(r"(現在|今)の(市場|状況|標準|規格)", re.IGNORECASE),
        re.compile(r"正確な(情報|データ)を(得る|確認する)には", re.IGNORECASE),
        re.compile(r"公式(サイト|ウェブサイト|情報源)で(確認|参照)", re.IGNORECASE),
        re.compile(r"最新(情報|アップデート)は(.{0,20})(確認|参照)", re.IGNORECASE),
        re.compile(r"より詳細な(情報|データ)は(.{0,20})(検索|確認)", re.IGNORECASE),
    ]


def get_exclusion_patterns() -> List[Pattern]:
    """Phrases where the model claims to already have solid information."""
    return [
        re.compile(r"詳細な情報をお持ちしています"),
        re.compile(r"最新のデータによると"),
        re.compile(r"現在の情報では"),
        re.compile(r"最新の研究では"),
        re.compile(r"最近の調査によれば"),
        re.compile(r"私の知識によれば"),
        re.compile(r"詳しく説明します"),
        re.compile(r"具体的な例を挙げると"),
    ]


# ==============================================================================
# INDIVIDUAL CHECKS
# ==============================================================================

def extract_years(text: str) -> List[int]:
    """All four-digit numbers directly followed by 年, in order of appearance."""
    return [int(year) for year in _YEAR_PATTERN.findall(text)]


def analyze_years(years: List[int], text: str, current_year: int) -> Optional[bool]:
    """True for a future year, False for only-old years without recency words, None otherwise."""
    if not years:
        return None

    if any(year > current_year for year in years):
        return True

    all_years_old = all(year < current_year - OLD_YEAR_THRESHOLD for year in years)
    if all_years_old and not _RECENT_TERMS.search(text):
        return False

    return None


def analyze_time_context(text: str, today: datetime.date) -> Optional[bool]:
    """True when the answer anchors itself to a point clearly in the past; None otherwise."""
    match = _TIME_CONTEXT_PATTERN.search(text)
    if match and int(match.group(1)) < today.year - 1:
        return True

    match = _MONTH_YEAR_PATTERN.search(text)
    if match:
        year, month = int(match.group(1)), int(match.group(2))
        is_old = year < today.year - 1 or (year == today.year - 1 and month < today.month)
        if is_old and not _HISTORICAL_FACT_PATTERN.search(text):
            return True

    return None


def count_moderate_matches(text: str, current_year: int) -> int:
    return sum(1 for pattern in get_moderate_patterns(current_year) if pattern.search(text))


# ==============================================================================
# ENTRY POINT
# ==============================================================================

def needs_web_search(text: str, today: Optional[datetime.date] = None) -> bool:
    """
    Return True if the answer should be supplemented with web search results.

    Args:
        text: The LLM's first answer.
        today: Date to judge against; defaults to today's date.
    """
    if today is None:
        today = datetime.date.today()
    current_year = today.year

    decision = analyze_years(extract_years(text), text, current_year)
    if decision is not None:
        return decision

    if any(pattern.search(text) for pattern in get_strong_patterns(current_year)):
        return True

    if any(pattern.search(text) for pattern in get_exclusion_patterns()):
        return False

    if count_moderate_matches(text, current_year) >= MODERATE_MATCH_THRESHOLD:
        return True

    if len(text) < SHORT_ANSWER_THRESHOLD and _UNCERTAINTY_TERMS.search(text):
        return True

    decision = analyze_time_context(text, today)
    if decision is not None:
        return decision

    return False
