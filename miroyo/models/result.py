"""
Achievement card data contract and the normalization that produces it.

Model output is untrusted and may be truncated, so every field is coerced
into range here; nothing downstream re-validates a Result.
"""

import math
from typing import Any, Dict, List, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


ALLOWED_PERIODS = ("day", "week", "month")
DEFAULT_PERIOD = "day"
DEFAULT_PERIOD_LABEL = "今日"
DEFAULT_CONTENT = "がんばり"
DEFAULT_UNIT = "回"

MAX_CONTENT_LENGTH = 60
MAX_UNIT_LENGTH = 20
MAX_FREQUENCY_LENGTH = 30
MAX_PERIOD_LABEL_LENGTH = 40
MAX_DJ_COMMENT_LENGTH = 300
MAX_DJ_TRIVIA_LENGTH = 400
MAX_ACHIEVEMENTS = 5
MAX_VALUE = 1_000_000


class Achievement(BaseModel):
    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)

    content: str = Field(min_length=1, max_length=MAX_CONTENT_LENGTH)
    value: float = Field(ge=0, le=MAX_VALUE)
    unit: str = Field(default="", max_length=MAX_UNIT_LENGTH)
    frequency: str = Field(default="", max_length=MAX_FREQUENCY_LENGTH)


class Result(BaseModel):
    """Normalized extraction output shared by the API and the share codec."""

    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)

    period: Literal["day", "week", "month"] = DEFAULT_PERIOD
    period_label: str = Field(default=DEFAULT_PERIOD_LABEL, min_length=1, max_length=MAX_PERIOD_LABEL_LENGTH)
    achievements: List[Achievement] = Field(min_length=1, max_length=MAX_ACHIEVEMENTS)
    dj_comment: str = Field(default="", max_length=MAX_DJ_COMMENT_LENGTH)
    dj_trivia: str = Field(default="", max_length=MAX_DJ_TRIVIA_LENGTH)

    def to_wire(self) -> Dict[str, Any]:
        """camelCase dict in canonical key order (HTTP body and share payload)."""
        return {
            "period": self.period,
            "periodLabel": self.period_label,
            "achievements": [
                {
                    "content": a.content,
                    "value": _wire_number(a.value),
                    "unit": a.unit,
                    "frequency": a.frequency,
                }
                for a in self.achievements
            ],
            "djComment": self.dj_comment,
            "djTrivia": self.dj_trivia,
        }


def _wire_number(value: float):
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def trim_string(value: Any, max_length: int) -> str:
    if not isinstance(value, str):
        return ""
    return value.strip()[:max_length].rstrip()


def to_safe_number(value: Any):
    """Clamp to [0, MAX_VALUE]; anything non-numeric or non-finite becomes 1."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 1
    if isinstance(value, float):
        if not math.isfinite(value):
            return 1
        if value.is_integer():
            value = int(value)
    return max(0, min(value, MAX_VALUE))


def _default_achievement() -> Dict[str, Any]:
    return {"content": DEFAULT_CONTENT, "value": 1, "unit": DEFAULT_UNIT, "frequency": ""}


def normalize_achievements(items: Any) -> List[Dict[str, Any]]:
    if not isinstance(items, list) or not items:
        return [_default_achievement()]

    out: List[Dict[str, Any]] = []
    for item in items[:MAX_ACHIEVEMENTS]:
        if not isinstance(item, dict):
            item = {}
        out.append({
            "content": trim_string(item.get("content"), MAX_CONTENT_LENGTH) or DEFAULT_CONTENT,
            "value": to_safe_number(item.get("value")),
            "unit": trim_string(item.get("unit"), MAX_UNIT_LENGTH),
            "frequency": trim_string(item.get("frequency"), MAX_FREQUENCY_LENGTH),
        })
    return out


def normalize_result(raw: Any) -> Result:
    """Coerce arbitrary decoded JSON into a fully populated Result."""
    if not isinstance(raw, dict):
        raw = {}

    period = raw.get("period")
    if not isinstance(period, str) or period not in ALLOWED_PERIODS:
        period = DEFAULT_PERIOD

    return Result(
        period=period,
        period_label=trim_string(raw.get("periodLabel"), MAX_PERIOD_LABEL_LENGTH) or DEFAULT_PERIOD_LABEL,
        achievements=[Achievement(**a) for a in normalize_achievements(raw.get("achievements"))],
        dj_comment=trim_string(raw.get("djComment"), MAX_DJ_COMMENT_LENGTH),
        dj_trivia=trim_string(raw.get("djTrivia"), MAX_DJ_TRIVIA_LENGTH),
    )
