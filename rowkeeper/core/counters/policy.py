"""
Increment policy: how far a single increment/decrement gesture moves a counter.

A counter's ``increment_pattern`` is one of:

    {"type": "simple"}                                 step = increment_by
    {"type": "custom_fixed", "increment": 5}           step = 5
    {"type": "every_n", "n": 2, "increment": 1}        step = 1 (see below)

``every_n`` is meant to move the counter only on every n-th gesture. Clicks
are not tracked server-side, so the caller may pass the gesture number as
``click_count``; without it every gesture moves the counter by
``increment``. Missing, malformed or unknown patterns fall back to
``increment_by``.
"""

from typing import Literal, Optional

from rowkeeper.core.counters.rules import coerce_int

Direction = Literal["increment", "decrement"]


def step_size(pattern, increment_by: int, click_count: Optional[int] = None) -> int:
    """The unsigned step for one gesture under ``pattern``."""
    if not isinstance(pattern, dict):
        return increment_by

    kind = pattern.get("type")
    increment = coerce_int(pattern.get("increment"))

    if kind == "custom_fixed":
        return increment or increment_by

    if kind == "every_n":
        step = increment or 1
        n = coerce_int(pattern.get("n"))
        if click_count is not None and n and n > 0 and click_count % n != 0:
            return 0
        return step

    return increment_by


def evaluate(counter, direction: Direction, click_count: Optional[int] = None) -> int:
    """The signed delta for one ``direction`` gesture on ``counter``."""
    step = step_size(counter.increment_pattern, counter.increment_by, click_count)
    return -step if direction == "decrement" else step
