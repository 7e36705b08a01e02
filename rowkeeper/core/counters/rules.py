"""
Trigger conditions and actions for counter links.

Links store their trigger and action as JSON. This module turns those
payloads into closed sets of small value types so the propagation engine
never has to inspect raw dictionaries:

    TriggerCondition = Equals | GreaterThan | LessThan | MultipleOf | UnknownTrigger
    CounterAction    = Increment | Decrement | Reset | Set | UnknownAction

Parsing is lenient. Payloads may arrive as dicts or as JSON strings, and
both the current keys (``type``/``value``) and the older ones
(``when``, ``action``, ``by_value``, ``to_value``) are understood. Anything
unrecognised becomes ``UnknownTrigger`` (never fires) or ``UnknownAction``
(leaves the target untouched) rather than raising.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional, Union

logger = logging.getLogger(__name__)

__all__ = [
    "CounterAction",
    "Decrement",
    "Equals",
    "GreaterThan",
    "Increment",
    "LessThan",
    "MultipleOf",
    "Reset",
    "Set",
    "TriggerCondition",
    "UnknownAction",
    "UnknownTrigger",
    "coerce_int",
    "parse_action",
    "parse_trigger",
]


# Triggers


@dataclass(frozen=True)
class Equals:
    value: int

    def matches(self, new_value: int) -> bool:
        return new_value == self.value


@dataclass(frozen=True)
class GreaterThan:
    value: int

    def matches(self, new_value: int) -> bool:
        return new_value > self.value


@dataclass(frozen=True)
class LessThan:
    value: int

    def matches(self, new_value: int) -> bool:
        return new_value < self.value


@dataclass(frozen=True)
class MultipleOf:
    """
    Fires when the new value is a multiple of ``value``.

    ``positive_only`` is set for the ``every_n`` condition, which must not
    fire when the counter sits at zero (or below).
    """

    value: int
    positive_only: bool = False

    def matches(self, new_value: int) -> bool:
        if self.value <= 0:
            return False
        if self.positive_only and new_value <= 0:
            return False
        return new_value % self.value == 0


@dataclass(frozen=True)
class UnknownTrigger:
    payload: Any

    def matches(self, new_value: int) -> bool:
        return False


TriggerCondition = Union[Equals, GreaterThan, LessThan, MultipleOf, UnknownTrigger]


# Actions


@dataclass(frozen=True)
class Increment:
    value: int = 1

    def apply(self, current: int) -> int:
        return current + self.value


@dataclass(frozen=True)
class Decrement:
    value: int = 1

    def apply(self, current: int) -> int:
        return current - self.value


@dataclass(frozen=True)
class Reset:
    value: int = 0

    def apply(self, current: int) -> int:
        return self.value


@dataclass(frozen=True)
class Set:
    value: int

    def apply(self, current: int) -> int:
        return self.value


@dataclass(frozen=True)
class UnknownAction:
    payload: Any

    def apply(self, current: int) -> int:
        return current


CounterAction = Union[Increment, Decrement, Reset, Set, UnknownAction]


# Parsing


def _decode(payload: Any) -> Optional[dict]:
    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError:
            logger.warning("Could not decode counter link payload: %r", payload)
            return None
    if not isinstance(payload, dict):
        return None
    return payload


def coerce_int(value: Any) -> Optional[int]:
    """Integers, integral floats and numeric strings; anything else is None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def parse_trigger(payload: Any) -> TriggerCondition:
    data = _decode(payload)
    if data is None:
        return UnknownTrigger(payload)

    kind = data.get("type", data.get("when"))
    value = coerce_int(data.get("value"))
    if value is None:
        return UnknownTrigger(payload)

    if kind == "equals":
        return Equals(value)
    if kind == "greater_than":
        return GreaterThan(value)
    if kind == "less_than":
        return LessThan(value)
    if kind in ("multiple_of", "modulo"):
        return MultipleOf(value)
    if kind == "every_n":
        return MultipleOf(value, positive_only=True)
    return UnknownTrigger(payload)


def parse_action(payload: Any) -> CounterAction:
    data = _decode(payload)
    if data is None:
        return UnknownAction(payload)

    kind = data.get("type", data.get("action"))

    raw = None
    for key in ("value", "by_value", "to_value"):
        if data.get(key) is not None:
            raw = data[key]
            break
    value = coerce_int(raw)
    if raw is not None and value is None:
        return UnknownAction(payload)

    if kind == "increment":
        # A zero step is treated as the default step of one
        return Increment(value or 1)
    if kind == "decrement":
        return Decrement(value or 1)
    if kind == "reset":
        return Reset(0 if value is None else value)
    if kind == "set" and value is not None:
        return Set(value)
    return UnknownAction(payload)
