"""JSON serialization/deserialization for micro-step sequences.

This module converts between `MicroStep` records and plain Python
dict/list structures suitable for JSON encoding, so that a generated
sequence can be written out once and replayed later without the source
program. Empty payload fields are omitted from the encoded form.
"""

from __future__ import annotations

from typing import Any, Dict, List

from .steps import MicroStep, StepKind

PAYLOAD_FIELDS = ('line', 'name', 'message', 'item_id', 'delay')


def step_to_obj(step: MicroStep) -> Dict[str, Any]:
    obj: Dict[str, Any] = {"type": step.kind.value, "duration": step.duration}
    for name in PAYLOAD_FIELDS:
        value = getattr(step, name)
        if value is not None:
            obj[name] = value
    return obj


def step_from_obj(obj: Any) -> MicroStep:
    if not isinstance(obj, dict):
        raise TypeError("Invalid step object")
    t = obj.get("type")
    try:
        kind = StepKind(t)
    except ValueError:
        raise ValueError(f"Unknown step type: {t}")
    duration = obj.get("duration", 100)
    if not isinstance(duration, int) or duration < 0:
        raise ValueError(f"Invalid step duration: {duration!r}")
    return MicroStep(kind, duration, **{name: obj.get(name) for name in PAYLOAD_FIELDS})


def steps_to_obj(steps) -> List[Dict[str, Any]]:
    return [step_to_obj(s) for s in steps]


def steps_from_obj(obj: Any) -> List[MicroStep]:
    if not isinstance(obj, list):
        raise TypeError("Step sequence must be a list")
    return [step_from_obj(o) for o in obj]
