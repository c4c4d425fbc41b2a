import json

import pytest

from loopstep.scheduler import StepGenerator
from loopstep.steps import StepKind, MicroStep, webapi_add, stack_pop
from loopstep.steps_json import step_to_obj, step_from_obj, steps_to_obj, steps_from_obj


def test_step_to_obj_omits_empty_fields():
    assert step_to_obj(stack_pop()) == {"type": "callstack_pop", "duration": 300}
    obj = step_to_obj(webapi_add(3, 'setTimeout', 250))
    assert obj == {"type": "webapi_add", "duration": obj["duration"],
                   "name": "setTimeout", "item_id": 3, "delay": 250}


def test_step_from_obj():
    step = step_from_obj({"type": "console_output", "duration": 200, "message": "hi"})
    assert step == MicroStep(StepKind.CONSOLE_OUTPUT, 200, message='hi')


def test_generated_sequence_survives_json():
    result = StepGenerator().generate("setTimeout(() => console.log('x'), 5)")
    text = json.dumps(steps_to_obj(result.steps))
    assert steps_from_obj(json.loads(text)) == result.steps


@pytest.mark.parametrize('obj, error', [
    ({"type": "teleport", "duration": 1}, ValueError),
    ({"type": "highlight", "duration": -5}, ValueError),
    ({"type": "highlight", "duration": "fast"}, ValueError),
    (["highlight"], TypeError),
])
def test_invalid_step_objects(obj, error):
    with pytest.raises(error):
        step_from_obj(obj)


def test_sequence_must_be_list():
    with pytest.raises(TypeError):
        steps_from_obj({"type": "highlight"})
