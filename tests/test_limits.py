import sys

import pytest

from loopstep.errors import ComplexityError, ScriptSyntaxError, AnalysisError
from loopstep.interpreter import Interpreter
from loopstep.scheduler import StepGenerator, Phase, MAX_CODE_LENGTH
from loopstep.steps import StepSequence, highlight


def test_code_length_limit():
    generator = StepGenerator()
    result = generator.generate('x' * (MAX_CODE_LENGTH + 1))
    assert not result.success
    assert isinstance(result.error, ComplexityError)
    assert result.message == 'Code exceeds maximum length'
    assert generator.phase is Phase.ERROR


@pytest.mark.parametrize('source', ['', '   \n  '])
def test_empty_input(source):
    result = StepGenerator().generate(source)
    assert isinstance(result.error, ScriptSyntaxError)
    assert result.message == 'Invalid code input'


def test_syntax_error_hides_parser_detail():
    result = StepGenerator().generate("console.log('x'")
    assert not result.success
    assert result.message == 'Syntax error in code'
    assert result.steps == []


def test_step_limit():
    source = "\n".join("console.log(%d)" % i for i in range(5))
    result = StepGenerator(max_steps=10).generate(source)
    assert not result.success
    assert result.message == 'Code complexity exceeds limit'
    assert result.steps == []


def test_step_sequence_ceiling():
    steps = StepSequence(limit=2)
    steps.append(highlight(1))
    steps.append(highlight(2))
    with pytest.raises(ComplexityError):
        steps.append(highlight(3))
    assert len(steps) == 2


def test_loop_iteration_cap_warns():
    source = """let n = 0
for (let i = 0; i < 5000; i++) {
  n++
}
console.log(n)"""
    result = StepGenerator().generate(source)
    assert result.success
    assert result.warnings == ['Loop at line 2 stopped after 1000 iterations']
    assert result.steps[-2].message == '1000'


def test_microtask_limit():
    source = """for (let i = 0; i < 600; i++) {
  Promise.resolve()
}
for (let j = 0; j < 600; j++) {
  Promise.resolve()
}"""
    result = StepGenerator().generate(source)
    assert not result.success
    assert result.message == 'Too many microtasks'


def test_generation_is_not_reentrant():
    generator = StepGenerator()
    generator._active = True
    result = generator.generate("console.log(1)")
    assert isinstance(result.error, AnalysisError)
    assert result.message == 'Generation already in progress'


def test_unexpected_failure_becomes_analysis_error(monkeypatch):
    def broken(self, program):
        raise RuntimeError('internal')

    monkeypatch.setattr(Interpreter, 'run_program', broken)
    result = StepGenerator().generate("console.log(1)")
    assert isinstance(result.error, AnalysisError)
    assert result.message == 'Error analyzing code'


def test_generator_recovers_after_error():
    generator = StepGenerator()
    assert not generator.generate("let = ").success
    result = generator.generate("console.log('ok')")
    assert result.success
    assert generator.phase is Phase.DONE


def test_deep_recursion_completes():
    source = """function countdown(n) {
  if (n > 0) {
    countdown(n - 1)
  }
}
countdown(300)
console.log('done')"""
    limit = sys.getrecursionlimit()
    result = StepGenerator().generate(source)
    assert result.success, result.message
    assert result.steps[-2].message == 'done'
    assert sys.getrecursionlimit() == limit


def test_unbounded_recursion_is_complexity_error():
    source = """function forever() {
  forever()
}
forever()"""
    generator = StepGenerator()
    result = generator.generate(source)
    assert not result.success
    assert isinstance(result.error, ComplexityError)
    assert result.message == 'Maximum call stack size exceeded'
    assert result.steps == []
    assert generator.phase is Phase.ERROR


def test_python_recursion_error_is_complexity_error(monkeypatch):
    def overflow(self, program):
        raise RecursionError('maximum recursion depth exceeded')

    monkeypatch.setattr(Interpreter, 'run_program', overflow)
    result = StepGenerator().generate("console.log(1)")
    assert isinstance(result.error, ComplexityError)
    assert result.message == 'Maximum call stack size exceeded'


def test_unsupported_nodes_raise_analysis_error():
    interpreter = Interpreter()
    with pytest.raises(AnalysisError, match='Unsupported operator'):
        interpreter.apply_binary_op('**', 1, 2)
    with pytest.raises(AnalysisError, match='Unsupported statement'):
        interpreter.execute(object())
    with pytest.raises(AnalysisError, match='Unsupported expression'):
        interpreter.evaluate(object())
