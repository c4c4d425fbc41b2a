from loopstep.scheduler import StepGenerator
from loopstep.steps import StepKind, console_lines


def generate(source):
    result = StepGenerator().generate(source)
    assert result.success, result.message
    return result


def microtasks(result):
    return [(s.item_id, s.name) for s in result.steps if s.kind is StepKind.MICROTASK_ADD]


def test_then_runs_before_timeout():
    source = """console.log('Start');
setTimeout(() => {
  console.log('Timeout');
}, 0);
Promise.resolve().then(() => {
  console.log('Promise');
});
console.log('End');"""
    result = generate(source)
    assert console_lines(result.steps) == ['Start', 'End', 'Promise', 'Timeout']
    assert microtasks(result) == [(1, 'Promise.then')]


def test_then_callback_frame_and_value():
    result = generate("Promise.resolve(42).then(v => console.log('got ' + v))")
    pushes = [s.name for s in result.steps if s.kind is StepKind.CALLSTACK_PUSH]
    assert pushes == ['Promise.resolve()', 'Promise.then()', 'Promise.then callback', "console.log(got 42)"]
    assert console_lines(result.steps) == ['got 42']


def test_bare_resolve_enqueues_settle_microtask():
    result = generate("Promise.resolve()")
    assert microtasks(result) == [(1, 'Promise.resolve')]


def test_resolve_then_catch_skips_catch():
    result = generate("Promise.resolve().catch(() => console.log('Skipped Catch'))")
    assert microtasks(result) == []
    assert console_lines(result.steps) == []
    pushes = [s.name for s in result.steps if s.kind is StepKind.CALLSTACK_PUSH]
    assert pushes == ['Promise.resolve()']


def test_reject_skips_then_and_runs_catch():
    source = """console.log('Start');
Promise.resolve()
  .then(() => console.log('1. Success'));
Promise.reject()
  .then(() => console.log('Skipped'))
  .catch(() => console.log('2. Caught Error'));
console.log('End');"""
    result = generate(source)
    assert console_lines(result.steps) == ['Start', 'End', '1. Success', '2. Caught Error']
    assert [name for _, name in microtasks(result)] == ['Promise.then', 'Promise.catch']


def test_catch_recovers_chain():
    source = """Promise.reject('boom')
  .catch(e => console.log('caught ' + e))
  .then(() => console.log('recovered'))
  .finally(() => console.log('finally'))"""
    result = generate(source)
    assert console_lines(result.steps) == ['caught boom', 'recovered', 'finally']


def test_nested_microtasks_drain_before_tasks():
    source = """Promise.resolve().then(() => {
  console.log('Promise 1');
  Promise.resolve().then(() => {
    console.log('Promise 2');
    Promise.resolve().then(() => {
      console.log('Promise 3');
    });
  });
});
setTimeout(() => console.log('Timeout'), 0);"""
    assert console_lines(generate(source).steps) == ['Promise 1', 'Promise 2', 'Promise 3', 'Timeout']


def test_promise_all_settles_with_values():
    source = "Promise.all([1, Promise.resolve(2)]).then(values => console.log('sum ' + values))"
    result = generate(source)
    assert console_lines(result.steps) == ['sum 1,2']


def test_promise_all_rejects_on_rejected_member():
    source = """Promise.all([Promise.reject('bad'), 2])
  .then(() => console.log('skipped'))
  .catch(e => console.log('failed ' + e))"""
    assert console_lines(generate(source).steps) == ['failed bad']


def test_microtask_checkpoint_after_each_task():
    source = """console.log('1. Script Start');
setTimeout(() => console.log('8. Timeout 0ms'), 0);
requestAnimationFrame(() => console.log('6. RAF'));
Promise.resolve().then(() => {
  console.log('3. Promise 1');
  Promise.resolve().then(() => console.log('4. Promise 2'));
});
setTimeout(() => {
  console.log('9. Timeout 2 (Nested)');
  Promise.resolve().then(() => console.log('10. Microtask in properties'));
}, 0);
console.log('2. Script End');"""
    assert console_lines(generate(source).steps) == [
        '1. Script Start',
        '2. Script End',
        '3. Promise 1',
        '4. Promise 2',
        '6. RAF',
        '8. Timeout 0ms',
        '9. Timeout 2 (Nested)',
        '10. Microtask in properties',
    ]


def test_chains_interleave_one_link_per_tick():
    source = """Promise.resolve().then(() => console.log('A')).then(() => console.log('B'))
Promise.resolve().then(() => console.log('C')).then(() => console.log('D'))"""
    result = generate(source)
    assert console_lines(result.steps) == ['A', 'C', 'B', 'D']
    assert [name for _, name in microtasks(result)] == ['Promise.then'] * 4


def test_then_value_flows_to_next_link():
    source = """Promise.resolve(2)
  .then(v => v * 10)
  .then(v => console.log('got ' + v))"""
    assert console_lines(generate(source).steps) == ['got 20']


def test_then_without_callback_passes_value_through():
    source = "Promise.resolve(7).then().then(v => console.log('kept ' + v))"
    assert console_lines(generate(source).steps) == ['kept 7']
