from loopstep.scheduler import StepGenerator
from loopstep.steps import StepKind, console_lines


def generate(source):
    result = StepGenerator().generate(source)
    assert result.success, result.message
    return result


def test_await_defers_rest_of_body():
    source = """console.log('Start');
async function fetchData() {
  console.log('Fetching...');
  const data = await Promise.resolve('Data');
  console.log(data);
}
fetchData();
console.log('End');"""
    result = generate(source)
    assert console_lines(result.steps) == ['Start', 'Fetching...', 'End', 'Data']
    pushes = [s.name for s in result.steps if s.kind is StepKind.CALLSTACK_PUSH]
    # the resumed body gets a frame of its own
    assert pushes.count('fetchData()') == 2
    adds = [s.name for s in result.steps if s.kind is StepKind.MICROTASK_ADD]
    assert adds == ['await fetchData']


def test_sequential_awaits():
    source = """async function fetchData() {
  console.log('Start');

  await Promise.resolve();
  console.log('After first await');

  await Promise.resolve();
  console.log('After second await');

  await Promise.resolve();
  console.log('After third await');

  console.log('Done');
}

fetchData();
console.log('After function call');"""
    assert console_lines(generate(source).steps) == [
        'Start',
        'After function call',
        'After first await',
        'After second await',
        'After third await',
        'Done',
    ]


def test_await_plain_value_and_assignment():
    source = """async function run() {
  let total = 1
  total += await 2
  total = await total * 10
  console.log('total ' + total)
}
run()"""
    # `await total * 10` awaits `total` only
    assert console_lines(generate(source).steps) == ['total 30']


def test_await_inside_loop_resumes_iteration():
    source = """async function loop() {
  for (let i = 0; i < 3; i++) {
    console.log('before ' + i)
    await Promise.resolve()
    console.log('after ' + i)
  }
  console.log('loop done')
}
loop()
console.log('sync end')"""
    assert console_lines(generate(source).steps) == [
        'before 0',
        'sync end',
        'after 0',
        'before 1',
        'after 1',
        'before 2',
        'after 2',
        'loop done',
    ]


def test_then_on_async_result_waits_for_body():
    source = """async function compute() {
  await Promise.resolve()
  console.log('computed')
  return 5
}
compute().then(v => console.log('value ' + v))
Promise.resolve().then(() => console.log('other'))"""
    assert console_lines(generate(source).steps) == ['computed', 'other', 'value 5']


def test_await_async_call_waits_for_callee():
    source = """async function inner() {
  await Promise.resolve()
  console.log('inner done')
  return 'x'
}
async function outer() {
  const v = await inner()
  console.log('outer got ' + v)
}
outer()"""
    assert console_lines(generate(source).steps) == ['inner done', 'outer got x']


def test_rejected_await_abandons_body():
    source = """async function fail() {
  console.log('before')
  await Promise.reject('nope')
  console.log('never')
}
fail().catch(e => console.log('caught ' + e))"""
    assert console_lines(generate(source).steps) == ['before', 'caught nope']


def test_async_without_await_settles_immediately():
    source = """async function quick() {
  return 1
}
quick().then(v => console.log('quick ' + v))
console.log('sync')"""
    assert console_lines(generate(source).steps) == ['sync', 'quick 1']


def test_async_arrow_function():
    source = """const go = async () => {
  await Promise.resolve()
  console.log('arrow resumed')
}
go()
console.log('first')"""
    assert console_lines(generate(source).steps) == ['first', 'arrow resumed']
