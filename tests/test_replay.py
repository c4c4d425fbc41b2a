import asyncio

from loopstep.replay import ReplayEngine
from loopstep.scheduler import StepGenerator
from loopstep.steps import MicroStep, StepKind
from loopstep.store import VisualizerStore, QueueItem


def steps_for(source):
    result = StepGenerator().generate(source)
    assert result.success, result.message
    return result.steps


def test_replay_applies_every_step():
    store = VisualizerStore()
    engine = ReplayEngine(store)
    engine.load(steps_for("console.log('Start')\nsetTimeout(() => console.log('Timeout'), 10)\nconsole.log('End')"))
    assert asyncio.run(engine.run()) is True
    assert store.console == ['Start', 'End', 'Timeout']
    assert store.call_stack == []
    assert store.web_apis == [] and store.task_queue == []
    assert store.running is False
    assert engine.done


def test_intermediate_store_state():
    store = VisualizerStore()
    seen = []

    def watch(step):
        if step.kind is StepKind.WEBAPI_ADD:
            seen.append((list(store.call_stack), list(store.web_apis)))

    engine = ReplayEngine(store, on_step=watch)
    engine.load(steps_for("setTimeout(() => {}, 250)"))
    asyncio.run(engine.run())
    assert seen == [(['setTimeout(fn, 250)'], [QueueItem(1, 'setTimeout', 250)])]


def test_durations_scale_with_speed():
    engine = ReplayEngine(VisualizerStore())
    engine.load([MicroStep(StepKind.HIGHLIGHT, 400, line=1), MicroStep(StepKind.CALLSTACK_POP, 300)])
    waits = []

    async def record(ms):
        waits.append(ms)

    engine.delay = record
    asyncio.run(engine.run(speed=250))
    assert waits == [200, 150]


def test_advance_one_step_at_a_time():
    store = VisualizerStore()
    engine = ReplayEngine(store)
    steps = steps_for("console.log('a')")
    engine.load(steps)
    progress = asyncio.run(engine.advance())
    assert progress.step == steps[0] and not progress.done
    assert store.current_line == 1
    for _ in range(3):
        progress = asyncio.run(engine.advance())
    assert progress.done and store.console == ['a']
    assert asyncio.run(engine.advance()).done


def test_pause_holds_replay_until_resume():
    store = VisualizerStore()
    engine = ReplayEngine(store)
    engine.load(steps_for("console.log('hi')"))

    async def scenario():
        engine.pause()
        task = asyncio.ensure_future(engine.run())
        await asyncio.sleep(0.02)
        held = (list(store.console), store.paused, store.running)
        engine.resume()
        finished = await task
        return held, finished

    held, finished = asyncio.run(scenario())
    assert held == ([], True, True)
    assert finished is True
    assert store.console == ['hi']


def test_stop_cancels_pending_delay():
    store = VisualizerStore()
    engine = ReplayEngine(store)
    engine.load(steps_for("console.log('a')\nconsole.log('b')"))

    async def scenario():
        task = asyncio.ensure_future(engine.run(speed=5000))
        await asyncio.sleep(0.01)
        engine.stop()
        return await asyncio.wait_for(task, timeout=1)

    assert asyncio.run(scenario()) is False
    assert store.console == []
    assert store.running is False
    assert not engine.done


def test_concurrent_run_is_refused():
    engine = ReplayEngine(VisualizerStore())
    engine.load(steps_for("console.log('a')"))

    async def scenario():
        task = asyncio.ensure_future(engine.run(speed=5000))
        await asyncio.sleep(0.01)
        second = await engine.run()
        engine.stop()
        first = await task
        return first, second

    assert asyncio.run(scenario()) == (False, False)


def test_reset_clears_engine_and_store():
    store = VisualizerStore()
    engine = ReplayEngine(store)
    engine.load(steps_for("requestAnimationFrame(() => {})\nconsole.log('x')"))
    asyncio.run(engine.run())
    assert not store.is_empty()
    engine.reset()
    assert store.is_empty()
    assert engine.steps == [] and engine.cursor == 0
    assert not engine.running and not engine.paused and not engine.stopped


def test_replay_error_goes_to_console():
    store = VisualizerStore()
    engine = ReplayEngine(store)
    engine.load([MicroStep('teleport', 100)])
    assert asyncio.run(engine.run()) is False
    assert store.console == ['Error: Unknown step type: teleport']
    assert store.running is False


def test_paused_run_does_not_survive_reset():
    store = VisualizerStore()
    engine = ReplayEngine(store)
    engine.load(steps_for("console.log('old')"))

    async def scenario():
        engine.pause()
        task = asyncio.ensure_future(engine.run())
        await asyncio.sleep(0.02)
        engine.reset()
        engine.load(steps_for("console.log('new')"))
        await asyncio.sleep(0.08)
        return await asyncio.wait_for(task, timeout=1)

    assert asyncio.run(scenario()) is False
    assert engine.cursor == 0
    assert store.current_line is None
    assert store.console == []


def test_reset_mid_delay_then_replay_second_program():
    store = VisualizerStore()
    engine = ReplayEngine(store)
    engine.load(steps_for("console.log('first')\nsetTimeout(() => console.log('late'), 100)"))

    async def scenario():
        old = asyncio.ensure_future(engine.run(speed=5000))
        await asyncio.sleep(0.01)
        engine.reset()
        engine.load(steps_for("console.log('second')"))
        finished = await engine.run()
        return await asyncio.wait_for(old, timeout=1), finished

    assert asyncio.run(scenario()) == (False, True)
    assert store.console == ['second']
    assert store.web_apis == [] and store.task_queue == []
    assert store.call_stack == []
    assert store.running is False


def test_reset_while_paused_then_replay_second_program():
    store = VisualizerStore()
    engine = ReplayEngine(store)
    engine.load(steps_for("console.log('first')"))

    async def scenario():
        engine.pause()
        old = asyncio.ensure_future(engine.run())
        await asyncio.sleep(0.02)
        engine.reset()
        engine.load(steps_for("console.log('second')\nconsole.log('third')"))
        finished = await engine.run(speed=1)
        return await asyncio.wait_for(old, timeout=1), finished

    assert asyncio.run(scenario()) == (False, True)
    assert store.console == ['second', 'third']
    assert store.paused is False and store.running is False
    assert engine.done


def test_stop_while_paused_ends_run():
    store = VisualizerStore()
    engine = ReplayEngine(store)
    engine.load(steps_for("console.log('a')"))

    async def scenario():
        engine.pause()
        task = asyncio.ensure_future(engine.run())
        await asyncio.sleep(0.02)
        engine.stop()
        return await asyncio.wait_for(task, timeout=1)

    assert asyncio.run(scenario()) is False
    assert store.console == []
    assert engine.running is False and engine.paused is False
    assert store.running is False and store.paused is False
