from loopstep.dispatch import (
    CallShape, classify_call, call_label, walk_chain, chain_state, branch_runs,
)
from loopstep.parser import parse_program
from loopstep.types import FULFILLED, REJECTED


def first_call(source):
    return parse_program(source).body[0].expr


def test_classify_builtins():
    assert classify_call(first_call("setTimeout(f, 0)")) is CallShape.TIMEOUT
    assert classify_call(first_call("setInterval(f, 10)")) is CallShape.INTERVAL
    assert classify_call(first_call("requestAnimationFrame(f)")) is CallShape.ANIMATION_FRAME
    assert classify_call(first_call("clearTimeout(id)")) is CallShape.CLEAR_TIMER
    assert classify_call(first_call("console.warn('x')")) is CallShape.CONSOLE
    assert classify_call(first_call("Promise.all([])")) is CallShape.PROMISE_ALL


def test_classify_user_code():
    assert classify_call(first_call("doWork()")) is CallShape.USER_FUNCTION
    assert classify_call(first_call("(() => 1)()")) is CallShape.USER_FUNCTION
    assert classify_call(first_call("make()()")) is CallShape.USER_FUNCTION
    assert classify_call(first_call("items.push(1)")) is CallShape.METHOD
    assert classify_call(first_call("p.then(f)")) is CallShape.PROMISE_THEN


def test_call_label_renders_arguments():
    call = first_call("add(3, 'x', y, a + b)")
    assert call_label('add', call.args) == 'add(3, "x", y, ...)'
    assert call_label('go', []) == 'go()'


def test_walk_chain_to_root():
    call = first_call("Promise.reject().then(a).finally(b).catch(c)")
    root, links = walk_chain(call)
    assert classify_call(root) is CallShape.PROMISE_REJECT
    assert links == [CallShape.PROMISE_THEN, CallShape.PROMISE_FINALLY]


def test_walk_chain_without_promise_root():
    root, links = walk_chain(first_call("load().then(a)"))
    assert root is None and links == []


def test_chain_state_recovers_after_catch():
    assert chain_state(FULFILLED, []) == FULFILLED
    assert chain_state(REJECTED, [CallShape.PROMISE_THEN]) == REJECTED
    assert chain_state(REJECTED, [CallShape.PROMISE_CATCH]) == FULFILLED
    assert chain_state(REJECTED, [CallShape.PROMISE_CATCH, CallShape.PROMISE_CATCH]) == FULFILLED


def test_branch_runs():
    assert branch_runs(CallShape.PROMISE_THEN, FULFILLED)
    assert not branch_runs(CallShape.PROMISE_THEN, REJECTED)
    assert branch_runs(CallShape.PROMISE_CATCH, REJECTED)
    assert not branch_runs(CallShape.PROMISE_CATCH, FULFILLED)
    assert branch_runs(CallShape.PROMISE_FINALLY, REJECTED)
