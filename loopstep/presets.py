"""Example programs that demonstrate event-loop ordering."""

from dataclasses import dataclass
from typing import Dict, List, Optional


@dataclass(frozen=True)
class Preset:
    id: str
    title: str
    description: str
    code: str


PRESETS: List[Preset] = [
    Preset(
        'basic-timeout',
        'Basic setTimeout',
        'See how setTimeout moves to Web APIs then task queue',
        """console.log('Start');

setTimeout(() => {
  console.log('Timeout callback');
}, 1000);

console.log('End');""",
    ),
    Preset(
        'promise-vs-timeout',
        'Promise vs setTimeout',
        'Microtasks run before tasks',
        """console.log('Start');

setTimeout(() => {
  console.log('Timeout');
}, 0);

Promise.resolve().then(() => {
  console.log('Promise');
});

console.log('End');""",
    ),
    Preset(
        'async-await',
        'Async/Await',
        'How async/await uses microtasks',
        """console.log('Start');

async function fetchData() {
  console.log('Fetching...');
  const data = await Promise.resolve('Data');
  console.log(data);
}

fetchData();

console.log('End');""",
    ),
    Preset(
        'raf-demo',
        'requestAnimationFrame',
        'rAF runs before paint',
        """console.log('Start');

requestAnimationFrame(() => {
  console.log('rAF callback');
});

setTimeout(() => {
  console.log('Timeout');
}, 0);

console.log('End');""",
    ),
    Preset(
        'microtask-storm',
        'Microtask Storm',
        'Microtasks can block rendering',
        """console.log('Start');

Promise.resolve().then(() => {
  console.log('Promise 1');
  Promise.resolve().then(() => {
    console.log('Promise 2');
    Promise.resolve().then(() => {
      console.log('Promise 3');
    });
  });
});

setTimeout(() => {
  console.log('Timeout');
}, 0);

console.log('End');""",
    ),
    Preset(
        'timer-ordering',
        'Timer Ordering',
        'Timers should respect their delay, not definition order',
        """console.log('Start');

setTimeout(() => console.log('1000ms'), 1000);
setTimeout(() => console.log('500ms'), 500);
setTimeout(() => console.log('10ms'), 10);
setTimeout(() => console.log('0ms'), 0);

console.log('End');""",
    ),
    Preset(
        'closures-and-scope',
        'Closures & Scope',
        'Functions remembering their lexical scope',
        """function createCounter(name) {
  let count = 0;
  return function() {
    count = count + 1;
    console.log(name + ': ' + count);
  };
}

const c1 = createCounter('A');
const c2 = createCounter('B');

c1(); // A: 1
c1(); // A: 2
c2(); // B: 1""",
    ),
    Preset(
        'return-values',
        'Return Values',
        'Functions returning values to callers',
        """function add(a, b) {
  return a + b;
}

function square(x) {
  return x * x;
}

const result = square(add(3, 4));
console.log('Result:', result);""",
    ),
    Preset(
        'async-mixed-priority',
        'Mixed Priority (The Exam)',
        'Promises, Timeouts, and RAF interaction',
        """console.log('1. Script Start');

setTimeout(() => console.log('8. Timeout 0ms'), 0);

requestAnimationFrame(() => console.log('6. RAF'));

Promise.resolve().then(() => {
  console.log('3. Promise 1');
  Promise.resolve().then(() => console.log('4. Promise 2'));
});

// Nested Logic
setTimeout(() => {
  console.log('9. Timeout 2 (Nested)');
  Promise.resolve().then(() => console.log('10. Microtask in properties'));
}, 0);

console.log('2. Script End');""",
    ),
    Preset(
        'async-sequential',
        'Async/Await Sequential',
        'Sequential async operations with await',
        """async function fetchData() {
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
console.log('After function call');""",
    ),
    Preset(
        'promise-error',
        'Promise Error Handling',
        'Testing .catch() and .then() skipping',
        """console.log('Start');

// 1. Resolve -> .then (Runs)
Promise.resolve()
  .then(() => console.log('1. Success'));

// 2. Reject -> .then (Skip) -> .catch (Runs)
Promise.reject()
  .then(() => console.log('Skipped'))
  .catch(() => console.log('2. Caught Error'));

// 3. Resolve -> .catch (Skip)
Promise.resolve()
  .catch(() => console.log('Skipped Catch'));

console.log('End');""",
    ),
]

PRESETS_BY_ID: Dict[str, Preset] = {preset.id: preset for preset in PRESETS}


def get_preset(preset_id: str) -> Optional[Preset]:
    return PRESETS_BY_ID.get(preset_id)
