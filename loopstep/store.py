"""Presentation store: the write-only sink the replay engine drives.

The engine never reads visual state back. `VisualizerStore` keeps the
state in memory so that it can be rendered, inspected in tests, or echoed
by the command line tool.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional


@dataclass
class QueueItem:
    id: Optional[int]
    name: str
    delay: Optional[int] = None


class PresentationStore(ABC):
    @abstractmethod
    def push_to_call_stack(self, name: str): ...

    @abstractmethod
    def pop_from_call_stack(self): ...

    @abstractmethod
    def add_to_task_queue(self, item: QueueItem): ...

    @abstractmethod
    def remove_from_task_queue(self, item_id: Optional[int] = None): ...

    @abstractmethod
    def add_to_microtask_queue(self, item: QueueItem): ...

    @abstractmethod
    def remove_from_microtask_queue(self, item_id: Optional[int] = None): ...

    @abstractmethod
    def add_to_raf_queue(self, item: QueueItem): ...

    @abstractmethod
    def remove_from_raf_queue(self, item_id: Optional[int] = None): ...

    @abstractmethod
    def add_to_web_apis(self, item: QueueItem): ...

    @abstractmethod
    def remove_from_web_apis(self, item_id: Optional[int] = None): ...

    @abstractmethod
    def add_to_console(self, message: str): ...

    @abstractmethod
    def set_current_line(self, line: Optional[int]): ...

    @abstractmethod
    def set_running(self, running: bool): ...

    @abstractmethod
    def set_paused(self, paused: bool): ...

    @abstractmethod
    def reset(self): ...


def remove_item(queue: List[QueueItem], item_id: Optional[int]):
    """Remove the item with `item_id`, or the head of the queue when None."""
    if item_id is None:
        if queue:
            del queue[0]
        return
    queue[:] = [item for item in queue if item.id != item_id]


@dataclass
class VisualizerStore(PresentationStore):
    call_stack: List[str] = field(default_factory=list)
    task_queue: List[QueueItem] = field(default_factory=list)
    microtask_queue: List[QueueItem] = field(default_factory=list)
    raf_queue: List[QueueItem] = field(default_factory=list)
    web_apis: List[QueueItem] = field(default_factory=list)
    console: List[str] = field(default_factory=list)
    current_line: Optional[int] = None
    running: bool = False
    paused: bool = False

    def push_to_call_stack(self, name: str):
        self.call_stack.append(name)

    def pop_from_call_stack(self):
        if self.call_stack:
            self.call_stack.pop()

    def add_to_task_queue(self, item: QueueItem):
        self.task_queue.append(item)

    def remove_from_task_queue(self, item_id: Optional[int] = None):
        remove_item(self.task_queue, item_id)

    def add_to_microtask_queue(self, item: QueueItem):
        self.microtask_queue.append(item)

    def remove_from_microtask_queue(self, item_id: Optional[int] = None):
        remove_item(self.microtask_queue, item_id)

    def add_to_raf_queue(self, item: QueueItem):
        self.raf_queue.append(item)

    def remove_from_raf_queue(self, item_id: Optional[int] = None):
        remove_item(self.raf_queue, item_id)

    def add_to_web_apis(self, item: QueueItem):
        self.web_apis.append(item)

    def remove_from_web_apis(self, item_id: Optional[int] = None):
        remove_item(self.web_apis, item_id)

    def add_to_console(self, message: str):
        self.console.append(message)

    def set_current_line(self, line: Optional[int]):
        self.current_line = line

    def set_running(self, running: bool):
        self.running = running

    def set_paused(self, paused: bool):
        self.paused = paused

    def reset(self):
        self.call_stack.clear()
        self.task_queue.clear()
        self.microtask_queue.clear()
        self.raf_queue.clear()
        self.web_apis.clear()
        self.console.clear()
        self.current_line = None
        self.running = False
        self.paused = False

    def snapshot(self) -> Dict[str, Any]:
        return asdict(self)

    def is_empty(self) -> bool:
        return not (self.call_stack or self.task_queue or self.microtask_queue
                    or self.raf_queue or self.web_apis or self.console)
