"""Single-consumer message loop around ImportWizard."""

from __future__ import annotations

import queue
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable

from unitwizard.workflow.machine import ImportWizard
from unitwizard.workflow.messages import Command, ErrorMsg, KeyPress, Message


class Runner:
    """Runs commands on a thread pool and feeds their results back in order.

    Only ``step`` calls ``ImportWizard.update``, one message at a time, so
    wizard state is never touched from a worker thread.
    """

    def __init__(self, wizard: ImportWizard, max_workers: int = 4) -> None:
        self.wizard = wizard
        self.inbox: queue.Queue[Message] = queue.Queue()
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="unitwizard")
        self.processed = 0

    def start(self) -> None:
        for cmd in self.wizard.init():
            self.dispatch(cmd)

    def dispatch(self, cmd: Command) -> None:
        future = self._executor.submit(cmd)
        future.add_done_callback(self._deliver)

    def _deliver(self, future: Future) -> None:
        try:
            msg = future.result()
        except Exception as e:
            msg = ErrorMsg(error=f"{type(e).__name__}: {e}")
        self.inbox.put(msg)

    def send(self, msg: Message) -> None:
        self.inbox.put(msg)

    def press(self, *keys: str) -> None:
        for key in keys:
            self.send(KeyPress(key))

    def step(self, timeout: float | None = None) -> Message | None:
        try:
            msg = self.inbox.get(timeout=timeout)
        except queue.Empty:
            return None
        for cmd in self.wizard.update(msg):
            self.dispatch(cmd)
        self.processed += 1
        return msg

    def run_until(self, done: Callable[[ImportWizard], bool], timeout_s: float = 60.0) -> bool:
        """Process messages until ``done`` holds, the wizard quits or time runs out."""
        deadline = time.monotonic() + timeout_s
        while not done(self.wizard):
            if self.wizard.quitting:
                return False
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return False
            self.step(timeout=min(remaining, 0.1))
        return True

    def drain(self) -> None:
        """Process whatever is already queued without waiting."""
        while self.step(timeout=0) is not None:
            continue

    def shutdown(self) -> None:
        # Dispatched commands are not cancelled; detached workers keep running.
        self._executor.shutdown(wait=False)
