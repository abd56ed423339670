# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
import threading
from typing import Callable, Dict, List
from rich.console import Console

console = Console(stderr=True)


class PeriodicTask:
    """
    Runs `action` every `interval` seconds on a daemon thread until stopped.
    An exception raised by one run is logged and the schedule carries on.
    """

    def __init__(self, name: str, interval: float, action: Callable[[], object], run_immediately: bool = False):
        self.name = name
        self.interval = interval
        self.action = action
        self.run_immediately = run_immediately
        self.runs = 0
        self.failures = 0
        self._stop = threading.Event()
        self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run_once(self):
        try:
            self.action()
        except Exception as e:
            self.failures += 1
            console.log(f"[bold red]Scheduled task '{self.name}' failed: {e}[/bold red]")
        finally:
            self.runs += 1

    def _loop(self):
        if self.run_immediately:
            self._run_once()
        while not self._stop.wait(self.interval):
            self._run_once()

    def start(self):
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name=f"periodic-{self.name}", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = None):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None


class Scheduler:
    """A named collection of periodic tasks started and stopped together."""

    def __init__(self):
        self.tasks: Dict[str, PeriodicTask] = {}

    def schedule(self, name: str, interval: float, action: Callable[[], object],
                 run_immediately: bool = False) -> PeriodicTask:
        if name in self.tasks:
            raise ValueError(f"A task named '{name}' is already scheduled.")
        task = PeriodicTask(name, interval, action, run_immediately)
        self.tasks[name] = task
        return task

    def start(self) -> List[str]:
        for task in self.tasks.values():
            task.start()
        console.log(f"Started scheduled tasks: {', '.join(self.tasks) or 'none'}")
        return list(self.tasks)

    def stop(self):
        for task in self.tasks.values():
            task.stop(timeout=5)
