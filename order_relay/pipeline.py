"""Supervisor for the relay listener and persistence sink threads."""

import os
import queue
import signal
import threading
import time
from collections.abc import Callable
from typing import Optional, Protocol

from loguru import logger

from .config import Settings
from .consumer import OrderListener
from .schemas import Order
from .sink import PersistenceSink
from .store import StoreClient

LISTENER = "relay-listener"
SINK = "persistence-sink"


class Stage(Protocol):
    """A blocking loop run on its own thread."""

    def run(self) -> None:
        ...


def _terminate_process() -> None:
    os.kill(os.getpid(), signal.SIGTERM)


class RelayPipeline:
    """Runs the listener and the sink, connected by one unbounded FIFO queue.

    Each stage runs under a supervision loop on a daemon thread. When a stage
    raises, the error is recorded and ``stage_failure_policy`` decides what
    happens: ``halt`` leaves the stage stopped, ``restart`` builds a fresh
    instance after a capped exponential back-off, ``exit`` terminates the process. Errors never travel between the
    two stages; the queue is the only thing they share.
    """

    def __init__(
        self,
        settings: Settings,
        listener_factory: Optional[Callable[[queue.Queue], Stage]] = None,
        sink_factory: Optional[Callable[[queue.Queue], Stage]] = None,
        on_exit: Callable[[], None] = _terminate_process,
    ):
        self.policy = settings.stage_failure_policy
        self.restart_delay = settings.stage_restart_delay_seconds
        self.max_restart_delay = settings.stage_restart_max_delay_seconds
        self.orders: "queue.Queue[Optional[Order]]" = queue.Queue()
        self._factories = {
            LISTENER: listener_factory or (lambda orders: OrderListener(settings, orders)),
            SINK: sink_factory or (lambda orders: PersistenceSink(StoreClient(settings), orders)),
        }
        self._on_exit = on_exit
        self._stopping = threading.Event()
        self._lock = threading.Lock()
        self._stages: dict[str, Stage] = {}
        self._threads: dict[str, threading.Thread] = {}
        self.stage_states: dict[str, str] = {name: "stopped" for name in self._factories}
        self.failures: dict[str, BaseException] = {}

    def start(self) -> None:
        """Start one supervised thread per stage."""
        self._stopping.clear()
        for name in self._factories:
            thread = threading.Thread(target=self._supervise, args=(name,), name=name, daemon=True)
            self._threads[name] = thread
            thread.start()
        logger.info(f"Relay pipeline started | policy={self.policy}")

    def _set_state(self, name: str, state: str) -> None:
        with self._lock:
            self.stage_states[name] = state

    def backoff(self, failures: int) -> float:
        """Seconds to wait before the next restart after ``failures`` failures in a row."""
        return min(self.restart_delay * 2 ** max(failures - 1, 0), self.max_restart_delay)

    def _supervise(self, name: str) -> None:
        failures = 0
        while True:
            self._set_state(name, "starting")
            started = time.monotonic()
            try:
                stage = self._factories[name](self.orders)
                with self._lock:
                    self._stages[name] = stage
                    if self._stopping.is_set() and hasattr(stage, "stop"):
                        stage.stop()
                self._set_state(name, "running")
                stage.run()
            except Exception as e:
                self.failures[name] = e
                self._set_state(name, "failed")
                logger.opt(exception=e).error(f"Stage {name} failed: {e}")
                if self._stopping.is_set():
                    return
                if self.policy == "restart":
                    # A stage that ran for a while starts a fresh back-off
                    if time.monotonic() - started > self.max_restart_delay:
                        failures = 0
                    failures += 1
                    delay = self.backoff(failures)
                    logger.warning(f"Restarting stage {name} in {delay:.2f}s")
                    if self._stopping.wait(delay):
                        return
                    continue
                if self.policy == "exit":
                    logger.critical(f"Stage {name} failed, terminating process")
                    self._on_exit()
                else:
                    logger.warning(f"Stage {name} halted; orders will not be persisted until restart")
                return
            else:
                self._set_state(name, "stopped")
                logger.info(f"Stage {name} stopped")
                return

    def stop(self, timeout: float = 5.0) -> None:
        """Stop both stages and wait for their threads.

        The listener is joined before the sink is told to stop, so an order
        relayed by a poll that was already in flight is still persisted.
        """
        self._stopping.set()
        with self._lock:
            listener = self._stages.get(LISTENER)
        if listener is not None and hasattr(listener, "stop"):
            listener.stop()
        self._join(LISTENER, timeout)
        self.orders.put(None)
        self._join(SINK, timeout)
        logger.info("Relay pipeline stopped")

    def _join(self, name: str, timeout: float) -> None:
        thread = self._threads.get(name)
        if thread is None:
            return
        thread.join(timeout)
        if thread.is_alive():
            logger.warning(f"Stage {name} did not stop within {timeout}s")

    def is_healthy(self) -> bool:
        with self._lock:
            return all(state != "failed" for state in self.stage_states.values())
