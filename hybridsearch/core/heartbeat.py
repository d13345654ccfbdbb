"""
Periodic maintenance loop.
Flushes the in-memory vector index to disk on a fixed interval.
"""

import time
import threading
from typing import Callable, Dict, Optional

from util.logging import logger

from .config import is_flush_enabled, get_flush_interval

PERSIST_TASK = "persist_index"

tasks: Dict[str, Dict] = {}  # task_name -> {func, interval, last_run}
running = False
shutdown_event = None
_thread: Optional[threading.Thread] = None


def register_task(name: str, interval_sec: int, func: Callable):
    """
    Register a task to be executed periodically.

    Args:
        name: Unique task identifier
        interval_sec: How often to run this task in seconds
        func: Function to call (should be fast and not block)
    """
    if not callable(func):
        raise ValueError(f"Task function must be callable: {func}")

    if interval_sec < 1:
        raise ValueError(f"Interval must be >= 1 second: {interval_sec}")

    tasks[name] = {
        "func": func,
        "interval": interval_sec,
        "last_run": None
    }

    logger.info(f"Registered heartbeat task '{name}' (every {interval_sec}s)")


def register_persist_task(store, interval_sec: Optional[int] = None):
    """Register the periodic index flush for ``store``."""
    register_task(PERSIST_TASK, interval_sec or get_flush_interval(), store.persist)


def unregister_task(name: str):
    """Remove a task from the registry."""
    if name in tasks:
        del tasks[name]
        logger.info(f"Unregistered heartbeat task '{name}'")


def list_tasks():
    """Return list of registered task names."""
    return list(tasks.keys())


def start():
    """
    Run the heartbeat loop in the calling thread until stop() is called.

    Tasks are checked every 100ms and run when their interval has elapsed.
    A failing task is logged and the loop carries on.
    """
    if not is_flush_enabled():
        logger.info("Heartbeat disabled (FLUSH_ENABLED=false). Skipping start.")
        return

    _claim()
    _run_loop()


def _claim():
    global running, shutdown_event

    if running:
        raise RuntimeError("Heartbeat already running")

    running = True
    shutdown_event = threading.Event()


def _run_loop():
    global running

    logger.log_operation("heartbeat.start", "success", {"tasks": list(tasks.keys())})

    try:
        while running and not shutdown_event.is_set():
            for name, task_info in list(tasks.items()):
                if should_run_task(name, task_info):
                    try:
                        run_task(name, task_info)
                    except Exception as e:
                        # Error isolation - log error but continue loop
                        logger.error(f"Heartbeat task '{name}' failed: {e}")

            shutdown_event.wait(0.1)
    finally:
        running = False
        logger.log_operation("heartbeat.stop", "success")


def start_background() -> Optional[threading.Thread]:
    """Run the heartbeat loop on a daemon thread. Returns None when disabled."""
    global _thread

    if not is_flush_enabled():
        logger.info("Heartbeat disabled (FLUSH_ENABLED=false). Skipping start.")
        return None

    # Claimed before the thread starts so an immediate stop() still reaches it
    _claim()
    _thread = threading.Thread(target=_run_loop, name="heartbeat", daemon=True)
    _thread.start()
    return _thread


def stop(timeout: float = 2.0):
    """Stop the heartbeat loop gracefully."""
    global running, _thread

    if not running:
        logger.debug("Heartbeat not running")
        return

    running = False

    if shutdown_event:
        shutdown_event.set()

    if _thread is not None and _thread is not threading.current_thread():
        _thread.join(timeout)
        _thread = None


def should_run_task(name: str, task_info: Dict) -> bool:
    """Check if a task should run this cycle."""
    if task_info["last_run"] is None:
        return True  # Run immediately if never run

    elapsed = time.monotonic() - task_info["last_run"]
    return elapsed >= task_info["interval"]


def run_task(name: str, task_info: Dict):
    """Execute a task and record timing."""
    start_time = time.monotonic()

    try:
        task_info["func"]()
    except Exception as e:
        end_time = time.monotonic()
        # Failed tasks are retried on the next interval, not the next tick
        task_info["last_run"] = end_time
        logger.log_heartbeat_task(name, start_time, end_time, "failed", {"error": str(e)})
        raise RuntimeError(f"Task '{name}' failed after {end_time - start_time:.2f}s: {e}") from e

    end_time = time.monotonic()
    task_info["last_run"] = end_time
    logger.log_heartbeat_task(name, start_time, end_time, "success")


def reset_task(name: str):
    """Reset a task's last_run time to force immediate execution."""
    if name in tasks:
        tasks[name]["last_run"] = None
        logger.info(f"Reset heartbeat task '{name}' (will run immediately)")


def get_status():
    """Return current heartbeat status for monitoring."""
    if not is_flush_enabled():
        return {"status": "disabled", "reason": "FLUSH_ENABLED=false"}

    return {
        "status": "running" if running else "stopped",
        "tasks": {
            name: {
                "interval_sec": info["interval"],
                "last_run": info["last_run"],
                "next_run": info["last_run"] + info["interval"] if info["last_run"] else None
            }
            for name, info in tasks.items()
        },
    }
