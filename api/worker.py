import logging
import os
import threading

from dependencies import get_delivery_queue, get_storage_queue

logger = logging.getLogger(__name__)

PUMP_INTERVAL_S = float(os.environ.get("PUMP_INTERVAL_S", "30"))

_worker_thread: threading.Thread | None = None
_stop_event = threading.Event()
_wake_event = threading.Event()


def fail_interrupted_jobs():
    """Jobs a previous run left mid-transfer become failed, never silently resumed.

    Called from the main thread during startup, before the worker thread starts.
    """
    stuck = get_delivery_queue().fail_interrupted() + get_storage_queue().fail_interrupted()
    if not stuck:
        logger.info("No interrupted transfers found on startup")


def wake():
    """Ask the worker to pump now instead of waiting for the next interval."""
    _wake_event.set()


def _worker_loop():
    """Background worker: pump both queues on wake-up or every PUMP_INTERVAL_S."""
    logger.info("Worker thread started")
    while not _stop_event.is_set():
        _wake_event.clear()
        for queue in (get_delivery_queue(), get_storage_queue()):
            try:
                queue.pump()
            except Exception as e:
                logger.error(f"Pump of {queue.kind} queue crashed: {e}", exc_info=True)
        _wake_event.wait(timeout=PUMP_INTERVAL_S)

    logger.info("Worker thread stopped")


def start_worker():
    global _worker_thread
    _stop_event.clear()
    _worker_thread = threading.Thread(target=_worker_loop, daemon=True, name="delivery-worker")
    _worker_thread.start()


def stop_worker():
    _stop_event.set()
    _wake_event.set()
    if _worker_thread:
        _worker_thread.join(timeout=30)
