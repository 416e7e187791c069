"""Utilities for handling KeyboardInterrupt during external builds.

A Ctrl-C while make is running must not leave compiler processes behind, so
the command runner tears down the child process tree before the interrupt
continues to propagate.
"""

import _thread
import logging
import threading
from typing import List

import psutil

logger = logging.getLogger(__name__)


def handle_keyboard_interrupt_properly(ke: KeyboardInterrupt) -> None:
    """Re-raise a KeyboardInterrupt, forwarding it to the main thread if needed.

    Usage:
        try:
            runner.run(step)
        except KeyboardInterrupt as ke:
            handle_keyboard_interrupt_properly(ke)

    Args:
        ke: The KeyboardInterrupt exception to handle

    Raises:
        KeyboardInterrupt: Always re-raises the exception after handling
    """
    if threading.current_thread() is not threading.main_thread():
        _thread.interrupt_main()
    raise ke


def terminate_process_tree(pid: int, timeout: float = 3.0) -> int:
    """Terminate a process and all of its descendants.

    Children are terminated before parents. Processes still alive after
    ``timeout`` seconds are killed.

    Args:
        pid: Root process id
        timeout: Seconds to wait for graceful termination

    Returns:
        Number of processes that were signalled
    """
    try:
        root = psutil.Process(pid)
        children = root.children(recursive=True)
    except psutil.NoSuchProcess:
        return 0

    processes: List[psutil.Process] = list(reversed(children)) + [root]
    signalled = 0
    for proc in processes:
        try:
            proc.terminate()
            signalled += 1
            logger.debug(f"Terminated process {proc.pid}")
        except psutil.NoSuchProcess:
            pass  # Already dead

    _gone, alive = psutil.wait_procs(processes, timeout=timeout)

    for proc in alive:
        try:
            proc.kill()
            logger.warning(f"Force killed stubborn process {proc.pid}")
        except psutil.NoSuchProcess:
            pass

    return signalled
