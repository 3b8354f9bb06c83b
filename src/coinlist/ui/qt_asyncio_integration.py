import asyncio
import sys
from collections.abc import Coroutine
from typing import Any

import qasync
from loguru import logger
from PySide6.QtWidgets import QApplication


def run_with_asyncio(main_coro: Coroutine[Any, Any, int]) -> int:
    """Runs the application on a single event loop shared by Qt and asyncio.

    The QApplication is created first, then a `qasync.QEventLoop` is installed
    as the asyncio loop. From then on Qt events, asyncio tasks and callbacks
    scheduled with `call_soon_threadsafe` all run on the Qt main thread, which
    is the thread the view model requires.

    The application stays up until `QApplication.quit()` is called; windows
    are expected to shut their services down first and quit afterwards.

    Args:
        main_coro: Coroutine that builds the UI and starts the first fetch.

    Returns:
        The exit code of the application.
    """
    app = QApplication.instance()
    if app is None:
        app = QApplication(sys.argv)
    app.setQuitOnLastWindowClosed(False)

    loop = qasync.QEventLoop(app)
    asyncio.set_event_loop(loop)
    logger.info("qasync event loop installed as the current asyncio event loop.")

    quit_requested = asyncio.Event()
    app.aboutToQuit.connect(quit_requested.set)

    exit_code = 0
    with loop:
        main_task = loop.create_task(main_coro)

        def _quit_on_failure(task: "asyncio.Task[int]") -> None:
            if not task.cancelled() and task.exception() is not None:
                QApplication.quit()

        main_task.add_done_callback(_quit_on_failure)

        logger.info("Starting the Qt application event loop.")
        loop.run_until_complete(quit_requested.wait())
        logger.info("Qt application event loop has finished.")

        if main_task.done() and not main_task.cancelled():
            exception = main_task.exception()
            if exception:
                logger.error(
                    f"The main application task exited with an exception: {exception}"
                )
                raise exception
            exit_code = main_task.result()

        pending = [t for t in asyncio.all_tasks(loop) if not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))

    asyncio.set_event_loop(None)
    logger.info("Asyncio event loop closed.")
    return exit_code
