import asyncio
import sys
from pathlib import Path

from loguru import logger
from PySide6.QtCore import Qt, Slot
from PySide6.QtGui import QAction, QCloseEvent, QKeySequence
from PySide6.QtWidgets import QApplication, QMainWindow, QMessageBox, QStatusBar

from coinlist.config import Settings
from coinlist.errors import FetchError
from coinlist.fetch_service import CoinFetchService
from coinlist.logging_config import setup_logging
from coinlist.models import FetchPhase, PresentationState
from coinlist.state import CoinListViewModel
from coinlist.ui.qt_asyncio_integration import run_with_asyncio
from coinlist.ui.views.coin_list_view import CoinListView

PHASE_MESSAGES = {
    FetchPhase.IDLE: "Ready.",
    FetchPhase.FETCHING: "Loading market data...",
    FetchPhase.SUCCEEDED: "Live prices loaded.",
    FetchPhase.FAILED: "Could not load market data.",
}


class MainWindow(QMainWindow):
    """The main application window: a coin list, a refresh action, an alert."""

    def __init__(self, view_model: CoinListViewModel, service: CoinFetchService) -> None:
        super().__init__()
        self._view_model = view_model
        self._service = service
        self._fetch_handle: asyncio.Future[None] | None = None
        # The alert is view-local: dismissing it leaves the model's error as is.
        self._alerted_error: FetchError | None = None
        self._closed = asyncio.Event()

        self._setup_ui()
        self._subscription_id = view_model.subscribe(self._render)
        self._render(view_model.state)

    def _setup_ui(self) -> None:
        self.setWindowTitle("Live Prices")
        self.resize(720, 640)

        self._coin_list = CoinListView(self)
        self.setCentralWidget(self._coin_list)
        self.setStatusBar(QStatusBar(self))

        refresh_action = QAction("&Refresh", self)
        refresh_action.setShortcut(QKeySequence.StandardKey.Refresh)
        refresh_action.triggered.connect(self._on_refresh)

        toolbar = self.addToolBar("Main")
        toolbar.setMovable(False)
        toolbar.addAction(refresh_action)

        file_menu = self.menuBar().addMenu("&File")
        file_menu.addAction(refresh_action)
        file_menu.addSeparator()
        exit_action = QAction("E&xit", self)
        exit_action.triggered.connect(self.close)
        file_menu.addAction(exit_action)

    def start(self) -> None:
        """Starts the initial load."""
        self._fetch_handle = self._view_model.initialize()

    async def wait_closed(self) -> None:
        """Returns once the window has closed and its services are shut down."""
        await self._closed.wait()

    @Slot()
    def _on_refresh(self) -> None:
        self._fetch_handle = self._view_model.refresh()

    def _render(self, state: PresentationState) -> None:
        """Redraws from a state snapshot. Called on the Qt main thread."""
        self._coin_list.set_coins(state.coins)
        self._coin_list.set_placeholder_text(PHASE_MESSAGES[state.phase])
        self.statusBar().showMessage(
            f"{PHASE_MESSAGES[state.phase]} {len(state.coins)} coins."
        )

        if state.error is not None and state.error is not self._alerted_error:
            self._alerted_error = state.error
            self._show_error(state.error)

    def _show_error(self, error: FetchError) -> None:
        # open() rather than exec(): no nested event loop inside a state callback.
        box = QMessageBox(
            QMessageBox.Icon.Warning,
            "Error",
            str(error),
            QMessageBox.StandardButton.Ok,
            self,
        )
        box.setAttribute(Qt.WidgetAttribute.WA_DeleteOnClose)
        box.open()

    async def _shutdown(self) -> None:
        logger.info("Initiating graceful shutdown...")
        self._view_model.unsubscribe(self._subscription_id)
        if self._fetch_handle is not None and not self._fetch_handle.done():
            self._fetch_handle.cancel()
        await self._service.aclose()
        self._closed.set()
        logger.success("Shutdown complete.")

    def closeEvent(self, event: QCloseEvent) -> None:  # noqa: N802
        """Overrides QMainWindow.closeEvent to trigger async shutdown."""
        logger.info("Close event triggered.")
        event.accept()
        asyncio.get_running_loop().create_task(self._shutdown()).add_done_callback(
            lambda _: QApplication.quit()
        )


async def main_async() -> int:
    """Builds the services and the window, then starts the first fetch."""
    settings = Settings.get_instance()
    log_dir = (
        Path(settings.general.log_directory).expanduser()
        if settings.general.log_directory
        else None
    )
    setup_logging(
        console_level=settings.general.log_level_console,
        file_level=settings.general.log_level_file,
        log_dir=log_dir,
    )

    service = CoinFetchService()
    view_model = CoinListViewModel(
        service,
        request_style=settings.fetch.request_style,  # type: ignore[arg-type]
        clear_error_on_success=settings.fetch.clear_error_on_success,
        supersede_in_flight=settings.fetch.supersede_in_flight,
    )
    logger.info(f"Using the '{view_model.request_style}' request style.")

    main_window = MainWindow(view_model, service)
    main_window.show()
    main_window.start()
    await main_window.wait_closed()
    return 0


def main() -> None:
    """The synchronous entry point for the application."""
    try:
        exit_code = run_with_asyncio(main_async())
        sys.exit(exit_code)
    except Exception:
        logger.exception("An unhandled exception reached the top-level entry point.")
        sys.exit(1)


if __name__ == "__main__":
    main()
