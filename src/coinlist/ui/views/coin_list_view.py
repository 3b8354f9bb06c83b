from collections.abc import Sequence

from PySide6.QtCore import Qt
from PySide6.QtGui import QBrush, QColor, QFontDatabase
from PySide6.QtWidgets import QLabel, QListWidget, QListWidgetItem, QVBoxLayout, QWidget

from coinlist.models import CoinRecord
from coinlist.ui.formatting import format_coin_row

POSITIVE_COLOR = QColor("#16a34a")
NEGATIVE_COLOR = QColor("#dc2626")


class CoinListView(QWidget):
    """A scrollable list with one row per coin.

    The view only draws what it is given. It owns no state beyond the rows
    currently shown and never talks to the network.
    """

    def __init__(self, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self._setup_ui()

    def _setup_ui(self) -> None:
        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)

        self._placeholder = QLabel("Loading market data...")
        self._placeholder.setAlignment(Qt.AlignmentFlag.AlignCenter)

        self._list_widget = QListWidget()
        self._list_widget.setSortingEnabled(False)
        self._list_widget.setAlternatingRowColors(True)
        self._list_widget.setFont(
            QFontDatabase.systemFont(QFontDatabase.SystemFont.FixedFont)
        )

        layout.addWidget(self._placeholder)
        layout.addWidget(self._list_widget, stretch=1)
        self._list_widget.hide()

    def set_coins(self, coins: Sequence[CoinRecord]) -> None:
        """Replaces every row with the given coins, keeping their order."""
        self._list_widget.clear()
        for position, coin in enumerate(coins, start=1):
            item = QListWidgetItem(format_coin_row(position, coin))
            item.setToolTip(f"{coin.identifier}\n{coin.image}")
            item.setData(Qt.ItemDataRole.UserRole, coin.identifier)
            change = coin.price_change_percentage_24h
            if change is not None and change != 0:
                color = POSITIVE_COLOR if change > 0 else NEGATIVE_COLOR
                item.setForeground(QBrush(color))
            self._list_widget.addItem(item)

        has_rows = bool(coins)
        self._list_widget.setVisible(has_rows)
        self._placeholder.setVisible(not has_rows)

    def set_placeholder_text(self, text: str) -> None:
        self._placeholder.setText(text)
