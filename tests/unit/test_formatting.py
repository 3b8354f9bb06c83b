from decimal import Decimal

import pytest

from coinlist.models import CoinRecord
from coinlist.ui.formatting import format_change, format_coin_row, format_price


@pytest.mark.parametrize(
    ("price", "expected"),
    [
        (Decimal(50000), "$50,000.00"),
        (Decimal("1234.5"), "$1,234.50"),
        (Decimal("1"), "$1.00"),
        (Decimal("0.000123"), "$0.000123"),
        (Decimal(0), "$0.00"),
    ],
)
def test_format_price(price: Decimal, expected: str) -> None:
    """Prices under $1 keep six decimals, others use two with separators."""
    assert format_price(price) == expected


@pytest.mark.parametrize(
    ("change", "expected"),
    [
        (Decimal("1.5"), "+1.50%"),
        (Decimal("-2.346"), "-2.35%"),
        (Decimal(0), "+0.00%"),
        (None, "n/a"),
    ],
)
def test_format_change(change: Decimal | None, expected: str) -> None:
    """Changes carry an explicit sign and two decimals."""
    assert format_change(change) == expected


def test_row_uses_market_cap_rank_when_present() -> None:
    """The row number comes from market_cap_rank when it is known."""
    coin = CoinRecord(
        "bitcoin", "Bitcoin", "btc", "x", Decimal(50000), Decimal("1.5"), 1
    )
    row = format_coin_row(7, coin)

    assert row.startswith("  1. Bitcoin (BTC)")
    assert "$50,000.00" in row
    assert row.endswith("+1.50%")


def test_row_falls_back_to_list_position() -> None:
    """Without a rank the row number is the list position."""
    coin = CoinRecord("tether", "Tether", "usdt", "x", Decimal("0.9998"))
    row = format_coin_row(3, coin)

    assert row.startswith("  3. Tether (USDT)")
    assert "$0.999800" in row
    assert row.endswith("n/a")
