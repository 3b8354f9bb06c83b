"""Text formatting for coin list rows. Kept free of Qt so it can be unit tested."""

from decimal import Decimal

from coinlist.models import CoinRecord

# Below this price, show enough decimals for sub-cent tokens.
SMALL_PRICE_THRESHOLD = Decimal(1)


def format_price(price: Decimal) -> str:
    """Formats a USD price, e.g. `$50,000.00` or `$0.000123`."""
    if abs(price) < SMALL_PRICE_THRESHOLD and price != 0:
        return f"${price:,.6f}"
    return f"${price:,.2f}"


def format_change(change: Decimal | None) -> str:
    """Formats a 24h change percentage with an explicit sign."""
    if change is None:
        return "n/a"
    return f"{change:+.2f}%"


def format_coin_row(position: int, coin: CoinRecord) -> str:
    """Builds the text of one list row.

    Args:
        position: 1-based position in the list, used when the record has no rank.
        coin: The record to render.
    """
    rank = coin.market_cap_rank if coin.market_cap_rank is not None else position
    label = f"{rank:>3}. {coin.name} ({coin.symbol.upper()})"
    return (
        f"{label:<36} {format_price(coin.current_price):>16} "
        f"{format_change(coin.price_change_percentage_24h):>9}"
    )
