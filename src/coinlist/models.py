import json
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any

from coinlist.errors import FetchError, InvalidDataError


@dataclass(frozen=True, slots=True)
class CoinRecord:
    """One decoded entry of the CoinGecko `/coins/markets` response."""

    identifier: str
    name: str
    symbol: str
    image: str
    current_price: Decimal
    price_change_percentage_24h: Decimal | None = None
    market_cap_rank: int | None = None

    @classmethod
    def from_json(cls, obj: Any) -> "CoinRecord":
        """Builds a record from one element of the JSON array.

        Args:
            obj: A decoded JSON value. Floats are expected to have been parsed
                as `Decimal` already (see `decode_coins`).

        Raises:
            InvalidDataError: If a required field is missing or has the wrong type.
        """
        if not isinstance(obj, Mapping):
            err_msg = f"Expected a JSON object, got {type(obj).__name__}."
            raise InvalidDataError(err_msg)

        rank = obj.get("market_cap_rank")
        if rank is not None and (isinstance(rank, bool) or not isinstance(rank, int)):
            err_msg = f"Field 'market_cap_rank' must be an integer, got {rank!r}."
            raise InvalidDataError(err_msg)

        return cls(
            identifier=_require_str(obj, "id"),
            name=_require_str(obj, "name"),
            symbol=_require_str(obj, "symbol"),
            image=_require_str(obj, "image"),
            current_price=_require_number(obj, "current_price"),
            price_change_percentage_24h=_optional_number(
                obj, "price_change_percentage_24h"
            ),
            market_cap_rank=rank,
        )


def _require_str(obj: Mapping[str, Any], key: str) -> str:
    if key not in obj:
        err_msg = f"Missing required field '{key}'."
        raise InvalidDataError(err_msg)
    value = obj[key]
    if not isinstance(value, str):
        err_msg = f"Field '{key}' must be a string, got {type(value).__name__}."
        raise InvalidDataError(err_msg)
    return value


def _require_number(obj: Mapping[str, Any], key: str) -> Decimal:
    if key not in obj:
        err_msg = f"Missing required field '{key}'."
        raise InvalidDataError(err_msg)
    value = _optional_number(obj, key)
    if value is None:
        err_msg = f"Field '{key}' must not be null."
        raise InvalidDataError(err_msg)
    return value


def _optional_number(obj: Mapping[str, Any], key: str) -> Decimal | None:
    value = obj.get(key)
    if value is None:
        return None
    # bool is a subclass of int; JSON true/false is not a price.
    if isinstance(value, bool) or not isinstance(value, int | Decimal):
        err_msg = f"Field '{key}' must be a number, got {type(value).__name__}."
        raise InvalidDataError(err_msg)
    return Decimal(value)


def decode_coins(payload: bytes | str) -> list[CoinRecord]:
    """Decodes a `/coins/markets` response body into coin records.

    Decoding is all-or-nothing: one bad element fails the whole body.

    Args:
        payload: The raw response body.

    Returns:
        The records in the same order as the JSON array.

    Raises:
        InvalidDataError: If the body is not a JSON array of valid coin objects.
    """
    try:
        data = json.loads(payload, parse_float=Decimal)
    except (ValueError, TypeError) as e:
        err_msg = f"Response body is not valid JSON: {e}"
        raise InvalidDataError(err_msg) from e

    if not isinstance(data, list):
        err_msg = f"Expected a JSON array, got {type(data).__name__}."
        raise InvalidDataError(err_msg)

    records = []
    for index, element in enumerate(data):
        try:
            records.append(CoinRecord.from_json(element))
        except InvalidDataError as e:
            err_msg = f"Element {index}: {e}"
            raise InvalidDataError(err_msg) from e
    return records


class FetchPhase(Enum):
    """Lifecycle of the most recent fetch attempt."""

    IDLE = "idle"
    FETCHING = "fetching"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class FetchResult:
    """The outcome of one fetch, as delivered to callback-style callers.

    Exactly one of `coins` and `error` is set.
    """

    coins: tuple[CoinRecord, ...] | None = None
    error: FetchError | None = None

    def __post_init__(self) -> None:
        if (self.coins is None) == (self.error is None):
            err_msg = "FetchResult needs exactly one of 'coins' or 'error'."
            raise ValueError(err_msg)

    @classmethod
    def success(cls, coins: list[CoinRecord] | tuple[CoinRecord, ...]) -> "FetchResult":
        return cls(coins=tuple(coins))

    @classmethod
    def failure(cls, error: FetchError) -> "FetchResult":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> tuple[CoinRecord, ...]:
        """Returns the coins or raises the stored error."""
        if self.error is not None:
            raise self.error
        assert self.coins is not None
        return self.coins


@dataclass(frozen=True)
class PresentationState:
    """An immutable snapshot of everything the list renderer draws from."""

    coins: tuple[CoinRecord, ...] = ()
    error: FetchError | None = None
    phase: FetchPhase = FetchPhase.IDLE
