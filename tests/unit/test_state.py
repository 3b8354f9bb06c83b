import asyncio
from decimal import Decimal

import pytest
from pytest_mock import MockerFixture

from coinlist.errors import FetchError, ServerError, UnknownFetchError
from coinlist.models import CoinRecord, FetchPhase, PresentationState
from coinlist.state import CoinListViewModel

BTC = CoinRecord("bitcoin", "Bitcoin", "btc", "x", Decimal(50000), Decimal("1.5"))
ETH = CoinRecord("ethereum", "Ethereum", "eth", "y", Decimal(3000), Decimal("-2.0"))


class StubFetchService:
    """Stands in for CoinFetchService; each call waits until the test resolves it."""

    def __init__(self) -> None:
        self.pending: list[asyncio.Future[list[CoinRecord]]] = []

    async def fetch_coins(self) -> list[CoinRecord]:
        future: asyncio.Future[list[CoinRecord]] = (
            asyncio.get_running_loop().create_future()
        )
        self.pending.append(future)
        return await future

    @property
    def calls(self) -> int:
        return len(self.pending)


async def settle() -> None:
    """Lets freshly created tasks run up to their first suspension point."""
    for _ in range(5):
        await asyncio.sleep(0)


def make_view_model(**kwargs: object) -> tuple[CoinListViewModel, StubFetchService]:
    """Builds a view model over a fresh StubFetchService."""
    service = StubFetchService()
    return CoinListViewModel(service, **kwargs), service  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_initial_state_is_empty_and_idle() -> None:
    """A new view model has no coins, no error and has not fetched."""
    view_model, service = make_view_model()

    assert view_model.state == PresentationState()
    assert view_model.coins == ()
    assert view_model.error is None
    assert view_model.phase is FetchPhase.IDLE
    assert service.calls == 0


@pytest.mark.asyncio
async def test_initialize_fetches_once_and_publishes_the_result() -> None:
    """initialize() sends one fetch and publishes FETCHING then SUCCEEDED."""
    view_model, service = make_view_model()
    seen: list[PresentationState] = []
    view_model.subscribe(seen.append)

    handle = view_model.initialize()
    await settle()
    assert service.calls == 1
    assert view_model.phase is FetchPhase.FETCHING

    service.pending[0].set_result([BTC, ETH])
    await handle

    assert view_model.coins == (BTC, ETH)
    assert view_model.error is None
    assert [s.phase for s in seen] == [FetchPhase.FETCHING, FetchPhase.SUCCEEDED]
    assert seen[-1].coins == (BTC, ETH)


@pytest.mark.asyncio
async def test_refresh_empties_coins_before_the_fetch_resolves() -> None:
    """refresh() clears the list before it returns, ahead of any network result."""
    view_model, service = make_view_model()
    handle = view_model.initialize()
    await settle()
    service.pending[0].set_result([BTC])
    await handle
    assert view_model.coins == (BTC,)

    seen: list[PresentationState] = []
    view_model.subscribe(seen.append)
    handle = view_model.refresh()

    # Synchronously visible, before any await.
    assert view_model.coins == ()
    assert seen[0].coins == ()
    assert seen[0].phase is FetchPhase.FETCHING

    await settle()
    service.pending[1].set_result([ETH])
    await handle
    assert view_model.coins == (ETH,)


@pytest.mark.asyncio
async def test_failure_sets_error_and_keeps_previous_coins() -> None:
    """A failed fetch records the error and leaves the last good list in place."""
    view_model, service = make_view_model()
    first = view_model.initialize()
    await settle()
    service.pending[0].set_result([BTC])
    await first

    second = view_model.initialize()
    await settle()
    service.pending[1].set_exception(ServerError(500))
    await second

    assert view_model.coins == (BTC,)
    assert isinstance(view_model.error, ServerError)
    assert view_model.phase is FetchPhase.FAILED


@pytest.mark.asyncio
async def test_refresh_clears_a_previous_error() -> None:
    """Starting a new attempt clears the error of the previous one."""
    view_model, service = make_view_model()
    handle = view_model.initialize()
    await settle()
    service.pending[0].set_exception(ServerError(503))
    await handle
    assert view_model.error is not None

    view_model.refresh()
    assert view_model.error is None


@pytest.mark.asyncio
@pytest.mark.parametrize("clear_error_on_success", [False, True])
async def test_success_after_failure_respects_clear_error_option(
    clear_error_on_success: bool,
) -> None:
    """A stale error survives a success unless clear_error_on_success is set."""
    view_model, service = make_view_model(clear_error_on_success=clear_error_on_success)
    failing = view_model.initialize()
    await settle()
    service.pending[0].set_exception(ServerError(500))
    await failing

    succeeding = view_model.initialize()
    await settle()
    service.pending[1].set_result([BTC])
    await succeeding

    assert view_model.coins == (BTC,)
    if clear_error_on_success:
        assert view_model.error is None
    else:
        assert isinstance(view_model.error, ServerError)


@pytest.mark.asyncio
async def test_overlapping_refreshes_last_completion_wins_by_default() -> None:
    """Without superseding, whichever fetch completes last sets the list."""
    view_model, service = make_view_model()
    first = view_model.refresh()
    await settle()
    second = view_model.refresh()
    await settle()
    assert service.calls == 2

    service.pending[1].set_result([ETH])
    await second
    service.pending[0].set_result([BTC])
    await first

    # The older request finished last and overwrote the newer one.
    assert view_model.coins == (BTC,)


@pytest.mark.asyncio
async def test_supersede_in_flight_cancels_and_discards_older_fetches() -> None:
    """With superseding, the older fetch is cancelled and only the newest applies."""
    view_model, service = make_view_model(supersede_in_flight=True)
    first = view_model.refresh()
    await settle()
    second = view_model.refresh()
    await settle()

    with pytest.raises(asyncio.CancelledError):
        await first
    assert service.pending[0].cancelled()

    service.pending[1].set_result([ETH])
    await second

    assert view_model.coins == (ETH,)
    # A superseded attempt is not a failure.
    assert view_model.error is None


@pytest.mark.asyncio
async def test_cancelling_the_current_fetch_surfaces_unknown_error() -> None:
    """Cancelling the current fetch leaves an UnknownFetchError behind."""
    view_model, service = make_view_model()
    handle = view_model.initialize()
    await settle()

    handle.cancel()
    with pytest.raises(asyncio.CancelledError):
        await handle

    assert isinstance(view_model.error, UnknownFetchError)
    assert isinstance(view_model.error.cause, asyncio.CancelledError)


@pytest.mark.asyncio
async def test_unexpected_exception_is_wrapped_as_unknown() -> None:
    """Non-fetch exceptions from the service are reported as UnknownFetchError."""
    view_model, service = make_view_model()
    handle = view_model.initialize()
    await settle()
    service.pending[0].set_exception(KeyError("boom"))
    await handle

    assert isinstance(view_model.error, UnknownFetchError)
    assert isinstance(view_model.error.cause, KeyError)


@pytest.mark.asyncio
async def test_every_error_variant_is_surfaced() -> None:
    """Each error instance reaches the state unchanged."""
    view_model, service = make_view_model()
    for error in (ServerError(500), UnknownFetchError(OSError("down"))):
        handle = view_model.refresh()
        await settle()
        service.pending[-1].set_exception(error)
        await handle
        assert view_model.error is error


@pytest.mark.asyncio
async def test_unsubscribed_observers_are_not_notified(mocker: MockerFixture) -> None:
    """An observer stops receiving snapshots once unsubscribed."""
    view_model, _ = make_view_model()
    observer = mocker.Mock()
    sub_id = view_model.subscribe(observer)
    view_model.unsubscribe(sub_id)

    view_model.refresh()

    observer.assert_not_called()


@pytest.mark.asyncio
async def test_failing_observer_does_not_block_others(mocker: MockerFixture) -> None:
    """An observer that raises does not stop the next one being notified."""
    view_model, _ = make_view_model()
    broken = mocker.Mock(side_effect=RuntimeError("render failed"))
    healthy = mocker.Mock()
    view_model.subscribe(broken)
    view_model.subscribe(healthy)

    view_model.refresh()

    healthy.assert_called_once()
    assert healthy.call_args.args[0].phase is FetchPhase.FETCHING


@pytest.mark.asyncio
async def test_use_from_another_thread_is_rejected() -> None:
    """Calls from a thread other than the loop's raise RuntimeError."""
    view_model, service = make_view_model()

    with pytest.raises(RuntimeError, match="thread"):
        await asyncio.to_thread(view_model.refresh)
    with pytest.raises(RuntimeError, match="thread"):
        await asyncio.to_thread(view_model.subscribe, print)

    assert service.calls == 0
    assert view_model.phase is FetchPhase.IDLE


@pytest.mark.asyncio
async def test_unknown_request_style_is_rejected() -> None:
    """Only the async and callback request styles are accepted."""
    with pytest.raises(ValueError, match="request style"):
        make_view_model(request_style="carrier-pigeon")


def test_construction_requires_an_event_loop() -> None:
    """Without a running or explicit loop the view model cannot be built."""
    with pytest.raises(RuntimeError):
        CoinListViewModel(StubFetchService())  # type: ignore[arg-type]


def test_errors_share_a_base_class() -> None:
    """Every fetch error can be caught as FetchError."""
    assert issubclass(ServerError, FetchError)
    assert issubclass(UnknownFetchError, FetchError)
