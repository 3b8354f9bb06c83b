import asyncio
import itertools
import threading
from collections.abc import Callable
from dataclasses import replace
from typing import Literal

from loguru import logger

from coinlist.errors import FetchError, UnknownFetchError
from coinlist.fetch_service import CoinFetchService
from coinlist.models import CoinRecord, FetchPhase, FetchResult, PresentationState

RequestStyle = Literal["async", "callback"]
StateObserver = Callable[[PresentationState], None]


class CoinListViewModel:
    """Owns the presentation state of the coin list and its fetch lifecycle.

    All reads that matter and every write happen on one thread: the thread
    that runs the asyncio event loop the view model was created on (the Qt
    main thread in the application). Public methods raise `RuntimeError` when
    called from anywhere else. Network work runs off that thread, and its
    result is marshalled back before the state is touched.

    Observers subscribe with a plain callable and receive a new immutable
    `PresentationState` after every change, synchronously and in order.

    Two behaviours are left open by the reference app and are opt-in here:

    - `clear_error_on_success`: a successful fetch also clears a stale error.
    - `supersede_in_flight`: `refresh()` cancels the previous fetch, and
      results from superseded attempts are discarded. Without it, overlapping
      fetches all apply their result and the last completion wins.
    """

    def __init__(
        self,
        service: CoinFetchService,
        *,
        request_style: RequestStyle = "async",
        clear_error_on_success: bool = False,
        supersede_in_flight: bool = False,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        if request_style not in ("async", "callback"):
            err_msg = f"Unknown request style: {request_style!r}"
            raise ValueError(err_msg)

        self._service = service
        self.request_style = request_style
        self.clear_error_on_success = clear_error_on_success
        self.supersede_in_flight = supersede_in_flight

        self._loop = loop or asyncio.get_running_loop()
        self._owner_thread = threading.get_ident()
        self._state = PresentationState()
        self._observers: dict[int, StateObserver] = {}
        self._id_generator = itertools.count(1)
        self._generation = 0
        self._current: asyncio.Future[None] | None = None

    # --- Read access ---

    @property
    def state(self) -> PresentationState:
        return self._state

    @property
    def coins(self) -> tuple[CoinRecord, ...]:
        return self._state.coins

    @property
    def error(self) -> FetchError | None:
        return self._state.error

    @property
    def phase(self) -> FetchPhase:
        return self._state.phase

    # --- Subscriptions ---

    def subscribe(self, observer: StateObserver) -> int:
        """Registers an observer and returns an ID for `unsubscribe`."""
        self._check_context()
        sub_id = next(self._id_generator)
        self._observers[sub_id] = observer
        logger.debug(f"State observer subscribed (ID: {sub_id}).")
        return sub_id

    def unsubscribe(self, sub_id: int) -> None:
        self._check_context()
        if self._observers.pop(sub_id, None) is None:
            logger.warning(f"Attempted to unsubscribe with invalid ID: {sub_id}")
        else:
            logger.debug(f"State observer unsubscribed (ID: {sub_id}).")

    # --- Lifecycle ---

    def initialize(self) -> "asyncio.Future[None]":
        """Starts the first fetch. The state starts empty, so nothing is cleared.

        Returns:
            A handle that completes once the state reflects the result.
        """
        self._check_context()
        logger.info("Loading market data...")
        return self._start_fetch()

    def refresh(self) -> "asyncio.Future[None]":
        """Empties the list right away, then starts a new fetch.

        Observers see the empty list before this method returns. Any stale
        error is cleared too, so at most one error is current per attempt.

        Returns:
            A handle that completes once the state reflects the result.
        """
        self._check_context()
        logger.info("Refreshing market data...")
        if self.supersede_in_flight and self._current and not self._current.done():
            logger.debug("Cancelling the in-flight fetch.")
            self._current.cancel()
        self._apply(coins=(), error=None, phase=FetchPhase.FETCHING)
        return self._start_fetch()

    def _start_fetch(self) -> "asyncio.Future[None]":
        self._generation += 1
        generation = self._generation
        if self._state.phase is not FetchPhase.FETCHING:
            self._apply(phase=FetchPhase.FETCHING)

        if self.request_style == "callback":
            worker = self._service.fetch_coins_with_callback(
                lambda result: self._handle_result(generation, result),
                loop=self._loop,
            )
            handle = asyncio.wrap_future(worker, loop=self._loop)
        else:
            handle = self._loop.create_task(self._run_fetch(generation))

        self._current = handle
        return handle

    async def _run_fetch(self, generation: int) -> None:
        try:
            coins = await self._service.fetch_coins()
        except FetchError as e:
            self._handle_result(generation, FetchResult.failure(e))
        except asyncio.CancelledError as e:
            if generation == self._generation:
                self._handle_result(generation, FetchResult.failure(UnknownFetchError(e)))
            raise
        except Exception as e:
            logger.exception("Unexpected error while loading market data.")
            self._handle_result(generation, FetchResult.failure(UnknownFetchError(e)))
        else:
            self._handle_result(generation, FetchResult.success(coins))

    def _handle_result(self, generation: int, result: FetchResult) -> None:
        """Applies one fetch outcome. Runs exactly once per attempt."""
        self._check_context()
        if self.supersede_in_flight and generation != self._generation:
            logger.debug(f"Discarding result of superseded fetch #{generation}.")
            return

        if result.ok:
            assert result.coins is not None
            logger.info(f"Loaded {len(result.coins)} coins.")
            error = None if self.clear_error_on_success else self._state.error
            self._apply(coins=result.coins, error=error, phase=FetchPhase.SUCCEEDED)
        else:
            logger.warning(f"Loading market data failed: {result.error}")
            self._apply(error=result.error, phase=FetchPhase.FAILED)

    def _apply(self, **changes: object) -> None:
        """Swaps in a new snapshot and notifies every observer once."""
        self._state = replace(self._state, **changes)  # type: ignore[arg-type]
        for observer in list(self._observers.values()):
            try:
                observer(self._state)
            except Exception:  # noqa: PERF203
                logger.exception("State observer raised an exception.")

    def _check_context(self) -> None:
        if threading.get_ident() != self._owner_thread:
            err_msg = (
                "CoinListViewModel must only be used from the thread running "
                "its event loop."
            )
            raise RuntimeError(err_msg)
