import asyncio
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor

import httpx
from loguru import logger

from coinlist.errors import (
    FetchError,
    InvalidURLError,
    ServerError,
    UnknownFetchError,
)
from coinlist.models import CoinRecord, FetchResult, decode_coins

BASE_URL = "https://api.coingecko.com/api/v3/coins"

# Fixed query for the first page of the top coins by market cap, in USD.
MARKETS_QUERY: dict[str, str | int] = {
    "vs_currency": "usd",
    "order": "market_cap_desc",
    "per_page": 50,
    "page": 1,
    "price_change_percentage": "24h",
}

FetchCallback = Callable[[FetchResult], None]


class CoinFetchService:
    """Fetches the CoinGecko market list and decodes it into `CoinRecord`s.

    Two request styles are offered over the same validation and decoding:

    - `fetch_coins()` is a coroutine awaited on the caller's event loop using
      a shared `httpx.AsyncClient`.
    - `fetch_coins_with_callback()` performs a blocking request with an
      `httpx.Client` on a worker thread and hands the `FetchResult` back to the
      event loop through a callback.

    Every call makes at most one request. There is no retry and no cache.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        *,
        sync_client: httpx.Client | None = None,
        base_url: str = BASE_URL,
    ) -> None:
        """Initializes the service.

        Args:
            http_client: Async client for `fetch_coins`. Created lazily if omitted.
            sync_client: Blocking client for `fetch_coins_with_callback`.
                Created lazily if omitted.
            base_url: The API root the `/markets` path is appended to.
        """
        self.base_url = base_url
        self._http_client = http_client
        self._sync_client = sync_client
        self._owns_http_client = http_client is None
        self._owns_sync_client = sync_client is None
        self._executor: ThreadPoolExecutor | None = None
        # Guards lazy creation and release of the blocking client across workers.
        self._sync_lock = threading.Lock()
        self._closed = False

    def build_url(self) -> httpx.URL:
        """Builds and validates the request URL.

        Raises:
            InvalidURLError: If the URL cannot be parsed or is not absolute http(s).
        """
        try:
            url = httpx.URL(f"{self.base_url.rstrip('/')}/markets", params=MARKETS_QUERY)
        except (httpx.InvalidURL, TypeError, ValueError) as e:
            raise InvalidURLError(f"Invalid market data URL: {e}") from e

        if url.scheme not in ("http", "https") or not url.host:
            raise InvalidURLError(f"Invalid market data URL: '{url}'")
        return url

    # --- async/await ---

    async def fetch_coins(self) -> list[CoinRecord]:
        """Performs one GET against the markets endpoint and decodes the body.

        Returns:
            The coins in server order.

        Raises:
            InvalidURLError: The URL failed validation. Nothing was sent.
            ServerError: The status code was not 200.
            InvalidDataError: The body did not match the coin schema.
            UnknownFetchError: Any transport-level failure.
        """
        url = self.build_url()
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(http2=True, follow_redirects=True)

        logger.debug(f"GET {url}")
        try:
            response = await self._http_client.get(url)
        except (httpx.HTTPError, OSError) as e:
            logger.warning(f"Market data request failed: {type(e).__name__}: {e}")
            raise UnknownFetchError(e) from e

        return self._interpret(response)

    # --- callback on a worker thread ---

    def fetch_coins_with_callback(
        self,
        callback: FetchCallback,
        *,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> "Future[None]":
        """Fetches on a worker thread and delivers the result on `loop`.

        The callback is always scheduled with `loop.call_soon_threadsafe`, so
        it runs on the thread driving the event loop, never on the worker.

        Args:
            callback: Receives exactly one `FetchResult` per call.
            loop: The loop to deliver on. Defaults to the running loop.

        Returns:
            The worker's future. It completes after the callback was scheduled.
        """
        target_loop = loop or asyncio.get_running_loop()
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=2, thread_name_prefix="coinlist-fetch"
            )

        def _work() -> None:
            result = self._fetch_blocking()
            target_loop.call_soon_threadsafe(callback, result)

        return self._executor.submit(_work)

    def _fetch_blocking(self) -> FetchResult:
        """Runs on the worker thread. Every failure becomes a `FetchResult`."""
        try:
            url = self.build_url()
            client = self._acquire_sync_client()

            logger.debug(f"GET {url} (worker thread)")
            try:
                response = client.get(url)
            except (httpx.HTTPError, OSError) as e:
                logger.warning(f"Market data request failed: {type(e).__name__}: {e}")
                raise UnknownFetchError(e) from e

            return FetchResult.success(self._interpret(response))
        except FetchError as e:
            return FetchResult.failure(e)
        except Exception as e:
            logger.exception("Unexpected error while fetching market data.")
            return FetchResult.failure(UnknownFetchError(e))

    def _acquire_sync_client(self) -> httpx.Client:
        """Returns the blocking client, creating it once even under concurrent workers."""
        with self._sync_lock:
            if self._closed:
                raise UnknownFetchError(RuntimeError("The fetch service is closed."))
            if self._sync_client is None:
                self._sync_client = httpx.Client(follow_redirects=True)
            return self._sync_client

    def _interpret(self, response: httpx.Response) -> list[CoinRecord]:
        """Validates the status code, then decodes the body."""
        if response.status_code != httpx.codes.OK:
            logger.warning(f"Market data request returned HTTP {response.status_code}.")
            raise ServerError(response.status_code)

        coins = decode_coins(response.content)
        logger.debug(f"Decoded {len(coins)} coins.")
        return coins

    async def aclose(self) -> None:
        """Releases clients created by this service and the worker pool."""
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None
        if self._owns_http_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
        with self._sync_lock:
            self._closed = True
            sync_client, self._sync_client = self._sync_client, None
        if self._owns_sync_client and sync_client is not None:
            sync_client.close()
