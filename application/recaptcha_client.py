"""Client-side reCAPTCHA token acquisition.

Loads the vendor script once per page, waits for the ``grecaptcha`` global and
obtains a token either from the invisible v3 flow or from an explicit v2 widget,
falling back from v3 to v2 when v3 fails for any reason.

The page is reached through the small ``Page`` protocol below so the same code
runs against a browser bridge or against test doubles. Everything here runs on
one asyncio event loop; vendor callbacks are expected on that loop.
"""
import asyncio
import inspect
import logging
import os
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol

from application.errors import ClientLoadFailure

logger = logging.getLogger(__name__)

SCRIPT_BASE_URL = "https://www.google.com/recaptcha/api.js"
V2_SCRIPT_URL = SCRIPT_BASE_URL + "?render=explicit"
GLOBAL_NAME = "grecaptcha"

DEFAULT_ACTION = "login"
DEFAULT_CONTAINER = "recaptcha-container"

POLL_INTERVAL = 0.1
READY_TIMEOUT = 5.0
RESPONSE_FALLBACK_DELAY = 0.5


def v3_script_url(site_key):
    return f"{SCRIPT_BASE_URL}?render={site_key}"


class ScriptTag(Protocol):
    src: str

    def add_event_listener(self, event: str, callback: Callable[[], None]) -> None: ...


class Page(Protocol):
    def query_script(self, src: str) -> Optional[ScriptTag]: ...

    def create_script(self, src: str, async_: bool = True, defer: bool = True) -> ScriptTag: ...

    def append_script(self, tag: ScriptTag) -> None: ...

    def get_element_by_id(self, element_id: str) -> Any: ...

    def get_global(self, name: str) -> Any: ...


def parse_flag(value) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in ("true", "1", "yes", "on")


@dataclass(frozen=True)
class ClientConfig:
    v3_key: Optional[str] = None
    v2_key: Optional[str] = None
    v2_only: bool = False

    @classmethod
    def from_mapping(cls, data):
        """Build from the ``/api/recaptcha-config`` payload."""
        return cls(
            v3_key=data.get("recaptchaV3") or None,
            v2_key=data.get("recaptchaV2") or None,
            v2_only=parse_flag(data.get("v2Only")),
        )

    @classmethod
    def from_env(cls, environ=None):
        environ = os.environ if environ is None else environ
        return cls(
            v3_key=environ.get("RECAPTCHA_SITE_KEY_V3") or None,
            v2_key=environ.get("RECAPTCHA_SITE_KEY_V2") or None,
            v2_only=parse_flag(environ.get("RECAPTCHA_V2_ONLY")),
        )


@dataclass(frozen=True)
class TokenResult:
    token: str
    version: str

    def to_payload(self):
        """Body for ``POST /api/verify-recaptcha``."""
        return {"token": self.token, "version": self.version}


@dataclass(frozen=True)
class RenderedWidget:
    token: str
    widget_id: Any


class ClientSession:
    """Page-lifetime state: a single memoized script load shared by every caller.

    The first ``load_script`` call decides which script is fetched; later calls,
    whatever URL they ask for, wait on that same operation and see the same
    outcome. A load that ended in an error is forgotten once it has settled, so
    the next call (the v2 fallback, typically) starts a fresh one.
    """

    def __init__(self, page: Page, script_timeout: Optional[float] = None):
        self.page = page
        self.script_timeout = script_timeout
        self.script_url = None
        self._load_future = None
        self._failed_urls = set()

    @property
    def loading(self):
        return self._load_future is not None and not self._load_future.done()

    async def load_script(self, url: str) -> None:
        if self._load_future is not None and self._load_future.done() \
                and self._load_future.exception() is not None:
            logger.debug("[recaptcha] script %s failed earlier, loading %s afresh",
                         self.script_url, url)
            self._failed_urls.add(self.script_url)
            self._load_future = None

        if self._load_future is None:
            self.script_url = url
            self._load_future = self._start_load(url)
        elif url != self.script_url:
            logger.debug("[recaptcha] script %s already requested, reusing it for %s",
                         self.script_url, url)

        # shield: a caller giving up must not cancel the load for everyone else
        waiter = asyncio.shield(self._load_future)
        if self.script_timeout is None:
            await waiter
            return
        try:
            await asyncio.wait_for(waiter, self.script_timeout)
        except asyncio.TimeoutError:
            raise ClientLoadFailure(f"Script load timed out after {self.script_timeout}s")

    def _start_load(self, url):
        future = asyncio.get_running_loop().create_future()

        def on_load():
            if not future.done():
                future.set_result(None)

        def on_error():
            if not future.done():
                future.set_exception(ClientLoadFailure("Script load failed"))

        existing = self.page.query_script(url)
        # a tag that already fired error will not fire again
        if existing is not None and url not in self._failed_urls:
            # someone else injected it; wait for that tag instead of adding another
            existing.add_event_listener("load", on_load)
            existing.add_event_listener("error", on_error)
            return future

        tag = self.page.create_script(url, async_=True, defer=True)
        tag.add_event_listener("load", on_load)
        tag.add_event_listener("error", on_error)
        self.page.append_script(tag)
        return future


async def wait_for_global(page: Page, name: str = GLOBAL_NAME,
                          timeout: float = READY_TIMEOUT, interval: float = POLL_INTERVAL):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while True:
        value = page.get_global(name)
        if value is not None:
            return value
        if loop.time() > deadline:
            raise ClientLoadFailure(f"{name} did not load")
        await asyncio.sleep(interval)


# Token sources: grecaptcha.execute returns an awaitable in current builds and
# nothing in some older ones, where the token is read back afterwards.

class AwaitableTokenSource:
    def __init__(self, awaitable):
        self.awaitable = awaitable

    async def token(self) -> str:
        token = await self.awaitable
        if not token:
            raise ClientLoadFailure("reCAPTCHA v3 execute returned no token")
        return token


class LastResponseTokenSource:
    def __init__(self, page: Page, delay: float = RESPONSE_FALLBACK_DELAY):
        self.page = page
        self.delay = delay

    async def token(self) -> str:
        await asyncio.sleep(self.delay)
        grecaptcha = self.page.get_global(GLOBAL_NAME)
        get_response = getattr(grecaptcha, "get_response", None)
        if not callable(get_response):
            raise ClientLoadFailure("reCAPTCHA v3 execute returned no token")
        token = get_response()
        if not token:
            raise ClientLoadFailure("reCAPTCHA v3 execute returned no token")
        return token


def detect_token_source(returned, page: Page, delay: float = RESPONSE_FALLBACK_DELAY):
    if inspect.isawaitable(returned):
        return AwaitableTokenSource(returned)
    return LastResponseTokenSource(page, delay)


class RecaptchaClient:
    """The capability handed to UI code: ``verify``, ``execute_v3`` and ``render_v2``."""

    def __init__(self, session: ClientSession, config: ClientConfig,
                 ready_timeout: float = READY_TIMEOUT, poll_interval: float = POLL_INTERVAL,
                 response_delay: float = RESPONSE_FALLBACK_DELAY):
        self.session = session
        self.config = config
        self.ready_timeout = ready_timeout
        self.poll_interval = poll_interval
        self.response_delay = response_delay

    @property
    def page(self):
        return self.session.page

    async def _grecaptcha(self):
        return await wait_for_global(self.page, GLOBAL_NAME,
                                     timeout=self.ready_timeout, interval=self.poll_interval)

    async def _when_ready(self, grecaptcha):
        ready = asyncio.get_running_loop().create_future()

        def on_ready():
            if not ready.done():
                ready.set_result(None)

        grecaptcha.ready(on_ready)
        await ready

    async def execute_v3(self, action: str = DEFAULT_ACTION) -> str:
        site_key = self.config.v3_key
        if not site_key:
            raise ClientLoadFailure("reCAPTCHA v3 site key not set")

        await self.session.load_script(v3_script_url(site_key))
        grecaptcha = await self._grecaptcha()
        try:
            await self._when_ready(grecaptcha)
            returned = grecaptcha.execute(site_key, {"action": action})
        except Exception as e:
            raise ClientLoadFailure(f"reCAPTCHA v3 execute failed: {e}") from e

        source = detect_token_source(returned, self.page, self.response_delay)
        try:
            return await source.token()
        except ClientLoadFailure:
            raise
        except Exception as e:
            raise ClientLoadFailure(f"reCAPTCHA v3 execute failed: {e}") from e

    async def render_v2(self, container_id: str = DEFAULT_CONTAINER) -> RenderedWidget:
        site_key = self.config.v2_key
        if not site_key:
            raise ClientLoadFailure("reCAPTCHA v2 site key not set")

        await self.session.load_script(V2_SCRIPT_URL)
        grecaptcha = await self._grecaptcha()

        if self.page.get_element_by_id(container_id) is None:
            raise ClientLoadFailure(f"Container #{container_id} not found")

        solved = asyncio.get_running_loop().create_future()

        def on_success(token):
            if not solved.done():
                solved.set_result(token)

        def on_error(*args):
            if not solved.done():
                solved.set_exception(ClientLoadFailure("reCAPTCHA v2 error"))

        try:
            widget_id = grecaptcha.render(container_id, {
                "sitekey": site_key,
                "callback": on_success,
                "error-callback": on_error,
            })
        except Exception as e:
            raise ClientLoadFailure(f"reCAPTCHA v2 render failed: {e}") from e

        # no deadline: the widget waits for the user
        token = await solved
        return RenderedWidget(token=token, widget_id=widget_id)

    async def verify(self, action: str = DEFAULT_ACTION,
                     container_id: str = DEFAULT_CONTAINER) -> TokenResult:
        if self.config.v2_only:
            logger.info("[recaptcha] v2Only mode: render v2")
            widget = await self.render_v2(container_id)
            logger.info("[recaptcha] v2 token received")
            return TokenResult(token=widget.token, version="v2")

        try:
            logger.info("[recaptcha] trying v3")
            token = await self.execute_v3(action)
            logger.info("[recaptcha] v3 success")
            return TokenResult(token=token, version="v3")
        except Exception as err:
            logger.warning("[recaptcha] v3 failed, fallback to v2: %s", err)

        widget = await self.render_v2(container_id)
        logger.info("[recaptcha] v2 success after fallback")
        return TokenResult(token=widget.token, version="v2")
