"""Browser window used to capture OAuth redirects."""
import logging
import time
from typing import Callable, List, Optional

from playwright.sync_api import Browser, Frame, Page, Playwright, Request, sync_playwright
from playwright.sync_api import Error as PlaywrightError

logger = logging.getLogger(__name__)


class PlaywrightSurface:
    """
    Chromium window that reports every URL it navigates or is redirected to.

    The window is headless unless ``visible`` is set. Requests to the
    redirect URI are answered locally with an empty page, so the final
    redirect never leaves the machine.
    """

    POLL_INTERVAL_MS = 100

    def __init__(self, visible: bool = False, redirect_uri: Optional[str] = None,
                 width: int = 800, height: int = 600):
        self.visible = visible
        self.redirect_uri = redirect_uri
        self.width = width
        self.height = height
        self.closed = False
        self._destroyed = False
        self._navigate_callbacks: List[Callable[[str], None]] = []
        self._close_callbacks: List[Callable[[], None]] = []
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._page: Optional[Page] = None

    def on_navigate(self, callback: Callable[[str], None]) -> None:
        self._navigate_callbacks.append(callback)

    def on_close(self, callback: Callable[[], None]) -> None:
        self._close_callbacks.append(callback)

    def open(self, url: str) -> None:
        """Launch the browser and load the given URL."""
        self._playwright = sync_playwright().start()
        self._browser = self._playwright.chromium.launch(headless=not self.visible)
        self._browser.on('disconnected', lambda _browser: self._handle_close())
        context = self._browser.new_context(
            viewport={'width': self.width, 'height': self.height}
        )
        page = context.new_page()

        if self.redirect_uri:
            page.route(
                lambda target: target.startswith(self.redirect_uri),
                lambda route: route.fulfill(status=200, content_type='text/html', body='')
            )
        page.on('request', self._handle_request)
        page.on('framenavigated', self._handle_frame_navigated)
        page.on('close', lambda _page: self._handle_close())
        self._page = page

        try:
            page.goto(url)
        except PlaywrightError as e:
            # Navigation is aborted when the window closes mid-load
            logger.debug(f"Initial navigation did not complete: {e}")

    def wait(self, until: Callable[[], bool], timeout: Optional[float] = None) -> None:
        """
        Pump browser events until ``until`` returns True, the window closes,
        or ``timeout`` seconds pass.
        """
        deadline = time.monotonic() + timeout if timeout is not None else None

        while not until() and not self.closed:
            if deadline is not None and time.monotonic() >= deadline:
                return
            try:
                self._page.wait_for_timeout(self.POLL_INTERVAL_MS)
            except PlaywrightError:
                self._handle_close()

    def destroy(self) -> None:
        """Close the window and stop the browser."""
        if self._destroyed:
            return
        self._destroyed = True
        self.closed = True

        try:
            if self._browser:
                self._browser.close()
        except PlaywrightError as e:
            logger.debug(f"Browser already gone: {e}")
        finally:
            if self._playwright:
                self._playwright.stop()

    def _emit(self, url: str) -> None:
        for callback in list(self._navigate_callbacks):
            callback(url)

    def _handle_request(self, request: Request) -> None:
        if request.is_navigation_request():
            self._emit(request.url)

    def _handle_frame_navigated(self, frame: Frame) -> None:
        if frame.parent_frame is None:
            self._emit(frame.url)

    def _handle_close(self) -> None:
        if self.closed:
            return
        self.closed = True
        for callback in list(self._close_callbacks):
            callback()
