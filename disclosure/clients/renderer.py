# disclosure/clients/renderer.py
from __future__ import annotations

import logging
import threading
from typing import Optional, Protocol

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from playwright.sync_api import sync_playwright

from ..errors import DependencyUnavailable, RenderTimeout

log = logging.getLogger("disclosure.renderer")


class Renderer(Protocol):
    def render_pdf(self, html: str, *, timeout_seconds: float) -> bytes: ...


class PlaywrightRenderer:
    """
    Headless Chromium, one browser per call.

    The timeout bounds browser launch, content load and capture; the page is
    only printed after the network has gone idle.
    """

    def __init__(self, *, launch_args: Optional[list[str]] = None) -> None:
        self.launch_args = launch_args if launch_args is not None else ["--no-sandbox"]

    def render_pdf(self, html: str, *, timeout_seconds: float) -> bytes:
        timeout_ms = max(1, int(float(timeout_seconds) * 1000))
        try:
            with sync_playwright() as p:
                browser = p.chromium.launch(args=self.launch_args, timeout=timeout_ms)
                try:
                    page = browser.new_page()
                    page.set_default_timeout(timeout_ms)
                    page.set_content(html, wait_until="networkidle", timeout=timeout_ms)
                    return page.pdf(format="A4", print_background=True)
                finally:
                    browser.close()
        except PlaywrightTimeoutError as e:
            log.warning("render timed out after %sms", timeout_ms)
            raise RenderTimeout() from e
        except PlaywrightError as e:
            log.error("render failed: %s", e)
            raise DependencyUnavailable("document renderer failed") from e


_renderer: Optional[Renderer] = None
_renderer_lock = threading.Lock()


def get_renderer() -> Renderer:
    global _renderer
    if _renderer is None:
        with _renderer_lock:
            if _renderer is None:
                _renderer = PlaywrightRenderer()
    return _renderer
