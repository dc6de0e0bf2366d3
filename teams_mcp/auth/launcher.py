"""URL launchers used to open the verification page."""

import webbrowser
from typing import Protocol

from teams_mcp.core.logging import get_logger


logger = get_logger(__name__)


class Launcher(Protocol):
    """Opens a URL for the user."""

    def open(self, url: str) -> bool:
        """Open ``url``; return False if nothing could be opened."""
        ...


class WebBrowserLauncher:
    """Open URLs with the system web browser."""

    def open(self, url: str) -> bool:
        try:
            opened = webbrowser.open(url)
        except webbrowser.Error as e:
            logger.warning("browser_launch_failed", url=url, error=str(e), category="auth")
            return False
        if not opened:
            logger.debug("browser_not_available", url=url, category="auth")
        return opened


class NullLauncher:
    """Launcher that never opens anything, for headless sessions."""

    def open(self, url: str) -> bool:
        return False
