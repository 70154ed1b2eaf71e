"""Route guard for views that need a logged-in user."""

import logging
from enum import Enum
from typing import Callable, Optional
from urllib.parse import urlencode

from tasko.session import SessionProvider

logger = logging.getLogger(__name__)

LOGIN_PATH = "/login"


class GuardDecision(Enum):
    LOADING = "loading"
    REDIRECT = "redirect"
    ALLOW = "allow"


def login_location(return_path: Optional[str] = None, login_path: str = LOGIN_PATH) -> str:
    """Build the login location, carrying the page to come back to."""
    if not return_path:
        return login_path
    return f"{login_path}?{urlencode({'next': return_path})}"


class RouteGuard:
    """
    Decides whether a protected view may render.

    While the provider is loading the guard only reports LOADING and never
    navigates. Afterwards an anonymous user is sent to the login view.
    """

    def __init__(self, provider: SessionProvider, navigate: Callable[[str], None], login_path: str = LOGIN_PATH):
        self.provider = provider
        self.navigate = navigate
        self.login_path = login_path

    def check(self, path: Optional[str] = None) -> GuardDecision:
        """
        Evaluate the guard for the view at ``path``.

        Returns:
            LOADING, REDIRECT (after navigating to login) or ALLOW
        """
        if self.provider.is_loading:
            return GuardDecision.LOADING

        if not self.provider.is_authenticated:
            location = login_location(path, self.login_path)
            logger.debug("Redirecting %s to %s", path, location)
            self.navigate(location)
            return GuardDecision.REDIRECT

        return GuardDecision.ALLOW

    def watch(self, path: Optional[str] = None) -> Callable[[], None]:
        """
        Check now and again on every session change, e.g. a logout while the view is open.

        Returns:
            A callable that stops watching
        """
        self.check(path)
        return self.provider.subscribe(lambda _provider: self.check(path))
