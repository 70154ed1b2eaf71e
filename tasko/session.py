"""Session state shared by the commands of one run."""

import asyncio
import logging
from contextlib import contextmanager
from contextvars import ContextVar
from enum import Enum
from typing import Callable, Iterator, List, Optional

from tasko.models import Profile, Session
from tasko.storage import SessionStore

logger = logging.getLogger(__name__)

Listener = Callable[["SessionProvider"], None]


class SessionStatus(Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"


class SessionProviderMissingError(RuntimeError):
    """Raised when the session is read outside of a bound SessionProvider."""


_current_provider: ContextVar[Optional["SessionProvider"]] = ContextVar("tasko_session_provider", default=None)


class SessionProvider:
    """
    Holds the in-memory session and keeps the store in step with it.

    The provider starts out loading. ``initialize()`` reads the store once and
    moves it to READY; until then ``is_authenticated`` is always False, even
    if the store holds a complete session.

    Only ``establish_session()`` and ``clear_session()`` change the session.
    Both update memory first, notify listeners, then persist.
    """

    def __init__(self, store: SessionStore):
        self.store = store
        self._session = Session.anonymous()
        self._status = SessionStatus.UNINITIALIZED
        self._init_task: Optional[asyncio.Task] = None
        self._listeners: List[Listener] = []
        # Set when a mutator runs before initialization finished
        self._changed_during_init = False

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def is_loading(self) -> bool:
        return self._status is not SessionStatus.READY

    @property
    def session(self) -> Session:
        return self._session

    @property
    def token(self) -> Optional[str]:
        return self._session.token

    @property
    def profile(self) -> Optional[Profile]:
        return self._session.profile

    @property
    def is_authenticated(self) -> bool:
        return not self.is_loading and self._session.is_authenticated

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> Session:
        """
        Load the persisted session, exactly once.

        Later calls await the same load instead of reading the store again.

        Returns:
            The session the provider ended up with
        """
        if self._init_task is None:
            self._status = SessionStatus.INITIALIZING
            self._init_task = asyncio.ensure_future(self._initialize())
        await self._init_task
        return self._session

    async def _initialize(self) -> None:
        session = await self.store.load()
        if self._changed_during_init:
            # A login or logout already decided the state; the stored copy is older
            logger.debug("Session changed while loading; keeping the in-memory state")
        else:
            self._session = session
        self._status = SessionStatus.READY
        logger.debug("Session ready (authenticated=%s)", self._session.is_authenticated)
        self._notify()

    async def establish_session(self, token: str, profile: Profile, refresh_token: Optional[str] = None) -> None:
        """
        Switch to an authenticated session and persist it.

        Args:
            token: Bearer token returned by the API
            profile: Profile of the user the token belongs to
            refresh_token: Optional refresh token, kept for server-side logout

        Raises:
            ValueError: If the token is empty or the profile is missing
            StorageError: If the session cannot be persisted; memory is
                          already switched by then
        """
        if not token or profile is None:
            raise ValueError("A session needs both a token and a profile")

        session = Session(token=token, profile=profile, refresh_token=refresh_token)
        self._set(session)
        await self.store.save(session)

    async def clear_session(self) -> None:
        """
        Switch to the anonymous session and remove it from storage.

        Raises:
            StorageError: If the stored keys cannot be removed
        """
        self._set(Session.anonymous())
        await self.store.clear()

    def _set(self, session: Session) -> None:
        if self._status is not SessionStatus.READY:
            self._changed_during_init = True
        self._session = session
        self._notify()

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Call ``listener(provider)`` after every state change.

        Returns:
            A callable that removes the listener again
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    # ------------------------------------------------------------------
    # Context binding
    # ------------------------------------------------------------------

    @contextmanager
    def bind(self) -> Iterator["SessionProvider"]:
        """Make this provider the one returned by use_session() inside the block."""
        reset_token = _current_provider.set(self)
        try:
            yield self
        finally:
            _current_provider.reset(reset_token)


def use_session() -> SessionProvider:
    """
    Get the provider bound to the current context.

    Raises:
        SessionProviderMissingError: If no provider is bound
    """
    provider = _current_provider.get()
    if provider is None:
        raise SessionProviderMissingError("use_session() must be called inside SessionProvider.bind()")
    return provider
