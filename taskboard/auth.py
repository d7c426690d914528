"""
Authentication provider contract.

Subscribers receive an AuthState right away and again on every change.
LocalAuthProvider keeps the signed-in user in memory; it backs the JSON
server and the tests.
"""
import logging
from typing import Callable, List

from .schema import AuthState, User

logger = logging.getLogger(__name__)


class AuthProvider:
    """Subscription-style auth state plus logout."""

    def __init__(self):
        self.state = AuthState(user=None, is_loading=True)
        self.subscribers: List[Callable[[AuthState], None]] = []

    def subscribe(self, callback: Callable[[AuthState], None]) -> Callable[[], None]:
        """Register a callback, invoke it with the current state, return an unsubscribe function."""
        self.subscribers.append(callback)
        self._deliver(callback, self.state)

        def unsubscribe() -> None:
            if callback in self.subscribers:
                self.subscribers.remove(callback)

        return unsubscribe

    def _set_state(self, state: AuthState) -> None:
        self.state = state
        for callback in list(self.subscribers):
            self._deliver(callback, state)

    @staticmethod
    def _deliver(callback: Callable[[AuthState], None], state: AuthState) -> None:
        try:
            callback(state)
        except Exception as e:
            logger.error(f"Error in auth callback: {e}")

    def logout(self) -> None:
        raise NotImplementedError


class LocalAuthProvider(AuthProvider):
    """In-memory provider: sign_in() and logout() change the state directly."""

    def sign_in(self, user: User) -> None:
        logger.info(f"Signed in: {user.label} ({user.id})")
        self._set_state(AuthState(user=user, is_loading=False))

    def logout(self) -> None:
        if self.state.user:
            logger.info(f"Signed out: {self.state.user.label}")
        self._set_state(AuthState(user=None, is_loading=False))
