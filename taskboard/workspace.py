"""
Workspace: one user's session over the board core.

Wires store, cache, loader, drag controller and mutators together,
follows the auth provider, provisions the default board on first sign-in
and keeps track of the selected board.
"""
import asyncio
import logging
from typing import Dict, List, Optional, Sequence, Set

from .auth import AuthProvider
from .cache import BoardStateCache
from .config import DEFAULT_COLUMNS
from .drag import DragController
from .events import NotificationChannel, log_notification
from .loader import ReconciliationLoader
from .mutators import TaskMutators, ValidationError
from .schema import (
    DEFAULT_COLUMN_COLOR,
    AuthState,
    Board,
    Column,
    Notification,
    Severity,
    User,
    make_id,
)
from .store import RemoteStore, StoreError
from .views import RENDERERS

logger = logging.getLogger(__name__)


def _user_id(user: Optional[User]) -> Optional[str]:
    return user.id if user else None


class Workspace:
    """Session state for the signed-in user."""

    def __init__(
        self,
        store: RemoteStore,
        auth: AuthProvider,
        notifications: Optional[NotificationChannel] = None,
        default_board_name: str = "My Tasks",
        default_board_description: str = "Your personal task board",
        default_columns: Optional[Sequence[Dict[str, str]]] = None,
    ):
        self.store = store
        self.auth = auth
        if notifications is None:
            notifications = NotificationChannel()
            notifications.subscribe(log_notification)
        self.notifications = notifications
        self.default_board_name = default_board_name
        self.default_board_description = default_board_description
        self.default_columns = list(default_columns or DEFAULT_COLUMNS)

        self.cache = BoardStateCache()
        self.loader = ReconciliationLoader(store, self.cache, self.notifications)
        self.drag = DragController(self.cache, store, self.loader, self.notifications)
        self.mutators = TaskMutators(store, self.cache, self.loader, self.notifications)

        self.user: Optional[User] = None
        self.loading = True
        self.boards: List[Board] = []
        self.current_board: Optional[Board] = None
        self._unsubscribe = None
        # Bumped whenever the signed-in user changes; older sign-ins are then stale
        self._auth_generation = 0
        self._auth_tasks: Set[asyncio.Task] = set()

    # ── Auth ────────────────────────────────────────────────────────────

    def attach(self) -> None:
        """Follow the auth provider; sign-ins are handled on the running loop."""
        def on_change(state: AuthState) -> None:
            loop = asyncio.get_running_loop()
            task = loop.create_task(self.handle_auth_state(state))
            self._auth_tasks.add(task)
            task.add_done_callback(self._auth_task_done)

        self._unsubscribe = self.auth.subscribe(on_change)

    def _auth_task_done(self, task: asyncio.Task) -> None:
        self._auth_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Error handling auth change: {task.exception()}")

    async def wait_idle(self) -> None:
        """Wait until every auth change handed over so far has been handled."""
        while self._auth_tasks:
            await asyncio.gather(*list(self._auth_tasks), return_exceptions=True)

    def detach(self) -> None:
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None

    async def handle_auth_state(self, state: AuthState) -> None:
        self.loading = state.is_loading
        changed = _user_id(self.user) != _user_id(state.user)
        self.user = state.user
        if changed:
            self._auth_generation += 1
            self.boards = []
            self.current_board = None
            self.cache.clear()
        if state.user is None:
            self.mutators.owner_id = ""
            return
        self.mutators.owner_id = state.user.id
        if changed:
            await self.initialize_user_board(state.user.id)

    def sign_out(self) -> None:
        try:
            self.auth.logout()
        except Exception as e:
            logger.error(f"Sign out error: {e}")

    # ── Boards ──────────────────────────────────────────────────────────

    async def _list_boards(self, user_id: str) -> List[Board]:
        rows = await self.store.boards.list(where={"owner_id": user_id}, order_by="created_at")
        return [Board.from_dict(r) for r in rows]

    async def initialize_user_board(self, user_id: str) -> Optional[Board]:
        """
        Load the user's boards, creating the default board if there are none.

        If the auth state changes while this runs, the result is dropped and
        the cache is brought back in line with whoever is signed in now.
        """
        generation = self._auth_generation
        try:
            boards = await self._list_boards(user_id)
            if not boards:
                await self._provision_board(
                    user_id, self.default_board_name,
                    self.default_board_description, self.default_columns,
                )
                boards = await self._list_boards(user_id)
        except StoreError as e:
            logger.error(f"Error initializing user board: {e}")
            self.notifications(Notification(
                "Setup Error", "Failed to initialize your workspace", Severity.ERROR
            ))
            return None

        if generation != self._auth_generation:
            logger.info(f"Auth changed while loading boards for {user_id}, discarding")
            return None
        self.boards = boards
        if not boards:
            return None
        await self.select_board(boards[0].id)
        if generation != self._auth_generation:
            logger.info(f"Auth changed while loading board for {user_id}, discarding")
            await self._resync_after_auth_change()
            return None
        return self.current_board

    async def _resync_after_auth_change(self) -> None:
        """Undo a load that finished after the user it was for went away."""
        if self.current_board is None:
            self.cache.clear()
        else:
            await self.loader.load(self.current_board.id)

    async def _provision_board(self, user_id: str, name: str, description: str,
                               columns: Sequence[Dict[str, str]]) -> Board:
        board = Board(id=make_id("board"), name=name, owner_id=user_id, description=description)
        await self.store.boards.create(board.to_record())
        for position, entry in enumerate(columns):
            column = Column(
                id=make_id("col"),
                name=entry["name"],
                board_id=board.id,
                position=position,
                color=entry.get("color") or DEFAULT_COLUMN_COLOR,
            )
            await self.store.columns.create(column.to_record())
        logger.info(f"Provisioned board {board.id} ({name}) for {user_id}")
        return board

    async def create_board(self, name: str, description: str = "",
                           columns: Optional[Sequence[Dict[str, str]]] = None) -> Optional[Board]:
        """Create a board for the signed-in user and switch to it."""
        if self.user is None:
            logger.warning("create_board called while signed out")
            return None
        name = (name or "").strip()
        if not name:
            raise ValidationError("Board name is required")
        try:
            board = await self._provision_board(
                self.user.id, name, description or "",
                self.default_columns if columns is None else columns,
            )
            self.boards = await self._list_boards(self.user.id)
        except StoreError as e:
            logger.error(f"Error creating board: {e}")
            self.notifications(Notification(
                "Creation Error", "Failed to create board", Severity.ERROR
            ))
            return None
        self.notifications(Notification("Board created", f'"{name}" is ready'))
        await self.select_board(board.id)
        return self.current_board

    async def select_board(self, board_id: str) -> bool:
        board = next((b for b in self.boards if b.id == board_id), None)
        if board is None:
            logger.warning(f"select_board: unknown board {board_id}")
            return False
        self.current_board = board
        return await self.loader.load(board_id)

    async def refresh(self) -> bool:
        if self.current_board is None:
            return False
        return await self.loader.load(self.current_board.id)

    # ── Presentation ────────────────────────────────────────────────────

    def render(self, view: str = "board", query: str = "") -> dict:
        """Render the cache through one of the registered views."""
        renderer = RENDERERS.get(view)
        if renderer is None:
            raise ValueError(f"Unknown view: {view}")
        return renderer.render(self.cache.snapshot(), query=query)
