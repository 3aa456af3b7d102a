import copy
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
for p in (ROOT, ROOT / "lambda"):
    if str(p) not in sys.path:
        sys.path.insert(0, str(p))

from board_access import Board
from board_access import StaleBoardError
from board_access import User


class MemoryBoardStore:
    """Dict-backed store with the same compare-and-swap contract as DynamoBoardStore.

    Reads hand out copies so a rejected save never leaks into stored state.
    """

    def __init__(self) -> None:
        self.boards: dict[str, Board] = {}
        self.users: dict[str, User] = {}
        self.saves = 0

    def add_user(self, user_id: str, email: str, username: str = "") -> User:
        user = User(user_id=user_id, email=email.lower(), username=username or user_id)
        self.users[user_id] = user
        return user

    def get_board(self, board_id: str) -> Board | None:
        board = self.boards.get(board_id)
        return copy.deepcopy(board) if board else None

    def list_boards_owned_by(self, user_id: str) -> list[Board]:
        owned = [b for b in self.boards.values() if b.owner == user_id]
        return [copy.deepcopy(b) for b in sorted(owned, key=lambda b: (b.created_at, b.board_id))]

    def list_boards_shared_with(self, user_id: str) -> list[Board]:
        shared = [b for b in self.boards.values() if user_id in b.shared_with]
        return [copy.deepcopy(b) for b in sorted(shared, key=lambda b: (b.created_at, b.board_id))]

    def save_board(self, board: Board) -> Board:
        current = self.boards.get(board.board_id)
        stored_version = current.version if current else 0
        if board.version != stored_version:
            raise StaleBoardError(board.board_id)
        saved = copy.deepcopy(board)
        saved.version = stored_version + 1
        self.boards[saved.board_id] = saved
        self.saves += 1
        return copy.deepcopy(saved)

    def find_user_by_email(self, email: str) -> User | None:
        needle = str(email or "").strip().lower()
        for user in self.users.values():
            if user.email == needle:
                return user
        return None

    def get_user(self, user_id: str) -> User | None:
        return self.users.get(user_id)

    def get_users(self, user_ids: list[str]) -> dict[str, User]:
        return {u: self.users[u] for u in user_ids if u in self.users}


@pytest.fixture
def store() -> MemoryBoardStore:
    s = MemoryBoardStore()
    s.add_user("u1", "ada@example.com", "ada")
    s.add_user("u2", "Bob@Example.com", "bob")
    s.add_user("u3", "cy@example.com", "cy")
    return s
