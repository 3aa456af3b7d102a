"""Authorization and mutation rules for boards and their embedded tasks.

Every function takes the persistence collaborator (``store``) and the acting
user id explicitly. Board-scoped operations resolve the board through
``resolve_board`` so that a missing board and a board the actor may not touch
produce the same ``BOARD_NOT_FOUND`` outcome.

Operations return ``(value, error)`` tuples; exactly one side is set.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from ids import is_resource_id
from ids import random_id
from ids import time_ordered_id

KIND_NOT_FOUND = "not_found"
KIND_CONFLICT = "conflict"
KIND_VALIDATION = "validation"

CAPABILITY_OWNER = "owner"
CAPABILITY_MEMBER = "member"

UPDATABLE_TASK_FIELDS = ("title", "description", "completed")


class StaleBoardError(Exception):
    """Raised by a store when the board changed since it was read."""


@dataclass(frozen=True)
class AccessError:
    kind: str
    code: str
    message: str


@dataclass
class Task:
    task_id: str
    title: str
    description: str = ""
    completed: bool = False
    created_at: str = ""
    updated_at: str = ""


@dataclass
class Board:
    board_id: str
    name: str
    owner: str
    shared_with: list[str] = field(default_factory=list)
    tasks: list[Task] = field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""
    version: int = 0

    def find_task(self, task_id: str) -> Task | None:
        for task in self.tasks:
            if task.task_id == task_id:
                return task
        return None


@dataclass(frozen=True)
class User:
    user_id: str
    email: str
    username: str
    created_at: str = ""


def _now_iso() -> str:
    # Fixed-format UTC timestamp for lexicographic ordering.
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def _board_not_found(board_id: str) -> AccessError:
    return AccessError(KIND_NOT_FOUND, "BOARD_NOT_FOUND", f"board not found: {board_id}")


def is_owner(actor: str, board: Board) -> bool:
    return bool(actor) and actor == board.owner


def is_member(actor: str, board: Board) -> bool:
    return is_owner(actor, board) or (bool(actor) and actor in board.shared_with)


def can_read(actor: str, board: Board) -> bool:
    return is_member(actor, board)


def can_share(actor: str, board: Board) -> bool:
    return is_owner(actor, board)


def resolve_board(
    store: Any,
    board_id: str,
    actor: str,
    *,
    capability: str = CAPABILITY_MEMBER,
) -> tuple[Board | None, AccessError | None]:
    board_id = str(board_id or "").strip()
    # Ids are minted here, so anything else cannot name a stored board.
    board = store.get_board(board_id) if is_resource_id(board_id) else None
    if board is None:
        return None, _board_not_found(board_id)
    if capability == CAPABILITY_OWNER:
        allowed = can_share(actor, board)
    else:
        allowed = can_read(actor, board)
    if not allowed:
        return None, _board_not_found(board_id)
    return board, None


def _save(store: Any, board: Board) -> tuple[Board | None, AccessError | None]:
    try:
        return store.save_board(board), None
    except StaleBoardError:
        return None, AccessError(
            KIND_CONFLICT,
            "BOARD_CONFLICT",
            f"board changed before the update was saved: {board.board_id}",
        )


def list_owned_boards(store: Any, actor: str) -> list[Board]:
    return list(store.list_boards_owned_by(actor))


def list_shared_boards(store: Any, actor: str) -> list[Board]:
    return list(store.list_boards_shared_with(actor))


def get_board(store: Any, actor: str, board_id: str) -> tuple[Board | None, AccessError | None]:
    return resolve_board(store, board_id, actor)


def create_board(store: Any, actor: str, name: Any) -> tuple[Board | None, AccessError | None]:
    if not isinstance(name, str) or not name.strip():
        return None, AccessError(KIND_VALIDATION, "INVALID_NAME", "board name must be a non-empty string")
    now = _now_iso()
    board = Board(
        board_id=random_id(),
        name=name.strip(),
        owner=actor,
        created_at=now,
        updated_at=now,
    )
    return _save(store, board)


def share_board(
    store: Any,
    actor: str,
    board_id: str,
    user_email: Any,
) -> tuple[Board | None, AccessError | None]:
    board, err = resolve_board(store, board_id, actor, capability=CAPABILITY_OWNER)
    if err:
        return None, err
    assert board is not None

    if not isinstance(user_email, str) or not user_email.strip():
        return None, AccessError(KIND_VALIDATION, "INVALID_EMAIL", "userEmail must be a non-empty string")
    email = user_email.strip()
    target = store.find_user_by_email(email)
    if target is None:
        return None, AccessError(KIND_NOT_FOUND, "USER_NOT_FOUND", f"user not found: {email}")
    if target.user_id in board.shared_with:
        return None, AccessError(
            KIND_CONFLICT,
            "ALREADY_SHARED",
            f"board already shared with this user: {email}",
        )

    board.shared_with.append(target.user_id)
    board.updated_at = _now_iso()
    return _save(store, board)


def add_task(
    store: Any,
    actor: str,
    board_id: str,
    title: Any,
    description: Any = None,
) -> tuple[Board | None, AccessError | None]:
    board, err = resolve_board(store, board_id, actor)
    if err:
        return None, err
    assert board is not None

    if not isinstance(title, str) or not title.strip():
        return None, AccessError(KIND_VALIDATION, "INVALID_TITLE", "task title must be a non-empty string")
    if description is not None and not isinstance(description, str):
        return None, AccessError(KIND_VALIDATION, "INVALID_TASK_FIELDS", "description must be a string")

    now = _now_iso()
    board.tasks.append(
        Task(
            task_id=time_ordered_id(),
            title=title.strip(),
            description=description or "",
            completed=False,
            created_at=now,
            updated_at=now,
        )
    )
    board.updated_at = now
    return _save(store, board)


def _validate_task_fields(fields: dict[str, Any]) -> tuple[dict[str, Any], AccessError | None]:
    changes: dict[str, Any] = {}
    for key in UPDATABLE_TASK_FIELDS:
        if key not in fields:
            continue
        value = fields[key]
        if key == "title":
            if not isinstance(value, str) or not value.strip():
                return {}, AccessError(KIND_VALIDATION, "INVALID_TITLE", "task title must be a non-empty string")
            changes["title"] = value.strip()
        elif key == "completed":
            if not isinstance(value, bool):
                return {}, AccessError(KIND_VALIDATION, "INVALID_TASK_FIELDS", "completed must be a boolean")
            changes["completed"] = value
        else:
            if value is not None and not isinstance(value, str):
                return {}, AccessError(KIND_VALIDATION, "INVALID_TASK_FIELDS", "description must be a string")
            changes["description"] = value or ""
    return changes, None


def update_task(
    store: Any,
    actor: str,
    board_id: str,
    task_id: str,
    fields: dict[str, Any],
) -> tuple[Board | None, AccessError | None]:
    """Merge the updatable fields of ``fields`` into one task.

    The merge is permissive: ``completed`` may flip either way. Other keys,
    including ``taskId``, are ignored.
    """
    board, err = resolve_board(store, board_id, actor)
    if err:
        return None, err
    assert board is not None

    task = board.find_task(str(task_id or "").strip())
    if task is None:
        return None, AccessError(KIND_NOT_FOUND, "TASK_NOT_FOUND", f"task not found: {task_id}")

    changes, err = _validate_task_fields(fields if isinstance(fields, dict) else {})
    if err:
        return None, err
    if not changes:
        return board, None

    now = _now_iso()
    for key, value in changes.items():
        setattr(task, key, value)
    task.updated_at = now
    board.updated_at = now
    return _save(store, board)


def delete_task(
    store: Any,
    actor: str,
    board_id: str,
    task_id: str,
) -> tuple[Board | None, AccessError | None]:
    board, err = resolve_board(store, board_id, actor)
    if err:
        return None, err
    assert board is not None

    task_id = str(task_id or "").strip()
    remaining = [t for t in board.tasks if t.task_id != task_id]
    if len(remaining) == len(board.tasks):
        # Idempotent: nothing to remove.
        return board, None
    board.tasks = remaining
    board.updated_at = _now_iso()
    return _save(store, board)
