from __future__ import annotations

import os
import time
from typing import Any

import boto3
from boto3.dynamodb.conditions import Attr
from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError

from board_access import Board
from board_access import StaleBoardError
from board_access import Task
from board_access import User

BOARDS_TABLE_NAME = os.environ.get("BOARDS_TABLE", "")
USERS_TABLE_NAME = os.environ.get("BOARDS_USERS_TABLE", "")
BOARDS_OWNER_INDEX = os.environ.get("BOARDS_OWNER_INDEX", "owner-index")
USERS_EMAIL_INDEX = os.environ.get("BOARDS_USERS_EMAIL_INDEX", "email-index")

BATCH_GET_MAX_KEYS = 100
BATCH_GET_MAX_ATTEMPTS = 5
BATCH_GET_BASE_DELAY_SECONDS = 0.05

_ddb_resource: Any | None = None


def _ddb() -> Any:
    global _ddb_resource
    if _ddb_resource is None:
        _ddb_resource = boto3.resource("dynamodb")
    return _ddb_resource


def _boards_table() -> Any:
    return _ddb().Table(BOARDS_TABLE_NAME)


def _users_table() -> Any:
    return _ddb().Table(USERS_TABLE_NAME)


def normalize_email(email: str) -> str:
    return str(email or "").strip().lower()


def task_from_item(item: dict[str, Any]) -> Task:
    return Task(
        task_id=str(item.get("taskId") or ""),
        title=str(item.get("title") or ""),
        description=str(item.get("description") or ""),
        completed=bool(item.get("completed", False)),
        created_at=str(item.get("createdAt") or ""),
        updated_at=str(item.get("updatedAt") or ""),
    )


def task_to_item(task: Task) -> dict[str, Any]:
    return {
        "taskId": task.task_id,
        "title": task.title,
        "description": task.description,
        "completed": bool(task.completed),
        "createdAt": task.created_at,
        "updatedAt": task.updated_at,
    }


def board_from_item(item: dict[str, Any]) -> Board:
    tasks = item.get("tasks") or []
    shared = item.get("sharedWith") or []
    return Board(
        board_id=str(item.get("boardId") or ""),
        name=str(item.get("name") or ""),
        owner=str(item.get("owner") or ""),
        shared_with=[str(s) for s in shared if str(s or "").strip()],
        tasks=[task_from_item(t) for t in tasks if isinstance(t, dict)],
        created_at=str(item.get("createdAt") or ""),
        updated_at=str(item.get("updatedAt") or ""),
        # Numbers come back from DynamoDB as Decimal.
        version=int(item.get("version") or 0),
    )


def board_to_item(board: Board) -> dict[str, Any]:
    return {
        "boardId": board.board_id,
        "name": board.name,
        "owner": board.owner,
        "sharedWith": list(board.shared_with),
        "tasks": [task_to_item(t) for t in board.tasks],
        "createdAt": board.created_at,
        "updatedAt": board.updated_at,
        "version": int(board.version),
    }


def user_from_item(item: dict[str, Any]) -> User:
    return User(
        user_id=str(item.get("sub") or ""),
        email=str(item.get("email") or ""),
        username=str(item.get("username") or ""),
        created_at=str(item.get("createdAt") or ""),
    )


def user_to_item(user: User) -> dict[str, Any]:
    return {
        "sub": user.user_id,
        "email": normalize_email(user.email),
        "username": user.username,
        "createdAt": user.created_at,
    }


class DynamoBoardStore:
    """Boards as whole documents in one table, users in another.

    ``save_board`` is a compare-and-swap on ``version``: the put only lands if
    the stored version still equals the version that was read.
    """

    def get_board(self, board_id: str) -> Board | None:
        if not board_id:
            return None
        resp = _boards_table().get_item(Key={"boardId": board_id}, ConsistentRead=True)
        item = resp.get("Item")
        if not isinstance(item, dict):
            return None
        return board_from_item(item)

    def list_boards_owned_by(self, user_id: str) -> list[Board]:
        out: list[Board] = []
        start_key: dict[str, Any] | None = None
        while True:
            kwargs: dict[str, Any] = {
                "IndexName": BOARDS_OWNER_INDEX,
                "KeyConditionExpression": Key("owner").eq(user_id),
            }
            if start_key:
                kwargs["ExclusiveStartKey"] = start_key
            page = _boards_table().query(**kwargs)
            for item in page.get("Items", []) or []:
                if isinstance(item, dict):
                    out.append(board_from_item(item))
            start_key = page.get("LastEvaluatedKey")
            if not start_key:
                return out

    def list_boards_shared_with(self, user_id: str) -> list[Board]:
        out: list[Board] = []
        start_key: dict[str, Any] | None = None
        while True:
            kwargs: dict[str, Any] = {
                "FilterExpression": Attr("sharedWith").contains(user_id),
            }
            if start_key:
                kwargs["ExclusiveStartKey"] = start_key
            page = _boards_table().scan(**kwargs)
            for item in page.get("Items", []) or []:
                if isinstance(item, dict):
                    out.append(board_from_item(item))
            start_key = page.get("LastEvaluatedKey")
            if not start_key:
                break
        # Scan order is hash order; present oldest first like the owner index.
        return sorted(out, key=lambda b: (b.created_at, b.board_id))

    def save_board(self, board: Board) -> Board:
        item = board_to_item(board)
        item["version"] = int(board.version) + 1
        if board.version:
            condition = Attr("version").eq(int(board.version))
        else:
            condition = Attr("boardId").not_exists()
        try:
            _boards_table().put_item(Item=item, ConditionExpression=condition)
        except ClientError as e:
            code = str(e.response.get("Error", {}).get("Code") or "")
            if code == "ConditionalCheckFailedException":
                raise StaleBoardError(board.board_id) from e
            raise
        return board_from_item(item)

    def find_user_by_email(self, email: str) -> User | None:
        needle = normalize_email(email)
        if not needle:
            return None
        resp = _users_table().query(
            IndexName=USERS_EMAIL_INDEX,
            KeyConditionExpression=Key("email").eq(needle),
            Limit=10,
        )
        for item in resp.get("Items", []) or []:
            if isinstance(item, dict) and str(item.get("sub") or "").strip():
                return user_from_item(item)
        return None

    def get_user(self, user_id: str) -> User | None:
        if not user_id:
            return None
        resp = _users_table().get_item(Key={"sub": user_id})
        item = resp.get("Item")
        if not isinstance(item, dict):
            return None
        return user_from_item(item)

    def get_users(self, user_ids: list[str]) -> dict[str, User]:
        wanted: list[str] = []
        seen: set[str] = set()
        for user_id in user_ids:
            if not user_id or user_id in seen:
                continue
            seen.add(user_id)
            wanted.append(user_id)

        out: dict[str, User] = {}
        for i in range(0, len(wanted), BATCH_GET_MAX_KEYS):
            request: dict[str, Any] = {
                USERS_TABLE_NAME: {"Keys": [{"sub": s} for s in wanted[i : i + BATCH_GET_MAX_KEYS]]}
            }
            attempts = 0
            while request and attempts < BATCH_GET_MAX_ATTEMPTS:
                if attempts:
                    time.sleep(BATCH_GET_BASE_DELAY_SECONDS * (2 ** (attempts - 1)))
                attempts += 1
                resp = _ddb().batch_get_item(RequestItems=request)
                for item in (resp.get("Responses") or {}).get(USERS_TABLE_NAME, []) or []:
                    if isinstance(item, dict):
                        user = user_from_item(item)
                        out[user.user_id] = user
                request = resp.get("UnprocessedKeys") or {}
        return out

    def put_user(self, user: User) -> None:
        _users_table().put_item(Item=user_to_item(user))
