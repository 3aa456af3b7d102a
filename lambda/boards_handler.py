from __future__ import annotations

import base64
import json
import os
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from botocore.exceptions import ClientError

import board_access
from board_access import AccessError
from board_access import Board
from board_access import User
from board_store import DynamoBoardStore
from ids import random_id

BOARDS_TABLE_NAME = os.environ.get("BOARDS_TABLE", "")
USERS_TABLE_NAME = os.environ.get("BOARDS_USERS_TABLE", "")
SCHEMA_VERSION = os.environ.get("BOARDS_SCHEMA_VERSION", "2026-10-01")

API_PREFIX = "v1"

STATUS_BY_KIND = {
    board_access.KIND_NOT_FOUND: 404,
    board_access.KIND_CONFLICT: 409,
    board_access.KIND_VALIDATION: 400,
}

_store_instance: Any | None = None


def _store() -> Any:
    global _store_instance
    if _store_instance is None:
        _store_instance = DynamoBoardStore()
    return _store_instance


@dataclass(frozen=True)
class RequestContext:
    request_id: str
    actor_sub: str
    store: Any


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _response(status_code: int, body: dict[str, Any], request_id: str) -> dict[str, Any]:
    payload = dict(body)
    payload.setdefault("requestId", request_id)
    payload.setdefault("schemaVersion", SCHEMA_VERSION)
    return {
        "statusCode": int(status_code),
        "headers": {
            "content-type": "application/json",
            "cache-control": "no-store",
        },
        "body": json.dumps(payload),
    }


def _error(status_code: int, code: str, message: str, request_id: str) -> dict[str, Any]:
    return _response(
        status_code,
        {"errorCode": code, "message": message},
        request_id,
    )


def _access_error(err: AccessError, request_id: str) -> dict[str, Any]:
    return _error(STATUS_BY_KIND.get(err.kind, 500), err.code, err.message, request_id)


def _request_id(event: dict[str, Any]) -> str:
    rc = event.get("requestContext") or {}
    if isinstance(rc, dict):
        rid = str(rc.get("requestId") or "").strip()
        if rid:
            return rid
    return random_id()


def _parse_body(event: dict[str, Any]) -> tuple[dict[str, Any] | None, str | None]:
    raw = event.get("body")
    if raw is None:
        return {}, None
    if not isinstance(raw, str):
        return None, "request body must be a JSON object"
    if bool(event.get("isBase64Encoded")):
        try:
            raw = base64.b64decode(raw.encode("utf-8")).decode("utf-8")
        except Exception:
            return None, "request body base64 decode failed"
    if not raw.strip():
        return {}, None
    try:
        parsed = json.loads(raw)
    except Exception:
        return None, "request body must be valid JSON"
    if not isinstance(parsed, dict):
        return None, "request body must be a JSON object"
    return parsed, None


def _path(event: dict[str, Any]) -> str:
    p = str(event.get("path") or "").strip()
    # Custom domains may add a base path ahead of the API prefix.
    marker = f"/{API_PREFIX}/"
    idx = p.find(marker)
    if idx >= 0:
        p = p[idx:]
    return p


def _claims(event: dict[str, Any]) -> dict[str, Any]:
    rc = event.get("requestContext") or {}
    if not isinstance(rc, dict):
        return {}
    auth = rc.get("authorizer") or {}
    if not isinstance(auth, dict):
        return {}
    claims = auth.get("claims")
    if isinstance(claims, dict):
        return claims
    jwt_claims = (auth.get("jwt") or {}).get("claims")
    if isinstance(jwt_claims, dict):
        return jwt_claims
    return {}


def _actor_sub(event: dict[str, Any]) -> str:
    return str(_claims(event).get("sub") or "").strip()


def _user_to_json(user_id: str, users: dict[str, User]) -> dict[str, Any]:
    user = users.get(user_id)
    return {
        "userId": user_id,
        "username": user.username if user else "",
        "email": user.email if user else "",
    }


def _board_to_json(board: Board, users: dict[str, User]) -> dict[str, Any]:
    return {
        "boardId": board.board_id,
        "name": board.name,
        "owner": _user_to_json(board.owner, users),
        "sharedWith": [_user_to_json(s, users) for s in board.shared_with],
        "tasks": [
            {
                "taskId": t.task_id,
                "title": t.title,
                "description": t.description,
                "completed": bool(t.completed),
                "createdAt": t.created_at,
                "updatedAt": t.updated_at,
            }
            for t in board.tasks
        ],
        "createdAt": board.created_at,
        "updatedAt": board.updated_at,
    }


def _boards_to_json(ctx: RequestContext, boards: list[Board]) -> list[dict[str, Any]]:
    user_ids: list[str] = []
    for board in boards:
        user_ids.append(board.owner)
        user_ids.extend(board.shared_with)
    users = ctx.store.get_users(user_ids) if user_ids else {}
    return [_board_to_json(b, users) for b in boards]


def _board_response(ctx: RequestContext, status_code: int, board: Board) -> dict[str, Any]:
    return _response(status_code, _boards_to_json(ctx, [board])[0], ctx.request_id)


def _board_outcome(
    ctx: RequestContext,
    result: tuple[Board | None, AccessError | None],
    *,
    status_code: int = 200,
) -> dict[str, Any]:
    board, err = result
    if err:
        return _access_error(err, ctx.request_id)
    assert board is not None
    return _board_response(ctx, status_code, board)


def _list_owned(ctx: RequestContext) -> dict[str, Any]:
    boards = board_access.list_owned_boards(ctx.store, ctx.actor_sub)
    return _response(200, {"items": _boards_to_json(ctx, boards)}, ctx.request_id)


def _list_shared(ctx: RequestContext) -> dict[str, Any]:
    boards = board_access.list_shared_boards(ctx.store, ctx.actor_sub)
    return _response(200, {"items": _boards_to_json(ctx, boards)}, ctx.request_id)


def _get_board(ctx: RequestContext, board_id: str) -> dict[str, Any]:
    return _board_outcome(ctx, board_access.get_board(ctx.store, ctx.actor_sub, board_id))


def _create_board(ctx: RequestContext, body: dict[str, Any]) -> dict[str, Any]:
    result = board_access.create_board(ctx.store, ctx.actor_sub, body.get("name"))
    return _board_outcome(ctx, result, status_code=201)


def _share_board(ctx: RequestContext, board_id: str, body: dict[str, Any]) -> dict[str, Any]:
    result = board_access.share_board(ctx.store, ctx.actor_sub, board_id, body.get("userEmail"))
    return _board_outcome(ctx, result)


def _add_task(ctx: RequestContext, board_id: str, body: dict[str, Any]) -> dict[str, Any]:
    result = board_access.add_task(
        ctx.store,
        ctx.actor_sub,
        board_id,
        body.get("title"),
        body.get("description"),
    )
    return _board_outcome(ctx, result, status_code=201)


def _update_task(ctx: RequestContext, board_id: str, task_id: str, body: dict[str, Any]) -> dict[str, Any]:
    result = board_access.update_task(ctx.store, ctx.actor_sub, board_id, task_id, body)
    return _board_outcome(ctx, result)


def _delete_task(ctx: RequestContext, board_id: str, task_id: str) -> dict[str, Any]:
    result = board_access.delete_task(ctx.store, ctx.actor_sub, board_id, task_id)
    return _board_outcome(ctx, result)


def _me(ctx: RequestContext) -> dict[str, Any]:
    user = ctx.store.get_user(ctx.actor_sub)
    if user is None:
        return _error(404, "PROFILE_NOT_FOUND", "no profile for caller", ctx.request_id)
    return _response(
        200,
        {
            "userId": user.user_id,
            "username": user.username,
            "email": user.email,
            "createdAt": user.created_at,
        },
        ctx.request_id,
    )


def _route(event: dict[str, Any], ctx: RequestContext, method: str, segments: list[str]) -> dict[str, Any]:
    if segments == [API_PREFIX, "me"] and method == "GET":
        return _me(ctx)

    if len(segments) < 2 or segments[0] != API_PREFIX or segments[1] != "boards":
        return _error(404, "NOT_FOUND", f"route not found: {method} /{'/'.join(segments)}", ctx.request_id)

    rest = segments[2:]
    body: dict[str, Any] = {}
    if method in {"POST", "PUT"}:
        parsed, err = _parse_body(event)
        if err:
            return _error(400, "INVALID_BODY", err, ctx.request_id)
        assert parsed is not None
        body = parsed

    # /v1/boards
    if not rest:
        if method == "GET":
            return _list_owned(ctx)
        if method == "POST":
            return _create_board(ctx, body)

    # /v1/boards/shared
    elif rest == ["shared"]:
        if method == "GET":
            return _list_shared(ctx)

    # /v1/boards/{boardId}
    elif len(rest) == 1:
        if method == "GET":
            return _get_board(ctx, rest[0])

    # /v1/boards/{boardId}/share
    elif len(rest) == 2 and rest[1] == "share":
        if method == "POST":
            return _share_board(ctx, rest[0], body)

    # /v1/boards/{boardId}/tasks
    elif len(rest) == 2 and rest[1] == "tasks":
        if method == "POST":
            return _add_task(ctx, rest[0], body)

    # /v1/boards/{boardId}/tasks/{taskId}
    elif len(rest) == 3 and rest[1] == "tasks":
        if method == "PUT":
            return _update_task(ctx, rest[0], rest[2], body)
        if method == "DELETE":
            return _delete_task(ctx, rest[0], rest[2])

    return _error(404, "NOT_FOUND", f"route not found: {method} /{'/'.join(segments)}", ctx.request_id)


def handler(event: dict[str, Any], _context: Any) -> dict[str, Any]:
    start = time.time()
    request_id = _request_id(event)
    method = str(event.get("httpMethod") or "").upper()
    path = _path(event)
    segments = [s for s in path.split("/") if s]

    wide_event: dict[str, Any] = {
        "event": "shared_boards_request",
        "schema_version": SCHEMA_VERSION,
        "ts": _now_iso(),
        "request_id": request_id,
        "method": method,
        "path": path,
    }
    if len(segments) >= 3 and segments[1] == "boards" and segments[2] != "shared":
        wide_event["board_id"] = segments[2]

    out: dict[str, Any] | None = None
    try:
        if not BOARDS_TABLE_NAME or not USERS_TABLE_NAME:
            out = _error(500, "MISCONFIGURED", "boards table env vars are required", request_id)
            return out

        actor_sub = _actor_sub(event)
        wide_event["actor_sub"] = actor_sub
        if not actor_sub:
            out = _error(401, "UNAUTHORIZED", "missing authorizer claims", request_id)
            return out

        ctx = RequestContext(
            request_id=request_id,
            actor_sub=actor_sub,
            store=_store(),
        )
        out = _route(event, ctx, method, segments)
        return out
    except ClientError as e:
        wide_event["error"] = {"type": type(e).__name__, "message": str(e)}
        out = _error(500, "DDB_ERROR", str(e), request_id)
        return out
    except Exception as e:
        wide_event["error"] = {"type": type(e).__name__, "message": str(e)}
        out = _error(500, "INTERNAL_ERROR", str(e), request_id)
        return out
    finally:
        status_code = int(out["statusCode"]) if out else 500
        wide_event["status_code"] = status_code
        if status_code < 400:
            wide_event["outcome"] = "success"
        elif status_code == 401:
            wide_event["outcome"] = "unauthorized"
        elif status_code == 404:
            wide_event["outcome"] = "not_found"
        elif status_code < 500:
            wide_event["outcome"] = "rejected"
        else:
            wide_event["outcome"] = "error"
        wide_event["duration_ms"] = int((time.time() - start) * 1000)
        print(json.dumps(wide_event, separators=(",", ":"), sort_keys=True))
