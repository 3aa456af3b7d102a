from __future__ import annotations

import json
import os
import time
from datetime import datetime, timezone
from typing import Any

import board_store
from board_access import User

SCHEMA_VERSION = os.environ.get("BOARDS_SCHEMA_VERSION", "2026-10-01")
CONFIRM_SIGN_UP = "PostConfirmation_ConfirmSignUp"


def _now_iso() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def _user_from_event(event: dict[str, Any]) -> User:
    request = event.get("request") or {}
    attrs = request.get("userAttributes") if isinstance(request, dict) else None
    if not isinstance(attrs, dict):
        attrs = {}
    sub = str(attrs.get("sub") or "").strip()
    email = board_store.normalize_email(str(attrs.get("email") or ""))
    username = str(attrs.get("preferred_username") or event.get("userName") or "").strip()
    return User(user_id=sub, email=email, username=username or email, created_at=_now_iso())


def handler(event: dict[str, Any], _context: Any) -> dict[str, Any]:
    """Cognito post-confirmation trigger: make the new user shareable by email.

    Cognito expects the event back. Raising fails the confirmation, which is
    what we want when the profile cannot be written.
    """
    start = time.time()
    trigger = str(event.get("triggerSource") or "")
    wide_event: dict[str, Any] = {
        "event": "shared_boards_user_sync",
        "schema_version": SCHEMA_VERSION,
        "ts": _now_iso(),
        "trigger_source": trigger,
        "user_pool_id": str(event.get("userPoolId") or ""),
    }
    try:
        if trigger != CONFIRM_SIGN_UP:
            wide_event["outcome"] = "skipped"
            return event

        if not board_store.USERS_TABLE_NAME:
            wide_event["outcome"] = "misconfigured"
            raise RuntimeError("BOARDS_USERS_TABLE is required")

        user = _user_from_event(event)
        wide_event["sub"] = user.user_id
        if not user.user_id or not user.email:
            wide_event["outcome"] = "invalid_attributes"
            raise ValueError("confirmed user is missing sub or email")

        board_store.DynamoBoardStore().put_user(user)
        wide_event["outcome"] = "success"
        return event
    except Exception as exc:
        wide_event.setdefault("outcome", "error")
        wide_event["error"] = {"type": type(exc).__name__, "message": str(exc)}
        raise
    finally:
        wide_event["duration_ms"] = int((time.time() - start) * 1000)
        # Never log email addresses.
        print(json.dumps(wide_event, separators=(",", ":"), sort_keys=True))
