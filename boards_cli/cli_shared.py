from __future__ import annotations

import base64
import json
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import boto3


class BoardsCliError(Exception):
    pass


class UsageError(BoardsCliError):
    pass


class OpError(BoardsCliError):
    pass


BOARDS_ENDPOINT = "BOARDS_ENDPOINT"
BOARDS_ID_TOKEN = "BOARDS_ID_TOKEN"
BOARDS_COGNITO_CLIENT_ID = "BOARDS_COGNITO_CLIENT_ID"
BOARDS_COGNITO_USERNAME = "BOARDS_COGNITO_USERNAME"
BOARDS_COGNITO_PASSWORD = "BOARDS_COGNITO_PASSWORD"
BOARDS_CREDS_CACHE = "BOARDS_CREDS_CACHE"
BOARDS_NO_AUTO_REFRESH = "BOARDS_NO_AUTO_REFRESH"
DEFAULT_STACK_NAME = "SharedBoardsStack"


def _eprint(msg: str) -> None:
    print(msg, file=sys.stderr)


@dataclass(frozen=True)
class GlobalOpts:
    stack: str
    pretty: bool
    quiet: bool
    creds_cache_path: str = ""
    auto_refresh: bool = True
    endpoint: str = ""


def _env_or_none(*names: str) -> str | None:
    for n in names:
        v = (os.environ.get(n) or "").strip()
        if v:
            return v
    return None


def _truthy(raw: str | None) -> bool:
    return str(raw or "").strip().lower() in {"1", "true", "yes", "on"}


def _session() -> Any:
    profile = (os.environ.get("AWS_PROFILE") or "").strip() or None
    region = (os.environ.get("AWS_REGION") or "").strip() or None
    return boto3.session.Session(profile_name=profile, region_name=region)


def _cf_outputs(session: Any, *, stack: str) -> list[dict[str, Any]]:
    cf = session.client("cloudformation")
    try:
        resp = cf.describe_stacks(StackName=stack)
    except Exception as e:
        raise OpError(f"cloudformation describe-stacks failed for stack {stack!r}: {e}") from e
    stacks = resp.get("Stacks") or []
    if not stacks:
        raise OpError(f"stack not found: {stack}")
    outputs = stacks[0].get("Outputs") or []
    if not isinstance(outputs, list):
        return []
    return [o for o in outputs if isinstance(o, dict)]


def _stack_output_value(session: Any, *, stack: str, key: str) -> str | None:
    for o in _cf_outputs(session, stack=stack):
        if str(o.get("OutputKey", "")).strip() == key:
            v = str(o.get("OutputValue", "")).strip()
            return v if v else ""
    return None


def _print_json(obj: Any, *, pretty: bool) -> None:
    if pretty:
        sys.stdout.write(json.dumps(obj, indent=2, sort_keys=True) + "\n")
    else:
        sys.stdout.write(json.dumps(obj, separators=(",", ":"), sort_keys=True) + "\n")


def _jwt_payload(token: str) -> dict[str, Any]:
    parts = (token or "").split(".")
    if len(parts) < 2:
        raise OpError("invalid JWT: expected at least 2 dot-separated parts")
    payload_b64 = parts[1]
    payload_b64 += "=" * (-len(payload_b64) % 4)
    try:
        raw = base64.urlsafe_b64decode(payload_b64.encode("utf-8"))
        val = json.loads(raw.decode("utf-8"))
    except Exception as e:
        raise OpError(f"invalid JWT payload: {e}") from e
    if not isinstance(val, dict):
        raise OpError("invalid JWT payload: expected JSON object")
    return val


def _default_creds_cache_path() -> str:
    xdg_state_home = str(_env_or_none("XDG_STATE_HOME") or "").strip()
    if xdg_state_home:
        root = Path(xdg_state_home).expanduser() / "shared-boards"
    elif sys.platform == "darwin":
        root = Path.home() / "Library" / "Application Support" / "shared-boards"
    else:
        root = Path.home() / ".local" / "state" / "shared-boards"
    return str((root / "session.json").resolve())


def _read_json_file(path: Path) -> dict[str, Any]:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError as e:
        raise OpError(f"failed to read {path}: {e}") from e
    try:
        val = json.loads(raw)
    except Exception as e:
        raise OpError(f"invalid JSON in {path}: {e}") from e
    if not isinstance(val, dict):
        raise OpError(f"invalid JSON in {path}: expected object")
    return val


def _write_secure_json(*, path: Path, obj: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(obj, indent=2, sort_keys=True) + "\n", encoding="utf-8")
    try:
        os.chmod(path, 0o600)
    except Exception as e:
        raise OpError(f"failed to apply 0600 permissions to {path}: {e}") from e
