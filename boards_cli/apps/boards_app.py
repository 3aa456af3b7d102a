from __future__ import annotations

import argparse
import contextlib
import io
import json
import os
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

import click
import typer
from dotenv import load_dotenv
from rich.console import Console

from .. import __version__
from .. import auth_inputs
from ..cli_shared import BOARDS_COGNITO_CLIENT_ID
from ..cli_shared import BOARDS_COGNITO_PASSWORD
from ..cli_shared import BOARDS_COGNITO_USERNAME
from ..cli_shared import BOARDS_CREDS_CACHE
from ..cli_shared import BOARDS_ENDPOINT
from ..cli_shared import BOARDS_ID_TOKEN
from ..cli_shared import BOARDS_NO_AUTO_REFRESH
from ..cli_shared import DEFAULT_STACK_NAME
from ..cli_shared import GlobalOpts
from ..cli_shared import OpError
from ..cli_shared import UsageError
from ..cli_shared import _default_creds_cache_path
from ..cli_shared import _env_or_none
from ..cli_shared import _eprint
from ..cli_shared import _jwt_payload
from ..cli_shared import _print_json
from ..cli_shared import _read_json_file
from ..cli_shared import _session
from ..cli_shared import _stack_output_value
from ..cli_shared import _truthy
from ..cli_shared import _write_secure_json

SESSION_KIND = "shared-boards.session.v1"
TOKEN_EXPIRY_SKEW_SECONDS = 60


def _namespace(**kwargs: Any) -> argparse.Namespace:
    return argparse.Namespace(**kwargs)


def _http_request(
    *,
    method: str,
    url: str,
    headers: dict[str, str],
    body: bytes | None = None,
    timeout_seconds: int = 30,
) -> tuple[int, dict[str, str], bytes]:
    req = Request(url, data=body, method=str(method).upper())
    for k, v in headers.items():
        req.add_header(k, v)
    try:
        with urlopen(req, timeout=timeout_seconds) as resp:
            status = getattr(resp, "status", 200)
            hdrs = {k.lower(): v for k, v in dict(resp.headers).items()}
            data = resp.read()
            return int(status), hdrs, data
    except HTTPError as e:
        hdrs = {k.lower(): v for k, v in dict(e.headers).items()}
        data = e.read() if hasattr(e, "read") else b""
        return int(getattr(e, "code", 0) or 0), hdrs, data
    except URLError as e:
        raise OpError(f"http request failed: {e}") from e


def _parse_iso8601(raw: str) -> datetime | None:
    s = str(raw or "").strip()
    if not s:
        return None
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


# Session cache


def _cache_file(g: GlobalOpts) -> Path:
    raw = (g.creds_cache_path or "").strip() or _default_creds_cache_path()
    return Path(raw).expanduser().resolve()


def _load_session_doc(g: GlobalOpts) -> dict[str, Any]:
    doc = _read_json_file(_cache_file(g))
    if doc and str(doc.get("kind") or "") != SESSION_KIND:
        raise UsageError(f"unrecognized session cache format in {_cache_file(g)} (run 'boards login')")
    return doc


def _save_session_doc(g: GlobalOpts, doc: dict[str, Any]) -> Path:
    path = _cache_file(g)
    _write_secure_json(path=path, obj=doc)
    return path


def _token_expired(id_token: str, *, now: float | None = None) -> bool:
    exp = _jwt_payload(id_token).get("exp")
    if exp is None:
        return False
    try:
        exp_s = float(exp)
    except (TypeError, ValueError):
        return True
    current = time.time() if now is None else now
    return current >= exp_s - TOKEN_EXPIRY_SKEW_SECONDS


# Cognito (auth collaborator)


def _cognito_initiate_auth(*, client_id: str, flow: str, params: dict[str, str]) -> dict[str, Any]:
    c = _session().client("cognito-idp")
    try:
        resp = c.initiate_auth(ClientId=client_id, AuthFlow=flow, AuthParameters=params)
    except Exception as e:
        raise OpError(f"cognito initiate-auth failed: {e}") from e
    auth = resp.get("AuthenticationResult")
    if not isinstance(auth, dict) or not str(auth.get("IdToken") or "").strip():
        challenge = str(resp.get("ChallengeName") or "").strip()
        if challenge:
            raise OpError(f"cognito returned challenge {challenge}, which boards login does not handle")
        raise OpError("missing IdToken in Cognito response")
    return auth


def _resolve_client_id(client_id: str | None, g: GlobalOpts, doc: dict[str, Any]) -> str:
    resolved = (client_id or _env_or_none(BOARDS_COGNITO_CLIENT_ID) or str(doc.get("clientId") or "")).strip()
    if resolved:
        return resolved
    from_stack = _stack_output_value(_session(), stack=g.stack, key="UserPoolClientId")
    if not from_stack:
        raise UsageError(
            f"missing Cognito app client id (--client-id, env {BOARDS_COGNITO_CLIENT_ID}, "
            f"or stack output UserPoolClientId on {g.stack!r})"
        )
    return from_stack


def _resolve_endpoint(g: GlobalOpts, doc: dict[str, Any]) -> str:
    endpoint = (g.endpoint or str(doc.get("endpoint") or "")).strip()
    if endpoint:
        return endpoint
    from_stack = _stack_output_value(_session(), stack=g.stack, key="BoardsInvokeUrl")
    return (from_stack or "").strip()


def _refresh_session(g: GlobalOpts, doc: dict[str, Any]) -> dict[str, Any]:
    refresh_token = str(doc.get("refreshToken") or "").strip()
    client_id = str(doc.get("clientId") or "").strip()
    if not refresh_token or not client_id:
        raise UsageError("cached ID token expired and no refresh token is cached (run 'boards login')")
    auth = _cognito_initiate_auth(
        client_id=client_id,
        flow="REFRESH_TOKEN_AUTH",
        params={"REFRESH_TOKEN": refresh_token},
    )
    out = dict(doc)
    out["idToken"] = str(auth.get("IdToken") or "")
    # Cognito does not rotate refresh tokens on REFRESH_TOKEN_AUTH unless configured to.
    out["refreshToken"] = str(auth.get("RefreshToken") or refresh_token)
    out["savedAt"] = datetime.now(timezone.utc).isoformat()
    _save_session_doc(g, out)
    return out


def _boards_auth(g: GlobalOpts) -> tuple[str, str]:
    doc = _load_session_doc(g)
    id_token = (_env_or_none(BOARDS_ID_TOKEN) or "").strip()
    if not id_token:
        id_token = str(doc.get("idToken") or "").strip()
        if not id_token:
            raise UsageError("not logged in (run 'boards login' or set BOARDS_ID_TOKEN)")
        if _token_expired(id_token):
            if not g.auto_refresh:
                raise UsageError("cached ID token expired (run 'boards login')")
            doc = _refresh_session(g, doc)
            id_token = str(doc.get("idToken") or "").strip()

    endpoint = _resolve_endpoint(g, doc)
    try:
        preflight = auth_inputs.preflight_boards_request(endpoint=endpoint, id_token=id_token)
    except auth_inputs.AuthInputError as e:
        raise UsageError(str(e)) from e
    return preflight.endpoint, preflight.id_token


def _boards_request(
    *,
    method: str,
    endpoint: str,
    id_token: str,
    path: str,
    body_obj: dict[str, Any] | None = None,
) -> dict[str, Any]:
    ep = endpoint.rstrip("/")
    p = path if path.startswith("/") else f"/{path}"
    url = f"{ep}{p}"

    body_bytes = None
    headers = {
        "authorization": f"Bearer {id_token}",
    }
    if body_obj is not None:
        body_bytes = json.dumps(body_obj, separators=(",", ":")).encode("utf-8")
        headers["content-type"] = "application/json"

    status, _hdrs, data = _http_request(
        method=method,
        url=url,
        headers=headers,
        body=body_bytes,
    )
    text = data.decode("utf-8", errors="replace")
    parsed: Any
    try:
        parsed = json.loads(text) if text else {}
    except Exception:
        parsed = {"raw": text}

    if status < 200 or status >= 300:
        code = ""
        if isinstance(parsed, dict):
            msg = str(parsed.get("message") or parsed.get("error") or text).strip()
            code = str(parsed.get("errorCode") or "").strip()
        else:
            msg = str(parsed)
        detail = f" code={code}" if code else ""
        raise OpError(f"boards request failed: status={status}{detail} method={method} path={p} message={msg}")

    if isinstance(parsed, dict):
        return parsed
    return {"result": parsed}


# Human-readable output


def _wants_json(args: argparse.Namespace) -> bool:
    return bool(getattr(args, "json_output", False))


def _cell(value: Any) -> str:
    text = str(value or "").strip()
    if not text:
        return "-"
    return text


def _local_short_timestamp(value: Any) -> str:
    raw = str(value or "").strip()
    if not raw:
        return "-"
    dt = _parse_iso8601(raw)
    if dt is None:
        return raw
    return dt.astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _user_label(user: Any) -> str:
    if not isinstance(user, dict):
        return _cell(user)
    name = str(user.get("username") or "").strip()
    email = str(user.get("email") or "").strip()
    if name and email and name != email:
        return f"{name} <{email}>"
    return _cell(name or email or user.get("userId"))


def _print_table(*, headers: list[str], rows: list[list[str]], empty_message: str) -> None:
    if not rows:
        sys.stdout.write(f"{empty_message}\n")
        return
    widths: list[int] = [len(h) for h in headers]
    for row in rows:
        for i, val in enumerate(row):
            widths[i] = max(widths[i], len(val))
    sys.stdout.write("  ".join(h.ljust(widths[i]) for i, h in enumerate(headers)) + "\n")
    sys.stdout.write("  ".join("-" * widths[i] for i in range(len(headers))) + "\n")
    for row in rows:
        sys.stdout.write("  ".join(row[i].ljust(widths[i]) for i in range(len(headers))) + "\n")


def _tasks_of(board: dict[str, Any]) -> list[dict[str, Any]]:
    tasks = board.get("tasks")
    if not isinstance(tasks, list):
        return []
    return [t for t in tasks if isinstance(t, dict)]


def _print_board_list(out: dict[str, Any]) -> None:
    count = 0
    items = out.get("items")
    if isinstance(items, list):
        for board in items:
            if not isinstance(board, dict):
                continue
            count += 1
            tasks = _tasks_of(board)
            done = sum(1 for t in tasks if t.get("completed") is True)
            shared = board.get("sharedWith")
            shared_count = len(shared) if isinstance(shared, list) else 0
            sys.stdout.write(
                f"- {_cell(board.get('boardId'))} \"{_cell(board.get('name'))}\" "
                f"owner={_user_label(board.get('owner'))} tasks={done}/{len(tasks)} shared={shared_count}\n"
            )
    if count == 0:
        sys.stdout.write("No boards.\n")
    sys.stdout.write(f"items: {count}\n")


def _print_board_detail(board: dict[str, Any]) -> None:
    sys.stdout.write(f"board: {_cell(board.get('boardId'))}\n")
    sys.stdout.write(f"name: \"{_cell(board.get('name'))}\"\n")
    sys.stdout.write(f"owner: {_user_label(board.get('owner'))}\n")
    shared = board.get("sharedWith")
    members = [_user_label(u) for u in shared] if isinstance(shared, list) else []
    sys.stdout.write(f"shared with: {', '.join(members) if members else '-'}\n")
    rows = [
        [
            _cell(t.get("taskId")),
            "x" if t.get("completed") is True else " ",
            _cell(t.get("title")),
            _local_short_timestamp(t.get("updatedAt") or t.get("createdAt")),
        ]
        for t in _tasks_of(board)
    ]
    _print_table(headers=["taskId", "done", "title", "updated"], rows=rows, empty_message="No tasks.")


# Commands


def cmd_login(args: argparse.Namespace, g: GlobalOpts) -> int:
    try:
        creds = auth_inputs.resolve_basic_credentials(
            username=args.username,
            password=args.password,
            env_or_none=_env_or_none,
            username_env_names=(BOARDS_COGNITO_USERNAME,),
            password_env_names=(BOARDS_COGNITO_PASSWORD,),
        )
    except auth_inputs.AuthInputError as e:
        raise UsageError(str(e)) from e

    client_id = _resolve_client_id(args.client_id, g, {})
    auth = _cognito_initiate_auth(
        client_id=client_id,
        flow="USER_PASSWORD_AUTH",
        params={"USERNAME": creds.username, "PASSWORD": creds.password},
    )
    id_token = str(auth.get("IdToken") or "")
    exp = _jwt_payload(id_token).get("exp")
    doc = {
        "kind": SESSION_KIND,
        "clientId": client_id,
        "username": creds.username,
        "endpoint": g.endpoint,
        "idToken": id_token,
        "refreshToken": str(auth.get("RefreshToken") or ""),
        "expiresAt": datetime.fromtimestamp(float(exp), tz=timezone.utc).isoformat() if exp else "",
        "savedAt": datetime.now(timezone.utc).isoformat(),
    }
    path = _save_session_doc(g, doc)

    if _wants_json(args):
        _print_json(
            {"username": creds.username, "expiresAt": doc["expiresAt"], "cachePath": str(path)},
            pretty=g.pretty,
        )
        return 0
    sys.stdout.write(f"logged in as {creds.username}\n")
    if not g.quiet:
        _eprint(f"session cached at {path}")
    return 0


def cmd_whoami(args: argparse.Namespace, g: GlobalOpts) -> int:
    endpoint, id_token = _boards_auth(g)
    out = _boards_request(method="GET", endpoint=endpoint, id_token=id_token, path="/me")
    if _wants_json(args):
        _print_json(out, pretty=g.pretty)
        return 0
    label = _user_label(out)
    sys.stdout.write(f"user: {label} id={_cell(out.get('userId'))}\n")
    return 0


def cmd_list(args: argparse.Namespace, g: GlobalOpts) -> int:
    endpoint, id_token = _boards_auth(g)
    out = _boards_request(method="GET", endpoint=endpoint, id_token=id_token, path="/boards")
    if _wants_json(args):
        _print_json(out, pretty=g.pretty)
        return 0
    _print_board_list(out)
    return 0


def cmd_shared(args: argparse.Namespace, g: GlobalOpts) -> int:
    endpoint, id_token = _boards_auth(g)
    out = _boards_request(method="GET", endpoint=endpoint, id_token=id_token, path="/boards/shared")
    if _wants_json(args):
        _print_json(out, pretty=g.pretty)
        return 0
    _print_board_list(out)
    return 0


def cmd_show(args: argparse.Namespace, g: GlobalOpts) -> int:
    endpoint, id_token = _boards_auth(g)
    out = _boards_request(method="GET", endpoint=endpoint, id_token=id_token, path=f"/boards/{args.board_id}")
    if _wants_json(args):
        _print_json(out, pretty=g.pretty)
        return 0
    _print_board_detail(out)
    return 0


def cmd_create(args: argparse.Namespace, g: GlobalOpts) -> int:
    name = str(args.name or "").strip()
    if not name:
        raise UsageError("board name cannot be empty")
    endpoint, id_token = _boards_auth(g)
    out = _boards_request(
        method="POST",
        endpoint=endpoint,
        id_token=id_token,
        path="/boards",
        body_obj={"name": name},
    )
    if _wants_json(args):
        _print_json(out, pretty=g.pretty)
        return 0
    msg = f"created board {_cell(out.get('boardId'))}"
    if out.get("name"):
        msg += f' name="{out.get("name")}"'
    sys.stdout.write(msg + "\n")
    return 0


def cmd_share(args: argparse.Namespace, g: GlobalOpts) -> int:
    email = str(args.email or "").strip()
    if not email:
        raise UsageError("email cannot be empty")
    endpoint, id_token = _boards_auth(g)
    out = _boards_request(
        method="POST",
        endpoint=endpoint,
        id_token=id_token,
        path=f"/boards/{args.board_id}/share",
        body_obj={"userEmail": email},
    )
    if _wants_json(args):
        _print_json(out, pretty=g.pretty)
        return 0
    shared = out.get("sharedWith")
    count = len(shared) if isinstance(shared, list) else 0
    sys.stdout.write(f"shared board {_cell(out.get('boardId') or args.board_id)} with {email} members={count}\n")
    return 0


def cmd_task_add(args: argparse.Namespace, g: GlobalOpts) -> int:
    title = str(args.title or "").strip()
    if not title:
        raise UsageError("task title cannot be empty")
    body: dict[str, Any] = {"title": title}
    if args.description is not None:
        body["description"] = str(args.description)
    endpoint, id_token = _boards_auth(g)
    out = _boards_request(
        method="POST",
        endpoint=endpoint,
        id_token=id_token,
        path=f"/boards/{args.board_id}/tasks",
        body_obj=body,
    )
    if _wants_json(args):
        _print_json(out, pretty=g.pretty)
        return 0
    tasks = _tasks_of(out)
    # New tasks are appended, so the last one is ours.
    task_id = tasks[-1].get("taskId") if tasks else ""
    sys.stdout.write(f"added task {_cell(task_id)} to board {_cell(out.get('boardId') or args.board_id)}\n")
    return 0


def _task_update(args: argparse.Namespace, g: GlobalOpts, fields: dict[str, Any], verb: str) -> int:
    endpoint, id_token = _boards_auth(g)
    out = _boards_request(
        method="PUT",
        endpoint=endpoint,
        id_token=id_token,
        path=f"/boards/{args.board_id}/tasks/{args.task_id}",
        body_obj=fields,
    )
    if _wants_json(args):
        _print_json(out, pretty=g.pretty)
        return 0
    sys.stdout.write(f"{verb} task {args.task_id} on board {_cell(out.get('boardId') or args.board_id)}\n")
    return 0


def cmd_task_update(args: argparse.Namespace, g: GlobalOpts) -> int:
    fields: dict[str, Any] = {}
    if args.title is not None:
        if not str(args.title).strip():
            raise UsageError("task title cannot be empty")
        fields["title"] = str(args.title).strip()
    if args.description is not None:
        fields["description"] = str(args.description)
    if not fields:
        raise UsageError("nothing to update (pass --title and/or --description)")
    return _task_update(args, g, fields, "updated")


def cmd_task_done(args: argparse.Namespace, g: GlobalOpts) -> int:
    return _task_update(args, g, {"completed": True}, "completed")


def cmd_task_reopen(args: argparse.Namespace, g: GlobalOpts) -> int:
    return _task_update(args, g, {"completed": False}, "reopened")


def cmd_task_delete(args: argparse.Namespace, g: GlobalOpts) -> int:
    endpoint, id_token = _boards_auth(g)
    out = _boards_request(
        method="DELETE",
        endpoint=endpoint,
        id_token=id_token,
        path=f"/boards/{args.board_id}/tasks/{args.task_id}",
    )
    if _wants_json(args):
        _print_json(out, pretty=g.pretty)
        return 0
    sys.stdout.write(f"deleted task {args.task_id} from board {_cell(out.get('boardId') or args.board_id)}\n")
    return 0


# Typer surface


_ERROR_CONSOLE = Console(stderr=True)


def _rich_error(msg: str) -> None:
    _ERROR_CONSOLE.print(f"[bold red]error:[/bold red] {msg}")


def _root_help_text(*, root_app: typer.Typer, prog_name: str) -> str:
    buf = io.StringIO()
    try:
        with contextlib.redirect_stdout(buf):
            try:
                root_app(args=["--help"], prog_name=prog_name, standalone_mode=False)
            except (typer.Exit, click.ClickException):
                pass
    except Exception:
        return ""
    return str(buf.getvalue() or "").strip()


def _render_usage_error_with_help(
    *,
    message: str,
    ctx: click.Context | None = None,
    fallback_help: str = "",
) -> None:
    _rich_error(message)
    help_text = ""
    if isinstance(ctx, click.Context):
        try:
            help_text = str(ctx.get_help() or "").strip()
        except Exception:
            help_text = ""
    if not help_text:
        help_text = str(fallback_help or "").strip()
    if help_text:
        _eprint("")
        _eprint(help_text)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"boards {__version__}")
        raise typer.Exit(code=0)


def _apply_global_env(args: argparse.Namespace) -> GlobalOpts:
    stack = (getattr(args, "stack", None) or _env_or_none("STACK") or DEFAULT_STACK_NAME).strip()
    creds_cache_path = (
        getattr(args, "creds_cache", None)
        or _env_or_none(BOARDS_CREDS_CACHE)
        or _default_creds_cache_path()
    )
    endpoint = (getattr(args, "endpoint", None) or _env_or_none(BOARDS_ENDPOINT) or "").strip()
    auto_refresh = not (
        bool(getattr(args, "no_auto_refresh", False)) or _truthy(os.environ.get(BOARDS_NO_AUTO_REFRESH))
    )
    return GlobalOpts(
        stack=stack,
        pretty=not bool(getattr(args, "plain_json", False)),
        quiet=bool(getattr(args, "quiet", False)),
        creds_cache_path=str(creds_cache_path).strip(),
        auto_refresh=auto_refresh,
        endpoint=endpoint,
    )


app = typer.Typer(
    name="boards",
    help="Shared boards: create boards, add tasks, share them by email.",
    no_args_is_help=True,
    add_completion=False,
)
task_app = typer.Typer(help="Task helpers for a board", no_args_is_help=True)
app.add_typer(task_app, name="task")


@app.callback()
def app_callback(
    ctx: typer.Context,
    json_output: bool = typer.Option(False, "--json", help="Emit raw JSON API responses"),
    endpoint: str | None = typer.Option(
        None,
        "--endpoint",
        help=f"API base URL ending in /v1 (env {BOARDS_ENDPOINT}; default: stack output BoardsInvokeUrl)",
    ),
    creds_cache: str | None = typer.Option(
        None,
        "--creds-cache",
        help=f"Path to the cached session JSON (env override: {BOARDS_CREDS_CACHE})",
    ),
    stack: str | None = typer.Option(
        None,
        "--stack",
        help=f"CloudFormation stack name (default: env STACK or {DEFAULT_STACK_NAME})",
    ),
    no_auto_refresh: bool = typer.Option(
        False,
        "--no-auto-refresh",
        help="Do not refresh an expired cached ID token",
    ),
    plain_json: bool = typer.Option(False, "--plain-json", help="Emit compact JSON output"),
    quiet: bool = typer.Option(False, "--quiet", help="Reduce stderr logging"),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    del version
    ns = _namespace(
        endpoint=endpoint,
        creds_cache=creds_cache,
        stack=stack,
        no_auto_refresh=no_auto_refresh,
        plain_json=plain_json,
        quiet=quiet,
    )
    ctx.obj = {"g": _apply_global_env(ns), "json_output": bool(json_output)}


def _ctx_obj(ctx: typer.Context) -> dict[str, Any]:
    obj = ctx.obj
    return obj if isinstance(obj, dict) else {}


def _invoke(ctx: typer.Context, func: Any, **kwargs: Any) -> None:
    obj = _ctx_obj(ctx)
    g = obj.get("g")
    if not isinstance(g, GlobalOpts):
        g = _apply_global_env(_namespace())
    args = _namespace(json_output=bool(obj.get("json_output", False)), **kwargs)
    try:
        code = int(func(args, g))
    except UsageError as e:
        _render_usage_error_with_help(message=str(e), ctx=ctx)
        raise typer.Exit(code=2)
    except OpError as e:
        _rich_error(str(e))
        raise typer.Exit(code=1)

    if code:
        raise typer.Exit(code=code)


@app.command("login", help="Log in with Cognito username/email and password; caches the session.")
def login(
    ctx: typer.Context,
    username: str | None = typer.Option(None, "--username", help=f"Username or email (env {BOARDS_COGNITO_USERNAME})"),
    password: str | None = typer.Option(None, "--password", help=f"Password (env {BOARDS_COGNITO_PASSWORD})"),
    client_id: str | None = typer.Option(
        None,
        "--client-id",
        help=f"Cognito app client id (env {BOARDS_COGNITO_CLIENT_ID}; default: stack output UserPoolClientId)",
    ),
) -> None:
    _invoke(ctx, cmd_login, username=username, password=password, client_id=client_id)


@app.command("whoami", help="Show the profile of the logged-in user.")
def whoami(ctx: typer.Context) -> None:
    _invoke(ctx, cmd_whoami)


@app.command("list", help="List boards you own.")
def list_boards(ctx: typer.Context) -> None:
    _invoke(ctx, cmd_list)


@app.command("shared", help="List boards shared with you.")
def shared_boards(ctx: typer.Context) -> None:
    _invoke(ctx, cmd_shared)


@app.command("show", help="Show one board with its tasks.")
def show_board(
    ctx: typer.Context,
    board_id: str = typer.Argument(..., help="Board ID"),
) -> None:
    _invoke(ctx, cmd_show, board_id=board_id)


@app.command("create", help="Create a new board.")
def create_board(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Board name"),
) -> None:
    _invoke(ctx, cmd_create, name=name)


@app.command("share", help="Share a board you own with another user by email.")
def share_board(
    ctx: typer.Context,
    board_id: str = typer.Argument(..., help="Board ID"),
    email: str = typer.Argument(..., help="Email of the user to share with"),
) -> None:
    _invoke(ctx, cmd_share, board_id=board_id, email=email)


@task_app.command("add", help="Add a task to a board.")
def task_add(
    ctx: typer.Context,
    board_id: str = typer.Argument(..., help="Board ID"),
    title: str = typer.Argument(..., help="Task title"),
    description: str | None = typer.Option(None, "--description", help="Optional description"),
) -> None:
    _invoke(ctx, cmd_task_add, board_id=board_id, title=title, description=description)


@task_app.command("update", help="Change the title and/or description of a task.")
def task_update(
    ctx: typer.Context,
    board_id: str = typer.Argument(..., help="Board ID"),
    task_id: str = typer.Argument(..., help="Task ID"),
    title: str | None = typer.Option(None, "--title", help="New title"),
    description: str | None = typer.Option(None, "--description", help="New description"),
) -> None:
    _invoke(ctx, cmd_task_update, board_id=board_id, task_id=task_id, title=title, description=description)


@task_app.command("done", help="Mark a task completed.")
def task_done(
    ctx: typer.Context,
    board_id: str = typer.Argument(..., help="Board ID"),
    task_id: str = typer.Argument(..., help="Task ID"),
) -> None:
    _invoke(ctx, cmd_task_done, board_id=board_id, task_id=task_id)


@task_app.command("reopen", help="Mark a completed task incomplete again.")
def task_reopen(
    ctx: typer.Context,
    board_id: str = typer.Argument(..., help="Board ID"),
    task_id: str = typer.Argument(..., help="Task ID"),
) -> None:
    _invoke(ctx, cmd_task_reopen, board_id=board_id, task_id=task_id)


@task_app.command("delete", help="Delete a task (deleting a missing task succeeds).")
def task_delete(
    ctx: typer.Context,
    board_id: str = typer.Argument(..., help="Board ID"),
    task_id: str = typer.Argument(..., help="Task ID"),
) -> None:
    _invoke(ctx, cmd_task_delete, board_id=board_id, task_id=task_id)


def _run_cli(*, root_app: typer.Typer, prog_name: str, argv: list[str] | None = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    # Discover and load .env without overriding already-exported values.
    load_dotenv()
    try:
        result = root_app(args=argv, prog_name=prog_name, standalone_mode=False)
        if result is None:
            return 0
        return int(result)
    except typer.Exit as e:
        return int(e.exit_code)
    except click.ClickException as e:
        if isinstance(e, click.UsageError):
            _render_usage_error_with_help(message=e.format_message(), ctx=getattr(e, "ctx", None))
            return int(e.exit_code)
        _rich_error(e.format_message())
        return int(e.exit_code)
    except UsageError as e:
        _render_usage_error_with_help(
            message=str(e),
            fallback_help=_root_help_text(root_app=root_app, prog_name=prog_name),
        )
        return 2
    except OpError as e:
        _rich_error(str(e))
        return 1


def main(argv: list[str] | None = None) -> int:
    return _run_cli(root_app=app, prog_name="boards", argv=argv)


if __name__ == "__main__":
    raise SystemExit(main())
