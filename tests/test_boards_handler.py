import base64
import importlib
import json
import sys

from botocore.exceptions import ClientError


def _load_handler(monkeypatch, store=None):
    monkeypatch.setenv("BOARDS_TABLE", "Boards")
    monkeypatch.setenv("BOARDS_USERS_TABLE", "Users")
    monkeypatch.setenv("BOARDS_SCHEMA_VERSION", "2026-10-01")
    if "lambda" not in sys.path:
        sys.path.insert(0, "lambda")
    import boards_handler as mod

    mod = importlib.reload(mod)
    if store is not None:
        monkeypatch.setattr(mod, "_store", lambda: store)
    return mod


def _event(*, method: str, path: str, body=None, sub: str | None = "u1", raw_body: str | None = None):
    rc: dict = {"requestId": "req-1"}
    if sub is not None:
        rc["authorizer"] = {"claims": {"sub": sub, "cognito:username": f"user-{sub}"}}
    return {
        "httpMethod": method,
        "path": path,
        "body": raw_body if raw_body is not None else (json.dumps(body) if body is not None else None),
        "requestContext": rc,
    }


def _call(mod, **kwargs):
    out = mod.handler(_event(**kwargs), None)
    return int(out["statusCode"]), json.loads(out["body"])


def _wide_event(capsys) -> dict:
    lines = [ln for ln in capsys.readouterr().out.splitlines() if ln.strip()]
    return json.loads(lines[-1])


def _create(mod, name="Groceries", sub="u1") -> dict:
    status, body = _call(mod, method="POST", path="/v1/boards", body={"name": name}, sub=sub)
    assert status == 201
    return body


def test_create_board_returns_201_with_populated_owner(monkeypatch, store):
    mod = _load_handler(monkeypatch, store)

    body = _create(mod)

    assert body["name"] == "Groceries"
    assert body["owner"] == {"userId": "u1", "username": "ada", "email": "ada@example.com"}
    assert body["sharedWith"] == []
    assert body["tasks"] == []
    assert body["requestId"] == "req-1"
    assert body["schemaVersion"] == "2026-10-01"
    assert "version" not in body
    assert len(body["boardId"]) == 22


def test_response_headers_disable_caching(monkeypatch, store):
    mod = _load_handler(monkeypatch, store)

    out = mod.handler(_event(method="GET", path="/v1/boards"), None)

    assert out["headers"]["content-type"] == "application/json"
    assert out["headers"]["cache-control"] == "no-store"


def test_missing_claims_is_401(monkeypatch, store, capsys):
    mod = _load_handler(monkeypatch, store)

    status, body = _call(mod, method="GET", path="/v1/boards", sub=None)

    assert status == 401
    assert body["errorCode"] == "UNAUTHORIZED"
    assert _wide_event(capsys)["outcome"] == "unauthorized"


def test_missing_table_env_is_misconfigured(monkeypatch, store):
    monkeypatch.delenv("BOARDS_TABLE", raising=False)
    mod = _load_handler(monkeypatch, store)
    monkeypatch.setattr(mod, "BOARDS_TABLE_NAME", "")

    status, body = _call(mod, method="GET", path="/v1/boards")

    assert status == 500
    assert body["errorCode"] == "MISCONFIGURED"


def test_list_owned_and_shared_are_wrapped_in_items(monkeypatch, store):
    mod = _load_handler(monkeypatch, store)
    board = _create(mod)
    _create(mod, name="Other", sub="u3")
    _call(mod, method="POST", path=f"/v1/boards/{board['boardId']}/share", body={"userEmail": "bob@example.com"})

    status, owned = _call(mod, method="GET", path="/v1/boards")
    assert status == 200
    assert [b["name"] for b in owned["items"]] == ["Groceries"]

    status, shared = _call(mod, method="GET", path="/v1/boards/shared", sub="u2")
    assert status == 200
    assert [b["boardId"] for b in shared["items"]] == [board["boardId"]]
    assert shared["items"][0]["sharedWith"][0]["username"] == "bob"


def test_share_flow_and_conflict(monkeypatch, store):
    mod = _load_handler(monkeypatch, store)
    board = _create(mod)
    path = f"/v1/boards/{board['boardId']}/share"

    status, body = _call(mod, method="POST", path=path, body={"userEmail": "BOB@example.com"})
    assert status == 200
    assert body["sharedWith"] == [{"userId": "u2", "username": "bob", "email": "bob@example.com"}]

    status, body = _call(mod, method="POST", path=path, body={"userEmail": "bob@example.com"})
    assert status == 409
    assert body["errorCode"] == "ALREADY_SHARED"

    status, body = _call(mod, method="POST", path=path, body={"userEmail": "ghost@example.com"})
    assert status == 404
    assert body["errorCode"] == "USER_NOT_FOUND"

    status, body = _call(mod, method="POST", path=path, body={})
    assert status == 400
    assert body["errorCode"] == "INVALID_EMAIL"


def test_forbidden_board_looks_missing(monkeypatch, store):
    mod = _load_handler(monkeypatch, store)
    board = _create(mod)

    forbidden_status, forbidden = _call(mod, method="GET", path=f"/v1/boards/{board['boardId']}", sub="u3")
    missing_status, missing = _call(mod, method="GET", path="/v1/boards/nope", sub="u3")

    assert forbidden_status == missing_status == 404
    assert forbidden["errorCode"] == missing["errorCode"] == "BOARD_NOT_FOUND"

    status, body = _call(
        mod,
        method="POST",
        path=f"/v1/boards/{board['boardId']}/tasks",
        body={"title": "Eggs"},
        sub="u3",
    )
    assert status == 404
    assert body["errorCode"] == "BOARD_NOT_FOUND"

    status, body = _call(mod, method="POST", path=f"/v1/boards/{board['boardId']}/tasks", body={"title": "Milk"})
    task_id = body["tasks"][0]["taskId"]
    status, body = _call(mod, method="DELETE", path=f"/v1/boards/{board['boardId']}/tasks/{task_id}", sub="u3")
    assert status == 404
    assert body["errorCode"] == "BOARD_NOT_FOUND"
    assert [t.task_id for t in store.boards[board["boardId"]].tasks] == [task_id]


def test_oversized_board_id_is_404_without_store_read(monkeypatch, store):
    mod = _load_handler(monkeypatch, store)

    def refuse(_board_id):
        raise AssertionError("malformed ids must not reach the table")

    monkeypatch.setattr(store, "get_board", refuse)
    for board_id in ("a" * 3000, "not-an-id"):
        status, body = _call(mod, method="GET", path=f"/v1/boards/{board_id}", sub="u3")
        assert status == 404
        assert body["errorCode"] == "BOARD_NOT_FOUND"

    status, body = _call(mod, method="DELETE", path=f"/v1/boards/{'a' * 3000}/tasks/t1")
    assert status == 404
    assert body["errorCode"] == "BOARD_NOT_FOUND"


def test_task_lifecycle(monkeypatch, store, capsys):
    mod = _load_handler(monkeypatch, store)
    board = _create(mod)
    base = f"/v1/boards/{board['boardId']}/tasks"

    status, body = _call(mod, method="POST", path=base, body={"title": "Milk", "description": "2L"})
    assert status == 201
    task = body["tasks"][0]
    assert task["title"] == "Milk"
    assert task["description"] == "2L"
    assert task["completed"] is False

    status, body = _call(mod, method="PUT", path=f"{base}/{task['taskId']}", body={"completed": True})
    assert status == 200
    assert body["tasks"][0]["completed"] is True
    assert body["tasks"][0]["taskId"] == task["taskId"]

    status, body = _call(mod, method="PUT", path=f"{base}/missing", body={"title": "x"})
    assert status == 404
    assert body["errorCode"] == "TASK_NOT_FOUND"

    status, body = _call(mod, method="DELETE", path=f"{base}/{task['taskId']}")
    assert status == 200
    assert body["tasks"] == []

    status, body = _call(mod, method="DELETE", path=f"{base}/{task['taskId']}")
    assert status == 200
    assert body["tasks"] == []

    wide = _wide_event(capsys)
    assert wide["event"] == "shared_boards_request"
    assert wide["board_id"] == board["boardId"]
    assert wide["method"] == "DELETE"
    assert wide["outcome"] == "success"
    assert wide["actor_sub"] == "u1"


def test_add_task_validation_is_400(monkeypatch, store):
    mod = _load_handler(monkeypatch, store)
    board = _create(mod)

    status, body = _call(mod, method="POST", path=f"/v1/boards/{board['boardId']}/tasks", body={"title": "  "})

    assert status == 400
    assert body["errorCode"] == "INVALID_TITLE"


def test_invalid_json_body_is_400(monkeypatch, store, capsys):
    mod = _load_handler(monkeypatch, store)

    status, body = _call(mod, method="POST", path="/v1/boards", raw_body="{not json")
    assert status == 400
    assert body["errorCode"] == "INVALID_BODY"
    assert _wide_event(capsys)["outcome"] == "rejected"

    status, body = _call(mod, method="POST", path="/v1/boards", raw_body="[1, 2]")
    assert status == 400
    assert body["errorCode"] == "INVALID_BODY"


def test_base64_body_is_decoded(monkeypatch, store):
    mod = _load_handler(monkeypatch, store)
    event = _event(method="POST", path="/v1/boards")
    event["body"] = base64.b64encode(json.dumps({"name": "Encoded"}).encode("utf-8")).decode("ascii")
    event["isBase64Encoded"] = True

    out = mod.handler(event, None)

    assert int(out["statusCode"]) == 201
    assert json.loads(out["body"])["name"] == "Encoded"


def test_unknown_route_is_404(monkeypatch, store, capsys):
    mod = _load_handler(monkeypatch, store)

    status, body = _call(mod, method="PATCH", path="/v1/boards")

    assert status == 404
    assert body["errorCode"] == "NOT_FOUND"
    assert _wide_event(capsys)["outcome"] == "not_found"


def test_stage_prefix_is_ignored(monkeypatch, store):
    mod = _load_handler(monkeypatch, store)

    status, body = _call(mod, method="GET", path="/prod/v1/boards")

    assert status == 200
    assert body["items"] == []


def test_me_returns_profile_or_404(monkeypatch, store):
    mod = _load_handler(monkeypatch, store)

    status, body = _call(mod, method="GET", path="/v1/me", sub="u2")
    assert status == 200
    assert body["userId"] == "u2"
    assert body["email"] == "bob@example.com"

    status, body = _call(mod, method="GET", path="/v1/me", sub="stranger")
    assert status == 404
    assert body["errorCode"] == "PROFILE_NOT_FOUND"


def test_stale_save_is_409_board_conflict(monkeypatch, store):
    mod = _load_handler(monkeypatch, store)
    board = _create(mod)

    real_get = store.get_board

    def stale_get(board_id):
        b = real_get(board_id)
        b.version = 0
        return b

    monkeypatch.setattr(store, "get_board", stale_get)
    status, body = _call(mod, method="POST", path=f"/v1/boards/{board['boardId']}/tasks", body={"title": "Milk"})

    assert status == 409
    assert body["errorCode"] == "BOARD_CONFLICT"


def test_dynamodb_failure_is_500_ddb_error(monkeypatch, store, capsys):
    mod = _load_handler(monkeypatch, store)

    def boom(_user_id):
        raise ClientError({"Error": {"Code": "ProvisionedThroughputExceededException", "Message": "slow down"}}, "Query")

    monkeypatch.setattr(store, "list_boards_owned_by", boom)
    status, body = _call(mod, method="GET", path="/v1/boards")

    assert status == 500
    assert body["errorCode"] == "DDB_ERROR"
    wide = _wide_event(capsys)
    assert wide["outcome"] == "error"
    assert wide["error"]["type"] == "ClientError"


def test_unexpected_failure_is_500_internal_error(monkeypatch, store):
    mod = _load_handler(monkeypatch, store)

    def boom(_user_id):
        raise RuntimeError("kaput")

    monkeypatch.setattr(store, "get_user", boom)
    status, body = _call(mod, method="GET", path="/v1/me")

    assert status == 500
    assert body["errorCode"] == "INTERNAL_ERROR"
