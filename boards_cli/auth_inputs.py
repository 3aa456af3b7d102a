from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Sequence


class AuthInputError(ValueError):
    """Raised when CLI auth inputs are missing or conflicting."""


class InvalidTokenShapeError(AuthInputError):
    """Raised when a supplied token is not in JWT shape."""


class PreflightValidationError(AuthInputError):
    """Raised when strict client-side preflight validation fails."""


@dataclass(frozen=True)
class BasicCredentials:
    username: str
    password: str


@dataclass(frozen=True)
class BoardsRequestAuth:
    endpoint: str
    id_token: str


def _require_non_empty(val: str | None, *, name: str, hint: str) -> str:
    out = (val or "").strip()
    if not out:
        raise AuthInputError(f"missing {name} ({hint})")
    return out


def resolve_basic_credentials(
    *,
    username: str | None,
    password: str | None,
    env_or_none: Callable[..., str | None],
    username_env_names: Sequence[str] = ("BOARDS_COGNITO_USERNAME",),
    password_env_names: Sequence[str] = ("BOARDS_COGNITO_PASSWORD",),
) -> BasicCredentials:
    username_hint_env = str(username_env_names[0]).strip() if username_env_names else "BOARDS_COGNITO_USERNAME"
    password_hint_env = str(password_env_names[0]).strip() if password_env_names else "BOARDS_COGNITO_PASSWORD"
    resolved_username = _require_non_empty(
        username or env_or_none(*username_env_names),
        name="username",
        hint=f"--username or env {username_hint_env}",
    )
    resolved_password = _require_non_empty(
        password or env_or_none(*password_env_names),
        name="password",
        hint=f"--password or env {password_hint_env}",
    )
    return BasicCredentials(username=resolved_username, password=resolved_password)


def preflight_boards_request(
    *,
    endpoint: str,
    id_token: str,
    expected_base_path: str | None = "/v1",
) -> BoardsRequestAuth:
    """Reject obviously wrong endpoint/token pairs before any network call."""
    endpoint_value = _require_non_empty(
        endpoint,
        name="boards endpoint",
        hint="pass --endpoint, set BOARDS_ENDPOINT, or deploy the stack output BoardsInvokeUrl",
    ).rstrip("/")

    if not endpoint_value.startswith(("https://", "http://")):
        raise PreflightValidationError(f"boards endpoint must be an http(s) URL; got {endpoint_value!r}")

    if expected_base_path:
        marker = expected_base_path.strip()
        if marker and not endpoint_value.endswith(marker) and f"{marker}/" not in endpoint_value:
            raise PreflightValidationError(
                f"boards endpoint must include {marker!r}; got {endpoint_value!r}"
            )

    token_value = _require_non_empty(
        id_token,
        name="Cognito ID token",
        hint="run 'boards login' or set BOARDS_ID_TOKEN",
    )
    parts = token_value.split(".")
    if len(parts) != 3 or any(not p.strip() for p in parts):
        raise InvalidTokenShapeError(
            "Cognito ID token is not a JWT (expected 3 dot-separated segments)"
        )

    return BoardsRequestAuth(endpoint=endpoint_value, id_token=token_value)
