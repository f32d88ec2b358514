from __future__ import annotations

from appprompt.security import create_access_token


def build_auth_headers(user_id: int) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}
