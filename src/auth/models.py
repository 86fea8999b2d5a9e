from __future__ import annotations

from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class User(BaseModel):
    """
    Identity record returned by `POST /auth/login` under `usuario`.

    Fields
    - id: user id as issued by the API (numeric or opaque string).
    - name: display name (may be absent; UI falls back to "Usuario").
    - email: login email.

    Notes
    - Extra fields sent by the API are retained so they survive a restart.
    """

    model_config = ConfigDict(extra="allow")

    id: Optional[Union[int, str]] = Field(default=None, description="User id")
    name: Optional[str] = Field(default=None, description="Display name")
    email: Optional[str] = Field(default=None, description="Login email")

    @property
    def display_name(self) -> str:
        return self.name or "Usuario"


class Session(BaseModel):
    """An authenticated user + bearer token pair.

    A Session only exists with a non-empty token; whether the token is still
    valid server-side is discovered by the next API call.
    """

    model_config = ConfigDict(frozen=True)

    user: User
    token: str

    @field_validator("token")
    @classmethod
    def _token_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("token must be a non-empty string")
        return v
