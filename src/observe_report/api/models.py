"""Pydantic models for request bodies at the HTTP boundary."""

from pydantic import BaseModel


class CredentialsRequest(BaseModel):
    """Username/password payload for login and account creation."""

    username: str | None = None
    password: str | None = None


class ExportRequest(BaseModel):
    """Optional record selection for an export."""

    ids: list[int] | None = None
