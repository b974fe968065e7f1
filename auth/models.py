"""
auth/models.py -- Domain types for session entities.

Pattern: Data class (pure data container, zero logic) for the credential pair
and the cookie slot description; stores and routes do the work.

Principal is the one pydantic model here. It is produced by a remote
authority and must be structurally validated wherever it crosses a boundary
(validator response on the server, /me response on the client), so its fields
carry their own types (EmailStr, AnyHttpUrl) instead of relying on the API
layer to check them.

Layer rule: no imports from api/, web/, or client/.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from pydantic import AnyHttpUrl, BaseModel, ConfigDict, EmailStr, Field


@dataclass(frozen=True)
class CredentialPair:
    """The access/renewal secret pair minted by the credential validator.

    Both values are opaque bearer strings. repr=False keeps them out of log
    lines and tracebacks -- a pair should only ever be seen by the session
    store and the issuer, for the duration of one request.
    """

    access_secret: str = field(repr=False)
    renewal_secret: str = field(repr=False)


@dataclass(frozen=True)
class CookieSlot:
    """Wire attributes of one session cookie.

    httponly and samesite are fixed: the slot must never be readable by page
    script, and lax keeps it off cross-site POSTs. secure is decided per
    environment by the session store.
    """

    name: str
    max_age: int
    path: str = "/"
    samesite: str = "lax"
    httponly: bool = True


class Principal(BaseModel):
    """Public profile of the authenticated user.

    Field names follow Python style; aliases match the JSON the credential
    validator returns and the presentation layer consumes (firstName, image,
    ...). Unknown validator fields are ignored. Never used for access
    decisions -- the gate only looks at cookie presence.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore", str_strip_whitespace=True)

    id: int
    username: str = Field(min_length=1)
    email: EmailStr
    first_name: str = Field(alias="firstName", min_length=1)
    last_name: str = Field(alias="lastName", min_length=1)
    gender: str = Field(min_length=1)
    image_url: AnyHttpUrl = Field(alias="image")

    def public_dict(self) -> dict:
        """JSON-ready dict using the wire (alias) field names."""
        return self.model_dump(mode="json", by_alias=True)
