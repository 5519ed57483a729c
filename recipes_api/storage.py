from __future__ import annotations

import re
from datetime import datetime
from typing import Iterable, Optional, Protocol, Sequence

from .errors import InvalidIdentifierError
from .models import Recipe, UserAccount

_RESERVED_ID = re.compile(r"^__.*__$")
MAX_DOCUMENT_ID_BYTES = 1500


def parse_document_id(value: str, *, kind: str = "recipe id") -> str:
    """Return ``value`` if it is usable as a document id.

    Raises :class:`InvalidIdentifierError` for ids the document store would
    reject or interpret as a path.
    """

    if not value or value in (".", "..") or "/" in value or _RESERVED_ID.match(value):
        raise InvalidIdentifierError(f"invalid {kind} '{value}'")
    if len(value.encode("utf-8")) > MAX_DOCUMENT_ID_BYTES:
        raise InvalidIdentifierError(f"{kind} is too long")
    return value


class RecipeRepository(Protocol):
    """Protocol describing the recipe persistence required by the services."""

    def list_recipes(self) -> Iterable[Recipe]:
        """Return an iterable of stored recipes ordered newest first."""

    def search_recipes(self, tag: str) -> Iterable[Recipe]:
        """Return recipes whose tag list contains ``tag`` exactly."""

    def get_recipe(self, recipe_id: str) -> Recipe:
        """Return a single recipe or raise :class:`KeyError` if missing."""

    def add_recipe(
        self,
        *,
        name: str,
        tags: Sequence[str],
        ingredients: Sequence[str],
        instructions: Sequence[str],
    ) -> Recipe:
        """Persist a new recipe and return the stored instance."""

    def update_recipe(self, recipe_id: str, **fields: Sequence[str] | str) -> None:
        """Overwrite the given fields or raise :class:`KeyError` if missing."""

    def delete_recipe(self, recipe_id: str) -> None:
        """Remove a recipe or raise :class:`KeyError` if missing."""


class UserRepository(Protocol):
    def get_user(self, username: str) -> Optional[UserAccount]:
        """Return the account stored under ``username`` or ``None``."""

    def add_user(self, account: UserAccount) -> None:
        """Insert a new account or raise :class:`KeyError` if the name is taken."""


class RecipeListCache(Protocol):
    """Key-value slot holding the serialized recipe listing."""

    def load(self) -> Optional[str]:
        """Return the cached snapshot, or ``None`` on a miss."""

    def store(self, snapshot: str) -> None:
        """Save ``snapshot`` without expiry."""

    def invalidate(self) -> None:
        """Drop the cached snapshot."""


class SessionStore(Protocol):
    """Server-side storage for opaque session tokens."""

    def save(self, token: str, username: str, expires: datetime) -> None:
        ...

    def lookup(self, token: str) -> Optional[tuple[str, datetime]]:
        """Return ``(username, expires)`` for a live token or ``None``."""

    def revoke(self, token: str) -> None:
        ...


__all__ = [
    "RecipeListCache",
    "RecipeRepository",
    "SessionStore",
    "UserRepository",
    "parse_document_id",
]
