from __future__ import annotations

import hashlib
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, List, Optional, Sequence

from google.api_core import exceptions as gcloud_exceptions
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from .errors import StorageError
from .models import Recipe, UserAccount
from .storage import RecipeRepository, UserRepository, parse_document_id

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("name", "tags", "ingredients", "instructions")


@contextmanager
def _translate_errors(action: str) -> Iterator[None]:
    try:
        yield
    except gcloud_exceptions.GoogleAPIError as exc:
        logger.error("Firestore failed to %s: %s", action, exc)
        raise StorageError(f"error while trying to {action}") from exc


def user_document_id(username: str) -> str:
    """Document id for an account; usernames may contain characters ids cannot."""
    return hashlib.sha256(username.encode("utf-8")).hexdigest()


def _string_list(value: object) -> List[str]:
    if isinstance(value, list):
        return [str(item) for item in value]
    return []


def build_client(project: Optional[str] = None, database: Optional[str] = None) -> firestore.Client:
    if database:
        return firestore.Client(project=project, database=database)
    return firestore.Client(project=project)


class FirestoreRecipeStorage(RecipeRepository):
    """Recipe storage backed by a Firestore collection."""

    def __init__(
        self,
        *,
        client: Optional[firestore.Client] = None,
        project: Optional[str] = None,
        database: Optional[str] = None,
        collection_name: str = "recipes",
    ) -> None:
        self._firestore_client = client or build_client(project, database)
        self._collection = self._firestore_client.collection(collection_name)

    def list_recipes(self) -> List[Recipe]:
        query = self._collection.order_by("published_at", direction=firestore.Query.DESCENDING)
        with _translate_errors("list recipes"):
            return [self._doc_to_recipe(doc.id, doc.to_dict() or {}) for doc in query.stream()]

    def search_recipes(self, tag: str) -> List[Recipe]:
        query = self._collection.where(filter=FieldFilter("tags", "array_contains", tag))
        with _translate_errors("search recipes"):
            return [self._doc_to_recipe(doc.id, doc.to_dict() or {}) for doc in query.stream()]

    def get_recipe(self, recipe_id: str) -> Recipe:
        doc_ref = self._collection.document(parse_document_id(recipe_id))
        with _translate_errors("fetch recipe"):
            snapshot = doc_ref.get()

        if not snapshot.exists:
            raise KeyError(f"Recipe '{recipe_id}' does not exist.")

        return self._doc_to_recipe(snapshot.id, snapshot.to_dict() or {})

    def add_recipe(
        self,
        *,
        name: str,
        tags: Sequence[str],
        ingredients: Sequence[str],
        instructions: Sequence[str],
    ) -> Recipe:
        doc = {
            "name": name,
            "tags": list(tags),
            "ingredients": list(ingredients),
            "instructions": list(instructions),
            "published_at": firestore.SERVER_TIMESTAMP,
        }

        doc_ref = self._collection.document()
        with _translate_errors("insert a new recipe"):
            doc_ref.set(doc)
            snapshot = doc_ref.get()

        return self._doc_to_recipe(snapshot.id, snapshot.to_dict() or {})

    def update_recipe(self, recipe_id: str, **fields: Sequence[str] | str) -> None:
        unknown = set(fields) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        doc_ref = self._collection.document(parse_document_id(recipe_id))
        with _translate_errors("update recipe"):
            snapshot = doc_ref.get()
            if not snapshot.exists:
                raise KeyError(f"Recipe '{recipe_id}' does not exist.")
            if fields:
                update_doc = {
                    key: value if isinstance(value, str) else list(value)
                    for key, value in fields.items()
                }
                doc_ref.update(update_doc)

    def delete_recipe(self, recipe_id: str) -> None:
        doc_ref = self._collection.document(parse_document_id(recipe_id))
        with _translate_errors("delete recipe"):
            snapshot = doc_ref.get()
            if not snapshot.exists:
                raise KeyError(f"Recipe '{recipe_id}' does not exist.")
            doc_ref.delete()

    def _doc_to_recipe(self, doc_id: str, data: dict) -> Recipe:
        published_at = data.get("published_at")
        if not isinstance(published_at, datetime):
            published_at = None

        return Recipe(
            id=doc_id,
            name=data.get("name", ""),
            tags=_string_list(data.get("tags")),
            ingredients=_string_list(data.get("ingredients")),
            instructions=_string_list(data.get("instructions")),
            published_at=published_at,
        )


class FirestoreUserStorage(UserRepository):
    """Account storage keyed by a hash of the username in a Firestore collection."""

    def __init__(
        self,
        *,
        client: Optional[firestore.Client] = None,
        project: Optional[str] = None,
        database: Optional[str] = None,
        collection_name: str = "users",
    ) -> None:
        self._firestore_client = client or build_client(project, database)
        self._collection = self._firestore_client.collection(collection_name)

    def get_user(self, username: str) -> Optional[UserAccount]:
        with _translate_errors("look up account"):
            snapshot = self._collection.document(user_document_id(username)).get()

        if not snapshot.exists:
            return None

        data = snapshot.to_dict() or {}
        return UserAccount(username=data.get("username", username), password_hash=data.get("password", ""))

    def add_user(self, account: UserAccount) -> None:
        doc_ref = self._collection.document(user_document_id(account.username))
        with _translate_errors("create account"):
            try:
                doc_ref.create({"username": account.username, "password": account.password_hash})
            except gcloud_exceptions.Conflict as exc:
                # create() refuses to overwrite; a concurrent sign-up won the race.
                raise KeyError(account.username) from exc


__all__ = ["FirestoreRecipeStorage", "FirestoreUserStorage", "build_client", "user_document_id"]
