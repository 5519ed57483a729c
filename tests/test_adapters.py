from __future__ import annotations

import hashlib
from datetime import datetime, timedelta, timezone
from unittest import mock

import pytest
import redis
from google.api_core import exceptions as gcloud_exceptions

from recipes_api.errors import CacheError, InvalidIdentifierError, StorageError
from recipes_api.firestore_storage import FirestoreRecipeStorage, FirestoreUserStorage
from recipes_api.models import UserAccount
from recipes_api.redis_store import RedisRecipeCache, RedisSessionStore
from recipes_api.storage import parse_document_id


def make_snapshot(doc_id, data, exists=True):
    snapshot = mock.Mock()
    snapshot.id = doc_id
    snapshot.exists = exists
    snapshot.to_dict.return_value = data
    return snapshot


@pytest.mark.parametrize("value", ["", ".", "..", "a/b", "__id__", "x" * 1501])
def test_parse_document_id_rejects_unusable_ids(value):
    with pytest.raises(InvalidIdentifierError):
        parse_document_id(value)


def test_parse_document_id_accepts_generated_ids():
    assert parse_document_id("Xb3kq9ZpLmN0aQwErTy1") == "Xb3kq9ZpLmN0aQwErTy1"


def test_firestore_get_recipe_maps_document():
    client = mock.Mock()
    collection = client.collection.return_value
    published = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    collection.document.return_value.get.return_value = make_snapshot(
        "abc",
        {"name": "Tea", "tags": ["drink"], "ingredients": ["water"], "published_at": published},
    )
    storage = FirestoreRecipeStorage(client=client)

    recipe = storage.get_recipe("abc")

    client.collection.assert_called_once_with("recipes")
    assert recipe.id == "abc"
    assert recipe.tags == ["drink"]
    assert recipe.instructions == []
    assert recipe.published_at == published


def test_firestore_missing_recipe_raises_key_error():
    client = mock.Mock()
    client.collection.return_value.document.return_value.get.return_value = make_snapshot(
        "abc", None, exists=False
    )
    storage = FirestoreRecipeStorage(client=client)

    with pytest.raises(KeyError):
        storage.get_recipe("abc")
    with pytest.raises(KeyError):
        storage.delete_recipe("abc")
    client.collection.return_value.document.return_value.delete.assert_not_called()


def test_firestore_update_sets_only_given_fields():
    client = mock.Mock()
    doc_ref = client.collection.return_value.document.return_value
    doc_ref.get.return_value = make_snapshot("abc", {"name": "Tea"})
    storage = FirestoreRecipeStorage(client=client)

    storage.update_recipe("abc", name="Chai", tags=("drink",))

    doc_ref.update.assert_called_once_with({"name": "Chai", "tags": ["drink"]})


def test_firestore_failures_become_storage_errors():
    client = mock.Mock()
    client.collection.return_value.order_by.return_value.stream.side_effect = (
        gcloud_exceptions.ServiceUnavailable("down")
    )
    storage = FirestoreRecipeStorage(client=client)

    with pytest.raises(StorageError):
        storage.list_recipes()


def test_firestore_user_insert_conflict_becomes_key_error():
    client = mock.Mock()
    client.collection.return_value.document.return_value.create.side_effect = (
        gcloud_exceptions.AlreadyExists("taken")
    )
    users = FirestoreUserStorage(client=client)

    with pytest.raises(KeyError):
        users.add_user(UserAccount("alice", "hash"))


def test_firestore_user_lookup():
    client = mock.Mock()
    client.collection.return_value.document.return_value.get.return_value = make_snapshot(
        "alice", {"username": "alice", "password": "hash"}
    )
    users = FirestoreUserStorage(client=client)

    assert users.get_user("alice") == UserAccount("alice", "hash")


def test_firestore_user_document_id_is_a_hash_of_the_username():
    client = mock.Mock()
    users = FirestoreUserStorage(client=client)

    users.add_user(UserAccount("team/alice", "hash"))

    expected = hashlib.sha256(b"team/alice").hexdigest()
    client.collection.return_value.document.assert_called_once_with(expected)
    client.collection.return_value.document.return_value.create.assert_called_once_with(
        {"username": "team/alice", "password": "hash"}
    )


def test_redis_cache_uses_single_key_without_expiry():
    client = mock.Mock()
    client.get.return_value = "[]"
    cache = RedisRecipeCache(client, key="recipes")

    assert cache.load() == "[]"
    cache.store("[1]")
    cache.invalidate()

    client.get.assert_called_once_with("recipes")
    client.set.assert_called_once_with("recipes", "[1]")
    client.delete.assert_called_once_with("recipes")


def test_redis_failures_become_cache_errors():
    client = mock.Mock()
    client.get.side_effect = redis.ConnectionError("refused")
    cache = RedisRecipeCache(client)

    with pytest.raises(CacheError):
        cache.load()


def test_redis_session_store_round_trip():
    client = mock.Mock()
    store = RedisSessionStore(client)
    expires = datetime.now(timezone.utc) + timedelta(minutes=10)

    store.save("tok", "alice", expires)

    key, payload = client.set.call_args.args
    assert key == "session:tok"
    assert 0 < client.set.call_args.kwargs["ex"] <= 600

    client.get.return_value = payload
    assert store.lookup("tok") == ("alice", expires)

    client.get.return_value = None
    assert store.lookup("tok") is None

    store.revoke("tok")
    client.delete.assert_called_once_with("session:tok")
