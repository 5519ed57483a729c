"""In-memory stand-ins for Firestore and Redis used across the test suite."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from recipes_api import Settings, create_app
from recipes_api.auth import JWTTokenStrategy, SessionTokenStrategy
from recipes_api.models import Recipe, UserAccount
from recipes_api.storage import parse_document_id

TEST_SECRET = "test-signing-secret"


class InMemoryRecipeStorage:
    """Simple storage backend used for tests."""

    def __init__(self) -> None:
        self._recipes: list[Recipe] = []
        self.list_calls = 0

    def list_recipes(self):
        self.list_calls += 1
        return sorted(
            self._recipes,
            key=lambda recipe: recipe.published_at or datetime.min.replace(tzinfo=timezone.utc),
            reverse=True,
        )

    def search_recipes(self, tag: str):
        return [recipe for recipe in self._recipes if tag in recipe.tags]

    def get_recipe(self, recipe_id: str) -> Recipe:
        parse_document_id(recipe_id)
        for recipe in self._recipes:
            if recipe.id == recipe_id:
                return recipe
        raise KeyError(recipe_id)

    def add_recipe(self, *, name, tags, ingredients, instructions) -> Recipe:
        recipe = Recipe(
            id=uuid.uuid4().hex,
            name=name,
            tags=list(tags),
            ingredients=list(ingredients),
            instructions=list(instructions),
            published_at=datetime.now(timezone.utc) + timedelta(microseconds=len(self._recipes)),
        )
        self._recipes.append(recipe)
        return recipe

    def update_recipe(self, recipe_id: str, **fields) -> None:
        recipe = self.get_recipe(recipe_id)
        for key, value in fields.items():
            setattr(recipe, key, value if isinstance(value, str) else list(value))

    def delete_recipe(self, recipe_id: str) -> None:
        parse_document_id(recipe_id)
        for index, recipe in enumerate(self._recipes):
            if recipe.id == recipe_id:
                self._recipes.pop(index)
                return
        raise KeyError(recipe_id)


class InMemoryUserStorage:
    def __init__(self) -> None:
        self.accounts: dict[str, UserAccount] = {}

    def get_user(self, username: str) -> Optional[UserAccount]:
        return self.accounts.get(username)

    def add_user(self, account: UserAccount) -> None:
        if account.username in self.accounts:
            raise KeyError(account.username)
        self.accounts[account.username] = account


class InMemoryRecipeCache:
    def __init__(self) -> None:
        self.snapshot: Optional[str] = None
        self.invalidations = 0

    def load(self) -> Optional[str]:
        return self.snapshot

    def store(self, snapshot: str) -> None:
        self.snapshot = snapshot

    def invalidate(self) -> None:
        self.invalidations += 1
        self.snapshot = None


class InMemorySessionStore:
    def __init__(self) -> None:
        self.sessions: dict[str, tuple[str, datetime]] = {}

    def save(self, token: str, username: str, expires: datetime) -> None:
        self.sessions[token] = (username, expires)

    def lookup(self, token: str):
        return self.sessions.get(token)

    def revoke(self, token: str) -> None:
        self.sessions.pop(token, None)


def create_test_client(*, strategy: str = "jwt", cache: bool = True):
    storage = InMemoryRecipeStorage()
    users = InMemoryUserStorage()
    recipe_cache = InMemoryRecipeCache() if cache else None

    if strategy == "session":
        token_strategy = SessionTokenStrategy(InMemorySessionStore())
    else:
        token_strategy = JWTTokenStrategy(TEST_SECRET)

    app = create_app(
        Settings(jwt_secret=TEST_SECRET, secret_key="test-secret-key"),
        recipe_storage=storage,
        user_storage=users,
        recipe_cache=recipe_cache,
        token_strategy=token_strategy,
    )
    app.config.update(TESTING=True)
    return app.test_client(), storage, recipe_cache


def sign_up(client, username: str = "alice", password: str = "wonderland") -> dict:
    response = client.post("/signup", json={"username": username, "password": password})
    assert response.status_code == 200
    return response.get_json()


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
