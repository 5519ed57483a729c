"""Recipe operations with a read-through, invalidate-on-write listing cache."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from .errors import NotFoundError, ValidationError
from .models import Recipe, recipe_from_dict, recipe_to_dict
from .storage import RecipeListCache, RecipeRepository

logger = logging.getLogger(__name__)

LIST_FIELDS = ("tags", "ingredients", "instructions")


def _string_list(payload: Dict[str, Any], field_name: str) -> List[str]:
    value = payload.get(field_name)
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValidationError(f"'{field_name}' must be a list of strings")
    return value


def _recipe_name(payload: Dict[str, Any]) -> str:
    name = payload.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("'name' is required")
    return name.strip()


def _require_object(payload: Any) -> Dict[str, Any]:
    if not isinstance(payload, dict):
        raise ValidationError("request body must be a JSON object")
    return payload


class RecipeService:
    def __init__(self, storage: RecipeRepository, cache: Optional[RecipeListCache] = None) -> None:
        self.storage = storage
        self.cache = cache

    def list_recipes(self) -> List[Recipe]:
        if self.cache is not None:
            cached = self._load_cached()
            if cached is not None:
                logger.debug("Request to Redis")
                return cached

        logger.debug("Request to Firestore")
        recipes = list(self.storage.list_recipes())
        if self.cache is not None:
            self.cache.store(json.dumps([recipe_to_dict(recipe) for recipe in recipes]))
        return recipes

    def search_recipes(self, tag: Optional[str]) -> List[Recipe]:
        if not tag:
            return []
        return list(self.storage.search_recipes(tag))

    def get_recipe(self, recipe_id: str) -> Recipe:
        try:
            return self.storage.get_recipe(recipe_id)
        except KeyError as exc:
            raise NotFoundError("Recipe not found") from exc

    def create_recipe(self, payload: Any) -> Recipe:
        payload = _require_object(payload)
        name = _recipe_name(payload)
        lists = {field_name: _string_list(payload, field_name) for field_name in LIST_FIELDS}

        recipe = self.storage.add_recipe(name=name, **lists)
        logger.info("Created recipe %s", recipe.id)
        self._invalidate()
        return recipe

    def update_recipe(self, recipe_id: str, payload: Any) -> None:
        payload = _require_object(payload)
        fields: Dict[str, Any] = {}
        if "name" in payload:
            fields["name"] = _recipe_name(payload)
        for field_name in LIST_FIELDS:
            if field_name in payload:
                fields[field_name] = _string_list(payload, field_name)

        try:
            self.storage.update_recipe(recipe_id, **fields)
        except KeyError as exc:
            raise NotFoundError("Recipe not found") from exc
        logger.info("Updated recipe %s", recipe_id)
        self._invalidate()

    def delete_recipe(self, recipe_id: str) -> None:
        try:
            self.storage.delete_recipe(recipe_id)
        except KeyError as exc:
            raise NotFoundError("Recipe not found") from exc
        logger.info("Deleted recipe %s", recipe_id)
        self._invalidate()

    def _load_cached(self) -> Optional[List[Recipe]]:
        snapshot = self.cache.load()
        if snapshot is None:
            return None

        try:
            return [recipe_from_dict(item) for item in json.loads(snapshot)]
        except (ValueError, KeyError, TypeError):
            logger.warning("Discarding unreadable recipe cache snapshot")
            self.cache.invalidate()
            return None

    def _invalidate(self) -> None:
        if self.cache is not None:
            self.cache.invalidate()


__all__ = ["RecipeService"]
