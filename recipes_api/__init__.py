import logging
from typing import Optional

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from .auth import AuthService, JWTTokenStrategy, SessionTokenStrategy, TokenStrategy
from .config import Settings
from .errors import RecipeApiError, ValidationError
from .firestore_storage import FirestoreRecipeStorage, FirestoreUserStorage, build_client
from .models import Recipe, recipe_to_dict, token_to_dict
from .redis_store import RedisRecipeCache, RedisSessionStore
from .services import RecipeService
from .storage import RecipeListCache, RecipeRepository, UserRepository

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    *,
    recipe_storage: Optional[RecipeRepository] = None,
    user_storage: Optional[UserRepository] = None,
    recipe_cache: Optional[RecipeListCache] = None,
    token_strategy: Optional[TokenStrategy] = None,
) -> Flask:
    """Create and configure the Flask application.

    Parameters
    ----------
    settings:
        Deployment settings. Read from the environment when ``None``.
    recipe_storage, user_storage:
        Optional repositories. When ``None`` Firestore collections configured
        through ``settings`` are used.
    recipe_cache:
        Optional listing cache. When ``None`` a Redis cache is used if
        ``settings.redis_url`` is set, otherwise listing always hits the store.
    token_strategy:
        Optional token strategy. When ``None`` it is chosen by
        ``settings.auth_strategy``.
    """

    settings = settings or Settings.from_env()

    app = Flask(__name__)
    app.secret_key = settings.secret_key

    if recipe_storage is None or user_storage is None:
        client = build_client(settings.gcp_project, settings.firestore_database)
        if recipe_storage is None:
            recipe_storage = FirestoreRecipeStorage(
                client=client, collection_name=settings.recipes_collection
            )
        if user_storage is None:
            user_storage = FirestoreUserStorage(client=client, collection_name=settings.users_collection)

    if recipe_cache is None and settings.redis_url:
        recipe_cache = RedisRecipeCache.from_url(settings.redis_url, key=settings.recipes_cache_key)

    if token_strategy is None:
        token_strategy = _build_token_strategy(settings)

    auth = AuthService(user_storage, token_strategy)
    recipes = RecipeService(recipe_storage, recipe_cache)
    app.config["AUTH_SERVICE"] = auth
    app.config["RECIPE_SERVICE"] = recipes

    @app.errorhandler(RecipeApiError)
    def handle_api_error(exc: RecipeApiError):
        return jsonify({"error": exc.message}), exc.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        return jsonify({"error": exc.description}), exc.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(exc: Exception):
        logger.exception("Unhandled error while serving %s %s", request.method, request.path)
        return jsonify({"error": "internal server error"}), 500

    @app.post("/signup")
    def sign_up():
        payload = _json_object()
        issued = auth.sign_up(payload.get("username"), payload.get("password"))
        token_strategy.deliver(issued)
        return jsonify(token_to_dict(issued))

    @app.post("/signin")
    def sign_in():
        payload = _json_object()
        issued = auth.sign_in(payload.get("username"), payload.get("password"))
        token_strategy.deliver(issued)
        return jsonify(token_to_dict(issued))

    @app.post("/refresh")
    def refresh():
        issued = auth.refresh(token_strategy.read_token())
        token_strategy.deliver(issued)
        return jsonify(token_to_dict(issued))

    @app.post("/signout")
    def sign_out():
        auth.sign_out(token_strategy.read_token())
        token_strategy.forget()
        return jsonify({"message": "Signed out successfully"})

    @app.get("/recipes")
    def list_recipes():
        return jsonify([recipe_to_dict(recipe) for recipe in recipes.list_recipes()])

    @app.get("/recipes/search")
    @auth.login_required
    def search_recipes():
        found = recipes.search_recipes(request.args.get("tag"))
        return jsonify([recipe_to_dict(recipe) for recipe in found])

    @app.get("/recipes/<recipe_id>")
    @auth.login_required
    def get_recipe(recipe_id: str):
        return jsonify(recipe_to_dict(recipes.get_recipe(recipe_id)))

    @app.post("/recipes")
    @auth.login_required
    def create_recipe():
        recipe = recipes.create_recipe(request.get_json(silent=True))
        return jsonify(recipe_to_dict(recipe))

    @app.put("/recipes/<recipe_id>")
    @auth.login_required
    def update_recipe(recipe_id: str):
        recipes.update_recipe(recipe_id, request.get_json(silent=True))
        return jsonify({"message": "Recipe has been updated"})

    @app.delete("/recipes/<recipe_id>")
    @auth.login_required
    def delete_recipe(recipe_id: str):
        recipes.delete_recipe(recipe_id)
        return jsonify({"message": "Recipe has been deleted"})

    return app


def _build_token_strategy(settings: Settings) -> TokenStrategy:
    settings.validate()
    if settings.auth_strategy == "session":
        return SessionTokenStrategy(RedisSessionStore.from_url(settings.redis_url))
    return JWTTokenStrategy(settings.jwt_secret)


def _json_object() -> dict:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("request body must be a JSON object")
    return payload


__all__ = ["create_app", "Recipe", "Settings"]
