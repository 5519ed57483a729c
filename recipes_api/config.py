from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

AUTH_STRATEGIES = ("jwt", "session")


@dataclass(frozen=True)
class Settings:
    """Deployment configuration for the recipes API."""

    gcp_project: Optional[str] = None
    firestore_database: Optional[str] = None
    recipes_collection: str = "recipes"
    users_collection: str = "users"
    redis_url: Optional[str] = None
    recipes_cache_key: str = "recipes"
    auth_strategy: str = "jwt"
    jwt_secret: Optional[str] = None
    secret_key: str = "development-secret-change-me"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables."""

        return cls(
            gcp_project=os.environ.get("GCP_PROJECT"),
            firestore_database=os.environ.get("FIRESTORE_DATABASE"),
            recipes_collection=os.environ.get("RECIPES_COLLECTION", "recipes"),
            users_collection=os.environ.get("USERS_COLLECTION", "users"),
            redis_url=os.environ.get("REDIS_URL") or None,
            recipes_cache_key=os.environ.get("RECIPES_CACHE_KEY", "recipes"),
            auth_strategy=os.environ.get("AUTH_STRATEGY", "jwt").strip().lower(),
            jwt_secret=os.environ.get("JWT_SECRET") or None,
            secret_key=os.environ.get("FLASK_SECRET_KEY", "development-secret-change-me"),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        )

    def validate(self) -> None:
        if self.auth_strategy not in AUTH_STRATEGIES:
            raise RuntimeError(
                f"Unknown AUTH_STRATEGY '{self.auth_strategy}'. "
                f"Expected one of: {', '.join(AUTH_STRATEGIES)}."
            )
        if self.auth_strategy == "jwt" and not self.jwt_secret:
            raise RuntimeError("JWT_SECRET must be set when AUTH_STRATEGY is 'jwt'.")
        if self.auth_strategy == "session" and not self.redis_url:
            raise RuntimeError("REDIS_URL must be set when AUTH_STRATEGY is 'session'.")


__all__ = ["AUTH_STRATEGIES", "Settings"]
