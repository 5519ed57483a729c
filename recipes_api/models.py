from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass
class Recipe:
    """Domain object representing a stored recipe."""

    id: str
    name: str
    tags: List[str] = field(default_factory=list)
    ingredients: List[str] = field(default_factory=list)
    instructions: List[str] = field(default_factory=list)
    published_at: Optional[datetime] = None


@dataclass(frozen=True)
class UserAccount:
    """A registered user. ``password_hash`` is an encoded argon2 hash."""

    username: str
    password_hash: str


@dataclass(frozen=True)
class IssuedToken:
    token: str
    expires: datetime


@dataclass(frozen=True)
class TokenClaims:
    subject: str
    issued_at: Optional[datetime]
    expires_at: datetime


def recipe_to_dict(recipe: Recipe) -> Dict[str, Any]:
    """Return the JSON representation used by the API and the listing cache."""

    return {
        "id": recipe.id,
        "name": recipe.name,
        "tags": list(recipe.tags),
        "ingredients": list(recipe.ingredients),
        "instructions": list(recipe.instructions),
        "publishedAt": recipe.published_at.isoformat() if recipe.published_at else None,
    }


def recipe_from_dict(data: Dict[str, Any]) -> Recipe:
    published_at = data.get("publishedAt")
    return Recipe(
        id=data["id"],
        name=data.get("name", ""),
        tags=list(data.get("tags") or []),
        ingredients=list(data.get("ingredients") or []),
        instructions=list(data.get("instructions") or []),
        published_at=datetime.fromisoformat(published_at) if published_at else None,
    )


def token_to_dict(issued: IssuedToken) -> Dict[str, Any]:
    return {"token": issued.token, "expires": issued.expires.isoformat()}


__all__ = [
    "IssuedToken",
    "Recipe",
    "TokenClaims",
    "UserAccount",
    "recipe_from_dict",
    "recipe_to_dict",
    "token_to_dict",
]
