"""Profile record model."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

# Legacy and misspelled role values still present in the profiles table
ROLE_ALIASES = {
    "teacher": "formador",
    "profesor": "formador",
    "administrador": "admin",
    "estudiante": "student",
    "voluntariuo": "voluntario",
}

KNOWN_ROLES = ("student", "formador", "voluntario", "admin")


def normalize_role(role: str) -> str:
    """Map a stored role onto one of the portal roles; unknown roles pass through."""
    return ROLE_ALIASES.get(role, role)


class Profile(BaseModel):
    """Application-level user record keyed by session identity."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    full_name: str = ""
    email: Optional[str] = None
    role: str = "student"
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @field_validator("role", mode="before")
    @classmethod
    def map_role(cls, v):
        """Normalize legacy role names."""
        if v is None:
            return "student"
        return normalize_role(str(v))
