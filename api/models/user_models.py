# File: api/models/user_models.py
from pydantic import BaseModel, Field, field_validator
from typing import Any, Dict, List, Optional

from database.models.user_model import SaveStatus, WatchlistType
from utils.sanitization import clean_text, dedupe

MAX_WATCHLIST_TERMS = 20


class WatchlistIn(BaseModel):
    type: WatchlistType
    name: str = Field(min_length=2, max_length=64)
    terms: List[str] = Field(min_length=1, max_length=MAX_WATCHLIST_TERMS)
    categories: List[str] = []

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value: Any) -> Any:
        return clean_text(value) if isinstance(value, str) else value

    @field_validator("terms", mode="before")
    @classmethod
    def _clean_terms(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return value
        return dedupe(clean_text(t) if isinstance(t, str) else t for t in value)

    @field_validator("terms")
    @classmethod
    def _check_terms(cls, terms: List[str]) -> List[str]:
        for term in terms:
            if not 2 <= len(term) <= 64:
                raise ValueError("each term must be 2 to 64 characters")
        return terms

    @field_validator("categories")
    @classmethod
    def _clean_categories(cls, categories: List[str]) -> List[str]:
        return dedupe(c.strip() for c in categories if c and c.strip())


class SaveRequest(BaseModel):
    arxivId: str
    status: Optional[SaveStatus] = None
    remove: bool = False


class ProfilePatch(BaseModel):
    displayName: Optional[str] = Field(default=None, max_length=255)
    avatarUrl: Optional[str] = None
    email: Optional[str] = Field(default=None, max_length=320)
    preferences: Optional[Dict[str, Any]] = None

    def to_changes(self) -> Dict[str, Any]:
        fields = self.model_fields_set
        mapping = {"displayName": "display_name", "avatarUrl": "avatar_url", "email": "email"}
        changes = {column: getattr(self, attr) for attr, column in mapping.items() if attr in fields}
        if self.preferences is not None:
            changes["preferences"] = self.preferences
        return changes
