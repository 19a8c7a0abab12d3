from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator, model_validator

from workhub.errors import InternalError

logger = logging.getLogger("schemas")

ModelT = TypeVar("ModelT", bound=BaseModel)


class Role(str, Enum):
    SUPER_ADMIN = "super_admin"
    COMPANY_ADMIN = "company_admin"
    RECRUITER = "recruiter"
    STAFF = "staff"
    USER = "user"


class GeoPoint(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class Identity(BaseModel):
    """Resolved user record, as handed over by the authorization layer."""

    uid: str
    role: Role
    company_id: Optional[str] = None
    branch_ids: list[str] = Field(default_factory=list)
    privileges: set[str] = Field(default_factory=set)
    name: Optional[str] = None
    email: Optional[str] = None

    @field_validator("role", mode="before")
    @classmethod
    def _normalize_role(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @model_validator(mode="before")
    @classmethod
    def _fold_legacy_branch(cls, data: Any) -> Any:
        # Older user documents carry a single branch_id instead of branch_ids.
        if isinstance(data, dict) and not data.get("branch_ids") and data.get("branch_id"):
            data = {**data, "branch_ids": [data["branch_id"]]}
        return data

    @property
    def display_name(self) -> str:
        return self.name or self.email or self.uid


def parse_document(model: Type[ModelT], doc: Mapping[str, Any], collection: str) -> ModelT:
    """Validate a stored document; malformed data is an internal error, not a 4xx."""

    try:
        return model.model_validate(dict(doc))
    except PydanticValidationError as e:
        logger.error(
            "Malformed %s document %s: %s", collection, doc.get("id"), e.errors(include_url=False)
        )
        raise InternalError(
            f"Malformed {collection} document",
            {"collection": collection, "id": doc.get("id")},
        )
