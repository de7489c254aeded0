"""Pydantic schemas guarding the wardrobe metadata file."""

from __future__ import annotations

from typing import Any, Dict, List, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictStr, TypeAdapter, ValidationError, field_validator


class MetadataRecord(BaseModel):
    """One row of the wardrobe metadata file."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    blob_ref: StrictStr = Field(alias="blobRef", min_length=1, pattern=r"^[^/\\]+$")
    description: StrictStr

    @field_validator("blob_ref")
    @classmethod
    def _validate_plain_name(cls, blob_ref: str) -> str:
        if blob_ref in {".", ".."}:
            raise ValueError("blobRef must name a file inside the image directory")
        return blob_ref


METADATA_DOCUMENT = TypeAdapter(List[MetadataRecord])


class ValidationResult(BaseModel):
    """Wrapper returned to callers when validation fails."""

    status: Literal["needs_review"] = "needs_review"
    message: str
    details: List[Dict[str, Any]]


def validation_failure(message: str, exc: ValidationError) -> Dict[str, Any]:
    """Translate Pydantic errors into a consistent review payload."""

    return ValidationResult(message=message, details=exc.errors(include_url=False)).model_dump()


__all__ = [
    "METADATA_DOCUMENT",
    "MetadataRecord",
    "ValidationResult",
    "validation_failure",
]
