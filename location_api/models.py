from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, List, Optional, Union

from location_api.search.rules import Locale


class LocationRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(
        ...,
        min_length=1,
        description="Stable unique identifier of the place (e.g. c1)",
    )
    name: str = Field(
        ...,
        min_length=1,
        description="Canonical display name, accents included (e.g. Zürich)",
    )
    search_keys: List[str] = Field(
        default_factory=list,
        description=(
            "Additional name variants used as lookup keys "
            "(e.g. zurich, st-gallen, biel, bienne)"
        ),
    )
    parent_region: str = Field(
        "",
        description=(
            "Qualifier and region joined by ' - ' (e.g. 'Ville - Zurich'); "
            "the region is the part after the last separator"
        ),
    )
    is_primary: bool = Field(
        False,
        description="True for the canonical city as opposed to a sub-locality",
    )
    code: Union[int, str] = Field(
        "",
        description="Postal code; 0 or empty means the place has no code",
    )
    kind: str = Field(
        "",
        description="Category tag: ville, comm., cant. or dist.",
    )

    @field_validator("code", mode="before")
    @classmethod
    def _check_code(cls, code):
        # bools and floats would otherwise coerce to an int code
        if isinstance(code, bool) or not isinstance(code, (int, str)):
            raise ValueError("code must be an integer or a string")
        return code

    @field_validator("search_keys")
    @classmethod
    def _dedupe_keys(cls, keys: List[str]) -> List[str]:
        # ordered set: first occurrence wins
        seen = set()
        out = []
        for key in keys:
            if key and key not in seen:
                seen.add(key)
                out.append(key)
        return out


class Suggestion(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., description="Identifier of the matched place")
    name: str = Field(..., description="Display name of the matched place")
    type_label: str = Field(
        ...,
        alias="typeLabel",
        description="Localized kind label (City / Ville / Stadt, ...)",
    )
    region: str = Field(
        ...,
        description="Region (canton) extracted from the parent region text",
    )
    postal_code: str = Field(
        ...,
        alias="postalCode",
        description="Postal code as a string",
    )
    is_primary: bool = Field(
        ...,
        alias="isPrimary",
        description="True when the place is a primary (parent) entry",
    )


class SearchRequest(BaseModel):
    query: str = Field(
        "",
        description=(
            "Free text or digits typed by the user; empty returns the "
            "popular cities"
        ),
    )
    limit: int = Field(10, gt=0, description="Maximum number of suggestions")
    locale: Optional[Locale] = Field(
        None,
        description=(
            "Language of the type labels (en, fr, de); defaults to the "
            "service locale"
        ),
    )


class ReloadRequest(BaseModel):
    # items are checked by LocationStore.load() so bad records are a 400
    records: Optional[List[Any]] = Field(
        None,
        description=(
            "Replacement dataset; omit to re-read the bundled dataset file"
        ),
    )


class ReloadResponse(BaseModel):
    records: int = Field(..., description="Number of records now active")
    keys: int = Field(..., description="Number of distinct index keys")


class ErrorResponse(BaseModel):
    error: str = Field(
        ...,
        description="Machine readable error code",
    )
    message: str = Field(
        ...,
        description="Human readable error message",
    )
    request_id: Optional[str] = Field(
        None,
        description="Optional correlation identifier for tracing",
    )
    details: Optional[dict] = Field(
        None,
        description="Optional structured error payload",
    )
