from __future__ import annotations

import datetime
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from physio_funnel.errors import ValidationError
from physio_funnel.services.practices import normalize_practice_code


class LeadSubmission(BaseModel):
    """
    Incoming payload from the public lead forms.

    The Dutch form posts `volledige_naam`, `emailadres`, `telefoon`, `bron`,
    `doel`, `toestemming` and `praktijk_code`; the JS widgets post camelCase.
    Both are accepted, as is snake_case.
    """

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    full_name: str = Field(
        min_length=2,
        max_length=200,
        validation_alias=AliasChoices("full_name", "fullName", "volledige_naam"),
    )
    email: Optional[EmailStr] = Field(
        default=None,
        validation_alias=AliasChoices("email", "emailadres"),
    )
    phone: Optional[str] = Field(
        default=None,
        max_length=50,
        validation_alias=AliasChoices("phone", "telefoon"),
    )
    source: Optional[str] = Field(
        default=None,
        max_length=100,
        validation_alias=AliasChoices("source", "bron"),
    )
    goal: Optional[str] = Field(
        default=None,
        max_length=200,
        validation_alias=AliasChoices("goal", "doel"),
    )
    consent: bool = Field(
        default=False,
        validation_alias=AliasChoices("consent", "toestemming"),
    )
    practice_code: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("practice_code", "practiceCode", "praktijk_code"),
    )

    # Campaign parameters travel along into the lead_submitted event metadata.
    utm_source: Optional[str] = Field(default=None, max_length=200)
    utm_medium: Optional[str] = Field(default=None, max_length=200)
    utm_campaign: Optional[str] = Field(default=None, max_length=200)

    @field_validator(
        "email",
        "phone",
        "source",
        "goal",
        "practice_code",
        "utm_source",
        "utm_medium",
        "utm_campaign",
        mode="before",
    )
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("consent", mode="before")
    @classmethod
    def missing_consent_is_false(cls, v: Any) -> Any:
        if v is None or (isinstance(v, str) and not v.strip()):
            return False
        return v

    @field_validator("practice_code")
    @classmethod
    def check_practice_code(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        try:
            return normalize_practice_code(v)
        except ValidationError as exc:
            raise ValueError(exc.message) from exc

    def campaign_metadata(self) -> Dict[str, str]:
        values = {
            "source": self.source,
            "utm_source": self.utm_source,
            "utm_medium": self.utm_medium,
            "utm_campaign": self.utm_campaign,
        }
        return {key: value for key, value in values.items() if value}


_FIELD_BY_ALIAS = {
    "fullName": "full_name",
    "volledige_naam": "full_name",
    "emailadres": "email",
    "telefoon": "phone",
    "bron": "source",
    "doel": "goal",
    "toestemming": "consent",
    "practiceCode": "practice_code",
    "praktijk_code": "practice_code",
}


def _error_details(exc: PydanticValidationError) -> List[Dict[str, str]]:
    details = []
    for error in exc.errors():
        loc = error.get("loc") or ("body",)
        field = _FIELD_BY_ALIAS.get(str(loc[0]), str(loc[0]))
        details.append({"field": field, "message": f"{field}: {error.get('msg')}"})
    return details


def parse_lead_submission(payload: Any) -> LeadSubmission:
    """
    Validate a raw payload, reporting every violated field at once.
    """
    if not isinstance(payload, dict):
        raise ValidationError(
            "Validation failed",
            details=[{"field": "body", "message": "body must be an object"}],
        )
    try:
        return LeadSubmission.model_validate(payload)
    except PydanticValidationError as exc:
        raise ValidationError("Validation failed", details=_error_details(exc)) from exc


class LeadCreated(BaseModel):
    id: int
    created_at: datetime.datetime

    model_config = ConfigDict(from_attributes=True)


class LeadOut(BaseModel):
    """Admin listing view of a lead."""

    id: int
    full_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    source: Optional[str] = None
    goal: Optional[str] = None
    consent: bool
    practice_code: Optional[str] = None
    created_at: datetime.datetime

    model_config = ConfigDict(from_attributes=True)


class LeadInfo(BaseModel):
    """What a token holder may see about a lead."""

    full_name: str
    email: Optional[str] = None
    phone: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
