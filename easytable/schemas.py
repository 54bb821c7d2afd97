"""
Pydantic schemas for request validation and backend payloads.

Backend payloads use camelCase; models expose snake_case attributes and
accept either form on input.
"""

import re
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

EMAIL_PATTERN = re.compile(r'^[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,4}$', re.IGNORECASE)

CATEGORIES = (
    "KOREAN",
    "CHINESE",
    "JAPANESE",
    "WESTERN",
    "ITALIAN",
    "FRENCH",
    "SPANISH",
    "AMERICAN",
    "ASIAN",
    "VIETNAMESE",
    "THAI",
    "INDIAN",
    "FUSION",
)

MEMBER_TYPES = ("USER", "OWNER")


class LoginRequest(BaseModel):
    """User login request."""
    email: str = Field(..., min_length=1, max_length=254, description="Email")
    password: str = Field(..., min_length=1, max_length=200, description="Password")

    @field_validator('email')
    @classmethod
    def strip_email(cls, v: str) -> str:
        return v.strip()


class SignupRequest(BaseModel):
    """Account creation request, validated the way the signup form is."""
    model_config = ConfigDict(populate_by_name=True)

    email: str = Field(..., description="Email")
    password: str = Field(..., description="Password")
    confirm_password: str = Field(..., alias="confirmPassword", description="Password again")
    role: str = Field(default="USER", description="Member type")
    agree_terms: bool = Field(default=False, alias="agreeTerms", description="Terms accepted")

    @field_validator('email')
    @classmethod
    def validate_email(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError('Email is required')
        if not EMAIL_PATTERN.match(v):
            raise ValueError('Invalid email address')
        return v

    @field_validator('password')
    @classmethod
    def validate_password(cls, v: str) -> str:
        if not v:
            raise ValueError('Password is required')
        if len(v) < 8:
            raise ValueError('Password must be at least 8 characters')
        return v

    @field_validator('role')
    @classmethod
    def validate_role(cls, v: str) -> str:
        """Validate role is allowed."""
        v = (v or "USER").upper()
        if v not in MEMBER_TYPES:
            raise ValueError(f'Role must be one of: {", ".join(MEMBER_TYPES)}')
        return v

    @model_validator(mode='after')
    def check_confirmation(self):
        if self.password != self.confirm_password:
            raise ValueError('Passwords do not match')
        if not self.agree_terms:
            raise ValueError('You must agree to the terms and conditions')
        return self

    def to_payload(self) -> dict:
        """Body for POST /api/auth/signup."""
        return {"email": self.email, "password": self.password, "memberType": self.role}


class CreateRestaurantRequest(BaseModel):
    """Owner request to list a new restaurant."""
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1, max_length=200, description="Restaurant name")
    address: str = Field(..., min_length=1, max_length=500, description="Street address")
    max_table_count: int = Field(default=1, ge=1, alias="maxTableCount", description="Tables")
    category: str = Field(default="KOREAN", description="Cuisine category")

    @field_validator('name', 'address')
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError('Must not be blank')
        return v

    @field_validator('category')
    @classmethod
    def validate_category(cls, v: str) -> str:
        v = v.upper()
        if v not in CATEGORIES:
            raise ValueError(f'Category must be one of: {", ".join(CATEGORIES)}')
        return v

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True)


class RestaurantSnapshot(BaseModel):
    """Restaurant as returned by the backend. Read-only, never cached."""
    model_config = ConfigDict(populate_by_name=True, extra='ignore', frozen=True)

    id: int
    name: str
    address: str = ""
    category: Optional[str] = None
    max_table_count: int = Field(default=0, alias="maxTableCount")
    remaining_table_count: int = Field(default=0, alias="remainingTableCount")
    rating: Optional[float] = None
    description: Optional[str] = None
    waitlist_count: Optional[int] = Field(default=None, alias="waitlistCount")

    @property
    def is_full(self) -> bool:
        return self.remaining_table_count == 0


class ReservationResult(BaseModel):
    """Backend confirmation of a reservation."""
    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    reservation_id: Any = Field(default=None, alias="reservationId")
    status: Optional[str] = None
    reservation_time: Optional[str] = Field(default=None, alias="reservationTime")
