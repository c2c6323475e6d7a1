"""Pydantic schemas for API."""
import re
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
SOURCE_PATTERN = "^(manual|ai-full|ai-edited)$"
AI_SOURCES = ("ai-full", "ai-edited")
SUPPORTED_GENERATION_MODELS = ("gpt-4o-mini",)


def _check_password_strength(value: str) -> str:
    if not re.search(r"[A-Za-z]", value):
        raise ValueError("Password must contain at least one letter")
    if not re.search(r"[0-9]", value):
        raise ValueError("Password must contain at least one digit")
    return value


def _normalize_email(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("E-mail is required")
    if not EMAIL_PATTERN.match(value):
        raise ValueError("Enter a valid e-mail")
    return value


# Auth schemas
class EmailRequest(BaseModel):
    email: str

    @field_validator("email")
    @classmethod
    def _email(cls, value: str) -> str:
        return _normalize_email(value)


class LoginRequest(EmailRequest):
    password: str = Field(min_length=1)


class RegisterRequest(EmailRequest):
    password: str = Field(min_length=8, max_length=72)

    @field_validator("password")
    @classmethod
    def _password_strength(cls, value: str) -> str:
        return _check_password_strength(value)


class UpdatePasswordRequest(BaseModel):
    password: str = Field(min_length=8, max_length=72)
    confirmPassword: str = Field(min_length=1)

    @field_validator("password")
    @classmethod
    def _password_strength(cls, value: str) -> str:
        return _check_password_strength(value)

    @model_validator(mode="after")
    def _passwords_match(self) -> "UpdatePasswordRequest":
        if self.password != self.confirmPassword:
            raise ValueError("Passwords do not match")
        return self


class VerifyOtpRequest(EmailRequest):
    token: str = Field(pattern=r"^\d{6}$")
    type: str = Field(default="signup", pattern="^(signup|recovery)$")


# Flashcard schemas
class FlashcardItemCreate(BaseModel):
    front: str = Field(min_length=1, max_length=200)
    back: str = Field(min_length=1, max_length=500)
    source: str = Field(pattern=SOURCE_PATTERN)
    generation_id: Optional[int] = Field(default=None, gt=0)


class FlashcardsCreate(BaseModel):
    flashcards: list[FlashcardItemCreate] = Field(min_length=1, max_length=100)
    collection_id: Optional[int] = Field(default=None, gt=0)


class FlashcardUpdate(BaseModel):
    front: Optional[str] = Field(default=None, min_length=1, max_length=200)
    back: Optional[str] = Field(default=None, min_length=1, max_length=500)
    collection_id: Optional[int] = Field(default=None, gt=0)

    def changes(self) -> dict:
        """Fields the client actually sent (``collection_id: null`` detaches)."""
        return self.model_dump(exclude_unset=True)


class ListFlashcardsQuery(BaseModel):
    page: int = Field(default=1, ge=1)
    per_page: int = Field(default=20, ge=1, le=100)
    search: Optional[str] = Field(default=None, max_length=200)
    collection_id: Optional[int] = Field(default=None, gt=0)
    source: Optional[str] = Field(default=None, pattern=SOURCE_PATTERN)
    sort: str = Field(default="created_at", pattern="^(created_at|updated_at|front)$")
    order: str = Field(default="desc", pattern="^(asc|desc)$")


class FlashcardResponse(BaseModel):
    id: int
    front: str
    back: str
    source: str
    generation_id: Optional[int] = None
    collection_id: Optional[int] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    model_config = ConfigDict(from_attributes=True, extra="ignore")


class Pagination(BaseModel):
    page: int
    per_page: int
    total: int
    total_pages: int


# Collection schemas
class CollectionCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)

    @field_validator("name")
    @classmethod
    def _strip(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Name must not be blank")
        return value


class CollectionUpdate(CollectionCreate):
    pass


class ListCollectionsQuery(BaseModel):
    page: int = Field(default=1, ge=1)
    per_page: int = Field(default=20, ge=1, le=100)


class CollectionResponse(BaseModel):
    id: int
    name: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    model_config = ConfigDict(extra="ignore")


# Generation schemas
class GenerationCreate(BaseModel):
    source_text: str = Field(min_length=1000, max_length=50000)
    model: str = Field(default="gpt-4o-mini")

    @field_validator("model")
    @classmethod
    def _supported_model(cls, value: str) -> str:
        if value not in SUPPORTED_GENERATION_MODELS:
            raise ValueError(f"model must be one of: {', '.join(SUPPORTED_GENERATION_MODELS)}")
        return value


class FlashcardCandidate(BaseModel):
    front: str
    back: str
    source: str = "ai-full"


class GeneratedFlashcard(BaseModel):
    """Single card as returned by the AI model; lengths are checked by the caller."""
    front: str
    back: str


class GeneratedFlashcards(BaseModel):
    flashcards: list[GeneratedFlashcard] = Field(min_length=1, max_length=50)
