from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from taskboard.domain.enums import SubjectRole, SubjectStatus


class SubjectCreate(BaseModel):
    """Schema for creating a subject"""
    email: EmailStr = Field(..., description="Login email, stored lowercased")
    # Already hashed by the caller; opaque to this layer
    password_hash: str = Field(min_length=1, max_length=255)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    role: SubjectRole = SubjectRole.USER

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower() if isinstance(v, str) else v


class SubjectUpdate(BaseModel):
    """Schema for updating a subject; only fields that are set are applied"""
    email: EmailStr | None = None
    first_name: str | None = Field(default=None, min_length=1, max_length=100)
    last_name: str | None = Field(default=None, min_length=1, max_length=100)
    role: SubjectRole | None = None
    status: SubjectStatus | None = None

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

    def changes(self) -> dict:
        """Fields explicitly set to a value (every subject column is non-nullable)"""
        return self.model_dump(exclude_unset=True, exclude_none=True)


class SubjectRead(BaseModel):
    """Schema for subject responses; never carries credential material"""
    id: str
    email: str
    first_name: str
    last_name: str
    full_name: str
    role: SubjectRole
    status: SubjectStatus
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class SubjectSummary(BaseModel):
    id: str
    email: str
    full_name: str

    model_config = ConfigDict(from_attributes=True)
