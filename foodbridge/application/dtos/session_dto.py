"""Request and response models for the session API."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from foodbridge.domain.entities.profile import Category, Role
from foodbridge.domain.entities.user import User


class CoordinatesModel(BaseModel):
    lat: float = Field(..., ge=-90, le=90, description="Latitude", example=12.9716)
    lng: float = Field(..., ge=-180, le=180, description="Longitude", example=77.5946)


class LocationModel(BaseModel):
    """Structured address stored in ``profiles.location``."""
    address: str = Field(..., description="Street address", example="12 MG Road, Bengaluru")
    coordinates: CoordinatesModel


class LoginRequest(BaseModel):
    email: str = Field(..., description="Account email", example="donor@example.com")
    password: str = Field(..., min_length=1, description="Account password")


class RegisterRequest(BaseModel):
    email: str = Field(..., description="Account email", example="donor@example.com")
    password: str = Field(..., min_length=1, description="Account password")
    role: Literal["donor", "receiver"] = Field("donor", description="Self-assignable role")


class ProfileUpdate(BaseModel):
    """Partial profile update. Only fields present in the request are written."""
    name: Optional[str] = Field(None, max_length=200, description="Full name", example="Asha Rao")
    phone: Optional[str] = Field(None, max_length=32, description="Contact phone number")
    organization_name: Optional[str] = Field(None, max_length=200, description="Organization name")
    category: Optional[Category] = Field(None, description="Receiver organization category")
    location: Optional[LocationModel] = Field(None, description="Pickup / drop-off location")
    profile_picture: Optional[str] = Field(None, description="Avatar URL")

    def to_columns(self) -> dict[str, Any]:
        """Map the supplied fields to ``profiles`` column names."""
        data = self.model_dump(exclude_unset=True, mode="json")
        if "name" in data:
            data["full_name"] = data.pop("name")
        return data


class UserResponse(BaseModel):
    id: str = Field(..., description="Profile id (same as the auth identity id)")
    name: str = Field(..., description="Full name, or the email local-part when unset")
    email: str
    role: Role
    verified: bool
    profile_complete: bool
    profile_picture: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[LocationModel] = None
    organization_name: Optional[str] = None
    category: Optional[Category] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_user(cls, user: User) -> UserResponse:
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            role=user.role,
            verified=user.verified,
            profile_complete=user.profile_complete,
            profile_picture=user.profile_picture,
            phone=user.phone,
            location=LocationModel.model_validate(user.location.to_dict()) if user.location else None,
            organization_name=user.organization_name,
            category=user.category,
            created_at=user.created_at,
        )


class SessionStateResponse(BaseModel):
    user: Optional[UserResponse] = Field(None, description="Signed-in user, null when unauthenticated")
    loading: bool = Field(..., description="True while a session operation is in progress")
    error: Optional[str] = Field(None, description="Last user-facing error message")


class OAuthStartResponse(BaseModel):
    url: str = Field(..., description="Provider authorization URL to redirect the browser to")


class LogoutResponse(BaseModel):
    ok: bool = Field(True, description="Logout always succeeds from the caller's perspective")


class SessionTokenResponse(SessionStateResponse):
    access_token: Optional[str] = Field(
        None,
        description="Bearer token for the other /session routes; null when sign-up needs email confirmation",
    )
