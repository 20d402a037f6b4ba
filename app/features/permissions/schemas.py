"""
Pydantic schemas for role administration.
"""
from datetime import datetime
from typing import Dict, Any, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator


class RoleBase(BaseModel):
    """Base role schema."""
    name: str = Field(..., min_length=1, max_length=50, description="Unique role name")
    description: Optional[str] = Field(None, max_length=1000, description="Role description")


class RoleCreate(RoleBase):
    """Schema for creating a new role."""

    @field_validator('name')
    @classmethod
    def name_alphanumeric_underscore(cls, v: str) -> str:
        """Validate role name format."""
        if not v.replace('_', '').replace('-', '').isalnum():
            raise ValueError('Role name must contain only alphanumeric characters, underscores, and hyphens')
        return v.lower()


class RoleResponse(RoleBase):
    """Schema for role response."""
    id: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AssignRoleToUser(BaseModel):
    """Schema for assigning a role to a user."""
    role_id: str = Field(..., description="Role ID")


class UserRolesResponse(BaseModel):
    """Roles currently assigned to a user."""
    user_id: str
    roles: list[RoleResponse]


class AuditLogResponse(BaseModel):
    """Schema for audit log response."""
    id: str
    user_id: Optional[str]
    action: str
    resource_type: str
    resource_id: Optional[str]
    details: Optional[Dict[str, Any]]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
