"""
User data models and validation.
"""

from pydantic import BaseModel, EmailStr, field_validator
from typing import Optional, Dict, Any
from datetime import datetime
import uuid

from dealscope.utils.auth import ROLES

USER_STATUSES = ('active', 'suspended')


def validate_role_value(v: str) -> str:
    v = (v or '').strip().lower()
    if v not in ROLES:
        raise ValueError(f'Role must be one of: {list(ROLES)}')
    return v


class UserSignup(BaseModel):
    """User signup request model."""
    email: EmailStr
    password: str
    name: Optional[str] = None
    phone_number: Optional[str] = None
    role: str = 'investor'

    @field_validator('password')
    @classmethod
    def validate_password(cls, v):
        if len(v) < 8:
            raise ValueError('Password must be at least 8 characters long')
        return v

    @field_validator('role')
    @classmethod
    def validate_role(cls, v):
        return validate_role_value(v)


class UserLogin(BaseModel):
    """User login request model; `role` is the role picked on the login form."""
    email: EmailStr
    password: str
    role: str = 'investor'

    @field_validator('role')
    @classmethod
    def validate_role(cls, v):
        return validate_role_value(v)


class ProfileUpdate(BaseModel):
    """Profile update request model."""
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone_number: Optional[str] = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        if v is not None and not v.strip():
            raise ValueError('Name cannot be empty')
        return v.strip() if v else v


class PasswordResetRequest(BaseModel):
    email: EmailStr


class PasswordResetConfirm(BaseModel):
    token: str
    new_password: str

    @field_validator('new_password')
    @classmethod
    def validate_password(cls, v):
        if len(v) < 8:
            raise ValueError('Password must be at least 8 characters long')
        return v


class User:
    """User data class with utility methods."""

    def __init__(self, data: Dict[str, Any]):
        self.user_id = data.get('user_id')
        self.email = data.get('email')
        self.name = data.get('name')
        self.phone_number = data.get('phone_number')
        self.role = data.get('role', 'investor')
        self.status = data.get('status', 'active')
        self.password_hash = data.get('password_hash')
        self.created_at = data.get('created_at')
        self.updated_at = data.get('updated_at')
        self.last_login = data.get('last_login')
        self.metadata = data.get('metadata') or {}

    @classmethod
    def create_new(
        cls,
        email: str,
        password_hash: str,
        role: str = 'investor',
        name: Optional[str] = None,
        phone_number: Optional[str] = None
    ) -> 'User':
        """Create a new user instance."""
        now = datetime.utcnow().isoformat()

        data = {
            'user_id': str(uuid.uuid4()),
            'email': email.strip().lower(),
            'name': name,
            'phone_number': phone_number,
            'role': role,
            'status': 'active',
            'password_hash': password_hash,
            'created_at': now,
            'updated_at': now,
            'last_login': None,
            'metadata': {}
        }

        return cls(data)

    @property
    def display_name(self) -> str:
        return self.name or (self.email or '').split('@')[0]

    @property
    def is_active(self) -> bool:
        return self.status == 'active'

    def to_dict(self) -> Dict[str, Any]:
        """Convert user to dictionary."""
        return {
            'user_id': self.user_id,
            'email': self.email,
            'name': self.name,
            'phone_number': self.phone_number,
            'role': self.role,
            'status': self.status,
            'password_hash': self.password_hash,
            'created_at': self.created_at,
            'updated_at': self.updated_at,
            'last_login': self.last_login,
            'metadata': self.metadata
        }

    def to_public_dict(self) -> Dict[str, Any]:
        """Convert user to public dictionary (without sensitive data)."""
        data = self.to_dict()
        data.pop('password_hash')
        return data
