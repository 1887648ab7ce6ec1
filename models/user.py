from enum import Enum

from sqlalchemy import Column, String, Boolean, DateTime
from sqlalchemy.orm import relationship, deferred, undefer, validates
from sqlalchemy.types import Enum as SAEnum

import models
from models.base_model import Base, BaseModel


class Role(str, Enum):
    DOCTOR = "doctor"
    PATIENT = "patient"
    ADMIN = "admin"


class AuthProvider(str, Enum):
    LOCAL = "local"
    GOOGLE = "google"


def normalize_email(email):
    return email.strip().lower() if isinstance(email, str) else email


class User(BaseModel, Base):
    __tablename__ = "users"

    name = Column(String(50), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    # Only local-credential accounts carry a hash; kept out of default SELECTs
    password_hash = deferred(Column(String(255), nullable=True))
    auth_provider = Column(
        SAEnum(AuthProvider, name="auth_provider", native_enum=False,
               values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=AuthProvider.LOCAL,
    )
    role = Column(
        SAEnum(Role, name="user_role", native_enum=False,
               values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=Role.PATIENT,
    )
    specialization = Column(String(100), nullable=True)
    profile_picture = Column(String(512), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    last_login = Column(DateTime, nullable=True)

    refresh_tokens = relationship(
        "RefreshToken",
        back_populates="user",
        order_by="RefreshToken.position",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @validates("email")
    def _normalize_email(self, key, value):
        return normalize_email(value)

    @property
    def password(self):
        raise AttributeError("Password: Write-only field")

    @classmethod
    def find_by_id(cls, user_id):
        if not user_id:
            return None
        return models.storage.get(cls, str(user_id))

    @classmethod
    def find_by_email(cls, email, with_password=False):
        """Case-insensitive lookup; the hash is only loaded on request."""
        query = models.storage.get_session().query(cls).filter(cls.email == normalize_email(email))
        if with_password:
            query = query.options(undefer(cls.password_hash))
        return query.first()

    @classmethod
    def create(cls, **fields):
        user = cls(**fields)
        models.storage.new(user)
        models.storage.save()
        return user
