# pharmastock/models/users.py

import enum

from sqlalchemy import Boolean, Column, DateTime, Enum, Integer, String
from sqlalchemy.sql import func

from pharmastock.database import Base


class UserRole(str, enum.Enum):
    OWNER = "OWNER"
    PHARMACIST = "PHARMACIST"
    SALES_STAFF = "SALES_STAFF"


class PharmacyUser(Base):
    """Staff record referenced as cashier and audit actor. Credentials live in the account service."""

    __tablename__ = "pharmacy_users"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String(128), nullable=False)
    email = Column(String(128), unique=True, index=True, nullable=False)
    role = Column(Enum(UserRole, name="user_role"), nullable=False)

    active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
