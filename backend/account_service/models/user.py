from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func

from account_service.core.database import Base

# Column sizes for caller-supplied fields; values are checked against these before any write
FIELD_MAX_LENGTHS = {
    "username": 255,
    "email": 255,
    "phone_number": 50,
    "profile_photo": 1024,
    "phone_token": 512,
}


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, index=True)
    username = Column(String(FIELD_MAX_LENGTHS["username"]), nullable=False)
    email = Column(String(FIELD_MAX_LENGTHS["email"]), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    phone_number = Column(String(FIELD_MAX_LENGTHS["phone_number"]), nullable=True)
    profile_photo = Column(String(FIELD_MAX_LENGTHS["profile_photo"]), nullable=True)
    phone_token = Column(String(FIELD_MAX_LENGTHS["phone_token"]), nullable=True)
    # Password recovery: both set by forgot-password, both cleared on a successful verify
    verification_code = Column(String(10), nullable=True)
    code_expiry = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
