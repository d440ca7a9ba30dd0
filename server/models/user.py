# server/models/user.py

from sqlalchemy import Column, Integer, String, DateTime
from core.security import utcnow
from . import Base


# -------------------------------
# User Model
# -------------------------------

class User(Base):
    """
    Database model for shop accounts.
    Only the bcrypt hash of the password is stored. The reset token is
    stored as a SHA-256 digest together with its expiration time.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    refresh_token = Column(String, index=True, nullable=True)
    reset_password_token = Column(String, index=True, nullable=True)
    reset_password_expiration = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    def clear_reset_token(self):
        self.reset_password_token = None
        self.reset_password_expiration = None
