"""
Data models for the script writer backend.

"""
from datetime import datetime, UTC

from sqlalchemy import BigInteger, Boolean, Column, DateTime, ForeignKey, Integer, String, Text

from database import Base


class User(Base):
    """
    Account record for both password and Google sign-in.

    - password_hash: bcrypt hash; null for Google-only accounts.
    - google_id: Google subject id; null until the user signs in with Google.
      At least one of password_hash / google_id is always set.
    - name, picture: display name and avatar URL from the Google profile.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=True)
    google_id = Column(String(255), unique=True, nullable=True, index=True)
    name = Column(String(255), nullable=True)
    picture = Column(String(1024), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(UTC))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "picture": self.picture,
        }


class Script(Base):
    """
    A user's script, or a saved version of one.

    - id: opaque string chosen by the client (or synthesized on save).
    - date: display date string as shown in the editor's list.
    - time: sort key, epoch milliseconds; lists are newest first.
    - is_version / parent_id: a version points at the script it was taken
      from. The parent may be gone; orphaned versions are kept.
    - version_id: free-form grouping tag set by the client.
    """
    __tablename__ = "scripts"

    id = Column(String(255), primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(1024), nullable=False)
    content = Column(Text, nullable=False)
    date = Column(String(255), nullable=False)
    time = Column(BigInteger, nullable=False)
    is_version = Column(Boolean, nullable=False, default=False)
    parent_id = Column(String(255), nullable=True, index=True)
    version_id = Column(String(255), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "content": self.content,
            "date": self.date,
            "time": self.time,
            "isVersion": bool(self.is_version),
            "parentId": self.parent_id,
            "versionId": self.version_id,
        }
