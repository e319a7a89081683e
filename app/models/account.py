from datetime import datetime
from typing import Any, Dict
from sqlalchemy import BigInteger, Column, DateTime, String
from app.core.db import Base

class Account(Base):
    """Directory entry: who an identity is and which role it plays."""
    __tablename__ = "users"

    id = Column(String(64), primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    role = Column(String(20), nullable=False, index=True)
    created_at_ms = Column(BigInteger, nullable=True)

    def to_document(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "createdAt": self.created_at_ms,
        }

    @staticmethod
    def columns_from_document(document: Dict[str, Any]) -> Dict[str, Any]:
        columns = {}
        mapping = {"name": "name", "email": "email", "role": "role", "createdAt": "created_at_ms"}
        for key, column in mapping.items():
            if key in document:
                columns[column] = document[key]
        unknown = set(document) - set(mapping) - {"id"}
        if unknown:
            raise ValueError(f"Unknown account fields: {sorted(unknown)}")
        return columns

class Credential(Base):
    """
    Identity provider record. Kept apart from the directory so deleting an
    Account and revoking a credential stay separate operations.
    """
    __tablename__ = "credentials"

    uid = Column(String(64), primary_key=True, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    display_name = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
