from typing import Any, Dict
from sqlalchemy import BigInteger, Column, String, Text
from app.core.db import Base

class Breakdown(Base):
    """
    A breakdown report. Stored flat; exposed to clients as the nested document
    `{..., assignedTechnician: {name, email}, timestamps: {created, updated}}`.
    """
    __tablename__ = "breakdowns"

    id = Column(String(40), primary_key=True, index=True)
    reporter_uid = Column(String(64), nullable=False, index=True)
    reporter_name = Column(String(255), nullable=False)
    reporter_email = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    status = Column(String(20), nullable=False, default="pending", index=True)

    # Snapshot of the technician account at assignment time, not a foreign key
    assigned_technician_name = Column(String(255), nullable=True, index=True)
    assigned_technician_email = Column(String(255), nullable=True)

    fix_details = Column(Text, nullable=True)
    created_ms = Column(BigInteger, nullable=False)
    updated_ms = Column(BigInteger, nullable=False)

    def to_document(self) -> Dict[str, Any]:
        technician = None
        if self.assigned_technician_name is not None or self.assigned_technician_email is not None:
            technician = {"name": self.assigned_technician_name, "email": self.assigned_technician_email}
        return {
            "reporterUid": self.reporter_uid,
            "reporterName": self.reporter_name,
            "reporterEmail": self.reporter_email,
            "message": self.message,
            "status": self.status,
            "assignedTechnician": technician,
            "fixDetails": self.fix_details,
            "timestamps": {"created": self.created_ms, "updated": self.updated_ms},
        }

    @staticmethod
    def columns_from_document(document: Dict[str, Any]) -> Dict[str, Any]:
        """Translate a (partial) document into column values, field by field."""
        columns = {}
        simple = {
            "reporterUid": "reporter_uid",
            "reporterName": "reporter_name",
            "reporterEmail": "reporter_email",
            "message": "message",
            "status": "status",
            "fixDetails": "fix_details",
        }
        for key, column in simple.items():
            if key in document:
                columns[column] = document[key]

        if "assignedTechnician" in document:
            technician = document["assignedTechnician"] or {}
            columns["assigned_technician_name"] = technician.get("name")
            columns["assigned_technician_email"] = technician.get("email")

        if "timestamps" in document:
            timestamps = document["timestamps"] or {}
            if "created" in timestamps:
                columns["created_ms"] = timestamps["created"]
            if "updated" in timestamps:
                columns["updated_ms"] = timestamps["updated"]

        unknown = set(document) - set(simple) - {"assignedTechnician", "timestamps", "id"}
        if unknown:
            raise ValueError(f"Unknown breakdown fields: {sorted(unknown)}")
        return columns
