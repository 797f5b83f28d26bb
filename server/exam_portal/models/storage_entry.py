from sqlalchemy import Column, String, Text, DateTime
from sqlalchemy.sql import func
from exam_portal.database import Base


class StorageEntry(Base):
    """Namespaced key holding a serialized JSON blob"""
    __tablename__ = "storage_entries"

    key = Column(String, primary_key=True, index=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<StorageEntry {self.key}>"
