from datetime import datetime
from sqlalchemy import Column, String, Text, DateTime

from shopcart.db.base import Base


class StorageEntry(Base):
    __tablename__ = "storage_entries"

    key = Column(String(255), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
