from sqlalchemy import Column, String, Text, DateTime, func
from leave_portal.database import Base

class StorageEntry(Base):
    __tablename__ = "local_storage"
    
    key = Column(String(100), primary_key=True, index=True)
    value = Column(Text, nullable=False)  # JSON 文字
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
