from sqlalchemy import Column, DateTime, String, Text, func
from rdmonitor.database import Base


class StoredSetting(Base):
    __tablename__ = "settings"

    key = Column(String(64), primary_key=True)
    value = Column(Text, nullable=False, default="")
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
