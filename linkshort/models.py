from sqlalchemy import Column, DateTime, Integer, String, Text, func

from .database import Base


class Link(Base):
    __tablename__ = "links"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(8), unique=True, index=True, nullable=False)
    url = Column(Text, nullable=False)
    clicks = Column(Integer, nullable=False, default=0, server_default="0")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    last_clicked = Column(DateTime(timezone=True), nullable=True)
