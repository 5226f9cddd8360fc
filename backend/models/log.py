# backend/models/log.py
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON, func
from sqlalchemy.orm import relationship
from database import Base

# Audit trail of inventory-relevant actions (order placed, cancelled, stock edited...)
class Log(Base):
    __tablename__ = "logs"

    id = Column(Integer, primary_key=True, index=True)

    ts = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    action = Column(String(50), index=True)    # e.g. ORDER_CREATE, ARTICLE_UPDATE
    resource = Column(String(50), index=True)  # articles / products / orders / users
    status = Column(String(20), index=True)
    ip = Column(String(64), nullable=True)

    # Free-form context: ids, old/new status, skipped references
    meta = Column(JSON, nullable=True)

    user = relationship("User", uselist=False)
