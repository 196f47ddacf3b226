"""
SQLAlchemy table backing the "orders" document collection
"""
from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func

from order_service.database import Base


class OrderRecord(Base):
    """One order document plus the fields the store queries on"""
    
    __tablename__ = "orders"
    
    id = Column(String(64), primary_key=True)
    user_id = Column(String(128), nullable=True, index=True)
    idempotency_key = Column(String(255), nullable=True, unique=True, index=True)
    status = Column(String(50), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    version = Column(Integer, nullable=False, default=1)
    data = Column(JSON, nullable=False)
    
    def __repr__(self):
        return f"<OrderRecord(id='{self.id}', status='{self.status}', version={self.version})>"
