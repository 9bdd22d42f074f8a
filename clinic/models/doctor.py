from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func

from ..core.database import Base

class Doctor(Base):
    __tablename__ = "doctors"
    
    id = Column(Integer, primary_key=True, index=True)
    
    # Personal information
    name = Column(String(100), nullable=False)
    specialty = Column(String(100), nullable=False)
    
    # Credentials
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    
    # Contact information
    phone = Column(String(20), nullable=True)
    
    # Free-text ranges such as "09:00-12:00"; only used for AM/PM filtering
    available_times = Column(JSON, nullable=False, default=list)
    
    # Timestamps
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
    
    def __repr__(self):
        return f"<Doctor(id={self.id}, name='{self.name}', specialty='{self.specialty}')>"
