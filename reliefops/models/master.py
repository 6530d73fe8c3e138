"""
Reference Tables: AppUser, Disaster, Shelter, Evacuee, Category, ReliefGood

Consumed by the ledgers, never mutated by them.
"""
from sqlalchemy import Column, String, Boolean, Integer, DateTime, ForeignKey, Table, Text
from sqlalchemy.orm import relationship
from reliefops.core import Base
from .base import IntegerIdMixin, utcnow

relief_good_category = Table(
    "relief_good_category",
    Base.metadata,
    Column("relief_good_id", Integer, ForeignKey("relief_good.id"), primary_key=True),
    Column("category_id", Integer, ForeignKey("category.id"), primary_key=True),
)

class AppUser(Base, IntegerIdMixin):
    """Application User"""
    __tablename__ = "app_user"
    
    username = Column(String(100), unique=True, nullable=False)
    email = Column(String(200))
    full_name = Column(String(200))
    role = Column(String(30), default="Staff", nullable=False)  # Admin, Staff, Volunteer
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

class Disaster(Base, IntegerIdMixin):
    """Disaster / Incident"""
    __tablename__ = "disaster"
    
    title = Column(String(255), nullable=False)
    disaster_type = Column(String(100), nullable=False)
    severity = Column(String(50), nullable=False)
    status = Column(String(50), nullable=False, default="Active")
    location = Column(String(255), nullable=False)
    start_date = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    end_date = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    
    # Relationships
    shelters = relationship("Shelter", back_populates="disaster")

class Shelter(Base, IntegerIdMixin):
    """Evacuation Shelter"""
    __tablename__ = "shelter"
    
    disaster_id = Column(Integer, ForeignKey("disaster.id"), index=True)
    name = Column(String(255), nullable=False)
    capacity = Column(Integer, default=0, nullable=False)
    current_occupancy = Column(Integer, default=0, nullable=False)
    location = Column(String(255))
    is_active = Column(Boolean, default=True, nullable=False)
    
    # Relationships
    disaster = relationship("Disaster", back_populates="shelters")
    evacuees = relationship("Evacuee", back_populates="shelter")

class Evacuee(Base, IntegerIdMixin):
    """Registered Evacuee"""
    __tablename__ = "evacuee"
    
    disaster_id = Column(Integer, ForeignKey("disaster.id"), nullable=False, index=True)
    shelter_id = Column(Integer, ForeignKey("shelter.id"), index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    status = Column(String(50), nullable=False, default="Registered")
    registered_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    
    # Relationships
    shelter = relationship("Shelter", back_populates="evacuees")

class Category(Base, IntegerIdMixin):
    """Relief Good Category"""
    __tablename__ = "category"
    
    name = Column(String(100), nullable=False)
    description = Column(String(255))
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    
    # Relationships
    relief_goods = relationship("ReliefGood", secondary=relief_good_category, back_populates="categories")

class ReliefGood(Base, IntegerIdMixin):
    """Relief Good type (rice, water, medicine...)"""
    __tablename__ = "relief_good"
    
    name = Column(String(255), nullable=False)
    unit = Column(String(50), nullable=False)
    description = Column(Text)
    is_active = Column(Boolean, default=True, nullable=False)
    requires_expiration = Column(Boolean, default=False, nullable=False)
    expiration_date = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    
    # Relationships
    categories = relationship("Category", secondary=relief_good_category, back_populates="relief_goods")
    stocks = relationship("Stock", back_populates="relief_good")
