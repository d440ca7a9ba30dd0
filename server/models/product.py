# server/models/product.py

from sqlalchemy import Column, Integer, String, Text, Float, DateTime, JSON
from core.security import utcnow
from . import Base


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    price = Column(Float, nullable=False, default=0.0)
    description = Column(Text, nullable=False)
    ratings = Column(Float, default=0.0)
    images = Column(JSON, default=list)
    category = Column(String, nullable=False, index=True)
    seller = Column(String, nullable=False)
    stock = Column(Integer, nullable=False, default=0)
    num_of_reviews = Column(Integer, default=0)
    created_at = Column(DateTime, default=utcnow)
