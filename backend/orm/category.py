"""
backend/orm/category.py
Course categories (static reference data)
"""
from sqlalchemy import Column, String, Text
from sqlalchemy.orm import relationship
from backend.orm.base import BaseModel


class Category(BaseModel):
    __tablename__ = "categories"

    name = Column(String(100), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    color = Column(String(20), nullable=True)

    courses = relationship("Course", back_populates="category", passive_deletes=True)

    def to_dict(self):
        return {"id": self.id, "name": self.name}
