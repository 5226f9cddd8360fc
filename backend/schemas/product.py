# backend/schemas/product.py
from pydantic import BaseModel, Field, ConfigDict, field_validator
from datetime import datetime
from typing import Optional, List

from schemas.article import ArticleOut
from schemas.validators import clean_code, not_null
from services.availability import ProductAvailability


# Base configuration for ORM compatibility
class ORMBase(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# One composition entry as sent by the client
class CompositionIn(BaseModel):
    article_id: int
    quantity: int = Field(default=1, ge=1, description="Units of the article per unit of product")


# Shared base attributes for product entities
class ProductBase(ORMBase):
    code: str = Field(min_length=1)
    name: str = Field(min_length=1)
    description: Optional[str] = None
    category: str = Field(min_length=1)
    price: int = Field(default=0, ge=0, description="Price in cents")


# Schema for creating a new product together with its articles
class ProductCreate(ProductBase):
    articles: List[CompositionIn] = []

    @field_validator("code")
    @classmethod
    def strip_code(cls, v):
        return clean_code(v)


# Schema for partial product updates; when "articles" is given the list is replaced
class ProductUpdate(ORMBase):
    code: Optional[str] = Field(None, min_length=1)
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    category: Optional[str] = Field(None, min_length=1)
    price: Optional[int] = Field(None, ge=0)
    articles: Optional[List[CompositionIn]] = None

    @field_validator("code", "name", "category", "price")
    @classmethod
    def reject_null(cls, v):
        return not_null(v)

    @field_validator("code")
    @classmethod
    def strip_code(cls, v):
        return clean_code(v)


class CompositionOut(ORMBase):
    id: int
    article_id: int
    quantity: int
    article: ArticleOut


# Full product representation with compositions and derived availability
class ProductOut(ProductBase):
    id: int
    availability: ProductAvailability
    articles: List[CompositionOut]
    created_at: datetime
    updated_at: datetime
