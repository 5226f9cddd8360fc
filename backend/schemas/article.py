# backend/schemas/article.py
from pydantic import BaseModel, Field, ConfigDict, field_validator
from datetime import datetime
from typing import Optional

from schemas.validators import clean_code, not_null
from services.stock_status import StockStatus


# Base configuration for ORM compatibility
class ORMBase(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class ArticleBase(ORMBase):
    code: str = Field(min_length=1)
    name: str = Field(min_length=1)
    description: Optional[str] = None
    category: str = Field(min_length=1)
    quantity: int = Field(default=0, ge=0)
    threshold: int = Field(default=0, ge=0)


class ArticleCreate(ArticleBase):
    @field_validator("code")
    @classmethod
    def strip_code(cls, v):
        return clean_code(v)


# Partial update; a quantity given here overwrites the stock as is
class ArticleUpdate(ORMBase):
    code: Optional[str] = Field(None, min_length=1)
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    category: Optional[str] = Field(None, min_length=1)
    quantity: Optional[int] = Field(None, ge=0)
    threshold: Optional[int] = Field(None, ge=0)

    @field_validator("code", "name", "category", "quantity", "threshold")
    @classmethod
    def reject_null(cls, v):
        return not_null(v)

    @field_validator("code")
    @classmethod
    def strip_code(cls, v):
        return clean_code(v)


# Article payload with its derived stock status
class ArticleOut(ArticleBase):
    id: int
    status: StockStatus
    created_at: datetime
    updated_at: datetime
