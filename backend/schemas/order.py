from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from datetime import datetime

from models.order import OrderStatus
from schemas.validators import clean_code, not_null


# Requested line of a new order; price is taken from the product
class OrderLineIn(BaseModel):
    product_id: int
    quantity: int = Field(default=1, ge=1)


# Input schema for creating a new order
class OrderCreate(BaseModel):
    code: str = Field(min_length=1)
    notes: Optional[str] = None
    products: List[OrderLineIn] = []

    @field_validator("code")
    @classmethod
    def strip_code(cls, v):
        return clean_code(v)


# Partial update of an order; a status change goes through the inventory rules
class OrderUpdate(BaseModel):
    code: Optional[str] = Field(None, min_length=1)
    notes: Optional[str] = None
    status: Optional[OrderStatus] = None

    # A null status means "leave the status alone", a null code is rejected
    @field_validator("code")
    @classmethod
    def reject_null_code(cls, v):
        return clean_code(not_null(v))


# Output schema for an individual order line
class OrderLineOut(BaseModel):
    id: int
    product_id: int
    product_code: Optional[str] = None
    product_name: str
    quantity: int
    price: int
    total_price: int


# Output schema representing the full order details
class OrderResponse(BaseModel):
    id: int
    code: str
    notes: Optional[str] = None
    status: str
    created_by: Optional[int] = None
    created_at: datetime
    updated_at: datetime
    total_price: int
    products: List[OrderLineOut]
