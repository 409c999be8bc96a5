from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, ConfigDict, Field
from typing import Literal, Optional

Category = Literal["Goods", "Food", "Drink", "Other"]


class ProductCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1, max_length=2000)
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    category: Category
    stock: int = Field(0, ge=0)
    featured: bool = False


class ProductUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, min_length=1, max_length=2000)
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    category: Optional[Category] = None
    stock: Optional[int] = Field(None, ge=0)
    featured: Optional[bool] = None


class StockUpdate(BaseModel):
    quantity: int  # signed delta


class ProductOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    description: str
    price: float
    category: str
    stock: int
    featured: bool
    created_at: Optional[datetime] = Field(None, serialization_alias="createdAt")
    updated_at: Optional[datetime] = Field(None, serialization_alias="updatedAt")
