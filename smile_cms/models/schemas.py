from typing import Optional

from pydantic import BaseModel, Field

from .roles import UserRole


class CurrentUser(BaseModel):
    """Authenticated caller resolved from the bearer token and profile row."""
    id: str
    email: Optional[str] = None
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role is UserRole.ADMIN


class UnitCreate(BaseModel):
    name: Optional[str] = None
    assigned_manager_id: Optional[str] = None


class UnitUpdate(BaseModel):
    name: Optional[str] = None
    assigned_manager_id: Optional[str] = None


class UserCreate(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    role: Optional[str] = None


class UserUpdate(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    role: Optional[str] = None


class StockUpdate(BaseModel):
    quantity: int = Field(..., ge=0)
    reason: Optional[str] = None


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    initial_stock: int = Field(0, ge=0)
    unit_id: Optional[str] = None
