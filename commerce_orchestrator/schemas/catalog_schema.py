"""Product and workshop catalog records plus their search filters."""

from typing import Optional

from pydantic import BaseModel, ConfigDict


class Product(BaseModel):
    """Product record from the catalog."""
    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: Optional[str] = None
    product_code: str
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    brand: Optional[str] = None
    vehicle_make: Optional[str] = None
    vehicle_model: Optional[str] = None
    part_number: Optional[str] = None
    unit_price: float
    stock_quantity: Optional[int] = None
    min_order_quantity: Optional[int] = 1
    delivery_days: Optional[int] = None
    is_active: bool = True


class Workshop(BaseModel):
    """Repair workshop / garage record."""
    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: Optional[str] = None
    name: str
    owner_name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    district: Optional[str] = None
    zone: Optional[str] = None
    is_active: bool = True


class ProductFilters(BaseModel):
    """Any combination of product search criteria.

    Text fields match case-insensitively as substrings; ``product_code``
    matches exactly. ``keyword`` searches name and description.
    """
    vehicle_make: Optional[str] = None
    vehicle_model: Optional[str] = None
    category: Optional[str] = None
    product_code: Optional[str] = None
    brand: Optional[str] = None
    part_number: Optional[str] = None
    keyword: Optional[str] = None


class WorkshopFilters(BaseModel):
    """Workshop search criteria. ``keyword`` searches name, address and owner."""
    city: Optional[str] = None
    district: Optional[str] = None
    zone: Optional[str] = None
    keyword: Optional[str] = None
