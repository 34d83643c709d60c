"""
Database Schemas for the Gebeya marketplace

Each Pydantic model represents a collection in MongoDB. The collection name is the
lowercase of the class name (e.g., User -> "user"). Request bodies accepted by the
API live at the bottom of the module; they only describe shape; business rules are
checked in validation.py so every failing field can be reported at once.
"""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field

ROLES = ("customer", "wholesaler", "admin")
SELF_SERVICE_ROLES = ("customer", "wholesaler")

CATEGORIES = ("grains", "vegetables", "fruits", "legumes", "spices", "dairy", "meat", "other")
UNITS = ("kg", "quintal", "ton", "piece", "liter", "dozen")
QUALITY_GRADES = ("premium", "standard", "economy")

ORDER_STATUSES = ("pending", "processing", "shipped", "delivered", "cancelled")
PAYMENT_METHODS = ("cash", "bank_transfer", "mobile_money")


class BusinessInfo(BaseModel):
    business_name: Optional[str] = None
    business_type: Optional[str] = None
    license_number: Optional[str] = None
    address: Optional[str] = None


class User(BaseModel):
    """
    Users collection schema
    Collection name: "user"
    """
    name: str = Field(..., description="Full name")
    email: str = Field(..., description="Email address, unique, lower-cased")
    password_hash: str = Field(..., description="BCrypt hash of the password")
    role: str = Field("customer", description="customer, wholesaler or admin; fixed at creation")
    phone: Optional[str] = Field(None, description="Contact phone")
    business_info: Optional[BusinessInfo] = Field(None, description="Wholesaler business details")
    is_verified: bool = Field(False, description="Wholesaler approved by an admin")
    is_active: bool = Field(True, description="Whether the account may sign in")


class Location(BaseModel):
    model_config = ConfigDict(extra="forbid")

    region: Optional[str] = None
    city: Optional[str] = None


class Rating(BaseModel):
    average: float = Field(0, ge=0, le=5)
    count: int = Field(0, ge=0)


class Product(BaseModel):
    """
    Products collection schema
    Collection name: "product"
    """
    name: str = Field(..., description="Product name")
    description: str = Field(..., description="Product description")
    category: str = Field(..., description="One of CATEGORIES")
    price: float = Field(..., ge=0, description="Unit price in birr")
    unit: str = Field(..., description="One of UNITS")
    minimum_order: int = Field(1, ge=1, description="Smallest quantity a customer may order")
    available_quantity: int = Field(..., ge=0, description="Units left in stock")
    images: List[str] = Field(default_factory=list)
    wholesaler: Any = Field(..., description="ObjectId of the owning wholesaler")
    is_active: bool = Field(True, description="Listed in the public catalog")
    location: Optional[Location] = None
    harvest_date: Optional[datetime] = None
    expiry_date: Optional[datetime] = None
    quality_grade: str = Field("standard", description="One of QUALITY_GRADES")
    certifications: List[str] = Field(default_factory=list)
    rating: Rating = Field(default_factory=Rating)


class OrderItem(BaseModel):
    product: Any = Field(..., description="ObjectId of the product")
    quantity: int = Field(..., ge=1)
    price: float = Field(..., ge=0, description="Unit price at purchase time")
    total: float = Field(..., ge=0, description="price * quantity")


class ShippingAddress(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None
    phone: Optional[str] = None


class Order(BaseModel):
    """
    Orders collection schema
    Collection name: "order"
    """
    order_number: str
    customer: Any = Field(..., description="ObjectId of the ordering user")
    wholesaler: Any = Field(..., description="ObjectId of the single wholesaler fulfilling the order")
    items: List[OrderItem]
    total_amount: float = Field(..., ge=0)
    shipping_address: Optional[ShippingAddress] = None
    payment_method: str = Field("cash", description="One of PAYMENT_METHODS")
    status: str = Field("pending", description="One of ORDER_STATUSES")
    notes: Optional[str] = None


# Request bodies

class RegisterRequest(BaseModel):
    name: str = ""
    email: str = ""
    password: str = ""
    role: Optional[str] = None
    phone: Optional[str] = None
    business_info: Optional[BusinessInfo] = None


class LoginRequest(BaseModel):
    email: str = ""
    password: str = ""


class ProfileUpdateRequest(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    business_info: Optional[BusinessInfo] = None


class CartItem(BaseModel):
    product: str
    quantity: int = Field(..., ge=1)


class CreateOrderRequest(BaseModel):
    items: List[CartItem] = Field(default_factory=list)
    shipping_address: Optional[ShippingAddress] = None
    payment_method: Optional[str] = None
    notes: Optional[str] = None


class OrderStatusRequest(BaseModel):
    status: str


class UserStatusRequest(BaseModel):
    is_active: bool


class VerificationRequest(BaseModel):
    is_verified: bool
