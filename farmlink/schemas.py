from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

# --------------------------
# Shared Submodels
# --------------------------
Role = Literal["farmer", "buyer", "transporter", "admin"]


class LatLng(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class Address(BaseModel):
    address: str
    district: Optional[str] = None
    location: Optional[LatLng] = None


# --------------------------
# Users & Auth
# --------------------------
class RegisterIn(BaseModel):
    name: str
    email: EmailStr
    password: str = Field(..., min_length=4)
    role: Role = "buyer"
    phone: Optional[str] = None
    farm_location: Optional[LatLng] = None
    base_location: Optional[LatLng] = None
    service_districts: List[str] = []


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    avatar: Optional[str] = None
    farm_location: Optional[LatLng] = None
    base_location: Optional[LatLng] = None
    service_districts: Optional[List[str]] = None


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    role: Role
    user_id: str


# --------------------------
# Products
# --------------------------
class ProductIn(BaseModel):
    crop_name: str
    category: str = "vegetables"
    description: Optional[str] = None
    price_per_unit: float = Field(..., gt=0)
    unit: str = "kg"
    quantity: float = Field(..., ge=0)
    grade: Optional[str] = None
    photos: List[str] = []
    location: Optional[Address] = None


class ProductUpdate(BaseModel):
    crop_name: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    price_per_unit: Optional[float] = Field(None, gt=0)
    unit: Optional[str] = None
    quantity: Optional[float] = Field(None, ge=0)
    grade: Optional[str] = None
    photos: Optional[List[str]] = None
    location: Optional[Address] = None


# --------------------------
# Orders
# --------------------------
class CheckoutIn(BaseModel):
    product_id: str
    quantity: float = Field(..., gt=0)
    delivery_address: Address
    notes: Optional[str] = None


class OrderStatusIn(BaseModel):
    status: Literal["confirmed", "cancelled"]
    note: Optional[str] = None


class RateTransporterIn(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = None


# --------------------------
# Transporter
# --------------------------
class DeliveryStatusIn(BaseModel):
    # validated by the delivery service so callers get InvalidStatus
    status: str
    note: Optional[str] = None
    photo: Optional[str] = None


# --------------------------
# Reviews
# --------------------------
class ReviewIn(BaseModel):
    product_id: str
    order_id: str
    rating: int
    comment: str
    aspects: Dict[str, Optional[int]] = {}


class VisibilityIn(BaseModel):
    is_visible: bool
