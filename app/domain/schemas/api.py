from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, Union


class CamelModel(BaseModel):
    # frontend sends camelCase; python side stays snake_case
    model_config = ConfigDict(populate_by_name=True)


class ApiOut(BaseModel):
    success: bool = True
    message: str


class SendOtpIn(CamelModel):
    email: Optional[str] = None
    full_name: Optional[str] = Field(default=None, alias="fullName")
    uid: Optional[str] = None


class VerifyOtpIn(CamelModel):
    email: Optional[str] = None
    otp: Optional[Union[str, int]] = None
    uid: Optional[str] = None


class SubscribeIn(CamelModel):
    email: Optional[str] = None


class HealthOut(BaseModel):
    status: str
    message: str
    firebase: str     # connected | not connected
    email: str        # configured | not configured
    cloudinary: str   # configured | not configured


class ProfileImageOut(ApiOut):
    photoURL: str
    publicId: str


class PriceDropIn(CamelModel):
    product_id: Optional[Union[str, int]] = Field(default=None, alias="productId")
    product_name: Optional[str] = Field(default=None, alias="productName")
    product_image: Optional[str] = Field(default=None, alias="productImage")
    old_price: Optional[float] = Field(default=None, alias="oldPrice")
    new_price: Optional[float] = Field(default=None, alias="newPrice")


class PriceDropOut(ApiOut):
    notifiedCount: int
    totalWishlistUsers: Optional[int] = None
