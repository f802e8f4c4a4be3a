# models.py
"""
Entity models. Stored and served in camelCase (userId, screenshotUrl, ...)
so the persisted collections keep the layout the web client reads.
"""
import time
from datetime import datetime, timezone
from typing import Optional, Literal, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

WasteType = Literal["wet", "dry", "mixed"]
PickupType = Literal["recycling", "compost", "general"]
AccountStatus = Literal["active", "restricted", "blocked"]
SubscriptionStatus = Literal["active", "paused", "cancelled"]
BookingStatus = Literal["scheduled", "completed", "cancelled"]
BookingPaymentStatus = Literal["unpaid", "paid", "failed"]
PaymentStatus = Literal["pending", "verified", "rejected", "failed"]
PaymentPurpose = Literal["balance", "booking", "upgrade"]
CheckoutStage = Literal["none", "payment", "upload", "verifying", "receipt", "details", "failed"]
BinSize = Literal["Small (60L)", "Medium (120L)", "Large (240L)"]
Frequency = Literal["Weekly", "Bi-Weekly"]
IssueType = Literal["missed-pickup", "service-issue", "other"]
ComplaintStatus = Literal["submitted", "in-progress", "resolved"]


def now_ms() -> int:
    return int(time.time() * 1000)


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class Entity(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def dump(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class UserSubscription(Entity):
    plan_id: str
    status: SubscriptionStatus = "active"
    next_renewal_date: str


class User(Entity):
    id: str
    name: str
    email: str
    mobile: Optional[str] = None
    password_hash: str
    address: str
    household_id: str
    profile_picture: Optional[str] = None
    subscription: UserSubscription
    role: Literal["user"] = "user"
    status: AccountStatus = "active"
    outstanding_balance: float = 0.0
    created_at: str = Field(default_factory=now_iso)


class Admin(Entity):
    id: str
    name: str
    mobile: str
    password_hash: str
    role: Literal["admin"] = "admin"


Principal = Union[User, Admin]


class WasteLog(Entity):
    id: str
    user_id: str
    type: WasteType
    timestamp: int = Field(default_factory=now_ms)
    fined: bool = False


class Pickup(Entity):
    user_id: str
    type: PickupType
    date: str = Field(default_factory=now_iso)


class Booking(Entity):
    id: str
    user_id: str
    date: str
    time: str
    notes: str = ""
    reminder_enabled: bool = True
    status: BookingStatus = "scheduled"
    amount: float
    payment_status: BookingPaymentStatus = "unpaid"


class Payment(Entity):
    id: str
    user_id: str
    date: str = Field(default_factory=now_iso)
    amount: float
    status: PaymentStatus = "pending"
    screenshot_url: Optional[str] = None
    purpose: PaymentPurpose = "balance"
    booking_id: Optional[str] = None
    plan_id: Optional[str] = None
    stage: CheckoutStage = "upload"


class SubscriptionPlan(Entity):
    id: str
    name: str
    price_per_month: float
    bin_size: BinSize
    frequency: Frequency


class Complaint(Entity):
    id: str
    user_id: str
    issue_type: IssueType
    description: str
    photo: Optional[str] = None
    status: ComplaintStatus = "submitted"
    date: str = Field(default_factory=now_iso)


class Announcement(Entity):
    id: str
    title: str
    content: str
    timestamp: int = Field(default_factory=now_ms)


class AdminMessage(Entity):
    id: str
    user_id: str
    text: str
    timestamp: int = Field(default_factory=now_ms)
    read: bool = False
    sender: Literal["admin"] = "admin"


class InboxItem(Entity):
    id: str
    type: Literal["direct", "community"]
    text: str
    title: Optional[str] = None
    timestamp: int
    read: Optional[bool] = None


class Feedback(Entity):
    user_id: str
    text: str
    date: str = Field(default_factory=now_iso)


class PasswordReset(Entity):
    email: str
    code_hash: str
    expires_at: str
    attempts: int = 0


# --- Public views (never expose password hashes) -----------------------------
class UserOut(Entity):
    id: str
    name: str
    email: str
    mobile: Optional[str] = None
    address: str
    household_id: str
    profile_picture: Optional[str] = None
    subscription: UserSubscription
    role: Literal["user"] = "user"
    status: AccountStatus
    outstanding_balance: float
    created_at: str

    @classmethod
    def of(cls, u: User) -> "UserOut":
        return cls.model_validate(u.model_dump(exclude={"password_hash"}))


class AdminOut(Entity):
    id: str
    name: str
    mobile: str
    role: Literal["admin"] = "admin"

    @classmethod
    def of(cls, a: Admin) -> "AdminOut":
        return cls.model_validate(a.model_dump(exclude={"password_hash"}))


class Payload(BaseModel):
    """Request bodies: accept camelCase or snake_case keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
