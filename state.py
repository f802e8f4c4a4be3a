# state.py
"""
AppState: the one stateful service. Owns every entity collection and all
mutations; routes only translate HTTP to these calls.

Collections are read from and written back to a KeyValueStore under the
keys in KEYS. Mutations hold a re-entrant lock so a read-modify-write of a
collection is atomic inside this process. Nothing spans keys atomically:
a payment verification and its balance change are two writes.
"""
import hashlib
import hmac
import logging
import secrets
import threading
import uuid
from datetime import datetime, timedelta, timezone, date as date_cls
from typing import Dict, List, Optional, Tuple

import config
from auth import get_password_hash, verify_password
from errors import (
    AccountBlocked, AdminNotFound, Conflict, EmailNotFound, IncorrectPassword,
    InvalidTransition, NotFound, PermissionDenied, UserNotFound, ValidationFailed,
)
from household import household_id
from models import (
    Admin, AdminMessage, Announcement, Booking, Complaint, Feedback, InboxItem,
    PasswordReset, Payment, Pickup, SubscriptionPlan, User, UserSubscription, WasteLog, now_ms,
)
from storage import KeyValueStore
import upi
from workflow import TERMINAL_STAGE, Verifier, AdminApprovalVerifier, advance_stage, check_status_change

log = logging.getLogger("greencity.state")

KEYS = {
    "users": User,
    "bookings": Booking,
    "payments": Payment,
    "complaints": Complaint,
    "announcements": Announcement,
    "adminMessages": AdminMessage,
    "subscriptionPlans": SubscriptionPlan,
    "wasteLogs": WasteLog,
    "pickupHistory": Pickup,
    "appFeedback": Feedback,
    "passwordResets": PasswordReset,
}

PICKUP_FOR_WASTE = {"wet": "compost", "dry": "recycling", "mixed": "general"}

COMPLAINT_FLOW = {
    "submitted": {"in-progress", "resolved"},
    "in-progress": {"resolved"},
    "resolved": set(),
}

PAYMENT_NOTES = {"balance": "Monthly Fee", "booking": "Special Pickup", "upgrade": "Plan Upgrade"}

DEFAULT_PREFERENCES = {"theme": "light", "language": "en"}

WELCOME_ANNOUNCEMENT = {
    "id": "anno1",
    "title": "Holiday Schedule Update",
    "content": "Please note that waste collection will be postponed by one day during the upcoming national holiday week.",
}


def _money(x: float) -> float:
    return round(float(x) + 0.0, 2)


def _new_id(prefix: str) -> str:
    return f"{prefix}{uuid.uuid4().hex[:12].upper()}"


def next_renewal_date(today: Optional[date_cls] = None) -> str:
    today = today or datetime.now(timezone.utc).date()
    year, month = (today.year + 1, 1) if today.month == 12 else (today.year, today.month + 1)
    return datetime(year, month, 1, tzinfo=timezone.utc).isoformat()


def _code_hash(code: str) -> str:
    return hashlib.sha256(code.encode()).hexdigest()


class AppState:
    def __init__(self, store: KeyValueStore, verifier: Optional[Verifier] = None,
                 admins: Optional[List[dict]] = None):
        self.store = store
        self.verifier = verifier or AdminApprovalVerifier()
        self._lock = threading.RLock()
        self._admins = [
            Admin(
                id=a["id"], name=a.get("name", a["id"]), mobile=a["mobile"],
                password_hash=a.get("password_hash") or get_password_hash(a["password"]),
            )
            for a in (admins if admins is not None else config.load_admins())
        ]

    # ------------------------------------------------------------------ store
    def _load(self, key: str) -> list:
        model = KEYS[key]
        return [model.model_validate(x) for x in self.store.get(key, [])]

    def _save(self, key: str, items: list) -> None:
        self.store.set(key, [i.dump() for i in items])

    def ensure_seed(self) -> None:
        """Catalog data the app cannot run without."""
        with self._lock:
            if self.store.get("subscriptionPlans") is None:
                self.store.set("subscriptionPlans", config.DEFAULT_PLANS)
            if self.store.get("announcements") is None:
                anno = Announcement(timestamp=now_ms() - 86400000 * 2, **WELCOME_ANNOUNCEMENT)
                self._save("announcements", [anno])

    def seed_demo(self) -> Optional[User]:
        """Sample household with some history. Skipped once any user exists."""
        with self._lock:
            self.ensure_seed()
            if self._load("users"):
                return None
            user = self.signup("John Doe", "john.doe@example.com", "password123", "123 Green St, Eco City, 12345")
            day = 86400000
            today = datetime.now(timezone.utc)
            bookings = [
                Booking(id="b1", user_id=user.id, date=(today - timedelta(days=10)).date().isoformat(), time="10:00",
                        notes="Old furniture pickup", status="completed", amount=150.0, payment_status="paid"),
                Booking(id="b2", user_id=user.id, date=(today - timedelta(days=5)).date().isoformat(), time="14:00",
                        notes="Garden waste", reminder_enabled=False, status="cancelled", amount=150.0),
            ]
            self._save("bookings", bookings)
            self._save("payments", [
                Payment(id="TXN-BOOK-b1", user_id=user.id, amount=150.0, status="verified", purpose="booking",
                        booking_id="b1", stage="details", date=(today - timedelta(days=10)).isoformat()),
                Payment(id="TXN1001", user_id=user.id, amount=75.0, status="verified", stage="details",
                        date=(today - timedelta(days=30)).isoformat()),
            ])
            self._save("complaints", [
                Complaint(id="c1", user_id=user.id, issue_type="missed-pickup", status="resolved",
                          description="The truck did not come down our street today.",
                          date=(today - timedelta(days=5)).isoformat()),
                Complaint(id="c2", user_id=user.id, issue_type="service-issue", status="in-progress",
                          description="The bins were left in the middle of the driveway.",
                          date=(today - timedelta(days=1)).isoformat()),
            ])
            self._save("pickupHistory", [
                Pickup(user_id=user.id, type="recycling", date=(today - timedelta(days=60)).isoformat()),
                Pickup(user_id=user.id, type="compost", date=(today - timedelta(days=30)).isoformat()),
            ])
            log.info("Seeded demo household %s (%s)", user.household_id, user.email)
            return user

    # ------------------------------------------------------------ principals
    def get_user(self, user_id: str) -> User:
        for u in self._load("users"):
            if u.id == user_id:
                return u
        raise NotFound(f"User {user_id} not found")

    def get_admin(self, admin_id: str) -> Admin:
        for a in self._admins:
            if a.id == admin_id:
                return a
        raise AdminNotFound("Admin not found")

    def _find_user(self, identifier: str) -> Optional[User]:
        ident = (identifier or "").strip().lower()
        for u in self._load("users"):
            if u.email.lower() == ident or (u.mobile and u.mobile == ident):
                return u
        return None

    def _put_user(self, user: User) -> User:
        users = self._load("users")
        self._save("users", [user if u.id == user.id else u for u in users])
        return user

    def list_users(self) -> List[User]:
        return self._load("users")

    # ------------------------------------------------------------------ auth
    def login(self, identifier: str, password: str) -> User:
        user = self._find_user(identifier)
        if not user:
            raise UserNotFound("No account found for that email or mobile")
        if user.status == "blocked":
            raise AccountBlocked("This account has been blocked")
        if not verify_password(password, user.password_hash):
            raise IncorrectPassword("Incorrect password")
        return user

    def admin_login(self, mobile: str, password: str) -> Admin:
        admin = next((a for a in self._admins if a.mobile == (mobile or "").strip()), None)
        if not admin:
            raise AdminNotFound("No administrator with that mobile number")
        if not verify_password(password, admin.password_hash):
            raise IncorrectPassword("Incorrect password")
        return admin

    def signup(self, name: str, email: str, password: str, address: str, mobile: Optional[str] = None) -> User:
        with self._lock:
            users = self._load("users")
            email_l = email.strip().lower()
            if any(u.email.lower() == email_l for u in users):
                raise Conflict("A user with this email already exists.", code="errorEmailExists")
            if mobile and any(u.mobile == mobile for u in users):
                raise Conflict("A user with this mobile number already exists.", code="errorMobileExists")
            plan = self._plan_or_none(config.DEFAULT_PLAN_ID)
            user = User(
                id=_new_id("U"),
                name=name.strip(),
                email=email_l,
                mobile=mobile,
                password_hash=get_password_hash(password),
                address=address.strip(),
                household_id=household_id(name.strip(), address.strip()),
                subscription=UserSubscription(plan_id=config.DEFAULT_PLAN_ID, next_renewal_date=next_renewal_date()),
                outstanding_balance=_money(plan.price_per_month if plan else 0),
            )
            users.append(user)
            self._save("users", users)
            log.info("New household %s signed up (%s)", user.household_id, user.email)
            return user

    def update_profile(self, user_id: str, changes: Dict) -> User:
        allowed = {"name", "address", "mobile", "profile_picture"}
        with self._lock:
            user = self.get_user(user_id)
            changes = {k: v for k, v in changes.items() if k in allowed and v is not None}
            if "mobile" in changes and any(u.mobile == changes["mobile"] and u.id != user_id for u in self._load("users")):
                raise Conflict("A user with this mobile number already exists.", code="errorMobileExists")
            user = user.model_copy(update=changes)
            if "profile_picture" in changes:
                self.store.set(f"profilePic_{user_id}", changes["profile_picture"])
            return self._put_user(user)

    def profile_picture(self, user_id: str) -> Optional[str]:
        return self.store.get(f"profilePic_{user_id}")

    def request_password_reset(self, email: str) -> str:
        """Issue a one-time code for a known email. Delivery is the caller's job."""
        with self._lock:
            user = self._find_user(email)
            if not user or user.email.lower() != email.strip().lower():
                raise EmailNotFound("No account is registered with that email")
            code = f"{secrets.randbelow(10 ** 6):06d}"
            expires = datetime.now(timezone.utc) + timedelta(minutes=config.RESET_CODE_TTL_MIN)
            resets = [r for r in self._load("passwordResets") if r.email != user.email]
            resets.append(PasswordReset(email=user.email, code_hash=_code_hash(code), expires_at=expires.isoformat()))
            self._save("passwordResets", resets)
            return code

    def verify_reset_code(self, email: str, code: str) -> None:
        email_l = email.strip().lower()
        with self._lock:
            resets = self._load("passwordResets")
            entry = next((r for r in resets if r.email == email_l), None)
            if not entry:
                raise ValidationFailed("No reset was requested for this email", code="errorResetNotRequested")
            if datetime.fromisoformat(entry.expires_at) < datetime.now(timezone.utc) \
                    or entry.attempts >= config.RESET_CODE_MAX_ATTEMPTS:
                self._save("passwordResets", [r for r in resets if r.email != email_l])
                raise ValidationFailed("The reset code has expired", code="errorResetExpired")
            if not hmac.compare_digest(entry.code_hash, _code_hash(code or "")):
                entry.attempts += 1
                self._save("passwordResets", resets)
                raise ValidationFailed("The reset code is incorrect", code="errorResetCode")
            self._save("passwordResets", [r for r in resets if r.email != email_l])

    def reset_password(self, email: str, new_password: str) -> None:
        with self._lock:
            users = self._load("users")
            email_l = email.strip().lower()
            idx = next((i for i, u in enumerate(users) if u.email.lower() == email_l), None)
            if idx is None:
                raise EmailNotFound("No account is registered with that email")
            users[idx] = users[idx].model_copy(update={"password_hash": get_password_hash(new_password)})
            self._save("users", users)
            log.info("Password reset for %s", email_l)

    def revoke_token(self, jti: str, exp: int) -> None:
        with self._lock:
            now = int(datetime.now(timezone.utc).timestamp())
            revoked = {k: v for k, v in (self.store.get("revokedTokens") or {}).items() if v > now}
            revoked[jti] = exp
            self.store.set("revokedTokens", revoked)

    def is_token_revoked(self, jti: str) -> bool:
        return jti in (self.store.get("revokedTokens") or {})

    # ------------------------------------------------------------ waste logs
    def add_waste_log(self, user_id: str, waste_type: str) -> Tuple[WasteLog, bool]:
        """Append a log; the third mixed log in a row (per household) is fined."""
        with self._lock:
            user = self.get_user(user_id)
            logs = self._load("wasteLogs")
            recent = [l for l in logs if l.user_id == user_id][-(config.MIXED_STREAK_LIMIT - 1):]
            fined = (
                waste_type == "mixed"
                and len(recent) == config.MIXED_STREAK_LIMIT - 1
                and all(l.type == "mixed" for l in recent)
            )
            entry = WasteLog(id=_new_id("log"), user_id=user_id, type=waste_type, fined=fined)
            logs.append(entry)
            self._save("wasteLogs", logs)

            pickups = self._load("pickupHistory")
            pickups.append(Pickup(user_id=user_id, type=PICKUP_FOR_WASTE[waste_type]))
            self._save("pickupHistory", pickups)

            if fined:
                user.outstanding_balance = _money(user.outstanding_balance + config.MIXED_WASTE_FINE)
                self._put_user(user)
                log.info("Mixed-waste fine of %.2f applied to %s", config.MIXED_WASTE_FINE, user.household_id)
            return entry, fined

    def waste_logs(self, user_id: str) -> List[WasteLog]:
        return [l for l in self._load("wasteLogs") if l.user_id == user_id]

    def pickup_history(self, user_id: str) -> List[Pickup]:
        return [p for p in self._load("pickupHistory") if p.user_id == user_id]

    def has_green_badge(self, user_id: str) -> bool:
        return not any(p.type == "general" for p in self.pickup_history(user_id))

    # -------------------------------------------------------------- bookings
    def add_booking(self, user_id: str, date: str, time: str, notes: str = "", reminder_enabled: bool = True) -> Booking:
        with self._lock:
            user = self.get_user(user_id)
            if user.status != "active":
                raise PermissionDenied("Bookings are disabled for this account", code="errorAccountRestricted")
            booking = Booking(
                id=_new_id("B"), user_id=user_id, date=date, time=time, notes=notes,
                reminder_enabled=reminder_enabled, amount=_money(config.SPECIAL_PICKUP_FEE),
            )
            bookings = self._load("bookings")
            self._save("bookings", [booking] + bookings)
            log.info("Booking %s scheduled for %s %s by %s", booking.id, date, time, user.household_id)
            return booking

    def get_booking(self, booking_id: str) -> Booking:
        for b in self._load("bookings"):
            if b.id == booking_id:
                return b
        raise NotFound(f"Booking {booking_id} not found")

    def bookings_for(self, user_id: str) -> List[Booking]:
        return [b for b in self._load("bookings") if b.user_id == user_id]

    def list_bookings(self) -> List[Booking]:
        return self._load("bookings")

    def update_booking(self, booking_id: str, changes: Dict) -> Booking:
        allowed = {"status", "date", "time", "notes", "reminder_enabled"}
        with self._lock:
            bookings = self._load("bookings")
            booking = next((b for b in bookings if b.id == booking_id), None)
            if not booking:
                raise NotFound(f"Booking {booking_id} not found")
            updated = Booking.model_validate({**booking.model_dump(),
                                              **{k: v for k, v in changes.items() if k in allowed and v is not None}})
            self._save("bookings", [updated if b.id == booking_id else b for b in bookings])
            log.info("Booking %s updated: %s", booking_id, sorted(changes))
            return updated

    def _set_booking_payment_status(self, booking_id: str, status: str) -> None:
        bookings = self._load("bookings")
        if not any(b.id == booking_id for b in bookings):
            log.warning("Booking %s vanished before its payment settled", booking_id)
            return
        self._save("bookings", [
            b.model_copy(update={"payment_status": status}) if b.id == booking_id else b for b in bookings
        ])

    # -------------------------------------------------------------- payments
    def outstanding_balance(self, user_id: str) -> float:
        return self.get_user(user_id).outstanding_balance

    def _amount_due(self, user_id: str, purpose: str, booking_id: Optional[str]) -> float:
        if purpose == "booking":
            booking = self._own_booking(user_id, booking_id)
            return 0.0 if booking.payment_status == "paid" else booking.amount
        return self.outstanding_balance(user_id)

    def payment_intent(self, user_id: str, purpose: str = "balance", booking_id: Optional[str] = None) -> dict:
        """The 'payment' step: what to pay and how. Records nothing."""
        amount = self._amount_due(user_id, purpose, booking_id)
        if amount <= 0:
            raise Conflict("Nothing to pay", code="errorNothingDue")
        advance_stage("none", "payment")
        return {"stage": "payment", **upi.payment_intent(amount, PAYMENT_NOTES[purpose])}

    def _own_booking(self, user_id: str, booking_id: Optional[str]) -> Booking:
        booking = self.get_booking(booking_id or "")
        if booking.user_id != user_id:
            raise NotFound(f"Booking {booking_id} not found")
        return booking

    def _pending(self, payments: List[Payment], user_id: str, purpose: str, **match) -> Optional[Payment]:
        for p in payments:
            if p.user_id == user_id and p.purpose == purpose and p.status == "pending" \
                    and all(getattr(p, k) == v for k, v in match.items()):
                return p
        return None

    def initiate_payment(self, user_id: str, amount: Optional[float] = None, purpose: str = "balance",
                         booking_id: Optional[str] = None, plan_id: Optional[str] = None) -> Payment:
        with self._lock:
            user = self.get_user(user_id)
            payments = self._load("payments")
            if purpose == "balance":
                amount = user.outstanding_balance if amount is None else amount
                if amount is None or amount <= 0:
                    raise ValidationFailed("Amount must be greater than zero", code="errorInvalidAmount")
                if _money(amount) > user.outstanding_balance:
                    raise ValidationFailed("Amount exceeds the outstanding balance", code="errorInvalidAmount")
                if self._pending(payments, user_id, "balance"):
                    raise Conflict("A balance payment is already awaiting verification", code="errorPaymentPending")
            elif amount is None or amount <= 0:
                raise ValidationFailed("Amount must be greater than zero", code="errorInvalidAmount")

            payment = Payment(
                id=_new_id("TXN"), user_id=user_id, amount=_money(amount), purpose=purpose,
                booking_id=booking_id, plan_id=plan_id,
                stage=advance_stage("payment", self.verifier.initial_stage),
            )
            self._save("payments", [payment] + payments)
            log.info("Payment %s initiated: %s %.2f for %s", payment.id, purpose, payment.amount, user.household_id)
            return payment

    def pay_for_booking(self, user_id: str, booking_id: str) -> Payment:
        with self._lock:
            booking = self._own_booking(user_id, booking_id)
            if booking.payment_status == "paid":
                raise Conflict("This booking is already paid", code="errorAlreadyPaid")
            if booking.status == "cancelled":
                raise Conflict("Cancelled bookings cannot be paid", code="errorBookingCancelled")
            if self._pending(self._load("payments"), user_id, "booking", booking_id=booking_id):
                raise Conflict("A payment for this booking is already awaiting verification", code="errorPaymentPending")
            if booking.payment_status == "failed":
                self._set_booking_payment_status(booking_id, "unpaid")
            return self.initiate_payment(user_id, booking.amount, purpose="booking", booking_id=booking_id)

    def get_payment(self, payment_id: str) -> Payment:
        for p in self._load("payments"):
            if p.id == payment_id:
                return p
        raise NotFound(f"Payment {payment_id} not found")

    def own_payment(self, user_id: str, payment_id: str) -> Payment:
        payment = self.get_payment(payment_id)
        if payment.user_id != user_id:
            raise NotFound(f"Payment {payment_id} not found")
        return payment

    def _put_payment(self, payment: Payment) -> Payment:
        payments = self._load("payments")
        self._save("payments", [payment if p.id == payment.id else p for p in payments])
        return payment

    def upload_payment_screenshot(self, user_id: str, payment_id: str, screenshot_url: str) -> Payment:
        with self._lock:
            payment = self.own_payment(user_id, payment_id)
            if payment.status != "pending":
                raise InvalidTransition("Only pending payments accept a screenshot")
            stage = payment.stage if payment.stage == "verifying" else advance_stage(payment.stage, "verifying")
            payment = payment.model_copy(update={"screenshot_url": screenshot_url, "stage": stage})
            log.info("Screenshot attached to %s; awaiting verification", payment_id)
            return self._put_payment(payment)

    async def confirm_payment(self, user_id: str, payment_id: str) -> Payment:
        """Hand a pending payment to the verifier. The admin verifier leaves it pending."""
        payment = self.own_payment(user_id, payment_id)
        if payment.status != "pending":
            return payment
        outcome = await self.verifier.verify(payment)
        if outcome is None:
            return payment
        with self._lock:
            # the admin may have acted while we waited
            current = self.get_payment(payment_id)
            if current.status != "pending":
                return current
            return self._resolve_payment(current, outcome)

    def _resolve_payment(self, payment: Payment, status: str) -> Payment:
        check_status_change(payment.status, status)
        payment = payment.model_copy(update={
            "status": status, "stage": advance_stage(payment.stage, TERMINAL_STAGE[status]),
        })
        self._put_payment(payment)
        log.info("Payment %s -> %s", payment.id, status)

        if payment.purpose == "booking" and payment.booking_id:
            self._set_booking_payment_status(payment.booking_id, "paid" if status == "verified" else "failed")
            return payment
        if status != "verified":
            return payment
        try:
            user = self.get_user(payment.user_id)
        except NotFound:
            log.warning("Payment %s verified for a deleted user %s", payment.id, payment.user_id)
            return payment
        if payment.purpose == "balance":
            user.outstanding_balance = _money(user.outstanding_balance - payment.amount)
            self._put_user(user)
        elif payment.purpose == "upgrade" and payment.plan_id:
            self._commit_upgrade(user, payment)
        return payment

    def update_payment_status(self, payment_id: str, status: str) -> Payment:
        with self._lock:
            return self._resolve_payment(self.get_payment(payment_id), status)

    def payments_for(self, user_id: str) -> List[Payment]:
        return [p for p in self._load("payments") if p.user_id == user_id]

    def list_payments(self, status: Optional[str] = None) -> List[Payment]:
        users = {u.id for u in self._load("users")}
        return [p for p in self._load("payments") if p.user_id in users and (status is None or p.status == status)]

    def payment_receipt(self, user_id: str, payment_id: str) -> dict:
        with self._lock:
            payment = self.own_payment(user_id, payment_id)
            if payment.status != "verified":
                raise Conflict("Receipts are only issued for verified payments", code="errorNotVerified")
            if payment.stage == "receipt":
                payment = self._put_payment(payment.model_copy(update={"stage": advance_stage("receipt", "details")}))
            user = self.get_user(user_id)
            return {
                "paymentId": payment.id,
                "householdId": user.household_id,
                "name": user.name,
                "date": payment.date,
                "amount": payment.amount,
                "currency": config.CURRENCY,
                "purpose": payment.purpose,
                "status": payment.status,
            }

    # ---------------------------------------------------------- subscription
    def subscription_plans(self) -> List[SubscriptionPlan]:
        return self._load("subscriptionPlans")

    def _plan_or_none(self, plan_id: str) -> Optional[SubscriptionPlan]:
        return next((p for p in self._load("subscriptionPlans") if p.id == plan_id), None)

    def get_plan(self, plan_id: str) -> SubscriptionPlan:
        plan = self._plan_or_none(plan_id)
        if not plan:
            raise NotFound(f"Plan {plan_id} not found", code="errorInvalidPlan")
        return plan

    def _commit_plan(self, user: User, plan_id: str) -> User:
        sub = user.subscription.model_copy(update={"plan_id": plan_id, "next_renewal_date": next_renewal_date()})
        log.info("Household %s moved to plan %s", user.household_id, plan_id)
        return self._put_user(user.model_copy(update={"subscription": sub}))

    def _commit_upgrade(self, user: User, payment: Payment) -> None:
        """Swap plans only if the charge still equals the current price difference."""
        current = self._plan_or_none(user.subscription.plan_id)
        target = self._plan_or_none(payment.plan_id)
        if current is None or target is None \
                or _money(target.price_per_month - current.price_per_month) != payment.amount:
            log.warning("Upgrade %s for %s no longer matches the plan prices; plan left as %s",
                        payment.id, user.household_id, user.subscription.plan_id)
            return
        self._commit_plan(user, target.id)

    def update_subscription(self, user_id: str, new_plan_id: str) -> dict:
        """
        Upgrades charge the price difference first and only swap the plan
        once that payment is verified. Downgrades and lateral moves swap now.
        """
        with self._lock:
            user = self.get_user(user_id)
            current = self.get_plan(user.subscription.plan_id)
            target = self.get_plan(new_plan_id)
            if current.id == target.id:
                raise Conflict("Already on this plan", code="errorSamePlan")
            # any change, downgrades included, waits until an open upgrade charge is settled
            if self._pending(self._load("payments"), user_id, "upgrade"):
                raise Conflict("A plan change is already awaiting payment", code="errorPaymentPending")
            difference = _money(target.price_per_month - current.price_per_month)
            if difference <= 0:
                user = self._commit_plan(user, target.id)
                return {"committed": True, "payment": None, "user": user, "difference": difference}
            payment = self.initiate_payment(user_id, difference, purpose="upgrade", plan_id=target.id)
            return {"committed": False, "payment": payment, "user": user, "difference": difference}

    def add_subscription_plan(self, name: str, price_per_month: float, bin_size: str, frequency: str) -> SubscriptionPlan:
        with self._lock:
            plan = SubscriptionPlan(id=f"plan_{now_ms()}_{secrets.token_hex(2)}", name=name,
                                    price_per_month=_money(price_per_month), bin_size=bin_size, frequency=frequency)
            plans = self._load("subscriptionPlans")
            plans.append(plan)
            self._save("subscriptionPlans", plans)
            return plan

    def update_subscription_plan(self, plan: SubscriptionPlan) -> SubscriptionPlan:
        with self._lock:
            plans = self._load("subscriptionPlans")
            if not any(p.id == plan.id for p in plans):
                raise NotFound(f"Plan {plan.id} not found", code="errorInvalidPlan")
            self._save("subscriptionPlans", [plan if p.id == plan.id else p for p in plans])
            return plan

    def delete_subscription_plan(self, plan_id: str) -> None:
        with self._lock:
            plans = self._load("subscriptionPlans")
            if not any(p.id == plan_id for p in plans):
                raise NotFound(f"Plan {plan_id} not found", code="errorInvalidPlan")
            if any(u.subscription.plan_id == plan_id for u in self._load("users")):
                raise Conflict("Plan has subscribers", code="errorPlanInUse")
            if any(p.plan_id == plan_id and p.status == "pending" for p in self._load("payments")):
                raise Conflict("Plan has a pending upgrade", code="errorPlanInUse")
            self._save("subscriptionPlans", [p for p in plans if p.id != plan_id])

    # ------------------------------------------------------------ complaints
    def add_complaint(self, user_id: str, issue_type: str, description: str, photo: Optional[str] = None) -> Complaint:
        with self._lock:
            self.get_user(user_id)
            complaint = Complaint(id=_new_id("c"), user_id=user_id, issue_type=issue_type,
                                  description=description, photo=photo)
            self._save("complaints", [complaint] + self._load("complaints"))
            return complaint

    def complaints_for(self, user_id: str) -> List[Complaint]:
        return [c for c in self._load("complaints") if c.user_id == user_id]

    def list_complaints(self) -> List[Complaint]:
        return self._load("complaints")

    def update_complaint(self, complaint_id: str, status: str) -> Complaint:
        with self._lock:
            complaints = self._load("complaints")
            complaint = next((c for c in complaints if c.id == complaint_id), None)
            if not complaint:
                raise NotFound(f"Complaint {complaint_id} not found")
            if status != complaint.status and status not in COMPLAINT_FLOW[complaint.status]:
                raise InvalidTransition(f"Complaint cannot go from '{complaint.status}' to '{status}'")
            updated = complaint.model_copy(update={"status": status})
            self._save("complaints", [updated if c.id == complaint_id else c for c in complaints])
            return updated

    # ----------------------------------------------------------------- admin
    def update_user_status(self, user_id: str, status: str) -> User:
        with self._lock:
            user = self.get_user(user_id).model_copy(update={"status": status})
            log.info("User %s status -> %s", user_id, status)
            return self._put_user(user)

    def delete_user(self, user_id: str, confirm: bool = False) -> None:
        if not confirm:
            raise ValidationFailed("Deleting a user must be confirmed", code="errorConfirmRequired")
        with self._lock:
            users = self._load("users")
            if not any(u.id == user_id for u in users):
                raise NotFound(f"User {user_id} not found")
            self._save("users", [u for u in users if u.id != user_id])
            for prefix in ("profilePic_", "theme_", "language_"):
                self.store.delete(f"{prefix}{user_id}")
            log.info("User %s deleted", user_id)

    def overview(self) -> dict:
        users = self._load("users")
        payments = self._load("payments")
        complaints = self._load("complaints")
        bookings = self._load("bookings")
        return {
            "users": {
                "total": len(users),
                "active": sum(1 for u in users if u.status == "active"),
                "restricted": sum(1 for u in users if u.status == "restricted"),
                "blocked": sum(1 for u in users if u.status == "blocked"),
            },
            "payments": {
                "pending": sum(1 for p in payments if p.status == "pending"),
                "verifiedTotal": _money(sum(p.amount for p in payments if p.status == "verified")),
            },
            "bookings": {"scheduled": sum(1 for b in bookings if b.status == "scheduled")},
            "complaints": {"open": sum(1 for c in complaints if c.status != "resolved")},
            "outstandingTotal": _money(sum(u.outstanding_balance for u in users)),
        }

    # ------------------------------------------------------------- messaging
    def announcements(self) -> List[Announcement]:
        return self._load("announcements")

    def create_announcement(self, title: str, content: str) -> Announcement:
        with self._lock:
            anno = Announcement(id=_new_id("anno"), title=title, content=content)
            self._save("announcements", [anno] + self._load("announcements"))
            return anno

    def send_admin_message(self, user_id: str, text: str) -> AdminMessage:
        with self._lock:
            self.get_user(user_id)
            msg = AdminMessage(id=_new_id("msg"), user_id=user_id, text=text)
            messages = self._load("adminMessages")
            messages.append(msg)
            self._save("adminMessages", messages)
            return msg

    def conversation(self, user_id: str) -> List[AdminMessage]:
        msgs = [m for m in self._load("adminMessages") if m.user_id == user_id]
        return sorted(msgs, key=lambda m: m.timestamp)

    def unread_message_count(self, user_id: str) -> int:
        return sum(1 for m in self._load("adminMessages") if m.user_id == user_id and not m.read)

    def mark_messages_as_read(self, user_id: str, ids: Optional[set] = None) -> None:
        """Mark the user's messages read; with ``ids``, only those."""
        with self._lock:
            messages = self._load("adminMessages")
            self._save("adminMessages", [
                m.model_copy(update={"read": True})
                if m.user_id == user_id and (ids is None or m.id in ids) else m
                for m in messages
            ])

    def inbox(self, user_id: str) -> List[InboxItem]:
        direct = [InboxItem(id=m.id, type="direct", text=m.text, timestamp=m.timestamp, read=m.read)
                  for m in self.conversation(user_id)]
        community = [InboxItem(id=a.id, type="community", text=a.content, title=a.title, timestamp=a.timestamp)
                     for a in self._load("announcements")]
        return sorted(direct + community, key=lambda i: i.timestamp)

    def open_inbox(self, user_id: str) -> List[InboxItem]:
        """Inbox as the user sees it; marks read exactly the messages returned."""
        with self._lock:
            items = self.inbox(user_id)
            self.mark_messages_as_read(user_id, ids={i.id for i in items if i.type == "direct"})
            return items

    # ------------------------------------------------- preferences / feedback
    def preferences(self, user_id: str) -> dict:
        return {
            "theme": self.store.get(f"theme_{user_id}") or DEFAULT_PREFERENCES["theme"],
            "language": self.store.get(f"language_{user_id}") or DEFAULT_PREFERENCES["language"],
        }

    def set_preferences(self, user_id: str, theme: Optional[str] = None, language: Optional[str] = None) -> dict:
        with self._lock:
            if theme is not None:
                self.store.set(f"theme_{user_id}", theme)
            if language is not None:
                self.store.set(f"language_{user_id}", language)
            return self.preferences(user_id)

    def toggle_theme(self, user_id: str) -> dict:
        with self._lock:
            current = self.preferences(user_id)["theme"]
            return self.set_preferences(user_id, theme="dark" if current == "light" else "light")

    def add_feedback(self, user_id: str, text: str) -> Feedback:
        with self._lock:
            item = Feedback(user_id=user_id, text=text)
            entries = self._load("appFeedback")
            entries.append(item)
            self._save("appFeedback", entries)
            log.info("Feedback received from %s", user_id)
            return item


# --- process-wide instance, swapped in by main.lifespan and tests -------------
_state: Optional[AppState] = None


def set_state(state: Optional[AppState]) -> None:
    global _state
    _state = state


def get_state() -> AppState:
    if _state is None:
        raise RuntimeError("AppState not initialised")
    return _state
