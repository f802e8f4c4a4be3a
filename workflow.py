# workflow.py
"""
Checkout stages for a payment and the boundary that decides its outcome.

    none -> payment -> (upload | verifying) -> (receipt | details) | failed

``payment`` is the QR/UPI step shown before anything is recorded. Once the
user confirms, a pending Payment exists and sits at ``upload`` (waiting for a
screenshot) or ``verifying`` (screenshot attached, or a gateway is deciding).

``upload -> receipt`` is an administrator override: an admin who can see the
transfer on the payee account may verify it before any screenshot arrives.
The user-facing path always goes through ``verifying``.
"""
import asyncio
import logging
import random
from typing import Optional

import config
from errors import InvalidTransition

log = logging.getLogger("greencity.payments")

STAGE_TRANSITIONS = {
    "none": {"payment"},
    "payment": {"upload", "verifying", "none"},
    "upload": {"verifying", "receipt", "failed"},
    "verifying": {"receipt", "failed"},
    "receipt": {"details", "none"},
    "details": {"none"},
    "failed": {"payment", "none"},
}

STATUS_TRANSITIONS = {
    "pending": {"verified", "rejected", "failed"},
    "verified": set(),
    "rejected": set(),
    "failed": set(),
}

TERMINAL_STAGE = {"verified": "receipt", "rejected": "failed", "failed": "failed"}


def advance_stage(current: str, target: str) -> str:
    if target not in STAGE_TRANSITIONS.get(current, set()):
        raise InvalidTransition(f"Cannot move checkout from '{current}' to '{target}'")
    return target


def check_status_change(current: str, target: str) -> None:
    if target not in STATUS_TRANSITIONS.get(current, set()):
        raise InvalidTransition(f"Payment status '{current}' cannot change to '{target}'")


class Verifier:
    """Decides a pending payment. Returning None leaves it for an administrator."""
    name = "base"
    initial_stage = "upload"

    async def verify(self, payment) -> Optional[str]:
        raise NotImplementedError


class AdminApprovalVerifier(Verifier):
    name = "admin"
    initial_stage = "upload"

    async def verify(self, payment) -> Optional[str]:
        return None


class SimulatedGatewayVerifier(Verifier):
    """Delayed random outcome. Demo only; never the default."""
    name = "simulated"
    initial_stage = "verifying"

    def __init__(self, success_rate: float = 0.8, delay: float = 3.0, rng: Optional[random.Random] = None):
        self.success_rate = success_rate
        self.delay = delay
        self.rng = rng or random.Random()

    async def verify(self, payment) -> Optional[str]:
        if self.delay > 0:
            await asyncio.sleep(self.delay)
        outcome = "verified" if self.rng.random() < self.success_rate else "failed"
        log.info("Simulated gateway resolved %s -> %s", payment.id, outcome)
        return outcome


def make_verifier(kind: str = "") -> Verifier:
    kind = (kind or config.PAYMENT_VERIFIER).lower()
    if kind == "simulated":
        return SimulatedGatewayVerifier(config.SIMULATED_SUCCESS_RATE, config.SIMULATED_DELAY_SEC)
    if kind == "admin":
        return AdminApprovalVerifier()
    raise ValueError(f"Unknown PAYMENT_VERIFIER: {kind}")
