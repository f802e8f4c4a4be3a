import asyncio

import pytest

from errors import Conflict, ValidationFailed
from workflow import SimulatedGatewayVerifier

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


def _start(client, headers, **body):
    return client.post("/api/payments", json=body, headers=headers)


def test_intent_offers_upi_for_balance(client, auth_headers):
    r = client.get("/api/payments/intent", headers=auth_headers)
    assert r.status_code == 200
    data = r.json()
    assert data["stage"] == "payment"
    assert data["amount"] == 75.0
    assert "am=75.00" in data["upiUri"]


def test_full_checkout_verified_once(client, auth_headers, admin_headers):
    payment = _start(client, auth_headers).json()
    assert payment["status"] == "pending"
    assert payment["stage"] == "upload"
    assert payment["amount"] == 75.0

    r = client.post(f"/api/payments/{payment['id']}/screenshot",
                    files={"file": ("proof.png", PNG, "image/png")}, headers=auth_headers)
    assert r.status_code == 200
    assert r.json()["stage"] == "verifying"
    assert r.json()["screenshotUrl"].startswith("data:image/png;base64,")

    r = client.patch(f"/api/admin/payments/{payment['id']}", json={"status": "verified"}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["stage"] == "receipt"
    assert client.get("/api/payments/balance", headers=auth_headers).json()["outstandingBalance"] == 0

    # verifying twice must not decrement twice
    r = client.patch(f"/api/admin/payments/{payment['id']}", json={"status": "verified"}, headers=admin_headers)
    assert r.status_code == 409
    assert r.json()["code"] == "errorInvalidTransition"
    assert client.get("/api/payments/balance", headers=auth_headers).json()["outstandingBalance"] == 0

    receipt = client.get(f"/api/payments/{payment['id']}/receipt", headers=auth_headers).json()
    assert receipt["amount"] == 75.0
    assert receipt["householdId"].startswith("GCC-")
    assert client.get(f"/api/payments/{payment['id']}", headers=auth_headers).json()["stage"] == "details"


def test_rejected_payment_leaves_balance_and_allows_retry(client, auth_headers, admin_headers):
    payment = _start(client, auth_headers).json()
    r = client.patch(f"/api/admin/payments/{payment['id']}", json={"status": "rejected"}, headers=admin_headers)
    assert r.json()["status"] == "rejected"
    assert r.json()["stage"] == "failed"
    assert client.get("/api/payments/balance", headers=auth_headers).json()["outstandingBalance"] == 75.0

    retry = _start(client, auth_headers)
    assert retry.status_code == 201
    assert retry.json()["id"] != payment["id"]


def test_partial_payment(client, auth_headers, admin_headers):
    payment = _start(client, auth_headers, amount=25).json()
    client.patch(f"/api/admin/payments/{payment['id']}", json={"status": "verified"}, headers=admin_headers)
    assert client.get("/api/payments/balance", headers=auth_headers).json()["outstandingBalance"] == 50.0


def test_amount_above_balance_is_rejected(client, auth_headers):
    r = _start(client, auth_headers, amount=500)
    assert r.status_code == 422
    assert r.json()["code"] == "errorInvalidAmount"


def test_one_pending_balance_payment_at_a_time(client, auth_headers):
    assert _start(client, auth_headers).status_code == 201
    r = _start(client, auth_headers)
    assert r.status_code == 409
    assert r.json()["code"] == "errorPaymentPending"


def test_nothing_due_has_no_intent(client, auth_headers, state, user):
    payment = state.initiate_payment(user.id)
    state.update_payment_status(payment.id, "verified")
    r = client.get("/api/payments/intent", headers=auth_headers)
    assert r.status_code == 409
    assert r.json()["code"] == "errorNothingDue"


def test_screenshot_must_be_an_image(client, auth_headers):
    payment = _start(client, auth_headers).json()
    r = client.post(f"/api/payments/{payment['id']}/screenshot",
                    files={"file": ("notes.txt", b"paid", "text/plain")}, headers=auth_headers)
    assert r.status_code == 422
    assert r.json()["code"] == "errorUploadType"


def test_receipt_requires_verification(client, auth_headers):
    payment = _start(client, auth_headers).json()
    r = client.get(f"/api/payments/{payment['id']}/receipt", headers=auth_headers)
    assert r.status_code == 409


def test_other_households_payments_are_hidden(client, auth_headers, state):
    other = state.signup("Priya Sen", "priya@example.com", "password123", "7 Park Lane")
    theirs = state.initiate_payment(other.id)
    assert client.get(f"/api/payments/{theirs.id}", headers=auth_headers).status_code == 404
    assert client.get("/api/payments", headers=auth_headers).json() == []


def test_confirm_with_admin_verifier_stays_pending(client, auth_headers):
    payment = _start(client, auth_headers).json()
    r = client.post(f"/api/payments/{payment['id']}/confirm", headers=auth_headers)
    assert r.status_code == 200
    assert r.json()["status"] == "pending"


def test_simulated_gateway_resolves_once(state_factory):
    state = state_factory(verifier=SimulatedGatewayVerifier(success_rate=1.0, delay=0))
    user = state.signup("Asha Roy", "asha@example.com", "password123", "1 River Rd")
    payment = state.initiate_payment(user.id)
    assert payment.stage == "verifying"

    done = asyncio.run(state.confirm_payment(user.id, payment.id))
    assert done.status == "verified"
    again = asyncio.run(state.confirm_payment(user.id, payment.id))
    assert again.status == "verified"
    assert state.outstanding_balance(user.id) == 0


def test_simulated_gateway_failure_keeps_balance(state_factory):
    state = state_factory(verifier=SimulatedGatewayVerifier(success_rate=0.0, delay=0))
    user = state.signup("Asha Roy", "asha@example.com", "password123", "1 River Rd")
    payment = state.initiate_payment(user.id)
    done = asyncio.run(state.confirm_payment(user.id, payment.id))
    assert done.status == "failed"
    assert done.stage == "failed"
    assert state.outstanding_balance(user.id) == 75.0


def test_zero_amount_rejected_by_state(state, user):
    with pytest.raises(ValidationFailed):
        state.initiate_payment(user.id, amount=0)


def test_admin_filters_pending(client, auth_headers, admin_headers, user):
    _start(client, auth_headers)
    rows = client.get("/api/admin/payments?status=pending", headers=admin_headers).json()
    assert len(rows) == 1
    assert rows[0]["userName"] == user.name
    assert client.get("/api/admin/payments?status=verified", headers=admin_headers).json() == []


def test_pending_booking_payment_blocks_duplicate(state, user):
    booking = state.add_booking(user.id, "2026-11-02", "09:30")
    state.pay_for_booking(user.id, booking.id)
    with pytest.raises(Conflict):
        state.pay_for_booking(user.id, booking.id)


def test_rejected_150_payment_scenario(client, auth_headers, admin_headers, state, user):
    for _ in range(3):
        state.add_waste_log(user.id, "mixed")
    payment = _start(client, auth_headers, amount=150).json()
    r = client.patch(f"/api/admin/payments/{payment['id']}", json={"status": "rejected"}, headers=admin_headers)
    assert r.json()["status"] == "rejected"
    assert client.get("/api/payments/balance", headers=auth_headers).json()["outstandingBalance"] == 175.0
    assert _start(client, auth_headers, amount=150).status_code == 201
