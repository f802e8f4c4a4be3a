import pytest

from errors import InvalidTransition

BOOKING = {"date": "2026-11-02", "time": "09:30", "notes": "Old sofa", "reminderEnabled": False}


def test_create_and_list_booking(client, auth_headers):
    r = client.post("/api/bookings", json=BOOKING, headers=auth_headers)
    assert r.status_code == 201
    booking = r.json()
    assert booking["amount"] == 150.0
    assert booking["status"] == "scheduled"
    assert booking["paymentStatus"] == "unpaid"
    assert booking["reminderEnabled"] is False
    assert [b["id"] for b in client.get("/api/bookings", headers=auth_headers).json()] == [booking["id"]]


@pytest.mark.parametrize("field,value", [("date", "2026-13-40"), ("time", "late")])
def test_booking_rejects_bad_date_or_time(client, auth_headers, field, value):
    r = client.post("/api/bookings", json={**BOOKING, field: value}, headers=auth_headers)
    assert r.status_code == 422


def test_restricted_household_cannot_book(client, auth_headers, state, user):
    state.update_user_status(user.id, "restricted")
    r = client.post("/api/bookings", json=BOOKING, headers=auth_headers)
    assert r.status_code == 403
    assert r.json()["code"] == "errorAccountRestricted"


def test_booking_payment_settles_booking_only(client, auth_headers, admin_headers):
    booking = client.post("/api/bookings", json=BOOKING, headers=auth_headers).json()
    r = client.post(f"/api/bookings/{booking['id']}/pay", headers=auth_headers)
    assert r.status_code == 201
    payment = r.json()["payment"]
    assert payment["purpose"] == "booking"
    assert payment["amount"] == 150.0
    assert "tn=Special%20Pickup" in r.json()["intent"]["upiUri"]

    client.patch(f"/api/admin/payments/{payment['id']}", json={"status": "verified"}, headers=admin_headers)
    booking = client.get("/api/bookings", headers=auth_headers).json()[0]
    assert booking["paymentStatus"] == "paid"
    assert client.get("/api/payments/balance", headers=auth_headers).json()["outstandingBalance"] == 75.0

    assert client.post(f"/api/bookings/{booking['id']}/pay", headers=auth_headers).status_code == 409


def test_failed_booking_payment_can_be_retried(client, auth_headers, admin_headers):
    booking = client.post("/api/bookings", json=BOOKING, headers=auth_headers).json()
    payment = client.post(f"/api/bookings/{booking['id']}/pay", headers=auth_headers).json()["payment"]
    client.patch(f"/api/admin/payments/{payment['id']}", json={"status": "failed"}, headers=admin_headers)
    assert client.get("/api/bookings", headers=auth_headers).json()[0]["paymentStatus"] == "failed"
    assert client.post(f"/api/bookings/{booking['id']}/pay", headers=auth_headers).status_code == 201


def test_admin_reschedules_booking(client, auth_headers, admin_headers):
    booking = client.post("/api/bookings", json=BOOKING, headers=auth_headers).json()
    r = client.patch(f"/api/admin/bookings/{booking['id']}", json={"status": "completed", "date": "2026-12-01"},
                     headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["status"] == "completed"
    assert r.json()["date"] == "2026-12-01"
    assert r.json()["notes"] == "Old sofa"

    r = client.patch(f"/api/admin/bookings/{booking['id']}", json={"time": "25:00"}, headers=admin_headers)
    assert r.status_code == 422


def test_file_complaint(client, auth_headers):
    r = client.post("/api/complaints", data={"issueType": "missed-pickup", "description": " Truck skipped us "},
                    headers=auth_headers)
    assert r.status_code == 201
    complaint = r.json()
    assert complaint["status"] == "submitted"
    assert complaint["description"] == "Truck skipped us"
    assert complaint["photo"] is None


def test_complaint_with_photo(client, auth_headers):
    r = client.post("/api/complaints", data={"issueType": "other", "description": "Overflowing bin"},
                    files={"photo": ("bin.jpg", b"\xff\xd8\xff\xe0fake", "image/jpeg")}, headers=auth_headers)
    assert r.status_code == 201
    assert r.json()["photo"].startswith("data:image/jpeg;base64,")


def test_blank_complaint_rejected(client, auth_headers):
    r = client.post("/api/complaints", data={"issueType": "other", "description": "   "}, headers=auth_headers)
    assert r.status_code == 422
    assert r.json()["code"] == "errorDescriptionRequired"


def test_complaint_status_moves_forward(client, auth_headers, admin_headers):
    complaint = client.post("/api/complaints", data={"issueType": "service-issue", "description": "Bins left out"},
                            headers=auth_headers).json()
    url = f"/api/admin/complaints/{complaint['id']}"
    assert client.patch(url, json={"status": "in-progress"}, headers=admin_headers).status_code == 200
    assert client.patch(url, json={"status": "resolved"}, headers=admin_headers).json()["status"] == "resolved"
    r = client.patch(url, json={"status": "submitted"}, headers=admin_headers)
    assert r.status_code == 409


def test_complaint_transition_in_state(state, user):
    complaint = state.add_complaint(user.id, "other", "Noise at night")
    state.update_complaint(complaint.id, "resolved")
    with pytest.raises(InvalidTransition):
        state.update_complaint(complaint.id, "in-progress")
