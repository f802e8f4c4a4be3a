import config


def _log(client, headers, waste_type):
    return client.post("/api/waste-logs", json={"type": waste_type}, headers=headers)


def test_third_mixed_log_in_a_row_is_fined(client, auth_headers):
    first = _log(client, auth_headers, "mixed").json()
    second = _log(client, auth_headers, "mixed").json()
    third = _log(client, auth_headers, "mixed")

    assert third.status_code == 201
    assert not first["fined"] and not second["fined"]
    data = third.json()
    assert data["fined"] is True
    assert data["fineAmount"] == config.MIXED_WASTE_FINE
    assert data["outstandingBalance"] == 175.0


def test_streak_is_broken_by_sorted_waste(client, auth_headers):
    _log(client, auth_headers, "mixed")
    _log(client, auth_headers, "mixed")
    _log(client, auth_headers, "wet")
    data = _log(client, auth_headers, "mixed").json()
    assert data["fined"] is False
    assert data["outstandingBalance"] == 75.0


def test_fourth_mixed_log_is_fined_again(state, user):
    results = [state.add_waste_log(user.id, "mixed")[1] for _ in range(4)]
    assert results == [False, False, True, True]
    assert state.outstanding_balance(user.id) == 275.0


def test_streaks_are_per_household(state, user):
    other = state.signup("Priya Sen", "priya@example.com", "password123", "7 Park Lane")
    state.add_waste_log(user.id, "mixed")
    state.add_waste_log(other.id, "mixed")
    state.add_waste_log(user.id, "mixed")
    _, fined = state.add_waste_log(other.id, "mixed")
    assert fined is False


def test_logs_map_to_pickups_and_badge(client, auth_headers):
    _log(client, auth_headers, "wet")
    _log(client, auth_headers, "dry")
    data = client.get("/api/pickups", headers=auth_headers).json()
    assert [p["type"] for p in data["pickups"]] == ["compost", "recycling"]
    assert data["greenBadge"] is True

    _log(client, auth_headers, "mixed")
    data = client.get("/api/pickups", headers=auth_headers).json()
    assert data["pickups"][-1]["type"] == "general"
    assert data["greenBadge"] is False


def test_unknown_waste_type_rejected(client, auth_headers):
    assert _log(client, auth_headers, "plastic").status_code == 422


def test_waste_log_listing_is_private(client, auth_headers, state):
    other = state.signup("Priya Sen", "priya@example.com", "password123", "7 Park Lane")
    state.add_waste_log(other.id, "dry")
    _log(client, auth_headers, "wet")
    logs = client.get("/api/waste-logs", headers=auth_headers).json()
    assert len(logs) == 1
    assert logs[0]["type"] == "wet"


def test_wet_dry_then_three_mixed_scenario(client, auth_headers):
    fined = [_log(client, auth_headers, t).json()["fined"] for t in ("wet", "dry", "mixed", "mixed", "mixed")]
    assert fined == [False, False, False, False, True]
    assert client.get("/api/payments/balance", headers=auth_headers).json()["outstandingBalance"] == 175.0
