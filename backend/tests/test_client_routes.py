from booktractor.services.rpc_client import RpcError

from factories import booking_row, machine_row

RANGE = "start_time=2024-05-01T08:00:00Z&end_time=2024-05-01T12:00:00Z"


def test_availability_not_queried_without_range(portal, client_session):
    client, rpc = portal({}, session=client_session)
    resp = client.get("/client/machines/m-1/availability?start_time=2024-05-01T08:00:00Z")
    assert resp.json() == {"queried": False, "availability": None, "can_book": False}
    assert rpc.calls == []


def test_availability_with_range(portal, client_session):
    client, rpc = portal(
        {"client.machines.checkAvailability": {"available": True, "availableCount": 2, "totalPrice": 2000}},
        session=client_session,
    )
    data = client.get(f"/client/machines/m-1/availability?{RANGE}&requested_count=2").json()
    assert data["can_book"] is True
    assert data["availability"]["total_cost"] == 2000
    assert rpc.calls[0][2]["requestedCount"] == 2


def test_book_rejects_inverted_range(portal, client_session):
    client, rpc = portal({}, session=client_session)
    resp = client.post(
        "/client/machines/m-1/book",
        json={"start_time": "2024-05-01T12:00:00Z", "end_time": "2024-05-01T08:00:00Z"},
    )
    assert resp.status_code == 422
    assert "End time must be after start time" in resp.json()["detail"]["field_errors"]["end_time"]
    assert rpc.calls == []


def test_book_blocked_when_unavailable(portal, client_session):
    client, rpc = portal(
        {"client.machines.checkAvailability": {"available": False, "reason": "Fully booked"}},
        session=client_session,
    )
    resp = client.post(
        "/client/machines/m-1/book",
        json={"start_time": "2024-05-01T08:00:00Z", "end_time": "2024-05-01T12:00:00Z"},
    )
    assert resp.status_code == 409
    assert resp.json()["detail"]["message"] == "Fully booked"
    assert rpc.paths("mutation") == []


def test_book_success(portal, client_session):
    client, rpc = portal(
        {
            "client.machines.checkAvailability": {"available": True, "availableCount": 1},
            "client.bookings.create": {"bookings": [booking_row()], "assignedInstances": ["TR-01"], "totalPrice": 2000},
        },
        session=client_session,
    )
    resp = client.post(
        "/client/machines/m-1/book",
        json={"start_time": "2024-05-01T08:00:00Z", "end_time": "2024-05-01T12:00:00Z", "label": "North field"},
    )
    assert resp.status_code == 201
    assert resp.json()["redirect_to"] == "/client/bookings"
    assert resp.json()["result"]["assigned_instances"] == ["TR-01"]
    assert resp.json()["result"]["total_price"] == 2000
    _, path, payload = rpc.calls[-1]
    assert path == "client.bookings.create"
    assert payload["clientId"] == "client-1"
    assert payload["templateId"] == "m-1"
    assert payload["label"] == "North field"


def test_my_bookings_client_actions(portal, client_session):
    client, rpc = portal(
        {"client.bookings.myBookings": [booking_row(status="sent_back_to_client")]},
        session=client_session,
    )
    [view] = client.get("/client/bookings").json()
    assert view["actions"] == ["cancel"]
    assert view["badge"]["label"] == "Changes Requested"
    assert rpc.calls[0][2] == {"clientId": "client-1", "includeHistory": True}


def test_cancel_flow(portal, client_session):
    row = booking_row(status="approved_by_renter")

    def cancel(payload):
        row["status"] = "canceled_by_client"
        return {"success": True}

    client, rpc = portal(
        {"client.bookings.getById": lambda payload: dict(row), "client.bookings.cancel": cancel},
        session=client_session,
    )
    resp = client.post("/client/bookings/b-1/cancel", json={"reason": "Weather"})
    assert resp.status_code == 200
    assert resp.json()["booking"]["status"] == "canceled_by_client"
    assert resp.json()["actions"] == []
    assert ("mutation", "client.bookings.cancel", {"bookingId": "b-1", "clientId": "client-1", "reason": "Weather"}) in rpc.calls

    again = client.post("/client/bookings/b-1/cancel", json={})
    assert again.status_code == 409


def test_client_booking_detail_maps_nested_machine(portal, client_session):
    row = booking_row()
    del row["machineName"]
    row["machine"] = {"id": "m-1", "name": "Big Tractor", "code": "BT", "pricePerHour": 700}
    client, rpc = portal({"client.bookings.getById": row}, session=client_session)
    data = client.get("/client/bookings/b-1").json()
    assert data["booking"]["machine_name"] == "Big Tractor"
    assert rpc.calls[0][2] == {"id": "b-1", "clientId": "client-1"}


def test_forbidden_booking(portal, client_session):
    client, _ = portal(
        {"client.bookings.getById": RpcError("FORBIDDEN", "Not authorized to view this booking", 403, "client.bookings.getById")},
        session=client_session,
    )
    assert client.get("/client/bookings/b-9").status_code == 403


def test_overview(portal, client_session):
    future = booking_row(id="b-2", startTime="2999-01-01T08:00:00Z", endTime="2999-01-01T10:00:00Z")
    client, _ = portal(
        {
            "client.machines.featured": [machine_row()],
            "client.bookings.myBookings": [
                booking_row(id="b-1", status="sent_back_to_client"),
                future,
            ],
        },
        session=client_session,
    )
    data = client.get("/client").json()
    assert data["featured"][0]["id"] == "m-1"
    assert data["next_booking"]["booking"]["id"] == "b-2"
    assert [v["booking"]["id"] for v in data["attention"]] == ["b-1"]
