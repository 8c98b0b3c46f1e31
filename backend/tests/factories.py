"""Wire-shaped rows as the RPC backend returns them (camelCase keys)."""


def booking_row(**overrides) -> dict:
    row = {
        "id": "b-1",
        "templateId": "m-1",
        "machineInstanceId": "i-1",
        "instanceCode": "TR-01",
        "clientUserId": "client-1",
        "clientName": "Carl Client",
        "startTime": "2024-01-01T08:00:00Z",
        "endTime": "2024-01-01T10:00:00Z",
        "status": "pending_renter_approval",
        "pricePerHour": 500,
        "messages": [],
        "machineName": "Tractor",
        "machineCode": "TR",
    }
    row.update(overrides)
    return row


def machine_row(**overrides) -> dict:
    row = {
        "id": "m-1",
        "name": "Tractor",
        "code": "TR",
        "pricePerHour": 500,
        "totalCount": 3,
        "specs": {"images": ["https://cdn.example.com/tr.jpg"], "location": "Field 7"},
        "stats": {
            "instanceCount": 3,
            "activeInstanceCount": 2,
            "bookingCount": 4,
            "activeBookingCount": 1,
        },
    }
    row.update(overrides)
    return row
