"""
End-to-end tests for the booking and fleet HTTP surface.
"""

import pytest

BOOKING_BODY = {
    "employeeName": "Asha Rao",
    "employeeId": "E-1001",
    "employeeEmail": "asha.rao@example.com",
    "fromLocation": "Head Office",
    "toLocation": "Airport T2",
    "startDate": "2026-11-02",
    "startTime": "09:30:00",
    "endDate": "2026-11-04",
    "endTime": "18:00:00",
    "tripType": "One Way",
    "journeyType": "Local",
    "reasonForTravel": "Client visit",
}

GUEST_BODY = {
    "guestName": "Daniel Okafor",
    "guestEmail": "d.okafor@partner.example",
    "numGuests": 2,
    "fromLocation": "Hotel Lakeview",
    "toLocation": "Plant 3",
    "startDate": "2026-11-03",
    "startTime": "08:00:00",
    "endDate": "2026-11-03",
    "endTime": "18:00:00",
    "tripType": "Round Trip",
    "journeyType": "Outstation",
    "reasonForTravel": "Plant audit",
}


async def add_car(client, plate="KA-01-AB-1234", odometer=12000):
    response = await client.post("/bookings/cars", json={
        "name": "Innova",
        "plateNumber": plate,
        "currentOdometerKm": odometer,
        "vehicleType": "SUV",
    })
    assert response.status_code == 201
    return response.json()["car"]["id"]


async def submit_booking(client):
    response = await client.post("/bookings/employee", json=BOOKING_BODY)
    assert response.status_code == 201
    return response.json()["bookingId"]


async def allocate(client, booking_id, car_id):
    return await client.put(f"/bookings/approver/allocate/{booking_id}", json={
        "vehicleId": car_id,
        "vehicleName": "Innova",
        "vehicleNumber": "KA-01-AB-1234",
        "vehicleType": "SUV",
    })


class TestBookingCreation:

    @pytest.mark.asyncio
    async def test_employee_booking_created(self, async_client):
        response = await async_client.post("/bookings/employee", json=BOOKING_BODY)

        assert response.status_code == 201
        body = response.json()
        assert body["message"]
        assert body["warning"] is None

        booking = (await async_client.get(f"/bookings/{body['bookingId']}")).json()
        assert booking["status"] == "Pending Allocation"
        assert booking["bookingType"] == "Employee"
        # one-way trips never keep an end date
        assert booking["endDate"] is None
        assert booking["endTime"] is None

    @pytest.mark.asyncio
    async def test_guest_booking_created(self, async_client):
        response = await async_client.post("/bookings/guest", json=GUEST_BODY)

        assert response.status_code == 201
        booking = (await async_client.get(f"/bookings/{response.json()['bookingId']}")).json()
        assert booking["guestName"] == "Daniel Okafor"
        assert booking["endDate"] == "2026-11-03"

    @pytest.mark.asyncio
    async def test_missing_field_is_400(self, async_client):
        body = dict(BOOKING_BODY)
        del body["fromLocation"]

        response = await async_client.post("/bookings/employee", json=body)

        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"
        assert response.json()["field"] == "fromLocation"

    @pytest.mark.asyncio
    async def test_round_trip_without_end_is_400(self, async_client):
        body = dict(GUEST_BODY, endDate=None, endTime=None)

        response = await async_client.post("/bookings/guest", json=body)

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_notification_failure_is_a_warning(self, async_client, notifier):
        notifier.fail = True

        response = await async_client.post("/bookings/employee", json=BOOKING_BODY)

        assert response.status_code == 201
        assert "manually" in response.json()["warning"]

    @pytest.mark.asyncio
    async def test_list_bookings(self, async_client):
        first = await submit_booking(async_client)
        second = await submit_booking(async_client)

        response = await async_client.get("/bookings")

        assert response.status_code == 200
        assert [b["id"] for b in response.json()] == [second, first]

    @pytest.mark.asyncio
    async def test_unknown_booking_is_404(self, async_client):
        response = await async_client.get("/bookings/9999")

        assert response.status_code == 404


class TestBookingTransitions:

    @pytest.mark.asyncio
    async def test_full_trip_over_http(self, async_client):
        car_id = await add_car(async_client)
        booking_id = await submit_booking(async_client)

        response = await allocate(async_client, booking_id, car_id)
        assert response.status_code == 200
        assert response.json()["booking"]["status"] == "Car Allocated"

        response = await async_client.put(f"/bookings/driver/start-trip/{booking_id}", json={
            "startPoint": "Lat: 12.9716, Lng: 77.5946",
            "startTime": "09:40:00",
            "startOdometer": 12000,
        })
        assert response.status_code == 200
        assert response.json()["booking"]["status"] == "Trip Started"

        response = await async_client.put(f"/bookings/driver/end-trip/{booking_id}", json={
            "endTime": "11:05:00",
            "endOdometer": 12042,
            "vehicleId": car_id,
            "dropPoint": "Lat: 13.1986, Lng: 77.7066",
        })
        assert response.status_code == 200
        assert response.json()["booking"]["status"] == "Trip Completed"

        cars = (await async_client.get("/bookings/cars")).json()
        assert cars[0]["id"] == car_id
        assert cars[0]["currentOdometerKm"] == 12042
        assert cars[0]["status"] == "Free"

    @pytest.mark.asyncio
    async def test_allocating_busy_car_is_409(self, async_client):
        car_id = await add_car(async_client)
        first = await submit_booking(async_client)
        second = await submit_booking(async_client)
        await allocate(async_client, first, car_id)

        response = await allocate(async_client, second, car_id)

        assert response.status_code == 409
        assert "refresh" in response.json()["message"]

    @pytest.mark.asyncio
    async def test_reject_then_allocate_is_404(self, async_client):
        car_id = await add_car(async_client)
        booking_id = await submit_booking(async_client)

        response = await async_client.put(
            f"/bookings/approver/reject/{booking_id}", json={"adminComments": "Not approved"}
        )
        assert response.status_code == 200
        assert response.json()["booking"]["adminComments"] == "Not approved"

        response = await allocate(async_client, booking_id, car_id)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_start_trip_missing_odometer_is_400(self, async_client):
        booking_id = await submit_booking(async_client)

        response = await async_client.put(f"/bookings/driver/start-trip/{booking_id}", json={
            "startPoint": "Gate 1",
            "startTime": "09:40:00",
        })

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_request_change_requires_reason(self, async_client):
        response = await async_client.put("/bookings/driver/request-change/1", json={})

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_request_change_and_force_end(self, async_client):
        car_id = await add_car(async_client)
        booking_id = await submit_booking(async_client)
        await allocate(async_client, booking_id, car_id)

        response = await async_client.put(
            f"/bookings/driver/request-change/{booking_id}", json={"reason": "Need a bigger car"}
        )
        assert response.status_code == 200
        assert response.json()["booking"]["status"] == "Change Requested"

        await allocate(async_client, booking_id, car_id)
        response = await async_client.put(
            f"/bookings/admin/booking/{booking_id}/force-end", json={"adminComments": "Driver unreachable"}
        )
        assert response.status_code == 200
        booking = response.json()["booking"]
        assert booking["status"] == "Trip Completed"
        assert booking["adminComments"] == "Force-ended by admin: Driver unreachable"

    @pytest.mark.asyncio
    async def test_update_pretrip_guest_info(self, async_client):
        response = await async_client.post("/bookings/guest", json=GUEST_BODY)
        booking_id = response.json()["bookingId"]

        response = await async_client.put(
            f"/bookings/driver/update-pretrip/{booking_id}", json={"guestName": "Dan Okafor", "numGuests": 3}
        )

        assert response.status_code == 200
        assert response.json()["booking"]["guestName"] == "Dan Okafor"
        assert response.json()["booking"]["numGuests"] == 3


class TestFleetEndpoints:

    @pytest.mark.asyncio
    async def test_duplicate_plate_is_409(self, async_client):
        await add_car(async_client, plate="KA-09-XY-0001")

        response = await async_client.post("/bookings/cars", json={
            "name": "Dzire",
            "plateNumber": "KA-09-XY-0001",
        })

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_list_hides_unavailable_unless_show_all(self, async_client):
        free_car = await add_car(async_client, plate="KA-01-FR-0001")
        busy_car = await add_car(async_client, plate="KA-01-BS-0002")
        booking_id = await submit_booking(async_client)
        await allocate(async_client, booking_id, busy_car)

        available = (await async_client.get("/bookings/cars")).json()
        everything = (await async_client.get("/bookings/cars", params={"showAll": "true"})).json()

        assert [c["id"] for c in available] == [free_car]
        assert {c["id"] for c in everything} == {free_car, busy_car}

    @pytest.mark.asyncio
    async def test_maintenance_round_trip(self, async_client):
        car_id = await add_car(async_client)

        response = await async_client.put(f"/bookings/car/{car_id}/status", json={"status": "Maintenance"})
        assert response.status_code == 200
        assert response.json()["car"]["isAvailable"] is False

        response = await async_client.put(f"/bookings/car/{car_id}/status", json={"status": "Free"})
        assert response.status_code == 200
        assert response.json()["car"]["isAvailable"] is True

    @pytest.mark.asyncio
    async def test_in_trip_status_cannot_be_set_by_hand(self, async_client):
        car_id = await add_car(async_client)

        response = await async_client.put(f"/bookings/car/{car_id}/status", json={"status": "In-Trip"})

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_car_in_trip_cannot_go_to_maintenance(self, async_client):
        car_id = await add_car(async_client)
        booking_id = await submit_booking(async_client)
        await allocate(async_client, booking_id, car_id)

        response = await async_client.put(f"/bookings/car/{car_id}/status", json={"status": "Maintenance"})

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_unknown_car_status_is_404(self, async_client):
        response = await async_client.put("/bookings/car/404/status", json={"status": "Free"})

        assert response.status_code == 404
