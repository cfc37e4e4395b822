import pytest


@pytest.mark.asyncio
async def test_health(async_client):
    response = await async_client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "database": "ok", "liveObservers": 0}


@pytest.mark.asyncio
async def test_prometheus_metrics_exposes_transition_counters(async_client):
    await async_client.post("/bookings/employee", json={
        "employeeName": "Asha Rao",
        "employeeId": "E-1001",
        "fromLocation": "Head Office",
        "toLocation": "Airport T2",
        "startDate": "2026-11-02",
        "startTime": "09:30:00",
        "tripType": "One Way",
        "journeyType": "Local",
        "reasonForTravel": "Client visit",
    })

    response = await async_client.get("/metrics/prometheus")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert 'fleet_booking_transitions_total{operation="create",outcome="success"}' in response.text
