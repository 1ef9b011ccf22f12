"""
API tests for settlement, trip lifecycle, route deviation and analytics.
Uses pytest-asyncio + httpx ASGITransport with SQLite and an in-memory Redis.
"""
import pytest
from sqlalchemy import select

from fleetdesk.models import Consignment, Driver, DriverLocation, Trip, TripRevenue, Vehicle
from fleetdesk.models.reconciliation import SettlementReconciliation
from fleetdesk.redis_client import current_trip_key
from tests.conftest import DROP, PICKUP, token_for

ADMIN = token_for("admin-1", "admin")


def _driver(seeded):
    return token_for(seeded["driver_id"], "driver")


def _settle_body(seeded):
    return {"driver_id": seeded["driver_id"], "vehicle_id": seeded["vehicle_id"]}


@pytest.mark.asyncio
class TestAuth:
    async def test_health_check(self, client):
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"

    async def test_settle_missing_auth(self, client, seeded):
        resp = await client.post(f"/v1/trips/{seeded['trip_id']}/settle", json=_settle_body(seeded))
        assert resp.status_code == 401

    async def test_token_without_role(self, client, seeded):
        from fleetdesk.middleware.auth import create_access_token

        headers = {"Authorization": f"Bearer {create_access_token({'sub': 'x'})}"}
        resp = await client.get("/v1/deviations", headers=headers)
        assert resp.status_code == 401

    async def test_unknown_role_is_rejected(self, client, seeded):
        resp = await client.post(
            f"/v1/trips/{seeded['trip_id']}/settle",
            json=_settle_body(seeded),
            headers=token_for("tech-1", "technician"),
        )
        assert resp.status_code == 401

    async def test_driver_cannot_settle_for_someone_else(self, client, seeded):
        resp = await client.post(
            f"/v1/trips/{seeded['trip_id']}/settle",
            json=_settle_body(seeded),
            headers=token_for("other-driver", "driver"),
        )
        assert resp.status_code == 403


@pytest.mark.asyncio
class TestSettlementAPI:
    async def test_settle_closes_everything(self, client, seeded, session_factory, redis):
        redis.store[current_trip_key(seeded["driver_id"])] = "{}"

        resp = await client.post(
            f"/v1/trips/{seeded['trip_id']}/settle", json=_settle_body(seeded), headers=_driver(seeded)
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "completed"
        assert body["failed_step"] is None
        assert len(body["committed_steps"]) == 5
        assert body["revenue"]["distance_km"] > 100
        assert body["revenue"]["driver_cost"] == pytest.approx(body["revenue"]["distance_km"] * 7, abs=0.01)

        async with session_factory() as db:
            trip = await db.get(Trip, seeded["trip_id"])
            assert trip.status == "completed"
            assert trip.end_time is not None
            assert (await db.get(Vehicle, seeded["vehicle_id"])).status == "available"
            assert (await db.get(Driver, seeded["driver_id"])).status == "Available"
            assert (await db.get(Consignment, seeded["consignment_id"])).status == "completed"
            revenues = (await db.execute(select(TripRevenue))).scalars().all()
            assert len(revenues) == 1

        assert current_trip_key(seeded["driver_id"]) not in redis.store
        assert f"trip:{seeded['trip_id']}:settle_lock" not in redis.store

    async def test_second_settlement_is_rejected(self, client, seeded):
        url = f"/v1/trips/{seeded['trip_id']}/settle"
        first = await client.post(url, json=_settle_body(seeded), headers=ADMIN)
        assert first.status_code == 200

        second = await client.post(url, json=_settle_body(seeded), headers=ADMIN)
        assert second.status_code == 409
        assert second.json()["code"] == "trip_already_closed"

    async def test_idempotent_replay(self, client, seeded):
        url = f"/v1/trips/{seeded['trip_id']}/settle"
        headers = {**ADMIN, "Idempotency-Key": "settle-abc"}
        first = await client.post(url, json=_settle_body(seeded), headers=headers)
        second = await client.post(url, json=_settle_body(seeded), headers=headers)

        assert first.status_code == second.status_code == 200
        assert second.headers.get("X-Idempotency-Replay") == "true"
        assert second.json() == first.json()

    async def test_idempotency_key_is_scoped_to_the_trip(self, client, seeded):
        headers = {**ADMIN, "Idempotency-Key": "settle-shared"}
        first = await client.post(f"/v1/trips/{seeded['trip_id']}/settle", json=_settle_body(seeded), headers=headers)
        assert first.status_code == 200

        other = await client.post("/v1/trips/other-trip/settle", json=_settle_body(seeded), headers=headers)
        assert other.status_code == 404
        assert "X-Idempotency-Replay" not in other.headers

    async def test_other_driver_cannot_settle_with_own_ids(self, client, seeded, session_factory):
        async with session_factory() as db:
            intruder = Driver(name="Intruder", status="Available")
            spare = Vehicle(license_plate_no="MH12ZZ9999", type="HCV", model="Ashok 2820", status="garage")
            db.add_all([intruder, spare])
            await db.commit()
            intruder_id, spare_id = intruder.id, spare.id

        resp = await client.post(
            f"/v1/trips/{seeded['trip_id']}/settle",
            json={"driver_id": intruder_id, "vehicle_id": spare_id},
            headers=token_for(intruder_id, "driver"),
        )
        assert resp.status_code == 403
        assert resp.json()["code"] == "trip_mismatch"

        async with session_factory() as db:
            assert (await db.get(Trip, seeded["trip_id"])).status == "ongoing"
            assert (await db.get(Driver, seeded["driver_id"])).status == "On Trip"
            assert (await db.get(Vehicle, seeded["vehicle_id"])).status == "on_duty"
            assert (await db.get(Vehicle, spare_id)).status == "garage"
            assert (await db.get(Driver, intruder_id)).status == "Available"
            assert (await db.execute(select(TripRevenue))).scalars().all() == []

    async def test_admin_with_wrong_vehicle_is_rejected(self, client, seeded):
        body = {"driver_id": seeded["driver_id"], "vehicle_id": "someone-elses-truck"}
        resp = await client.post(f"/v1/trips/{seeded['trip_id']}/settle", json=body, headers=ADMIN)
        assert resp.status_code == 403
        assert resp.json()["code"] == "trip_mismatch"

    async def test_concurrent_settlement_locked(self, client, seeded, redis):
        redis.store[f"trip:{seeded['trip_id']}:settle_lock"] = "someone-else"
        resp = await client.post(
            f"/v1/trips/{seeded['trip_id']}/settle", json=_settle_body(seeded), headers=ADMIN
        )
        assert resp.status_code == 409

    async def test_unknown_trip(self, client, seeded):
        resp = await client.post("/v1/trips/nope/settle", json=_settle_body(seeded), headers=ADMIN)
        assert resp.status_code == 404
        assert resp.json()["code"] == "trip_not_found"

    async def test_invalid_weight(self, client, seeded, session_factory):
        async with session_factory() as db:
            consignment = await db.get(Consignment, seeded["consignment_id"])
            consignment.weight = "heavy"
            await db.commit()

        resp = await client.post(
            f"/v1/trips/{seeded['trip_id']}/settle", json=_settle_body(seeded), headers=ADMIN
        )
        assert resp.status_code == 422
        assert resp.json()["code"] == "invalid_weight"

    async def test_geocoding_failure(self, client, seeded, places):
        places.places = {PICKUP: places.places[PICKUP]}
        resp = await client.post(
            f"/v1/trips/{seeded['trip_id']}/settle", json=_settle_body(seeded), headers=ADMIN
        )
        assert resp.status_code == 422
        assert resp.json()["code"] == "geocoding_failed"

    async def test_partial_failure_reports_and_records(self, client, seeded, session_factory):
        # Driver row gone: the driver_available step cannot update anything
        async with session_factory() as db:
            await db.delete(await db.get(Driver, seeded["driver_id"]))
            await db.commit()

        resp = await client.post(
            f"/v1/trips/{seeded['trip_id']}/settle", json=_settle_body(seeded), headers=ADMIN
        )

        assert resp.status_code == 502
        data = resp.json()
        assert data["failed_step"] == "driver_available"
        assert data["committed_steps"] == ["insert_revenue", "vehicle_available"]

        listing = await client.get("/v1/settlements/reconciliations", headers=ADMIN)
        assert listing.status_code == 200
        assert listing.json()[0]["pending_steps"] == [
            "driver_available", "consignment_completed", "trip_completed",
        ]

        async with session_factory() as db:
            db.add(Driver(id=seeded["driver_id"], name="Ravi Kumar", status="On Trip"))
            await db.commit()

        resumed = await client.post(
            f"/v1/trips/{seeded['trip_id']}/settle", json=_settle_body(seeded), headers=ADMIN
        )
        assert resumed.status_code == 200
        async with session_factory() as db:
            assert len((await db.execute(select(TripRevenue))).scalars().all()) == 1
            open_tasks = await db.execute(
                select(SettlementReconciliation).where(SettlementReconciliation.resolved_at.is_(None))
            )
            assert open_tasks.scalars().all() == []


@pytest.mark.asyncio
class TestTripLifecycleAPI:
    async def test_current_trip_details(self, client, seeded, redis):
        resp = await client.get(f"/v1/drivers/{seeded['driver_id']}/current-trip", headers=_driver(seeded))
        assert resp.status_code == 200
        body = resp.json()
        assert body["trip_id"] == seeded["trip_id"]
        assert body["consignment_type"] == "priority"
        assert body["truck_type"] == "MCV"
        assert body["license_plate"] == "MH12AB1234"
        assert body["start_location"] == PICKUP
        assert body["end_coordinate"]["lat"] == pytest.approx(18.7606)
        assert current_trip_key(seeded["driver_id"]) in redis.store

    async def test_current_trip_without_coordinates(self, client, seeded, places):
        places.places = {}
        resp = await client.get(f"/v1/drivers/{seeded['driver_id']}/current-trip", headers=_driver(seeded))
        assert resp.status_code == 200
        assert resp.json()["start_coordinate"] is None

    async def test_no_current_trip(self, client, seeded):
        resp = await client.get("/v1/drivers/nobody/current-trip", headers=ADMIN)
        assert resp.status_code == 404

    async def test_end_manually_then_settle_rejected(self, client, seeded):
        resp = await client.post(f"/v1/trips/{seeded['trip_id']}/end-manually", headers=_driver(seeded))
        assert resp.status_code == 200
        assert resp.json()["status"] == "ended_manually"

        resp = await client.post(
            f"/v1/trips/{seeded['trip_id']}/settle", json=_settle_body(seeded), headers=_driver(seeded)
        )
        assert resp.status_code == 409

    async def test_cancel_is_admin_only(self, client, seeded):
        resp = await client.post(f"/v1/trips/{seeded['trip_id']}/cancel", headers=_driver(seeded))
        assert resp.status_code == 403

        resp = await client.post(f"/v1/trips/{seeded['trip_id']}/cancel", headers=ADMIN)
        assert resp.status_code == 200
        assert resp.json()["status"] == "cancelled"

    async def test_cannot_cancel_closed_trip(self, client, seeded):
        await client.post(f"/v1/trips/{seeded['trip_id']}/cancel", headers=ADMIN)
        resp = await client.post(f"/v1/trips/{seeded['trip_id']}/end-manually", headers=ADMIN)
        assert resp.status_code == 409


@pytest.mark.asyncio
class TestRouteDeviationAPI:
    ROUTE = {"points": [{"lat": 18.52, "lng": 73.85 + i * 0.0095} for i in range(10)]}

    async def _ping(self, client, seeded, lat, lng):
        return await client.post(
            f"/v1/trips/{seeded['trip_id']}/locations",
            json={"lat": lat, "lng": lng},
            headers=_driver(seeded),
        )

    async def test_ping_without_route_only_records(self, client, seeded, session_factory):
        resp = await self._ping(client, seeded, 18.9, 72.8)
        assert resp.status_code == 200
        assert resp.json() == {
            "recorded": True, "deviating": False, "distance_from_route_m": None, "warning_id": None,
        }
        async with session_factory() as db:
            assert len((await db.execute(select(DriverLocation))).scalars().all()) == 1

    async def test_one_warning_per_off_route_episode(self, client, seeded):
        resp = await client.put(
            f"/v1/trips/{seeded['trip_id']}/route", json=self.ROUTE, headers=_driver(seeded)
        )
        assert resp.status_code == 204

        on_route = await self._ping(client, seeded, 18.5201, 73.86)
        assert on_route.json()["deviating"] is False

        off = await self._ping(client, seeded, 18.53, 73.8785)
        assert off.json()["deviating"] is True
        first_warning = off.json()["warning_id"]
        assert first_warning

        still_off = await self._ping(client, seeded, 18.531, 73.8785)
        assert still_off.json()["deviating"] is True
        assert still_off.json()["warning_id"] is None

        await self._ping(client, seeded, 18.5201, 73.86)
        off_again = await self._ping(client, seeded, 18.53, 73.8785)
        assert off_again.json()["warning_id"] not in (None, first_warning)

        feed = await client.get("/v1/deviations", headers=ADMIN)
        assert feed.status_code == 200
        items = feed.json()
        assert len(items) == 2
        assert items[0]["message"].startswith("Ravi Kumar exceeded route bounds by")

    async def test_acknowledge(self, client, seeded):
        await client.put(f"/v1/trips/{seeded['trip_id']}/route", json=self.ROUTE, headers=_driver(seeded))
        warning_id = (await self._ping(client, seeded, 18.53, 73.8785)).json()["warning_id"]

        resp = await client.post(f"/v1/deviations/{warning_id}/acknowledge", headers=_driver(seeded))
        assert resp.status_code == 200
        driver_ack = resp.json()["acknowledged_by_driver_at"]
        assert driver_ack is not None
        assert resp.json()["acknowledged_by_admin_at"] is None

        again = await client.post(f"/v1/deviations/{warning_id}/acknowledge", headers=_driver(seeded))
        assert again.json()["acknowledged_by_driver_at"][:19] == driver_ack[:19]

        resp = await client.post(f"/v1/deviations/{warning_id}/acknowledge", headers=ADMIN)
        assert resp.json()["acknowledged_by_admin_at"] is not None

    async def test_other_driver_cannot_acknowledge(self, client, seeded):
        await client.put(f"/v1/trips/{seeded['trip_id']}/route", json=self.ROUTE, headers=_driver(seeded))
        warning_id = (await self._ping(client, seeded, 18.53, 73.8785)).json()["warning_id"]

        resp = await client.post(
            f"/v1/deviations/{warning_id}/acknowledge", headers=token_for("other-driver", "driver")
        )
        assert resp.status_code == 403

    async def test_invalid_latitude(self, client, seeded):
        resp = await self._ping(client, seeded, 999, 73.8)
        assert resp.status_code == 422


@pytest.mark.asyncio
class TestAnalyticsAPI:
    async def test_after_settlement(self, client, seeded):
        settled = await client.post(
            f"/v1/trips/{seeded['trip_id']}/settle", json=_settle_body(seeded), headers=ADMIN
        )
        revenue = settled.json()["revenue"]

        points = (await client.get("/v1/analytics/revenue", headers=ADMIN)).json()
        assert len(points) == 1
        assert points[0]["value"] == pytest.approx(
            revenue["customer_charge"] - revenue["fuel_cost"] - revenue["driver_cost"], abs=0.01
        )

        spend = (await client.get("/v1/analytics/expenditure", headers=ADMIN)).json()
        assert spend == [
            {"category": "Salary", "value": pytest.approx(revenue["driver_cost"], abs=0.01)},
            {"category": "Expense", "value": pytest.approx(revenue["fuel_cost"], abs=0.01)},
        ]

        fleet = (await client.get("/v1/analytics/fleet-status", headers=ADMIN)).json()
        assert fleet == {"on_duty": 0, "available": 1, "servicing": 0}

    async def test_admin_only(self, client, seeded):
        resp = await client.get("/v1/analytics/revenue", headers=_driver(seeded))
        assert resp.status_code == 403
