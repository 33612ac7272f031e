import pytest

from app.domain import container

OWNER = {"X-User-Id": "owner-1"}
FAN = {"X-User-Id": "fan-1"}
STRANGER = {"X-User-Id": "stranger-1"}

_WAYPOINTS = [{"lat": 0, "lng": 0, "name": "start"}, {"lat": 0, "lng": 1}]


@pytest.mark.asyncio
async def test_location_crud_round(api_client):
	created = await api_client.post(
		"/locations",
		json={
			"name": "Rooftop",
			"lat": 51.5,
			"lng": -0.12,
			"url": "https://maps.example/rooftop",
			"visibility": "public",
			"expiration": {"type": "24h"},
		},
		headers=OWNER,
	)
	assert created.status_code == 201
	body = created.json()
	assert body["owner_id"] == "owner-1"
	assert body["expires_at"] is not None
	assert body["accepts_bids"] is False
	location_id = body["id"]

	fetched = await api_client.get(f"/locations/{location_id}")
	assert fetched.status_code == 200
	assert fetched.json()["selected_followers"] is None

	patched = await api_client.patch(
		f"/locations/{location_id}",
		json={"name": "Rooftop bar", "expiration": None},
		headers=OWNER,
	)
	assert patched.status_code == 200
	assert patched.json()["name"] == "Rooftop bar"
	assert patched.json()["expires_at"] is None
	assert patched.json()["url"] == "https://maps.example/rooftop"

	forbidden = await api_client.delete(f"/locations/{location_id}", headers=STRANGER)
	assert forbidden.status_code == 403

	deleted = await api_client.delete(f"/locations/{location_id}", headers=OWNER)
	assert deleted.status_code == 204
	assert (await api_client.get(f"/locations/{location_id}", headers=OWNER)).status_code == 404


@pytest.mark.asyncio
async def test_followers_only_location_shares(api_client):
	container.get_follow_graph().follow("fan-1", "owner-1")
	container.get_follow_graph().follow("stranger-1", "owner-1")
	created = await api_client.post(
		"/locations",
		json={
			"name": "Back garden",
			"lat": 1,
			"lng": 2,
			"visibility": "followers",
			"selected_followers": ["fan-1"],
		},
		headers=OWNER,
	)
	assert created.status_code == 201
	assert created.json()["selected_followers"] == ["fan-1"]
	location_id = created.json()["id"]

	as_fan = await api_client.get(f"/locations/{location_id}", headers=FAN)
	assert as_fan.status_code == 200
	assert as_fan.json()["selected_followers"] is None

	as_other_follower = await api_client.get(f"/locations/{location_id}", headers=STRANGER)
	assert as_other_follower.status_code == 404
	assert as_other_follower.json()["detail"] == "location_not_found"

	listing = await api_client.get("/locations", params={"user_id": "owner-1"}, headers=STRANGER)
	assert listing.json() == []

	opened = await api_client.patch(f"/locations/{location_id}", json={"selected_followers": []}, headers=OWNER)
	assert opened.json()["selected_followers"] == []
	assert (await api_client.get(f"/locations/{location_id}", headers=STRANGER)).status_code == 200


@pytest.mark.asyncio
async def test_location_validation_errors(api_client):
	bad_lat = await api_client.post("/locations", json={"name": "x", "lat": 95, "lng": 0}, headers=OWNER)
	assert bad_lat.status_code == 400
	assert bad_lat.json()["detail"] == "coordinates_invalid"

	bad_visibility = await api_client.post(
		"/locations", json={"name": "x", "lat": 0, "lng": 0, "visibility": "secret"}, headers=OWNER
	)
	assert bad_visibility.status_code == 400
	assert bad_visibility.json()["detail"] == "visibility_invalid"

	bad_expiry = await api_client.post(
		"/locations",
		json={"name": "x", "lat": 0, "lng": 0, "expiration": {"type": "fortnight"}},
		headers=OWNER,
	)
	assert bad_expiry.status_code == 400
	assert bad_expiry.json()["detail"] == "expiration_invalid"

	anonymous = await api_client.post("/locations", json={"name": "x", "lat": 0, "lng": 0})
	assert anonymous.status_code == 401


@pytest.mark.asyncio
async def test_route_crud_round(api_client):
	created = await api_client.post(
		"/routes",
		json={
			"name": "Canal loop",
			"waypoints": _WAYPOINTS,
			"visibility": "public",
			"estimated_duration_s": 5400,
		},
		headers=OWNER,
	)
	assert created.status_code == 201
	route = created.json()
	assert route["distance_m"] == pytest.approx(111194.93, abs=1.0)
	assert [point["order_index"] for point in route["waypoints"]] == [0, 1]
	assert route["waypoints"][0]["name"] == "start"

	listed = await api_client.get("/routes", params={"user_id": "owner-1"})
	assert [item["id"] for item in listed.json()] == [route["id"]]

	patched = await api_client.patch(
		f"/routes/{route['id']}",
		json={"waypoints": _WAYPOINTS + [{"lat": 0, "lng": 2}], "visibility": "private"},
		headers=OWNER,
	)
	assert patched.status_code == 200
	assert len(patched.json()["waypoints"]) == 3
	assert (await api_client.get(f"/routes/{route['id']}", headers=STRANGER)).status_code == 404

	too_short = await api_client.patch(
		f"/routes/{route['id']}", json={"waypoints": _WAYPOINTS[:1]}, headers=OWNER
	)
	assert too_short.status_code == 400
	assert too_short.json()["detail"] == "waypoints_invalid"

	deleted = await api_client.delete(f"/routes/{route['id']}", headers=OWNER)
	assert deleted.status_code == 204
	missing = await api_client.get(f"/routes/{route['id']}", headers=OWNER)
	assert missing.status_code == 404
	assert missing.json()["detail"] == "route_not_found"


@pytest.mark.asyncio
async def test_expiry_preview(api_client, clock):
	never = await api_client.post("/expiry/preview", json={"type": "never"})
	assert never.status_code == 200
	assert never.json()["expires_at"] is None

	clamped = await api_client.post("/expiry/preview", json={"type": "custom", "hours": 9999})
	assert clamped.status_code == 200
	# 720 hours after the frozen clock
	assert clock.now().isoformat().startswith("2025-03-01T12:00:00")
	assert clamped.json()["expires_at"].startswith("2025-03-31T12:00:00")

	invalid = await api_client.post("/expiry/preview", json={"type": "custom"})
	assert invalid.status_code == 400
	assert invalid.json()["detail"] == "expiration_invalid"
