from apps.api.visitor.schema import VisitorStatus


async def submit(client, **fields):
    body = {"residencyId": "R1", "visitorName": "John", "flatId": "F1", **fields}
    return await client.post("/visitor/submit", json=body)


async def test_ping(client):
    response = await client.get("/api/ping")
    assert response.status_code == 200


async def test_submit_creates_and_notifies(client, gateway, store, residency):
    response = await submit(client, purpose="Delivery")

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    request_id = body["requestId"]

    assert sorted(gateway.sent_tokens) == ["ADMIN-T", "T1"]
    stored = await store.read("R1", request_id)
    assert stored.notification_sent is True
    assert stored.purpose == "Delivery"


async def test_submit_survives_a_push_failure(client, gateway, store, residency):
    async def broken(*args, **kwargs):
        raise RuntimeError("provider down")

    gateway.send_multicast = broken
    response = await submit(client)

    assert response.status_code == 201
    stored = await store.read("R1", response.json()["requestId"])
    assert stored.status == "pending"
    assert stored.notification_sent is False


async def test_submit_validation_error_shape(client, residency):
    response = await client.post("/visitor/submit", json={"residencyId": "R1"})
    assert response.status_code == 422
    assert response.json()["error_code"] == "VALIDATION_ERROR"


async def test_submit_to_unknown_flat(client, residency):
    response = await submit(client, flatId="nope")
    assert response.status_code == 404
    assert response.json() == {
        "message": "Flat not found in this residency",
        "error_code": "FLAT_NOT_FOUND",
    }


async def test_visitor_status_page(client, make_request):
    request = await make_request()
    response = await client.get(f"/visitor/status/R1/{request.id}")
    assert response.status_code == 200
    body = response.json()
    assert body["visitorName"] == "John"
    assert body["status"] == "pending"
    assert body["blockName"] == "Block A"
    assert body["flatNumber"] == "101"
    assert "approvalToken" not in body


async def test_action_link_redirects(client, store, make_request):
    request = await make_request()
    response = await client.get(
        "/action",
        params={
            "action": "approve",
            "residencyId": "R1",
            "requestId": request.id,
            "approvalToken": request.approval_token,
        },
    )
    assert response.status_code == 302
    assert response.headers["location"] == "/"
    assert (await store.read("R1", request.id)).status == "approved"


async def test_action_link_redirects_even_when_refused(client, store, make_request):
    request = await make_request()
    response = await client.get(
        "/action",
        params={"action": "approve", "requestId": request.id, "approvalToken": "bad"},
    )
    assert response.status_code == 302
    assert (await store.read("R1", request.id)).status == "pending"


async def test_action_relay_post(client, make_request):
    request = await make_request()
    payload = {
        "action": "reject",
        "residencyId": "R1",
        "requestId": request.id,
        "approvalToken": request.approval_token,
    }

    first = await client.post("/action", json=payload)
    assert first.status_code == 200
    assert first.json()["status"] == "rejected"
    assert first.json()["alreadyProcessed"] is False

    second = await client.post("/action", json=payload)
    assert second.json()["alreadyProcessed"] is True
    assert second.json()["status"] == "rejected"


async def test_action_relay_accepts_query_parameters(client, make_request):
    request = await make_request()
    response = await client.post(
        "/action",
        params={
            "action": "approve",
            "residencyId": "R1",
            "requestId": request.id,
            "approvalToken": request.approval_token,
        },
    )
    assert response.json()["status"] == "approved"


async def test_action_relay_unknown_request(client, residency):
    response = await client.post(
        "/action",
        json={"action": "approve", "requestId": "missing", "approvalToken": "x"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is False
    assert body["notFound"] is True
    assert body["status"] is None


async def test_action_relay_wrong_token(client, make_request):
    request = await make_request()
    response = await client.post(
        "/action",
        json={"action": "approve", "residencyId": "R1", "requestId": request.id, "approvalToken": "bad"},
    )
    assert response.status_code == 403
    assert response.json()["error_code"] == "INVALID_APPROVAL_TOKEN"


async def test_in_app_action_needs_a_resident(client, login, make_request):
    request = await make_request()

    response = await client.post(
        "/action/in-app", json={"requestId": request.id, "action": "approve"}
    )
    assert response.status_code == 401

    login("guard", "gary")
    response = await client.post(
        "/action/in-app", json={"requestId": request.id, "action": "approve"}
    )
    assert response.status_code == 403
    assert response.json()["error_code"] == "ROLE_NOT_ALLOWED"

    login("resident", "bob")
    response = await client.post(
        "/action/in-app", json={"requestId": request.id, "action": "approve"}
    )
    assert response.status_code == 200
    assert response.json()["status"] == "approved"


async def test_approval_page_flow(client, login, make_request):
    request = await make_request()

    details = await client.get(
        "/visitor-details",
        params={"visitorId": request.id, "token": request.approval_token},
    )
    assert details.status_code == 200
    assert details.json()["flatNumber"] == "101"

    login("resident", "alice")
    decision = await client.post(
        "/visitor-decision",
        json={
            "visitorId": request.id,
            "token": request.approval_token,
            "action": "approve",
            "residentId": "res-alice",
        },
    )
    assert decision.status_code == 200
    assert decision.json()["status"] == "approved"

    details = await client.get(
        "/visitor-details",
        params={"visitorId": request.id, "token": request.approval_token},
    )
    assert details.status_code == 409
    assert details.json()["details"] == {"status": "approved"}


async def test_guard_status_updates(client, login, store, gateway, make_request):
    request = await make_request()
    await store.transition("R1", request.id, VisitorStatus.APPROVED, actor="alice")
    login("guard", "gary")

    response = await client.post(
        "/visitor/update-status", json={"requestId": request.id, "status": "entered"}
    )
    assert response.status_code == 200
    assert response.json()["status"] == "entered"

    response = await client.post(
        "/visitor/update-status", json={"requestId": request.id, "status": "departed"}
    )
    assert response.json()["status"] == "exited"
    assert (await store.read("R1", request.id)).exited_at is not None

    response = await client.post(
        "/visitor/update-status", json={"requestId": request.id, "status": "entered"}
    )
    assert response.status_code == 409
    assert response.json()["error_code"] == "INVALID_STATUS_TRANSITION"


async def test_informational_update_only_notifies(client, login, store, gateway, make_request):
    request = await make_request()
    login("guard", "gary")

    response = await client.post(
        "/visitor/update-status", json={"requestId": request.id, "status": "arrived"}
    )
    assert response.status_code == 200
    assert response.json() == {"success": True, "status": "arrived", "notified": 2}
    assert sorted(gateway.sent_tokens) == ["ADMIN-T", "T1"]
    assert (await store.read("R1", request.id)).status == "pending"


async def test_guard_cannot_decide(client, login, store, make_request):
    request = await make_request()
    login("guard", "gary")

    response = await client.post(
        "/visitor/update-status", json={"requestId": request.id, "status": "approved"}
    )
    assert response.status_code == 403
    assert response.json()["error_code"] == "DECISION_NOT_ALLOWED"
    assert (await store.read("R1", request.id)).status == "pending"


async def test_visitor_lists(client, login, make_request):
    mine = await make_request(flat_id="F1")
    await make_request(flat_id="F2")

    login("resident", "bob")
    response = await client.get("/visitor/list")
    assert [r["id"] for r in response.json()] == [mine.id]

    login("guard", "gary")
    response = await client.get("/visitor/list")
    assert len(response.json()) == 2


async def test_device_registration(client, login, residency):
    login("resident", "alice")

    response = await client.post("/device/register", json={"token": "T2"})
    assert response.status_code == 200
    assert response.json() == {"success": True, "changed": True, "tokenCount": 2}

    response = await client.post("/device/register", json={"token": "T2"})
    assert response.json()["changed"] is False

    response = await client.post("/device/unregister", json={})
    assert response.json() == {"success": True, "changed": True, "tokenCount": 0}


async def test_device_registration_needs_auth(client, residency):
    response = await client.post("/device/register", json={"token": "T2"})
    assert response.status_code == 401
    assert response.json()["error_code"] == "UNAUTHORIZED"


async def test_residency_service_status(client, login, residency):
    response = await client.get("/residency/status", params={"societyName": "Unknown Towers"})
    assert response.json() == {"serviceStatus": "ON"}

    login("admin", "admin")
    response = await client.post(
        "/residency/toggle-service", json={"residencyId": "R1", "status": "OFF"}
    )
    assert response.json() == {"serviceStatus": "OFF"}

    response = await client.get("/residency/status", params={"societyName": "Green Meadows"})
    assert response.json() == {"serviceStatus": "OFF"}

    response = await submit(client)
    assert response.status_code == 503
    assert response.json()["error_code"] == "SERVICE_OFF"


async def test_toggle_other_residency_is_refused(client, login, residency):
    login("admin", "admin", residency_id="R2")
    response = await client.post(
        "/residency/toggle-service", json={"residencyId": "R1", "status": "OFF"}
    )
    assert response.status_code == 403


async def test_list_flats(client, residency):
    response = await client.get("/residency/R1/flats")
    flats = {flat["id"]: flat for flat in response.json()}
    assert flats["F1"]["blockName"] == "Block A"
    assert flats["F2"]["blockName"] is None


async def test_admin_broadcast(client, login, gateway, residency):
    login("admin", "admin")
    response = await client.post(
        "/notification/broadcast", json={"title": "Water outage", "body": "2-4pm"}
    )
    assert response.status_code == 200
    assert response.json()["successCount"] == 3
    assert gateway.calls[0]["message"].data["actionType"] == "ADMIN_BROADCAST"


async def test_send_needs_a_target(client, login, residency):
    login("admin", "admin")
    response = await client.post(
        "/notification/send",
        json={"targetType": "specific_flat", "title": "Hi", "body": "There"},
    )
    assert response.status_code == 422


async def test_visitor_notification_is_idempotent(client, login, gateway, make_request):
    request = await make_request()
    login("guard", "gary")

    first = await client.post("/notification/visitor", json={"requestId": request.id})
    second = await client.post("/notification/visitor", json={"requestId": request.id})

    assert first.json()["successCount"] == 2
    assert second.json()["skippedReason"] == "already_sent"
    assert len(gateway.calls) == 1


async def test_onesignal_not_configured(client, login, make_request):
    request = await make_request()
    login("guard", "gary")
    response = await client.post(
        "/notification/onesignal/visitor",
        json={"residentUsername": "alice", "requestId": request.id},
    )
    assert response.status_code == 503


async def test_request_inspection(client, login, make_request):
    request = await make_request()

    login("admin", "admin")
    response = await client.get("/test", params={"requestId": request.id})
    assert response.status_code == 200
    body = response.json()
    assert body["residencyId"] == "R1"
    assert body["request"]["id"] == request.id
    assert body["block"] == {"id": "B1", "name": "Block A"}
    assert body["testResults"]["status"] == "pending"
    assert body["testResults"]["hasApprovalData"] is False

    login("admin", "admin", residency_id="R2")
    response = await client.get("/test", params={"requestId": request.id})
    assert response.status_code == 404


async def test_who_am_i(client, login, residency):
    login("resident", "bob")
    response = await client.get("/user/me")
    assert response.json() == {"residencyId": "R1", "role": "resident", "username": "bob"}

    profile = await client.get("/user/me/resident")
    assert profile.json()["block"] == "A"
    assert profile.json()["flat"] == "101"

    login("guard", "gary")
    response = await client.get("/user/me/resident")
    assert response.status_code == 403
