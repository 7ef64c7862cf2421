from models.audit_log import AuditLog
from services.errors import GatewayUnavailable


def _checkout(client, headers, payload):
    resp = client.post("/bookings/checkout", json=payload, headers=headers)
    assert resp.status_code == 200, resp.get_json()
    return resp.get_json()


def test_endpoints_require_bearer_token(client, booking_payload):
    assert client.post("/bookings/checkout", json=booking_payload).status_code == 401
    assert client.post("/bookings/resume", json={"bookingId": "x"}).status_code == 401
    assert client.post("/bookings/verify", json={"bookingId": "x"}).status_code == 401
    resp = client.get("/bookings/me", headers={"Authorization": "Bearer not-a-token"})
    assert resp.status_code == 401
    assert resp.get_json() == {"error": "Authentication required"}


def test_checkout_returns_url_and_booking_id(client, auth_headers, booking_payload, gateway):
    body = _checkout(client, auth_headers, booking_payload)

    assert body["url"] == "https://checkout.stripe.test/cs_test_1"
    assert body["bookingId"]
    assert gateway.created[0]["customer_email"] == "patient@example.com"
    assert AuditLog.query.filter_by(action="BOOKING_CREATE", entity_id=body["bookingId"]).count() == 1

    booking = client.get(f"/bookings/{body['bookingId']}", headers=auth_headers).get_json()
    assert booking["status"] == "pending"
    assert booking["payment_status"] == "pending"
    assert booking["fee"] == 800


def test_checkout_accepts_numeric_doctor_id(client, auth_headers, booking_payload):
    booking_payload["doctorId"] = 12
    body = _checkout(client, auth_headers, booking_payload)

    booking = client.get(f"/bookings/{body['bookingId']}", headers=auth_headers).get_json()
    assert booking["doctor_id"] == "12"


def test_checkout_rejects_missing_fee(client, auth_headers, booking_payload):
    del booking_payload["fee"]

    resp = client.post("/bookings/checkout", json=booking_payload, headers=auth_headers)

    assert resp.status_code == 400
    assert resp.get_json() == {"error": "fee must be a positive integer", "retryable": False}


def test_checkout_gateway_outage_is_retryable_and_names_booking(client, auth_headers,
                                                                 booking_payload, gateway):
    gateway.fail_create = GatewayUnavailable()

    resp = client.post("/bookings/checkout", json=booking_payload, headers=auth_headers)

    body = resp.get_json()
    assert resp.status_code == 503
    assert body["retryable"] is True
    assert body["bookingId"]

    gateway.fail_create = None
    resumed = client.post("/bookings/resume", json={"bookingId": body["bookingId"]},
                          headers=auth_headers)
    assert resumed.status_code == 200
    assert resumed.get_json()["url"].endswith("cs_test_1")


def test_redirects_use_allowed_origin_only(client, auth_headers, booking_payload, gateway):
    headers = dict(auth_headers, Origin="https://app.mediconnect.test")
    _checkout(client, headers, booking_payload)
    headers = dict(auth_headers, Origin="https://evil.example")
    _checkout(client, headers, booking_payload)

    assert gateway.created[0]["success_url"].startswith("https://app.mediconnect.test/booking-success")
    assert gateway.created[1]["success_url"].startswith("http://localhost:3000/booking-success")


def test_verify_flow_confirms_and_notifies_once(client, auth_headers, booking_payload,
                                                gateway, notifier):
    booking_id = _checkout(client, auth_headers, booking_payload)["bookingId"]

    pending = client.post("/bookings/verify", json={"bookingId": booking_id}, headers=auth_headers)
    assert pending.get_json() == {"success": False, "message": "Payment not completed"}

    gateway.mark_paid("cs_test_1")
    first = client.post("/bookings/verify", json={"bookingId": booking_id}, headers=auth_headers)
    second = client.post("/bookings/verify", json={"bookingId": booking_id}, headers=auth_headers)

    assert first.status_code == second.status_code == 200
    assert first.get_json() == second.get_json()
    booking = first.get_json()["booking"]
    assert first.get_json()["success"] is True
    assert booking["status"] == "confirmed"
    assert booking["payment_status"] == "paid"

    assert len(notifier.calls) == 1
    assert notifier.calls[0][1].email == "patient@example.com"
    assert AuditLog.query.filter_by(action="BOOKING_PAID").count() == 1


def test_resume_paid_booking_reports_already_paid(client, auth_headers, booking_payload, gateway):
    booking_id = _checkout(client, auth_headers, booking_payload)["bookingId"]
    gateway.mark_paid("cs_test_1")
    client.post("/bookings/verify", json={"bookingId": booking_id}, headers=auth_headers)

    resp = client.post("/bookings/resume", json={"bookingId": booking_id}, headers=auth_headers)

    assert resp.status_code == 200
    assert resp.get_json() == {"alreadyPaid": True, "bookingId": booking_id}
    assert len(gateway.created) == 1


def test_resume_and_verify_require_booking_id(client, auth_headers):
    for path in ("/bookings/resume", "/bookings/verify"):
        resp = client.post(path, json={}, headers=auth_headers)
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Booking ID is required"


def test_foreign_booking_is_reported_as_not_found(client, auth_headers, other_auth_headers,
                                                  booking_payload, gateway):
    booking_id = _checkout(client, auth_headers, booking_payload)["bookingId"]
    gateway.mark_paid("cs_test_1")

    foreign = client.post("/bookings/verify", json={"bookingId": booking_id},
                          headers=other_auth_headers)
    missing = client.post("/bookings/verify", json={"bookingId": "no-such-booking"},
                          headers=other_auth_headers)

    assert foreign.status_code == missing.status_code == 404
    assert foreign.get_json() == missing.get_json()
    assert client.get(f"/bookings/{booking_id}", headers=other_auth_headers).status_code == 404
    assert gateway.retrieved == []


def test_booking_history_lists_only_own_bookings(client, auth_headers, other_auth_headers,
                                                 booking_payload, gateway):
    mine = _checkout(client, auth_headers, booking_payload)["bookingId"]
    _checkout(client, other_auth_headers, booking_payload)

    rows = client.get("/bookings/me", headers=auth_headers).get_json()
    assert [r["id"] for r in rows] == [mine]

    assert client.get("/bookings/me?status=confirmed", headers=auth_headers).get_json() == []
    assert client.get("/bookings/me?status=bogus", headers=auth_headers).status_code == 400


def test_cors_headers_for_allowed_origin(client):
    resp = client.get("/health", headers={"Origin": "http://localhost:3000"})

    assert resp.status_code == 200
    assert resp.headers["Access-Control-Allow-Origin"] == "http://localhost:3000"
    assert "Access-Control-Allow-Origin" not in client.get(
        "/health", headers={"Origin": "https://evil.example"}).headers
