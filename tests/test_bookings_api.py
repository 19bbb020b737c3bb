"""
Tests HTTP de la API de reservas (FastAPI TestClient, modo in-memory).

Verifican el contrato de transporte: camelCase, códigos de estado y el
cuerpo de error {"detail": {"code", "message"}}.
"""

from decimal import Decimal


def create_booking(client, payload, headers):
    return client.post("/api/v1/bookings/create-with-payment", json=payload, headers=headers)


def send_webhook(client, event_type, intent_id, booking_id):
    return client.post(
        "/api/v1/bookings/payment-webhook",
        json={
            "id": f"evt_{intent_id}",
            "type": event_type,
            "data": {
                "object": {
                    "id": intent_id,
                    "status": "completed",
                    "metadata": {"bookingId": str(booking_id)},
                }
            },
        },
    )


class TestCreateBookingEndpoint:
    def test_create_returns_camel_case(self, client, booking_payload, auth_headers):
        response = create_booking(client, booking_payload, auth_headers)

        assert response.status_code == 201
        body = response.json()
        assert body["paymentIntentId"].startswith("pi_stub_")
        assert body["paymentRedirectUrl"].endswith(f"bookingId={body['booking']['id']}")
        assert body["booking"]["paymentStatus"] == "PENDING"
        assert body["booking"]["pipelineState"] == "PAYMENT_OPENED"
        assert Decimal(body["booking"]["totalGross"]) == Decimal("250.00")

    def test_missing_user_header(self, client, booking_payload):
        response = create_booking(client, booking_payload, {})

        assert response.status_code == 401

    def test_price_mismatch(self, client, booking_payload, auth_headers):
        booking_payload["totalGross"] = "199.00"

        response = create_booking(client, booking_payload, auth_headers)

        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "PRICE_MISMATCH"

    def test_unknown_field_rejected(self, client, booking_payload, auth_headers):
        booking_payload["discountCode"] = "FREE"

        response = create_booking(client, booking_payload, auth_headers)

        assert response.status_code == 422

    def test_two_lead_passengers_rejected(self, client, booking_payload, auth_headers):
        second = dict(booking_payload["passengers"][0], firstName="Omar")
        booking_payload["passengers"].append(second)

        response = create_booking(client, booking_payload, auth_headers)

        assert response.status_code == 422

    def test_paid_reference_conflict(self, client, booking_payload, auth_headers):
        created = create_booking(client, booking_payload, auth_headers).json()
        send_webhook(
            client, "payment_intent.succeeded", created["paymentIntentId"], created["booking"]["id"]
        )

        response = create_booking(client, booking_payload, auth_headers)

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "ALREADY_COMPLETED"


class TestPaymentEndpoints:
    def test_webhook_confirms_booking(self, client, booking_payload, auth_headers):
        created = create_booking(client, booking_payload, auth_headers).json()
        booking_id = created["booking"]["id"]

        ack = send_webhook(client, "payment_intent.succeeded", created["paymentIntentId"], booking_id)
        detail = client.get(f"/api/v1/bookings/{booking_id}", headers=auth_headers)

        assert ack.status_code == 200
        assert ack.json()["handled"] is True
        assert ack.json()["paymentStatus"] == "PAID"
        booking = detail.json()["booking"]
        assert booking["status"] == "CONFIRMED"
        assert booking["supplierStatus"] == "CONFIRMED"
        assert booking["supplierBookingId"] == f"SUP-{booking_id:06d}"
        assert detail.json()["passengers"][0]["leadPassenger"] is True

    def test_webhook_for_unknown_intent(self, client):
        response = send_webhook(client, "payment_intent.succeeded", "pi_missing", 1)

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "PAYMENT_NOT_FOUND"

    def test_confirm_payment_not_verified(self, client, booking_payload, auth_headers):
        created = create_booking(client, booking_payload, auth_headers).json()

        response = client.post(
            "/api/v1/bookings/confirm-payment",
            json={"bookingId": created["booking"]["id"], "paymentIntentId": created["paymentIntentId"]},
            headers=auth_headers,
        )

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "PAYMENT_NOT_VERIFIED"

    def test_verify_payment_while_pending(self, client, booking_payload, auth_headers):
        created = create_booking(client, booking_payload, auth_headers).json()

        response = client.get(
            f"/api/v1/bookings/verify-payment/{created['booking']['id']}", headers=auth_headers
        )

        assert response.status_code == 200
        assert response.json()["gatewayState"] == "PENDING"
        assert response.json()["transaction"]["status"] == "PENDING"

    def test_webhook_for_replaced_session_is_acknowledged(self, client, booking_payload, auth_headers):
        first = create_booking(client, booking_payload, auth_headers).json()
        second = create_booking(client, booking_payload, auth_headers).json()
        booking_id = first["booking"]["id"]

        ack = send_webhook(client, "payment_intent.succeeded", first["paymentIntentId"], booking_id)
        redelivered = send_webhook(
            client, "payment_intent.succeeded", first["paymentIntentId"], booking_id
        )
        detail = client.get(f"/api/v1/bookings/{booking_id}", headers=auth_headers)

        assert ack.status_code == 200
        assert ack.json()["handled"] is False
        assert redelivered.status_code == 200
        assert redelivered.json()["duplicate"] is True
        assert detail.json()["booking"]["paymentStatus"] == "PENDING"
        assert detail.json()["booking"]["paymentIntentId"] == second["paymentIntentId"]

    def test_operator_confirms_bank_transfer(
        self, client, booking_payload, auth_headers, staff_headers
    ):
        booking_payload["paymentMethod"] = "bank-transfer"
        created = create_booking(client, booking_payload, auth_headers).json()
        url = f"/api/v1/bookings/confirm-offline-payment/{created['booking']['id']}"

        response = client.post(url, json={"gatewayReference": "BT-778"}, headers=staff_headers)

        assert response.status_code == 200
        assert response.json()["applied"] is True
        assert response.json()["booking"]["status"] == "CONFIRMED"
        assert response.json()["booking"]["paymentStatus"] == "PAID"

    def test_offline_confirmation_needs_staff(self, client, booking_payload, auth_headers):
        booking_payload["paymentMethod"] = "card"
        created = create_booking(client, booking_payload, auth_headers).json()

        response = client.post(
            f"/api/v1/bookings/confirm-offline-payment/{created['booking']['id']}",
            json={},
            headers=auth_headers,
        )

        assert response.status_code == 403

    def test_offline_confirmation_of_wallet_payment(
        self, client, booking_payload, auth_headers, staff_headers
    ):
        created = create_booking(client, booking_payload, auth_headers).json()

        response = client.post(
            f"/api/v1/bookings/confirm-offline-payment/{created['booking']['id']}",
            json={},
            headers=staff_headers,
        )

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "MANUAL_CONFIRMATION_NOT_ALLOWED"


class TestTransactionEndpoints:
    def test_list_and_detail(self, client, booking_payload, auth_headers):
        first = create_booking(client, booking_payload, auth_headers).json()
        second = create_booking(client, booking_payload, auth_headers).json()

        listed = client.get("/api/v1/payments/transactions", headers=auth_headers)

        assert listed.status_code == 200
        assert [(t["paymentIntentId"], t["status"]) for t in listed.json()] == [
            (second["paymentIntentId"], "PENDING"),
            (first["paymentIntentId"], "CANCELLED"),
        ]
        transaction_id = listed.json()[0]["id"]
        detail = client.get(
            f"/api/v1/payments/transactions/{transaction_id}", headers=auth_headers
        )
        assert detail.status_code == 200
        assert detail.json()["bookingId"] == second["booking"]["id"]

    def test_other_users_transaction_is_not_found(self, client, booking_payload, auth_headers):
        create_booking(client, booking_payload, auth_headers)
        transaction_id = client.get(
            "/api/v1/payments/transactions", headers=auth_headers
        ).json()[0]["id"]

        other = {"X-User-Id": "user-2"}
        listed = client.get("/api/v1/payments/transactions", headers=other)
        detail = client.get(f"/api/v1/payments/transactions/{transaction_id}", headers=other)

        assert listed.json() == []
        assert detail.status_code == 404
        assert detail.json()["detail"]["code"] == "PAYMENT_TRANSACTION_NOT_FOUND"


class TestBookingEndpoints:
    def test_list_own_bookings(self, client, booking_payload, auth_headers):
        first = create_booking(client, booking_payload, auth_headers).json()
        booking_payload["reference"] = "REF-2"
        second = create_booking(client, booking_payload, auth_headers).json()

        mine = client.get("/api/v1/bookings", headers=auth_headers)
        theirs = client.get("/api/v1/bookings", headers={"X-User-Id": "user-2"})

        assert mine.status_code == 200
        assert [b["reference"] for b in mine.json()] == [
            second["booking"]["reference"],
            first["booking"]["reference"],
        ]
        assert theirs.json() == []

    def test_other_users_booking_is_not_found(self, client, booking_payload, auth_headers):
        created = create_booking(client, booking_payload, auth_headers).json()

        response = client.get(
            f"/api/v1/bookings/{created['booking']['id']}", headers={"X-User-Id": "user-2"}
        )

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "BOOKING_NOT_FOUND"

    def test_cancel_and_cancel_again(self, client, booking_payload, auth_headers):
        created = create_booking(client, booking_payload, auth_headers).json()
        url = f"/api/v1/bookings/cancel/{created['booking']['id']}"

        first = client.post(url, json={"reason": "Change of plans"}, headers=auth_headers)
        second = client.post(url, headers=auth_headers)

        assert first.status_code == 200
        assert first.json()["booking"]["status"] == "CANCELLED"
        assert second.status_code == 409
        assert second.json()["detail"]["code"] == "INVALID_BOOKING_STATUS"

    def test_tickets_before_supplier_confirmation(self, client, booking_payload, auth_headers):
        created = create_booking(client, booking_payload, auth_headers).json()

        response = client.get(
            f"/api/v1/bookings/tickets/{created['booking']['id']}", headers=auth_headers
        )

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "SUPPLIER_NOT_SUBMITTED"

    def test_tickets_after_confirmation(self, client, booking_payload, auth_headers):
        created = create_booking(client, booking_payload, auth_headers).json()
        booking_id = created["booking"]["id"]
        send_webhook(client, "payment_intent.succeeded", created["paymentIntentId"], booking_id)

        response = client.get(f"/api/v1/bookings/tickets/{booking_id}", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["ticketUrl"] == f"https://tickets.invalid/SUP-{booking_id:06d}"


class TestPricingEndpoints:
    def test_create_list_and_quote(self, client, auth_headers, staff_headers):
        created = client.post(
            "/api/v1/markup-rules",
            json={"productId": 101, "percentage": "10"},
            headers=staff_headers,
        )
        listed = client.get("/api/v1/markup-rules", headers=auth_headers)
        quote = client.post(
            "/api/v1/pricing/quote",
            json={"basePrice": "500.00", "productId": 101},
            headers=auth_headers,
        )

        assert created.status_code == 201
        assert created.json()["productId"] == 101
        assert [rule["id"] for rule in listed.json()] == [created.json()["id"]]
        assert quote.status_code == 200
        assert Decimal(quote.json()["markupAmount"]) == Decimal("50.00")
        assert Decimal(quote.json()["gross"]) == Decimal("550.00")
        assert quote.json()["source"] == "product_rule"

    def test_rule_without_scope(self, client, staff_headers):
        response = client.post(
            "/api/v1/markup-rules", json={"percentage": "10"}, headers=staff_headers
        )

        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "INVALID_MARKUP_RULE"

    def test_customers_cannot_manage_rules(self, client, auth_headers, staff_headers):
        created = client.post(
            "/api/v1/markup-rules",
            json={"productId": 101, "percentage": "10"},
            headers=staff_headers,
        ).json()

        create = client.post(
            "/api/v1/markup-rules",
            json={"productId": 101, "percentage": "1"},
            headers=auth_headers,
        )
        update = client.put(
            f"/api/v1/markup-rules/{created['id']}",
            json={"percentage": "1"},
            headers={**auth_headers, "X-User-Role": "CUSTOMER"},
        )
        deactivate = client.delete(
            f"/api/v1/markup-rules/{created['id']}", headers=auth_headers
        )

        assert [create.status_code, update.status_code, deactivate.status_code] == [403, 403, 403]

    def test_account_manager_updates_and_deactivates(self, client, auth_headers):
        manager = {"X-User-Id": "am-1", "X-User-Role": "account_manager"}
        created = client.post(
            "/api/v1/markup-rules",
            json={"productId": 101, "percentage": "10"},
            headers=manager,
        ).json()
        url = f"/api/v1/markup-rules/{created['id']}"

        updated = client.put(url, json={"percentage": "15"}, headers=manager)
        quote_after_update = client.post(
            "/api/v1/pricing/quote",
            json={"basePrice": "100.00", "productId": 101},
            headers=auth_headers,
        )
        deactivated = client.delete(url, headers=manager)
        quote_after_deactivate = client.post(
            "/api/v1/pricing/quote",
            json={"basePrice": "100.00", "productId": 101},
            headers=auth_headers,
        )

        assert updated.status_code == 200
        assert Decimal(updated.json()["percentage"]) == Decimal("15")
        assert Decimal(quote_after_update.json()["markupAmount"]) == Decimal("15.00")
        assert deactivated.status_code == 200
        assert deactivated.json()["isActive"] is False
        assert Decimal(quote_after_deactivate.json()["markupAmount"]) == Decimal("0.00")

    def test_update_unknown_rule(self, client, staff_headers):
        response = client.put(
            "/api/v1/markup-rules/999", json={"percentage": "5"}, headers=staff_headers
        )

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "MARKUP_RULE_NOT_FOUND"


class TestWorkerEndpoints:
    def test_retry_not_ready(self, client, booking_payload, auth_headers):
        created = create_booking(client, booking_payload, auth_headers).json()

        response = client.post(
            f"/api/v1/workers/outbox/submit-supplier/{created['booking']['id']}"
        )

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "OUTBOX_EVENT_NOT_READY"

    def test_retry_unknown_booking(self, client):
        response = client.post("/api/v1/workers/outbox/submit-supplier/999")

        assert response.status_code == 404

    def test_process_due_with_nothing_queued(self, client):
        response = client.post("/api/v1/workers/outbox/submit-supplier?limit=5")

        assert response.status_code == 200
        assert response.json() == []


class TestHealthEndpoints:
    def test_liveness(self, client):
        assert client.get("/health").json()["status"] == "ok"
        assert client.get("/health/live").status_code == 200

    def test_database_in_memory(self, client):
        response = client.get("/health/db")

        assert response.status_code == 200
        assert response.json() == {"status": "in-memory", "component": "database"}

    def test_readiness_reports_stubs(self, client):
        response = client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["checks"] == {
            "payment_gateway": "stub",
            "supplier": "stub",
            "database": "in-memory",
        }
