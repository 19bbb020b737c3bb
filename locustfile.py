import uuid

from locust import HttpUser, between, task

BOOKING_PAYLOAD = {
    "paymentMethod": "wallet-redirect",
    "currency": "AED",
    "passengers": [
        {
            "prefix": "Mr.",
            "firstName": "Load",
            "lastName": "Test",
            "email": "load.test@example.com",
            "mobile": "+971500000000",
            "nationality": "AE",
            "paxType": "Adult",
            "leadPassenger": True,
        }
    ],
    "tourDetails": [
        {
            "tourId": 101,
            "optionId": 1,
            "tourDate": "2026-12-01",
            "adult": 1,
            "adultRate": "250.00",
        }
    ],
}


class APIUser(HttpUser):
    # Wait between 1 and 3 seconds between tasks
    wait_time = between(1, 3)

    def on_start(self):
        """Each simulated user books under its own identity at its own quoted gross."""
        self.headers = {
            "X-User-Id": f"load-{uuid.uuid4().hex[:8]}",
            "Content-Type": "application/json",
        }
        quote = self.client.post(
            "/api/v1/pricing/quote",
            json={"basePrice": "250.00", "productId": 101},
            headers=self.headers,
        )
        self.total_gross = quote.json()["gross"] if quote.ok else "250.00"

    @task(3)
    def create_booking_with_payment(self):
        """
        Creates a booking and opens its payment session.

        A fresh reference per request so every call is a new booking.
        """
        payload = {
            **BOOKING_PAYLOAD,
            "reference": f"LOAD-{uuid.uuid4().hex[:10].upper()}",
            "totalGross": self.total_gross,
        }
        self.client.post(
            "/api/v1/bookings/create-with-payment",
            json=payload,
            headers=self.headers,
            name="/api/v1/bookings/create-with-payment",
        )

    @task(1)
    def quote_price(self):
        self.client.post(
            "/api/v1/pricing/quote",
            json={"basePrice": "100.00", "productId": 101},
            headers=self.headers,
            name="/api/v1/pricing/quote",
        )
