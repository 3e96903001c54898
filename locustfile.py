from locust import HttpUser, task, between
import random

class ApiUser(HttpUser):
    wait_time = between(0.1, 0.5)

    def on_start(self):
        # Log in (registering on first contact) as a simulated client
        phone = str(random.randint(6_000_000_000, 9_999_999_999))
        payload = {"user_phone": phone, "user_password": "locust-pass"}
        self.client.post("/api/users/login-or-create", json=payload)
        r = self.client.post("/api/users/login-or-create", json=payload)
        if r.status_code == 200:
            self.token = r.json()["data"].get("token")
        else:
            self.token = None

    @task(3)
    def create_expense(self):
        qty = random.randint(1, 50)
        self.client.post(
            "/api/expense",
            json={
                "customer": f"customer_{random.randint(1, 100)}",
                "product": "Cement",
                "packagingType": "50 KG Bag",
                "packagingQty": qty,
                "itemsPerPack": random.randint(1, 10),
                "fare": round(random.random() * 1000, 2),
            },
        )

    @task(2)
    def list_expenses(self):
        self.client.get("/api/expense", params={"page": random.randint(1, 3), "limit": 10})

    @task(1)
    def list_users(self):
        self.client.get("/api/users", params={"searchTerm": "customer"})

    @task(1)
    def refresh_token(self):
        if not getattr(self, "token", None):
            return
        self.client.get("/api/generic/refresh", headers={"Authorization": f"Bearer {self.token}"})
