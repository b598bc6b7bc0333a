from fastapi.testclient import TestClient


def register(client: TestClient, name: str, email: str, password: str = "secret1") -> dict:
    response = client.post(
        "/api/auth/register",
        json={"name": name, "email": email, "password": password}
    )
    assert response.status_code == 201, response.text
    return response.json()


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
