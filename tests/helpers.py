SALE_DAY = "2026-03-02"
PURCHASE_DAY = "2026-03-01"


def register(client, *, email: str, full_name: str = "Owner"):
    return client.post(
        "/auth/register",
        json={
            "email": email,
            "full_name": full_name,
            "password": "password123",
            "business_name": f"{full_name} Shop",
        },
    )


def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def owner_token(client, email: str) -> str:
    res = register(client, email=email)
    assert res.status_code == 200, res.text
    return res.json()["access_token"]


def create_product(
    client,
    token: str,
    *,
    name: str = "Olive Oil 1L",
    selling_price: float = 12.5,
    purchase_price: float = 0,
    quantity: int = 0,
) -> str:
    res = client.post(
        "/products",
        json={
            "name": name,
            "selling_price": selling_price,
            "purchase_price": purchase_price,
            "quantity": quantity,
        },
        headers=auth_headers(token),
    )
    assert res.status_code == 200, res.text
    return res.json()["id"]


def create_supplier(client, token: str, *, name: str = "Fresh Farms Ltd") -> str:
    res = client.post(
        "/suppliers",
        json={"name": name, "product_types": "oils", "purchase_days": "Mon, Thu"},
        headers=auth_headers(token),
    )
    assert res.status_code == 200, res.text
    return res.json()["id"]


def get_product(client, token: str, product_id: str) -> dict:
    res = client.get(f"/products/{product_id}", headers=auth_headers(token))
    assert res.status_code == 200, res.text
    return res.json()


def stock_check(client, token: str, product_id: str) -> dict:
    res = client.get(f"/inventory/stock/{product_id}", headers=auth_headers(token))
    assert res.status_code == 200, res.text
    return res.json()
