import os
import sys

import requests

base_url = os.getenv("STOCKBOOK_BASE_URL", "http://localhost:8000").rstrip("/")
identifier = os.getenv("STOCKBOOK_IDENTIFIER")
password = os.getenv("STOCKBOOK_PASSWORD")

if not identifier or not password:
    raise RuntimeError("STOCKBOOK_IDENTIFIER and STOCKBOOK_PASSWORD are required")


def main() -> int:
    login_response = requests.post(
        f"{base_url}/auth/login",
        json={"identifier": identifier, "password": password},
        timeout=15,
    )
    login_response.raise_for_status()
    headers = {"Authorization": f"Bearer {login_response.json()['access_token']}"}

    summary_response = requests.get(f"{base_url}/dashboard/summary", headers=headers, timeout=15)
    summary_response.raise_for_status()

    low_stock_response = requests.get(
        f"{base_url}/inventory/low-stock",
        headers=headers,
        params={"limit": 5, "offset": 0},
        timeout=15,
    )
    low_stock_response.raise_for_status()

    summary = summary_response.json()
    low_stock = low_stock_response.json()
    print(f"Revenue: {summary['sales_total']:.2f}  Profit: {summary['profit']:.2f}  Margin: {summary['margin_pct']}%")
    print(f"Low-stock products: {low_stock['pagination']['total']}")
    return 0


if __name__ == "__main__":
    try:
        raise SystemExit(main())
    except requests.RequestException as exc:
        print(f"Stockbook API probe failed: {exc}", file=sys.stderr)
        raise SystemExit(1)
