import os
import sys

import requests

base_url = os.getenv("STOCKLEDGER_BASE_URL", "http://localhost:8000").rstrip("/")
identifier = os.getenv("STOCKLEDGER_USER")
password = os.getenv("STOCKLEDGER_PASSWORD")

if not identifier or not password:
    raise RuntimeError("STOCKLEDGER_USER and STOCKLEDGER_PASSWORD are required")


def main() -> int:
    login_response = requests.post(
        f"{base_url}/auth/login",
        json={"identifier": identifier, "password": password},
        timeout=15,
    )
    login_response.raise_for_status()
    headers = {"Authorization": f"Bearer {login_response.json()['access_token']}"}

    me_response = requests.get(f"{base_url}/auth/me", headers=headers, timeout=15)
    me_response.raise_for_status()

    low_stock_response = requests.get(
        f"{base_url}/inventory/low-stock",
        headers=headers,
        params={"limit": 5, "offset": 0},
        timeout=15,
    )
    low_stock_response.raise_for_status()

    pending_response = requests.get(
        f"{base_url}/requisitions",
        headers=headers,
        params={"status": "pending", "limit": 5},
        timeout=15,
    )
    pending_response.raise_for_status()

    me = me_response.json()
    low_stock = low_stock_response.json()
    pending = pending_response.json()
    print(f"Signed in as: {me['email']} ({me['role']})")
    print(f"Low-stock items: {low_stock['pagination']['total']}")
    print(f"Pending requisitions: {pending['pagination']['total']}")
    return 0


if __name__ == "__main__":
    try:
        raise SystemExit(main())
    except requests.RequestException as exc:
        print(f"Stock ledger probe failed: {exc}", file=sys.stderr)
        raise SystemExit(1)
