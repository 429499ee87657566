import uuid

from sqlalchemy import select

from stockledger.core.security import hash_password
from stockledger.models.location import Location
from stockledger.models.user import User


def register(client, *, email: str, full_name: str = "Store User"):
    return client.post(
        "/auth/register",
        json={
            "email": email,
            "full_name": full_name,
            "password": "password123",
        },
    )


def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def register_admin_and_staff(client) -> tuple[dict[str, str], dict[str, str]]:
    admin_res = register(client, email="admin@example.com", full_name="Ada Admin")
    assert admin_res.status_code == 200, admin_res.text
    staff_res = register(client, email="staff@example.com", full_name="Sam Staff")
    assert staff_res.status_code == 200, staff_res.text
    return (
        auth_headers(admin_res.json()["access_token"]),
        auth_headers(staff_res.json()["access_token"]),
    )


def create_location(session_local, *, name: str, code: str) -> str:
    db = session_local()
    try:
        location = Location(id=str(uuid.uuid4()), name=name, code=code, is_active=True)
        db.add(location)
        db.commit()
        return location.id
    finally:
        db.close()


def create_user(session_local, *, email: str, role: str = "staff") -> str:
    db = session_local()
    try:
        user = User(
            email=email,
            username=email.split("@")[0],
            full_name=email.split("@")[0].title(),
            hashed_password=hash_password("password123"),
            role=role,
        )
        db.add(user)
        db.commit()
        return user.id
    finally:
        db.close()


def user_id_by_email(session_local, email: str) -> str:
    db = session_local()
    try:
        return db.execute(select(User.id).where(User.email == email)).scalar_one()
    finally:
        db.close()


def create_item(client, headers, *, sku: str = "DOCK-01", quantity: float = 10, reorder_level: float = 5, **extra):
    res = client.post(
        "/inventory/items",
        json={
            "name": extra.pop("name", "USB-C Dock"),
            "sku": sku,
            "quantity": quantity,
            "reorder_level": reorder_level,
            **extra,
        },
        headers=headers,
    )
    assert res.status_code == 200, res.text
    return res.json()
