from datetime import date, timedelta

from sqlmodel import select

from models.models import Payment


def allocate(client, headers, email, amount=0, plan="full_month", **extra):
    payload = {
        "userEmail": email,
        "plan": plan,
        "joiningDate": date.today().isoformat(),
        "paymentAmount": amount,
        **extra,
    }
    return client.post("/api/members", json=payload, headers=headers)


def test_allocate_member_with_advance(client, session, member_user, admin_user, auth_headers):
    response = allocate(client, auth_headers(admin_user.id), member_user.email, amount=1000)
    assert response.status_code == 200
    member = response.json()["member"]
    assert member["amountPaid"] == 1000
    assert member["remainingAmount"] == 1600
    assert member["paymentStatus"] == "pending"
    assert member["paymentType"] == "advance"
    assert member["lastPaymentAmount"] == 1000

    ledger = session.exec(select(Payment)).one()
    assert ledger.payment_method == "admin_allocated"


def test_allocate_twice_is_duplicate(client, member_user, admin_user, auth_headers):
    headers = auth_headers(admin_user.id)
    assert allocate(client, headers, member_user.email, amount=2600).status_code == 200
    response = allocate(client, headers, member_user.email)
    assert response.status_code == 400
    assert response.json()["success"] is False


def test_allocate_unknown_user(client, admin_user, auth_headers):
    response = allocate(client, auth_headers(admin_user.id), "nobody@example.com")
    assert response.status_code == 404


def test_allocate_rejects_non_positive_total(client, member_user, admin_user, auth_headers):
    response = allocate(client, auth_headers(admin_user.id), member_user.email, totalAmountDue=0)
    assert response.status_code == 400


def test_list_members_recomputes_status(client, member_user, admin_user, auth_headers):
    headers = auth_headers(admin_user.id)
    allocate(client, headers, member_user.email, amount=2600)

    response = client.get("/api/members", headers=headers)
    assert response.status_code == 200
    members = response.json()["members"]
    assert len(members) == 1
    assert members[0]["name"] == member_user.name
    assert members[0]["paymentStatus"] == "success"
    assert members[0]["status"] == "active"


def test_admin_edit_is_permissive_but_rejects_negatives(client, member_user, admin_user, auth_headers):
    headers = auth_headers(admin_user.id)
    member_id = allocate(client, headers, member_user.email).json()["member"]["id"]

    response = client.put(f"/api/members/{member_id}", json={"advancePayment": 5000}, headers=headers)
    assert response.status_code == 200
    assert response.json()["member"]["paymentStatus"] == "success"
    assert response.json()["member"]["remainingAmount"] == 0

    assert client.put(f"/api/members/{member_id}", json={"advancePayment": -1}, headers=headers).status_code == 400
    assert client.put(f"/api/members/{member_id}", json={"totalAmountDue": 0}, headers=headers).status_code == 400


def test_admin_edit_expiry_in_the_past_deactivates_access(client, member_user, admin_user, auth_headers):
    headers = auth_headers(admin_user.id)
    member_id = allocate(client, headers, member_user.email, amount=2600).json()["member"]["id"]

    yesterday = (date.today() - timedelta(days=1)).isoformat()
    response = client.put(f"/api/members/{member_id}", json={"expiryDate": yesterday}, headers=headers)
    assert response.json()["member"]["status"] == "inactive"
    assert response.json()["member"]["paymentStatus"] == "due"


def test_deactivate_member(client, member_user, admin_user, auth_headers):
    headers = auth_headers(admin_user.id)
    member_id = allocate(client, headers, member_user.email, amount=2600).json()["member"]["id"]

    response = client.delete(f"/api/members/{member_id}", headers=headers)
    assert response.status_code == 200
    assert response.json()["member"]["isActive"] is False
    assert response.json()["member"]["status"] == "inactive"
    assert len(client.get("/api/members", headers=headers).json()["members"]) == 1


def test_member_routes_require_admin(client, member_user, auth_headers):
    headers = auth_headers(member_user.id)
    assert client.get("/api/members", headers=headers).status_code == 403
    assert client.put("/api/members/1", json={}, headers=headers).status_code == 403


def test_missing_member_is_404(client, admin_user, auth_headers):
    assert client.delete("/api/members/999", headers=auth_headers(admin_user.id)).status_code == 404


def test_wrong_method_is_405(client):
    response = client.delete("/api/payments/plans")
    assert response.status_code == 405
    assert response.json()["success"] is False
