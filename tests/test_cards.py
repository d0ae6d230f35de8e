"""
Tests for the card holder endpoints (/cards).

These tests verify:
  - GET /cards/my lists only the caller's cards, masked
  - Card responses never contain the full number or ciphertext
  - PATCH /cards/request-block works for the owner and is 403 for others
  - GET /cards/{id}/balance is owner-only
"""

import uuid
from decimal import Decimal


async def _issue(admin_client, owner_id) -> dict:
    response = await admin_client.post("/admin/cards", json={"owner_id": str(owner_id)})
    assert response.status_code == 201, response.text
    return response.json()


class TestMyCards:
    """Tests for GET /cards/my."""

    async def test_lists_own_cards(self, user_client, other_user_client, admin_client):
        await _issue(admin_client, user_client.user_id)
        await _issue(admin_client, user_client.user_id)
        await _issue(admin_client, other_user_client.user_id)

        response = await user_client.get("/cards/my")
        assert response.status_code == 200
        cards = response.json()
        assert len(cards) == 2
        assert all(card["owner_id"] == str(user_client.user_id) for card in cards)

    async def test_pagination(self, user_client, admin_client):
        for _ in range(3):
            await _issue(admin_client, user_client.user_id)

        response = await user_client.get("/cards/my", params={"limit": 2, "offset": 0})
        assert len(response.json()) == 2
        response = await user_client.get("/cards/my", params={"limit": 2, "offset": 2})
        assert len(response.json()) == 1

    async def test_no_sensitive_fields(self, user_client, admin_client):
        """Card responses must NOT contain the number, ciphertext or index."""
        await _issue(admin_client, user_client.user_id)
        card = (await user_client.get("/cards/my")).json()[0]

        assert "card_number" not in card
        assert "card_number_encrypted" not in card
        assert "card_number_index" not in card
        assert card["masked_number"].startswith("**** **** **** ")
        assert card["status"] == "ACTIVE"
        assert Decimal(card["balance"]) == Decimal("0.00")

    async def test_empty(self, user_client):
        response = await user_client.get("/cards/my")
        assert response.status_code == 200
        assert response.json() == []


class TestRequestBlock:
    """Tests for PATCH /cards/request-block."""

    async def test_owner_requests_block(self, user_client, admin_client):
        card = await _issue(admin_client, user_client.user_id)

        response = await user_client.patch("/cards/request-block", json={"card_id": card["id"]})
        assert response.status_code == 200
        assert response.json()["status"] == "BLOCK_REQUESTED"

    async def test_non_owner_forbidden(self, user_client, other_user_client, admin_client):
        card = await _issue(admin_client, user_client.user_id)

        response = await other_user_client.patch(
            "/cards/request-block", json={"card_id": card["id"]}
        )
        assert response.status_code == 403
        data = response.json()
        assert data["error_type"] == "card_ownership_violation"
        assert data["security_violation"] is True

        # Status unchanged
        mine = (await user_client.get("/cards/my")).json()[0]
        assert mine["status"] == "ACTIVE"

    async def test_blocked_card_conflict(self, user_client, admin_client):
        card = await _issue(admin_client, user_client.user_id)
        await admin_client.patch(f"/admin/cards/{card['id']}/confirm-block")

        response = await user_client.patch("/cards/request-block", json={"card_id": card["id"]})
        assert response.status_code == 409
        assert response.json()["error_type"] == "card_already_in_state"

    async def test_missing_card(self, user_client):
        response = await user_client.patch(
            "/cards/request-block", json={"card_id": str(uuid.uuid4())}
        )
        assert response.status_code == 404


class TestBalance:
    """Tests for GET /cards/{id}/balance."""

    async def test_owner_balance(self, user_client, admin_client, set_balance):
        card = await _issue(admin_client, user_client.user_id)
        await set_balance(uuid.UUID(card["id"]), "19.99")

        response = await user_client.get(f"/cards/{card['id']}/balance")
        assert response.status_code == 200
        assert response.json()["balance"] == "19.99"

    async def test_other_user_forbidden(self, user_client, other_user_client, admin_client):
        card = await _issue(admin_client, user_client.user_id)

        response = await other_user_client.get(f"/cards/{card['id']}/balance")
        assert response.status_code == 403

    async def test_invalid_uuid(self, user_client):
        response = await user_client.get("/cards/not-a-uuid/balance")
        assert response.status_code == 422
