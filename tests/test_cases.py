"""
Tests for the case workspace API: CRUD, module navigation, readiness and phase.
"""
import pytest

from civilla.models.models import CaseClaim, ClaimStatus, TimelineEvent


# ============================================================================
# HEALTH
# ============================================================================

class TestHealth:

    @pytest.mark.asyncio
    async def test_health_check(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "Civilla"
        assert "X-Request-Id" in response.headers

    @pytest.mark.asyncio
    async def test_readiness_check(self, client):
        response = await client.get("/health/ready")
        assert response.json() == {"status": "ready", "database": "ok"}

    @pytest.mark.asyncio
    async def test_request_id_is_echoed(self, client):
        response = await client.get("/health", headers={"X-Request-Id": "req-123"})
        assert response.headers["X-Request-Id"] == "req-123"


# ============================================================================
# CASE CRUD
# ============================================================================

class TestCaseCrud:

    @pytest.mark.asyncio
    async def test_requires_identity(self, client):
        response = await client.get("/api/cases")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_create_and_get(self, authenticated_client):
        response = await authenticated_client.post("/api/cases", json={
            "title": "  Smith custody  ",
            "state": "MN",
            "starting_point": "served_papers",
            "has_children": True,
        })
        assert response.status_code == 201
        created = response.json()
        assert created["title"] == "Smith custody"
        assert created["starting_point"] == "served_papers"
        assert created["has_children"] is True
        assert created["created_at"].endswith("Z")

        fetched = await authenticated_client.get(f"/api/cases/{created['id']}")
        assert fetched.status_code == 200
        assert fetched.json()["id"] == created["id"]

        listing = await authenticated_client.get("/api/cases")
        assert [c["id"] for c in listing.json()] == [created["id"]]

    @pytest.mark.asyncio
    async def test_create_rejects_unknown_starting_point(self, authenticated_client):
        response = await authenticated_client.post("/api/cases", json={
            "title": "Case", "starting_point": "somewhere",
        })
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_update_only_sent_fields(self, authenticated_client, make_case):
        case_id = await make_case(title="Original", starting_point="served_papers", has_children=True)

        response = await authenticated_client.patch(f"/api/cases/{case_id}", json={
            "starting_point": "modifying_enforcing",
        })
        assert response.status_code == 200
        data = response.json()
        assert data["title"] == "Original"
        assert data["starting_point"] == "modifying_enforcing"
        assert data["has_children"] is True

    @pytest.mark.asyncio
    async def test_other_users_case_is_not_found(self, authenticated_client, make_case, other_user_id):
        case_id = await make_case(user_id=other_user_id)

        response = await authenticated_client.get(f"/api/cases/{case_id}")
        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "case_not_found"

        response = await authenticated_client.patch(f"/api/cases/{case_id}", json={"title": "Mine now"})
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_missing_case(self, authenticated_client):
        response = await authenticated_client.get("/api/cases/does-not-exist/modules")
        assert response.status_code == 404


# ============================================================================
# MODULE NAVIGATION
# ============================================================================

class TestCaseModules:

    @pytest.mark.asyncio
    async def test_modules_follow_starting_point(self, authenticated_client, make_case):
        case_id = await make_case(starting_point="starting_case", has_children=False)

        response = await authenticated_client.get(f"/api/cases/{case_id}/modules")
        assert response.status_code == 200
        data = response.json()
        keys = [m["key"] for m in data["modules"]]
        assert keys[:3] == ["library", "documents", "evidence"]
        assert "children" not in keys
        assert "parenting-plan" not in keys
        assert data["modules"][0]["href"] == f"/app/library/{case_id}"

    @pytest.mark.asyncio
    async def test_unset_starting_point_uses_base_order(self, authenticated_client, make_case):
        case_id = await make_case(has_children=True)
        response = await authenticated_client.get(f"/api/cases/{case_id}/modules")
        keys = [m["key"] for m in response.json()["modules"]]
        assert keys[0] == "evidence"
        assert len(keys) == 15

    @pytest.mark.asyncio
    async def test_neighbors(self, authenticated_client, make_case):
        case_id = await make_case(starting_point="modifying_enforcing", has_children=True)

        response = await authenticated_client.get(f"/api/cases/{case_id}/modules/communications/neighbors")
        assert response.status_code == 200
        data = response.json()
        assert data["current"] == "communications"
        assert data["prev"]["key"] == "timeline"
        assert data["next"]["key"] == "evidence"

    @pytest.mark.asyncio
    async def test_neighbors_at_edges(self, authenticated_client, make_case):
        case_id = await make_case(starting_point="modifying_enforcing", has_children=True)
        response = await authenticated_client.get(f"/api/cases/{case_id}/modules/timeline/neighbors")
        assert response.json()["prev"] is None

        response = await authenticated_client.get(f"/api/cases/{case_id}/modules/trial-prep/neighbors")
        assert response.json()["next"] is None

    @pytest.mark.asyncio
    async def test_neighbors_for_hidden_or_unknown_module(self, authenticated_client, make_case):
        case_id = await make_case(has_children=False)

        for key in ["children", "nonsense"]:
            response = await authenticated_client.get(f"/api/cases/{case_id}/modules/{key}/neighbors")
            assert response.status_code == 200
            data = response.json()
            assert data["prev"] is None
            assert data["next"] is None


# ============================================================================
# READINESS & PHASE
# ============================================================================

class TestReadinessAndPhase:

    @pytest.mark.asyncio
    async def test_empty_case(self, authenticated_client, make_case):
        case_id = await make_case()

        readiness = (await authenticated_client.get(f"/api/cases/{case_id}/readiness")).json()
        assert readiness["percent"] == 85
        assert readiness["label"] == "Well Prepared"

        phase = (await authenticated_client.get(f"/api/cases/{case_id}/phase")).json()
        assert phase["phase"] == "collecting"
        assert phase["can_draft"] is False

    @pytest.mark.asyncio
    async def test_reviewing_case(self, authenticated_client, make_case, add_rows, test_user_id):
        case_id = await make_case()
        owned = {"case_id": case_id, "user_id": test_user_id}
        await add_rows(
            CaseClaim(claim_text="Missed visits", status=ClaimStatus.suggested.value, **owned),
            CaseClaim(claim_text="Late support", status=ClaimStatus.suggested.value, **owned),
        )

        phase = (await authenticated_client.get(f"/api/cases/{case_id}/phase")).json()
        assert phase["phase"] == "reviewing"
        assert phase["total_claims"] == 2
        assert phase["accepted_claims"] == 0

    @pytest.mark.asyncio
    async def test_draft_ready_case(self, authenticated_client, make_case, add_rows, test_user_id):
        case_id = await make_case()
        owned = {"case_id": case_id, "user_id": test_user_id}
        await add_rows(
            CaseClaim(claim_text="Missed visits", status=ClaimStatus.accepted.value, citation_count=1, **owned),
            *[TimelineEvent(title=f"Event {i}", **owned) for i in range(10)],
        )

        readiness = (await authenticated_client.get(f"/api/cases/{case_id}/readiness")).json()
        assert readiness["percent"] == 100

        phase = (await authenticated_client.get(f"/api/cases/{case_id}/phase")).json()
        assert phase["phase"] == "draft-ready"
        assert phase["can_draft"] is True
        assert phase["readiness_percent"] == 100
