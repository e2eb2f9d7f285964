"""
API endpoint tests through the ASGI app
"""
import pytest
from decimal import Decimal
from unittest.mock import AsyncMock

from redis.exceptions import ConnectionError as RedisConnectionError

from ecredit.core.database import get_redis
from ecredit.core.exceptions import ProvisioningError
from ecredit.modules.loans.models import LoanStatus
from ecredit.modules.profiles.services import ProfileService
from main import app


class TestHealthEndpoints:
    """Tests for health check endpoints"""
    
    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_health_check(self, client):
        response = await client.get("/health")
        
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert "version" in data
    
    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_root_endpoint(self, client):
        response = await client.get("/")
        
        assert response.status_code == 200
        assert "eCredit" in response.json()["message"]


class TestAuthRequired:
    """Tests that verify auth is required"""
    
    @pytest.mark.integration
    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", [
        "/api/v1/profiles/me",
        "/api/v1/loans",
        "/api/v1/payments",
        "/api/v1/activity",
        "/api/v1/admin/stats",
    ])
    async def test_anonymous_is_rejected(self, client, path):
        response = await client.get(path)
        assert response.status_code == 401
    
    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_garbage_token(self, client):
        response = await client.get(
            "/api/v1/loans", headers={"Authorization": "Bearer not-a-jwt"}
        )
        assert response.status_code == 401
    
    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_logout_revokes_token(self, client, auth_headers):
        assert (await client.get("/api/v1/loans", headers=auth_headers)).status_code == 200
        
        response = await client.post("/api/v1/auth/logout", headers=auth_headers)
        assert response.status_code == 200
        
        response = await client.get("/api/v1/loans", headers=auth_headers)
        assert response.status_code == 401
        assert response.json()["detail"] == "Token has been revoked"
    
    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_revocation_store_down_fails_closed(self, client, auth_headers):
        broken = AsyncMock()
        broken.get.side_effect = RedisConnectionError("unreachable")
        
        async def override_get_redis():
            return broken
        
        app.dependency_overrides[get_redis] = override_get_redis
        response = await client.get("/api/v1/loans", headers=auth_headers)
        assert response.status_code == 503
    
    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_session_reports_admin_flag(self, client, auth_headers, admin_headers):
        response = await client.get("/api/v1/auth/session", headers=auth_headers)
        assert response.json()["is_admin"] is False
        
        response = await client.get("/api/v1/auth/session", headers=admin_headers)
        assert response.json()["is_admin"] is True


class TestProfileEndpoints:
    
    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_first_request_provisions_profile(self, client, headers_for):
        headers = headers_for("brand-new", "brand.new@example.com")
        
        response = await client.get("/api/v1/profiles/me", headers=headers)
        assert response.status_code == 200
        data = response.json()
        assert data["id"] == "brand-new"
        assert data["is_admin"] is False
        
        again = await client.get("/api/v1/profiles/me", headers=headers)
        assert again.json()["id"] == "brand-new"
    
    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_provisioning_failure_asks_client_to_retry(self, client, headers_for, monkeypatch):
        async def _unavailable(self, identity, email=None):
            raise ProvisioningError()
        
        monkeypatch.setattr(ProfileService, "ensure_profile", _unavailable)
        response = await client.get("/api/v1/loans", headers=headers_for("brand-new"))
        
        assert response.status_code == 503
        assert response.headers["Retry-After"] == "1"
    
    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_self_grant_is_forbidden(self, client, test_user, auth_headers):
        response = await client.patch(
            f"/api/v1/profiles/{test_user.id}", json={"is_admin": True}, headers=auth_headers
        )
        assert response.status_code == 403
        assert response.json()["detail"] == "Not authorized"
    
    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_other_profile_is_not_found(self, client, other_user, auth_headers):
        response = await client.get(f"/api/v1/profiles/{other_user.id}", headers=auth_headers)
        assert response.status_code == 404
    
    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_constraint_violation_body(self, client, test_user, admin_headers):
        response = await client.patch(
            f"/api/v1/profiles/{test_user.id}", json={"credit_score": 10}, headers=admin_headers
        )
        assert response.status_code == 422
        assert response.json()["detail"]["field"] == "credit_score"


class TestLoanEndpoints:
    
    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_borrower_applies_admin_approves(self, client, auth_headers, admin_headers):
        response = await client.post(
            "/api/v1/loans", json={"amount": "10000.00", "term_months": 12}, headers=auth_headers
        )
        assert response.status_code == 201
        loan = response.json()
        assert loan["status"] == LoanStatus.PENDING.value
        assert Decimal(loan["monthly_payment"]) == Decimal("888.49")
        
        response = await client.post(f"/api/v1/loans/{loan['id']}/approve", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["status"] == "approved"
    
    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_borrower_cannot_approve(self, client, test_loan, auth_headers):
        response = await client.post(f"/api/v1/loans/{test_loan.id}/approve", headers=auth_headers)
        assert response.status_code == 403
    
    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_missing_and_foreign_loans_look_the_same(self, client, test_loan, other_headers):
        foreign = await client.post(f"/api/v1/loans/{test_loan.id}/approve", headers=other_headers)
        missing = await client.post("/api/v1/loans/99999/approve", headers=other_headers)
        
        assert foreign.status_code == missing.status_code == 403
        assert foreign.json() == missing.json()
    
    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_invalid_transition_is_conflict(self, client, test_loan, admin_headers):
        response = await client.post(f"/api/v1/loans/{test_loan.id}/complete", headers=admin_headers)
        assert response.status_code == 409
    
    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_unknown_action(self, client, test_loan, admin_headers):
        response = await client.post(f"/api/v1/loans/{test_loan.id}/cancel", headers=admin_headers)
        assert response.status_code == 422
    
    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_list_filters_by_status(self, client, test_loan, auth_headers):
        response = await client.get("/api/v1/loans?status=pending", headers=auth_headers)
        assert [loan["id"] for loan in response.json()] == [test_loan.id]
        
        response = await client.get("/api/v1/loans?status=active", headers=auth_headers)
        assert response.json() == []


class TestAdminEndpoints:
    
    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_stats_for_admin(self, client, db_session, test_loan, admin_headers):
        await client.post(f"/api/v1/loans/{test_loan.id}/approve", headers=admin_headers)
        await client.post(f"/api/v1/loans/{test_loan.id}/disburse", headers=admin_headers)
        
        response = await client.get("/api/v1/admin/stats", headers=admin_headers)
        assert response.status_code == 200
        stats = response.json()
        assert stats["total_users"] == 2
        assert stats["total_loans"] == 1
        assert stats["pending_loans"] == 0
        # 888.49 * 12 - 10000
        assert Decimal(stats["total_revenue"]).quantize(Decimal("0.01")) == Decimal("661.88")
        assert Decimal(stats["total_loan_amount"]) == Decimal("10000.00")
    
    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_stats_forbidden_for_borrower(self, client, auth_headers):
        response = await client.get("/api/v1/admin/stats", headers=auth_headers)
        assert response.status_code == 403
    
    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_demoted_admin_loses_access_next_request(self, client, db_session, admin_user, admin_headers):
        assert (await client.get("/api/v1/admin/stats", headers=admin_headers)).status_code == 200
        
        admin_user.is_admin = False
        await db_session.commit()
        
        assert (await client.get("/api/v1/admin/stats", headers=admin_headers)).status_code == 403


class TestPaymentEndpoints:
    
    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_admin_records_and_borrower_reads(self, client, test_loan, admin_headers, auth_headers, other_headers):
        response = await client.post(
            "/api/v1/payments",
            json={"loan_id": test_loan.id, "amount": "888.49", "payment_method": "card"},
            headers=admin_headers
        )
        assert response.status_code == 201
        payment_id = response.json()["id"]
        
        mine = await client.get(f"/api/v1/payments?loan_id={test_loan.id}", headers=auth_headers)
        assert [p["id"] for p in mine.json()] == [payment_id]
        
        theirs = await client.get(f"/api/v1/payments/{payment_id}", headers=other_headers)
        assert theirs.status_code == 404
    
    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_borrower_cannot_record_payment(self, client, test_loan, auth_headers):
        response = await client.post(
            "/api/v1/payments", json={"loan_id": test_loan.id, "amount": "10.00"}, headers=auth_headers
        )
        assert response.status_code == 403


class TestLoanScenarios:
    """End-to-end loan walkthroughs"""
    
    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_application_is_private_to_its_owner(self, client, test_user, auth_headers, other_headers):
        response = await client.post(
            "/api/v1/loans", json={"amount": "10000", "term_months": 3}, headers=auth_headers
        )
        loan = response.json()
        assert loan["status"] == "pending"
        assert loan["user_id"] == test_user.id
        
        assert (await client.get(f"/api/v1/loans/{loan['id']}", headers=auth_headers)).status_code == 200
        assert (await client.get(f"/api/v1/loans/{loan['id']}", headers=other_headers)).status_code == 404
        assert (await client.get("/api/v1/loans", headers=other_headers)).json() == []
    
    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_approved_loan_must_be_disbursed_before_completion(self, client, test_loan, admin_headers):
        response = await client.post(f"/api/v1/loans/{test_loan.id}/approve", headers=admin_headers)
        assert response.json()["status"] == "approved"
        
        response = await client.post(f"/api/v1/loans/{test_loan.id}/complete", headers=admin_headers)
        assert response.status_code == 409
    
    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_revoked_admin_cannot_approve(self, client, test_user, test_loan, admin_user, headers_for):
        second_admin = headers_for(test_user.id, test_user.email)
        admin = headers_for(admin_user.id, admin_user.email)
        
        # Promote test_user, then have them revoke the original admin
        await client.patch(f"/api/v1/profiles/{test_user.id}", json={"is_admin": True}, headers=admin)
        response = await client.patch(
            f"/api/v1/profiles/{admin_user.id}", json={"is_admin": False}, headers=second_admin
        )
        assert response.status_code == 200
        
        response = await client.post(f"/api/v1/loans/{test_loan.id}/approve", headers=admin)
        assert response.status_code == 403
