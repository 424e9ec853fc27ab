"""
Tests for dashboard metrics.
"""
from datetime import timedelta

from fastapi import status

from contract_analysis.database import utcnow
from contract_analysis.models import AnalysisStatus


def test_empty_metrics(client, make_user, auth_headers):
    user = make_user()

    response = client.get("/api/metrics", headers=auth_headers(user))

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {
        "totalDocuments": 0,
        "totalAnalyses": 0,
        "completedAnalyses": 0,
        "avgRiskScore": 0,
        "recentDocuments": 0,
        "successRate": 0.0,
        "riskDistribution": {"low": 0, "medium": 0, "high": 0},
    }


def test_metrics_aggregate(client, make_user, make_document, make_analysis, auth_headers):
    user = make_user()
    org = user.default_org
    old = utcnow() - timedelta(days=30)

    make_analysis(make_document(org, user), risk_score=20)
    make_analysis(make_document(org, user), risk_score=50)
    make_analysis(make_document(org, user, created_at=old), risk_score=90)
    make_analysis(make_document(org, user), status=AnalysisStatus.ERROR)

    response = client.get("/api/metrics", headers=auth_headers(user))

    data = response.json()
    assert data["totalDocuments"] == 4
    assert data["recentDocuments"] == 3
    assert data["totalAnalyses"] == 4
    assert data["completedAnalyses"] == 3
    assert data["avgRiskScore"] == 53
    assert data["successRate"] == 75.0
    assert data["riskDistribution"] == {"low": 1, "medium": 1, "high": 1}


def test_metrics_scoped_to_membership(client, make_user, make_document, make_analysis, auth_headers):
    user = make_user()
    other = make_user()
    make_analysis(make_document(other.default_org, other), risk_score=80)

    response = client.get("/api/metrics", headers=auth_headers(user))

    assert response.json()["totalDocuments"] == 0
    assert response.json()["totalAnalyses"] == 0


def test_metrics_failure(client, make_user, auth_headers, monkeypatch):
    from contract_analysis.services.metrics_service import MetricsService

    def broken(self, user):
        raise RuntimeError("database went away")

    monkeypatch.setattr(MetricsService, "get_metrics", broken)
    user = make_user()

    response = client.get("/api/metrics", headers=auth_headers(user))

    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.json()["error"] == "metrics_failed"


def test_metrics_requires_auth(client):
    assert client.get("/api/metrics").status_code == status.HTTP_401_UNAUTHORIZED
