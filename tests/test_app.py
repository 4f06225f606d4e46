import json

import pytest
from fastapi.testclient import TestClient

from devproposals.analysis import ComparisonAggregator, ProposalAnalyzer
from devproposals.app import create_app
from devproposals.errors import InferenceError
from devproposals.models import Project, Proposal
from devproposals.repository import InMemoryProposalRepository

ANALYSIS_JSON = json.dumps(
    {
        "totalCost": 5000,
        "timeline": 14,
        "features": ["login", "dashboard"],
        "companyName": "Acme",
        "analysis": {"comparisonScore": 72, "aiQuestions": ["Hosting?"], "aiSuggestions": []},
    }
)


@pytest.fixture
def repository():
    repo = InMemoryProposalRepository()
    repo.save_project(Project(id="p1", title="Customer Portal", budget=25000, duration=60))
    return repo


@pytest.fixture
def client(settings, extractor, stub_client, repository):
    app = create_app(
        settings,
        repository=repository,
        analyzer=ProposalAnalyzer(settings, extractor=extractor, client=stub_client),
        aggregator=ComparisonAggregator(settings, extractor=extractor, client=stub_client),
    )
    return TestClient(app)


class TestMeta:
    def test_health(self, client):
        body = client.get("/health").json()
        assert body["status"] == "ok"
        assert body["api_key_configured"] is True

    def test_supported_formats(self, client):
        assert ".pdf" in client.get("/supported_formats").json()["formats"]


class TestAnalyzeProposal:
    def test_requires_reference(self, client):
        assert client.post("/analyze_proposal", data={}).status_code == 400

    def test_returns_analysis(self, client, stub_client, uploads_dir):
        (uploads_dir / "acme.txt").write_text("Acme proposal")
        stub_client.response = ANALYSIS_JSON
        resp = client.post("/analyze_proposal", data={"proposal_file": "acme.txt"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["totalCost"] == 5000
        assert body["analysis"]["aiQuestions"] == ["Hosting?"]

    def test_failure_still_returns_empty_analysis(self, client, stub_client):
        resp = client.post("/analyze_proposal", data={"proposal_file": "missing.pdf"})
        assert resp.status_code == 200
        assert resp.json()["totalCost"] is None
        assert resp.json()["analysis"]["comparisonScore"] == 0
        assert stub_client.calls == []

    def test_rejects_reference_outside_uploads(self, client, stub_client, tmp_path):
        (tmp_path / "secret.env").write_text("DB_PASSWORD=hunter2")
        resp = client.post("/analyze_proposal", data={"proposal_file": "../secret.env"})
        assert resp.status_code == 400
        assert stub_client.calls == []

    @pytest.mark.parametrize("ref", ["/etc/passwd", "http://169.254.169.254/latest/meta-data"])
    def test_rejects_absolute_paths_and_unlisted_hosts(self, client, stub_client, ref):
        assert client.post("/analyze_proposal", data={"proposal_file": ref}).status_code == 400
        assert stub_client.calls == []


class TestCreateProposal:
    def test_requires_fields(self, client):
        assert client.post("/proposals", data={"project_id": "p1"}).status_code == 400

    def test_created_with_analysis(self, client, stub_client, uploads_dir, repository):
        (uploads_dir / "acme.txt").write_text("Acme proposal")
        stub_client.response = ANALYSIS_JSON
        resp = client.post("/proposals", data={"project_id": "p1", "proposal_file": "acme.txt"})

        assert resp.status_code == 201
        proposal = resp.json()["proposal"]
        assert proposal["companyName"] == "Acme"
        assert proposal["status"] == "pending"
        assert proposal["proposalFile"] == "acme.txt"
        assert [p.id for p in repository.find_proposals_by_project("p1")] == [proposal["id"]]

    def test_created_even_when_analysis_fails(self, client, stub_client, uploads_dir):
        (uploads_dir / "acme.txt").write_text("Acme proposal")
        stub_client.error = InferenceError("upstream down")
        resp = client.post("/proposals", data={"project_id": "p1", "proposal_file": "acme.txt"})
        assert resp.status_code == 201
        assert resp.json()["proposal"]["totalCost"] is None

    def test_unknown_project(self, client, stub_client, uploads_dir):
        (uploads_dir / "acme.txt").write_text("Acme proposal")
        resp = client.post("/proposals", data={"project_id": "nope", "proposal_file": "acme.txt"})
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Project not found"
        assert stub_client.calls == []

    def test_rejects_reference_outside_uploads(self, client, stub_client, repository, tmp_path):
        (tmp_path / "secret.env").write_text("DB_PASSWORD=hunter2")
        resp = client.post("/proposals", data={"project_id": "p1", "proposal_file": "../secret.env"})
        assert resp.status_code == 400
        assert stub_client.calls == []
        assert repository.find_proposals_by_project("p1") == []


class TestCreateProject:
    def test_requires_title(self, client):
        assert client.post("/projects", data={"title": "  "}).status_code == 400

    def test_rejects_document_outside_uploads(self, client):
        resp = client.post("/projects", data={"title": "Portal", "document_file": "../../etc/hosts"})
        assert resp.status_code == 400

    def test_created_project_can_be_compared(self, client, stub_client, uploads_dir):
        (uploads_dir / "sow.txt").write_text("Must support SSO")
        (uploads_dir / "acme.txt").write_text("Acme proposal")
        resp = client.post(
            "/projects",
            data={"title": " Intranet ", "budget": "40000", "duration": "90", "document_file": "sow.txt"},
        )
        assert resp.status_code == 201
        project = resp.json()["project"]
        assert project["title"] == "Intranet"
        assert project["budget"] == 40000
        assert project["status"] == "active"

        stub_client.response = ANALYSIS_JSON
        created = client.post("/proposals", data={"project_id": project["id"], "proposal_file": "acme.txt"})
        assert created.status_code == 201

        stub_client.response = "## Recommendation\nAcme."
        summary = client.post(f"/projects/{project['id']}/summary")
        assert summary.status_code == 200
        assert summary.json()["summary"]["totalProposals"] == 1
        assert "Must support SSO" in stub_client.calls[-1]["prompt"]


class TestSummary:
    def test_unknown_project(self, client):
        resp = client.post("/projects/nope/summary")
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Project not found"

    def test_no_proposals(self, client, stub_client):
        resp = client.post("/projects/p1/summary")
        assert resp.status_code == 400
        assert resp.json()["detail"] == "No proposals found for this project"
        assert stub_client.calls == []

    def test_inference_failure(self, client, stub_client, repository):
        repository.save_proposal(Proposal(id="1", project_id="p1", company_name="Acme"))
        stub_client.error = InferenceError("upstream 502")
        resp = client.post("/projects/p1/summary")
        assert resp.status_code == 500
        assert resp.json()["detail"] == "Failed to generate comparison summary. Please try again."
        assert client.get("/projects/p1/summary").status_code == 404

    def test_generate_and_fetch(self, client, stub_client, repository):
        repository.save_proposal(Proposal(id="1", project_id="p1", company_name="Acme"))
        repository.save_proposal(Proposal(id="2", project_id="p1", company_name="Beta"))
        stub_client.response = "## Recommendation\nAcme."

        resp = client.post("/projects/p1/summary")
        assert resp.status_code == 200
        summary = resp.json()["summary"]
        assert summary["projectTitle"] == "Customer Portal"
        assert summary["totalProposals"] == 2
        assert summary["summaryContent"] == "## Recommendation\nAcme."

        fetched = client.get("/projects/p1/summary").json()["summary"]
        assert fetched["summaryContent"] == "## Recommendation\nAcme."

    def test_missing_summary(self, client):
        assert client.get("/projects/p1/summary").status_code == 404
