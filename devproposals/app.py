# app.py
"""
FastAPI surface for the DevProposals AI pipeline
------------------------------------------------
Endpoints:
- POST /projects: register a project (title, budget, duration, requirements document).
- POST /analyze_proposal: AI field extraction for one document reference.
- POST /proposals: create a proposal, enriched best-effort by AI analysis.
- POST /projects/{project_id}/summary: narrative comparison of a project's proposals.
- GET  /projects/{project_id}/summary: last generated comparison.
- GET  /supported_formats, GET /health

Run backend:
    uvicorn devproposals.app:app --reload --port 8000

Set the OpenRouter key in the environment (or .env):
    export OPENROUTER_API_KEY="sk-or-v1-..."

Document references sent by clients must name files inside UPLOADS_DIR, or
URLs on a host listed in ALLOWED_DOCUMENT_HOSTS. Anything else is a 400.
"""
import logging
import os
import uuid
from typing import Optional

import uvicorn
from fastapi import FastAPI, Form, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from .analysis import ComparisonAggregator, ProposalAnalyzer, require_proposals
from .config import Settings, configure_logging
from .errors import DevProposalsError, NoProposalsError, UntrustedReferenceError
from .models import ComparisonSummary, Project, Proposal
from .repository import InMemoryProposalRepository, ProposalRepository
from .text_extractor import SUPPORTED_FORMATS, check_reference

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    repository: Optional[ProposalRepository] = None,
    analyzer: Optional[ProposalAnalyzer] = None,
    aggregator: Optional[ComparisonAggregator] = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)
    repository = repository if repository is not None else InMemoryProposalRepository()
    analyzer = analyzer or ProposalAnalyzer(settings)
    aggregator = aggregator or ComparisonAggregator(settings)

    app = FastAPI(title="DevProposals AI Backend API", version="1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.settings = settings
    app.state.repository = repository

    def trusted_reference(ref: str) -> str:
        try:
            return check_reference(ref, settings)
        except UntrustedReferenceError as e:
            logger.warning("Rejected document reference %r: %s", ref, e)
            raise HTTPException(status_code=400, detail=str(e))

    @app.get("/health")
    def health():
        return {"status": "ok", "model": settings.model, "api_key_configured": bool(settings.api_key)}

    @app.get("/supported_formats")
    def supported_formats():
        return {"formats": SUPPORTED_FORMATS}

    @app.post("/projects", status_code=201)
    def create_project(
        title: str = Form(None),
        description: str = Form(""),
        budget: Optional[float] = Form(None),
        duration: Optional[float] = Form(None),
        document_file: Optional[str] = Form(None),
    ):
        if not title or not title.strip():
            raise HTTPException(status_code=400, detail="Title is required")
        if document_file:
            trusted_reference(document_file)

        project = Project(
            id=uuid.uuid4().hex,
            title=title.strip(),
            description=description or "",
            budget=budget or None,
            duration=duration or None,
            document_file=document_file or None,
        )
        saved = repository.save_project(project)
        return {"message": "Project created successfully", "project": saved.to_dict()}

    @app.post("/analyze_proposal")
    def analyze_proposal(proposal_file: str = Form(None)):
        """
        Extract cost, timeline, features and evaluation hints from one proposal document.
        AI failures degrade to an empty analysis instead of an error.
        """
        if not proposal_file:
            raise HTTPException(status_code=400, detail="proposal_file is required")
        trusted_reference(proposal_file)
        return analyzer.analyze_proposal(proposal_file).to_dict()

    @app.post("/proposals", status_code=201)
    def create_proposal(project_id: str = Form(None), proposal_file: str = Form(None)):
        if not project_id or not proposal_file:
            raise HTTPException(status_code=400, detail="project_id and proposal_file are required")
        if repository.find_project_by_id(project_id) is None:
            raise HTTPException(status_code=404, detail="Project not found")
        trusted_reference(proposal_file)

        result = analyzer.analyze_proposal(proposal_file)
        proposal = Proposal.from_analysis(uuid.uuid4().hex, project_id, proposal_file, result)
        saved = repository.save_proposal(proposal)
        return {"message": "Proposal created and analyzed successfully", "proposal": saved.to_dict()}

    @app.post("/projects/{project_id}/summary")
    def generate_summary(project_id: str):
        project = repository.find_project_by_id(project_id)
        if project is None:
            raise HTTPException(status_code=404, detail="Project not found")

        try:
            proposals = require_proposals(repository.find_proposals_by_project(project_id))
        except NoProposalsError as e:
            raise HTTPException(status_code=400, detail=str(e))

        try:
            content = aggregator.generate_comparison_summary(project, proposals)
        except DevProposalsError:
            logger.exception("Summary generation failed for project %s", project_id)
            raise HTTPException(
                status_code=500, detail="Failed to generate comparison summary. Please try again."
            )

        summary = repository.save_summary(
            ComparisonSummary(
                project_id=project_id,
                project_title=project.title,
                total_proposals=len(proposals),
                summary_content=content,
            )
        )
        return {"message": "Comparison summary generated successfully", "summary": summary.to_dict()}

    @app.get("/projects/{project_id}/summary")
    def get_summary(project_id: str):
        summary = repository.find_summary(project_id)
        if summary is None:
            raise HTTPException(status_code=404, detail="Project summary not found")
        return {"summary": summary.to_dict()}

    return app


app = create_app()


def main() -> None:
    uvicorn.run(
        "devproposals.app:app",
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
    )


if __name__ == "__main__":
    main()
