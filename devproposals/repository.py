"""
Persistence seam. The production store lives outside this package; the
in-memory implementation backs local runs and tests.
"""
import threading
from typing import Dict, List, Optional

from .models import ComparisonSummary, Project, Proposal


class ProposalRepository:
    def save_project(self, project: Project) -> Project:
        raise NotImplementedError

    def find_project_by_id(self, project_id: str) -> Optional[Project]:
        raise NotImplementedError

    def find_proposals_by_project(self, project_id: str) -> List[Proposal]:
        """Newest first."""
        raise NotImplementedError

    def save_proposal(self, proposal: Proposal) -> Proposal:
        raise NotImplementedError

    def save_summary(self, summary: ComparisonSummary) -> ComparisonSummary:
        raise NotImplementedError

    def find_summary(self, project_id: str) -> Optional[ComparisonSummary]:
        raise NotImplementedError


class InMemoryProposalRepository(ProposalRepository):
    def __init__(self):
        self._lock = threading.Lock()
        self._projects: Dict[str, Project] = {}
        self._proposals: Dict[str, Proposal] = {}
        self._summaries: Dict[str, ComparisonSummary] = {}

    def save_project(self, project: Project) -> Project:
        with self._lock:
            self._projects[project.id] = project
        return project

    def find_project_by_id(self, project_id: str) -> Optional[Project]:
        return self._projects.get(project_id)

    def find_proposals_by_project(self, project_id: str) -> List[Proposal]:
        with self._lock:
            found = [p for p in self._proposals.values() if p.project_id == project_id]
        return sorted(found, key=lambda p: p.created_at, reverse=True)

    def save_proposal(self, proposal: Proposal) -> Proposal:
        with self._lock:
            self._proposals[proposal.id] = proposal
        return proposal

    def save_summary(self, summary: ComparisonSummary) -> ComparisonSummary:
        # one summary per project, latest wins
        with self._lock:
            self._summaries[summary.project_id] = summary
        return summary

    def find_summary(self, project_id: str) -> Optional[ComparisonSummary]:
        return self._summaries.get(project_id)
