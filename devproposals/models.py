from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Union

Number = Union[int, float]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class AnalysisDetails:
    comparison_score: Number = 0
    ai_questions: List[str] = field(default_factory=list)
    ai_suggestions: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "comparisonScore": self.comparison_score,
            "aiQuestions": list(self.ai_questions),
            "aiSuggestions": list(self.ai_suggestions),
        }


@dataclass
class ProposalAnalysis:
    """Fields extracted from a single proposal document."""

    total_cost: Optional[Number] = None
    timeline: Optional[Number] = None
    features: List[str] = field(default_factory=list)
    company_name: Optional[str] = None
    company_logo: Optional[str] = None
    analysis: AnalysisDetails = field(default_factory=AnalysisDetails)

    @classmethod
    def empty(cls) -> "ProposalAnalysis":
        """All-defaults analysis used when AI enrichment fails."""
        return cls()

    def to_dict(self) -> dict:
        return {
            "totalCost": self.total_cost,
            "timeline": self.timeline,
            "features": list(self.features),
            "companyName": self.company_name,
            "companyLogo": self.company_logo,
            "analysis": self.analysis.to_dict(),
        }


@dataclass
class Project:
    id: str
    title: str
    description: str = ""
    budget: Optional[Number] = None
    duration: Optional[Number] = None
    status: str = "active"
    document_file: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "budget": self.budget,
            "duration": self.duration,
            "documentFile": self.document_file,
            "status": self.status,
            "createdAt": self.created_at.isoformat(),
        }


@dataclass
class Proposal:
    id: str
    project_id: str
    proposal_file: Optional[str] = None
    total_cost: Optional[Number] = None
    timeline: Optional[Number] = None
    features: List[str] = field(default_factory=list)
    company_name: Optional[str] = None
    company_logo: Optional[str] = None
    status: str = "pending"
    analysis: AnalysisDetails = field(default_factory=AnalysisDetails)
    created_at: datetime = field(default_factory=utcnow)

    @property
    def label(self) -> str:
        return self.company_name or f"Proposal {self.id}"

    @classmethod
    def from_analysis(cls, id: str, project_id: str, proposal_file: str,
                      result: ProposalAnalysis) -> "Proposal":
        return cls(
            id=id,
            project_id=project_id,
            proposal_file=proposal_file,
            total_cost=result.total_cost,
            timeline=result.timeline,
            features=list(result.features),
            company_name=result.company_name,
            company_logo=result.company_logo,
            analysis=result.analysis,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "projectId": self.project_id,
            "totalCost": self.total_cost,
            "timeline": self.timeline,
            "features": list(self.features),
            "companyName": self.company_name,
            "companyLogo": self.company_logo,
            "proposalFile": self.proposal_file,
            "status": self.status,
            "analysis": self.analysis.to_dict(),
            "createdAt": self.created_at.isoformat(),
        }


@dataclass
class ComparisonSummary:
    project_id: str
    project_title: str
    total_proposals: int
    summary_content: str
    generated_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        return {
            "projectId": self.project_id,
            "projectTitle": self.project_title,
            "totalProposals": self.total_proposals,
            "summaryContent": self.summary_content,
            "generatedAt": self.generated_at.isoformat(),
        }
