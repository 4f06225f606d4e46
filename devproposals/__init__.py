"""DevProposals: document-grounded AI extraction and proposal comparison."""

from .analysis import ComparisonAggregator, ProposalAnalyzer
from .config import PromptBudget, Settings
from .models import AnalysisDetails, ComparisonSummary, Project, Proposal, ProposalAnalysis
from .text_extractor import TextExtractor, clean_extracted_text

__all__ = [
    "AnalysisDetails",
    "ComparisonAggregator",
    "ComparisonSummary",
    "Project",
    "PromptBudget",
    "Proposal",
    "ProposalAnalysis",
    "ProposalAnalyzer",
    "Settings",
    "TextExtractor",
    "clean_extracted_text",
]

__version__ = "1.0.0"
