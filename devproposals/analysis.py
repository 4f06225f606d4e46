import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence

from .config import Settings
from .errors import ExtractionError, NoProposalsError
from .inference import (
    COMPARISON_MAX_TOKENS,
    COMPARISON_TEMPERATURE,
    COMPARISON_TITLE,
    EXTRACTION_MAX_TOKENS,
    EXTRACTION_TEMPERATURE,
    EXTRACTION_TITLE,
    OpenRouterClient,
)
from .models import Project, Proposal, ProposalAnalysis
from .prompt_builder import build_comparison_prompt, build_extraction_prompt
from .response_parser import JsonObjectLocator, parse_proposal_analysis
from .text_extractor import TextExtractor

logger = logging.getLogger(__name__)


class ProposalAnalyzer:
    """Single-document pipeline: extract -> prompt -> complete -> parse."""

    def __init__(
        self,
        settings: Settings,
        extractor: Optional[TextExtractor] = None,
        client: Optional[OpenRouterClient] = None,
        locator: Optional[JsonObjectLocator] = None,
    ):
        self.settings = settings
        self.extractor = extractor or TextExtractor(settings)
        self.client = client or OpenRouterClient(settings)
        self.locator = locator

    def analyze_with_ai(self, text: str) -> ProposalAnalysis:
        """Raises InferenceError or MalformedResponseError."""
        completion = self.client.complete(
            build_extraction_prompt(text),
            model=self.settings.model,
            temperature=EXTRACTION_TEMPERATURE,
            max_tokens=EXTRACTION_MAX_TOKENS,
            title=EXTRACTION_TITLE,
        )
        return parse_proposal_analysis(completion, self.locator)

    def analyze_proposal(self, document_reference: str) -> ProposalAnalysis:
        """
        Best-effort enrichment for a new proposal.

        Never raises for pipeline failures: any extraction, inference or parsing
        error yields ProposalAnalysis.empty() and a log record flagged
        analysis_degraded=True.
        """
        logger.info("Analyzing proposal file: %s", document_reference)
        try:
            text = self.extractor.extract(document_reference)
            return self.analyze_with_ai(text)
        except Exception as e:
            logger.warning(
                "AI analysis failed for %s, using empty analysis (analysis_degraded=true): %s",
                document_reference,
                e,
                exc_info=True,
                extra={"analysis_degraded": True, "error_type": type(e).__name__},
            )
            return ProposalAnalysis.empty()


class ComparisonAggregator:
    """Builds the multi-proposal comparison prompt and asks the model for a narrative."""

    def __init__(
        self,
        settings: Settings,
        extractor: Optional[TextExtractor] = None,
        client: Optional[OpenRouterClient] = None,
    ):
        self.settings = settings
        self.extractor = extractor or TextExtractor(settings)
        self.client = client or OpenRouterClient(settings)

    def read_project_content(self, project: Project) -> str:
        if not project.document_file:
            return ""
        try:
            content = self.extractor.extract(project.document_file)
        except ExtractionError as e:
            logger.warning("Could not read project document %s: %s", project.document_file, e)
            return ""
        logger.info("Project document content extracted, length: %d", len(content))
        return content

    def read_proposal_content(self, proposal: Proposal) -> Optional[str]:
        if not proposal.proposal_file:
            return None
        try:
            content = self.extractor.extract(proposal.proposal_file)
        except ExtractionError as e:
            logger.warning("Could not read proposal file for %s: %s", proposal.label, e)
            return None
        logger.info("Proposal content extracted for %s, length: %d", proposal.label, len(content))
        return content

    def read_proposal_contents(self, proposals: Sequence[Proposal]) -> List[Optional[str]]:
        workers = self.settings.extraction_workers
        if workers <= 1 or len(proposals) <= 1:
            return [self.read_proposal_content(p) for p in proposals]
        with ThreadPoolExecutor(max_workers=min(workers, len(proposals))) as pool:
            return list(pool.map(self.read_proposal_content, proposals))

    def build_prompt(self, project: Project, proposals: Sequence[Proposal]) -> str:
        """
        Extract every document and render the comparison prompt.
        Precondition: proposals is not empty (checked by the caller).
        """
        project_content = self.read_project_content(project)
        contents = self.read_proposal_contents(proposals)
        return build_comparison_prompt(project, proposals, project_content, contents, self.settings.budget)

    def generate_comparison_summary(self, project: Project, proposals: Sequence[Proposal]) -> str:
        """Narrative comparison, returned verbatim. Inference errors propagate."""
        logger.info("Generating comparison summary for %d proposals", len(proposals))
        prompt = self.build_prompt(project, proposals)
        logger.info("Comparison prompt size: %d characters", len(prompt))
        summary = self.client.complete(
            prompt,
            model=self.settings.model,
            temperature=COMPARISON_TEMPERATURE,
            max_tokens=COMPARISON_MAX_TOKENS,
            title=COMPARISON_TITLE,
        )
        logger.info("Comparison summary generated for project %s", project.id)
        return summary


def require_proposals(proposals: Sequence[Proposal]) -> Sequence[Proposal]:
    """Caller-side precondition for generate_comparison_summary."""
    if not proposals:
        raise NoProposalsError("No proposals found for this project")
    return proposals
