import logging
import os
import re
from typing import List, Optional, Sequence

from .config import PromptBudget
from .models import Number, Project, Proposal

logger = logging.getLogger(__name__)

PROMPTS_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "prompts")

CONTENT_TRUNCATION_MARKER = "\n\n[Content truncated due to length...]"
PROMPT_TRUNCATION_MARKER = "\n\n[Prompt truncated due to length limits...]"
CONTENT_NOT_AVAILABLE = "Content not available"

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


# ---------- Prompt Loader ----------
def load_prompt(name: str) -> str:
    """
    Load a prompt template from prompts/<name>.txt.
    Raises FileNotFoundError if missing.
    """
    path = os.path.join(PROMPTS_DIR, f"{name}.txt")
    if not os.path.exists(path):
        raise FileNotFoundError(f"Prompt file not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def render_prompt(name: str, **values: str) -> str:
    """Fill {placeholders} in one pass, so braces inside inserted text are left alone."""
    tmpl = load_prompt(name)
    return _PLACEHOLDER.sub(lambda m: values.get(m.group(1), m.group(0)), tmpl)


# ---------- Small utilities ----------
def format_number(val: Number) -> str:
    if isinstance(val, float) and val.is_integer():
        return str(int(val))
    return str(val)


def truncate(text: str, limit: int, marker: str = CONTENT_TRUNCATION_MARKER) -> str:
    if len(text) > limit:
        return text[:limit] + marker
    return text


# ---------- Prompt builders ----------
def build_extraction_prompt(text: str) -> str:
    return render_prompt("extraction", proposal_text=text)


def _project_info(project: Project) -> str:
    budget = f"${format_number(project.budget)}" if project.budget else "Not specified"
    duration = f"{format_number(project.duration)} days" if project.duration else "Not specified"
    return (
        f"\nProject Title: {project.title}\n"
        f"Project Budget: {budget}\n"
        f"Project Duration: {duration}\n"
        f"Project Status: {project.status}\n"
    )


def _proposal_info(index: int, proposal: Proposal, content: str, limit: int) -> str:
    cost = f"${format_number(proposal.total_cost)}" if proposal.total_cost else "Not specified"
    timeline = f"{format_number(proposal.timeline)} days" if proposal.timeline else "Not specified"
    features = ", ".join(proposal.features) or "None specified"
    return (
        f"\n## Proposal {index} ({proposal.company_name or 'Unknown Company'})\n"
        f"Company: {proposal.company_name or 'Unknown'}\n"
        f"Total Cost: {cost}\n"
        f"Timeline: {timeline}\n"
        f"Features: {features}\n"
        f"Status: {proposal.status}\n"
        f"\n### Proposal Content:\n"
        f"{truncate(content, limit)}\n"
    )


def build_comparison_prompt(
    project: Project,
    proposals: Sequence[Proposal],
    project_content: str = "",
    proposal_contents: Optional[List[Optional[str]]] = None,
    budget: Optional[PromptBudget] = None,
) -> str:
    """
    Render the multi-proposal comparison prompt.

    proposal_contents is positional (one entry per proposal); a missing or empty
    entry renders as "Content not available". Each document is cut to its own
    budget first, then the whole prompt is cut to budget.prompt_chars.
    """
    budget = budget or PromptBudget()
    contents = list(proposal_contents or [])

    project_text = truncate(project_content or "", budget.project_chars)
    sow_content = f"\n## SOW/PRD Document Content:\n{project_text}\n" if project_text else ""

    blocks = []
    for index, proposal in enumerate(proposals):
        content = contents[index] if index < len(contents) else None
        blocks.append(_proposal_info(index + 1, proposal, content or CONTENT_NOT_AVAILABLE, budget.proposal_chars))

    prompt = render_prompt(
        "comparison",
        project_info=_project_info(project),
        sow_content=sow_content,
        proposals_info="\n".join(blocks),
    )

    if len(prompt) > budget.prompt_chars:
        logger.warning("Prompt too long (%d chars), truncating to %d chars", len(prompt), budget.prompt_chars)
        return prompt[: budget.prompt_chars] + PROMPT_TRUNCATION_MARKER
    return prompt

