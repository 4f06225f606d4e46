"""
Completion text -> ProposalAnalysis.

The model is not trusted to follow the schema: every field is coerced and
anything absent or malformed falls back to a safe default.
"""
import json
import math
import re
from typing import Any, List, Optional

from .errors import MalformedResponseError
from .models import AnalysisDetails, Number, ProposalAnalysis


class JsonObjectLocator:
    """Finds the JSON object text inside a completion."""

    def locate(self, text: str) -> Optional[str]:
        raise NotImplementedError


class GreedyBraceLocator(JsonObjectLocator):
    """First "{" through last "}"."""

    pattern = re.compile(r"\{[\s\S]*\}")

    def locate(self, text: str) -> Optional[str]:
        m = self.pattern.search(text or "")
        return m.group(0) if m else None


class StrictJsonLocator(JsonObjectLocator):
    """For JSON-mode providers: the whole completion is the object."""

    def locate(self, text: str) -> Optional[str]:
        s = (text or "").strip()
        return s if s.startswith("{") and s.endswith("}") else None


DEFAULT_LOCATOR = GreedyBraceLocator()


# ---------- Small utilities ----------
def safe_numeric(val: Any) -> Optional[Number]:
    """Numeric value of val, accepting strings like '$5,000' or '14 days'. None otherwise."""
    if val is None or isinstance(val, bool):
        return None
    if isinstance(val, (int, float)):
        return val if math.isfinite(val) else None
    if not isinstance(val, str):
        return None
    m = re.search(r"-?[0-9]+(?:\.[0-9]+)?", val.replace(",", ""))
    if not m:
        return None
    num = float(m.group(0))
    return int(num) if num.is_integer() else num


def _positive_or_none(val: Any) -> Optional[Number]:
    # a zero cost or timeline means "not stated"
    num = safe_numeric(val)
    return num if num and num > 0 else None


def _string_list(val: Any) -> List[str]:
    if not isinstance(val, list):
        return []
    items = []
    for item in val:
        if item is None or isinstance(item, (dict, list)):
            continue
        s = str(item).strip()
        if s:
            items.append(s)
    return items


def _optional_string(val: Any) -> Optional[str]:
    if isinstance(val, str) and val.strip():
        return val.strip()
    return None


def _score(val: Any) -> Number:
    num = safe_numeric(val)
    if not num:
        return 0
    return min(max(num, 0), 100)


def normalize_proposal_analysis(data: Any) -> ProposalAnalysis:
    """Map any parsed JSON value onto a valid ProposalAnalysis."""
    if not isinstance(data, dict):
        return ProposalAnalysis.empty()
    details = data.get("analysis")
    if not isinstance(details, dict):
        details = {}
    return ProposalAnalysis(
        total_cost=_positive_or_none(data.get("totalCost")),
        timeline=_positive_or_none(data.get("timeline")),
        features=_string_list(data.get("features")),
        company_name=_optional_string(data.get("companyName")),
        company_logo=_optional_string(data.get("companyLogo")),
        analysis=AnalysisDetails(
            comparison_score=_score(details.get("comparisonScore")),
            ai_questions=_string_list(details.get("aiQuestions")),
            ai_suggestions=_string_list(details.get("aiSuggestions")),
        ),
    )


def parse_proposal_analysis(completion: str, locator: Optional[JsonObjectLocator] = None) -> ProposalAnalysis:
    """
    Locate, parse and normalize the JSON object in a completion.
    Raises MalformedResponseError when no object can be located or parsed.
    """
    locator = locator or DEFAULT_LOCATOR
    candidate = locator.locate(completion)
    if candidate is None:
        raise MalformedResponseError(f"No JSON found in model output. Output preview: {(completion or '')[:500]}")
    try:
        parsed = json.loads(candidate)
    except ValueError as e:
        raise MalformedResponseError(f"Failed to parse JSON from model output: {e}") from e
    if not isinstance(parsed, dict):
        raise MalformedResponseError("Model output JSON is not an object")
    return normalize_proposal_analysis(parsed)
