import logging
import os
import tempfile
from dataclasses import dataclass, field
from typing import Optional, Tuple

from dotenv import load_dotenv

DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_MODEL = "anthropic/claude-sonnet-4"
DEFAULT_REFERRER = "http://localhost:3000"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"


@dataclass(frozen=True)
class PromptBudget:
    """Character ceilings applied while building the comparison prompt."""

    project_chars: int = 50000
    proposal_chars: int = 30000
    prompt_chars: int = 200000


@dataclass(frozen=True)
class Settings:
    api_key: str = ""
    base_url: str = DEFAULT_BASE_URL
    model: str = DEFAULT_MODEL
    referrer: str = DEFAULT_REFERRER
    uploads_dir: str = "uploads"
    temp_dir: Optional[str] = None
    fetch_timeout: float = 10.0
    llm_timeout: float = 300.0
    llm_max_retries: int = 0
    extraction_workers: int = 1
    allowed_document_hosts: Tuple[str, ...] = ()
    budget: PromptBudget = field(default_factory=PromptBudget)
    log_level: str = "INFO"

    @property
    def staging_dir(self) -> str:
        return self.temp_dir or tempfile.gettempdir()

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "Settings":
        """
        Build settings from the process environment (and a .env file when present).
        OpenRouter variables win over the generic OpenAI ones.
        """
        if dotenv:
            load_dotenv()

        api_key = os.getenv("OPENROUTER_API_KEY") or os.getenv("OPENAI_API_KEY") or ""
        base_url = os.getenv("OPENROUTER_BASE_URL", os.getenv("OPENAI_BASE_URL", DEFAULT_BASE_URL))
        if not api_key:
            logging.warning("OPENROUTER_API_KEY is not set. AI analysis will be skipped until it is configured.")

        budget = PromptBudget(
            project_chars=int(os.getenv("PROJECT_DOC_MAX_CHARS", "50000")),
            proposal_chars=int(os.getenv("PROPOSAL_DOC_MAX_CHARS", "30000")),
            prompt_chars=int(os.getenv("PROMPT_MAX_CHARS", "200000")),
        )
        return cls(
            api_key=api_key,
            base_url=base_url.rstrip("/"),
            model=os.getenv("OPENROUTER_MODEL", DEFAULT_MODEL),
            referrer=os.getenv("FRONTEND_URL", DEFAULT_REFERRER),
            uploads_dir=os.getenv("UPLOADS_DIR", os.path.join(os.getcwd(), "uploads")),
            temp_dir=os.getenv("TEMP_DIR") or None,
            fetch_timeout=float(os.getenv("DOCUMENT_FETCH_TIMEOUT", "10")),
            llm_timeout=float(os.getenv("LLM_TIMEOUT", "300")),
            llm_max_retries=int(os.getenv("LLM_MAX_RETRIES", "0")),
            extraction_workers=max(1, int(os.getenv("EXTRACTION_WORKERS", "1"))),
            allowed_document_hosts=tuple(
                h.strip().lower() for h in os.getenv("ALLOWED_DOCUMENT_HOSTS", "").split(",") if h.strip()
            ),
            budget=budget,
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


def configure_logging(level: str = "INFO") -> None:
    # leave host-configured logging alone
    if not logging.getLogger().handlers:
        logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)
    for noisy in ("httpx", "urllib3", "openai"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
