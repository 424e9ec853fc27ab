"""
AI provider adapter for contract risk analysis.

The adapter never raises. A call produces either a ProviderReply or a
ProviderError; a reply is parsed into either a ParsedAnalysis or a ParseError.
Errors of either kind resolve to the deterministic fallback analysis so the
pipeline always has a result to persist.
"""
import logging
from dataclasses import dataclass, field
from typing import Annotated, Any, List, Optional, Union

from openai import OpenAI
from pydantic import BaseModel, ConfigDict, Field, StrictStr, StringConstraints, ValidationError

from contract_analysis.config import settings
from contract_analysis.models.analysis import (
    FINDING_FIELD_MAX_LENGTH,
    MAX_FINDINGS,
    FindingSeverity,
    FindingType,
    clamp_risk_score,
)
from contract_analysis.utils.json_cleaner import clean_llm_json_response

logger = logging.getLogger(__name__)

MAX_TEXT_CHARS = 10_000
TEMPERATURE = 0.2

SYSTEM_PROMPT = "You are a legal AI assistant. Respond only with valid JSON."

ANALYSIS_PROMPT = """You are a legal AI assistant analyzing contracts for SMEs. Analyze the following contract and provide a JSON response with:
- riskScore: number (0-100, where 100 is highest risk)
- summary: string (brief German summary of key points)
- findings: array of objects with:
  - type: one of "RISK", "COMPLIANCE", "LEGAL", "FINANCIAL", "OPERATIONAL"
  - severity: one of "LOW", "MEDIUM", "HIGH", "CRITICAL"
  - title: string (short German title)
  - description: string (detailed German description)
  - suggestion: string (German recommendation)

Contract name: {document_name}
Category: {category}
Content: {text}

Respond only with valid JSON."""


# ========== Payload schema ==========

# Bounded to the width of the Finding columns
BoundedStr = Annotated[StrictStr, StringConstraints(max_length=FINDING_FIELD_MAX_LENGTH)]


class FindingData(BaseModel):
    """One finding as produced by the provider (or the fallback)."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    type: FindingType
    severity: FindingSeverity
    title: BoundedStr
    description: StrictStr
    location: Optional[BoundedStr] = None
    suggestion: Optional[StrictStr] = None


class ProviderPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    # strict: numbers only, booleans rejected
    risk_score: Annotated[float, Field(alias="riskScore", strict=True, allow_inf_nan=False)]
    summary: StrictStr
    findings: List[FindingData]


FALLBACK_RISK_SCORE = 50
FALLBACK_SUMMARY = "Contract analysis completed"
FALLBACK_FINDINGS = (
    FindingData(
        type=FindingType.LEGAL,
        severity=FindingSeverity.MEDIUM,
        title="Kündigungsklausel prüfen",
        description="Die Kündigungsbedingungen sollten überprüft werden.",
        suggestion="Rechtliche Beratung für Kündigungsfristen empfohlen.",
    ),
    FindingData(
        type=FindingType.FINANCIAL,
        severity=FindingSeverity.LOW,
        title="Zahlungsbedingungen",
        description="Standardzahlungsbedingungen identifiziert.",
        suggestion="Zahlungsfristen könnten optimiert werden.",
    ),
)


# ========== Tagged results ==========

@dataclass(frozen=True)
class ProviderReply:
    text: str


@dataclass(frozen=True)
class ProviderError:
    reason: str


@dataclass(frozen=True)
class ParsedAnalysis:
    risk_score: int
    summary: str
    findings: List[FindingData]


@dataclass(frozen=True)
class ParseError:
    reason: str


@dataclass
class ProviderAnalysis:
    """What the orchestrator persists."""
    risk_score: int
    summary: str
    findings: List[FindingData] = field(default_factory=list)
    source: str = "provider"  # "provider" | "fallback"


def fallback_analysis() -> ProviderAnalysis:
    return ProviderAnalysis(
        risk_score=FALLBACK_RISK_SCORE,
        summary=FALLBACK_SUMMARY,
        findings=list(FALLBACK_FINDINGS),
        source="fallback",
    )


def parse_provider_payload(text: Optional[str]) -> Union[ParsedAnalysis, ParseError]:
    """
    Parse and strictly validate a provider reply.

    Fences are stripped and only the first MAX_FINDINGS raw findings are
    validated; anything else that does not match the schema is a ParseError.
    """
    data, error = clean_llm_json_response(text)
    if error:
        return ParseError(error)
    if not isinstance(data, dict):
        return ParseError("Reply is not a JSON object")

    findings = data.get("findings")
    if isinstance(findings, list):
        data = {**data, "findings": findings[:MAX_FINDINGS]}

    try:
        payload = ProviderPayload.model_validate(data)
    except ValidationError as e:
        return ParseError(f"Schema mismatch: {e.error_count()} error(s), first: {e.errors()[0]['msg']}")

    return ParsedAnalysis(
        risk_score=clamp_risk_score(payload.risk_score),
        summary=payload.summary,
        findings=list(payload.findings),
    )


class AIProviderAdapter:
    """
    Calls the chat-completion API once per analysis.

    Args:
        api_key: Provider credential; without one no call is made
        model: Chat model name
        timeout: Request timeout in seconds
        client: Pre-built client (tests inject a fake)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-4o-mini",
        timeout: float = 60.0,
        client: Any = None,
    ):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._client = client

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _get_client(self):
        if self._client is None:
            self._client = OpenAI(api_key=self.api_key, timeout=self.timeout, max_retries=0)
        return self._client

    def build_prompt(self, document_name: Optional[str], category: Optional[str], text: str) -> str:
        return ANALYSIS_PROMPT.format(
            document_name=document_name or "Unknown",
            category=category or "contract",
            text=text[:MAX_TEXT_CHARS],
        )

    def request_completion(self, prompt: str) -> Union[ProviderReply, ProviderError]:
        """Single chat-completion call; failures come back as ProviderError."""
        try:
            response = self._get_client().chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=TEMPERATURE,
                response_format={"type": "json_object"},
            )
            content = response.choices[0].message.content
        except Exception as e:
            return ProviderError(f"{type(e).__name__}: {e}")

        if not content:
            return ProviderError("Empty completion")
        return ProviderReply(content)

    def analyze(
        self,
        document_id: str,
        document_name: Optional[str] = None,
        category: Optional[str] = None,
        text: Optional[str] = None,
    ) -> ProviderAnalysis:
        if not self.is_configured or not text:
            logger.info(f"Using fallback analysis for document {document_id} (no credential or text)")
            return fallback_analysis()

        reply = self.request_completion(self.build_prompt(document_name, category, text))
        if isinstance(reply, ProviderError):
            logger.warning(f"Provider call failed for document {document_id}: {reply.reason}")
            return fallback_analysis()

        parsed = parse_provider_payload(reply.text)
        if isinstance(parsed, ParseError):
            logger.warning(f"Provider reply rejected for document {document_id}: {parsed.reason}")
            return fallback_analysis()

        findings = parsed.findings or list(FALLBACK_FINDINGS)
        return ProviderAnalysis(
            risk_score=parsed.risk_score,
            summary=parsed.summary or FALLBACK_SUMMARY,
            findings=findings,
            source="provider",
        )


_ai_provider: Optional[AIProviderAdapter] = None


def get_ai_provider() -> AIProviderAdapter:
    """FastAPI dependency returning the configured adapter."""
    global _ai_provider
    if _ai_provider is None:
        _ai_provider = AIProviderAdapter(
            api_key=settings.OPENAI_API_KEY,
            model=settings.OPENAI_MODEL,
            timeout=settings.OPENAI_TIMEOUT_SECONDS,
        )
    return _ai_provider
