from __future__ import annotations

import json
import logging

from openai import AsyncOpenAI

from threatlens.enrichment.base import EnrichmentProvider
from threatlens.errors import EnrichmentUnavailable
from threatlens.models import SecurityEvent, ThreatAnalysis

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an expert cybersecurity analyst. Analyze security events and provide "
    "detailed threat assessments. Always respond with valid JSON in the exact format specified."
)

ANALYSIS_FORMAT = """{
  "threat_type": "string - specific type of threat detected",
  "severity_justification": "string - explanation for the severity level",
  "recommended_actions": ["array", "of", "specific", "action", "items"],
  "confidence_score": 0.95,
  "risk_level": "one of: low, medium, high, critical",
  "similar_attacks": ["array", "of", "similar", "known", "attacks"],
  "indicators_of_compromise": ["array", "of", "IOCs", "identified"]
}"""


def build_analysis_prompt(event: SecurityEvent) -> str:
    return "\n".join(
        [
            "Analyze this cybersecurity event and provide a detailed threat assessment:",
            "",
            f"Event Type: {event.category.value}",
            f"Severity: {event.severity.value}",
            f"Source IP: {event.source_ip}",
            f"Destination IP: {event.destination_ip or 'N/A'}",
            f"Description: {event.description}",
            f"Raw Data: {json.dumps(event.raw_data, indent=2, default=str)}",
            "",
            "Please provide your analysis in the following JSON format:",
            ANALYSIS_FORMAT,
        ]
    )


class OpenAIProvider(EnrichmentProvider):
    """Chat-completion classifier and embedding client backed by the OpenAI API."""

    name = "openai"

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4",
        embedding_model: str = "text-embedding-ada-002",
        dimensions: int = 1536,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self.model = model
        self.embedding_model = embedding_model
        self.dimensions = dimensions
        self._client = client or AsyncOpenAI(api_key=api_key)

    async def classify(self, event: SecurityEvent) -> ThreatAnalysis:
        completion = await self._client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_analysis_prompt(event)},
            ],
            temperature=0.3,
            max_tokens=1000,
        )
        content = completion.choices[0].message.content
        if not content:
            raise EnrichmentUnavailable("Empty completion from classifier")
        return ThreatAnalysis.model_validate_json(content)

    async def embed(self, text: str) -> list[float]:
        response = await self._client.embeddings.create(
            model=self.embedding_model,
            input=text,
        )
        vector = list(response.data[0].embedding)
        if len(vector) != self.dimensions:
            raise EnrichmentUnavailable(
                f"Embedding has {len(vector)} dimensions, expected {self.dimensions}"
            )
        return vector

    async def aclose(self) -> None:
        await self._client.close()
