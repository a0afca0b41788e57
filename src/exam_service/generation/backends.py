"""
Generative backends reached over HTTP.

Backends return the raw response text; validation happens in the
remote synthesizer so that every backend is held to the same contract.
"""

import json
import logging
from typing import Any, Protocol

import httpx

from exam_service.core.exceptions import GenerationTransportFailure
from exam_service.generation.base import GenerationRequest

logger = logging.getLogger(__name__)

DEFAULT_OPENAI_BASE_URL = "https://api.openai.com"
DEFAULT_OPENAI_MODEL = "gpt-4o-mini"


class GenerationBackend(Protocol):
    async def generate(
        self, request: GenerationRequest, feedback: str | None = None
    ) -> str: ...


def build_contract(n_items: int) -> str:
    return "\n".join(
        [
            "Return STRICT JSON (no markdown, no code fences).",
            'Top-level must be: {"items": [...]}',
            f"items must have exactly {n_items} elements.",
            "Each item MUST include:",
            "- answerType: one of 'single' | 'multi' | 'pbq-order' | 'pbq-match'",
            "  (the same answerType as the requested item)",
            "- domain: string (e.g., '1.0 Mobile Devices')",
            "- objectiveId: string (e.g., '1.1')",
            "- objectiveTitle: string",
            "- objectiveBullets: string[]",
            "- prompt: string",
            "- explanation: string",
            "",
            "Type-specific fields:",
            "- single/multi: options: string[4..6], correctIndices: int[1..3] "
            "(0-based, within options length)",
            "- pbq-order: orderItems: string[4..8], correctOrder: int[] "
            "(0-based permutation same length as orderItems)",
            "- pbq-match: leftLabel: string, rightLabel: string, left: string[3..8], "
            "right: string[3..8], correctPairs: {leftIndex:int,rightIndex:int}[]",
            "",
            "Do not include any additional top-level keys besides 'items'.",
        ]
    )


def build_system_prompt(n_items: int, feedback: str | None = None) -> str:
    lines = [
        "You are a CompTIA A+ (220-1201 / 220-1202) item writer.",
        "Write ORIGINAL practice questions aligned to the provided objective. "
        "Do NOT reproduce copyrighted exam content.",
        "Keep prompts concise and realistic (help-desk / technician scenarios).",
        "Difficulty rules:",
        "- easy: straightforward, minimal ambiguity; distractors clearly wrong; "
        "no tricky wording.",
        "- medium: exam-like; moderate scenario detail; plausible distractors; "
        "one clear best answer.",
        "- hard: deeper reasoning within the objective; closer distractors; "
        "multi-step scenarios; avoid trick questions.",
        "",
        "Output format requirements:",
        build_contract(n_items),
    ]
    if feedback:
        lines += [
            "",
            "Your previous output was invalid.",
            f"Fix the JSON and re-output per contract. Error: {feedback}",
        ]
    return "\n".join(lines)


def build_user_payload(request: GenerationRequest) -> dict[str, Any]:
    return {
        "purpose": "Generate a batch of CompTIA A+ practice questions.",
        "difficulty": str(request.difficulty),
        "items": [
            {
                "answerType": str(item.answer_type),
                "domain": item.domain,
                "objectiveId": item.objective_id,
                "objectiveTitle": item.objective_title,
                "objectiveBullets": item.objective_bullets,
            }
            for item in request.items
        ],
    }


def extract_output_text(data: Any) -> str:
    """Concatenate the text parts of a Responses API payload."""
    if not isinstance(data, dict):
        return ""
    if isinstance(data.get("output_text"), str):
        return data["output_text"]

    text = ""
    for output in data.get("output") or []:
        content = output.get("content") if isinstance(output, dict) else None
        if not isinstance(content, list):
            continue
        for part in content:
            if (
                isinstance(part, dict)
                and part.get("type") == "output_text"
                and isinstance(part.get("text"), str)
            ):
                text += part["text"]
    return text


class OpenAIResponsesBackend:
    """Calls the OpenAI Responses API with the item-writing contract."""

    def __init__(
        self,
        api_key: str | None,
        model: str = DEFAULT_OPENAI_MODEL,
        base_url: str = DEFAULT_OPENAI_BASE_URL,
        temperature: float = 0.6,
        max_output_tokens: int = 3500,
        timeout_seconds: float = 60.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._temperature = temperature
        self._max_output_tokens = max_output_tokens
        self._client = client or httpx.AsyncClient(
            base_url=base_url, timeout=timeout_seconds
        )

    def build_body(
        self, request: GenerationRequest, feedback: str | None = None
    ) -> dict[str, Any]:
        system = build_system_prompt(len(request.items), feedback)
        user = json.dumps(build_user_payload(request))
        return {
            "model": self._model,
            "input": [
                {
                    "role": "system",
                    "content": [{"type": "input_text", "text": system}],
                },
                {
                    "role": "user",
                    "content": [{"type": "input_text", "text": user}],
                },
            ],
            "temperature": self._temperature,
            "max_output_tokens": self._max_output_tokens,
        }

    async def generate(
        self, request: GenerationRequest, feedback: str | None = None
    ) -> str:
        if not self._api_key:
            raise GenerationTransportFailure(
                "Missing OpenAI API key (set EXAM_OPENAI_API_KEY)."
            )

        response = await self._client.post(
            "/v1/responses",
            json=self.build_body(request, feedback),
            headers={"Authorization": f"Bearer {self._api_key}"},
        )
        response.raise_for_status()
        try:
            data = response.json()
        except ValueError as exc:
            raise GenerationTransportFailure(
                f"Backend returned a non-JSON body (HTTP {response.status_code})."
            ) from exc
        return extract_output_text(data)

    async def aclose(self) -> None:
        await self._client.aclose()


class HttpGenerationBackend:
    """
    Calls this service's own ``/api/v1/generate`` endpoint.

    The endpoint validates and retries server side, so ``feedback`` is not
    forwarded.
    """

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 120.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._client = client or httpx.AsyncClient(
            base_url=base_url, timeout=timeout_seconds
        )

    async def generate(
        self, request: GenerationRequest, feedback: str | None = None
    ) -> str:
        response = await self._client.post(
            "/api/v1/generate",
            json=request.model_dump(mode="json", by_alias=True),
        )
        response.raise_for_status()
        return response.text

    async def aclose(self) -> None:
        await self._client.aclose()
