"""
Analysis client: the request/response boundary to the generative-AI
collaborator.

Two transport strategies satisfy the same AnalysisClient contract:

- DirectAnalysisClient: calls the model through core.api.openai_client
  with a locally configured API key.
- ProxiedAnalysisClient: posts to the backend proxy endpoints
  (/api/analyze-profile, /api/analyze-chat) served by runtime.api.server.

select_analysis_client() picks one of them once, from settings. Neither
strategy retries or caches: a single attempt yields a validated record or
an AnalysisError.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol, Type, TypeVar

import httpx
from openai import AsyncOpenAI, OpenAIError
from pydantic import BaseModel, ValidationError

from configs.settings import Settings
from core.analysis import prompts
from core.analysis.models import ProfileRecord, ReplyAdvice
from core.api import openai_client
from exceptions.exceptions import (
    AnalysisRequestError,
    AnalysisSchemaError,
    AnalysisTransportError,
    ConfigurationError,
)


logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)

CONFIG_ERROR_PREFIX = "Server configuration error"


class AnalysisClient(Protocol):
    """
    Interface shared by both transport strategies.

    Implementations must:
    - validate the collaborator's response against the record models
    - raise AnalysisTransportError / AnalysisSchemaError on failure
    - raise ConfigurationError when the credential is missing
    """

    async def analyze_profile(self, image: str, note: Optional[str] = None) -> ProfileRecord:
        ...

    async def analyze_chat(
        self,
        image: Optional[str],
        profile_context: ProfileRecord,
        note: Optional[str] = None,
    ) -> ReplyAdvice:
        ...


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def parse_record(model: Type[RecordT], data: Any) -> RecordT:
    """Validate a decoded JSON body against the required-field contract."""
    if not data:
        raise AnalysisSchemaError("No response from AI")
    if not isinstance(data, dict):
        raise AnalysisSchemaError(f"Expected a JSON object, got {type(data).__name__}")
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        fields = ", ".join(
            ".".join(str(part) for part in err["loc"]) or "<root>" for err in exc.errors()
        )
        raise AnalysisSchemaError(
            f"Response does not match the {model.__name__} schema ({fields})"
        ) from exc


def _require_chat_input(image: Optional[str], note: Optional[str]) -> None:
    if not image and not (note or "").strip():
        raise AnalysisRequestError("Chat analysis needs a screenshot or a note.")


# ---------------------------------------------------------------------------
# Direct strategy
# ---------------------------------------------------------------------------


class DirectAnalysisClient:
    """Calls the model directly with a local API key."""

    def __init__(
        self,
        api_key: Optional[str],
        base_url: Optional[str] = None,
        model: str = "gpt-4.1-mini",
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url
        self.model = model
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "DirectAnalysisClient":
        return cls(
            api_key=settings.api_key,
            base_url=settings.base_url,
            model=settings.model,
        )

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self.api_key:
                raise ConfigurationError()
            self._client = openai_client.get_client(self.api_key, self.base_url)
        return self._client

    async def analyze_profile(self, image: str, note: Optional[str] = None) -> ProfileRecord:
        if not image:
            raise AnalysisRequestError("Profile analysis needs a screenshot.")
        data = await self._call(
            prompts.build_profile_prompt(note),
            schema_name="profile_analysis",
            schema=prompts.PROFILE_SCHEMA,
            image=image,
        )
        return parse_record(ProfileRecord, data)

    async def analyze_chat(
        self,
        image: Optional[str],
        profile_context: ProfileRecord,
        note: Optional[str] = None,
    ) -> ReplyAdvice:
        _require_chat_input(image, note)
        data = await self._call(
            prompts.build_chat_prompt(
                profile_context.to_payload(),
                note=note,
                has_image=bool(image),
            ),
            schema_name="chat_advice",
            schema=prompts.CHAT_SCHEMA,
            image=image,
        )
        return parse_record(ReplyAdvice, data)

    async def _call(self, prompt: str, *, schema_name: str, schema: dict, image: Optional[str]) -> Any:
        client = self._get_client()
        logger.debug("Calling model=%s schema=%s image=%s", self.model, schema_name, bool(image))
        try:
            return await openai_client.send_structured_request(
                client,
                prompt,
                model=self.model,
                schema_name=schema_name,
                schema=schema,
                system_instruction=prompts.SYSTEM_INSTRUCTION,
                image_b64=image,
            )
        except OpenAIError as exc:
            raise AnalysisTransportError(f"Model call failed: {exc}") from exc
        except ValueError as exc:
            raise AnalysisSchemaError(str(exc)) from exc


# ---------------------------------------------------------------------------
# Proxied strategy
# ---------------------------------------------------------------------------


class ProxiedAnalysisClient:
    """Posts to the backend proxy, which holds the credential."""

    PROFILE_PATH = "/api/analyze-profile"
    CHAT_PATH = "/api/analyze-chat"

    def __init__(
        self,
        base_url: str,
        timeout: float = 60.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._http_client = http_client

    @classmethod
    def from_settings(cls, settings: Settings) -> "ProxiedAnalysisClient":
        return cls(base_url=settings.proxy_url, timeout=settings.request_timeout)

    async def analyze_profile(self, image: str, note: Optional[str] = None) -> ProfileRecord:
        if not image:
            raise AnalysisRequestError("Profile analysis needs a screenshot.")
        body: dict = {"image": image}
        if note:
            body["note"] = note
        data = await self._post(self.PROFILE_PATH, body)
        return parse_record(ProfileRecord, data)

    async def analyze_chat(
        self,
        image: Optional[str],
        profile_context: ProfileRecord,
        note: Optional[str] = None,
    ) -> ReplyAdvice:
        _require_chat_input(image, note)
        body: dict = {"image": image, "profileContext": profile_context.to_payload()}
        if note:
            body["note"] = note
        data = await self._post(self.CHAT_PATH, body)
        return parse_record(ReplyAdvice, data)

    async def _post(self, path: str, body: dict) -> Any:
        url = f"{self.base_url}{path}"
        try:
            if self._http_client is not None:
                response = await self._http_client.post(url, json=body, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(url, json=body)
        except httpx.HTTPError as exc:
            raise AnalysisTransportError(f"Proxy request to {url} failed: {exc}") from exc

        if response.is_success:
            try:
                return response.json()
            except ValueError as exc:
                raise AnalysisSchemaError(f"Proxy returned a non-JSON body: {exc}") from exc

        error = _error_text(response)
        if error.startswith(CONFIG_ERROR_PREFIX):
            raise ConfigurationError(error)
        raise AnalysisTransportError(f"Proxy returned HTTP {response.status_code}: {error}")


def _error_text(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict) and isinstance(body.get("error"), str):
        return body["error"]
    return response.reason_phrase


# ---------------------------------------------------------------------------
# Strategy selection
# ---------------------------------------------------------------------------


def select_analysis_client(settings: Settings) -> AnalysisClient:
    """
    Choose the transport once per process.

    Direct when a key is configured and we run locally; otherwise the
    backend proxy (a deployed client never holds the key).
    """
    if settings.has_api_key and settings.is_local:
        logger.info("Using local model SDK (model=%s)", settings.model)
        return DirectAnalysisClient.from_settings(settings)

    logger.info("Using backend API proxy at %s", settings.proxy_url)
    return ProxiedAnalysisClient.from_settings(settings)
