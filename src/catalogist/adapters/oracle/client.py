"""HTTP client for the extraction oracle service."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Final

import httpx
from pydantic import BaseModel, ValidationError

from catalogist.adapters.http_resilience import ResilientClient
from catalogist.config import get_oracle_config
from catalogist.domain.errors import OracleTimeoutError, OracleUnavailableError
from catalogist.domain.ports import ExtractionOracle

from .schema import (
    CanonicalizeRequest,
    CanonicalizeResponse,
    ClassifyRequest,
    ClassifyResponse,
    ExtractRequest,
    ExtractResponse,
    OrderingResponse,
    TemplateRequest,
    TemplateResponse,
)
from .translator import (
    parse_canonicalizations,
    parse_extraction,
    parse_family_guess,
    parse_ordering,
    parse_template,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from catalogist.config import OracleConfig, ResilienceConfig
    from catalogist.domain.model import (
        Family,
        FamilyGuess,
        KeyCanonicalization,
        OracleExtraction,
        OrderingGuess,
        TemplateGuess,
    )

log = getLogger(__name__)

MAX_TEXT_CHARS: Final[int] = 200_000
MAX_TEMPLATE_EXAMPLES: Final[int] = 20


class OracleResponseError(OracleUnavailableError):
    """Raised when the oracle answered with a payload that does not match its contract."""

    def __init__(self, message: str, *, endpoint: str) -> None:
        super().__init__(message)
        self.endpoint = endpoint


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


@dataclass(slots=True)
class HttpExtractionOracle:
    """Extraction oracle speaking JSON over HTTP.

    Every endpoint takes a POST body and answers with a JSON object; see
    :mod:`catalogist.adapters.oracle.schema`. Transport failures, non-2xx answers
    and malformed payloads all surface as :class:`OracleUnavailableError`.
    """

    config: OracleConfig = field(default_factory=get_oracle_config)
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )
    max_text_chars: int = MAX_TEXT_CHARS

    def classify_family(self, text: str, families: Sequence[str]) -> FamilyGuess | None:
        request = ClassifyRequest(text=self._clip(text), families=list(families))
        payload = self._call("classify", request, ClassifyResponse)
        return parse_family_guess(payload)

    def extract_fields(self, text: str, family: Family) -> OracleExtraction:
        request = ExtractRequest(
            text=self._clip(text),
            family=family.slug,
            attributes=list(family.vocabulary()),
        )
        payload = self._call("extract", request, ExtractResponse)
        return parse_extraction(payload)

    def extract_ordering(self, text: str, family: Family) -> OrderingGuess | None:
        request = ExtractRequest(
            text=self._clip(text),
            family=family.slug,
            attributes=list(family.vocabulary()),
        )
        payload = self._call("ordering", request, OrderingResponse)
        return parse_ordering(payload)

    def canonicalize_keys(
        self,
        keys: Sequence[str],
        vocabulary: Sequence[str],
        *,
        family: Family,
    ) -> list[KeyCanonicalization]:
        if not keys:
            return []
        request = CanonicalizeRequest(
            keys=list(keys),
            vocabulary=list(vocabulary),
            family=family.slug,
        )
        payload = self._call("canonicalize", request, CanonicalizeResponse)
        return parse_canonicalizations(payload)

    def infer_template(
        self,
        text: str,
        examples: Sequence[dict[str, object]],
        *,
        family: Family,
    ) -> TemplateGuess | None:
        request = TemplateRequest(
            text=self._clip(text),
            examples=[dict(example) for example in examples[:MAX_TEMPLATE_EXAMPLES]],
            family=family.slug,
        )
        payload = self._call("template", request, TemplateResponse)
        return parse_template(payload)

    def _clip(self, text: str) -> str:
        return text[: self.max_text_chars]

    def _call[R: BaseModel](self, endpoint: str, request: BaseModel, response_model: type[R]) -> R:
        return asyncio.run(self._post(endpoint, request, response_model))

    async def _post[R: BaseModel](
        self,
        endpoint: str,
        request: BaseModel,
        response_model: type[R],
    ) -> R:
        async with self.client_factory(self.config.resilience) as client:
            try:
                response = await client.post(f"/{endpoint}", json=request.model_dump())
                response.raise_for_status()
            except httpx.TimeoutException as exc:
                raise OracleTimeoutError(f"Oracle {endpoint} timed out") from exc
            except httpx.HTTPStatusError as exc:
                log.warning("Oracle %s answered HTTP %s", endpoint, exc.response.status_code)
                raise OracleUnavailableError(
                    f"Oracle {endpoint} failed with HTTP {exc.response.status_code}"
                ) from exc
            except httpx.HTTPError as exc:
                raise OracleUnavailableError(f"Oracle {endpoint} unreachable: {exc}") from exc

        try:
            return response_model.model_validate_json(response.content)
        except ValidationError as exc:
            log.warning("Oracle %s returned a malformed payload", endpoint)
            raise OracleResponseError(
                f"Malformed oracle {endpoint} payload", endpoint=endpoint
            ) from exc


class NullOracle:
    """Oracle that never answers; used when no oracle endpoint is configured."""

    def classify_family(self, text: str, families: Sequence[str]) -> FamilyGuess | None:
        return None

    def extract_fields(self, text: str, family: Family) -> OracleExtraction:
        raise OracleUnavailableError("No extraction oracle configured")

    def extract_ordering(self, text: str, family: Family) -> OrderingGuess | None:
        return None

    def canonicalize_keys(
        self,
        keys: Sequence[str],
        vocabulary: Sequence[str],
        *,
        family: Family,
    ) -> list[KeyCanonicalization]:
        return []

    def infer_template(
        self,
        text: str,
        examples: Sequence[dict[str, object]],
        *,
        family: Family,
    ) -> TemplateGuess | None:
        return None


if TYPE_CHECKING:
    _oracle_check: ExtractionOracle = HttpExtractionOracle()
    _null_check: ExtractionOracle = NullOracle()
