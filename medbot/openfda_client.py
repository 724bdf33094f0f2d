"""openFDA client for MedBot.

Issues the three read-only queries MedBot needs against api.fda.gov (drug
label lookup, enforcement reports by product, most recent enforcement reports)
and maps the JSON payloads onto DrugRecord / RecallRecord.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from medbot.config import Settings, settings as default_settings
from medbot.exceptions import DrugNotFoundError, UpstreamError
from medbot.models import DrugRecord, EnforcementResult, LabelResult, RecallRecord, utcnow

logger = logging.getLogger(__name__)

DRUG_LABEL_PATH = "/drug/label.json"
ENFORCEMENT_PATH = "/drug/enforcement.json"


def _first(values: List[str]) -> Optional[str]:
    """First entry of an openFDA multi-valued field."""
    return values[0] if values else None


def _quote_term(term: str) -> str:
    # openFDA phrase syntax has no escape for embedded quotes
    return '"' + term.replace('"', " ").replace("\\", " ").strip() + '"'


def parse_drug_results(results: List[Any], fetched_at: Optional[datetime] = None) -> List[DrugRecord]:
    """Map drug label results to DrugRecords, skipping malformed and nameless items."""
    fetched_at = fetched_at or utcnow()
    drugs = []

    for index, item in enumerate(results):
        try:
            label = LabelResult.model_validate(item)
        except ValidationError as e:
            logger.debug(f"Skipping malformed drug label #{index}: {e.error_count()} validation errors")
            continue

        drug = DrugRecord(
            brand_name=_first(label.openfda.brand_name),
            generic_name=_first(label.openfda.generic_name),
            manufacturer=_first(label.openfda.manufacturer_name),
            indications=_first(label.indications_and_usage),
            fetched_at=fetched_at,
        )
        if drug.is_nameless():
            logger.debug(f"Skipping nameless drug label #{index}")
            continue
        drugs.append(drug)

    return drugs


def parse_recall_results(results: List[Any]) -> List[RecallRecord]:
    """Map enforcement report results to RecallRecords, skipping malformed items."""
    recalls = []

    for index, item in enumerate(results):
        try:
            report = EnforcementResult.model_validate(item)
        except ValidationError as e:
            logger.debug(f"Skipping malformed enforcement report #{index}: {e.error_count()} validation errors")
            continue

        recalls.append(RecallRecord(
            recall_id=report.recall_number,
            product_description=report.product_description,
            reason_for_recall=report.reason_for_recall,
            classification=report.classification,
            recall_date=report.report_date,
        ))

    return recalls


class OpenFDAClient:
    """Async client for the openFDA drug endpoints."""

    def __init__(self, config: Optional[Settings] = None,
                 http_client: Optional[httpx.AsyncClient] = None):
        self.settings = config or default_settings
        self.base_url = self.settings.OPENFDA_BASE_URL.rstrip("/")
        self.timeout = self.settings.OPENFDA_TIMEOUT_SECONDS
        self.headers = {"User-Agent": self.settings.OPENFDA_USER_AGENT, "Accept": "application/json"}
        self.http_client = http_client or httpx.AsyncClient(timeout=httpx.Timeout(self.timeout))

    async def close(self):
        """Close the HTTP client."""
        await self.http_client.aclose()

    async def lookup_drug(self, term: str) -> List[DrugRecord]:
        """
        Search drug labels whose brand or generic name matches term.

        Raises DrugNotFoundError when openFDA answers 404 and UpstreamError for
        any other failure.
        """
        quoted = _quote_term(term)
        params = {
            "search": f"(openfda.brand_name:{quoted} OR openfda.generic_name:{quoted})",
            "limit": self.settings.DRUG_SEARCH_LIMIT,
        }
        logger.info(f"Calling openFDA drug label search for '{term}'")

        payload = await self._get(DRUG_LABEL_PATH, params)
        if payload is None:
            logger.info(f"openFDA has no label matching '{term}'")
            raise DrugNotFoundError(term)

        drugs = parse_drug_results(self._results(payload), fetched_at=utcnow())
        logger.info(f"Found {len(drugs)} drugs for '{term}'")
        return drugs

    async def lookup_recalls(self, term: str) -> List[RecallRecord]:
        """Enforcement reports whose product description matches term. 404 means none."""
        params = {
            "search": f"product_description:{_quote_term(term)}",
            "limit": self.settings.RECALL_SEARCH_LIMIT,
        }
        logger.info(f"Calling openFDA enforcement search for '{term}'")

        payload = await self._get(ENFORCEMENT_PATH, params)
        if payload is None:
            logger.info(f"No recalls found for '{term}'")
            return []

        recalls = parse_recall_results(self._results(payload))
        logger.info(f"Found {len(recalls)} recalls for '{term}'")
        return recalls

    async def lookup_recent_recalls(self, limit: int) -> List[RecallRecord]:
        """The `limit` most recent enforcement reports across all products."""
        params = {"limit": limit, "sort": "report_date:desc"}
        logger.info(f"Fetching {limit} recent recalls")

        payload = await self._get(ENFORCEMENT_PATH, params)
        if payload is None:
            return []
        return parse_recall_results(self._results(payload))

    async def _get(self, path: str, params: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        GET an openFDA endpoint and return the decoded JSON object, or None on
        404. The whole exchange is bounded by the configured timeout.
        """
        if self.settings.OPENFDA_API_KEY:
            params = {**params, "api_key": self.settings.OPENFDA_API_KEY}
        url = f"{self.base_url}{path}"

        try:
            response = await asyncio.wait_for(
                self.http_client.get(url, params=params, headers=self.headers), timeout=self.timeout
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            logger.warning(f"openFDA request to {path} timed out after {self.timeout}s")
            raise UpstreamError(f"openFDA did not answer within {self.timeout}s") from e
        except httpx.HTTPError as e:
            logger.warning(f"openFDA request to {path} failed: {e}")
            raise UpstreamError(f"openFDA request failed: {e}") from e

        if response.status_code == 404:
            return None
        if not response.is_success:
            logger.warning(f"openFDA returned: {response.status_code}")
            raise UpstreamError(f"openFDA API error: {response.status_code}", response.status_code)

        try:
            payload = response.json()
        except ValueError as e:
            raise UpstreamError("openFDA returned a body that is not JSON", response.status_code) from e
        if not isinstance(payload, dict):
            raise UpstreamError("openFDA returned an unexpected payload", response.status_code)
        return payload

    @staticmethod
    def _results(payload: Dict[str, Any]) -> List[Any]:
        results = payload.get("results")
        if not isinstance(results, list):
            raise UpstreamError("openFDA payload has no results list")
        return results
