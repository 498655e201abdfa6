"""
Muscle catalog client.

Fetches the upstream (wger) muscle taxonomy, following ``next`` pagination
links, and flattens it into a deduplicated, label-sorted list of
``MuscleGroup`` records for the plan composer.
"""

from __future__ import annotations

from typing import Any

import httpx

from fitplan.config.settings import get_settings
from fitplan.core.cancellation import CancellationToken
from fitplan.core.exceptions import CatalogError
from fitplan.core.logging import get_logger
from fitplan.schemas.plan import MuscleGroup

logger = get_logger(__name__)


def muscle_group_from_record(record: dict[str, Any]) -> MuscleGroup | None:
    """Map one catalog record to a MuscleGroup; records without an id are skipped."""
    muscle_id = record.get("id")
    if not muscle_id:
        return None

    name = (record.get("name") or "").strip() or None
    label = (record.get("name_en") or "").strip() or name or f"Muscle {muscle_id}"
    return MuscleGroup(
        id=muscle_id,
        label=label,
        api_ids=(muscle_id,),
        name=name,
        is_front=record.get("is_front"),
    )


class MuscleCatalogClient:
    """Paginated muscle catalog reader."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        page_size: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.wger_base_url).rstrip("/")
        self.api_key = (api_key if api_key is not None else settings.wger_api_key).strip()
        self.timeout = timeout or settings.wger_timeout
        self.page_size = page_size or settings.wger_page_size
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            headers = {"Accept": "application/json"}
            if self.api_key:
                headers["Authorization"] = f"Token {self.api_key}"
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                headers=headers,
                transport=self._transport,
            )
        return self._client

    async def close(self):
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def _fetch_page(self, url: str) -> dict[str, Any]:
        client = await self._get_client()
        try:
            response = await client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise CatalogError(
                f"Muscle catalog request failed with status {e.response.status_code}",
                details={"url": url, "status": e.response.status_code},
            ) from e
        except httpx.HTTPError as e:
            raise CatalogError(f"Muscle catalog request failed: {e}", details={"url": url}) from e
        return response.json()

    async def fetch_muscle_groups(
        self,
        cancellation_token: CancellationToken | None = None,
    ) -> list[MuscleGroup]:
        """Fetch every catalog page and return a flat, deduplicated list."""
        next_url: str | None = f"{self.base_url}/muscle/?limit={self.page_size}"
        seen_urls: set[str] = set()
        groups: dict[Any, MuscleGroup] = {}

        while next_url:
            if next_url in seen_urls:
                raise CatalogError("Muscle catalog pagination loops", details={"url": next_url})
            seen_urls.add(next_url)

            page_call = self._fetch_page(next_url)
            if cancellation_token is not None:
                page = await cancellation_token.run(page_call)
            else:
                page = await page_call

            for record in page.get("results") or []:
                group = muscle_group_from_record(record)
                if group is not None and group.id not in groups:
                    groups[group.id] = group
            next_url = page.get("next")

        logger.info("muscle_catalog_fetched", pages=len(seen_urls), muscles=len(groups))
        return sorted(groups.values(), key=lambda group: group.label.lower())
