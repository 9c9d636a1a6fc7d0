"""
Amazon Ads API Client
Talks to the Amazon Advertising REST API (Sponsored Products v3 + Reporting v3)
for a single advertising profile. Handles paginated listings and the async
report lifecycle: submit → poll → download → decompress.
"""

import asyncio
import gzip
import json
import logging
from typing import Any, Optional
import httpx
from ppc_copilot.config import Settings
from ppc_copilot.exceptions import (
    ConfigurationError,
    ReportFailureError,
    ReportTimeoutError,
    UpstreamRequestError,
)
from ppc_copilot.services.token_service import AccessTokenProvider

logger = logging.getLogger(__name__)

ADS_API_BASE = "https://advertising-api.amazon.com"  # NA region

SP_CAMPAIGN_MEDIA_TYPE = "application/vnd.spCampaign.v3+json"
SP_PRODUCT_AD_MEDIA_TYPE = "application/vnd.spProductAd.v3+json"

REPORT_COLUMNS = [
    "campaignId",
    "campaignName",
    "impressions",
    "clicks",
    "cost",
    "purchases7d",
    "unitsSoldClicks7d",
    "sales7d",
]

LIST_PAGE_SIZE = 100
LIST_STATE_FILTER = {"include": ["ENABLED", "PAUSED"]}


class AmazonAdsClient:
    """
    Wrapper around the Amazon Ads API for one profile.
    Every call fails fast with ConfigurationError when credentials are missing,
    so callers can pick demo data without touching the network.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        profile_id: str,
        http: Optional[httpx.AsyncClient] = None,
        api_base: str = ADS_API_BASE,
        token_url: Optional[str] = None,
        poll_interval: float = 2.0,
        max_polls: int = 60,
        token_provider: Optional[AccessTokenProvider] = None,
    ):
        self.client_id = client_id
        self.profile_id = profile_id
        self.api_base = api_base.rstrip("/")
        self.poll_interval = poll_interval
        self.max_polls = max_polls
        self._owns_http = http is None
        self.http = http or httpx.AsyncClient(timeout=30.0)
        token_kwargs = {"token_url": token_url} if token_url else {}
        self.tokens = token_provider or AccessTokenProvider(
            self.http, client_id, client_secret, refresh_token, **token_kwargs
        )
        self._configured = all((client_id, client_secret, refresh_token, profile_id))

    @property
    def is_configured(self) -> bool:
        return self._configured

    def _require_config(self) -> None:
        if not self._configured:
            raise ConfigurationError(
                "Amazon Ads credentials not configured. Set AMAZON_ADS_CLIENT_ID, "
                "AMAZON_ADS_CLIENT_SECRET, AMAZON_ADS_REFRESH_TOKEN and AMAZON_ADS_PROFILE_ID."
            )

    async def aclose(self) -> None:
        if self._owns_http:
            await self.http.aclose()

    # ── Low-level request ─────────────────────────────────────────────

    async def _request(
        self,
        method: str,
        path: str,
        json_body: Optional[dict] = None,
        content_type: str = "application/json",
        accept: str = "application/json",
    ) -> httpx.Response:
        self._require_config()
        token = await self.tokens.get_token()
        url = path if path.startswith("http") else f"{self.api_base}{path}"
        headers = {
            "Authorization": f"Bearer {token}",
            "Amazon-Advertising-API-ClientId": self.client_id,
            "Amazon-Advertising-API-Scope": self.profile_id,
            "Content-Type": content_type,
            "Accept": accept,
        }
        logger.debug(f"[ADS API] {method} {url} | profileId={self.profile_id}")
        content = json.dumps(json_body) if json_body is not None else None
        response = await self.http.request(method, url, headers=headers, content=content)
        if response.status_code == 401:
            # Token revoked or expired early; fetch a new one on the next call
            self.tokens.invalidate()
        return response

    @staticmethod
    def _json(response: httpx.Response, what: str) -> Any:
        """Decode a JSON body; a malformed body is an upstream error like a bad status."""
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamRequestError(f"{what} returned invalid JSON", response.status_code, response.text) from e

    # ── Paginated listing ─────────────────────────────────────────────

    async def _paginated_list(
        self,
        path: str,
        result_key: str,
        media_type: str,
        max_pages: int = 100,
    ) -> list[dict]:
        """
        Follow nextToken pagination until the API stops returning one.
        Any non-2xx page aborts the whole listing.
        """
        all_items: list[dict] = []
        next_token: Optional[str] = None
        page = 0

        while page < max_pages:
            body: dict[str, Any] = {"maxResults": LIST_PAGE_SIZE, "stateFilter": LIST_STATE_FILTER}
            if next_token:
                body["nextToken"] = next_token

            response = await self._request(
                "POST", path, json_body=body, content_type=media_type, accept=media_type
            )
            if response.is_error:
                raise UpstreamRequestError(f"Listing {path} failed", response.status_code, response.text)

            data = self._json(response, f"Listing {path}")
            items = data.get(result_key) or []
            all_items.extend(items)
            next_token = data.get("nextToken")
            page += 1
            logger.debug(f"List {path} page {page}: {len(items)} items (total so far: {len(all_items)})")

            if not next_token:
                break

        logger.info(f"List {path} complete: {len(all_items)} items in {page} page(s)")
        return all_items

    async def list_campaigns(self) -> list[dict]:
        return await self._paginated_list("/sp/campaigns/list", "campaigns", SP_CAMPAIGN_MEDIA_TYPE)

    async def list_product_ads(self) -> list[dict]:
        return await self._paginated_list("/sp/productAds/list", "productAds", SP_PRODUCT_AD_MEDIA_TYPE)

    async def list_profiles(self) -> list[dict]:
        response = await self._request("GET", "/v2/profiles")
        if response.is_error:
            raise UpstreamRequestError("Profiles API error", response.status_code, response.text)
        return self._json(response, "Profiles API")

    # ── Async reports ─────────────────────────────────────────────────

    async def create_report(self, start_date: str, end_date: str) -> str:
        """Submit an SP campaign summary report and return its reportId."""
        body = {
            "name": f"sp-campaigns-{start_date}-{end_date}",
            "startDate": start_date,
            "endDate": end_date,
            "configuration": {
                "adProduct": "SPONSORED_PRODUCTS",
                "groupBy": ["campaign"],
                "columns": REPORT_COLUMNS,
                "reportTypeId": "spCampaigns",
                "timeUnit": "SUMMARY",
                "format": "GZIP_JSON",
            },
        }
        response = await self._request("POST", "/reporting/reports", json_body=body)
        if response.is_error:
            raise UpstreamRequestError("Report create error", response.status_code, response.text)
        report_id = self._json(response, "Report create").get("reportId")
        if not report_id:
            raise UpstreamRequestError("Report create returned no reportId", response.status_code, response.text)
        logger.info(f"Report {report_id} requested for {start_date} → {end_date}")
        return report_id

    async def poll_report(self, report_id: str) -> str:
        """
        Poll until the report completes and return its download URL.
        Exactly one status request per interval, at most max_polls of them.
        """
        for attempt in range(1, self.max_polls + 1):
            await asyncio.sleep(self.poll_interval)

            response = await self._request("GET", f"/reporting/reports/{report_id}")
            if response.is_error:
                logger.debug(f"Report {report_id} status check returned {response.status_code}")
                continue

            data = self._json(response, f"Report {report_id} status")
            status = data.get("status")
            if attempt % 5 == 1:
                logger.info(f"[ADS Report] Poll {attempt}/{self.max_polls} — status: {status}")

            if status == "COMPLETED":
                url = data.get("url")
                if not url:
                    raise UpstreamRequestError(f"Report {report_id} completed without a URL", response.status_code)
                return url
            if status == "FAILURE":
                raise ReportFailureError(report_id, data.get("failureReason"))

        raise ReportTimeoutError(report_id, self.max_polls, self.max_polls * self.poll_interval)

    async def download_report(self, url: str) -> list[dict]:
        """Download a report file. Payloads are usually gzip but may be plain JSON."""
        response = await self.http.get(url)
        if response.is_error:
            raise UpstreamRequestError("Report download error", response.status_code, response.text)

        try:
            raw = gzip.decompress(response.content)
        except (OSError, EOFError):
            # Not gzipped
            raw = response.content

        try:
            parsed = json.loads(raw.decode("utf-8"))
        except ValueError as e:
            raise UpstreamRequestError(
                "Report download is not valid JSON", response.status_code, raw[:500].decode("utf-8", "replace")
            ) from e
        if isinstance(parsed, list):
            return parsed
        if isinstance(parsed, dict):
            # Some formats wrap rows in a key
            for key in ("rows", "data", "campaigns", "results"):
                if isinstance(parsed.get(key), list):
                    return parsed[key]
        return []

    async def fetch_campaign_report(self, start_date: str, end_date: str) -> list[dict]:
        report_id = await self.create_report(start_date, end_date)
        url = await self.poll_report(report_id)
        rows = await self.download_report(url)
        logger.info(f"Report {report_id}: {len(rows)} rows")
        return rows


def create_ads_client(settings: Settings, http: Optional[httpx.AsyncClient] = None) -> AmazonAdsClient:
    """Factory function to create an Ads client from application settings."""
    return AmazonAdsClient(
        client_id=settings.amazon_ads_client_id,
        client_secret=settings.amazon_ads_client_secret,
        refresh_token=settings.amazon_ads_refresh_token,
        profile_id=settings.amazon_ads_profile_id,
        http=http,
        api_base=settings.amazon_ads_api_base,
        token_url=settings.lwa_token_url,
        poll_interval=settings.report_poll_interval,
        max_polls=settings.report_max_polls,
    )
