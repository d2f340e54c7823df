"""HTTP API for URL scoring."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Optional

from aiohttp import web

from .. import __version__
from ..analyzer.metrics import metrics
from ..config import Config
from ..pipeline.orchestrator import ChainOrchestrator
from ..intel.redirects import ensure_url

logger = logging.getLogger(__name__)

CORS_HEADERS = {"Access-Control-Allow-Origin": "*"}


class RequestError(ValueError):
    """Malformed request body."""


def _json(payload: Any, status: int = 200) -> web.Response:
    return web.json_response(payload, status=status, headers=CORS_HEADERS)


def _error(message: str, status: int = 400) -> web.Response:
    return _json({"error": message}, status=status)


async def _read_body(request: web.Request) -> dict:
    try:
        data = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise RequestError("Invalid JSON body") from exc
    if not isinstance(data, dict):
        raise RequestError("JSON object expected")
    return data


def _optional_str(data: dict, key: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise RequestError(f"'{key}' must be a string")
    return value


def _required_url(data: dict) -> str:
    url = data.get("url")
    if not isinstance(url, str) or not url.strip():
        raise RequestError("'url' is required")
    return ensure_url(url)


class ScoringServer:
    """Serves /score, /extract-features, /bulk-scan, /health and /metrics."""

    def __init__(self, config: Config, orchestrator: Optional[ChainOrchestrator] = None):
        self.config = config
        self.orchestrator = orchestrator or ChainOrchestrator.from_config(config)
        self._runner: web.AppRunner | None = None
        self._site: web.TCPSite | None = None

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_post("/score", self._handle_score)
        app.router.add_post("/extract-features", self._handle_extract)
        app.router.add_post("/bulk-scan", self._handle_bulk)
        app.router.add_get("/health", self._handle_health)
        app.router.add_get("/metrics", self._handle_metrics)
        return app

    async def start(self) -> None:
        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, self.config.api_host, self.config.api_port)
        await self._site.start()
        logger.info("Scoring API listening on %s:%s", self.config.api_host, self.config.api_port)

    async def stop(self) -> None:
        if self._site:
            await self._site.stop()
        if self._runner:
            await self._runner.cleanup()
        self._runner = None
        self._site = None
        self.orchestrator.close()

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def _handle_score(self, request: web.Request) -> web.Response:
        try:
            data = await _read_body(request)
            url = _required_url(data)
            html = _optional_str(data, "html")
            text = _optional_str(data, "text")
        except RequestError as exc:
            return _error(str(exc))
        # qrImage is accepted for compatibility and not decoded.
        result = await self.orchestrator.score(url, html, text)
        return _json(result.to_response())

    async def _handle_extract(self, request: web.Request) -> web.Response:
        try:
            data = await _read_body(request)
            url = _required_url(data)
            html = _optional_str(data, "html")
            text = _optional_str(data, "text")
        except RequestError as exc:
            return _error(str(exc))
        features = await asyncio.to_thread(self.orchestrator.extractor.extract, url, html, text)
        vector = features.to_vector()
        classifier = self.orchestrator.classifier
        return _json(
            {
                "features": features.to_dict(),
                "vector": vector,
                "mlScore": round(classifier.score(vector), 4),
                "contributions": classifier.explain(vector),
            }
        )

    async def _handle_bulk(self, request: web.Request) -> web.Response:
        try:
            data = await _read_body(request)
        except RequestError as exc:
            return _error(str(exc))
        urls = data.get("urls")
        if not isinstance(urls, list) or not urls:
            return _error("'urls' must be a non-empty list")
        if len(urls) > self.config.bulk_scan_limit:
            return _error(f"At most {self.config.bulk_scan_limit} URLs per request")
        if not all(isinstance(u, str) and u.strip() for u in urls):
            return _error("Every URL must be a non-empty string")

        results = await asyncio.gather(*(self.orchestrator.score(ensure_url(u)) for u in urls))
        payload = [
            {"url": r.url, "risk": r.risk, "threatType": r.threat_type, "tags": list(r.tags)}
            for r in results
        ]
        return _json({"results": payload, "count": len(payload)})

    async def _handle_health(self, request: web.Request) -> web.Response:
        return _json(
            {
                "status": "ok",
                "cacheEntries": len(self.orchestrator.cache),
                "modelLoaded": self.orchestrator.classifier.model_loaded,
                "version": __version__,
                "metrics": metrics.get_summary(),
            }
        )

    async def _handle_metrics(self, request: web.Request) -> web.Response:
        """Expose numeric counters (Prometheus-ish)."""
        data = metrics.counters()
        for key, value in self.orchestrator.cache.stats().items():
            data[f"cache_{key}"] = value

        lines = []
        for key, value in data.items():
            if isinstance(value, (int, float)):
                metric_key = str(key).replace(".", "_").replace("-", "_")
                lines.append(f"phishradar_{metric_key} {value}")
        return web.Response(text="\n".join(lines) + "\n")
