import asyncio
import logging
from typing import Any, Dict, Optional

import httpx
import yaml

from gbasic import basic_bridge
from gbasic.basic_errors import KeywordError

logger = logging.getLogger(__name__)


def decode_body(content: bytes, content_type: Optional[str]) -> Any:
    """JSON and YAML bodies become DynamicValues, anything else is returned as text."""
    ct = (content_type or "").split(";")[0].strip().lower()
    if ct == "application/json" or ct.endswith("+json"):
        if not content:
            return None
        return basic_bridge.loads(content)
    if ct in ("application/yaml", "application/x-yaml", "text/yaml"):
        try:
            return basic_bridge.from_json(yaml.safe_load(content))
        except yaml.YAMLError as e:
            raise KeywordError(f"Invalid YAML: {e}") from e
    return content.decode("utf-8", errors="replace")


def encode_body(data: Any) -> tuple:
    """(bytes, content type) for a request body. Strings go as text, other values as JSON."""
    if isinstance(data, str):
        return data.encode("utf-8"), "text/plain; charset=utf-8"
    return basic_bridge.dumps(data).encode("utf-8"), "application/json"


async def http_request(method: str, url: str, *, config: Optional[Dict] = None, data: Any = None,
                       transport: Optional[httpx.AsyncBaseTransport] = None) -> Any:
    """
    Core HTTP helper used by the GET and POST keywords.

    Returns the decoded body on 2xx. Non-2xx responses raise KeywordError
    whose number is the HTTP status. Transport failures and 5xx responses
    are retried `retries` times with exponential backoff.
    """
    cfg = dict(config or {})
    timeout = float(cfg.pop('timeout', 5.0))
    retries = int(cfg.pop('retries', 2))
    backoff = float(cfg.pop('backoff', 0.2))
    headers = dict(cfg.pop('headers', {}))
    params = dict(cfg.pop('params', {}))

    body = None
    if data is not None:
        body, content_type = encode_body(data)
        headers.setdefault("Content-Type", content_type)

    async with httpx.AsyncClient(timeout=timeout, follow_redirects=True, transport=transport) as client:
        for attempt in range(retries + 1):
            try:
                resp = await client.request(method.upper(), url, headers=headers, params=params, content=body)
            except httpx.HTTPError as e:
                if attempt < retries:
                    logger.info("%s %s failed (%s), retrying", method.upper(), url, e)
                    await asyncio.sleep(backoff * (2 ** attempt))
                    continue
                raise KeywordError(f"HTTP request to {url} failed: {e}") from e

            if 200 <= resp.status_code < 300:
                return decode_body(resp.content, resp.headers.get("Content-Type"))
            if resp.status_code >= 500 and attempt < retries:
                logger.info("%s %s returned %s, retrying", method.upper(), url, resp.status_code)
                await asyncio.sleep(backoff * (2 ** attempt))
                continue
            preview = (resp.text or "")[:200]
            raise KeywordError(f"HTTP {resp.status_code} for {url}: {preview}", resp.status_code)


async def http_get(url: str, config: Optional[Dict] = None) -> Any:
    return await http_request('GET', url, config=config)


async def http_post(url: str, data: Any, config: Optional[Dict] = None) -> Any:
    return await http_request('POST', url, config=config, data=data)
