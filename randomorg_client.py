import itertools, logging
from dataclasses import dataclass
from typing import List, Optional

import requests

logger = logging.getLogger(__name__)

RANDOM_ORG_URL = "https://api.random.org/json-rpc/4/invoke"
MAX_DECIMALS_PER_REQUEST = 10000


class TrueRNGError(Exception):
    """Base error for the true-random supply."""


class RandomSourceError(TrueRNGError):
    """The remote source could not deliver numbers. ``reason`` is human readable."""
    def __init__(self, reason):
        super().__init__(reason)
        self.reason = reason


@dataclass
class Usage:
    status: str
    bits_left: int
    requests_left: int


class RandomOrgClient:
    """random.org JSON-RPC client (generateDecimalFractions).
    One POST per fetch, no retries; every failure becomes RandomSourceError.
    """
    _ids = itertools.count(1)

    def __init__(self, api_key, endpoint=RANDOM_ORG_URL, timeout=10.0, session=None):
        self.api_key = api_key
        self.endpoint = endpoint
        self.timeout = timeout
        self._session = session or requests.Session()
        self.bits_left: Optional[int] = None
        self.requests_left: Optional[int] = None
        self.advisory_delay = 0

    def _invoke(self, method, params):
        payload = {"jsonrpc": "2.0", "method": method,
                   "params": dict(params, apiKey=self.api_key), "id": next(self._ids)}
        try:
            r = self._session.post(self.endpoint, json=payload, timeout=self.timeout)
            r.raise_for_status()
            js = r.json()
        except requests.RequestException as e:
            raise RandomSourceError(f"request failed: {e}") from e
        except ValueError as e:
            raise RandomSourceError(f"malformed response: {e}") from e
        if not isinstance(js, dict):
            raise RandomSourceError("malformed response: expected a JSON object")
        err = js.get("error")
        if err:
            raise RandomSourceError(f"{err.get('message', 'unknown error')} (code {err.get('code')})")
        result = js.get("result")
        if not isinstance(result, dict):
            raise RandomSourceError("malformed response: missing result")
        return result

    def fetch_decimals(self, count: int, decimal_places: int = 5) -> List[float]:
        if not isinstance(count, int) or not 0 < count <= MAX_DECIMALS_PER_REQUEST:
            raise ValueError(f"count must be in 1..{MAX_DECIMALS_PER_REQUEST}, got {count!r}")
        if not 1 <= decimal_places <= 14:
            raise ValueError(f"decimal_places must be in 1..14, got {decimal_places!r}")
        result = self._invoke("generateDecimalFractions",
                              {"n": count, "decimalPlaces": decimal_places, "replacement": True})
        data = (result.get("random") or {}).get("data")
        if not isinstance(data, list) or len(data) != count:
            got = len(data) if isinstance(data, list) else None
            raise RandomSourceError(f"expected {count} values, got {got}")
        try:
            values = [float(v) for v in data]
        except (TypeError, ValueError) as e:
            raise RandomSourceError(f"non-numeric value in response: {e}") from e
        if any(not 0.0 <= v < 1.0 for v in values):
            raise RandomSourceError("value outside [0,1) in response")
        self.bits_left = result.get("bitsLeft", self.bits_left)
        self.requests_left = result.get("requestsLeft", self.requests_left)
        self.advisory_delay = result.get("advisoryDelay", 0)
        logger.debug("fetched %d decimals, %s requests left", count, self.requests_left)
        return values

    def get_usage(self) -> Usage:
        result = self._invoke("getUsage", {})
        try:
            usage = Usage(str(result["status"]), int(result["bitsLeft"]), int(result["requestsLeft"]))
        except (KeyError, TypeError, ValueError) as e:
            raise RandomSourceError(f"malformed usage response: {e}") from e
        self.bits_left, self.requests_left = usage.bits_left, usage.requests_left
        return usage

    def close(self):
        self._session.close()
