"""
Supabase Edge Functions client

Edge functions are invoked with a POST to {SUPABASE_URL}/functions/v1/<name>
carrying the anon key as ``apikey`` and the caller's access token as the
bearer, so the function runs with the caller's identity.
"""
import logging
import httpx
from typing import Dict, Any, Optional

from app.core.exceptions import TransportError, ServerRejectedError, AuthenticationError

logger = logging.getLogger(__name__)


class EdgeFunctionClient:
    """Thin wrapper over a shared httpx.AsyncClient"""

    def __init__(self, http_client: httpx.AsyncClient, functions_url: str, anon_key: str):
        self.http_client = http_client
        self.functions_url = functions_url.rstrip("/")
        self.anon_key = anon_key

    def _get_headers(self, access_token: Optional[str]) -> Dict[str, str]:
        return {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {access_token or self.anon_key}",
            "Content-Type": "application/json",
            "Accept": "application/json"
        }

    async def invoke(self, name: str, body: Dict[str, Any], access_token: Optional[str] = None) -> Dict[str, Any]:
        """POST a JSON body to an edge function and return its JSON response"""
        try:
            response = await self.http_client.post(
                f"{self.functions_url}/{name}",
                json=body,
                headers=self._get_headers(access_token)
            )
        except httpx.RequestError as e:
            logger.error(f"Edge function {name} request failed: {e}")
            raise TransportError(f"Failed to reach {name}", {"function": name})

        if response.status_code == 401:
            raise AuthenticationError("Session rejected by edge function")

        if response.status_code >= 400:
            message = _error_message(response) or f"{name} failed"
            logger.warning(f"Edge function {name} returned {response.status_code}: {message}")
            raise ServerRejectedError(message, response.status_code, {"function": name})

        try:
            data = response.json()
        except ValueError:
            logger.error(f"Edge function {name} returned a non-JSON body")
            raise ServerRejectedError(f"{name} returned an invalid response", 502, {"function": name})

        if data is None:
            raise ServerRejectedError(f"{name} returned no data", 502, {"function": name})
        if not isinstance(data, dict):
            logger.error(f"Edge function {name} returned {type(data).__name__} instead of an object")
            raise ServerRejectedError(f"{name} returned an invalid response", 502, {"function": name})

        return data


def _error_message(response: httpx.Response) -> Optional[str]:
    try:
        data = response.json()
    except ValueError:
        return response.text or None

    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict):
            return error.get("message")
        return error or data.get("message")
    return None
