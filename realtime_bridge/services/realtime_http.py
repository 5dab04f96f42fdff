"""
HTTP calls made by the session client: ephemeral credential, SDP exchange and
tool proxy requests.

Requests are issued with ``requests`` in a worker thread so the event loop keeps
serving the data channel while a call is in flight.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import requests
from pydantic import ValidationError

from realtime_bridge.errors import CredentialError, NegotiationError
from realtime_bridge.config.constants import (
    CREDENTIAL_TIMEOUT,
    DEFAULT_TOOL_TIMEOUT,
    LOGGER_NAME,
    SDP_TIMEOUT,
)
from realtime_bridge.models.openai_schemas import RealtimeSessionResponse

logger = logging.getLogger(LOGGER_NAME)


def _json_or_none(response: requests.Response) -> Optional[Any]:
    try:
        return response.json()
    except ValueError:
        return None


async def fetch_ephemeral_key(token_url: str, language: str,
                              timeout: float = CREDENTIAL_TIMEOUT) -> str:
    """
    Fetch a short-lived realtime credential from the bridge server.

    Args:
        token_url: URL of the credential endpoint (``GET /session``)
        language: Locale forwarded as the ``lang`` query parameter
        timeout: Request timeout in seconds

    Returns:
        The ephemeral secret value

    Raises:
        CredentialError: If the endpoint fails or the response has no secret
    """
    logger.info(f"Requesting ephemeral key for language: {language}")
    try:
        response = await asyncio.to_thread(
            requests.get, token_url, params={"lang": language}, timeout=timeout
        )
    except requests.RequestException as e:
        raise CredentialError(f"Could not reach credential endpoint: {e}") from e

    body = _json_or_none(response)
    if not response.ok:
        message = body.get("error") if isinstance(body, dict) else None
        raise CredentialError(
            message or f"Failed to get session token (status {response.status_code})"
        )

    try:
        session = RealtimeSessionResponse.model_validate(body)
    except ValidationError as e:
        raise CredentialError("No ephemeral key in response") from e

    logger.debug("Ephemeral key received")
    return session.client_secret.value


async def exchange_sdp(base_url: str, model: str, ephemeral_key: str, offer_sdp: str,
                       timeout: float = SDP_TIMEOUT) -> str:
    """
    Post the local SDP offer to the Realtime API and return the SDP answer.

    Raises:
        NegotiationError: On transport failure or a non-success status
    """
    logger.info(f"Sending SDP offer for model: {model}")
    try:
        response = await asyncio.to_thread(
            requests.post,
            base_url,
            params={"model": model},
            data=offer_sdp,
            headers={
                "Authorization": f"Bearer {ephemeral_key}",
                "Content-Type": "application/sdp",
            },
            timeout=timeout,
        )
    except requests.RequestException as e:
        raise NegotiationError(f"SDP exchange failed: {e}") from e

    if not response.ok:
        raise NegotiationError(f"SDP exchange failed: {response.status_code} {response.text}")

    logger.debug("SDP answer received")
    return response.text


async def post_json(url: str, payload: Dict[str, Any],
                    timeout: float = DEFAULT_TOOL_TIMEOUT) -> Any:
    """
    POST a JSON body and return the decoded JSON response.

    Raises:
        requests.HTTPError: On a non-success status
        requests.RequestException: On transport failure
    """
    logger.debug(f"POST {url}")
    response = await asyncio.to_thread(
        requests.post,
        url,
        json=payload,
        headers={"Content-Type": "application/json"},
        timeout=timeout,
    )
    response.raise_for_status()
    return response.json()
