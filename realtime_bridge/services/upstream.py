"""
Server-side calls to the services behind the bridge routes.

These helpers hold the standard OpenAI API key and the webhook URLs; the client
only ever reaches them through the FastAPI routes in ``realtime_bridge.main``.
Every request runs ``requests`` in a worker thread.
"""

import asyncio
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests

from realtime_bridge.config.constants import (
    DATA_ANALYZER_INSTRUCTIONS,
    DOWNLOADS_DIRNAME,
    LOGGER_NAME,
    UPSTREAM_TIMEOUT,
)
from realtime_bridge.config.settings import Settings
from realtime_bridge.errors import UpstreamError
from realtime_bridge.models.proxy_schemas import DataAnalyzerResponse

logger = logging.getLogger(LOGGER_NAME)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9._-]")


def _auth_headers(settings: Settings) -> Dict[str, str]:
    if not settings.openai_api_key:
        raise UpstreamError("OPENAI_API_KEY is not configured", status_code=500)
    return {"Authorization": f"Bearer {settings.openai_api_key}"}


async def _request(method: str, url: str, **kwargs) -> requests.Response:
    kwargs.setdefault("timeout", UPSTREAM_TIMEOUT)
    try:
        return await asyncio.to_thread(requests.request, method, url, **kwargs)
    except requests.RequestException as e:
        raise UpstreamError(f"{method} {url} failed: {e}") from e


async def create_realtime_session(settings: Settings, language: Optional[str] = None) -> Dict[str, Any]:
    """
    Mint an ephemeral Realtime session with the server's standard API key.

    Args:
        settings: Server settings (API key, model, voice, instructions...)
        language: Input transcription language requested by the client

    Returns:
        The session object returned by the Realtime API, including ``client_secret``

    Raises:
        UpstreamError: With the upstream status code when the API rejects the request
    """
    headers = _auth_headers(settings)
    headers["Content-Type"] = "application/json"
    logger.info(f"Minting realtime session (model={settings.model}, language={language or settings.default_language})")

    response = await _request(
        "POST",
        f"{settings.realtime_base_url.rstrip('/')}/sessions",
        headers=headers,
        json=settings.session_request(language),
    )
    if not response.ok:
        logger.error(f"Realtime session request failed: {response.status_code}")
        raise UpstreamError(response.text, status_code=response.status_code)
    return response.json()


def first_webhook_output(body: Any) -> Any:
    """Extract ``body[0].output`` from an n8n-style webhook answer, or None."""
    if isinstance(body, list) and body and isinstance(body[0], dict):
        return body[0].get("output") or None
    return None


async def call_webhook(url: Optional[str], message: str, user: Optional[str] = None) -> Any:
    """
    Forward ``{message, user}`` to a webhook and return its first output.

    Raises:
        UpstreamError: If the webhook is not configured or answers with a failure
    """
    if not url:
        raise UpstreamError("Webhook URL is not configured", status_code=503)

    response = await _request(
        "POST",
        url,
        json={"message": message, "user": user},
        headers={"Content-Type": "application/json"},
    )
    if not response.ok:
        raise UpstreamError(response.text, status_code=response.status_code)
    try:
        body = response.json()
    except ValueError:
        body = None
    return first_webhook_output(body)


async def lookup_prices(settings: Settings, item: str, location: Optional[str] = None) -> Any:
    """
    Ask the price lookup service for store prices of ``item``.

    Returns:
        The service JSON, normally ``{"item": str, "stores": [...]}``
    """
    if not settings.price_lookup_webhook_url:
        raise UpstreamError("Price lookup webhook URL is not configured", status_code=503)

    payload = {"item": item}
    if location:
        payload["location"] = location
    response = await _request(
        "POST",
        settings.price_lookup_webhook_url,
        json=payload,
        headers={"Content-Type": "application/json"},
    )
    if not response.ok:
        raise UpstreamError(response.text, status_code=response.status_code)
    try:
        return response.json()
    except ValueError as e:
        raise UpstreamError("Price lookup returned a non-JSON body", status_code=502) from e


# ---------------------------------------------------------------------------
# Data analyzer (Responses API + code interpreter)
# ---------------------------------------------------------------------------

def normalize_query(value: Any) -> str:
    """
    Reduce the ``query`` field of a data analyzer request to plain text.

    Strings are stripped; objects contribute ``user_query`` or ``name``; lists
    contribute their first non-empty element.
    """
    if not value:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, dict):
        for key in ("user_query", "name"):
            candidate = value.get(key)
            if isinstance(candidate, str) and candidate.strip():
                return candidate.strip()
        return ""
    if isinstance(value, list):
        for element in value:
            text = normalize_query(element)
            if text:
                return text
        return ""
    return str(value).strip()


def sanitize_filename(raw_path: str) -> str:
    cleaned = _UNSAFE_FILENAME_CHARS.sub("", raw_path.split("/")[-1]).strip().lower()
    return cleaned or "file"


def ephemeral_dir(settings: Settings) -> Path:
    """Directory for generated files: IMAGE_SAVE_PATH, then TEMP, then the OS temp dir."""
    return Path(settings.image_save_path or os.getenv("TEMP") or tempfile.gettempdir())


async def create_response(settings: Settings, input_text: str) -> Dict[str, Any]:
    """
    Run the query through the Responses API with the code interpreter enabled.

    Returns:
        ``{"message": str, "container_id": Optional[str]}``
    """
    headers = _auth_headers(settings)
    response = await _request(
        "POST",
        f"{settings.openai_api_base.rstrip('/')}/responses",
        headers=headers,
        json={
            "model": settings.data_analyzer_model,
            "input": input_text,
            "tools": [{"type": "code_interpreter", "container": {"type": "auto"}}],
            "instructions": DATA_ANALYZER_INSTRUCTIONS,
        },
    )
    if not response.ok:
        raise UpstreamError(response.text, status_code=response.status_code)

    result = {"message": "", "container_id": None}
    message_parts: List[str] = []
    for item in response.json().get("output") or []:
        if item.get("type") == "code_interpreter_call":
            result["container_id"] = item.get("container_id")
        elif item.get("type") == "message" and item.get("content"):
            first = item["content"][0]
            if first.get("type") == "output_text":
                message_parts.append(first.get("text", ""))
    result["message"] = "".join(message_parts)
    return result


async def retrieve_container_files(settings: Settings, container_id: str) -> Dict[str, Any]:
    """List the files of a container, keeping one per sanitized filename."""
    response = await _request(
        "GET",
        f"{settings.openai_api_base.rstrip('/')}/containers/{container_id}/files",
        headers=_auth_headers(settings),
    )
    if not response.ok:
        raise UpstreamError(response.text, status_code=response.status_code)

    files = []
    seen_names = set()
    for entry in response.json().get("data") or []:
        filename = sanitize_filename(entry.get("path") or "")
        if filename in seen_names:
            continue
        seen_names.add(filename)
        files.append({"id": entry.get("id") or "", "name": filename})
    return {"container_id": container_id, "files": files}


async def download_container_files(settings: Settings, container_files: Dict[str, Any]) -> List[str]:
    """Download every listed container file into the ephemeral downloads directory."""
    container_id = container_files["container_id"]
    download_dir = ephemeral_dir(settings) / DOWNLOADS_DIRNAME
    download_dir.mkdir(parents=True, exist_ok=True)

    saved_paths = []
    for entry in container_files["files"]:
        url = f"{settings.openai_api_base.rstrip('/')}/containers/{container_id}/files/{entry['id']}/content"
        response = await _request("GET", url, headers=_auth_headers(settings))
        if response.status_code != 200:
            raise UpstreamError(
                f"Failed to download file {entry['id']} (status {response.status_code})",
                status_code=response.status_code,
            )
        file_path = download_dir / entry["name"]
        file_path.write_bytes(response.content)
        saved_paths.append(str(file_path))
        logger.info(f"Saved container file: {file_path}")
    return saved_paths


async def data_analyzer(settings: Settings, query: str) -> DataAnalyzerResponse:
    """
    Answer a data question and collect the files the code interpreter produced.

    Listing or download failures degrade to an explanatory answer without files.
    """
    response = await create_response(settings, query)
    message = response["message"]
    container_id = response["container_id"]
    result = DataAnalyzerResponse(assistant_response=message)

    if container_id:
        try:
            container_files = await retrieve_container_files(settings, container_id)
        except UpstreamError as e:
            logger.warning(f"Could not list container files: {e}")
            result.assistant_response = f"{message}. Unable to list files for processing."
            return result

        if container_files["files"]:
            try:
                result.file_paths = await download_container_files(settings, container_files)
            except (UpstreamError, OSError) as e:
                logger.warning(f"Could not download container files: {e}")
                result.assistant_response = (
                    f"{message}. An unexpected error occurred while creating the files. "
                    "Please try again later."
                )
                return result

    return result
