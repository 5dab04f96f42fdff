"""
FastAPI server for the realtime voice bridge.

The server keeps the standard OpenAI API key and the webhook URLs away from the
client. It mints short-lived Realtime sessions (``GET /session``) and proxies the
tool backends under ``/api``:

- ``POST /api/checaprecios``: store price lookup
- ``POST /api/dataanalyzer``: Responses API with the code interpreter
- ``POST /api/websearch`` and ``POST /api/rag``: n8n-style webhooks

Failures from upstream services are returned as ``{"error": ...}`` with the
upstream status code, or 500 when the service could not be reached.
"""

from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from realtime_bridge import __version__
from realtime_bridge.config.logging_config import configure_logging
from realtime_bridge.config.settings import Settings
from realtime_bridge.errors import UpstreamError
from realtime_bridge.models.proxy_schemas import (
    DataAnalyzerRequest,
    PriceLookupRequest,
    WebhookRequest,
    WebhookResponse,
)
from realtime_bridge.services import upstream

# Load settings (reads .env if it exists)
settings = Settings.from_env()

# Configure logging
logger = configure_logging()

NO_STORE = {"Cache-Control": "no-store"}

# Create FastAPI application
app = FastAPI(
    title="Realtime Voice Bridge",
    description="Ephemeral OpenAI Realtime sessions and tool proxies for the voice client",
    version=__version__,
)


def _error_response(error: Exception, status_code: int = 500, headers=None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": str(error)}, headers=headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Invalid request bodies are reported as 400 with a readable message."""
    messages = [f"{'.'.join(str(p) for p in err['loc'][1:]) or 'body'}: {err['msg']}" for err in exc.errors()]
    logger.warning(f"Invalid request to {request.url.path}: {messages}")
    return JSONResponse(status_code=400, content={"error": "; ".join(messages)})


@app.get("/session")
async def create_session(lang: Optional[str] = None):
    """Mint an ephemeral Realtime session with the server-side API key.

    Args:
        lang: Input transcription language (ISO-639-1); defaults to DEFAULT_LANGUAGE

    Returns:
        The Realtime session object, including ``client_secret.value``.
        Responses are never cached.
    """
    try:
        session = await upstream.create_realtime_session(settings, lang)
    except UpstreamError as e:
        logger.error(f"Session minting failed ({e.status_code}): {e}")
        return _error_response(e, e.status_code, headers=NO_STORE)
    except Exception as e:
        logger.error(f"Unexpected error minting session: {e}", exc_info=True)
        return _error_response(e, 500, headers=NO_STORE)
    return JSONResponse(content=session, headers=NO_STORE)


@app.post("/api/checaprecios")
async def checa_precios(body: PriceLookupRequest):
    """Look up store prices for an item; returns ``{item, stores[]}``."""
    try:
        return await upstream.lookup_prices(settings, body.item, body.location)
    except UpstreamError as e:
        logger.error(f"Price lookup failed: {e}")
        return _error_response(e, e.status_code)
    except Exception as e:
        logger.error(f"Unexpected error looking up prices: {e}", exc_info=True)
        return _error_response(e, 500)


@app.post("/api/dataanalyzer")
async def data_analyzer(body: DataAnalyzerRequest):
    """Answer a data question; returns ``{assistant_response, file_paths}``."""
    query = upstream.normalize_query(body.query)
    if not query:
        return JSONResponse(
            status_code=400,
            content={"error": "Body must include a non-empty 'query' string (or object with 'item')."},
        )
    try:
        result = await upstream.data_analyzer(settings, query)
    except UpstreamError as e:
        logger.error(f"Data analyzer failed: {e}")
        return _error_response(e, e.status_code)
    except Exception as e:
        logger.error(f"Unexpected error in data analyzer: {e}", exc_info=True)
        return _error_response(e, 500)
    return result.model_dump()


async def _proxy_webhook(url, body: WebhookRequest):
    try:
        data = await upstream.call_webhook(url, body.message, body.user)
    except UpstreamError as e:
        logger.error(f"Webhook call failed: {e}")
        return _error_response(e, e.status_code)
    except Exception as e:
        logger.error(f"Unexpected error calling webhook: {e}", exc_info=True)
        return _error_response(e, 500)
    return WebhookResponse(success=True, data=data).model_dump()


@app.post("/api/websearch")
async def web_search(body: WebhookRequest):
    """Forward a search request to the web search webhook."""
    return await _proxy_webhook(settings.web_search_webhook_url, body)


@app.post("/api/rag")
async def business_advice(body: WebhookRequest):
    """Forward a question to the business knowledge base webhook."""
    return await _proxy_webhook(settings.rag_webhook_url, body)


@app.api_route("/api/{path:path}", methods=["GET", "POST"])
async def api_not_found(path: str):
    return JSONResponse(status_code=404, content={"error": "Not found"})


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring system status.

    Returns:
        dict: Status information indicating the server is operational and which
        upstream services are configured.
    """
    return {
        "status": "healthy",
        "openai_api_key_configured": bool(settings.openai_api_key),
        "webhooks_configured": {
            "checaprecios": bool(settings.price_lookup_webhook_url),
            "websearch": bool(settings.web_search_webhook_url),
            "rag": bool(settings.rag_webhook_url),
        },
    }


@app.get("/")
async def root():
    """Root endpoint to display basic information about the API."""
    return {
        "name": "Realtime Voice Bridge",
        "description": "Ephemeral OpenAI Realtime sessions and tool proxies for the voice client",
        "version": __version__,
        "endpoints": {
            "/session": "Mint an ephemeral Realtime session (GET, ?lang=xx)",
            "/api/checaprecios": "Store price lookup (POST)",
            "/api/dataanalyzer": "Data analysis with the code interpreter (POST)",
            "/api/websearch": "Web search webhook (POST)",
            "/api/rag": "Business advice webhook (POST)",
            "/health": "Health check endpoint",
        },
    }


if __name__ == "__main__":
    import uvicorn

    logger.info(f"Starting server on http://{settings.host}:{settings.port}")
    uvicorn.run(app, host=settings.host, port=settings.port, http="h11")
