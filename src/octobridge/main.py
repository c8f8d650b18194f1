"""FastAPI application entry point for the bridge.

This module wires the bridge components together and exposes:
- POST {path}/webhook: GitHub webhook ingress
- GET {path}/login: start the OAuth flow for a chat account
- GET {path}/authorize: OAuth callback that links the account
- GET /health: liveness probe
- GET /metrics: Prometheus metrics

Signature validation of webhook deliveries happens in front of this
service, so the endpoint trusts incoming requests.

Run locally with:
    uvicorn octobridge.main:create_app --factory
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import PlainTextResponse, RedirectResponse

from . import __version__
from .config import BridgeSettings, get_settings
from .events.metrics import BridgeMetrics, generate_metrics_output, get_metrics
from .github.credentials import CredentialStore, InMemoryCredentialStore
from .github.errors import GitHubAPIError
from .github.gateway import AuthGateway
from .github.http import GitHubTransport
from .github.oauth import TokenClient
from .handlers import register_default_handlers
from .notifier import ChannelSender, LoggingChannelSender, Notifier
from .replies.capture import PageCapture
from .replies.dispatcher import ActionDispatcher
from .replies.markdown import MediaTransformer
from .replies.registry import ReplyRegistry
from .webhook.handler import InvalidWebhookError, WebhookReceiver
from .webhook.router import EventRouter

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def _redact_secret(value: Optional[str], visible_chars: int = 4) -> str:
    """Redact a secret value, showing only the first few characters.

    Args:
        value: The secret value to redact.
        visible_chars: Number of characters to show at the start.

    Returns:
        Redacted string with asterisks replacing hidden characters.
    """
    if not value:
        return "<unset>"
    if len(value) <= visible_chars:
        return "*" * len(value)
    return value[:visible_chars] + "*" * (len(value) - visible_chars)


def _log_configuration(settings: BridgeSettings) -> None:
    """Log configuration values with secrets redacted."""
    logger.info("Bridge configuration:")
    logger.info(f"  Path: {settings.path}")
    logger.info(f"  OAuth App ID: {settings.app_id or '<unset>'}")
    logger.info(f"  OAuth App Secret: {_redact_secret(settings.app_secret)}")
    logger.info(f"  Request Timeout (ms): {settings.request_timeout}")
    logger.info(f"  Reply Timeout (ms): {settings.reply_timeout}")
    logger.info(f"  Reply Cache Size: {settings.reply_cache_size}")
    logger.info(f"  Message Prefix: {settings.message_prefix!r}")
    logger.info(f"  Host: {settings.host}")
    logger.info(f"  Port: {settings.port}")


def build_notifier(
    settings: BridgeSettings,
    credentials: Optional[CredentialStore] = None,
    sender: Optional[ChannelSender] = None,
    router: Optional[EventRouter] = None,
    transport: Optional[GitHubTransport] = None,
    media: Optional[MediaTransformer] = None,
    capture: Optional[PageCapture] = None,
    metrics: Optional[BridgeMetrics] = None,
) -> Notifier:
    """Wire all bridge dependencies into a Notifier.

    Collaborators that are not given fall back to in-memory or logging
    implementations suitable for local development.
    """
    if transport is None:
        transport = GitHubTransport(timeout=settings.request_timeout_seconds)
    if router is None:
        router = EventRouter()
        register_default_handlers(router)

    gateway = AuthGateway(
        credentials=credentials or InMemoryCredentialStore(),
        tokens=TokenClient(settings.app_id, settings.app_secret, transport),
        transport=transport,
        metrics=metrics,
    )
    dispatcher = ActionDispatcher(
        gateway=gateway,
        reply_footer=settings.reply_footer,
        command_prefix=settings.command_prefix,
        media=media,
        capture=capture,
        metrics=metrics,
    )
    registry = ReplyRegistry(
        ttl=settings.reply_timeout_seconds,
        max_entries=settings.reply_cache_size,
        metrics=metrics,
    )
    return Notifier(
        router=router,
        registry=registry,
        dispatcher=dispatcher,
        sender=sender or LoggingChannelSender(),
        message_prefix=settings.message_prefix,
        metrics=metrics,
    )


def create_app(
    settings: Optional[BridgeSettings] = None,
    notifier: Optional[Notifier] = None,
    metrics: Optional[BridgeMetrics] = None,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        settings: Bridge settings; read from the environment if omitted.
        notifier: Preassembled notifier; built from settings if omitted.
        metrics: Metrics container; the global one if omitted.
    """
    settings = settings or get_settings()
    metrics = metrics or get_metrics()
    notifier = notifier or build_notifier(settings, metrics=metrics)
    receiver = WebhookReceiver()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Bridge starting up...")
        _log_configuration(settings)
        yield
        logger.info("Bridge shutting down...")
        await notifier.dispatcher.gateway.close()
        logger.info("Bridge shutdown complete")

    app = FastAPI(
        title="octobridge",
        description="GitHub webhook notifications and quick actions for chat",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.notifier = notifier
    app.state.metrics = metrics

    @app.get("/health")
    async def health():
        """Liveness probe endpoint."""
        return {"status": "healthy"}

    @app.get("/metrics", response_class=PlainTextResponse)
    async def metrics_endpoint():
        """Prometheus metrics endpoint."""
        return generate_metrics_output(metrics.registry).decode("utf-8")

    base = settings.path.rstrip("/")
    gateway = notifier.dispatcher.gateway

    @app.get(f"{base}/login")
    async def oauth_login(account_id: str, request: Request):
        """Redirect a chat user to GitHub's authorization page."""
        callback = str(request.url_for("oauth_callback"))
        return RedirectResponse(
            gateway.begin_authorization(account_id, redirect_uri=callback)
        )

    @app.get(f"{base}/authorize", name="oauth_callback")
    async def oauth_callback(code: str, state: str):
        """OAuth callback: link the account the ``state`` was issued for."""
        account_id = gateway.claim_authorization(state)
        if account_id is None:
            logger.warning("Rejected unknown or expired authorization state")
            raise HTTPException(status_code=403, detail="invalid state")

        try:
            await gateway.link_account(account_id, code)
        except GitHubAPIError as e:
            logger.warning(
                "Authorization failed",
                extra={"account_id": account_id, "error": str(e)},
            )
            raise HTTPException(status_code=400, detail="authorization failed")

        if settings.redirect:
            return RedirectResponse(settings.redirect)
        return {"status": "linked", "account_id": account_id}

    @app.post(f"{base}/webhook")
    async def github_webhook(request: Request):
        """GitHub webhook receiver endpoint.

        Returns:
            dict: Whether a handler claimed the event.
        """
        body = await request.body()
        try:
            envelope = receiver.parse(request.headers, body)
        except InvalidWebhookError as e:
            logger.warning("Rejected webhook delivery", extra={"error": str(e)})
            raise HTTPException(status_code=400, detail=str(e))

        result = await notifier.handle_event(envelope)
        if result is None:
            return {"status": "ignored", "event": envelope.route}
        return {"status": "handled", "event": envelope.route}

    return app


if __name__ == "__main__":
    import uvicorn

    dev_settings = get_settings()
    uvicorn.run(
        "octobridge.main:create_app",
        factory=True,
        host=dev_settings.host,
        port=dev_settings.port,
        reload=True,
    )
