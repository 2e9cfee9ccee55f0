"""HTTP surface: health probe, reviewer assignment and GitHub webhook."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from src.balancer import BalancerError, ReviewerBalancer
from src.board import BoardError
from src.chat import ChatNotificationError
from src.config import Settings
from src.github_client import GitHubApiError, GitHubInputError, build_github_client
from src.store import SqliteReviewerStore, StoreError
from src.webhook import (
    EVENT_HEADER,
    SIGNATURE_HEADER,
    WebhookHandler,
    WebhookPayloadError,
    verify_signature,
)

logger = logging.getLogger(__name__)

CORS_ALLOWED_METHODS = ["POST", "GET", "PUT", "DELETE", "OPTIONS"]


def _error_response(status_code: int, message: str) -> PlainTextResponse:
    """Plain-text error body, matching the success responses' format."""
    return PlainTextResponse(message, status_code=status_code)


def create_app(
    *,
    settings: Settings,
    balancer: ReviewerBalancer,
    webhook_handler: WebhookHandler | None = None,
    on_shutdown: list[httpx.Client] | None = None,
) -> FastAPI:
    """Build the FastAPI app around already-constructed collaborators."""

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        yield
        for client in on_shutdown or []:
            client.close()

    app = FastAPI(title="pr-reviewer-balancer", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=CORS_ALLOWED_METHODS,
        allow_headers=["X-Requested-With"],
    )

    @app.get("/", response_class=PlainTextResponse)
    def health_check() -> str:
        logger.debug("healthcheck ok")
        return "Ready"

    @app.post("/get-reviewer/{author}/{point}", response_class=PlainTextResponse)
    def get_reviewer(author: str, point: str) -> PlainTextResponse:
        try:
            score = int(point)
        except ValueError:
            logger.error("Could not convert point %r to an integer", point)
            return _error_response(400, f"invalid point '{point}'")
        try:
            assignment = balancer.assign(score, exclude_name=author)
        except (BalancerError, StoreError, ValueError) as error:
            logger.error("Could not get a reviewer to assign: %s", error)
            return _error_response(400, str(error))
        assignee = assignment.assignee
        return PlainTextResponse(f"{assignee.name},{assignee.contact_handle}")

    @app.post("/api/projectbot")
    async def github_webhook(request: Request) -> JSONResponse:
        body = await request.body()
        if not verify_signature(
            body=body,
            signature_header=request.headers.get(SIGNATURE_HEADER),
            secret=settings.webhook_secret,
        ):
            logger.error("Rejected webhook with invalid signature")
            return JSONResponse({"ok": False, "error": "invalid signature"}, status_code=404)
        if webhook_handler is None:
            return JSONResponse({"ok": False, "error": "webhook handling disabled"}, status_code=503)

        try:
            payload = json.loads(body)
        except (UnicodeDecodeError, json.JSONDecodeError) as error:
            logger.error("Could not parse webhook body: %s", error)
            return JSONResponse({"ok": False, "error": "invalid JSON"}, status_code=400)
        if not isinstance(payload, dict):
            return JSONResponse({"ok": False, "error": "expected JSON object"}, status_code=400)

        event_type = request.headers.get(EVENT_HEADER, "")
        try:
            outcome = await run_in_threadpool(webhook_handler.handle, event_type, payload)
        except (WebhookPayloadError, GitHubInputError, BalancerError, StoreError) as error:
            logger.error("Failed handling %s event: %s", event_type, error)
            return JSONResponse({"ok": False, "error": str(error)}, status_code=400)
        except GitHubApiError as error:
            logger.error("GitHub call failed for %s event: %s", event_type, error)
            return JSONResponse({"ok": False, "error": str(error)}, status_code=error.status_code)
        except BoardError as error:
            logger.error("Project board update failed: %s", error)
            return JSONResponse({"ok": False, "error": str(error)}, status_code=404)
        except ChatNotificationError as error:
            logger.error("Chat notification failed: %s", error)
            return JSONResponse({"ok": False, "error": str(error)}, status_code=502)
        except httpx.HTTPError as error:
            logger.error("GitHub request failed for %s event: %s", event_type, error)
            return JSONResponse(
                {"ok": False, "error": f"GitHub unreachable: {error}"}, status_code=502
            )

        logger.info("Handled %s event: %s", event_type, outcome.message)
        return JSONResponse({"ok": True, "message": outcome.message}, status_code=outcome.status_code)

    return app


def build_app(settings: Settings) -> FastAPI:
    """Wire production collaborators from settings."""
    store = SqliteReviewerStore(settings.reviewer_db_path)
    balancer = ReviewerBalancer(store, threshold=settings.rebalance_threshold)
    github_client = build_github_client()
    chat_client = httpx.Client(timeout=10)
    handler = WebhookHandler(
        settings=settings,
        balancer=balancer,
        github_client=github_client,
        chat_client=chat_client,
    )
    return create_app(
        settings=settings,
        balancer=balancer,
        webhook_handler=handler,
        on_shutdown=[github_client, chat_client],
    )
