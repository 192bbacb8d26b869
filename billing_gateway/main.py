"""Billing Gateway - FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from billing_gateway.config import settings
from billing_gateway.dependencies import close_store
from billing_gateway.errors import MethodNotAllowed
from billing_gateway.routers import health, webhooks

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await close_store()


app = FastAPI(
    title="Billing Gateway",
    description="Subscription webhook receiver for payment-provider notifications",
    version=health.VERSION,
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = webhooks.limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


async def _method_not_allowed_handler(request: Request, exc: MethodNotAllowed) -> Response:
    return Response(status_code=405, headers={"Allow": "POST"})


app.add_exception_handler(MethodNotAllowed, _method_not_allowed_handler)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers (the webhook authenticates by signature, never by API key)
app.include_router(health.router)
app.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])
