"""Async client for the Manapool seller API.

Example:
    async with ManapoolClient(token, email) as client:
        account = await client.get_seller_account()
        page = await client.get_seller_inventory(InventoryOptions(limit=100))

Every typed operation builds a :class:`RequestDescriptor`, hands it to the
shared :class:`RequestExecutor` and decodes the body into a pydantic model.
"""

import logging
import os
from typing import Any, Mapping, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel

from manapool.config import ClientConfig
from manapool.context import CallContext
from manapool.diagnostics import DiagnosticsSink
from manapool.errors import ValidationError
from manapool.models import (
    Account,
    InventoryItem,
    InventoryItemResponse,
    InventoryOptions,
    InventoryResponse,
)
from manapool.request import Params, RequestDescriptor
from manapool.resilience.backoff import BackoffPolicy, ExponentialBackoff
from manapool.resilience.classifier import decode_response
from manapool.resilience.executor import RequestExecutor
from manapool.resilience.models import SleepFunc
from manapool.resilience.rate_limit import TokenBucketLimiter

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

ACCESS_TOKEN_ENV = "MANAPOOL_ACCESS_TOKEN"
EMAIL_ENV = "MANAPOOL_EMAIL"


class ManapoolClient:
    """Client for the Manapool seller API.

    Configuration is resolved once at construction and never changes. All
    concurrent calls share one rate limiter and one connection pool.

    Args:
        access_token: API access token
        email: Email of the account the token belongs to
        config: Base configuration (defaults to ``ClientConfig()``)
        http_client: Transport override; left open by :meth:`aclose`. Its own
            timeout applies; ``config.timeout`` only configures the owned client.
        diagnostics: Sink for per-request debug/error events
        backoff: Retry delay policy (defaults to exponential from config)
        limiter: Rate limiter (defaults to one built from config)
        sleep_func: Injectable async sleep used for backoff and limiter waits
        **overrides: ``ClientConfig`` field values applied on top of ``config``
    """

    def __init__(
        self,
        access_token: str,
        email: str,
        *,
        config: Optional[ClientConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        diagnostics: Optional[DiagnosticsSink] = None,
        backoff: Optional[BackoffPolicy] = None,
        limiter: Optional[TokenBucketLimiter] = None,
        sleep_func: Optional[SleepFunc] = None,
        **overrides: Any,
    ):
        if not access_token:
            raise ValidationError("access_token", "must not be empty")
        if not email:
            raise ValidationError("email", "must not be empty")

        config = config or ClientConfig()
        if overrides:
            config = config.with_overrides(**overrides)
        self.config = config

        self._access_token = access_token
        self._email = email
        self._owns_http_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=config.timeout)
        if self._owns_http_client:
            logger.debug("Created owned HTTP client for %s", config.base_url)

        self.limiter = limiter or TokenBucketLimiter(
            config.requests_per_second,
            config.burst,
            sleep_func=sleep_func,
        )
        self._executor = RequestExecutor(
            self._http,
            base_url=config.base_url,
            # A caller-supplied client keeps its own timeout.
            timeout=config.timeout if self._owns_http_client else None,
            max_retries=config.max_retries,
            limiter=self.limiter,
            backoff=backoff
            or ExponentialBackoff(
                config.initial_backoff,
                max_delay=config.max_backoff,
                jitter=config.backoff_jitter,
                honor_retry_after=config.honor_retry_after,
            ),
            diagnostics=diagnostics,
            sleep_func=sleep_func,
        )

    @classmethod
    def from_env(
        cls,
        env: Optional[Mapping[str, str]] = None,
        **kwargs: Any,
    ) -> "ManapoolClient":
        """Build a client from ``MANAPOOL_*`` environment variables.

        ``MANAPOOL_ACCESS_TOKEN`` and ``MANAPOOL_EMAIL`` supply credentials;
        the remaining variables are read by :meth:`ClientConfig.from_env`.
        Keyword arguments are passed through to the constructor.

        Raises:
            ValidationError: If credentials are missing.
        """
        env = os.environ if env is None else env
        access_token = env.get(ACCESS_TOKEN_ENV, "")
        email = env.get(EMAIL_ENV, "")
        if not access_token:
            raise ValidationError("access_token", f"{ACCESS_TOKEN_ENV} is not set")
        if not email:
            raise ValidationError("email", f"{EMAIL_ENV} is not set")
        if "config" not in kwargs:
            kwargs["config"] = ClientConfig.from_env(env)
        return cls(access_token, email, **kwargs)

    @property
    def executor(self) -> RequestExecutor:
        return self._executor

    def _default_headers(self) -> dict[str, str]:
        return {
            self.config.access_token_header: self._access_token,
            self.config.email_header: self._email,
            "User-Agent": self.config.user_agent,
            "Accept": "application/json",
        }

    def build_request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Params] = None,
        json: Any = None,
    ) -> RequestDescriptor:
        """Build a descriptor carrying the client's auth and identity headers."""
        return RequestDescriptor.build(
            method,
            path,
            params=params,
            json_body=json,
            headers=self._default_headers(),
        )

    async def execute(
        self,
        descriptor: RequestDescriptor,
        ctx: Optional[CallContext] = None,
    ) -> bytes:
        """Run ``descriptor`` through the rate limit / retry pipeline.

        Returns:
            Raw body of the successful response.

        Raises:
            APIError: The API answered with a terminal or exhausted error status.
            NetworkError: Transport failure, or ``ctx`` fired.
        """
        return await self._executor.execute(descriptor, ctx)

    async def _get(
        self,
        path: str,
        model: Type[ModelT],
        ctx: Optional[CallContext],
        params: Optional[Params] = None,
    ) -> ModelT:
        body = await self.execute(self.build_request("GET", path, params=params), ctx)
        return decode_response(body, model)

    # ------------------------------------------------------------------
    # Typed operations
    # ------------------------------------------------------------------

    async def get_seller_account(self, ctx: Optional[CallContext] = None) -> Account:
        """Fetch the authenticated seller's account."""
        return await self._get("account", Account, ctx)

    async def get_seller_inventory(
        self,
        options: Optional[InventoryOptions] = None,
        ctx: Optional[CallContext] = None,
    ) -> InventoryResponse:
        """Fetch one page of the seller's inventory.

        Args:
            options: Limit/offset; validated (and a zero limit defaulted)
                before any request is sent.
            ctx: Call context.

        Raises:
            ValidationError: If the options are out of range, or the response
                does not match the expected shape.
        """
        options = options or InventoryOptions()
        options.validate()
        return await self._get(
            "seller/inventory",
            InventoryResponse,
            ctx,
            params=options.to_params(),
        )

    async def get_inventory_by_tcgsku(
        self,
        sku: int,
        ctx: Optional[CallContext] = None,
    ) -> InventoryItem:
        """Fetch the inventory item listed under a TCGplayer SKU."""
        if sku <= 0:
            raise ValidationError("sku", "sku must be positive")
        envelope = await self._get(
            f"seller/inventory/tcgsku/{sku}",
            InventoryItemResponse,
            ctx,
        )
        return envelope.inventory

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_http_client:
            await self._http.aclose()
            logger.debug("Closed owned HTTP client")

    async def __aenter__(self) -> "ManapoolClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    def __repr__(self) -> str:
        return f"ManapoolClient(email=****, base_url={self.config.base_url!r})"
