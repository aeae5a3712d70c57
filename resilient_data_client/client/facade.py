"""
DataClient: the single object applications call for remote data.

Every public coroutine returns an Envelope and never raises. A call is
routed to the primary or the secondary backend; on the primary path reads
consult the request cache, and cache misses and writes run each attempt
under the Timeout Guard inside the Retry/Backoff Controller. The secondary
path applies the deadline only and normalizes the raw response through the
Fallback Router.

Example:
    async with DataClient() as client:
        envelope = await client.get_articles(ArticleFilters(limit=5))
        if envelope.success:
            render(envelope.data)
        else:
            show_error(envelope.error.message)
"""

import asyncio
import copy
import logging
import time
from contextlib import nullcontext
from typing import Any, Awaitable, Callable, Iterable, Optional
from urllib.parse import quote

import httpx

from resilient_data_client.backends.primary import PrimaryBackend
from resilient_data_client.backends.router import FallbackRouter
from resilient_data_client.backends.secondary import SecondaryBackend
from resilient_data_client.backends.target import BackendTarget, Operation
from resilient_data_client.cache.request_cache import build_cache_key
from resilient_data_client.client.context import ClientContext
from resilient_data_client.config.settings import ClientSettings, ConfigurationError, get_settings
from resilient_data_client.errors.codes import ErrorCode
from resilient_data_client.errors.handlers import envelope_from_unexpected
from resilient_data_client.health.service import BackendHealthService, HealthStatus
from resilient_data_client.models.envelope import Envelope
from resilient_data_client.models.request import ArticleFilters, ArticleStatus, RequestDescriptor
from resilient_data_client.resilience.retry import RetryConfig, RetryController
from resilient_data_client.resilience.timeout import TimeoutGuard
from resilient_data_client.telemetry.service import TelemetryService, get_telemetry_service

logger = logging.getLogger(__name__)

DEFAULT_RELATED_LIMIT = 6


def _segment(value: Any) -> str:
    """Encode a value for use as a single URL path segment."""
    return quote(str(value), safe="")


class DataClient:
    """
    Facade over both data backends.

    Attributes:
        settings: Client settings
        context: Shared cache, token and routing state
        primary: Primary backend transport
        secondary: Secondary backend, or None when not configured
    """

    def __init__(
        self,
        settings: Optional[ClientSettings] = None,
        *,
        context: Optional[ClientContext] = None,
        primary: Optional[PrimaryBackend] = None,
        secondary: Optional[SecondaryBackend] = None,
        telemetry: Optional[TelemetryService] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        secondary_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            settings: Client settings; loaded from the environment when omitted
            context: Shared state; built from settings when omitted
            primary: Primary backend override
            secondary: Secondary backend override
            telemetry: Telemetry service; the global one is used when omitted
            transport: httpx transport for the primary backend (tests)
            secondary_transport: httpx transport for the secondary backend (tests)
        """
        self.settings = settings or get_settings()
        self.context = context or ClientContext.from_settings(self.settings)
        self.primary = primary or PrimaryBackend(
            self.settings.api_base_url,
            timeout_seconds=self.settings.request_timeout_seconds,
            transport=transport,
        )
        if secondary is None and self.settings.secondary_configured:
            secondary = SecondaryBackend(
                self.settings.secondary_url,
                self.settings.secondary_api_key,
                timeout_seconds=self.settings.request_timeout_seconds,
                transport=secondary_transport,
            )
        self.secondary = secondary
        self.telemetry = telemetry or get_telemetry_service()

        self.timeout_guard = TimeoutGuard(self.settings.request_timeout_seconds)
        self.retry = RetryController(RetryConfig.from_settings(self.settings))
        self.router = FallbackRouter(secondary, self.timeout_guard) if secondary else None

        self._inflight: dict[str, asyncio.Future] = {}
        self._initialized = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """
        Load the persisted token and apply the startup token policy.

        Safe to call more than once; only the first call has an effect.
        """
        if self._initialized:
            return
        self._initialized = True

        storage = self.context.token_store.storage
        connect = getattr(storage, "connect", None)
        if connect is not None:
            try:
                await connect()
            except Exception as e:
                logger.error(
                    "Failed to connect token storage",
                    extra={"extra_data": {"storage": type(storage).__name__, "error": str(e)}}
                )

        await self.context.token_store.load()
        if self.settings.invalidate_token_on_start and self.context.token_store.is_present():
            logger.info("Discarding persisted token at startup")
            await self.context.token_store.clear()

    async def aclose(self) -> None:
        """Close HTTP clients and disconnect token storage."""
        await self.primary.aclose()
        if self.secondary is not None:
            await self.secondary.aclose()
        disconnect = getattr(self.context.token_store.storage, "disconnect", None)
        if disconnect is not None:
            await disconnect()

    async def __aenter__(self) -> "DataClient":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Orchestration
    # ------------------------------------------------------------------

    def _target(self, operation: Operation) -> BackendTarget:
        target = self.context.selector.route(operation)
        if target == BackendTarget.SECONDARY and self.router is None:
            logger.warning(
                "Secondary routing requested but no secondary backend is configured",
                extra={"extra_data": {"operation": operation.value}}
            )
            return BackendTarget.PRIMARY
        return target

    def _span(self, target: BackendTarget, operation: Operation):
        if self.telemetry is None:
            return nullcontext()
        return self.telemetry.backend_span(target.value, operation.value)

    def _record(
        self,
        operation: Operation,
        target: BackendTarget,
        start_time: float,
        envelope: Envelope,
        cached: bool = False,
    ) -> None:
        if self.telemetry is None:
            return
        self.telemetry.log_request(
            operation=operation.value,
            backend=target.value,
            duration_ms=(time.perf_counter() - start_time) * 1000,
            success=envelope.success,
            cached=cached,
            error_kind=envelope.error.kind if envelope.error else None,
        )

    async def _dispatch(
        self,
        operation: Operation,
        descriptor: RequestDescriptor,
        secondary_fn: Optional[Callable[[SecondaryBackend], Awaitable[Any]]] = None,
    ) -> Envelope:
        """Route one logical call and return its envelope."""
        if secondary_fn is not None and self._target(operation) == BackendTarget.SECONDARY:
            return await self._call_secondary(operation, secondary_fn)
        return await self._request(operation, descriptor)

    async def _call_secondary(
        self,
        operation: Operation,
        fn: Callable[[SecondaryBackend], Awaitable[Any]],
    ) -> Envelope:
        start_time = time.perf_counter()
        with self._span(BackendTarget.SECONDARY, operation):
            try:
                envelope = await self.router.call(operation, fn)
            except Exception as e:
                envelope = envelope_from_unexpected(e, operation=operation.value)
        self._record(operation, BackendTarget.SECONDARY, start_time, envelope)
        return envelope

    async def _request(self, operation: Operation, descriptor: RequestDescriptor) -> Envelope:
        start_time = time.perf_counter()
        cached = False
        with self._span(BackendTarget.PRIMARY, operation):
            try:
                envelope, cached = await self._primary_call(operation, descriptor)
            except Exception as e:
                envelope = envelope_from_unexpected(e, operation=operation.value)
        self._record(operation, BackendTarget.PRIMARY, start_time, envelope, cached)
        return envelope

    async def _primary_call(
        self,
        operation: Operation,
        descriptor: RequestDescriptor,
    ) -> tuple[Envelope, bool]:
        """
        Run a primary call, consulting the cache for reads.

        Returns:
            The envelope and whether it was served from the cache
        """
        if not descriptor.is_read:
            return await self._attempt_with_retry(operation, descriptor), False

        # Authenticated reads are cached per token
        key = build_cache_key(
            descriptor.method,
            self.primary.build_url(descriptor.endpoint),
            descriptor.params,
            credential=self.context.token_store.value,
            scoped=descriptor.requires_auth,
        )
        hit = self.context.cache.lookup(key)
        if hit is not None:
            logger.debug(
                "Request cache hit",
                extra={"extra_data": {"operation": operation.value, "cache_key": key}}
            )
            return hit, True

        if self.settings.coalesce_inflight_reads:
            return await self._coalesced_fetch(key, operation, descriptor), False
        return await self._fetch_and_store(key, operation, descriptor), False

    async def _fetch_and_store(
        self,
        key: str,
        operation: Operation,
        descriptor: RequestDescriptor,
    ) -> Envelope:
        envelope = await self._attempt_with_retry(operation, descriptor)
        self.context.cache.store(key, envelope)
        return envelope

    async def _coalesced_fetch(
        self,
        key: str,
        operation: Operation,
        descriptor: RequestDescriptor,
    ) -> Envelope:
        """Share one in-flight attempt between concurrent identical reads."""
        future = self._inflight.get(key)
        if future is None:
            future = asyncio.ensure_future(self._fetch_and_store(key, operation, descriptor))
            self._inflight[key] = future
            future.add_done_callback(lambda _f: self._inflight.pop(key, None))
        else:
            logger.debug(
                "Joining in-flight request",
                extra={"extra_data": {"operation": operation.value, "cache_key": key}}
            )
        # A cancelled waiter must not cancel the shared attempt
        envelope = await asyncio.shield(future)
        return copy.deepcopy(envelope)

    async def _attempt_with_retry(
        self,
        operation: Operation,
        descriptor: RequestDescriptor,
    ) -> Envelope:
        async def attempt() -> Envelope:
            headers = self.context.token_store.authorization_header(descriptor.requires_auth)
            return await self.timeout_guard.run(
                lambda: self.primary.send(descriptor, headers),
                operation_name=operation.value,
            )

        return await self.retry.execute(attempt, operation_name=operation.value)

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    async def check_readiness(self, check_timeout: float = 5.0) -> HealthStatus:
        """Probe every dependency directly, bypassing cache and retry."""
        service = BackendHealthService(
            self.primary,
            self.secondary,
            self.context.token_store.storage,
            check_timeout=check_timeout,
        )
        return await service.check_readiness()

    async def health_check(self) -> Envelope:
        return await self._dispatch(
            Operation.HEALTH_CHECK,
            RequestDescriptor("/health"),
            lambda backend: backend.health_check(),
        )

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    async def _store_token_from(self, envelope: Envelope) -> None:
        if envelope.success and isinstance(envelope.data, dict) and envelope.data.get("token"):
            await self.context.token_store.save(str(envelope.data["token"]))

    async def login(self, email: str, password: str) -> Envelope:
        """Log in and keep the returned token for authenticated requests."""
        envelope = await self._dispatch(
            Operation.LOGIN,
            RequestDescriptor("/auth/login", "POST", body={"email": email, "password": password}),
        )
        await self._store_token_from(envelope)
        return envelope

    async def register(self, user: dict[str, Any]) -> Envelope:
        """
        Register a new user.

        Args:
            user: email, username, password and optional firstName/lastName
        """
        envelope = await self._dispatch(
            Operation.REGISTER,
            RequestDescriptor("/auth/register", "POST", body=user),
        )
        await self._store_token_from(envelope)
        return envelope

    async def get_profile(self) -> Envelope:
        return await self._dispatch(
            Operation.GET_PROFILE,
            RequestDescriptor("/auth/profile", requires_auth=True),
        )

    async def logout(self) -> None:
        """Forget the token in memory and in durable storage."""
        await self.context.token_store.clear()

    def is_authenticated(self) -> bool:
        return self.context.token_store.is_present()

    def get_token(self) -> Optional[str]:
        return self.context.token_store.value

    # ------------------------------------------------------------------
    # Articles
    # ------------------------------------------------------------------

    async def get_articles(self, filters: Optional[ArticleFilters] = None) -> Envelope:
        filters = filters or ArticleFilters()
        return await self._dispatch(
            Operation.GET_ARTICLES,
            RequestDescriptor("/articles", params=filters.to_query_params()),
            lambda backend: backend.get_articles(filters),
        )

    async def get_article(self, article_id: str) -> Envelope:
        return await self._dispatch(
            Operation.GET_ARTICLE,
            RequestDescriptor(f"/articles/{_segment(article_id)}"),
        )

    async def get_article_by_slug(self, slug: str) -> Envelope:
        return await self._dispatch(
            Operation.GET_ARTICLE_BY_SLUG,
            RequestDescriptor(f"/articles/slug/{_segment(slug)}"),
            lambda backend: backend.get_article_by_slug(slug),
        )

    async def create_article(self, article: dict[str, Any]) -> Envelope:
        return await self._dispatch(
            Operation.CREATE_ARTICLE,
            RequestDescriptor("/articles", "POST", body=article, requires_auth=True),
        )

    async def update_article(self, article_id: str, article: dict[str, Any]) -> Envelope:
        return await self._dispatch(
            Operation.UPDATE_ARTICLE,
            RequestDescriptor(
                f"/articles/{_segment(article_id)}", "PUT", body=article, requires_auth=True
            ),
        )

    async def delete_article(self, article_id: str) -> Envelope:
        return await self._dispatch(
            Operation.DELETE_ARTICLE,
            RequestDescriptor(f"/articles/{_segment(article_id)}", "DELETE", requires_auth=True),
        )

    async def get_featured_article(self) -> Envelope:
        return await self._dispatch(
            Operation.GET_FEATURED_ARTICLE,
            RequestDescriptor("/articles/featured/current"),
            lambda backend: backend.get_featured_article(),
        )

    async def set_featured_article(self, article_id: str) -> Envelope:
        return await self._dispatch(
            Operation.SET_FEATURED_ARTICLE,
            RequestDescriptor(
                f"/articles/{_segment(article_id)}/feature", "POST", requires_auth=True
            ),
        )

    async def unset_featured_article(self, article_id: str) -> Envelope:
        return await self._dispatch(
            Operation.UNSET_FEATURED_ARTICLE,
            RequestDescriptor(
                f"/articles/{_segment(article_id)}/feature", "DELETE", requires_auth=True
            ),
        )

    async def get_related_articles(
        self,
        article_id: str,
        limit: int = DEFAULT_RELATED_LIMIT,
        exclude_ids: Iterable[str] = (),
    ) -> Envelope:
        """
        Find articles related to the given one.

        Candidates are drawn from the same category first, then from
        articles sharing a tag, then from the same author, until `limit`
        articles are collected. The source article and `exclude_ids` are
        never included.

        Args:
            article_id: The source article
            limit: Maximum number of related articles
            exclude_ids: Additional article ids to leave out

        Returns:
            A successful envelope with the related articles, or a failed
            envelope when the source article cannot be fetched
        """
        start_time = time.perf_counter()
        try:
            envelope = await self._related_articles(article_id, limit, list(exclude_ids))
        except Exception as e:
            envelope = envelope_from_unexpected(e, operation=Operation.GET_RELATED_ARTICLES.value)
        self._record(Operation.GET_RELATED_ARTICLES, BackendTarget.PRIMARY, start_time, envelope)
        return envelope

    async def _related_articles(self, article_id: str, limit: int, exclude_ids: list[str]) -> Envelope:
        current = await self.get_article(article_id)
        if not current.success or not isinstance(current.data, dict):
            error = current.error
            return Envelope.fail(
                "Could not fetch current article for related articles",
                details={"cause": error.message} if error else None,
                kind=error.kind if error and error.kind else ErrorCode.CLIENT_ERROR.value,
                retryable=error.retryable if error else False,
                status=error.status if error else None,
            )

        article = current.data
        excluded = {article_id, *exclude_ids}
        related: list[dict[str, Any]] = []

        def take(envelope: Envelope) -> None:
            if not envelope.success or not isinstance(envelope.data, list):
                return
            for candidate in envelope.data:
                if len(related) >= limit:
                    return
                if not isinstance(candidate, dict):
                    continue
                candidate_id = candidate.get("id")
                if candidate_id in excluded:
                    continue
                excluded.add(candidate_id)
                related.append(candidate)

        def published(**kwargs: Any) -> ArticleFilters:
            return ArticleFilters(
                status=ArticleStatus.PUBLISHED,
                sort_by="publishedAt",
                sort_order="desc",
                **kwargs,
            )

        category_id = (article.get("category") or {}).get("id")
        if category_id and len(related) < limit:
            take(await self.get_articles(published(category_id=category_id, limit=limit * 2)))

        tag_names = [
            tag.get("name") for tag in article.get("tags") or []
            if isinstance(tag, dict) and tag.get("name")
        ]
        if tag_names and len(related) < limit:
            take(await self.get_articles(published(tags=tag_names, limit=limit * 2)))

        author_id = (article.get("author") or {}).get("id")
        if author_id and len(related) < limit:
            take(await self.get_articles(published(author_id=author_id, limit=limit)))

        return Envelope.ok(related[:limit])

    # ------------------------------------------------------------------
    # Authors
    # ------------------------------------------------------------------

    async def get_authors(self) -> Envelope:
        return await self._dispatch(
            Operation.GET_AUTHORS,
            RequestDescriptor("/authors"),
            lambda backend: backend.get_authors(),
        )

    async def get_author(self, author_id: str) -> Envelope:
        return await self._dispatch(
            Operation.GET_AUTHOR,
            RequestDescriptor(f"/authors/{_segment(author_id)}"),
        )

    async def create_author(self, author: dict[str, Any]) -> Envelope:
        return await self._dispatch(
            Operation.CREATE_AUTHOR,
            RequestDescriptor("/authors", "POST", body=author, requires_auth=True),
        )

    async def update_author(self, author_id: str, author: dict[str, Any]) -> Envelope:
        return await self._dispatch(
            Operation.UPDATE_AUTHOR,
            RequestDescriptor(
                f"/authors/{_segment(author_id)}", "PUT", body=author, requires_auth=True
            ),
        )

    async def delete_author(self, author_id: str) -> Envelope:
        return await self._dispatch(
            Operation.DELETE_AUTHOR,
            RequestDescriptor(f"/authors/{_segment(author_id)}", "DELETE", requires_auth=True),
        )

    # ------------------------------------------------------------------
    # Categories and tags
    # ------------------------------------------------------------------

    async def get_categories(self) -> Envelope:
        return await self._dispatch(
            Operation.GET_CATEGORIES,
            RequestDescriptor("/categories"),
            lambda backend: backend.get_categories(),
        )

    async def get_category(self, category_id: str) -> Envelope:
        return await self._dispatch(
            Operation.GET_CATEGORY,
            RequestDescriptor(f"/categories/{_segment(category_id)}"),
        )

    async def create_category(self, category: dict[str, Any]) -> Envelope:
        return await self._dispatch(
            Operation.CREATE_CATEGORY,
            RequestDescriptor("/categories", "POST", body=category, requires_auth=True),
        )

    async def update_category(self, category_id: str, category: dict[str, Any]) -> Envelope:
        return await self._dispatch(
            Operation.UPDATE_CATEGORY,
            RequestDescriptor(
                f"/categories/{_segment(category_id)}", "PUT", body=category, requires_auth=True
            ),
        )

    async def delete_category(self, category_id: str) -> Envelope:
        return await self._dispatch(
            Operation.DELETE_CATEGORY,
            RequestDescriptor(
                f"/categories/{_segment(category_id)}", "DELETE", requires_auth=True
            ),
        )

    async def get_tags(self) -> Envelope:
        return await self._dispatch(Operation.GET_TAGS, RequestDescriptor("/tags"))

    # ------------------------------------------------------------------
    # Gallery
    # ------------------------------------------------------------------

    async def get_gallery_items(self, category_id: Optional[str] = None) -> Envelope:
        params = {"categoryId": str(category_id)} if category_id else {}
        return await self._dispatch(
            Operation.GET_GALLERY_ITEMS,
            RequestDescriptor("/gallery", params=params),
            lambda backend: backend.get_gallery_items(category_id),
        )

    async def get_gallery_item(self, item_id: str) -> Envelope:
        return await self._dispatch(
            Operation.GET_GALLERY_ITEM,
            RequestDescriptor(f"/gallery/{_segment(item_id)}"),
        )

    async def create_gallery_item(self, item: dict[str, Any]) -> Envelope:
        return await self._dispatch(
            Operation.CREATE_GALLERY_ITEM,
            RequestDescriptor("/gallery", "POST", body=item, requires_auth=True),
        )

    async def update_gallery_item(self, item_id: str, item: dict[str, Any]) -> Envelope:
        return await self._dispatch(
            Operation.UPDATE_GALLERY_ITEM,
            RequestDescriptor(
                f"/gallery/{_segment(item_id)}", "PUT", body=item, requires_auth=True
            ),
        )

    async def delete_gallery_item(self, item_id: str) -> Envelope:
        return await self._dispatch(
            Operation.DELETE_GALLERY_ITEM,
            RequestDescriptor(f"/gallery/{_segment(item_id)}", "DELETE", requires_auth=True),
        )

    async def get_gallery_categories(self) -> Envelope:
        return await self._dispatch(
            Operation.GET_GALLERY_CATEGORIES,
            RequestDescriptor("/gallery-categories"),
            lambda backend: backend.get_gallery_categories(),
        )

    # ------------------------------------------------------------------
    # AI
    # ------------------------------------------------------------------

    async def ask_ai(self, question: str) -> Envelope:
        return await self._dispatch(
            Operation.ASK_AI,
            RequestDescriptor("/ai/ask", "POST", body={"question": question}),
        )

    async def generate_summary(self, content: str) -> Envelope:
        return await self._dispatch(
            Operation.GENERATE_SUMMARY,
            RequestDescriptor("/ai/summarize", "POST", body={"content": content}),
        )

    async def get_ai_status(self) -> Envelope:
        return await self._dispatch(Operation.GET_AI_STATUS, RequestDescriptor("/ai/status"))

    # ------------------------------------------------------------------
    # Local state
    # ------------------------------------------------------------------

    def clear_cache(self) -> None:
        self.context.cache.clear()

    def set_backend(self, target: BackendTarget) -> None:
        """
        Route supported operations to the given backend from now on.

        Raises:
            ConfigurationError: If the secondary backend is selected but not configured
        """
        if target == BackendTarget.SECONDARY and self.router is None:
            raise ConfigurationError(
                "Secondary backend is not configured",
                missing_fields=["secondary_url", "secondary_api_key"],
            )
        self.context.selector.set_target(target)
