"""Directory lookups for providers and requesters."""

from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from coordinator.core.exceptions import NotFoundException
from coordinator.core.redis_client import JsonCache
from coordinator.models.directory import providers, requesters
from coordinator.schemas.availability import ProviderResponse

logger = structlog.get_logger(__name__)


class DirectoryService:
    """Read-only access to the provider and requester directory."""

    PROVIDER_LIST_CACHE_KEY = "providers:list"

    def __init__(self, db: AsyncSession, cache: JsonCache | None = None):
        self.db = db
        self.cache = cache

    async def list_providers(self) -> list[ProviderResponse]:
        """List every provider, cached briefly."""
        if self.cache:
            cached = self.cache.load(self.PROVIDER_LIST_CACHE_KEY)
            if cached:
                return [ProviderResponse.model_validate(item) for item in cached]

        result = await self.db.execute(select(providers).order_by(providers.c.name))
        items = [ProviderResponse.model_validate(dict(row._mapping)) for row in result.fetchall()]

        if self.cache:
            self.cache.store(
                self.PROVIDER_LIST_CACHE_KEY, [item.model_dump(mode="json") for item in items]
            )

        return items

    async def get_provider(self, provider_id: UUID) -> ProviderResponse:
        """
        Get provider by ID.

        Raises:
            NotFoundException: If provider not found
        """
        result = await self.db.execute(select(providers).where(providers.c.id == provider_id))
        row = result.fetchone()
        if row is None:
            raise NotFoundException("Provider not found")
        return ProviderResponse.model_validate(dict(row._mapping))

    async def get_requester(self, requester_id: UUID) -> dict:
        """
        Get requester directory entry by ID.

        Raises:
            NotFoundException: If requester not found
        """
        result = await self.db.execute(select(requesters).where(requesters.c.id == requester_id))
        row = result.mappings().first()
        if row is None:
            raise NotFoundException("Requester not found")
        return dict(row)

    async def resolve_identity_token(self, identity_token: str) -> dict | None:
        """Map a gate badge token to its requester, if registered."""
        result = await self.db.execute(
            select(requesters).where(requesters.c.identity_token == identity_token)
        )
        row = result.mappings().first()
        if row is None:
            logger.info("identity_token_unknown")
            return None
        return dict(row)
