# leasesync/adapters/repos/sources.py
from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ...config import settings
from ...domain.errors import SourceNotFoundError
from ...models import Source


class SourceRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, source_id: int) -> Source | None:
        return await self.session.get(Source, source_id)

    async def get_by_name(self, name: str) -> Source | None:
        q = select(Source).where(Source.name == name)
        return (await self.session.execute(q)).scalars().first()

    async def list_all(self, *, enabled_only: bool = False) -> list[Source]:
        q = select(Source).order_by(Source.name)
        if enabled_only:
            q = q.where(Source.enabled == True)  # noqa: E712
        return list((await self.session.execute(q)).scalars().all())

    async def ensure(
        self,
        name: str,
        *,
        base_url: str | None = None,
        target_url: str | None = None,
        normalizer: str | None = None,
    ) -> Source:
        """
        Get-or-create. The configured default source gets its URLs and
        normalizer from settings; any other new source needs a URL.
        """
        src = await self.get_by_name(name)
        if src is not None:
            return src

        is_default = name == settings.DEFAULT_SOURCE
        if not is_default and not (base_url or target_url):
            raise SourceNotFoundError(f"Unknown source {name!r} (pass a base/target url to register it)")

        src = Source(
            name=name,
            base_url=base_url or (settings.DEFAULT_SOURCE_BASE_URL if is_default else target_url),
            target_url=target_url or (settings.DEFAULT_TARGET_URL if is_default else None),
            normalizer=normalizer or (settings.DEFAULT_NORMALIZER if is_default else "generic"),
            enabled=True,
        )
        self.session.add(src)
        await self.session.flush()
        return src
