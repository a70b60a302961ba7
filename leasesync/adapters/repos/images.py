# leasesync/adapters/repos/images.py
from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ...models import ListingImage


class ImageRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def by_checksum(self, checksum: str) -> ListingImage | None:
        q = select(ListingImage).where(ListingImage.checksum_sha256 == checksum)
        return (await self.session.execute(q)).scalars().first()

    async def by_listing_and_url(self, listing_id: int, original_url: str) -> ListingImage | None:
        q = select(ListingImage).where(
            ListingImage.listing_id == listing_id,
            ListingImage.original_url == original_url,
        )
        return (await self.session.execute(q)).scalars().first()

    async def for_listing(self, listing_id: int) -> list[ListingImage]:
        q = (
            select(ListingImage)
            .where(ListingImage.listing_id == listing_id)
            .order_by(ListingImage.sort_order, ListingImage.id)
        )
        return list((await self.session.execute(q)).scalars().all())

    async def count(self) -> int:
        return int((await self.session.execute(select(func.count()).select_from(ListingImage))).scalar_one())

    async def add(self, image: ListingImage) -> ListingImage:
        self.session.add(image)
        await self.session.flush()
        return image
