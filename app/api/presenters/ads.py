from __future__ import annotations

from app.models.ad import Ad
from app.schemas.ads import AdFullResponse, AdShortResponse, AdsResponse


def ad_image_url(ad_id: int) -> str:
    return f"/ads/{ad_id}/image"


def build_ad_short_out(ad: Ad) -> AdShortResponse:
    return AdShortResponse(
        pk=ad.id,
        author=ad.owner_id,
        image=ad_image_url(ad.id),
        price=ad.price,
        title=ad.title,
    )


def build_ad_full_out(ad: Ad) -> AdFullResponse:
    owner = ad.owner
    return AdFullResponse(
        pk=ad.id,
        author_first_name=owner.first_name,
        author_last_name=owner.last_name,
        email=owner.username,
        phone=owner.phone,
        image=ad_image_url(ad.id),
        price=ad.price,
        title=ad.title,
        description=ad.description,
    )


def build_ads_out(ads: list[Ad]) -> AdsResponse:
    results = [build_ad_short_out(ad) for ad in ads]
    return AdsResponse(count=len(results), results=results)
