"""Dependency container for the timezone resolution services."""
from __future__ import annotations

from dataclasses import dataclass

from timevault.application import (
    BatchResolver,
    ResolutionPipeline,
    RetryPolicy,
    TimeConverter,
)
from timevault.domain import DocumentStore, GeoResolver
from timevault.infrastructure import (
    AzureMapsGeoResolver,
    AzureMapsSettings,
    MongoClientFactory,
    MongoRecordStore,
)
from timevault.settings import ResolverSettings


@dataclass
class TimevaultContainer:
    """Container exposing the resolution services and their collaborators."""

    settings: ResolverSettings
    store: DocumentStore
    geo_resolver: GeoResolver
    pipeline: ResolutionPipeline
    batch_resolver: BatchResolver
    time_converter: TimeConverter
    mongo_factory: MongoClientFactory | None = None

    async def aclose(self) -> None:
        """Release pooled clients owned by the container."""

        await self.geo_resolver.close()
        await self.store.close()
        if self.mongo_factory is not None:
            await self.mongo_factory.close()


def build_services(
    store: DocumentStore,
    geo_resolver: GeoResolver,
    settings: ResolverSettings,
    *,
    mongo_factory: MongoClientFactory | None = None,
) -> TimevaultContainer:
    """Wire the application services around the given collaborators."""

    retry_policy = RetryPolicy.from_settings(settings)
    pipeline = ResolutionPipeline(
        store, geo_resolver, settings, retry_policy=retry_policy
    )
    batch_resolver = BatchResolver(
        store, geo_resolver, settings, retry_policy=retry_policy
    )
    return TimevaultContainer(
        settings=settings,
        store=store,
        geo_resolver=geo_resolver,
        pipeline=pipeline,
        batch_resolver=batch_resolver,
        time_converter=TimeConverter(batch_resolver),
        mongo_factory=mongo_factory,
    )


def build_timevault_container(
    *,
    settings: ResolverSettings | None = None,
    mongo_factory: MongoClientFactory | None = None,
    maps_settings: AzureMapsSettings | None = None,
) -> TimevaultContainer:
    """Build the default container backed by MongoDB and Azure Maps."""

    settings = settings or ResolverSettings.from_env()
    mongo_factory = mongo_factory or MongoClientFactory()
    maps_settings = maps_settings or AzureMapsSettings.from_env()

    store = MongoRecordStore(mongo_factory.get_collection())
    geo_resolver = AzureMapsGeoResolver(maps_settings)
    return build_services(store, geo_resolver, settings, mongo_factory=mongo_factory)


__all__ = ["TimevaultContainer", "build_services", "build_timevault_container"]
