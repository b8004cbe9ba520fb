"""
catalog_sync/connectors/specs_client.py

Specifications provider client.
"""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Callable
from datetime import date

import requests

from catalog_sync.config import SOURCE_SPECS, SourceClientSettings
from catalog_sync.connectors.base import BaseSourceClient
from catalog_sync.domain.monitoring import EventReporter
from catalog_sync.schemas.records import (
    BatterySpec,
    BuildSpec,
    CameraLens,
    CameraSpec,
    ConnectivitySpec,
    DisplaySpec,
    ExternalPhoneRecord,
    PerformanceSpec,
    PhoneSpecifications,
    Pricing,
    SoftwareSpec,
    natural_key,
)
from catalog_sync.schemas.specs_provider import (
    SpecsProviderBrandList,
    SpecsProviderPhone,
    SpecsProviderPhoneEnvelope,
    SpecsProviderPhoneList,
    WireSpecifications,
)

logger = logging.getLogger(__name__)

_MEGAPIXELS_PATTERN = re.compile(r"(\d+)\s*(?:MP|megapixel)", re.IGNORECASE)
_APERTURE_PATTERN = re.compile(r"f/(\d+\.?\d*)", re.IGNORECASE)


class SpecificationsClient(BaseSourceClient[ExternalPhoneRecord]):
    """
    Client for the phone specifications provider.

    Endpoints:
        GET /search?q=...            -> {"phones": [...]}
        GET /phones/{id}             -> {"phone": {...}}
        GET /brands/{brand}/phones   -> {"phones": [...]}
        GET /brands                  -> {"brands": [{"name": ...}]}
    """

    def __init__(
        self,
        *,
        settings: SourceClientSettings,
        source: str = SOURCE_SPECS,
        monitoring: EventReporter | None = None,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        super().__init__(
            source=source,
            settings=settings,
            monitoring=monitoring,
            session=session,
            sleep=sleep,
        )

    def fetch_by_query(self, query: str) -> list[ExternalPhoneRecord]:
        payload = self._request_json(
            "/search",
            params={"q": query},
            parse=lambda data: self._validate(SpecsProviderPhoneList, data),
        )
        if payload is None:
            return []
        return [self.to_record(phone) for phone in payload.phones]

    def fetch_by_id(self, external_id: str) -> ExternalPhoneRecord | None:
        payload = self._request_json(
            f"/phones/{self.quote_segment(external_id)}",
            parse=lambda data: self._validate(SpecsProviderPhoneEnvelope, data),
        )
        if payload is None or payload.phone is None:
            return None
        return self.to_record(payload.phone)

    def fetch_by_brand(self, brand: str) -> list[ExternalPhoneRecord]:
        payload = self._request_json(
            f"/brands/{self.quote_segment(brand)}/phones",
            parse=lambda data: self._validate(SpecsProviderPhoneList, data),
        )
        if payload is None:
            return []
        return [self.to_record(phone) for phone in payload.phones]

    def list_categories(self) -> list[str]:
        payload = self._request_json(
            "/brands",
            parse=lambda data: self._validate(SpecsProviderBrandList, data),
        )
        if payload is None:
            return []
        return [brand.name for brand in payload.brands if brand.name]

    def find_phone(
        self,
        brand: str,
        model: str,
        variant: str | None = None,
    ) -> ExternalPhoneRecord | None:
        """
        Search by brand and model and return the exact match, if any.

        A variant-specific match wins over the base model when a variant is given.
        """

        query = " ".join(part for part in (brand, model, variant) if part)
        candidates = self.fetch_by_query(query)
        wanted_base = natural_key(brand, model)
        wanted_variant = natural_key(brand, model, variant) if variant else None

        fallback: ExternalPhoneRecord | None = None
        for candidate in candidates:
            if wanted_variant is not None and candidate.natural_key == wanted_variant:
                return candidate
            if natural_key(candidate.brand, candidate.model) == wanted_base and fallback is None:
                fallback = candidate
        if fallback is None:
            logger.info(
                "No exact specifications match source=%s brand=%s model=%s candidates=%s",
                self.source,
                brand,
                model,
                len(candidates),
            )
        return fallback

    def to_record(self, phone: SpecsProviderPhone) -> ExternalPhoneRecord:
        """
        Normalize a provider phone into an ``ExternalPhoneRecord``.
        """

        pricing = None
        if phone.price is not None and phone.price.price is not None:
            pricing = Pricing(
                mrp=phone.price.price,
                current_price=phone.price.price,
                currency=phone.price.currency or "INR",
            )

        return ExternalPhoneRecord(
            source=self.source,
            brand=phone.brand,
            model=phone.model,
            variant=phone.variant,
            external_id=phone.id,
            launch_date=_parse_launch_date(phone.launch_date),
            availability=phone.status or "available",
            specifications=self._to_specifications(phone.specifications or WireSpecifications()),
            pricing=pricing,
            images=tuple(phone.images or ()),
        )

    def _to_specifications(self, wire: WireSpecifications) -> PhoneSpecifications:
        display = wire.display
        camera = wire.camera
        performance = wire.performance
        battery = wire.battery
        connectivity = wire.connectivity
        build = wire.build
        software = wire.software

        rear_lenses: tuple[CameraLens, ...] = ()
        front_lens = CameraLens()
        camera_features: tuple[str, ...] = ()
        if camera is not None:
            rear_strings = [camera.main, camera.ultrawide, camera.telephoto, camera.depth]
            rear_lenses = tuple(parse_camera_spec(value) for value in rear_strings if value)
            front_lens = parse_camera_spec(camera.front or "")
            camera_features = tuple(camera.features or ())

        return PhoneSpecifications(
            display=DisplaySpec(
                size=(display.size if display else None) or "",
                resolution=(display.resolution if display else None) or "",
                type=(display.type if display else None) or "",
                refresh_rate=display.refresh_rate if display else None,
                brightness=display.brightness if display else None,
            ),
            camera=CameraSpec(rear=rear_lenses, front=front_lens, features=camera_features),
            performance=PerformanceSpec(
                processor=(performance.chipset if performance else None) or "",
                gpu=performance.gpu if performance else None,
                ram=tuple((performance.ram if performance else None) or ()),
                storage=tuple((performance.storage if performance else None) or ()),
                expandable_storage=performance.card_slot if performance else None,
            ),
            battery=BatterySpec(
                capacity_mah=(battery.capacity if battery else None) or 0,
                charging_watts=battery.charging if battery else None,
                wireless_charging=battery.wireless if battery else None,
            ),
            connectivity=ConnectivitySpec(
                network=tuple((connectivity.network if connectivity else None) or ()),
                wifi=(connectivity.wifi if connectivity else None) or "",
                bluetooth=(connectivity.bluetooth if connectivity else None) or "",
                nfc=connectivity.nfc if connectivity else None,
            ),
            build=BuildSpec(
                dimensions=(build.dimensions if build else None) or "",
                weight=(build.weight if build else None) or "",
                materials=tuple((build.materials if build else None) or ()),
                colors=tuple((build.colors if build else None) or ()),
                water_resistance=build.ip_rating if build else None,
            ),
            software=SoftwareSpec(
                os=(software.os if software else None) or "",
                version=(software.version if software else None) or "",
            ),
        )


def parse_camera_spec(value: str) -> CameraLens:
    """
    Extract megapixels and aperture from strings like ``"50MP f/1.8"``.
    """

    if not value:
        return CameraLens()
    megapixel_match = _MEGAPIXELS_PATTERN.search(value)
    aperture_match = _APERTURE_PATTERN.search(value)
    return CameraLens(
        megapixels=int(megapixel_match.group(1)) if megapixel_match else 0,
        aperture=f"f/{aperture_match.group(1)}" if aperture_match else None,
    )


def _parse_launch_date(value: str | None) -> date | None:
    if not value:
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        logger.debug("Unparseable launch date value=%s", value)
        return None
