from __future__ import annotations

import dataclasses
import logging
from abc import ABC, abstractmethod

import httpx
from django.core.exceptions import ValidationError

from quoting.models import SuperPackage
from quoting.services.config import package_store_token, package_store_url
from quoting.services.errors import PackageNotFoundError, PackageStoreUnavailableError
from quoting.services.http_client import build_http_client
from quoting.services.pricing.types import PackageSnapshot

logger = logging.getLogger(__name__)


class PackageStore(ABC):
    name = "base"

    @abstractmethod
    def get_package(self, package_id: str, version: int | None = None) -> PackageSnapshot:
        """Return one version of a package, the latest published one by default."""
        raise NotImplementedError


class DatabasePackageStore(PackageStore):
    name = "database"

    def get_package(self, package_id: str, version: int | None = None) -> PackageSnapshot:
        try:
            package = SuperPackage.objects.filter(pk=package_id).first()
        except (ValueError, ValidationError):
            package = None
        if package is None or package.status == SuperPackage.Status.DELETED:
            raise PackageNotFoundError(str(package_id), version)

        versions = package.versions.all()
        row = versions.filter(version=version).first() if version is not None else versions.order_by("-version").first()
        if row is not None:
            snapshot = PackageSnapshot.from_payload(row.payload)
        elif version is None or version == package.version:
            # Nothing published yet: the live fields are the only version there is.
            snapshot = PackageSnapshot.from_payload(package.pricing_payload())
        else:
            raise PackageNotFoundError(str(package_id), version)
        # Availability follows the package today, not the status frozen into the version.
        return dataclasses.replace(snapshot, status=package.status)


class HttpPackageStore(PackageStore):
    name = "http"

    def __init__(self, base_url: str, token: str = "") -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token

    def get_package(self, package_id: str, version: int | None = None) -> PackageSnapshot:
        params = {"version": version} if version is not None else None
        try:
            with build_http_client(token=self.token) as client:
                response = client.get(f"{self.base_url}/packages/{package_id}", params=params)
                if response.status_code == 404:
                    raise PackageNotFoundError(str(package_id), version)
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning(
                "Package store request failed",
                extra={"package_id": str(package_id), "store": self.name, "error": str(exc)},
            )
            raise PackageStoreUnavailableError(
                "The package store could not be reached",
                context={"package_id": str(package_id)},
            ) from exc
        return PackageSnapshot.from_payload(payload)


def get_package_store() -> PackageStore:
    base_url = package_store_url()
    if base_url:
        return HttpPackageStore(base_url, token=package_store_token())
    return DatabasePackageStore()
