import logging

from django.db import transaction

from quoting.models import SuperPackage, SuperPackageVersion
from quoting.services.config import audit_on_publish_enabled
from quoting.services.package_validation import validate_package_payload

logger = logging.getLogger(__name__)


def _enqueue_linked_quote_audit(package_id: str) -> None:
    from quoting.tasks import audit_linked_quotes_task

    try:
        audit_linked_quotes_task.delay(package_id)
    except Exception:  # noqa: BLE001
        logger.exception("Failed to enqueue linked quote audit", extra={"package_id": package_id})


@transaction.atomic
def publish_package_version(package: SuperPackage, user=None) -> SuperPackageVersion:  # noqa: ANN001
    """Freeze the package's current pricing as a new immutable version.

    Quotes already linked keep the version they were priced with until they
    are relinked.
    """
    package = SuperPackage.objects.select_for_update().get(pk=package.pk)
    latest = package.versions.order_by("-version").values_list("version", flat=True).first()
    next_version = latest + 1 if latest is not None else max(1, package.version)

    payload = package.pricing_payload()
    payload["version"] = next_version
    report = validate_package_payload(payload)
    for warning in report.warnings:
        logger.warning("Package pricing warning: %s", warning, extra={"package_id": str(package.id)})

    if package.version != next_version:
        package.version = next_version
        package.save(update_fields=["version", "updated_at"])
    row = SuperPackageVersion.objects.create(
        package=package,
        version=next_version,
        payload=report.snapshot.to_payload(),
        published_by=user if getattr(user, "is_authenticated", False) else None,
    )
    logger.info(
        "Package version published",
        extra={"package_id": str(package.id), "version": next_version, "warnings": len(report.warnings)},
    )
    if latest is not None and audit_on_publish_enabled():
        package_id = str(package.id)
        transaction.on_commit(lambda: _enqueue_linked_quote_audit(package_id))
    return row
