import uuid
from decimal import Decimal

from django.conf import settings
from django.db import models


class TimeStampedModel(models.Model):
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class SuperPackage(TimeStampedModel):
    class Status(models.TextChoices):
        ACTIVE = "active", "Active"
        INACTIVE = "inactive", "Inactive"
        DELETED = "deleted", "Deleted"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=200)
    destination = models.CharField(max_length=128, blank=True, db_index=True)
    currency = models.CharField(max_length=3, default="GBP")
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.ACTIVE, db_index=True)
    version = models.PositiveIntegerField(default=1)
    group_size_tiers = models.JSONField(default=list, blank=True)
    duration_options = models.JSONField(default=list, blank=True)
    pricing_matrix = models.JSONField(default=list, blank=True)
    inclusions = models.JSONField(default=list, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="super_packages",
    )

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:
        return f"SuperPackage<{self.name} v{self.version}>"

    def pricing_payload(self) -> dict:
        return {
            "package_id": str(self.id),
            "name": self.name,
            "version": self.version,
            "currency": self.currency,
            "status": self.status,
            "group_size_tiers": list(self.group_size_tiers or []),
            "duration_options": list(self.duration_options or []),
            "pricing_matrix": list(self.pricing_matrix or []),
        }


class SuperPackageVersion(TimeStampedModel):
    package = models.ForeignKey(SuperPackage, on_delete=models.CASCADE, related_name="versions")
    version = models.PositiveIntegerField()
    payload = models.JSONField(default=dict)
    published_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="published_package_versions",
    )

    class Meta:
        ordering = ["package", "-version"]
        constraints = [
            models.UniqueConstraint(
                fields=["package", "version"],
                name="quoting_superpackageversion_package_version_unique",
            ),
        ]

    def __str__(self) -> str:
        return f"SuperPackageVersion<{self.package_id} v{self.version}>"


class Quote(TimeStampedModel):
    class Status(models.TextChoices):
        DRAFT = "draft", "Draft"
        SENT = "sent", "Sent"
        ACCEPTED = "accepted", "Accepted"
        DECLINED = "declined", "Declined"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name="quotes")
    title = models.CharField(max_length=200, blank=True)
    customer_name = models.CharField(max_length=128, blank=True)
    customer_email = models.EmailField(blank=True)
    destination = models.CharField(max_length=128, blank=True)
    number_of_people = models.PositiveSmallIntegerField(default=1)
    number_of_nights = models.PositiveSmallIntegerField(default=1)
    arrival_date = models.DateField()
    total_price = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    currency = models.CharField(max_length=3, default="GBP")
    inclusions = models.JSONField(default=list, blank=True)
    internal_notes = models.TextField(blank=True)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.DRAFT, db_index=True)
    linked_package = models.JSONField(null=True, blank=True)
    linked_package_ref = models.ForeignKey(
        SuperPackage,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="linked_quotes",
    )
    price_history = models.JSONField(default=list, blank=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"Quote<{self.reference}>"

    @property
    def reference(self) -> str:
        return f"Q{self.id.hex[-8:].upper()}"

    @property
    def price_display(self) -> str:
        if self.total_price is None:
            return "-"
        return f"{self.currency} {Decimal(self.total_price):,.2f}"
