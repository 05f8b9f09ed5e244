from django.contrib import admin, messages

from quoting.models import Quote, SuperPackage, SuperPackageVersion
from quoting.services.errors import PackageDataError
from quoting.services.package_service import publish_package_version


class SuperPackageVersionInline(admin.TabularInline):
    model = SuperPackageVersion
    extra = 0
    fields = ("version", "published_by", "created_at")
    readonly_fields = fields
    can_delete = False


@admin.register(SuperPackage)
class SuperPackageAdmin(admin.ModelAdmin):
    list_display = ("name", "destination", "currency", "status", "version", "updated_at")
    list_filter = ("status", "currency")
    search_fields = ("id", "name", "destination")
    readonly_fields = ("id", "version", "created_at", "updated_at")
    inlines = [SuperPackageVersionInline]
    actions = ["publish_version"]

    @admin.action(description="Publish a new pricing version")
    def publish_version(self, request, queryset) -> None:  # noqa: ANN001
        for package in queryset:
            try:
                row = publish_package_version(package, user=request.user)
            except PackageDataError as exc:
                errors = "; ".join(exc.context.get("errors", [])) or exc.message
                self.message_user(request, f"{package.name}: {errors}", level=messages.ERROR)
                continue
            self.message_user(request, f"{package.name}: published v{row.version}")


@admin.register(Quote)
class QuoteAdmin(admin.ModelAdmin):
    list_display = (
        "reference",
        "customer_name",
        "destination",
        "number_of_people",
        "number_of_nights",
        "arrival_date",
        "price_display",
        "status",
        "linked_package_ref",
        "updated_at",
    )
    list_filter = ("status", "currency", "created_at")
    search_fields = ("id", "title", "customer_name", "customer_email", "destination")
    readonly_fields = ("id", "linked_package", "linked_package_ref", "price_history", "created_at", "updated_at")
