from django.contrib import admin
from django.urls import include, path

from quoting import views as quoting_views

urlpatterns = [
    path("admin/", admin.site.urls),
    path("healthz/", quoting_views.healthz, name="healthz"),
    path("api/", include("quoting.api_urls")),
]
