from django.urls import path

from quoting import api_views

app_name = "quoting-api"

urlpatterns = [
    path("pricing/calculate", api_views.PriceCalculateAPIView.as_view(), name="price-calculate"),
    path("quotes/<uuid:quote_id>/link-package", api_views.QuoteLinkPackageAPIView.as_view(), name="quote-link-package"),
    path("quotes/<uuid:quote_id>/unlink-package", api_views.QuoteUnlinkPackageAPIView.as_view(), name="quote-unlink-package"),
    path("quotes/<uuid:quote_id>/price", api_views.QuoteManualPriceAPIView.as_view(), name="quote-price"),
    path("quotes/<uuid:quote_id>/reset-price", api_views.QuoteResetPriceAPIView.as_view(), name="quote-reset-price"),
    path("quotes/<uuid:quote_id>/parameters", api_views.QuoteParametersAPIView.as_view(), name="quote-parameters"),
    path(
        "quotes/<uuid:quote_id>/recalculate-price",
        api_views.QuoteRecalculatePriceAPIView.as_view(),
        name="quote-recalculate-price",
    ),
]
