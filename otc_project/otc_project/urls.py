from django.urls import include, path

urlpatterns = [
    path("api/", include("trade_lifecycle.urls")),
]
