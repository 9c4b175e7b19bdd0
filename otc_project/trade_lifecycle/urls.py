from django.urls import include, path
from rest_framework.routers import DefaultRouter
from .views import CashflowViewSet, TradeViewSet

router = DefaultRouter()
router.register(r"trades", TradeViewSet, basename="trade")
router.register(r"cashflows", CashflowViewSet, basename="cashflow")

urlpatterns = [
    path("", include(router.urls)),
]
