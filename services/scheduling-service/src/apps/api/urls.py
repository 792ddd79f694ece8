# services/scheduling-service/src/apps/api/urls.py
"""
Scheduling API URL Configuration

Defines all API routes for the scheduling service.
"""

from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import (
    # Weather
    CurrentWeatherView,
    ForecastView,
    RouteCheckView,
    CacheInvalidateView,
    CacheStatsView,
    CacheWarmView,
    ProviderCostsView,
    # Booking
    BookingViewSet,
    AvailabilityCheckView,
    WatchListView,
    # Reschedule
    RescheduleRequestViewSet,
)

app_name = 'api'

# Create router and register viewsets
router = DefaultRouter()
router.register(r'bookings', BookingViewSet, basename='booking')
router.register(r'reschedule-requests', RescheduleRequestViewSet, basename='reschedule-request')

urlpatterns = [
    # Weather
    path('weather/route-check/', RouteCheckView.as_view(), name='route-check'),
    path('weather/cache/stats/', CacheStatsView.as_view(), name='cache-stats'),
    path('weather/cache/warm/', CacheWarmView.as_view(), name='cache-warm'),
    path('weather/costs/', ProviderCostsView.as_view(), name='provider-costs'),
    path('weather/<str:airport_code>/', CurrentWeatherView.as_view(), name='current-weather'),
    path('weather/<str:airport_code>/forecast/', ForecastView.as_view(), name='forecast'),
    path('weather/<str:airport_code>/invalidate/', CacheInvalidateView.as_view(), name='cache-invalidate'),

    # Scheduling
    path('availability/check/', AvailabilityCheckView.as_view(), name='availability-check'),
    path('watch-list/', WatchListView.as_view(), name='watch-list'),

    # Router URLs
    path('', include(router.urls)),
]
