"""
URL configuration for FlightDesk.
"""
from django.urls import path, include
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView

urlpatterns = [
    # API Documentation
    path('schema/', SpectacularAPIView.as_view(), name='schema'),
    path('schema/swagger/', SpectacularSwaggerView.as_view(url_name='schema'), name='swagger-ui'),

    # Health check
    path('api/', include('apps.core.urls')),

    # Authentication endpoints
    path('api/auth/', include('apps.rbac.urls_auth')),  # Register, login, logout, me

    # Flight requests
    path('api/', include('apps.flights.urls')),
]
