"""
URL configuration for flight request endpoints.
"""
from django.urls import path
from apps.flights.views import (
    FlightRequestListView, FlightRequestSummaryView, FlightRequestDetailView,
)

urlpatterns = [
    path('requests', FlightRequestListView.as_view(), name='flight-request-list'),
    path('requests/summary', FlightRequestSummaryView.as_view(), name='flight-request-summary'),
    path('requests/<uuid:request_id>', FlightRequestDetailView.as_view(), name='flight-request-detail'),
]
