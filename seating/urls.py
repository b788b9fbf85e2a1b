from django.urls import path

from . import views

# ==============================================================================
# URL PATTERNS
# ==============================================================================
app_name = 'seating'

urlpatterns = [
    # --------------------------------------------------------------------------
    # ALLOCATION & BOOKING
    # --------------------------------------------------------------------------
    path('allocations/', views.AllocationView.as_view(), name='allocation'),
    path('reservations/', views.ReservationCreateView.as_view(), name='reservation-create'),

    # --------------------------------------------------------------------------
    # MANAGER ACTIONS
    # --------------------------------------------------------------------------
    path('reservations/auto-allocate/', views.AutoAllocateView.as_view(), name='auto-allocate'),
    path('reservations/<int:pk>/override/', views.OverrideView.as_view(), name='reservation-override'),
    path('reservations/<int:pk>/status/', views.ReservationStatusView.as_view(), name='reservation-status'),
]
