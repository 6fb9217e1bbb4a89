"""
Dashboard App URLs
Aggregated endpoints for dashboard display
"""

from django.urls import path
from . import views

urlpatterns = [
    path('stats/', views.dashboard_stats, name='dashboard-stats'),
    path('cash-flow/', views.cash_flow, name='dashboard-cash-flow'),
    path('recent-activity/', views.recent_activity, name='dashboard-recent-activity'),
]
