"""
URL configuration for the accounts app.

All routes are exposed under '/api/account/' as configured in backend/urls.py.
Clients register or log in to obtain a DRF token, then send it as
``Authorization: Token <key>`` to the wallet and number endpoints.
"""

from django.urls import path
from . import views

app_name = 'accounts'

urlpatterns = [
    path('register/', views.register_view, name='register'),
    path('login/', views.login_view, name='login'),
    path('profile/', views.profile_view, name='profile'),
]
