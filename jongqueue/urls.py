"""
URL configuration for the JongQueue booking engine.
"""
from django.contrib import admin
from django.conf import settings
from django.urls import path, include

urlpatterns = [
    path(settings.ADMIN_URL, admin.site.urls),
    path('', include('apps.bookings.urls', namespace='bookings')),
]
