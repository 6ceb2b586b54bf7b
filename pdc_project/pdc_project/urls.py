"""
URL configuration for the PDC Project.
"""
from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    path('admin/', admin.site.urls),
    
    # Apps
    path('pdc/', include('apps.pdc.urls')),
]
