from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path("admin/", admin.site.urls),
    path("api/catalog/vendor-sync/", include("vendor_sync.urls", namespace="vendor_sync")),
]
