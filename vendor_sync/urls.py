from django.urls import path

from . import views

app_name = "vendor_sync"

urlpatterns = [
    path("vendors/", views.vendors, name="vendors"),
    path("registry/test-all/", views.registry_test_all, name="registry_test_all"),
    path("registry/<slug:slug>/test/", views.registry_test, name="registry_test"),
    path("overview/", views.overview, name="overview"),
    path("runs/", views.runs, name="runs"),
    path("runs/<int:run_id>/", views.run_detail, name="run_detail"),
    path("state/<slug:slug>/", views.vendor_state, name="state"),
    # Sync
    path("<slug:slug>/sync/", views.vendor_sync, name="sync"),
    path("<slug:slug>/normalize/preview/", views.normalize_preview, name="normalize_preview"),
]
