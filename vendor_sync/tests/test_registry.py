from __future__ import annotations

import json
import tempfile
from pathlib import Path
from unittest import mock

import requests
from django.test import TestCase

from vendor_sync.exceptions import InvalidVendorError, VendorConflictError, VendorNotConfiguredError
from vendor_sync.models import VendorIntegration, VendorSyncState
from vendor_sync.services import registry


class VendorRegistryTests(TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.feed = Path(self.tmp.name) / "feed.json"
        self.feed.write_text(json.dumps([{"catalogId": "item-1"}]), encoding="utf-8")

    def _scraper_vendor(self, slug="acme", path=None):
        return registry.create_vendor(
            {
                "slug": slug,
                "name": f" {slug.title()} ",
                "integrationType": "SCRAPER",
                "credentials": {"scraperPath": f"  {path or self.feed}  "},
            }
        )

    # ------------ create ------------
    def test_create_scraper_vendor(self):
        vendor = registry.create_vendor(
            {
                "slug": "Acme Optics",
                "name": " Acme Optics ",
                "integrationType": "SCRAPER",
                "credentials": {"scraperPath": f" {self.feed} ", "apiKey": "ignored"},
            }
        )
        self.assertEqual(vendor.slug, "acme-optics")
        self.assertEqual(vendor.name, "Acme Optics")
        self.assertEqual(vendor.integration.scraper_path, str(self.feed))
        self.assertIsNone(vendor.integration.api_key)

    def test_create_api_vendor_redacts_key(self):
        vendor = registry.create_vendor(
            {
                "slug": "lensco",
                "name": "LensCo",
                "integrationType": "API",
                "credentials": {"apiBaseUrl": "https://lensco.example/api", "apiKey": "s3cret"},
            }
        )
        self.assertEqual(vendor.integration.api_auth_type, "API_KEY")

        data = registry.serialize_vendor(vendor)
        self.assertEqual(data["integration"]["apiKey"], registry.REDACTED)
        self.assertTrue(data["integration"]["hasApiKey"])
        self.assertNotIn("s3cret", json.dumps(data))

    def test_api_vendor_without_key_has_no_auth_type(self):
        vendor = registry.create_vendor(
            {"slug": "open", "name": "Open", "integrationType": "API", "credentials": {"apiBaseUrl": "https://o.example"}}
        )
        self.assertIsNone(vendor.integration.api_auth_type)

    def test_slug_conflict(self):
        self._scraper_vendor()
        with self.assertRaises(VendorConflictError):
            self._scraper_vendor()

    def test_invalid_payload_reports_fields(self):
        with self.assertRaises(InvalidVendorError) as ctx:
            registry.create_vendor({"slug": "x", "name": "X", "integrationType": "FTP"})
        self.assertIn("integrationType", ctx.exception.field_errors)

    def test_slug_with_nothing_usable(self):
        with self.assertRaises(InvalidVendorError):
            registry.create_vendor({"slug": "!!!", "name": "X", "integrationType": "SCRAPER"})

    # ------------ update / read ------------
    def test_update_integration(self):
        self._scraper_vendor()
        integration = registry.update_integration(
            "acme", type="API", api_base_url="https://acme.example", api_key="k"
        )
        self.assertEqual(integration.type, "API")
        self.assertEqual(integration.api_auth_type, "API_KEY")

        integration = registry.update_integration("acme", api_key="")
        self.assertIsNone(integration.api_key)
        self.assertIsNone(integration.api_auth_type)

    def test_update_rejects_unknown_fields(self):
        self._scraper_vendor()
        with self.assertRaises(InvalidVendorError):
            registry.update_integration("acme", password="nope")

    def test_get_unknown_vendor(self):
        with self.assertRaises(VendorNotConfiguredError):
            registry.get_vendor("ghost")

    def test_list_with_state(self):
        self._scraper_vendor("beta")
        self._scraper_vendor("alpha")
        VendorSyncState.objects.create(vendor="alpha", total_items=7)

        vendors = registry.list_vendors_with_state()

        self.assertEqual([v["slug"] for v in vendors], ["alpha", "beta"])
        self.assertEqual(vendors[0]["state"]["totalItems"], 7)
        self.assertIsNone(vendors[1]["state"])

    # ------------ connection tests ------------
    def test_scraper_connection_ok(self):
        self._scraper_vendor()
        result = registry.test_connection("acme")

        self.assertTrue(result["ok"])
        self.assertEqual(result["vendor"], "acme")
        self.assertEqual(result["meta"]["totalItems"], 1)
        integration = VendorIntegration.objects.get(vendor__slug="acme")
        self.assertTrue(integration.last_test_ok)
        self.assertIsNotNone(integration.last_test_at)

    def test_scraper_connection_missing_file(self):
        self._scraper_vendor(path=Path(self.tmp.name) / "missing.json")
        result = registry.test_connection("acme")
        self.assertFalse(result["ok"])
        self.assertIn("error", result["meta"])
        self.assertFalse(VendorIntegration.objects.get(vendor__slug="acme").last_test_ok)

    @mock.patch("vendor_sync.services.registry.requests.get")
    def test_api_connection_single_get(self, get):
        get.return_value.ok = True
        get.return_value.status_code = 200
        registry.create_vendor(
            {"slug": "lensco", "name": "LensCo", "integrationType": "API",
             "credentials": {"apiBaseUrl": "https://lensco.example/api", "apiKey": "s3cret"}}
        )

        result = registry.test_connection("lensco")

        self.assertTrue(result["ok"])
        get.assert_called_once()
        args, kwargs = get.call_args
        self.assertEqual(args[0], "https://lensco.example/api")
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer s3cret")

    @mock.patch("vendor_sync.services.registry.requests.get")
    def test_test_all_counts_failures(self, get):
        get.side_effect = requests.Timeout("too slow")
        self._scraper_vendor()
        registry.create_vendor(
            {"slug": "lensco", "name": "LensCo", "integrationType": "API",
             "credentials": {"apiBaseUrl": "https://lensco.example/api"}}
        )

        summary = registry.test_all_connections()

        self.assertEqual(summary["tested"], 2)
        self.assertEqual(summary["passed"], 1)
        self.assertEqual(summary["failed"], 1)
        self.assertEqual(summary["failures"][0]["slug"], "lensco")
        self.assertIn("too slow", summary["failures"][0]["error"])
