from __future__ import annotations

import json

from django.core.management.base import BaseCommand, CommandError

from vendor_sync.exceptions import VendorSyncError
from vendor_sync.services.sync import run_vendor_sync


class Command(BaseCommand):
    help = "Preview or apply a vendor catalog sync (dry run unless --apply)."

    def add_arguments(self, parser):
        parser.add_argument("slug", help="Vendor slug (e.g., moscot)")
        parser.add_argument(
            "--apply", action="store_true", help="Commit changes (default is a dry run)"
        )
        parser.add_argument("--source", default=None, help="Explicit feed path (non-prod only)")
        parser.add_argument("--actor", default="cli")

    def handle(self, *args, **opts):
        dry_run = not opts["apply"]
        try:
            result = run_vendor_sync(
                opts["slug"],
                dry_run=dry_run,
                source_path=opts["source"],
                actor=opts["actor"],
            )
        except VendorSyncError as e:
            raise CommandError(str(e)) from e

        data = result.to_dict()
        mode = "DRY-RUN" if dry_run else "APPLIED"
        self.stdout.write(
            self.style.SUCCESS(f"[{mode}] run={data['runId']} {json.dumps(data['metrics'])}")
        )
        for err in data["errors"]:
            self.stderr.write(f"  item {err['index']} ({err.get('catalogId')}): {err['error']}")
