from __future__ import annotations

from django.core.management.base import BaseCommand

from vendor_sync.auth import mint_service_token


class Command(BaseCommand):
    help = "Print a short-lived service token for the vendor sync API."

    def add_arguments(self, parser):
        parser.add_argument(
            "--scope",
            action="append",
            dest="scopes",
            default=None,
            help="Scope to grant; repeatable (default: catalog:sync:write)",
        )
        parser.add_argument("--sub", default="service")
        parser.add_argument("--ttl", type=int, default=300, help="Lifetime in seconds")

    def handle(self, *args, **opts):
        scopes = opts["scopes"] or ["catalog:sync:write"]
        token = mint_service_token(scopes, subject=opts["sub"], ttl_seconds=opts["ttl"])
        self.stdout.write(token)
