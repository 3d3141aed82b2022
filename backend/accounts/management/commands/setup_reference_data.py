"""
Management command: setup_reference_data
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

Seeds the database with the **Roles**, **Departments**, staff
**positions** (department + role pairs) and the category routing table
used by automatic assignment.

The command is **idempotent**: safe to run multiple times.  Existing
rows are kept; category mappings are reset to the built-in table.

Usage::

    python manage.py setup_reference_data
    python manage.py setup_reference_data --admin admin --admin-email admin@example.com

Prerequisites::

    python manage.py migrate
"""

import getpass
import os

from django.core.management.base import BaseCommand, CommandError

from accounts.services import ReferenceDataService, UserPositionService
from core.domain.exceptions import DomainError


class Command(BaseCommand):
    help = (
        "Seeds roles, departments, positions and category routing.  "
        "Safe to run multiple times (idempotent).  Optionally creates "
        "the first administrator account."
    )

    def add_arguments(self, parser):
        parser.add_argument(
            "--admin",
            metavar="USERNAME",
            help="Also create an administrator with this username.",
        )
        parser.add_argument(
            "--admin-email",
            default="",
            help="E-mail of the administrator created with --admin.",
        )

    def handle(self, *args, **options):
        self.stdout.write(self.style.MIGRATE_HEADING(
            "\n══════════════════════════════════════════"
            "\n  Participium: seeding reference data"
            "\n══════════════════════════════════════════\n"
        ))

        created = ReferenceDataService.seed()
        for kind, count in created.items():
            self.stdout.write(self.style.SUCCESS(f"  ✔  {kind:<12s} {count} created"))

        username = options.get("admin")
        if username:
            password = os.environ.get("PARTICIPIUM_ADMIN_PASSWORD") or getpass.getpass(
                f"Password for '{username}': "
            )
            if not password:
                raise CommandError("An administrator password is required.")
            try:
                UserPositionService.create_administrator({
                    "username": username,
                    "email": options["admin_email"] or f"{username}@participium.local",
                    "password": password,
                })
            except DomainError as exc:
                raise CommandError(exc.message) from exc
            self.stdout.write(self.style.SUCCESS(f"  ✔  administrator '{username}' created"))

        self.stdout.write(self.style.MIGRATE_HEADING(
            "\n──────────────────────────────────────────"
        ))
        self.stdout.write(self.style.SUCCESS("  Done!\n"))
