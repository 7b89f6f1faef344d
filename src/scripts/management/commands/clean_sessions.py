"""Deactivate expired login sessions."""

from django.core.management.base import BaseCommand

from authentication.services import SessionService


class Command(BaseCommand):
    help = "Deactivate sessions whose expiry has passed and report how many were closed."

    def handle(self, *args, **options):
        count = SessionService.clean_expired()
        self.stdout.write(self.style.SUCCESS(f"Deactivated {count} expired session(s)."))
