import secrets

from django.conf import settings
from django.core.management.base import BaseCommand
from django.utils import timezone

from alonetone.models import User, UserSession


class Command(BaseCommand):
    help = "Create or update a user and issue a bearer access token for it."

    def add_arguments(self, parser):
        parser.add_argument("email")
        parser.add_argument("--login", default="")
        parser.add_argument("--display-name", default="")
        parser.add_argument("--moderator", action="store_true", help="Grant the moderator role.")

    def handle(self, *args, **options):
        email = options["email"].strip().lower()
        defaults = {"status": User.Status.ACTIVE}
        if options["login"]:
            defaults["login"] = options["login"]
        if options["display_name"]:
            defaults["display_name"] = options["display_name"]
        if options["moderator"]:
            defaults["role"] = User.Role.MODERATOR

        user, created = User.objects.update_or_create(email=email, defaults=defaults)
        session = UserSession.objects.create(
            user=user,
            access_token=secrets.token_urlsafe(32),
            access_expires_at=timezone.now() + timezone.timedelta(days=settings.USER_ACCESS_TOKEN_TTL_DAYS),
        )

        verb = "Created" if created else "Updated"
        self.stdout.write(self.style.SUCCESS(f"{verb} user: {user.login} ({user.email}, role={user.role})"))
        self.stdout.write(self.style.SUCCESS(f"Access token: {session.access_token}"))
