import secrets
from datetime import timedelta

from django.conf import settings
from django.db import models
from django.utils import timezone


def generate_token() -> str:
    return secrets.token_hex(32)


class SessionToken(models.Model):
    """Bearer token handed out by the login endpoints."""
    PROVIDER_CHOICES = (
        ('password', 'Username & Password'),
        ('oidc', 'OIDC'),
    )

    key = models.CharField(max_length=64, unique=True, default=generate_token)
    username = models.CharField(max_length=255)
    provider = models.CharField(max_length=20, choices=PROVIDER_CHOICES, default='password')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ('-created_at',)

    def is_expired(self) -> bool:
        ttl = timedelta(hours=settings.SESSION_TOKEN_TTL_HOURS)
        return self.created_at + ttl < timezone.now()

    def __str__(self) -> str:
        return f"{self.username} ({self.provider}) ...{self.key[-6:]}"
