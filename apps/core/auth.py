import logging
import secrets
from functools import wraps

from django.conf import settings
from django.http import HttpRequest, JsonResponse

from apps.core.models import SessionToken

logger = logging.getLogger(__name__)


def check_credentials(username: str, password: str) -> bool:
    valid_username = secrets.compare_digest(str(username).encode(), settings.AUTH_USERNAME.encode())
    valid_password = secrets.compare_digest(str(password).encode(), settings.AUTH_PASSWORD.encode())
    return valid_username and valid_password


def issue_token(username: str, provider: str = 'password') -> SessionToken:
    token = SessionToken.objects.create(username=username, provider=provider)
    logger.info("Issued %s session token for %s", provider, username)
    return token


def get_bearer_token(request: HttpRequest) -> str | None:
    header = request.headers.get('Authorization', '')
    scheme, _, value = header.partition(' ')
    if scheme.lower() != 'bearer' or not value.strip():
        return None
    return value.strip()


def authenticate_request(request: HttpRequest) -> SessionToken | None:
    key = get_bearer_token(request)
    if not key:
        return None

    token = SessionToken.objects.filter(key=key).first()
    if token is None:
        return None

    if token.is_expired():
        token.delete()
        return None
    return token


def revoke_token(key: str) -> bool:
    deleted_count, _ = SessionToken.objects.filter(key=key).delete()
    return deleted_count > 0


def require_token(view):
    """Rejects the request with 401 unless it carries a valid bearer token."""
    @wraps(view)
    def wrapper(request, *args, **kwargs):
        if settings.API_AUTH_REQUIRED:
            token = authenticate_request(request)
            if token is None:
                return JsonResponse({'success': False, 'error': 'Authentication required'}, status=401)
            request.session_token = token
        return view(request, *args, **kwargs)
    return wrapper
