"""
OpenID Connect login against an external identity provider (AWS Cognito in
production).

The flow is the plain authorization-code flow: redirect to the provider's
authorization endpoint, take the ``code`` back on the callback, exchange it at
the token endpoint and read the user from the userinfo endpoint. Endpoints are
discovered from ``<authority>/.well-known/openid-configuration``.
"""
import logging
from typing import Any
from urllib.parse import urlencode

import requests
from django.conf import settings
from django.core import signing

from apps.content.exceptions import ConfigurationError, NetworkError

logger = logging.getLogger(__name__)

SCOPE = 'phone openid email'
STATE_SALT = 'paperplane.oidc.state'
STATE_MAX_AGE = 10 * 60
REQUEST_TIMEOUT = 15


def is_oidc_configured() -> bool:
    return bool(settings.OIDC_AUTHORITY and settings.OIDC_CLIENT_ID)


def get_config_status() -> dict[str, Any]:
    client_id = settings.OIDC_CLIENT_ID
    return {
        'authority': settings.OIDC_AUTHORITY or 'NOT_SET',
        'clientId': f"***{client_id[-4:]}" if client_id else 'NOT_SET',
        'redirectUri': settings.OIDC_REDIRECT_URI or 'NOT_SET',
        'logoutUri': settings.OIDC_LOGOUT_URI or 'NOT_SET',
        'cognitoDomain': settings.COGNITO_DOMAIN or 'NOT_SET',
        'configured': is_oidc_configured(),
    }


def build_logout_url() -> str:
    """Cognito's hosted UI wants its own logout endpoint, not the OIDC end_session one."""
    client_id = settings.OIDC_CLIENT_ID
    logout_uri = settings.OIDC_LOGOUT_URI
    domain = settings.COGNITO_DOMAIN
    if not (client_id and logout_uri and domain):
        raise ConfigurationError('Cognito logout configuration missing')

    return f"{domain.rstrip('/')}/logout?{urlencode({'client_id': client_id, 'logout_uri': logout_uri})}"


def _check_configured() -> None:
    if not is_oidc_configured():
        raise ConfigurationError('OIDC is not configured. Please set OIDC_AUTHORITY and OIDC_CLIENT_ID')


def _request(method: str, url: str, **kwargs: Any) -> dict[str, Any]:
    try:
        response = requests.request(method, url, timeout=REQUEST_TIMEOUT, **kwargs)
        response.raise_for_status()
        return response.json()
    except requests.RequestException as exc:
        raise NetworkError(f"OIDC request to {url} failed: {exc}") from exc
    except ValueError as exc:
        raise NetworkError(f"OIDC endpoint {url} did not return JSON") from exc


def discover() -> dict[str, Any]:
    _check_configured()
    url = f"{settings.OIDC_AUTHORITY.rstrip('/')}/.well-known/openid-configuration"
    return _request('GET', url)


def make_state() -> str:
    return signing.dumps({'flow': 'oidc'}, salt=STATE_SALT)


def check_state(state: str) -> bool:
    try:
        signing.loads(state, salt=STATE_SALT, max_age=STATE_MAX_AGE)
    except signing.BadSignature:
        return False
    return True


def build_authorize_url(redirect_uri: str, state: str) -> str:
    endpoint = discover()['authorization_endpoint']
    params = {
        'client_id': settings.OIDC_CLIENT_ID,
        'redirect_uri': redirect_uri,
        'response_type': 'code',
        'scope': SCOPE,
        'state': state,
    }
    return f"{endpoint}?{urlencode(params)}"


def exchange_code(code: str, redirect_uri: str) -> dict[str, Any]:
    config = discover()
    data = {
        'grant_type': 'authorization_code',
        'client_id': settings.OIDC_CLIENT_ID,
        'code': code,
        'redirect_uri': redirect_uri,
    }
    if settings.OIDC_CLIENT_SECRET:
        data['client_secret'] = settings.OIDC_CLIENT_SECRET

    tokens = _request('POST', config['token_endpoint'], data=data)

    userinfo = {}
    if config.get('userinfo_endpoint') and tokens.get('access_token'):
        userinfo = _request(
            'GET', config['userinfo_endpoint'],
            headers={'Authorization': f"Bearer {tokens['access_token']}"}
        )
    return {'tokens': tokens, 'userinfo': userinfo}


def username_from_userinfo(userinfo: dict[str, Any]) -> str:
    return userinfo.get('email') or userinfo.get('username') or userinfo.get('sub') or 'oidc-user'
