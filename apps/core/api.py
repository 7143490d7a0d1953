import json
import logging

from django.conf import settings
from django.http import HttpResponseRedirect, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from apps.content.exceptions import ConfigurationError, NetworkError
from apps.core import oidc
from apps.core.auth import check_credentials, get_bearer_token, issue_token, revoke_token

logger = logging.getLogger(__name__)


@require_GET
def health(request):
    return JsonResponse({'status': 'ok'})


@csrf_exempt
@require_POST
def login(request):
    try:
        payload = json.loads(request.body or b'{}')
    except json.JSONDecodeError:
        return JsonResponse({'success': False, 'error': 'Invalid JSON body'}, status=400)

    username = payload.get('username') or ''
    password = payload.get('password') or ''

    if not check_credentials(username, password):
        logger.warning("Failed login attempt for %r", username)
        return JsonResponse({'success': False, 'error': 'Invalid username or password'}, status=401)

    token = issue_token(username)
    return JsonResponse({'success': True, 'username': username, 'token': token.key})


@csrf_exempt
@require_POST
def logout(request):
    key = get_bearer_token(request)
    if not key or not revoke_token(key):
        return JsonResponse({'success': False, 'error': 'Unknown token'}, status=401)
    return JsonResponse({'success': True})


@require_GET
def oidc_status(request):
    return JsonResponse(oidc.get_config_status())


def _redirect_uri(request) -> str:
    return settings.OIDC_REDIRECT_URI or request.build_absolute_uri('/api/auth/oidc/callback')


@require_GET
def oidc_login(request):
    try:
        url = oidc.build_authorize_url(_redirect_uri(request), oidc.make_state())
    except ConfigurationError as e:
        return JsonResponse({'success': False, 'error': str(e)}, status=500)
    except NetworkError as e:
        return JsonResponse({'success': False, 'error': str(e)}, status=502)
    return HttpResponseRedirect(url)


@require_GET
def oidc_callback(request):
    if request.GET.get('error'):
        return JsonResponse({'success': False, 'error': request.GET['error']}, status=401)

    code = request.GET.get('code')
    state = request.GET.get('state', '')
    if not code or not oidc.check_state(state):
        return JsonResponse({'success': False, 'error': 'Invalid OIDC callback'}, status=400)

    try:
        result = oidc.exchange_code(code, _redirect_uri(request))
    except ConfigurationError as e:
        return JsonResponse({'success': False, 'error': str(e)}, status=500)
    except NetworkError as e:
        return JsonResponse({'success': False, 'error': str(e)}, status=502)

    username = oidc.username_from_userinfo(result['userinfo'])
    token = issue_token(username, provider='oidc')

    if settings.OIDC_POST_LOGIN_REDIRECT:
        return HttpResponseRedirect(f"{settings.OIDC_POST_LOGIN_REDIRECT}#token={token.key}")
    return JsonResponse({'success': True, 'username': username, 'token': token.key})


@require_GET
def oidc_logout(request):
    key = get_bearer_token(request)
    if key:
        revoke_token(key)

    try:
        return HttpResponseRedirect(oidc.build_logout_url())
    except ConfigurationError as e:
        return JsonResponse({'success': False, 'error': str(e)}, status=500)
