import json
from datetime import timedelta
from unittest.mock import MagicMock, patch
from urllib.parse import parse_qs, urlparse

from django.test import SimpleTestCase, TestCase, override_settings
from django.utils import timezone

from apps.content.exceptions import ConfigurationError
from apps.core import oidc
from apps.core.models import SessionToken

OIDC_SETTINGS = {
    'OIDC_AUTHORITY': 'https://cognito-idp.ap-southeast-2.amazonaws.com/ap-southeast-2_pool',
    'OIDC_CLIENT_ID': 'client-abcd1234',
    'OIDC_CLIENT_SECRET': '',
    'OIDC_REDIRECT_URI': 'http://localhost:4000/api/auth/oidc/callback',
    'OIDC_LOGOUT_URI': 'http://localhost:3000/',
    'OIDC_POST_LOGIN_REDIRECT': '',
    'COGNITO_DOMAIN': 'https://paperplane.auth.ap-southeast-2.amazoncognito.com',
}

DISCOVERY = {
    'authorization_endpoint': 'https://paperplane.auth.example.com/oauth2/authorize',
    'token_endpoint': 'https://paperplane.auth.example.com/oauth2/token',
    'userinfo_endpoint': 'https://paperplane.auth.example.com/oauth2/userInfo',
}


def json_response(payload: dict) -> MagicMock:
    response = MagicMock()
    response.json.return_value = payload
    return response


@override_settings(AUTH_USERNAME='admin', AUTH_PASSWORD='s3cret', API_AUTH_REQUIRED=True)
class LoginTests(TestCase):
    def login(self, username, password):
        return self.client.post(
            '/api/auth/login',
            data=json.dumps({'username': username, 'password': password}),
            content_type='application/json',
        )

    def test_health(self):
        self.assertEqual(self.client.get('/api/health').json(), {'status': 'ok'})

    def test_login_issues_token(self):
        response = self.login('admin', 's3cret')

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertTrue(body['success'])
        self.assertEqual(body['username'], 'admin')
        self.assertEqual(len(body['token']), 64)
        self.assertTrue(SessionToken.objects.filter(key=body['token'], provider='password').exists())

    def test_wrong_password(self):
        response = self.login('admin', 'nope')

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {'success': False, 'error': 'Invalid username or password'})
        self.assertFalse(SessionToken.objects.exists())

    def test_invalid_json(self):
        response = self.client.post('/api/auth/login', data='{not json', content_type='application/json')
        self.assertEqual(response.status_code, 400)

    def test_token_unlocks_protected_views(self):
        token = self.login('admin', 's3cret').json()['token']

        self.assertEqual(self.client.get('/api/questions').status_code, 401)
        response = self.client.get('/api/questions', HTTP_AUTHORIZATION=f'Bearer {token}')
        self.assertEqual(response.status_code, 200)

    def test_expired_token_is_rejected_and_removed(self):
        token = SessionToken.objects.create(username='admin')
        SessionToken.objects.filter(pk=token.pk).update(created_at=timezone.now() - timedelta(days=2))

        response = self.client.get('/api/questions', HTTP_AUTHORIZATION=f'Bearer {token.key}')

        self.assertEqual(response.status_code, 401)
        self.assertFalse(SessionToken.objects.filter(pk=token.pk).exists())

    @override_settings(API_AUTH_REQUIRED=False)
    def test_auth_can_be_disabled(self):
        self.assertEqual(self.client.get('/api/questions').status_code, 200)

    def test_logout_revokes_token(self):
        token = SessionToken.objects.create(username='admin')
        headers = {'HTTP_AUTHORIZATION': f'Bearer {token.key}'}

        self.assertEqual(self.client.post('/api/auth/logout', **headers).status_code, 200)
        self.assertFalse(SessionToken.objects.exists())
        self.assertEqual(self.client.post('/api/auth/logout', **headers).status_code, 401)


@override_settings(**OIDC_SETTINGS)
class OidcConfigTests(SimpleTestCase):
    def test_status_masks_client_id(self):
        status = oidc.get_config_status()
        self.assertEqual(status['clientId'], '***1234')
        self.assertTrue(status['configured'])

    @override_settings(OIDC_CLIENT_ID='', COGNITO_DOMAIN='')
    def test_status_reports_missing_values(self):
        status = oidc.get_config_status()
        self.assertEqual(status['clientId'], 'NOT_SET')
        self.assertEqual(status['cognitoDomain'], 'NOT_SET')
        self.assertFalse(status['configured'])

    def test_logout_url(self):
        url = urlparse(oidc.build_logout_url())
        self.assertEqual(f"{url.scheme}://{url.netloc}{url.path}", f"{OIDC_SETTINGS['COGNITO_DOMAIN']}/logout")
        self.assertEqual(parse_qs(url.query), {
            'client_id': ['client-abcd1234'],
            'logout_uri': ['http://localhost:3000/'],
        })

    @override_settings(COGNITO_DOMAIN='')
    def test_logout_url_needs_cognito_domain(self):
        with self.assertRaises(ConfigurationError):
            oidc.build_logout_url()

    def test_state_is_signed(self):
        self.assertTrue(oidc.check_state(oidc.make_state()))
        self.assertFalse(oidc.check_state('forged'))

    def test_username_fallbacks(self):
        self.assertEqual(oidc.username_from_userinfo({'email': 'a@b.c', 'sub': '1'}), 'a@b.c')
        self.assertEqual(oidc.username_from_userinfo({'sub': '1'}), '1')
        self.assertEqual(oidc.username_from_userinfo({}), 'oidc-user')


@override_settings(**OIDC_SETTINGS)
class OidcFlowTests(TestCase):
    @patch('apps.core.oidc.requests.request')
    def test_login_redirects_to_provider(self, request):
        request.return_value = json_response(DISCOVERY)

        response = self.client.get('/api/auth/oidc/login')

        self.assertEqual(response.status_code, 302)
        location = urlparse(response['Location'])
        self.assertEqual(f"{location.scheme}://{location.netloc}{location.path}", DISCOVERY['authorization_endpoint'])
        query = parse_qs(location.query)
        self.assertEqual(query['scope'], ['phone openid email'])
        self.assertEqual(query['redirect_uri'], [OIDC_SETTINGS['OIDC_REDIRECT_URI']])
        self.assertTrue(oidc.check_state(query['state'][0]))

    @patch('apps.core.oidc.requests.request')
    def test_callback_exchanges_code_for_session_token(self, request):
        request.side_effect = [
            json_response(DISCOVERY),
            json_response({'access_token': 'at', 'id_token': 'it'}),
            json_response({'sub': 'u-1', 'email': 'curator@paperplane.dev'}),
        ]

        response = self.client.get('/api/auth/oidc/callback', {'code': 'abc', 'state': oidc.make_state()})

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body['username'], 'curator@paperplane.dev')
        self.assertEqual(SessionToken.objects.get(key=body['token']).provider, 'oidc')

        token_call = request.call_args_list[1]
        self.assertEqual(token_call.args, ('POST', DISCOVERY['token_endpoint']))
        self.assertEqual(token_call.kwargs['data']['code'], 'abc')

    def test_callback_rejects_bad_state(self):
        response = self.client.get('/api/auth/oidc/callback', {'code': 'abc', 'state': 'forged'})
        self.assertEqual(response.status_code, 400)

    def test_logout_redirects_to_cognito(self):
        token = SessionToken.objects.create(username='admin', provider='oidc')

        response = self.client.get('/api/auth/oidc/logout', HTTP_AUTHORIZATION=f'Bearer {token.key}')

        self.assertEqual(response.status_code, 302)
        self.assertTrue(response['Location'].startswith(f"{OIDC_SETTINGS['COGNITO_DOMAIN']}/logout?"))
        self.assertFalse(SessionToken.objects.exists())
