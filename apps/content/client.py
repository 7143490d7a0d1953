import logging
from types import TracebackType
from typing import Any

import requests
from django.conf import settings

from apps.content.exceptions import NetworkError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60


class PaperplaneClient:
    """
    Talks to a running paperplane backend over HTTP.

    Transport failures never raise from the public methods: like the web app,
    they come back as ``{'success': False, 'message': ...}`` so each action
    can report its own status.
    """

    def __init__(self, base_url: str | None = None, token: str | None = None, timeout: int = DEFAULT_TIMEOUT) -> None:
        self.base_url = (base_url or settings.API_BASE_URL).rstrip('/')
        self.token = token
        self.timeout = timeout
        self.session = requests.Session()

    def __enter__(self) -> 'PaperplaneClient':
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        self.session.close()

    def request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        headers = kwargs.pop('headers', {})
        if self.token:
            headers['Authorization'] = f"Bearer {self.token}"

        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
            return response.json()
        except requests.RequestException as exc:
            raise NetworkError(f"Failed to connect to backend API at {self.base_url}: {exc}") from exc
        except ValueError as exc:
            raise NetworkError(f"Backend API returned a non-JSON response for {path}") from exc

    def _safe(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            return self.request(method, path, **kwargs)
        except NetworkError as e:
            logger.error("%s %s failed: %s", method, path, e)
            return {'success': False, 'message': str(e)}

    def login(self, username: str, password: str) -> dict[str, Any]:
        result = self._safe('POST', '/api/auth/login', json={'username': username, 'password': password})
        if result.get('success'):
            self.token = result['token']
        return result

    def extract(self, markdown: str, question_type: str = 'auto') -> dict[str, Any]:
        return self._safe('POST', '/api/questions/extract', json={'markdown': markdown, 'type': question_type})

    def upload_question(self, question: dict[str, Any]) -> dict[str, Any]:
        return self._safe('POST', '/api/questions/upload', json={'question': question})

    def upload_questions(self, questions: list[dict[str, Any]]) -> dict[str, Any]:
        result = self._safe('POST', '/api/questions/upload-batch', json={'questions': questions})
        if result.get('success'):
            return {
                'successful': result['successful'],
                'failed': result['failed'],
                'results': result['results'],
            }

        message = result.get('message') or 'Batch upload failed'
        return {
            'successful': 0,
            'failed': len(questions),
            'results': [{'success': False, 'message': message} for _ in questions],
        }

    def get_questions(self, subject: str | None = None, chapter: str | None = None,
                      section: str | None = None) -> dict[str, Any]:
        params = {key: value for key, value in
                  (('subject', subject), ('chapter', chapter), ('section', section)) if value}
        result = self._safe('GET', '/api/questions', params=params)
        if result.get('success'):
            return {'success': True, 'questions': result['questions']}
        return {'success': False, 'questions': [], 'error': result.get('message') or 'Failed to fetch questions'}

    def get_filter_options(self) -> dict[str, Any]:
        return self._safe('GET', '/api/questions/filter-options')

    def create_indexes(self) -> dict[str, Any]:
        return self._safe('POST', '/api/questions/create-indexes')

    def update_question(self, mongo_id: str, question: dict[str, Any]) -> dict[str, Any]:
        return self._safe('PUT', f"/api/questions/{mongo_id}", json={'question': question})

    def delete_question(self, mongo_id: str) -> dict[str, Any]:
        return self._safe('DELETE', f"/api/questions/{mongo_id}")

    def delete_questions(self, mongo_ids: list[str]) -> dict[str, Any]:
        return self._safe('POST', '/api/questions/delete-multiple', json={'ids': mongo_ids})
