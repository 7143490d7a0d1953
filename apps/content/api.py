import json
import logging
from typing import Any

import requests
from botocore.exceptions import BotoCoreError, ClientError
from django.conf import settings
from django.db import DatabaseError
from django.http import HttpResponse, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from apps.content import services
from apps.content.constants import AUTO_DETECT, MAX_FILE_SIZE
from apps.content.exceptions import (
    ConfigurationError,
    ExtractionError,
    NetworkError,
    ParseError,
    ValidationError,
)
from apps.content.models import Question
from apps.content.schemas import dump_question, parse_question
from apps.content.storage import ImageStore
from apps.core.auth import require_token

logger = logging.getLogger(__name__)

MARKDOWN_EXTENSIONS = ('.md', '.markdown')


def error_response(message: str, status: int) -> JsonResponse:
    return JsonResponse({'success': False, 'message': message}, status=status)


def read_json(request) -> dict[str, Any]:
    try:
        payload = json.loads(request.body or b'{}')
    except json.JSONDecodeError as exc:
        raise ValidationError(f"Invalid JSON body: {exc}") from exc
    if not isinstance(payload, dict):
        raise ValidationError('JSON body must be an object')
    return payload


def read_markdown(request) -> tuple[str, str]:
    if request.FILES.get('file'):
        upload = request.FILES['file']
        if not upload.name.lower().endswith(MARKDOWN_EXTENSIONS):
            raise ValidationError('Please upload a markdown (.md) file')
        if upload.size > MAX_FILE_SIZE:
            raise ValidationError(f"File is larger than {MAX_FILE_SIZE // (1024 * 1024)} MB")
        try:
            markdown = upload.read().decode('utf-8')
        except UnicodeDecodeError as exc:
            raise ValidationError('Markdown file must be UTF-8 encoded') from exc
        return markdown, request.POST.get('type') or AUTO_DETECT

    payload = read_json(request)
    markdown = payload.get('markdown') or ''
    if not isinstance(markdown, str):
        raise ValidationError("'markdown' must be a string")
    return markdown, payload.get('type') or AUTO_DETECT


@csrf_exempt
@require_POST
@require_token
def extract(request):
    try:
        markdown, question_type = read_markdown(request)
        if not markdown.strip():
            raise ValidationError('Markdown content is empty')
        questions = services.extract_questions(markdown, question_type)
    except (ValidationError, ValueError) as e:
        return error_response(str(e), 400)
    except ConfigurationError as e:
        logger.error("Extraction is misconfigured: %s", e)
        return error_response(str(e), 500)
    except (ExtractionError, ParseError, NetworkError) as e:
        logger.error("Extraction failed: %s", e)
        return error_response(str(e), 502)

    return JsonResponse({'success': True, 'questions': [dump_question(q) for q in questions]})


@csrf_exempt
@require_POST
@require_token
def upload(request):
    try:
        question = parse_question(read_json(request).get('question') or {})
        services.require_answers(question)
        with ImageStore.from_settings() as store:
            result = services.upload_question(question, store)
    except ValidationError as e:
        return error_response(str(e), 400)
    except ConfigurationError as e:
        return error_response(str(e), 500)
    except (NetworkError, BotoCoreError, ClientError) as e:
        logger.error("Image upload failed: %s", e)
        return error_response(str(e), 502)
    except DatabaseError as e:
        logger.error("Saving question failed: %s", e)
        return error_response(f"Failed to save question: {e}", 500)

    return JsonResponse(result)


@csrf_exempt
@require_POST
@require_token
def upload_batch(request):
    try:
        items = read_json(request).get('questions')
        if not isinstance(items, list):
            raise ValidationError("'questions' must be a list")
        with ImageStore.from_settings() as store:
            result = services.upload_questions(items, store)
    except ValidationError as e:
        return error_response(str(e), 400)
    except ConfigurationError as e:
        return error_response(str(e), 500)

    logger.info("Batch upload: %d successful, %d failed", result['successful'], result['failed'])
    return JsonResponse(result)


@require_GET
@require_token
def question_list(request):
    qs = services.list_questions(
        subject=request.GET.get('subject'),
        chapter=request.GET.get('chapter'),
        section=request.GET.get('section'),
    )
    return JsonResponse({'success': True, 'questions': [q.to_json() for q in qs]})


@require_GET
@require_token
def filter_options(request):
    return JsonResponse({'success': True, 'options': services.get_filter_options()})


@csrf_exempt
@require_POST
@require_token
def create_indexes(request):
    created = services.ensure_indexes()
    message = f"Created indexes: {', '.join(created)}" if created else 'All indexes already exist'
    return JsonResponse({'success': True, 'message': message, 'created': created})


@csrf_exempt
@require_http_methods(['PUT', 'DELETE'])
@require_token
def question_detail(request, pk: int):
    try:
        if request.method == 'DELETE':
            services.delete_question(pk)
            return JsonResponse({'success': True, 'message': 'Question deleted successfully'})

        services.update_question(pk, read_json(request).get('question') or {})
    except Question.DoesNotExist:
        return error_response(f"Question {pk} not found", 404)
    except ValidationError as e:
        return error_response(str(e), 400)

    return JsonResponse({'success': True, 'message': 'Question updated successfully'})


@csrf_exempt
@require_POST
@require_token
def delete_multiple(request):
    try:
        ids = read_json(request).get('ids')
        if not isinstance(ids, list) or not ids:
            raise ValidationError("'ids' must be a non-empty list")
        pks = [int(pk) for pk in ids]
    except ValidationError as e:
        return error_response(str(e), 400)
    except (TypeError, ValueError):
        return error_response("'ids' must contain question ids", 400)

    deleted_count = services.delete_questions(pks)
    return JsonResponse({
        'success': True,
        'message': f"Deleted {deleted_count} question(s)",
        'deletedCount': deleted_count,
    })


@require_GET
def image_proxy(request):
    """Streams a remote image through the backend so the browser avoids CORS."""
    url = request.GET.get('url', '')
    if not url.startswith(('http://', 'https://')):
        return error_response('A http(s) image url is required', 400)

    try:
        response = requests.get(url, timeout=settings.IMAGE_PROXY_TIMEOUT)
        response.raise_for_status()
    except requests.RequestException as e:
        logger.warning("Image proxy failed for %s: %s", url, e)
        return error_response(f"Failed to fetch image: {e}", 502)

    content_type = response.headers.get('Content-Type', 'application/octet-stream')
    if not content_type.startswith('image/'):
        return error_response('URL does not point to an image', 415)

    proxied = HttpResponse(response.content, content_type=content_type)
    proxied['Cache-Control'] = 'public, max-age=86400'
    return proxied
