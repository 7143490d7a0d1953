import logging
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError
from django.db import DatabaseError, connection, transaction

from apps.content.constants import AUTO_DETECT
from apps.content.exceptions import ExtractionError, PaperplaneError, ValidationError
from apps.content.groq_client import GroqClient
from apps.content.models import Question
from apps.content.parsers import QuestionParser, extract_metadata
from apps.content.prompts import get_prompt_for_type
from apps.content.schemas import BaseQuestion, Question as QuestionSchema, parse_question
from apps.content.storage import ImageStore

logger = logging.getLogger(__name__)


def extract_questions(
    markdown: str,
    question_type: str = AUTO_DETECT,
    client: GroqClient | None = None
) -> list[QuestionSchema]:
    """
    Sends the markdown to the model and turns its JSON answer into questions.
    Any failure aborts the whole batch; nothing is retried.
    """
    metadata = extract_metadata(markdown)
    prompt = get_prompt_for_type(question_type)

    client = client or GroqClient()
    logger.info("Extracting '%s' questions from %d characters of markdown", question_type, len(markdown))
    response = client.get_questions_from_markdown(prompt, markdown)

    if not response:
        raise ExtractionError('No response from the model')

    return QuestionParser(metadata).parse(response)


def _rollback_images(store: ImageStore, uploaded: dict[str, str]) -> None:
    for s3_url in uploaded.values():
        try:
            store.delete_image(store.extract_key(s3_url))
        except (BotoCoreError, ClientError) as e:
            logger.error("Could not roll back image %s: %s", s3_url, e)


def require_answers(question: BaseQuestion) -> list[str]:
    answers = question.collect_answers()
    if not answers:
        raise ValidationError('Please select/enter answer(s) before uploading')
    return answers


def upload_question(question: BaseQuestion, store: ImageStore) -> dict[str, Any]:
    question.answers = require_answers(question)

    original_urls = question.image_urls()
    uploaded: dict[str, str] = {}

    try:
        for url in original_urls:
            if url in uploaded or store.is_stored_url(url):
                continue
            uploaded[url] = store.upload_image(url)
        question.replace_image_urls(uploaded)

        with transaction.atomic():
            record = Question(original_image_urls=original_urls)
            record.apply(question)
            record.save()
    except Exception:
        _rollback_images(store, uploaded)
        raise

    logger.info("Stored question %s as #%s (%d images copied)", question.id, record.pk, len(uploaded))
    result = {
        'success': True,
        'message': 'Question uploaded successfully',
        'mongoId': str(record.pk),
    }
    if uploaded:
        result['s3Url'] = next(iter(uploaded.values()))
    return result


def upload_questions(items: list[dict[str, Any]], store: ImageStore) -> dict[str, Any]:
    """Uploads each question on its own; one failure never affects the others."""
    results = []
    for item in items:
        try:
            question = parse_question(item)
            results.append(upload_question(question, store))
        except (PaperplaneError, DatabaseError, BotoCoreError, ClientError) as e:
            logger.warning("Batch item %s failed: %s", item.get('id') if isinstance(item, dict) else '?', e)
            results.append({'success': False, 'message': str(e)})

    successful = sum(1 for result in results if result['success'])
    return {
        'success': True,
        'successful': successful,
        'failed': len(results) - successful,
        'results': results,
    }


def list_questions(subject: str | None = None, chapter: str | None = None, section: str | None = None):
    qs = Question.objects.all()
    if subject:
        qs = qs.filter(subject=subject)
    if chapter:
        qs = qs.filter(chapter=chapter)
    if section:
        qs = qs.filter(section=section)
    return qs


def get_filter_options() -> dict[str, list[str]]:
    def distinct(field: str) -> list[str]:
        values = Question.objects.exclude(**{f'{field}__isnull': True}).exclude(**{field: ''})
        return list(values.order_by(field).values_list(field, flat=True).distinct())

    return {
        'subjects': distinct('subject'),
        'chapters': distinct('chapter'),
        'sections': distinct('section'),
    }


def update_question(pk: int, data: dict[str, Any]) -> Question:
    record = Question.objects.get(pk=pk)
    question = parse_question(data)
    record.apply(question)
    record.save()
    return record


def delete_question(pk: int) -> None:
    deleted_count, _ = Question.objects.filter(pk=pk).delete()
    if not deleted_count:
        raise Question.DoesNotExist(f"Question {pk} does not exist")


def delete_questions(pks: list[int]) -> int:
    deleted_count, _ = Question.objects.filter(pk__in=pks).delete()
    return deleted_count


def ensure_indexes() -> list[str]:
    """Creates any index declared on Question that the database is missing."""
    table = Question._meta.db_table
    with connection.cursor() as cursor:
        existing = connection.introspection.get_constraints(cursor, table)

    missing = [index for index in Question._meta.indexes if index.name not in existing]
    if missing:
        with connection.schema_editor() as editor:
            for index in missing:
                editor.add_index(Question, index)
                logger.info("Created index %s on %s", index.name, table)

    return [index.name for index in missing]
