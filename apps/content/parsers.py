import json
import logging
import re
import uuid
from typing import Any

from apps.content.constants import QUESTION_NAMESPACE, UNKNOWN
from apps.content.exceptions import ExtractionError, ParseError, ValidationError
from apps.content.schemas import Question, parse_question

logger = logging.getLogger(__name__)

METADATA_PATTERNS = {
    'subject': re.compile(r'^##\s*Subject\s*-\s*(.+)$', re.IGNORECASE | re.MULTILINE),
    'chapter': re.compile(r'^##\s*Chapter\s*-\s*(.+)$', re.IGNORECASE | re.MULTILINE),
    'section': re.compile(r'^##\s*Section\s*-\s*(.+)$', re.IGNORECASE | re.MULTILINE),
}

# Greedy on purpose: from the first "[" to the last "]" of the answer
JSON_ARRAY_PATTERN = re.compile(r'\[[\s\S]*\]')

LEGACY_FIELDS = ('description', 'imageUrl')


def extract_metadata(markdown: str) -> dict[str, str]:
    """
    Reads the ``## Subject - X`` / ``## Chapter - X`` / ``## Section - X`` headers.
    Only headers that are present end up in the result; the first match wins.
    """
    metadata = {}
    for key, pattern in METADATA_PATTERNS.items():
        match = pattern.search(markdown)
        if match:
            metadata[key] = match.group(1).strip()
    return metadata


def generate_question_id(
    subject: str | None = UNKNOWN,
    chapter: str | None = UNKNOWN,
    section: str | None = UNKNOWN,
    question_type: str | None = UNKNOWN,
    question_number: int | None = 1,
) -> str:
    id_string = '-'.join((
        subject or UNKNOWN,
        chapter or UNKNOWN,
        section or UNKNOWN,
        question_type or UNKNOWN,
        str(1 if question_number is None else question_number),
    ))
    return str(uuid.uuid5(QUESTION_NAMESPACE, id_string))


def normalize_option(option: Any) -> dict[str, Any]:
    if isinstance(option, dict):
        normalized = {'text': str(option.get('text') or '')}
        if option.get('image_url'):
            normalized['image_url'] = option['image_url']
        return normalized
    return {'text': str(option)}


def normalize_question(item: dict[str, Any]) -> dict[str, Any]:
    """
    Rewrites the old flat shape (``description`` / ``imageUrl``) into the nested
    ``content`` shape. Items that already have ``content`` come back untouched.
    """
    if not item.get('description') or item.get('content'):
        return item

    normalized = {key: value for key, value in item.items() if key not in LEGACY_FIELDS}
    normalized['type'] = item.get('type') or 'single'
    normalized['content'] = {
        'text': item['description'],
        'images': [item['imageUrl']] if item.get('imageUrl') else [],
    }
    if item.get('options') is not None:
        normalized['options'] = [normalize_option(opt) for opt in item['options']]

    return normalized


def get_question_number(item: dict[str, Any], position: int) -> int:
    raw_id = item.get('id')
    if isinstance(raw_id, (int, float)) and not isinstance(raw_id, bool):
        return int(raw_id)
    return position


class QuestionParser:
    def __init__(self, metadata: dict[str, str]) -> None:
        self.metadata = metadata

    def find_json_array(self, response_text: str) -> str:
        match = JSON_ARRAY_PATTERN.search(response_text)
        if not match:
            raise ExtractionError('No JSON array found in response')
        return match.group(0)

    def load_items(self, response_text: str) -> list[Any]:
        try:
            return json.loads(self.find_json_array(response_text))
        except json.JSONDecodeError as exc:
            raise ParseError(f"Model returned malformed JSON: {exc}") from exc

    def build_question(self, item: Any, position: int) -> Question:
        if not isinstance(item, dict):
            raise ParseError(f"Question {position} is not a JSON object")

        question_number = get_question_number(item, position)
        question_type = item.get('type') or 'single'
        question_id = generate_question_id(
            self.metadata.get('subject', UNKNOWN),
            self.metadata.get('chapter', UNKNOWN),
            self.metadata.get('section', UNKNOWN),
            question_type,
            question_number,
        )

        data = normalize_question(item)
        data = {
            **data,
            'id': question_id,
            'questionNumber': question_number,
            'type': question_type,
            'subject': self.metadata.get('subject'),
            'chapter': self.metadata.get('chapter'),
            'section': self.metadata.get('section'),
        }

        try:
            return parse_question(data)
        except ValidationError as exc:
            raise ParseError(f"Question {question_number}: {exc}") from exc

    def parse(self, response_text: str) -> list[Question]:
        items = self.load_items(response_text)
        if not isinstance(items, list):
            raise ParseError('Model response is not a JSON array')

        questions = [self.build_question(item, position) for position, item in enumerate(items, start=1)]
        logger.info("Parsed %d questions (subject=%s, chapter=%s, section=%s)",
                    len(questions),
                    self.metadata.get('subject', UNKNOWN),
                    self.metadata.get('chapter', UNKNOWN),
                    self.metadata.get('section', UNKNOWN))
        return questions
