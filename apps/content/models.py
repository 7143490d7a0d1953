from typing import Any

from django.db import models

from apps.content.schemas import BaseQuestion, Question as QuestionSchema, dump_question, parse_question


class Question(models.Model):
    """A curated question. The whole document lives in ``document``; filter fields are copied out."""
    TYPE_CHOICES = (
        ('single', 'Single Correct'),
        ('multiple', 'Multiple Correct'),
        ('integer', 'Integer / Numerical'),
        ('matrix', 'Matrix Match'),
        ('comprehension', 'Linked Comprehension'),
    )

    uid = models.CharField(max_length=36, db_index=True, help_text="UUID v5 of subject-chapter-section-type-number")
    question_number = models.IntegerField(null=True, blank=True, help_text="The number from the markdown file")

    subject = models.CharField(max_length=255, blank=True, null=True)
    chapter = models.CharField(max_length=255, blank=True, null=True)
    section = models.CharField(max_length=255, blank=True, null=True)
    type = models.CharField(max_length=20, choices=TYPE_CHOICES, default='single')

    document = models.JSONField()
    original_image_urls = models.JSONField(
        default=list, blank=True,
        help_text="Image URLs as they were in the markdown, before copying to S3"
    )

    uploaded_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ('subject', 'chapter', 'section', 'question_number', 'id')
        indexes = [
            models.Index(fields=['subject', 'chapter', 'section'], name='question_filter_idx'),
            models.Index(fields=['type'], name='question_type_idx'),
        ]

    def apply(self, question: BaseQuestion) -> None:
        document = dump_question(question)
        document.pop('_id', None)

        self.uid = question.id
        self.question_number = question.question_number
        self.subject = question.subject
        self.chapter = question.chapter
        self.section = question.section
        self.type = question.type
        self.document = document

    def to_schema(self) -> QuestionSchema:
        return parse_question({**self.document, '_id': str(self.pk)})

    def to_json(self) -> dict[str, Any]:
        data = {**self.document, '_id': str(self.pk)}
        data['uploadedAt'] = self.uploaded_at.isoformat() if self.uploaded_at else None
        return data

    def __str__(self) -> str:
        text = self.document.get('content', {}).get('text', '') if isinstance(self.document, dict) else ''
        return f"{self.question_number or '?'} [{self.type}] {text[:50]}..."
