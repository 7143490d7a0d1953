from django.contrib import admin
from django.contrib import messages

from apps.content.models import Question
from apps.content.services import ensure_indexes


@admin.register(Question)
class QuestionAdmin(admin.ModelAdmin):
    list_display = ('question_label', 'type', 'subject', 'chapter', 'section', 'short_text', 'answer_summary', 'uploaded_at')
    list_filter = ('type', 'subject', 'chapter', 'section')
    search_fields = ('uid', 'subject', 'chapter', 'section', 'question_number')
    readonly_fields = ('uid', 'original_image_urls', 'uploaded_at', 'updated_at')
    ordering = ('subject', 'chapter', 'section', 'question_number', 'id')
    actions = ('create_indexes',)

    @admin.display(description='Question', ordering='question_number')
    def question_label(self, obj: Question) -> str:
        q_num = obj.question_number if obj.question_number is not None else '?'
        return f"{q_num} ({obj.uid[:8]})"

    def short_text(self, obj: Question) -> str:
        text = (obj.document or {}).get('content', {}).get('text', '')
        return f"{text[:50]}..."

    @admin.display(description='Answers')
    def answer_summary(self, obj: Question) -> str:
        return ', '.join((obj.document or {}).get('answers', [])) or '—'

    @admin.action(description="⚡ Create missing filter indexes")
    def create_indexes(self, request, queryset):
        created = ensure_indexes()
        if created:
            self.message_user(request, f"Created indexes: {', '.join(created)}.", level=messages.SUCCESS)
        else:
            self.message_user(request, "All indexes already exist.", level=messages.INFO)
