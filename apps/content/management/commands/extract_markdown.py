import json
from pathlib import Path

from django.core.management.base import BaseCommand, CommandError

from apps.content.constants import AUTO_DETECT, QUESTION_TYPES
from apps.content.exceptions import PaperplaneError
from apps.content.schemas import dump_question
from apps.content.services import extract_questions


class Command(BaseCommand):
    help = 'Extracts questions from a markdown file and writes them as JSON for answer curation.'

    def add_arguments(self, parser):
        parser.add_argument('markdown_file', type=Path)
        parser.add_argument('--type', default=AUTO_DETECT, choices=(*QUESTION_TYPES, AUTO_DETECT))
        parser.add_argument('--output', type=Path, help='Defaults to <markdown_file>.questions.json')

    def handle(self, *args, **options):
        source: Path = options['markdown_file']
        if not source.is_file():
            raise CommandError(f"{source} does not exist")

        output: Path = options['output'] or source.with_suffix('.questions.json')

        self.stdout.write(f"Extracting '{options['type']}' questions from {source}...")
        try:
            questions = extract_questions(source.read_text(encoding='utf-8'), options['type'])
        except PaperplaneError as e:
            raise CommandError(f"Extraction failed: {e}") from e

        output.write_text(json.dumps([dump_question(q) for q in questions], indent=2, ensure_ascii=False), encoding='utf-8')
        self.stdout.write(self.style.SUCCESS(f"Wrote {len(questions)} questions to {output}"))
