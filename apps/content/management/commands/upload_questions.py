import json
from pathlib import Path

from django.core.management.base import BaseCommand, CommandError

from apps.content.client import PaperplaneClient
from apps.content.exceptions import ConfigurationError
from apps.content.services import upload_questions
from apps.content.storage import ImageStore


class Command(BaseCommand):
    help = 'Uploads a curated questions JSON file, locally or to a remote backend.'

    def add_arguments(self, parser):
        parser.add_argument('questions_file', type=Path)
        parser.add_argument('--api-url', help='Push through the REST API of this backend instead of the local DB')
        parser.add_argument('--username')
        parser.add_argument('--password')

    def handle(self, *args, **options):
        source: Path = options['questions_file']
        try:
            questions = json.loads(source.read_text(encoding='utf-8'))
        except (OSError, json.JSONDecodeError) as e:
            raise CommandError(f"Could not read {source}: {e}") from e

        if not isinstance(questions, list):
            raise CommandError(f"{source} must contain a JSON list of questions")

        if options['api_url']:
            result = self.push_remote(questions, options)
        else:
            try:
                with ImageStore.from_settings() as store:
                    result = upload_questions(questions, store)
            except ConfigurationError as e:
                raise CommandError(str(e)) from e

        for index, item in enumerate(result['results'], start=1):
            if not item['success']:
                self.stdout.write(self.style.WARNING(f"#{index}: {item['message']}"))

        self.stdout.write(self.style.SUCCESS(
            f"Upload completed! {result['successful']} successful, {result['failed']} failed."
        ))

    def push_remote(self, questions, options):
        with PaperplaneClient(base_url=options['api_url']) as client:
            if options['username']:
                login = client.login(options['username'], options['password'] or '')
                if not login.get('success'):
                    raise CommandError(f"Login failed: {login.get('error') or login.get('message')}")
            return client.upload_questions(questions)
