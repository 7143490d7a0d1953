import json
import tempfile
import uuid
from io import StringIO
from pathlib import Path
from unittest.mock import MagicMock, patch

import requests
from botocore.exceptions import ClientError
from django.core.files.uploadedfile import SimpleUploadedFile
from django.core.management import call_command
from django.db import DatabaseError
from django.test import SimpleTestCase, TestCase, override_settings

from apps.content import services
from apps.content.client import PaperplaneClient
from apps.content.constants import QUESTION_NAMESPACE
from apps.content.exceptions import (
    ConfigurationError,
    ExtractionError,
    NetworkError,
    ParseError,
    ValidationError,
)
from apps.content.groq_client import GroqClient
from apps.content.models import Question
from apps.content.parsers import (
    QuestionParser,
    extract_metadata,
    generate_question_id,
    normalize_question,
)
from apps.content.prompts import get_prompt_for_type
from apps.content.schemas import (
    ComprehensionQuestion,
    IntegerQuestion,
    MatrixQuestion,
    MultipleChoiceQuestion,
    SingleChoiceQuestion,
    dump_question,
    parse_question,
)
from apps.content.storage import ImageStore
from apps.core.models import SessionToken

CHEMISTRY_MARKDOWN = """## Subject - Chemistry
## Chapter - Bonding
## Section - Ionic

# Single Correct Answer Type

1. Which compound is ionic?
(1) NaCl
(2) CH4
(3) H2O
(4) CO2

2. Lattice energy is highest for
(1) NaF
(2) NaCl
(3) NaBr
(4) NaI
"""

CHEMISTRY_RESPONSE = json.dumps([
    {
        "id": 1,
        "type": "single",
        "content": {"text": "Which compound is ionic?", "images": []},
        "options": [{"text": "NaCl"}, {"text": "CH4"}, {"text": "H2O"}, {"text": "CO2"}],
        "answers": []
    },
    {
        "id": 2,
        "type": "single",
        "content": {"text": "Lattice energy is highest for", "images": []},
        "options": [{"text": "NaF"}, {"text": "NaCl"}, {"text": "NaBr"}, {"text": "NaI"}],
        "answers": []
    },
])


def fake_llm(response: str | None) -> MagicMock:
    client = MagicMock(spec=GroqClient)
    client.get_questions_from_markdown.return_value = response
    return client


def question_data(**overrides) -> dict:
    data = {
        'id': str(uuid.uuid4()),
        'type': 'single',
        'questionNumber': 1,
        'subject': 'Physics',
        'chapter': 'Mechanics',
        'section': 'Kinematics',
        'content': {'text': 'What is velocity?', 'images': []},
        'options': [{'text': 'dx/dt'}, {'text': 'dv/dt'}],
        'answers': ['0'],
    }
    data.update(overrides)
    return data


def store_question(**overrides) -> Question:
    record = Question()
    record.apply(parse_question(question_data(**overrides)))
    record.save()
    return record


def make_store(client: MagicMock | None = None) -> ImageStore:
    return ImageStore(client or MagicMock(), 'paperplane-images', 'ap-southeast-2', acl='public-read')


class MetadataExtractorTests(SimpleTestCase):
    def test_no_headers_gives_empty_metadata(self):
        self.assertEqual(extract_metadata("# Questions\n\n1. What is 2 + 2?"), {})

    def test_headers_are_case_insensitive(self):
        markdown = "## subject - Physics\n## CHAPTER - Mechanics\n\n1. Question"
        self.assertEqual(extract_metadata(markdown), {'subject': 'Physics', 'chapter': 'Mechanics'})

    def test_first_match_wins_and_values_are_stripped(self):
        markdown = "## Section -   Ionic  \r\n## Section - Covalent\n"
        self.assertEqual(extract_metadata(markdown), {'section': 'Ionic'})

    def test_header_must_start_the_line(self):
        self.assertEqual(extract_metadata("Text ## Subject - Physics"), {})


class QuestionIdTests(SimpleTestCase):
    def test_id_is_uuid5_of_joined_parts(self):
        expected = str(uuid.uuid5(QUESTION_NAMESPACE, 'Physics-Mechanics-Kinematics-single-1'))
        self.assertEqual(generate_question_id('Physics', 'Mechanics', 'Kinematics', 'single', 1), expected)

    def test_same_input_same_id(self):
        first = generate_question_id('Chemistry', 'Bonding', 'Ionic', 'matrix', 7)
        second = generate_question_id('Chemistry', 'Bonding', 'Ionic', 'matrix', 7)
        self.assertEqual(first, second)

    def test_any_changed_component_changes_the_id(self):
        base = ('Chemistry', 'Bonding', 'Ionic', 'single', 1)
        variants = [
            ('Physics', 'Bonding', 'Ionic', 'single', 1),
            ('Chemistry', 'Acids', 'Ionic', 'single', 1),
            ('Chemistry', 'Bonding', 'Covalent', 'single', 1),
            ('Chemistry', 'Bonding', 'Ionic', 'multiple', 1),
            ('Chemistry', 'Bonding', 'Ionic', 'single', 2),
            ('Chemistry', 'Bonding', 'Ionic', 'single', 0),
        ]
        base_id = generate_question_id(*base)
        for variant in variants:
            self.assertNotEqual(generate_question_id(*variant), base_id, variant)

    def test_missing_parts_default_to_unknown(self):
        self.assertEqual(
            generate_question_id(None, None, None, None, None),
            str(uuid.uuid5(QUESTION_NAMESPACE, 'Unknown-Unknown-Unknown-Unknown-1')),
        )


class PromptBuilderTests(SimpleTestCase):
    def test_every_prompt_forbids_guessing_answers(self):
        for selector in ('single', 'multiple', 'integer', 'matrix', 'comprehension', 'auto'):
            prompt = get_prompt_for_type(selector)
            self.assertIn('DO NOT extract or guess answers', prompt)
            self.assertIn('JSON array', prompt)

    def test_choice_prompt_names_the_requested_type(self):
        self.assertIn('"type": "multiple"', get_prompt_for_type('multiple'))
        self.assertIn('"type": "single"', get_prompt_for_type('single'))

    def test_type_specific_shapes(self):
        self.assertIn('"matrix_match"', get_prompt_for_type('matrix'))
        self.assertIn('"sub_questions"', get_prompt_for_type('comprehension'))
        self.assertIn('Linked Comprehension Type', get_prompt_for_type('auto'))

    def test_unknown_type_is_rejected(self):
        with self.assertRaises(ValueError):
            get_prompt_for_type('essay')


class QuestionNormalizerTests(SimpleTestCase):
    def setUp(self):
        self.legacy = {
            'id': 3,
            'description': 'Find the force.',
            'imageUrl': 'https://cdn.mathpix.com/force.png',
            'options': ['10 N', {'text': '20 N', 'image_url': 'https://cdn.mathpix.com/b.png'}],
        }

    def test_legacy_shape_becomes_nested(self):
        normalized = normalize_question(self.legacy)

        self.assertEqual(normalized['content'], {
            'text': 'Find the force.',
            'images': ['https://cdn.mathpix.com/force.png'],
        })
        self.assertEqual(normalized['options'], [
            {'text': '10 N'},
            {'text': '20 N', 'image_url': 'https://cdn.mathpix.com/b.png'},
        ])
        self.assertEqual(normalized['type'], 'single')
        self.assertNotIn('description', normalized)
        self.assertNotIn('imageUrl', normalized)

    def test_normalize_is_idempotent(self):
        nested = {'id': 1, 'type': 'integer', 'content': {'text': 'Q', 'images': []}}
        for item in (self.legacy, nested):
            once = normalize_question(item)
            self.assertEqual(normalize_question(once), once)

    def test_content_wins_over_description(self):
        """An item carrying both shapes keeps its nested content."""
        item = {'description': 'old', 'content': {'text': 'new'}}
        self.assertIs(normalize_question(item), item)

    def test_does_not_mutate_input(self):
        snapshot = json.loads(json.dumps(self.legacy))
        normalize_question(self.legacy)
        self.assertEqual(self.legacy, snapshot)


class QuestionParserTests(SimpleTestCase):
    def setUp(self):
        self.parser = QuestionParser({'subject': 'Physics', 'chapter': 'Mechanics'})

    def test_no_array_raises_extraction_error(self):
        with self.assertRaises(ExtractionError):
            self.parser.parse("Sorry, I could not find any questions.")

    def test_malformed_json_raises_parse_error(self):
        with self.assertRaises(ParseError):
            self.parser.parse('Here you go: [{"id": 1, "type": "single",]')

    def test_single_question_is_numbered_and_identified(self):
        questions = self.parser.parse(
            '[{"id":1,"type":"single","content":{"text":"Q"},"options":[{"text":"A"}]}]'
        )

        self.assertEqual(len(questions), 1)
        question = questions[0]
        self.assertIsInstance(question, SingleChoiceQuestion)
        self.assertEqual(question.question_number, 1)
        self.assertEqual(question.id, generate_question_id('Physics', 'Mechanics', 'Unknown', 'single', 1))
        self.assertEqual(question.subject, 'Physics')
        self.assertIsNone(question.section)
        self.assertEqual(question.options[0].text, 'A')

    def test_position_is_used_when_id_is_missing(self):
        questions = self.parser.parse(
            'Result:\n```json\n[{"type":"integer","content":{"text":"A"}},'
            '{"id":"x","type":"integer","content":{"text":"B"}}]\n```'
        )
        self.assertEqual([q.question_number for q in questions], [1, 2])
        self.assertTrue(all(isinstance(q, IntegerQuestion) for q in questions))

    def test_question_zero_keeps_its_number(self):
        questions = self.parser.parse(
            '[{"id":0,"type":"integer","content":{"text":"A"}},'
            '{"id":1,"type":"integer","content":{"text":"B"}}]'
        )
        self.assertEqual([q.question_number for q in questions], [0, 1])
        self.assertEqual(questions[0].id, generate_question_id('Physics', 'Mechanics', 'Unknown', 'integer', 0))
        self.assertNotEqual(questions[0].id, questions[1].id)

    def test_missing_type_defaults_to_single(self):
        questions = self.parser.parse('[{"id": 4, "description": "Legacy?", "options": ["a", "b"]}]')
        self.assertEqual(questions[0].type, 'single')
        self.assertEqual(questions[0].content.text, 'Legacy?')
        self.assertEqual(len(questions[0].options), 2)

    def test_unknown_type_fails_the_whole_batch(self):
        with self.assertRaises(ParseError):
            self.parser.parse(
                '[{"id":1,"type":"single","content":{"text":"ok"}},'
                '{"id":2,"type":"essay","content":{"text":"bad"}}]'
            )


class ExtractionPipelineTests(SimpleTestCase):
    def test_no_response_raises(self):
        with self.assertRaises(ExtractionError):
            services.extract_questions("1. Q", 'single', client=fake_llm(None))

    def test_prompt_and_markdown_are_sent(self):
        llm = fake_llm('[]')
        services.extract_questions(CHEMISTRY_MARKDOWN, 'matrix', client=llm)

        prompt, markdown = llm.get_questions_from_markdown.call_args.args
        self.assertIn('MATRIX MATCH', prompt)
        self.assertEqual(markdown, CHEMISTRY_MARKDOWN)

    def test_chemistry_single_choice_scenario(self):
        """Two (1)...(4) questions under a Single Correct heading give two curated-ready questions."""
        questions = services.extract_questions(CHEMISTRY_MARKDOWN, 'single', client=fake_llm(CHEMISTRY_RESPONSE))

        self.assertEqual(len(questions), 2)
        for question in questions:
            self.assertEqual(question.type, 'single')
            self.assertEqual(len(question.options), 4)
            self.assertEqual(question.answers, [])
            self.assertEqual(
                (question.subject, question.chapter, question.section),
                ('Chemistry', 'Bonding', 'Ionic')
            )
        self.assertNotEqual(questions[0].id, questions[1].id)

        # Re-running the same document gives the same ids
        again = services.extract_questions(CHEMISTRY_MARKDOWN, 'single', client=fake_llm(CHEMISTRY_RESPONSE))
        self.assertEqual([q.id for q in again], [q.id for q in questions])


class QuestionVariantTests(SimpleTestCase):
    def test_single_choice_replaces_selection(self):
        question = parse_question(question_data(answers=[]))
        question.select_option(0)
        question.select_option(1)
        self.assertEqual(question.collect_answers(), ['1'])

    def test_multiple_choice_toggles(self):
        question = parse_question(question_data(type='multiple', answers=[]))
        self.assertIsInstance(question, MultipleChoiceQuestion)
        question.select_option(0)
        question.select_option(1)
        question.select_option(0)
        self.assertEqual(question.collect_answers(), ['1'])

    def test_choice_index_must_exist(self):
        question = parse_question(question_data())
        with self.assertRaises(ValidationError):
            question.select_option(5)

    def test_integer_answer(self):
        question = parse_question(question_data(type='integer', answers=[]))
        question.set_answer(' -3.14 ')
        self.assertEqual(question.collect_answers(), ['-3.14'])

        with self.assertRaises(ValidationError):
            question.set_answer('12abc')

        question.set_answer('')
        self.assertFalse(question.is_complete())

    def test_matrix_mapping(self):
        question = parse_question(question_data(
            type='matrix',
            matrix_match={'columnA': ['A. Force', 'B. Power'], 'columnB': ['P. Newton', 'Q. Watt'], 'map': {}},
        ))
        self.assertIsInstance(question, MatrixQuestion)
        self.assertFalse(hasattr(question, 'options'))

        question.add_mapping('A', 'p')
        question.add_mapping('B', 'Q')
        question.add_mapping('B', 'P')
        self.assertEqual(question.collect_answers(), ['A→P', 'B→Q,P'])

        with self.assertRaises(ValidationError):
            question.add_mapping('A', 'Z')
        with self.assertRaises(ValidationError):
            question.add_mapping('A', 'P')
        with self.assertRaises(ValidationError):
            question.add_mapping('C', 'P')

        question.remove_mapping('A', 'P')
        self.assertEqual(question.collect_answers(), ['B→Q,P'])
        self.assertEqual(dump_question(question)['matrix_match']['columnA'], ['A. Force', 'B. Power'])

    def test_comprehension_two_of_three_answered(self):
        sub = {'type': 'single', 'content': {'text': 'Sub'}, 'options': [{'text': 'x'}, {'text': 'y'}]}
        question = parse_question(question_data(
            type='comprehension',
            comprehension_passage={'text': 'A car accelerates...'},
            sub_questions=[dict(sub), dict(sub), dict(sub)],
        ))
        self.assertIsInstance(question, ComprehensionQuestion)

        question.select_option(0, 'x')
        question.select_option(2, 'y')

        self.assertEqual(question.answer_summary(), '2/3 answered')
        self.assertFalse(question.is_complete())
        self.assertEqual(question.collect_answers(), [])

        question.select_option(1, 'x')
        self.assertEqual(question.collect_answers(), ['3/3 answered'])

    def test_comprehension_without_sub_questions_is_never_complete(self):
        question = parse_question(question_data(type='comprehension', sub_questions=[]))
        self.assertFalse(question.is_complete())

    def test_image_urls_cover_every_part(self):
        question = parse_question(question_data(
            type='comprehension',
            content={'text': '', 'images': ['https://img/1.png']},
            comprehension_passage={'text': 'p', 'images': ['https://img/2.png']},
            sub_questions=[{
                'content': {'text': 's', 'images': ['https://img/3.png']},
                'options': [{'text': 'o', 'image_url': 'https://img/4.png'}, {'text': 'n', 'image_url': ''}],
            }],
        ))
        self.assertEqual(question.image_urls(), [
            'https://img/1.png', 'https://img/2.png', 'https://img/3.png', 'https://img/4.png'
        ])

        question.replace_image_urls({'https://img/4.png': 'https://s3/4.png'})
        self.assertEqual(question.sub_questions[0].options[0].image_url, 'https://s3/4.png')

    def test_dump_keeps_wire_field_names(self):
        dumped = dump_question(parse_question(question_data(_id='12')))
        self.assertEqual(dumped['questionNumber'], 1)
        self.assertEqual(dumped['_id'], '12')
        self.assertNotIn('meta', dumped)

    def test_invalid_payload_raises_validation_error(self):
        with self.assertRaises(ValidationError):
            parse_question({'type': 'single'})


class GroqClientTests(SimpleTestCase):
    @override_settings(GROQ_API_KEY='')
    def test_missing_key_fails_on_first_use(self):
        client = GroqClient()
        with self.assertRaises(ConfigurationError):
            client.get_questions_from_markdown('prompt', 'markdown')

    @patch('apps.content.groq_client.Groq')
    def test_sends_system_prompt_and_markdown(self, groq_cls):
        completion = MagicMock()
        completion.choices = [MagicMock(message=MagicMock(content='[]'))]
        groq_cls.return_value.chat.completions.create.return_value = completion

        client = GroqClient(api_key='gsk_test', model='test-model')
        self.assertEqual(client.get_questions_from_markdown('PROMPT', '# md'), '[]')

        kwargs = groq_cls.return_value.chat.completions.create.call_args.kwargs
        self.assertEqual(kwargs['model'], 'test-model')
        self.assertEqual(kwargs['messages'][0], {'role': 'system', 'content': 'PROMPT'})
        self.assertEqual(kwargs['messages'][1]['content'], "Extract all questions from this markdown:\n\n# md")
        self.assertEqual(kwargs['max_tokens'], 4000)

    @patch('apps.content.groq_client.Groq')
    def test_empty_choices_is_no_response(self, groq_cls):
        groq_cls.return_value.chat.completions.create.return_value = MagicMock(choices=[])
        self.assertIsNone(GroqClient(api_key='gsk_test').get_questions_from_markdown('p', 'm'))


class ImageStoreTests(SimpleTestCase):
    def test_missing_bucket_is_a_configuration_error(self):
        with self.assertRaises(ConfigurationError):
            ImageStore(MagicMock(), '', 'ap-southeast-2')

    def test_image_key_keeps_extension(self):
        key = ImageStore.generate_image_key('https://cdn.mathpix.com/crop/abc.PNG?height=120')
        self.assertTrue(key.startswith('questions/'))
        self.assertTrue(key.endswith('.png'))
        self.assertTrue(ImageStore.generate_image_key('https://example.com/image').endswith('.jpg'))

    def test_same_url_gets_distinct_keys(self):
        url = 'https://example.com/a.png'
        self.assertNotEqual(ImageStore.generate_image_key(url), ImageStore.generate_image_key(url))

    @patch('apps.content.storage.requests.get')
    def test_upload_image(self, get):
        get.return_value = MagicMock(content=b'png-bytes', headers={'Content-Type': 'image/png'})
        boto = MagicMock()
        store = make_store(boto)

        url = store.upload_image('https://cdn.mathpix.com/a.png')

        params = boto.put_object.call_args.kwargs
        self.assertEqual(params['Bucket'], 'paperplane-images')
        self.assertEqual(params['Body'], b'png-bytes')
        self.assertEqual(params['ContentType'], 'image/png')
        self.assertEqual(params['ACL'], 'public-read')
        self.assertEqual(url, f"https://paperplane-images.s3.ap-southeast-2.amazonaws.com/{params['Key']}")
        self.assertTrue(store.is_stored_url(url))
        self.assertEqual(store.extract_key(url), params['Key'])

    @patch('apps.content.storage.requests.get', side_effect=requests.ConnectionError('refused'))
    def test_download_failure_is_network_error(self, get):
        with self.assertRaises(NetworkError):
            make_store().upload_image('https://cdn.mathpix.com/a.png')

    def test_context_manager_closes_client(self):
        boto = MagicMock()
        with make_store(boto) as store:
            store.delete_image('questions/a.png')
        boto.delete_object.assert_called_once_with(Bucket='paperplane-images', Key='questions/a.png')
        boto.close.assert_called_once()
        self.assertIsNone(store.client)


@patch('apps.content.storage.requests.get')
class UploadServiceTests(TestCase):
    def setUp(self):
        self.boto = MagicMock()
        self.store = make_store(self.boto)

    def test_question_without_answers_is_rejected(self, get):
        question = parse_question(question_data(answers=[]))
        with self.assertRaises(ValidationError):
            services.upload_question(question, self.store)
        self.assertEqual(Question.objects.count(), 0)

    def test_images_are_copied_and_urls_rewritten(self, get):
        get.return_value = MagicMock(content=b'img', headers={'Content-Type': 'image/png'})
        question = parse_question(question_data(
            content={'text': 'Q', 'images': ['https://cdn.mathpix.com/q.png']},
            options=[{'text': 'A', 'image_url': 'https://cdn.mathpix.com/q.png'}, {'text': 'B'}],
        ))

        result = services.upload_question(question, self.store)

        self.assertTrue(result['success'])
        self.assertEqual(self.boto.put_object.call_count, 1)
        record = Question.objects.get(pk=int(result['mongoId']))
        self.assertEqual(record.original_image_urls, ['https://cdn.mathpix.com/q.png', 'https://cdn.mathpix.com/q.png'])
        self.assertEqual(record.document['content']['images'], [result['s3Url']])
        self.assertEqual(record.document['options'][0]['image_url'], result['s3Url'])
        self.assertNotIn('_id', record.document)

    def test_failed_save_rolls_back_images(self, get):
        get.return_value = MagicMock(content=b'img', headers={'Content-Type': 'image/png'})
        question = parse_question(question_data(content={'text': 'Q', 'images': ['https://cdn.mathpix.com/q.png']}))

        with patch.object(Question, 'save', side_effect=DatabaseError('db down')):
            with self.assertRaises(DatabaseError):
                services.upload_question(question, self.store)

        key = self.boto.put_object.call_args.kwargs['Key']
        self.boto.delete_object.assert_called_once_with(Bucket='paperplane-images', Key=key)

    def test_matrix_answers_are_stored_as_mapping_tokens(self, get):
        question = parse_question(question_data(
            type='matrix',
            answers=[],
            matrix_match={'columnA': ['A. x'], 'columnB': ['P. y'], 'map': {'A': ['P']}},
        ))
        result = services.upload_question(question, self.store)
        record = Question.objects.get(pk=int(result['mongoId']))
        self.assertEqual(record.document['answers'], ['A→P'])
        self.assertEqual(record.type, 'matrix')

    def test_batch_counts_successes_and_failures(self, get):
        items = [question_data(), question_data(answers=[]), {'type': 'essay'}]

        result = services.upload_questions(items, self.store)

        self.assertEqual((result['successful'], result['failed']), (1, 2))
        self.assertEqual([r['success'] for r in result['results']], [True, False, False])
        self.assertEqual(Question.objects.count(), 1)


class QuestionQueryTests(TestCase):
    def setUp(self):
        store_question(subject='Physics', chapter='Mechanics', section='Kinematics')
        store_question(subject='Physics', chapter='Optics', section='Lenses', questionNumber=2)
        store_question(subject='Chemistry', chapter='Bonding', section='Ionic', type='integer', answers=['4'])

    def test_filters(self):
        self.assertEqual(services.list_questions().count(), 3)
        self.assertEqual(services.list_questions(subject='Physics').count(), 2)
        self.assertEqual(services.list_questions(subject='Physics', chapter='Optics').count(), 1)
        self.assertEqual(services.list_questions(section='Ionic').get().type, 'integer')

    def test_filter_options(self):
        self.assertEqual(services.get_filter_options(), {
            'subjects': ['Chemistry', 'Physics'],
            'chapters': ['Bonding', 'Mechanics', 'Optics'],
            'sections': ['Ionic', 'Kinematics', 'Lenses'],
        })

    def test_indexes_already_created_by_migration(self):
        self.assertEqual(services.ensure_indexes(), [])

    def test_record_round_trip(self):
        record = Question.objects.get(section='Ionic')
        question = record.to_schema()
        self.assertIsInstance(question, IntegerQuestion)
        self.assertEqual(question.db_id, str(record.pk))
        self.assertEqual(record.to_json()['_id'], str(record.pk))


class QuestionApiTests(TestCase):
    def setUp(self):
        token = SessionToken.objects.create(username='admin')
        self.auth = {'HTTP_AUTHORIZATION': f"Bearer {token.key}"}

    def post_json(self, url, payload):
        return self.client.post(url, data=json.dumps(payload), content_type='application/json', **self.auth)

    def test_token_is_required(self):
        response = self.client.get('/api/questions')
        self.assertEqual(response.status_code, 401)

    @patch('apps.content.services.GroqClient')
    def test_extract_markdown_file(self, groq_cls):
        groq_cls.return_value.get_questions_from_markdown.return_value = CHEMISTRY_RESPONSE
        upload = SimpleUploadedFile('bonding.md', CHEMISTRY_MARKDOWN.encode('utf-8'), content_type='text/markdown')

        response = self.client.post('/api/questions/extract', {'file': upload, 'type': 'single'}, **self.auth)

        self.assertEqual(response.status_code, 200)
        questions = response.json()['questions']
        self.assertEqual(len(questions), 2)
        self.assertEqual(questions[0]['questionNumber'], 1)
        self.assertEqual(questions[0]['subject'], 'Chemistry')

    @patch('apps.content.services.GroqClient')
    def test_extract_without_array_is_bad_gateway(self, groq_cls):
        groq_cls.return_value.get_questions_from_markdown.return_value = 'No questions here.'
        response = self.post_json('/api/questions/extract', {'markdown': '1. Q', 'type': 'single'})
        self.assertEqual(response.status_code, 502)
        self.assertFalse(response.json()['success'])

    def test_extract_rejects_non_markdown_files(self):
        upload = SimpleUploadedFile('paper.pdf', b'%PDF-1.4', content_type='application/pdf')
        response = self.client.post('/api/questions/extract', {'file': upload}, **self.auth)
        self.assertEqual(response.status_code, 400)

    def test_extract_rejects_unknown_type(self):
        response = self.post_json('/api/questions/extract', {'markdown': '1. Q', 'type': 'essay'})
        self.assertEqual(response.status_code, 400)

    @patch('apps.content.api.ImageStore.from_settings')
    def test_upload_and_list(self, from_settings):
        from_settings.return_value = make_store()

        response = self.post_json('/api/questions/upload', {'question': question_data()})
        self.assertEqual(response.status_code, 200)
        mongo_id = response.json()['mongoId']

        listed = self.client.get('/api/questions', {'subject': 'Physics'}, **self.auth).json()
        self.assertEqual([q['_id'] for q in listed['questions']], [mongo_id])

    @patch('apps.content.api.ImageStore.from_settings')
    def test_upload_without_answer_is_rejected(self, from_settings):
        from_settings.return_value = make_store()
        response = self.post_json('/api/questions/upload', {'question': question_data(answers=[])})
        self.assertEqual(response.status_code, 400)
        self.assertIn('answer', response.json()['message'])

    @override_settings(S3_BUCKET_NAME='')
    def test_upload_without_bucket_is_configuration_error(self):
        response = self.post_json('/api/questions/upload', {'question': question_data()})
        self.assertEqual(response.status_code, 500)

    @override_settings(S3_BUCKET_NAME='')
    def test_missing_answer_is_reported_before_configuration(self):
        response = self.post_json('/api/questions/upload', {'question': question_data(answers=[])})
        self.assertEqual(response.status_code, 400)
        self.assertIn('answer', response.json()['message'])

    @patch('apps.content.storage.requests.get')
    @patch('apps.content.api.ImageStore.from_settings')
    def test_upload_reports_s3_errors_as_json(self, from_settings, get):
        get.return_value = MagicMock(content=b'img', headers={'Content-Type': 'image/png'})
        boto = MagicMock()
        boto.put_object.side_effect = ClientError(
            {'Error': {'Code': 'AccessDenied', 'Message': 'Access Denied'}}, 'PutObject'
        )
        from_settings.return_value = make_store(boto)

        response = self.post_json('/api/questions/upload', {
            'question': question_data(content={'text': 'Q', 'images': ['https://cdn.mathpix.com/q.png']}),
        })

        self.assertEqual(response.status_code, 502)
        self.assertEqual(response['Content-Type'], 'application/json')
        self.assertFalse(response.json()['success'])
        self.assertFalse(Question.objects.exists())

    @patch('apps.content.api.ImageStore.from_settings')
    def test_upload_reports_database_errors_as_json(self, from_settings):
        from_settings.return_value = make_store()

        with patch.object(Question, 'save', side_effect=DatabaseError('disk I/O error')):
            response = self.post_json('/api/questions/upload', {'question': question_data()})

        self.assertEqual(response.status_code, 500)
        self.assertFalse(response.json()['success'])
        self.assertIn('disk I/O error', response.json()['message'])

    def test_extract_rejects_non_string_markdown(self):
        response = self.post_json('/api/questions/extract', {'markdown': 123, 'type': 'single'})
        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.json()['success'])

    @patch('apps.content.api.ImageStore.from_settings')
    def test_upload_batch(self, from_settings):
        from_settings.return_value = make_store()
        response = self.post_json('/api/questions/upload-batch', {'questions': [question_data(), question_data(answers=[])]})

        body = response.json()
        self.assertTrue(body['success'])
        self.assertEqual((body['successful'], body['failed']), (1, 1))

    def test_update_question(self):
        record = store_question()
        payload = json.dumps({'question': question_data(id=record.uid, answers=['1'], chapter='Dynamics')})

        response = self.client.put(f'/api/questions/{record.pk}', data=payload,
                                   content_type='application/json', **self.auth)

        self.assertEqual(response.status_code, 200)
        record.refresh_from_db()
        self.assertEqual(record.chapter, 'Dynamics')
        self.assertEqual(record.document['answers'], ['1'])

    def test_delete_question(self):
        record = store_question()
        response = self.client.delete(f'/api/questions/{record.pk}', **self.auth)
        self.assertEqual(response.status_code, 200)
        self.assertFalse(Question.objects.exists())

        missing = self.client.delete(f'/api/questions/{record.pk}', **self.auth)
        self.assertEqual(missing.status_code, 404)

    def test_delete_multiple(self):
        ids = [str(store_question().pk) for _ in range(3)]
        response = self.post_json('/api/questions/delete-multiple', {'ids': ids[:2]})
        self.assertEqual(response.json()['deletedCount'], 2)
        self.assertEqual(Question.objects.count(), 1)

    def test_filter_options_and_indexes(self):
        store_question()
        options = self.client.get('/api/questions/filter-options', **self.auth).json()
        self.assertEqual(options['options']['subjects'], ['Physics'])

        indexes = self.client.post('/api/questions/create-indexes', **self.auth).json()
        self.assertTrue(indexes['success'])
        self.assertEqual(indexes['created'], [])

    @patch('apps.content.api.requests.get')
    def test_image_proxy(self, get):
        get.return_value = MagicMock(content=b'\x89PNG', headers={'Content-Type': 'image/png'})

        response = self.client.get('/api/questions/image-proxy', {'url': 'https://bucket.s3.amazonaws.com/a.png'})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response['Content-Type'], 'image/png')
        self.assertEqual(response.content, b'\x89PNG')

    def test_image_proxy_rejects_other_schemes(self):
        response = self.client.get('/api/questions/image-proxy', {'url': 'file:///etc/passwd'})
        self.assertEqual(response.status_code, 400)


class PaperplaneClientTests(SimpleTestCase):
    def setUp(self):
        self.client_api = PaperplaneClient(base_url='http://backend:4000/', token='abc')

    def tearDown(self):
        self.client_api.close()

    @patch.object(requests.Session, 'request')
    def test_sends_bearer_token(self, request):
        request.return_value = MagicMock(json=MagicMock(return_value={'success': True, 'questions': []}))

        result = self.client_api.get_questions(subject='Physics')

        self.assertEqual(result, {'success': True, 'questions': []})
        args, kwargs = request.call_args
        self.assertEqual(args, ('GET', 'http://backend:4000/api/questions'))
        self.assertEqual(kwargs['params'], {'subject': 'Physics'})
        self.assertEqual(kwargs['headers']['Authorization'], 'Bearer abc')

    @patch.object(requests.Session, 'request', side_effect=requests.ConnectionError('refused'))
    def test_connection_failure_marks_every_batch_item_failed(self, request):
        result = self.client_api.upload_questions([question_data(), question_data()])

        self.assertEqual((result['successful'], result['failed']), (0, 2))
        self.assertTrue(all(not r['success'] for r in result['results']))

    @patch.object(requests.Session, 'request', side_effect=requests.ConnectionError('refused'))
    def test_request_raises_network_error(self, request):
        with self.assertRaises(NetworkError):
            self.client_api.request('GET', '/api/health')


class ExtractMarkdownCommandTests(SimpleTestCase):
    def test_writes_questions_json(self):
        with tempfile.TemporaryDirectory() as tmp:
            source = Path(tmp) / 'bonding.md'
            source.write_text(CHEMISTRY_MARKDOWN, encoding='utf-8')
            output = Path(tmp) / 'out.json'

            with patch('apps.content.services.GroqClient') as groq_cls:
                groq_cls.return_value.get_questions_from_markdown.return_value = CHEMISTRY_RESPONSE
                call_command('extract_markdown', str(source), '--type', 'single', '--output', str(output),
                             stdout=StringIO())

            written = json.loads(output.read_text(encoding='utf-8'))
            self.assertEqual(len(written), 2)
            self.assertEqual(written[1]['options'][3]['text'], 'NaI')
