"""
Typed shapes of a question document.

Each question ``type`` is its own model and the union is discriminated on
``type``, so a matrix question can never carry options and a comprehension
question always has its sub-questions. The JSON field names (``questionNumber``,
``_id``, ``columnA``) are kept as aliases so stored documents and API payloads
keep the same shape.
"""
import re
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError

from apps.content.exceptions import ValidationError

NUMERIC_ANSWER = re.compile(r'^-?\d*\.?\d*$')


class Schema(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra='ignore')


class QuestionContent(Schema):
    text: str = ''
    images: list[str] = Field(default_factory=list)

    @field_validator('images', mode='before')
    @classmethod
    def drop_empty_images(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, list):
            return [img for img in value if img]
        return value


class QuestionOption(Schema):
    text: str = ''
    image_url: str | None = None


class QuestionMeta(Schema):
    year: int | None = None
    difficulty: Literal['easy', 'medium', 'hard'] | None = None
    source: str | None = None


class MatrixMatch(Schema):
    column_a: list[str] = Field(default_factory=list, alias='columnA')
    column_b: list[str] = Field(default_factory=list, alias='columnB')
    map: dict[str, list[str]] = Field(default_factory=dict)

    @staticmethod
    def label_of(item: str) -> str:
        # "A. Force" -> "A", "P" -> "P"
        return item.split('.')[0].strip().upper()

    def row_labels(self) -> list[str]:
        return [self.label_of(item) for item in self.column_a]

    def column_labels(self) -> list[str]:
        return [self.label_of(item) for item in self.column_b]


class SubQuestion(Schema):
    db_id: str | None = Field(default=None, alias='_id')
    type: Literal['single', 'multiple'] = 'single'
    content: QuestionContent = Field(default_factory=QuestionContent)
    options: list[QuestionOption] = Field(default_factory=list)
    answers: list[str] = Field(default_factory=list)

    @field_validator('answers', mode='before')
    @classmethod
    def answers_as_strings(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, list):
            return [str(answer) for answer in value]
        return value

    def select(self, option_text: str) -> None:
        if self.type == 'single':
            self.answers = [option_text]
        elif option_text in self.answers:
            self.answers = [answer for answer in self.answers if answer != option_text]
        else:
            self.answers = [*self.answers, option_text]

    def is_answered(self) -> bool:
        return len(self.answers) > 0


class BaseQuestion(Schema):
    id: str
    db_id: str | None = Field(default=None, alias='_id')
    question_number: int | None = Field(default=None, alias='questionNumber')
    subject: str | None = None
    chapter: str | None = None
    section: str | None = None
    content: QuestionContent = Field(default_factory=QuestionContent)
    answers: list[str] = Field(default_factory=list)
    meta: QuestionMeta | None = None

    @field_validator('answers', mode='before')
    @classmethod
    def answers_as_strings(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, list):
            return [str(answer) for answer in value]
        return value

    def collect_answers(self) -> list[str]:
        """The answers that get persisted for this question."""
        return list(self.answers)

    def is_complete(self) -> bool:
        return len(self.collect_answers()) > 0

    def image_urls(self) -> list[str]:
        return list(self.content.images)

    def replace_image_urls(self, mapping: dict[str, str]) -> None:
        self.content.images = [mapping.get(url, url) for url in self.content.images]


class ChoiceQuestion(BaseQuestion):
    options: list[QuestionOption] = Field(default_factory=list)

    def _check_index(self, index: int) -> str:
        if not 0 <= index < len(self.options):
            raise ValidationError(f"Option {index} does not exist, question has {len(self.options)} options")
        return str(index)

    def image_urls(self) -> list[str]:
        urls = super().image_urls()
        urls.extend(opt.image_url for opt in self.options if opt.image_url)
        return urls

    def replace_image_urls(self, mapping: dict[str, str]) -> None:
        super().replace_image_urls(mapping)
        for opt in self.options:
            if opt.image_url:
                opt.image_url = mapping.get(opt.image_url, opt.image_url)


class SingleChoiceQuestion(ChoiceQuestion):
    type: Literal['single'] = 'single'

    def select_option(self, index: int) -> None:
        self.answers = [self._check_index(index)]


class MultipleChoiceQuestion(ChoiceQuestion):
    type: Literal['multiple'] = 'multiple'

    def select_option(self, index: int) -> None:
        option_id = self._check_index(index)
        if option_id in self.answers:
            self.answers = [answer for answer in self.answers if answer != option_id]
        else:
            self.answers = [*self.answers, option_id]


class IntegerQuestion(BaseQuestion):
    type: Literal['integer'] = 'integer'

    def set_answer(self, value: str) -> None:
        if not NUMERIC_ANSWER.match(value.strip()):
            raise ValidationError(f"'{value}' is not a numerical answer")
        self.answers = [value.strip()] if value.strip() else []

    def collect_answers(self) -> list[str]:
        if self.answers and self.answers[0].strip():
            return [self.answers[0].strip()]
        return []


class MatrixQuestion(BaseQuestion):
    type: Literal['matrix'] = 'matrix'
    matrix_match: MatrixMatch = Field(default_factory=MatrixMatch)

    def add_mapping(self, row: str, label: str) -> None:
        row = row.strip().upper()
        label = label.strip().upper()
        if not label:
            return
        if row not in self.matrix_match.row_labels():
            raise ValidationError(f"Unknown row {row}")

        valid = self.matrix_match.column_labels()
        if label not in valid:
            raise ValidationError(f"Invalid value! Use: {', '.join(valid)}")

        current = self.matrix_match.map.get(row, [])
        if label in current:
            raise ValidationError(f"{label} is already mapped to {row}")
        self.matrix_match.map[row] = [*current, label]

    def remove_mapping(self, row: str, label: str) -> None:
        row = row.strip().upper()
        current = self.matrix_match.map.get(row, [])
        self.matrix_match.map[row] = [value for value in current if value != label.strip().upper()]

    def collect_answers(self) -> list[str]:
        return [
            f"{row}→{','.join(labels)}"
            for row, labels in self.matrix_match.map.items()
            if labels
        ]


class ComprehensionQuestion(BaseQuestion):
    type: Literal['comprehension'] = 'comprehension'
    comprehension_passage: QuestionContent | None = None
    sub_questions: list[SubQuestion] = Field(default_factory=list)

    def select_option(self, sub_index: int, option_text: str) -> None:
        if not 0 <= sub_index < len(self.sub_questions):
            raise ValidationError(f"Sub-question {sub_index} does not exist")
        self.sub_questions[sub_index].select(option_text)

    def answered_count(self) -> int:
        return sum(1 for sub in self.sub_questions if sub.is_answered())

    def answer_summary(self) -> str:
        return f"{self.answered_count()}/{len(self.sub_questions)} answered"

    def collect_answers(self) -> list[str]:
        # Only a fully answered passage counts as answered
        if self.sub_questions and self.answered_count() == len(self.sub_questions):
            return [self.answer_summary()]
        return []

    def image_urls(self) -> list[str]:
        urls = super().image_urls()
        if self.comprehension_passage:
            urls.extend(self.comprehension_passage.images)
        for sub in self.sub_questions:
            urls.extend(sub.content.images)
            urls.extend(opt.image_url for opt in sub.options if opt.image_url)
        return urls

    def replace_image_urls(self, mapping: dict[str, str]) -> None:
        super().replace_image_urls(mapping)
        if self.comprehension_passage:
            self.comprehension_passage.images = [
                mapping.get(url, url) for url in self.comprehension_passage.images
            ]
        for sub in self.sub_questions:
            sub.content.images = [mapping.get(url, url) for url in sub.content.images]
            for opt in sub.options:
                if opt.image_url:
                    opt.image_url = mapping.get(opt.image_url, opt.image_url)


Question = Annotated[
    Union[
        SingleChoiceQuestion,
        MultipleChoiceQuestion,
        IntegerQuestion,
        MatrixQuestion,
        ComprehensionQuestion,
    ],
    Field(discriminator='type'),
]

question_adapter: TypeAdapter[Question] = TypeAdapter(Question)


def parse_question(data: dict[str, Any]) -> Question:
    try:
        return question_adapter.validate_python(data)
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid question: {exc.errors()[0]['msg']} at {_location(exc)}") from exc


def dump_question(question: BaseQuestion) -> dict[str, Any]:
    return question.model_dump(by_alias=True, exclude_none=True)


def _location(exc: PydanticValidationError) -> str:
    loc = exc.errors()[0]['loc']
    return '.'.join(str(part) for part in loc) or '<root>'
