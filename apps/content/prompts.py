from apps.content.constants import AUTO_DETECT, QUESTION_TYPES

BASE_PROMPT = """
You are a helpful assistant that extracts exam questions from markdown content.

The markdown may start with metadata headers:
- ## Subject - [Subject Name]
- ## Chapter - [Chapter Name]
- ## Section - [Section Name]

### CRITICAL
- DO NOT extract or guess answers. Leave every "answers" field as an empty array [].
- The user selects the answers manually after extraction.
- Extract ALL images from the markdown and put them in the matching "images" arrays.
- Preserve mathematical formulas exactly as written (use $...$ format).
- Return ONLY a valid JSON array, no additional text and no ```json blocks.
""".strip()

CHOICE_PROMPT = """
### SINGLE / MULTIPLE CHOICE QUESTIONS
Extract every question with this structure:
{{
  "id": number (question number from the markdown),
  "type": "{question_type}",
  "content": {{ "text": "question text", "images": ["url1", "url2"] }},
  "options": [
    {{ "text": "option text", "image_url": "url if any" }}
  ],
  "answers": []
}}

Extract the question text and all options (1), (2), (3), (4).
Do NOT try to determine which option is correct.
""".strip()

INTEGER_PROMPT = """
### INTEGER / NUMERICAL QUESTIONS
Extract every question with this structure:
{
  "id": number (question number from the markdown),
  "type": "integer",
  "content": { "text": "question text", "images": ["url1", "url2"] },
  "options": [],
  "answers": []
}

Extract only the question text and any images.
""".strip()

MATRIX_PROMPT = """
### MATRIX MATCH QUESTIONS
Extract every question with this structure:
{
  "id": number (question number from the markdown),
  "type": "matrix",
  "content": { "text": "question text", "images": [] },
  "matrix_match": {
    "columnA": ["A. item 1", "B. item 2"],
    "columnB": ["P. item 1", "Q. item 2"],
    "map": {}
  }
}

Extract the Column A items (A, B, C...) and the Column B items (P, Q, R...).
Leave "map" empty. Do NOT try to determine the correct mapping.
""".strip()

COMPREHENSION_RULES = """
RULES for comprehension:
1. "## For Problems 1-3" means questions 1, 2 and 3 share the SAME passage.
2. Create ONE comprehension object with id = first question number.
3. Put ALL sub-questions (1, 2, 3) in its "sub_questions" array.
4. The passage is the text between "## For Problems" and the first numbered question.
5. Do NOT create a separate comprehension object for each sub-question.
""".strip()

COMPREHENSION_PROMPT = """
### LINKED COMPREHENSION QUESTIONS
Group all sub-questions under ONE comprehension passage.

In the markdown:
## For Problems X-Y    <- ONE comprehension question
[Passage text]
X. Sub-question 1...
Y. Sub-question 2...

Extract as ONE question:
{
  "id": X (first sub-question number),
  "type": "comprehension",
  "comprehension_passage": { "text": "[Full passage text]", "images": [] },
  "sub_questions": [
    {
      "type": "single",
      "content": { "text": "Sub-question 1 text", "images": [] },
      "options": [{ "text": "option", "image_url": "" }],
      "answers": []
    },
    {
      "type": "single",
      "content": { "text": "Sub-question 2 text", "images": [] },
      "options": [{ "text": "option", "image_url": "" }],
      "answers": []
    }
  ]
}

RULES_PLACEHOLDER

Example:
## For Problems 1-3
A car accelerates...

1. What is velocity?
2. What is acceleration?
3. What is distance?

Extract ONE question with id=1 and 3 sub-questions, NOT 3 separate questions.
Do NOT try to determine correct answers for sub-questions.
""".strip().replace('RULES_PLACEHOLDER', COMPREHENSION_RULES)

AUTO_PROMPT = """
### AUTO-DETECTED QUESTION TYPES
The markdown has section headers telling the question type:
- "Single Correct Answer Type" or similar -> type: "single"
- "Multiple Correct Answers Type" or similar -> type: "multiple"
- "Integer/Numerical Type" or similar -> type: "integer"
- "Matrix Match Type" or similar -> type: "matrix"
- "Linked Comprehension Type" or similar -> type: "comprehension"

Extract each question with the structure matching its detected type.

For SINGLE / MULTIPLE / INTEGER:
{
  "id": number,
  "type": "single" | "multiple" | "integer",
  "content": { "text": "question text", "images": [] },
  "options": [{ "text": "option text", "image_url": "" }],
  "answers": []
}

For MATRIX MATCH:
{
  "id": number,
  "type": "matrix",
  "content": { "text": "question text", "images": [] },
  "matrix_match": { "columnA": ["A. item 1"], "columnB": ["P. item 1"], "map": {} }
}

For COMPREHENSION ("## For Problems X-Y" is ONE question with several sub-questions):
{
  "id": X (first sub-question number),
  "type": "comprehension",
  "comprehension_passage": { "text": "passage", "images": [] },
  "sub_questions": [
    {
      "type": "single" | "multiple",
      "content": { "text": "sub-question", "images": [] },
      "options": [{ "text": "option", "image_url": "" }],
      "answers": []
    }
  ]
}

RULES_PLACEHOLDER
""".strip().replace('RULES_PLACEHOLDER', COMPREHENSION_RULES)


def get_prompt_for_type(question_type: str = AUTO_DETECT) -> str:
    """
    Returns the system prompt describing the JSON shape for ``question_type``.
    ``auto`` lets the model read the type from the markdown section headers.
    """
    if question_type in ('single', 'multiple'):
        body = CHOICE_PROMPT.format(question_type=question_type)
    elif question_type == 'integer':
        body = INTEGER_PROMPT
    elif question_type == 'matrix':
        body = MATRIX_PROMPT
    elif question_type == 'comprehension':
        body = COMPREHENSION_PROMPT
    elif question_type == AUTO_DETECT:
        body = AUTO_PROMPT
    else:
        allowed = ', '.join((*QUESTION_TYPES, AUTO_DETECT))
        raise ValueError(f"Unknown question type '{question_type}'. Use one of: {allowed}")

    return f"{BASE_PROMPT}\n\n{body}"
