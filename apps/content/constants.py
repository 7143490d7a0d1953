import uuid

MAX_FILE_SIZE = 5 * 1024 * 1024

MODEL_NAME = "llama-3.3-70b-versatile"
TEMPERATURE = 0.3
MAX_TOKENS = 4000

# Any valid UUID works, but changing it changes every stored question id
QUESTION_NAMESPACE = uuid.UUID('6ba7b810-9dad-11d1-80b4-00c04fd430c8')

UNKNOWN = 'Unknown'

QUESTION_TYPES = ('single', 'multiple', 'integer', 'matrix', 'comprehension')
AUTO_DETECT = 'auto'

USER_PROMPT_PREFIX = "Extract all questions from this markdown:\n\n"

S3_KEY_PREFIX = 'questions/'
DEFAULT_IMAGE_EXTENSION = 'jpg'
IMAGE_DOWNLOAD_TIMEOUT = 30
