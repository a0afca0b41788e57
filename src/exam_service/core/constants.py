EXAM_QUESTION_COUNT = 90
EXAM_DURATION_SECONDS = 90 * 60

# Remote generation contract
MAX_BATCH_SIZE = 20
DEFAULT_BATCH_SIZE = 10
MAX_FEEDBACK_CHARS = 500

# Plan builder quotas
MAX_PBQ_COUNT = 12
MAX_MULTI_COUNT = 10
MULTI_FRACTION = 0.12

# Offline synthesizer text caps
POOL_TEXT_MAX_CHARS = 120
BULLET_TEXT_MAX_CHARS = 140

DEFAULT_EXPLANATION = "Review the objective and rationale."
