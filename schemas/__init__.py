# Schemas package for FastAPI validation and responses
from .validation import *  # noqa: F401,F403
from .api_models import (  # noqa: F401
    ActivityLogResponse,
    AssignmentResponse,
    Pagination,
    ProgressRecordResponse,
    serialize_assignment,
    success_response,
)
