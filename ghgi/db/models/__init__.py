# Import all models so SQLAlchemy metadata is fully populated on startup.
from ghgi.db.models.user import User
from ghgi.db.models.form_type import FormType
from ghgi.db.models.form_schema_version import FormSchemaVersion, SchemaStatus
from ghgi.db.models.form_mapping import FormMapping
from ghgi.db.models.submission import Submission
from ghgi.db.models.submission_answer import SubmissionAnswer
from ghgi.db.models.form_audit_log import FormAuditLog


__all__ = [
    "User",
    "FormType",
    "FormSchemaVersion",
    "SchemaStatus",
    "FormMapping",
    "Submission",
    "SubmissionAnswer",
    "FormAuditLog",
]
