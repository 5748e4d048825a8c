from scimbulk.schemas.bulk_ops import BulkRequestSchema, BulkResponseSchema
from scimbulk.schemas.error import ErrorSchema
from scimbulk.schemas.group import GroupSchema
from scimbulk.schemas.user import EnterpriseUserSchemaExtension, UserSchema

__all__ = [
    "BulkRequestSchema",
    "BulkResponseSchema",
    "ErrorSchema",
    "GroupSchema",
    "UserSchema",
    "EnterpriseUserSchemaExtension",
]
