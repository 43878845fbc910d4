"""
Domain exceptions shared by the data-access and API layers.

"Not found" on reads is modelled as a None return; these are raised by
mutators and by the dialect translator.
"""

from __future__ import annotations


class OrgAdminError(Exception):
    """Base class for application errors."""

    code = "INTERNAL_ERROR"


class RecordNotFoundError(OrgAdminError, LookupError):
    code = "NOT_FOUND"

    def __init__(self, entity: str, key: str):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} not found: {key}")


class DuplicateRecordError(OrgAdminError):
    code = "DUPLICATE_CODE"

    def __init__(self, entity: str, key: str):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} code {key} already exists")


class HierarchyError(OrgAdminError, ValueError):
    """A parent/child link violates the organization structure rules."""

    code = "INVALID_HIERARCHY"


class DialectTranslationError(OrgAdminError, ValueError):
    """A statement could not be rewritten for the embedded dialect."""

    code = "TRANSLATION_ERROR"
