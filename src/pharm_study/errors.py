"""Exception hierarchy for the content gap analysis core."""


class StudyCoreError(Exception):
    """Base exception for all analysis core errors."""


class InvalidKnowledgeBase(StudyCoreError):
    """Raised when a knowledge base cannot be indexed for analysis."""


class TemplateNotFound(StudyCoreError):
    """Raised when no module template exists for an organ system."""


class ExtractionFailed(StudyCoreError):
    """Raised when slide text cannot be read from a source document."""


class AnalysisInProgress(StudyCoreError):
    """Raised when a module already has an analysis run in flight."""


class PersistenceFailed(StudyCoreError):
    """Raised when the store cannot be read or written."""


class ModuleNotFound(StudyCoreError):
    """Raised when the store has no module with the requested id."""


class InvalidStatusTransition(StudyCoreError):
    """Raised when a module status change is not allowed by the lifecycle."""


class InvalidSettings(StudyCoreError, ValueError):
    """Raised when a stored analysis setting is malformed or out of range."""
