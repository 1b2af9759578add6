class NotedoError(Exception):
    """Base class for domain errors raised by notedo."""


class NotFoundError(NotedoError, LookupError):
    pass


class NotApplicableError(NotedoError, ValueError):
    """The operation does not apply to this kind of record (e.g. a standalone TODO)."""


class StaleTodoError(NotApplicableError):
    """A note-linked TODO id no longer resolves to a line of its note."""


class MigrationError(NotedoError, RuntimeError):
    pass
