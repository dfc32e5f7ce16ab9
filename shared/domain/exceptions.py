"""
Domain Exceptions

Every error raised by domain code derives from DomainError and carries a
short machine-readable code so that the HTTP and provider layers can map it
to their own envelopes without string matching.
"""


class DomainError(Exception):
    """Base class for expected business-rule failures."""

    code = 'domain_error'

    def __init__(self, message: str = '', *, code: str | None = None):
        super().__init__(message or self.__class__.__doc__ or self.code)
        if code is not None:
            self.code = code

    @property
    def message(self) -> str:
        return str(self)


class NotFound(DomainError):
    """Referenced object does not exist."""

    code = 'not_found'
