# This file is part of coreos-metadata. See LICENSE for license information.
"""Error taxonomy shared by providers, writers and the command line."""


class MetadataError(Exception):
    pass


class ConfigurationError(MetadataError):
    """No provider could be determined from the invocation."""


class UnknownProvider(MetadataError):
    def __init__(self, name):
        self.name = name
        super().__init__("unknown provider '%s'" % name)


class RetrievalError(MetadataError):
    """Raised when metadata could not be retrieved or trusted."""


class UnreachableProvider(RetrievalError):
    """The metadata service could not be contacted."""


class UnsupportedEnvironment(RetrievalError):
    """Platform preconditions (device, endpoint, lease) are absent."""


class InvalidMetadata(RetrievalError):
    """The metadata document was fetched but could not be interpreted."""


class WriteError(MetadataError):
    def __init__(self, description, path):
        self.description = description
        self.path = path
        super().__init__("%s (%s)" % (description, path))


class StageError(MetadataError):
    """Wraps an error with the name of the stage that was running.

    The wrapped error is expected to be attached as ``__cause__`` by raising
    with ``raise StageError(stage) from error``.
    """

    def __init__(self, stage):
        self.stage = stage
        super().__init__(stage)

    def __str__(self):
        if self.__cause__ is not None:
            return "%s: %s" % (self.stage, self.__cause__)
        return self.stage


def format_error_chain(error):
    """Return every message in the ``__cause__`` chain of error, outermost
    first, one per line."""
    lines = ["Error: %s" % _message(error)]
    cause = error.__cause__
    while cause is not None:
        lines.append("Caused by: %s" % _message(cause))
        cause = cause.__cause__
    return "\n".join(lines)


def _message(error):
    if isinstance(error, StageError):
        return error.stage
    return str(error) or error.__class__.__name__
