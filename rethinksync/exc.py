"""RethinkSync Error classes."""


class SourceError(Exception):
    """
    This error is raised by the change feed source.

    The message is used to decide whether the failure is transient.
    """

    def __init__(self, value):
        self.value = value

    def __str__(self):
        return repr(self.value)


class InvalidMappingError(Exception):
    """
    This error is raised if a table mapping is malformed or a
    (database, table) pair is configured more than once.
    """

    def __init__(self, value):
        self.value = value

    def __str__(self):
        return repr(self.value)


class ConfigError(Exception):
    def __init__(self, value):
        self.value = value

    def __str__(self):
        return repr(self.value)
