class EscapeWatchError(RuntimeError):
    pass


class ConfigError(EscapeWatchError):
    """The run configuration could not be loaded; nothing was scanned."""


class CalendarReadError(EscapeWatchError):
    """Every probed day of a calendar failed with a page error."""
