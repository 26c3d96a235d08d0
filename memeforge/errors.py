"""Exception classes raised by memeforge."""


class MemeforgeError(Exception):
    """Base class for memeforge errors."""
    pass


class InvalidMacroError(MemeforgeError, ValueError):
    """Macro, text line, area or template data is malformed."""
    pass


class TemplateNotFoundError(MemeforgeError, LookupError):
    """The template referenced by a macro does not exist."""
    pass


class UnsupportedFormatError(MemeforgeError, ValueError):
    """The template file extension has no encoder."""
    pass


class ExtensionMismatchError(MemeforgeError, ValueError):
    """A requested file extension differs from the one the macro is cached with."""
    pass


class EmptyAnimationError(MemeforgeError, ValueError):
    """An animated template contains no frames."""
    pass


class RenderError(MemeforgeError):
    """Drawing or encoding a macro failed."""
    pass
