"""Error taxonomy shared by the PDF and ATS layers."""


class BatsError(Exception):
    """Base class for every error raised by bats_server."""


class InputError(BatsError):
    """Malformed or unsupported input. User-correctable, never retried."""


class PdfFormatError(InputError):
    """The byte stream does not decode into a usable document."""


class MalformedHeader(PdfFormatError):
    pass


class CorruptCrossReference(PdfFormatError):
    pass


class UnsupportedEncryption(PdfFormatError):
    pass


class TruncatedStream(PdfFormatError):
    pass


class UnsupportedFilter(PdfFormatError):
    pass


class PdfSyntaxError(PdfFormatError):
    """Tokenizer-level syntax error.

    The parser re-raises it as CorruptCrossReference when it happens inside
    an object the cross-reference table points at.
    """


class NotFound(InputError, LookupError):
    """A taxonomy category id does not exist."""


class ResourceError(BatsError):
    """Reading or writing a file failed. The caller may retry once."""


class LogicError(BatsError):
    """An internal invariant was violated."""


class OperationCancelled(BatsError):
    """The caller cancelled the operation between two pages."""
