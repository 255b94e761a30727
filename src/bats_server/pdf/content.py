"""Content stream tokenizing and encoding."""

import re
from typing import Any

from ..errors import PdfFormatError
from ..logger import logger
from .lexer import Lexer
from .objects import Keyword, Operator, PdfName
from .serializer import serialize_object

_CONSTANTS = {"true": True, "false": False, "null": None}

# "EI" closing an inline image must be delimited by whitespace on both sides
_INLINE_IMAGE_END = re.compile(rb"[\x00\t\n\x0c\r ]EI(?=[\x00\t\n\x0c\r ]|$)")


def _read_inline_image(lexer: Lexer) -> Operator | None:
    params: dict[str, Any] = {}
    while True:
        key = lexer.next_token()
        if key is None:
            return None
        if isinstance(key, Keyword) and key == "ID":
            break
        if not isinstance(key, PdfName):
            return None
        params[str(key)] = lexer.read_object(allow_refs=False)

    start = lexer.pos + 1  # single whitespace byte after ID
    match = _INLINE_IMAGE_END.search(lexer.data, start)
    if match is None:
        return None
    lexer.pos = match.end()
    return Operator("BI", [params, lexer.data[start : match.start()]])


def parse_content(data: bytes) -> list[Operator]:
    """Split a content stream into operators, preserving order.

    Parsing stops at the first syntax error; operators read so far are
    returned.
    """
    lexer = Lexer(data)
    operators: list[Operator] = []
    operands: list[Any] = []
    try:
        while True:
            token = lexer.next_token()
            if token is None:
                break
            if not isinstance(token, Keyword):
                operands.append(token)
            elif token in ("[", "<<"):
                operands.append(lexer.parse_value(token, allow_refs=False))
            elif token in _CONSTANTS:
                operands.append(_CONSTANTS[token])
            elif token == "BI":
                image = _read_inline_image(lexer)
                if image is None:
                    logger.warn("unterminated inline image in content stream", offset=lexer.pos)
                    break
                operators.append(image)
                operands = []
            else:
                operators.append(Operator(str(token), operands))
                operands = []
    except PdfFormatError as e:
        logger.warn("content stream syntax error", error=str(e), operators=len(operators))
    return operators


def encode_operators(operators: list[Operator]) -> bytes:
    """Encode operators one per line."""
    lines = []
    for op in operators:
        if op.opcode == "BI":
            params, body = op.operands
            head = b" ".join(
                serialize_object(PdfName(k)) + b" " + serialize_object(v) for k, v in params.items()
            )
            lines.append(b"BI " + head + b" ID " + body + b" EI")
            continue
        parts = [serialize_object(value) for value in op.operands]
        parts.append(op.opcode.encode("latin-1"))
        lines.append(b" ".join(parts))
    return b"\n".join(lines) + b"\n"
