"""Tests for content stream parsing and encoding."""

from bats_server.pdf.content import encode_operators, parse_content
from bats_server.pdf.objects import Operator, PdfName, PdfString


class TestParseContent:
    """Tests for parse_content."""

    def test_operators_and_operands(self):
        ops = parse_content(b"BT /F1 12 Tf 72 720 Td (Hi) Tj ET")
        assert [op.opcode for op in ops] == ["BT", "Tf", "Td", "Tj", "ET"]
        assert ops[1].operands == [PdfName("F1"), 12]
        assert ops[3].operands == [PdfString(b"Hi")]

    def test_array_operand(self):
        ops = parse_content(b"[(A) -300 (B)] TJ")
        assert ops[0].opcode == "TJ"
        assert ops[0].operands == [[PdfString(b"A"), -300, PdfString(b"B")]]

    def test_quote_operators(self):
        ops = parse_content(b"(line) ' 1 2 (x) \"")
        assert [op.opcode for op in ops] == ["'", '"']

    def test_numbers_are_never_references(self):
        ops = parse_content(b"1 0 0 1 0 0 cm")
        assert ops[0].operands == [1, 0, 0, 1, 0, 0]

    def test_inline_image(self):
        data = b"q BI /W 2 /H 1 /BPC 8 /CS /G ID \x00\xff EI Q"
        ops = parse_content(data)
        assert [op.opcode for op in ops] == ["q", "BI", "Q"]
        params, body = ops[1].operands
        assert params["W"] == 2
        assert body == b"\x00\xff"

    def test_syntax_error_keeps_earlier_operators(self):
        ops = parse_content(b"q 1 0 0 1 0 0 cm ) Q")
        assert [op.opcode for op in ops] == ["q", "cm"]

    def test_empty_stream(self):
        assert parse_content(b"") == []


class TestEncodeOperators:
    """Tests for encode_operators."""

    def test_one_operator_per_line(self):
        data = encode_operators([Operator("q"), Operator("rg", [1, 0.5, 0]), Operator("Q")])
        assert data == b"q\n1 0.5 0 rg\nQ\n"

    def test_reparse(self):
        ops = [
            Operator("BT"),
            Operator("Tf", [PdfName("F1"), 12]),
            Operator("Tj", [PdfString(b"a (b) c")]),
            Operator("ET"),
        ]
        assert parse_content(encode_operators(ops)) == ops
