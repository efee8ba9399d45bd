"""Unit tests for JSON document extraction."""
import pytest

from feeds.json_extractor import ParseError, extract_json


class TestExtractJson:
    """Test cases for extract_json."""

    def test_simple_object(self):
        """Test parsing a single JSON object."""
        assert extract_json('{"key": "value"}') == [{'key': 'value'}]

    def test_multiple_documents(self):
        """Test that concatenated documents are returned in order."""
        assert extract_json('{"a": 1}[1, 2, 3]') == [{'a': 1}, [1, 2, 3]]

    def test_empty_and_blank_input(self):
        """Test that blank input yields no documents."""
        assert extract_json('') == []
        assert extract_json('   \n\t  ') == []

    def test_nested_objects_and_arrays(self):
        """Test nested braces and brackets."""
        data = '{"outer": {"inner": [1, 2]}, "list": [{"id": 1}]}'
        assert extract_json(data) == [
            {'outer': {'inner': [1, 2]}, 'list': [{'id': 1}]}
        ]

    def test_comments_inside_document(self):
        """Test that line and block comments inside a document are ignored."""
        assert extract_json('{\n// this is a comment\n"key": "value"\n}') == [
            {'key': 'value'}
        ]
        assert extract_json('{\n/* multi-line \n comment */\n"key": "value"\n}') == [
            {'key': 'value'}
        ]

    def test_comments_between_documents(self):
        """Test line comments ending with \\n or \\r and block comments."""
        assert extract_json('{"a": 1} // comment\n{"b": 2}') == [{'a': 1}, {'b': 2}]
        assert extract_json('{"a": 1} // comment\r{"b": 2}') == [{'a': 1}, {'b': 2}]
        assert extract_json('/* [not json] */ [1] /* {} */') == [[1]]

    def test_comment_hides_brackets(self):
        """Test that a document-like comment is not extracted."""
        assert extract_json('// {"hidden": true}\n{"shown": true}') == [
            {'shown': True}
        ]

    def test_string_with_json_like_characters(self):
        """Test that brackets and comment markers in strings are kept."""
        value = 'string with {braces} and [brackets] and // comments and /* block */'
        data = '{"key": "%s"} [2]' % value
        assert extract_json(data) == [{'key': value}, [2]]

    def test_escaped_quotes(self):
        """Test escaped quotes inside string values."""
        data = '{"key": "string with \\"escaped quotes\\" and }"}'
        assert extract_json(data) == [{'key': 'string with "escaped quotes" and }'}]

    def test_escaped_backslash_before_quote(self):
        """Test that an escaped backslash does not escape the closing quote."""
        data = '{"path": "C:\\\\"} {"b": 1}'
        assert extract_json(data) == [{'path': 'C:\\'}, {'b': 1}]

    def test_whitespace_around_documents(self):
        """Test surrounding whitespace."""
        assert extract_json('   \n  {"a": 1}  \t  [2]  \n ') == [{'a': 1}, [2]]

    def test_javascript_wrapped_feed(self):
        """Test that a variable assignment around the data is skipped."""
        data = 'var program = [{"id": "1"}];\nvar people = [{"id": "p1"}];'
        assert extract_json(data) == [[{'id': '1'}], [{'id': 'p1'}]]

    def test_string_literals_between_documents(self):
        """Test that brackets inside quoted literals outside documents are skipped."""
        data = (
            'var s = "[x";\n'
            "var t = 'a {b} \\' [c';\n"
            'var program = [{"id": "1"}];'
        )
        assert extract_json(data) == [[{'id': '1'}]]

    def test_unclosed_quote_between_documents(self):
        """Test that a quote without a closing quote on its line is stray text."""
        data = "It's the program:\n[1]\nthat's all"
        assert extract_json(data) == [[1]]

    def test_many_documents(self):
        """Test that N documents produce N values."""
        data = '\n// separator\n'.join('{"n": %d}' % n for n in range(25))
        assert extract_json(data) == [{'n': n} for n in range(25)]

    def test_single_quotes_raise_parse_error(self):
        """Test that non-JSON content in a document aborts extraction."""
        with pytest.raises(ParseError):
            extract_json("{'a': 1}")

    def test_invalid_document_aborts_everything(self):
        """Test that one bad document fails the whole blob."""
        with pytest.raises(ParseError) as exc_info:
            extract_json('{"a": 1} {"b": }')
        assert exc_info.value.offset == 9

    def test_unterminated_document(self):
        """Test that a document without its closing bracket fails."""
        with pytest.raises(ParseError):
            extract_json('[{"a": 1}')

    def test_parse_error_is_value_error(self):
        """Test that ParseError can be handled as a ValueError."""
        with pytest.raises(ValueError):
            extract_json('[1, 2,]')
