from types import SimpleNamespace

from whatsapp_ai.core.formatter import ResponseFormatter
from whatsapp_ai.core.models import AIResponse


def test_plain_text_passes_through():
    formatter = ResponseFormatter()
    assert formatter.format({"response": "Hello!"}) == "Hello!"


def test_reads_response_from_models_objects_and_strings():
    formatter = ResponseFormatter()
    assert formatter.format(AIResponse(response="From model")) == "From model"
    assert formatter.format(SimpleNamespace(response="From object")) == "From object"
    assert formatter.format("Just text") == "Just text"


def test_missing_or_empty_response_gives_empty_string():
    formatter = ResponseFormatter()
    assert formatter.format(None) == ""
    assert formatter.format({}) == ""
    assert formatter.format({"response": "   "}) == ""
    assert formatter.format({"response": 42}) == ""


def test_markdown_is_converted_to_whatsapp_markup():
    formatter = ResponseFormatter()
    text = "## Your orders\n\n**2** open, ~~none~~ late\n\n\n\nSee __details__ below."

    assert formatter.format({"response": text}) == (
        "*Your orders*\n\n*2* open, ~none~ late\n\nSee *details* below."
    )


def test_python_identifiers_keep_their_underscores():
    formatter = ResponseFormatter()
    text = "Call super().__init__() first, rename my__var and check `__repr__`."

    assert formatter.format({"response": text}) == text
    assert formatter.format({"response": "This is __important__, really."}) == "This is *important*, really."


def test_bold_heading_is_not_double_wrapped():
    formatter = ResponseFormatter()
    assert formatter.format({"response": "# **Summary**"}) == "*Summary*"


def test_long_text_is_truncated_with_ellipsis():
    formatter = ResponseFormatter(max_length=10)
    result = formatter.format({"response": "abcdefghijklmnop"})

    assert result == "abcdefghi…"
    assert len(result) == 10
