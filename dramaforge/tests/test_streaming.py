"""
Unit tests for the streaming message extractor.
"""

from dramaforge.core.streaming import (
    THINKING_PLACEHOLDER,
    PartialMessageExtractor,
    ScanState,
    extract_partial_message,
)


class TestPartialMessageExtractor:
    """Tests for incremental extraction of the message field."""

    def test_placeholder_until_message_starts(self):
        """Test JSON preamble shows the thinking placeholder."""
        extractor = PartialMessageExtractor()
        assert extractor.feed('{"type": "chat", ') == THINKING_PLACEHOLDER
        assert extractor.state == ScanState.SEEK_KEY

    def test_message_grows_across_chunks(self):
        """Test the displayed message follows the stream and decodes escapes."""
        extractor = PartialMessageExtractor()
        extractor.feed('{"type": "chat", ')
        assert extractor.feed('"message": "Hel') == "Hel"
        assert extractor.feed('lo\\nwor') == "Hello\nwor"
        assert extractor.feed('ld", "stageComplete": false}') == "Hello\nworld"
        assert extractor.state == ScanState.DONE

    def test_key_split_across_chunks(self):
        """Test a "message" key cut in half by chunking is still found."""
        extractor = PartialMessageExtractor()
        extractor.feed('{"mess')
        assert extractor.feed('age": "A"}') == "A"

    def test_unicode_escape_split_across_chunks(self):
        """Test a \\uXXXX escape arriving in two pieces."""
        extractor = PartialMessageExtractor()
        extractor.feed('{"message": "caf\\u00')
        assert extractor.feed('e9 au lait"}') == "café au lait"

    def test_prose_before_json_is_shown(self):
        """Test text preceding the JSON object is displayed while seeking."""
        extractor = PartialMessageExtractor()
        assert extractor.feed("Sure, ") == "Sure,"
        assert extractor.feed('here it is {"type": "chat"') == "Sure, here it is"

    def test_code_fence_is_hidden(self):
        """Test a leading code fence never reaches the display."""
        extractor = PartialMessageExtractor()
        assert extractor.feed("```json\n") == THINKING_PLACEHOLDER
        assert extractor.feed('{"message": "x"') == "x"

    def test_non_string_message_value_is_skipped(self):
        """Test a "message" key without a string value does not stop the scan."""
        text = '{"message": 5, "data": {"message": "real"}}'
        assert extract_partial_message(text) == "real"

    def test_display_is_monotonic_once_value_starts(self):
        """Test one-character chunks only ever extend the displayed text."""
        extractor = PartialMessageExtractor()
        previous = ""
        for ch in '{"message": "The tide \\"turns\\" at dusk."}':
            shown = extractor.feed(ch)
            if extractor.state in (ScanState.VALUE, ScanState.ESCAPE, ScanState.DONE) and shown != THINKING_PLACEHOLDER:
                assert shown.startswith(previous)
                previous = shown
        assert previous == 'The tide "turns" at dusk.'

    def test_reset(self):
        """Test reset clears buffer and message."""
        extractor = PartialMessageExtractor()
        extractor.feed('{"message": "abc"}')
        extractor.reset()
        assert extractor.buffer == ""
        assert extractor.message == ""
        assert extractor.state == ScanState.PREAMBLE


class TestExtractPartialMessage:
    """Tests for the one-shot helper."""

    def test_unterminated_value(self):
        """Test an unfinished value returns what has arrived."""
        assert extract_partial_message('{"message": "ab') == "ab"

    def test_empty_buffer(self):
        """Test an empty buffer shows the placeholder."""
        assert extract_partial_message("") == THINKING_PLACEHOLDER


def test_growing_prefixes_never_shrink_the_display():
    """Test strictly growing prefixes give a non-decreasing display ending in the message."""
    document = '{"type": "chat", "message":"abc", "stageComplete": false}'
    shown = []
    for end in range(1, len(document) + 1):
        text = extract_partial_message(document[:end])
        shown.append("" if text == THINKING_PLACEHOLDER else text)

    for before, after in zip(shown, shown[1:]):
        assert after.startswith(before)
    assert shown[-1] == "abc"
