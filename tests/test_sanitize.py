"""Tests for commit message sanitizing."""

from pr_automerge.sanitize import remove_html_comments


class TestRemoveHtmlComments:
    """Tests for remove_html_comments."""

    def test_removes_comment(self):
        assert remove_html_comments("Hello <!-- x --> world!") == "Hello world!"

    def test_unterminated_comment_truncates(self):
        assert remove_html_comments("Hello <!-- no end") == "Hello"

    def test_nested_comment_returns_input(self):
        text = "This <!-- is <!-- nested --> -->"
        assert remove_html_comments(text) == text

    def test_no_comment(self):
        assert remove_html_comments("Just text") == "Just text"

    def test_empty(self):
        assert remove_html_comments("") == ""

    def test_only_comment(self):
        assert remove_html_comments("<!-- Describe your change -->") == ""

    def test_multiple_comments(self):
        text = "<!-- a -->One<!-- b --> two <!-- c -->three"
        assert remove_html_comments(text) == "One two three"

    def test_multiline_comment(self):
        text = "Summary\n<!--\nPlease fill in\nthe template\n-->\nDetails"
        assert remove_html_comments(text) == "Summary\n\nDetails"

    def test_collapses_blank_lines(self):
        text = "First\n\n\n\n<!-- hint -->\n\n\nSecond"
        assert remove_html_comments(text) == "First\n\nSecond"

    def test_keeps_paragraph_break(self):
        assert remove_html_comments("First\n\nSecond") == "First\n\nSecond"

    def test_collapses_intra_line_whitespace(self):
        assert remove_html_comments("a   b\t c  \nd ") == "a b c\nd"

    def test_keeps_indentation(self):
        text = "Steps:\n- a\n  - nested   item\n\n    code block <!-- x -->"
        assert remove_html_comments(text) == (
            "Steps:\n- a\n  - nested item\n\n    code block"
        )

    def test_whitespace_only_lines_are_blank(self):
        assert remove_html_comments("One\n   \n \t\n\nTwo") == "One\n\nTwo"
