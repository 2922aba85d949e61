"""Tests for issue template parsing and filling."""

from providers.models import IssueTemplate
from providers.templates import (
    fill_placeholders,
    format_issue_body,
    generate_issue_from_template,
    parse_template,
)


class TestParseTemplate:
    def test_front_matter_fields(self):
        text = (
            "---\n"
            "name: Feature request\n"
            "description: Suggest an idea\n"
            "labels:\n"
            "  - enhancement\n"
            "  - triage\n"
            "---\n"
            "\n"
            "## Idea\n"
        )

        template = parse_template("feature", ".github/ISSUE_TEMPLATE/feature.md", text)

        assert template.display_name == "Feature request"
        assert template.about == "Suggest an idea"
        assert template.labels == ["enhancement", "triage"]
        assert template.content == "## Idea\n"

    def test_without_front_matter(self):
        template = parse_template("plain", "plain.md", "Just a body\n")

        assert template.content == "Just a body\n"
        assert template.title == ""

    def test_unreadable_front_matter_keeps_whole_text(self):
        text = "---\nname: [unclosed\n---\nBody\n"

        template = parse_template("broken", "broken.md", text)

        assert template.content == text
        assert template.display_name == ""

    def test_scalar_front_matter_keeps_whole_text(self):
        text = "---\njust words\n---\nBody\n"

        assert parse_template("odd", "odd.md", text).content == text


def test_unknown_placeholders_are_left_in_place():
    assert fill_placeholders("{{ who }} saw {{what}}", {"who": "Ann"}) == "Ann saw {{what}}"


class TestFormatIssueBody:
    def test_no_template_returns_description(self):
        assert format_issue_body("Title", "Details") == "Details"

    def test_description_appended_when_template_lacks_placeholder(self):
        body = format_issue_body("Crash", "It broke", "## Environment\n")

        assert body == "## Environment\n\nIt broke"

    def test_title_placeholder(self):
        assert format_issue_body("Crash", "", "Re: {{title}}") == "Re: Crash"


def test_generate_issue_from_template():
    template = IssueTemplate(name="bug", title="[BUG] {{summary}} ", labels=["bug"], content="{{steps}}")

    draft = generate_issue_from_template(template, {"summary": "Boot loop", "steps": "1. Power on"})

    assert draft.title == "[BUG] Boot loop"
    assert draft.body == "1. Power on"
    assert draft.labels == ["bug"]
