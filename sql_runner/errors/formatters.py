"""Renderers that turn an ErrorHelp into display text. All are pure."""

# Standard library imports
import json


class ConsoleErrorFormatter:
    """Box-drawn block for terminal output."""

    def __init__(self, border_char="═", width=70):
        self.border_char = border_char
        self.width = width

    def format(self, error_help):
        border = self.border_char * self.width
        lines = ["", border, self._center(error_help.title), border, ""]
        lines += [error_help.explanation, ""]

        if error_help.suggestions:
            lines += list(error_help.suggestions)
            lines.append("")

        if error_help.docs_url:
            lines += [f"Documentation: {error_help.docs_url}", ""]

        lines.append(border)
        return "\n".join(lines)

    def _center(self, text):
        padding = max(0, (self.width - len(text)) // 2)
        return " " * padding + text


class SimpleErrorFormatter:
    """Plain text without decorations, for log files."""

    def format(self, error_help):
        lines = [f"ERROR: {error_help.title}", "", error_help.explanation, ""]

        suggestions = [s for s in error_help.suggestions if s.strip()]
        if suggestions:
            lines.append("Suggestions:")
            lines += [f"  {s}" for s in suggestions]
            lines.append("")

        if error_help.docs_url:
            lines.append(f"Documentation: {error_help.docs_url}")

        return "\n".join(lines)


class JsonErrorFormatter:
    def __init__(self, pretty=False):
        self.pretty = pretty

    def format(self, error_help):
        output = {
            "error": {
                "title": error_help.title,
                "explanation": error_help.explanation,
                "suggestions": [s for s in error_help.suggestions if s.strip()],
                "documentation": error_help.docs_url,
                "originalMessage": error_help.original_message,
            }
        }
        return json.dumps(output, indent=2 if self.pretty else None, ensure_ascii=False)


class MarkdownErrorFormatter:
    """Markdown for issue reports."""

    def format(self, error_help):
        lines = [f"## {error_help.title}", "", error_help.explanation, ""]

        if error_help.suggestions:
            lines += ["### Suggested Solutions", "", "```"]
            lines += list(error_help.suggestions)
            lines += ["```", ""]

        if error_help.docs_url:
            lines += ["### Documentation", "", f"[View Documentation]({error_help.docs_url})", ""]

        if error_help.original_message:
            lines += ["### Original Error", "", "```", error_help.original_message, "```"]

        return "\n".join(lines)


def create_default_formatter():
    return ConsoleErrorFormatter()
