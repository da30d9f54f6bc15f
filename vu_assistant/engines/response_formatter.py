"""
Response Formatter - turns knowledge-base markdown into chat HTML

Apply exactly once, between retrieval and display. Running it again on
its own output is not idempotent.
"""
import re

_BOLD_RE = re.compile(r"\*\*([^*]+)\*\*")
_LEADING_BULLET_RE = re.compile(r"^- ")
_NUMBERED_RE = re.compile(r"\n([0-9]+\.)")
_HEADER_RE = re.compile(r"\n([A-Z][^:]*:)")
_PHONE_RE = re.compile(r"(\+61 \d+ \d{4} \d{4})")
_EMAIL_RE = re.compile(r"([\w.-]+@[\w.-]+\.\w+)")
_URL_RE = re.compile(r"(https?://[\w.-]+)")


def format_knowledge_answer(answer: str) -> str:
    text = str(answer or "")
    text = _BOLD_RE.sub(r"<strong>\1</strong>", text)
    text = text.replace("\n\n", "<br/><br/>")
    text = _LEADING_BULLET_RE.sub("• ", text)
    text = text.replace("\n- ", "<br/>• ")
    text = _NUMBERED_RE.sub(r"<br/>\1", text)
    text = _HEADER_RE.sub(r"<br/><strong>\1</strong>", text)
    text = _PHONE_RE.sub(r'<a href="tel:\1">\1</a>', text)
    text = _EMAIL_RE.sub(r'<a href="mailto:\1">\1</a>', text)
    text = _URL_RE.sub(r'<a href="\1" target="_blank">\1</a>', text)
    return text.replace("\n", "<br/>")


def highlight_term(content: str, term: str) -> str:
    """Wrap case-insensitive occurrences of a literal term in <mark>."""
    if not term or not term.strip():
        return content
    pattern = re.compile(f"({re.escape(term)})", re.IGNORECASE)
    return pattern.sub(r'<mark class="bg-yellow-200 text-gray-900 rounded px-1">\1</mark>', content)
