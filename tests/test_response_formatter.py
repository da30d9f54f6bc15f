import pytest

from vu_assistant.engines.response_formatter import format_knowledge_answer, highlight_term

MARK_OPEN = '<mark class="bg-yellow-200 text-gray-900 rounded px-1">'


@pytest.mark.parametrize(
    "answer, expected",
    [
        (
            "**Phone:** +61 3 9919 6100",
            '<strong>Phone:</strong> <a href="tel:+61 3 9919 6100">+61 3 9919 6100</a>',
        ),
        ("- first\n- second", "• first<br/>• second"),
        ("- only item", "• only item"),
        ("Intro\n- item", "Intro<br/>• item"),
        ("Intro\n\nMore", "Intro<br/><br/>More"),
        ("Steps\n1. Apply\n2. Enrol", "Steps<br/>1. Apply<br/>2. Enrol"),
        ("Intro\nHours: 9am", "Intro<br/><strong>Hours:</strong> 9am"),
        (
            "Write to info@vu.edu.au",
            'Write to <a href="mailto:info@vu.edu.au">info@vu.edu.au</a>',
        ),
        (
            "Visit https://vu.edu.au today",
            'Visit <a href="https://vu.edu.au" target="_blank">https://vu.edu.au</a> today',
        ),
        ("line one\nline two", "line one<br/>line two"),
        ("", ""),
    ],
)
def test_format_knowledge_answer(answer, expected):
    assert format_knowledge_answer(answer) == expected


def test_formatted_answer_has_no_raw_newlines(catalog):
    for record in catalog:
        assert "\n" not in format_knowledge_answer(record.answer)


def test_highlight_is_case_insensitive():
    assert highlight_term("Where is the Library?", "library") == f"Where is the {MARK_OPEN}Library</mark>?"


def test_highlight_treats_term_literally():
    assert highlight_term("I like C++ a lot", "c++") == f"I like {MARK_OPEN}C++</mark> a lot"


def test_highlight_ignores_blank_term():
    assert highlight_term("unchanged", "  ") == "unchanged"
