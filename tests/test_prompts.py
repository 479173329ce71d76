from __future__ import annotations

import io

import pytest

from gitssh.prompts import Prompter


def _prompter(text: str, **kwargs) -> tuple[Prompter, io.StringIO]:
    out = io.StringIO()
    return Prompter(io.StringIO(text), out, **kwargs), out


@pytest.mark.parametrize(
    ("answer", "default", "expected"),
    [
        ("\n", True, True),
        ("\n", False, False),
        ("n\n", True, False),
        ("NO\n", True, False),
        ("maybe\n", True, True),
        ("Y\n", False, True),
        ("maybe\n", False, False),
    ],
)
def test_confirm_defaults(answer, default, expected) -> None:
    prompter, _ = _prompter(answer)
    assert prompter.confirm("Proceed?", default=default) is expected


def test_confirm_end_of_input_is_refusal_even_with_default_yes() -> None:
    prompter, out = _prompter("")
    assert prompter.confirm("Proceed?", default=True) is False
    assert out.getvalue() == "Proceed? (Y/n): \n"


def test_assume_yes_skips_reading() -> None:
    prompter, out = _prompter("n\n", assume_yes=True)
    assert prompter.confirm("Proceed?") is True
    assert out.getvalue() == "Proceed? (y/N): y\n"


def test_choose_reprompts_until_in_range() -> None:
    prompter, out = _prompter("0\n4\n3\n")
    assert prompter.choose("Pick", 3) == 3
    assert out.getvalue().count("Invalid selection") == 2


def test_choose_default_and_end_of_input() -> None:
    prompter, _ = _prompter("\n")
    assert prompter.choose("Pick", 3, default=2) == 2
    prompter, _ = _prompter("")
    assert prompter.choose("Pick", 3, default=2) is None
