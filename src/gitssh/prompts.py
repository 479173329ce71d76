"""Line-oriented prompts over injectable streams.

End of input never raises: :meth:`Prompter.ask` returns ``None`` and the callers treat
that as a refusal.
"""

from __future__ import annotations

import sys


class Prompter:
    def __init__(self, stdin=None, stdout=None, *, assume_yes: bool = False) -> None:
        self.stdin = stdin if stdin is not None else sys.stdin
        self.stdout = stdout if stdout is not None else sys.stdout
        self.assume_yes = assume_yes

    def say(self, message: str = "") -> None:
        print(message, file=self.stdout)

    def ask(self, prompt: str) -> str | None:
        print(prompt, end="", file=self.stdout, flush=True)
        line = self.stdin.readline()
        if not line:
            print(file=self.stdout)
            return None
        return line.strip()

    def confirm(self, prompt: str, *, default: bool = False) -> bool:
        hint = "(Y/n)" if default else "(y/N)"
        if self.assume_yes:
            print(f"{prompt} {hint}: y", file=self.stdout)
            return True
        answer = self.ask(f"{prompt} {hint}: ")
        if answer is None:
            return False
        lowered = answer.lower()
        if default:
            return lowered not in ("n", "no")
        return lowered in ("y", "yes")

    def choose(self, prompt: str, count: int, *, default: int | None = None) -> int | None:
        """Read a 1-based selection, re-asking until it is in range. ``None`` on EOF."""
        suffix = f" [{default}]" if default is not None else ""
        while True:
            answer = self.ask(f"{prompt} (1-{count}){suffix}: ")
            if answer is None:
                return None
            if not answer and default is not None:
                return default
            if answer.isdigit() and 1 <= int(answer) <= count:
                return int(answer)
            print(
                f"Invalid selection. Please enter a number between 1 and {count}.",
                file=self.stdout,
            )
