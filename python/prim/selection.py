"""
Interactive prompts.

Commands never read stdin directly; they go through a prompter object so
tests can substitute a scripted one. TerminalPrompter is the terminal
implementation: yes/no and free-text questions on input(), menus on
questionary. select_targets is the cleanup multi-select expressed as a
function of (candidates, excluded tags, prompter).
"""

import getpass
from typing import Callable, Iterable, List, Optional, Set

import questionary
from questionary import Choice

from prim.reconcile import CleanupTarget


class TerminalPrompter:
    """Prompts on the terminal."""

    def __init__(self, input_func: Callable[[str], str] = input, output: Callable[[str], None] = print):
        self._input = input_func
        self._print = output

    def _read(self, prompt: str) -> Optional[str]:
        try:
            return self._input(prompt)
        except EOFError:
            return None

    def confirm(self, message: str, default: bool = False) -> bool:
        hint = "Y/n" if default else "y/N"
        while True:
            response = self._read(f"{message} ({hint}): ")
            if response is None:
                return False
            response = response.lower().strip()
            if not response:
                return default
            if response in ["yes", "y"]:
                return True
            if response in ["no", "n"]:
                return False
            self._print("Please enter 'yes' or 'no'.")

    def ask(self, message: str, default: str = "") -> str:
        suffix = f" [{default}]" if default else ""
        response = self._read(f"{message}{suffix}: ")
        if response is None or not response.strip():
            return default
        return response.strip()

    def ask_secret(self, message: str) -> str:
        try:
            return getpass.getpass(f"{message}: ")
        except EOFError:
            return ""

    def choose(self, message: str, options: List[str], default: int = 0) -> Optional[int]:
        """Single choice. Returns the option index, or None on Ctrl+C."""
        choices = [Choice(option, value=index) for index, option in enumerate(options)]
        initial = choices[default] if 0 <= default < len(choices) else None
        return questionary.select(message, choices=choices, default=initial).ask()

    def checkbox(self, message: str, labels: List[str], checked: List[bool]) -> Optional[List[int]]:
        """Multi-select (SPACE toggles, ENTER confirms). Returns checked indices, or None on Ctrl+C."""
        choices = [
            Choice(label, value=index, checked=is_checked)
            for index, (label, is_checked) in enumerate(zip(labels, checked))
        ]
        result = questionary.checkbox(message, choices=choices).ask()
        if result is None:
            return None
        return sorted(result)


def select_targets(
    candidates: List[CleanupTarget],
    excluded_tags: Iterable[str],
    prompter,
) -> Optional[List[CleanupTarget]]:
    """Let the user pick which candidates to clean.

    Every candidate starts checked unless its tag is in excluded_tags.

    Returns:
        The chosen candidates in their original order, or None if the user cancelled
    """
    excluded: Set[str] = set(excluded_tags)
    labels = [target.describe() for target in candidates]
    checked = [target.tag not in excluded for target in candidates]

    chosen = prompter.checkbox("Images to clean:", labels, checked)
    if chosen is None:
        return None
    chosen_indices = set(chosen)
    return [target for index, target in enumerate(candidates) if index in chosen_indices]


def unselected_tags(candidates: List[CleanupTarget], selected: List[CleanupTarget]) -> Set[str]:
    """Tags of candidates the user left unchecked (by tag, as preferences are)."""
    selected_tags = {target.tag for target in selected}
    return {target.tag for target in candidates if target.tag not in selected_tags}
