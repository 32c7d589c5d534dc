"""
Confirmation prompt interface.

The dialog UI is an external collaborator; the session only needs a blocking
call that returns the user's answer. A request without a negative button is
informational and always resolves to True.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(frozen=True)
class PromptRequest:
    """
    A dialog shown to the user.

    Attributes:
        title: Dialog title.
        text: Lines of body text.
        positive_button: Label of the accepting button.
        negative_button: Label of the rejecting button; None for informational prompts.
        confirm: Whether this asks for confirmation of a destructive action.
    """
    title: str
    text: List[str] = field(default_factory=list)
    positive_button: str = "OK"
    negative_button: Optional[str] = None
    confirm: bool = False

    @property
    def informational(self) -> bool:
        return self.negative_button is None


class Prompt(ABC):
    """Shows a PromptRequest and returns the user's choice."""

    @abstractmethod
    def prompt(self, request: PromptRequest) -> bool:
        pass


class AutoPrompt(Prompt):
    """
    Non-interactive prompt.

    Answers every confirmation with a fixed value and records requests,
    for scripted sessions and tests.
    """

    def __init__(self, answer: bool = True):
        self.answer = answer
        self.requests: List[PromptRequest] = []

    def prompt(self, request: PromptRequest) -> bool:
        self.requests.append(request)
        if request.informational:
            logging.warning(f"{request.title}: {' '.join(request.text)}")
            return True
        logging.info(f"{request.title}: answering {'yes' if self.answer else 'no'}")
        return self.answer
