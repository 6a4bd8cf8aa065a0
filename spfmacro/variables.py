# -*- coding: utf-8 -*-
"""SPF macro variables (RFC 7208 section 7.2)"""

from __future__ import annotations

from enum import Enum
from typing import Optional

"""Copyright 2019-2023 Sean Whalen

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at

   https://www.apache.org/licenses/LICENSE-2.0

Unless required by applicable law or agreed to in writing, software
distributed under the License is distributed on an "AS IS" BASIS,
WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
See the License for the specific language governing permissions and
limitations under the License."""

MACRO_LETTERS = "slodipvhcrt"


class MacroVariable(Enum):
    """A macro letter recognized by RFC 7208"""

    SENDER = "s"
    LOCAL_PART_OF_SENDER = "l"
    DOMAIN_OF_SENDER = "o"
    DOMAIN = "d"
    IP = "i"
    VALIDATED_DOMAIN = "p"
    IP_ADDRESS_TYPE = "v"
    HELO_DOMAIN = "h"
    SMTP_CLIENT_IP = "c"
    RECEIVING_DOMAIN = "r"
    TIMESTAMP = "t"

    @property
    def letter(self) -> str:
        """The canonical lowercase letter"""
        return self.value

    @property
    def sort_key(self) -> int:
        """The position of the variable in the macro letter ordering"""
        return MACRO_LETTERS.index(self.value)

    @classmethod
    def from_letter(cls, letter: str) -> MacroVariable:
        """
        Gets the variable for a macro letter, ignoring case

        Args:
            letter (str): A single ASCII letter

        Returns:
            MacroVariable: The matching variable

        Raises:
            :exc:`ValueError`
        """
        if len(letter) != 1 or not letter.isascii():
            raise ValueError(f"{letter!r} is not a valid SPF macro letter")
        return cls(letter.lower())

    def __lt__(self, other):
        if not isinstance(other, MacroVariable):
            return NotImplemented
        return self.sort_key < other.sort_key

    def __le__(self, other):
        if not isinstance(other, MacroVariable):
            return NotImplemented
        return self.sort_key <= other.sort_key

    def __gt__(self, other):
        if not isinstance(other, MacroVariable):
            return NotImplemented
        return self.sort_key > other.sort_key

    def __ge__(self, other):
        if not isinstance(other, MacroVariable):
            return NotImplemented
        return self.sort_key >= other.sort_key

    def __str__(self):
        return self.value


class AnyMacroVariable:
    """Either a known MacroVariable or an unrecognized macro letter"""

    __slots__ = ("variable", "letter")

    def __init__(self, variable: Optional[MacroVariable], letter: str):
        self.variable = variable
        self.letter = letter

    @classmethod
    def known(cls, variable: MacroVariable) -> AnyMacroVariable:
        """Wraps a recognized variable"""
        return cls(variable, variable.letter)

    @classmethod
    def unknown(cls, letter: str) -> AnyMacroVariable:
        """Wraps an unrecognized macro letter"""
        return cls(None, letter)

    @property
    def is_known(self) -> bool:
        """``True`` if this wraps a recognized variable"""
        return self.variable is not None

    def __eq__(self, other):
        if not isinstance(other, AnyMacroVariable):
            return NotImplemented
        return self.variable is other.variable and self.letter == other.letter

    def __hash__(self):
        return hash((self.variable, self.letter))

    def __repr__(self):
        if self.is_known:
            return f"AnyMacroVariable.known({self.variable!r})"
        return f"AnyMacroVariable.unknown({self.letter!r})"

    def __str__(self):
        return self.letter


def parse_macro_variable(letter: str) -> AnyMacroVariable:
    """
    Classifies a macro letter

    Args:
        letter (str): A single macro letter, in either case

    Returns:
        AnyMacroVariable: The known variable, or the raw letter if it is
        not recognized
    """
    try:
        return AnyMacroVariable.known(MacroVariable.from_letter(letter))
    except ValueError:
        return AnyMacroVariable.unknown(letter)


def get_valid_lowercase_symbols() -> frozenset[str]:
    """Returns the set of recognized lowercase macro letters"""
    return _VALID_LOWERCASE_SYMBOLS


_VALID_LOWERCASE_SYMBOLS = frozenset(MACRO_LETTERS)
