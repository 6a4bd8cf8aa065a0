# -*- coding: utf-8 -*-
"""SPF macro expansion (RFC 7208 section 7)"""

from __future__ import annotations

import logging
import re
from enum import Enum
from typing import Any, Optional
from urllib.parse import quote_plus

from spfmacro._constants import (
    DEFAULT_DELIMITER,
    JOIN_DELIMITER,
    MACRO_DELIMS,
    MAX_LABEL_COUNT,
    MAX_LABEL_COUNT_DIGITS,
    SYNTAX_ERROR_MARKER,
)
from spfmacro.context import EvaluationContext, as_evaluation_context
from spfmacro.utils import (
    MacroInvalidTransformCount,
    MacroSyntaxError,
    MacroUnknownVariable,
)
from spfmacro.variables import (
    AnyMacroVariable,
    MacroVariable,
    get_valid_lowercase_symbols,
)

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


class _State(Enum):
    # Just read "%"
    ESCAPE = 0
    # Just read "%{"
    OPEN_BRACE = 1
    # Read the macro letter and any label count
    LETTER = 2
    # Read "r" or at least one delimiter
    TRANSFORMERS = 3


def _is_ascii_letter(char: str) -> bool:
    return char.isascii() and char.isalpha()


def _is_ascii_digit(char: str) -> bool:
    return "0" <= char <= "9"


def _url_encode(text: str) -> str:
    # application/x-www-form-urlencoded byte serialization, which leaves
    # only alphanumerics and "*-._" unescaped
    return quote_plus(text, safe="*").replace("~", "%7E")


class _PlaceholderEvaluationContext(EvaluationContext):
    """Supplies a fixed value for every known variable"""

    def provide_data(self, variable: MacroVariable) -> str:
        return variable.letter


class _MacroEvaluator:
    """
    Expands a single macro string

    An instance is used for one expansion only. After an exception its
    state is meaningless and it must be discarded.
    """

    def __init__(
        self,
        macro_text: str,
        context: EvaluationContext,
        syntax_error_marker: str,
    ):
        self.macro_text = macro_text
        self.context = context
        self.syntax_error_marker = syntax_error_marker
        self.position = 0
        self.output: list[str] = []

    def _syntax_error(
        self, position: int, reason: str = "Invalid SPF macro syntax"
    ) -> MacroSyntaxError:
        return MacroSyntaxError(
            self.macro_text,
            position,
            reason=reason,
            syntax_error_marker=self.syntax_error_marker,
        )

    def _resolve_letter(self, char: str, position: int) -> MacroVariable:
        if char.lower() not in get_valid_lowercase_symbols():
            raise MacroUnknownVariable(AnyMacroVariable.unknown(char), position)
        return MacroVariable.from_letter(char)

    def _read_label_count(self) -> Optional[int]:
        start = self.position
        text = self.macro_text
        while self.position < len(text) and _is_ascii_digit(text[self.position]):
            self.position += 1
        if self.position == start:
            return None
        digits = text[start : self.position].lstrip("0") or "0"
        if len(digits) > MAX_LABEL_COUNT_DIGITS or int(digits) > MAX_LABEL_COUNT:
            raise MacroInvalidTransformCount(
                text,
                start,
                reason="SPF macro label count is too large",
                syntax_error_marker=self.syntax_error_marker,
            )
        return int(digits)

    def _put_formatted(
        self,
        variable: MacroVariable,
        *,
        url_encode: bool = False,
        reverse: bool = False,
        label_count: Optional[int] = None,
        delimiters: Optional[set[str]] = None,
    ) -> None:
        value = self.context.provide_data(variable)
        if not delimiters or delimiters == {DEFAULT_DELIMITER}:
            segments = value.split(DEFAULT_DELIMITER)
        else:
            pattern = "[" + "".join(re.escape(d) for d in sorted(delimiters)) + "]"
            segments = re.split(pattern, value)
        if reverse:
            segments.reverse()
        if label_count is not None:
            segments = segments[:label_count]
        expanded = JOIN_DELIMITER.join(segments)
        if url_encode:
            expanded = _url_encode(expanded)
        self.output.append(expanded)

    def _consume_escape(self) -> None:
        """Consumes everything after a "%" up to the end of the escape"""
        text = self.macro_text
        escape_start = self.position - 1
        state = _State.ESCAPE
        variable = None
        url_encode = False
        reverse = False
        label_count = None
        delimiters: set[str] = set()

        while True:
            if self.position >= len(text):
                raise self._syntax_error(
                    escape_start, reason="Incomplete SPF macro escape"
                )
            char = text[self.position]
            char_position = self.position
            self.position += 1

            if state is _State.ESCAPE:
                if char == "{":
                    state = _State.OPEN_BRACE
                    continue
                if char == "%":
                    self.output.append("%")
                    return
                if char == "_":
                    self.output.append(" ")
                    return
                if char == "-":
                    self.output.append("%20")
                    return
                if _is_ascii_letter(char):
                    variable = self._resolve_letter(char, char_position)
                    url_encode = char.isupper()
                    break
            elif state is _State.OPEN_BRACE:
                if _is_ascii_letter(char):
                    variable = self._resolve_letter(char, char_position)
                    url_encode = char.isupper()
                    label_count = self._read_label_count()
                    state = _State.LETTER
                    continue
            elif state is _State.LETTER:
                if char == "r":
                    reverse = True
                    state = _State.TRANSFORMERS
                    continue
                if char in MACRO_DELIMS:
                    delimiters.add(char)
                    state = _State.TRANSFORMERS
                    continue
                if char == "}":
                    break
            elif state is _State.TRANSFORMERS:
                if char in MACRO_DELIMS:
                    delimiters.add(char)
                    continue
                if char == "}":
                    break

            raise self._syntax_error(char_position)

        self._put_formatted(
            variable,
            url_encode=url_encode,
            reverse=reverse,
            label_count=label_count,
            delimiters=delimiters,
        )

    def evaluate(self) -> str:
        text = self.macro_text
        while self.position < len(text):
            percent = text.find("%", self.position)
            if percent == -1:
                self.output.append(text[self.position :])
                break
            if percent > self.position:
                self.output.append(text[self.position : percent])
            self.position = percent + 1
            self._consume_escape()
        return "".join(self.output)


def evaluate_macro(
    macro_text: str,
    context: Any,
    *,
    syntax_error_marker: str = SYNTAX_ERROR_MARKER,
) -> str:
    """
    Expands the macros in an SPF macro string

    .. note::
        The result is not checked in any way. Expanding a macro that is
        meant to be a domain name can produce a string that is not a
        valid domain name.

    Args:
        macro_text (str): The macro string, e.g. the value of an
                          ``exists``, ``redirect`` or ``exp`` term
        context: An ``EvaluationContext``, a mapping of ``MacroVariable``
                 to values, or a sequence of ``(MacroVariable, value)``
                 pairs
        syntax_error_marker (str): The character to use to indicate
                                   the position of a syntax error

    Returns:
        str: The expanded string

    Raises:
        :exc:`spfmacro.MacroSyntaxError`
        :exc:`spfmacro.MacroInvalidTransformCount`
        :exc:`spfmacro.MacroUnknownVariable`
    """
    logging.debug(f"Expanding SPF macro string: {macro_text}")
    evaluator = _MacroEvaluator(
        macro_text,
        as_evaluation_context(context),
        syntax_error_marker,
    )
    return evaluator.evaluate()


def check_macro_syntax(
    macro_text: str,
    *,
    syntax_error_marker: str = SYNTAX_ERROR_MARKER,
) -> None:
    """
    Checks the syntax of an SPF macro string without expanding it

    Args:
        macro_text (str): The macro string
        syntax_error_marker (str): The character to use to indicate
                                   the position of a syntax error

    Raises:
        :exc:`spfmacro.MacroSyntaxError`
        :exc:`spfmacro.MacroInvalidTransformCount`
        :exc:`spfmacro.MacroUnknownVariable`
    """
    evaluate_macro(
        macro_text,
        _PlaceholderEvaluationContext(),
        syntax_error_marker=syntax_error_marker,
    )
