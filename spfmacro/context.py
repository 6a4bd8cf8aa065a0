# -*- coding: utf-8 -*-
"""Providers of SPF macro variable values"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from bisect import bisect_left
from collections.abc import Iterable, Mapping
from time import time
from typing import Any, Optional, Union

from spfmacro._constants import DEFAULT_LOCAL_PART, UNKNOWN_DOMAIN
from spfmacro.utils import (
    MacroUnknownVariable,
    get_ip_macro_value,
    normalize_domain,
    parse_ip_address,
)
from spfmacro.variables import AnyMacroVariable, MacroVariable

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


def _as_text(value: Any) -> str:
    return value if isinstance(value, str) else str(value)


def _as_variable(key: Union[MacroVariable, str]) -> MacroVariable:
    if isinstance(key, MacroVariable):
        return key
    return MacroVariable.from_letter(key)


class EvaluationContext(ABC):
    """Provides the values of macro variables to the macro evaluator"""

    @abstractmethod
    def provide_data(self, variable: MacroVariable) -> str:
        """
        Gets the current value of a macro variable

        Args:
            variable (MacroVariable): The variable to look up

        Returns:
            str: The value of the variable

        Raises:
            :exc:`spfmacro.MacroUnknownVariable`
        """

    def __contains__(self, variable: MacroVariable) -> bool:
        try:
            self.provide_data(variable)
        except MacroUnknownVariable:
            return False
        return True


class MappingEvaluationContext(EvaluationContext):
    """
    Looks up variables in a mapping

    Keys may be ``MacroVariable`` members or macro letters. Letters are
    converted once, when the context is created, so a letter key and a
    member key for the same variable collapse into one entry, with the
    later one winning.
    """

    def __init__(self, data: Mapping[Union[MacroVariable, str], Any]):
        self._data = {_as_variable(key): value for key, value in data.items()}

    def provide_data(self, variable: MacroVariable) -> str:
        try:
            return _as_text(self._data[variable])
        except KeyError:
            raise MacroUnknownVariable(AnyMacroVariable.known(variable))

    def __repr__(self):
        return f"{type(self).__name__}({self._data!r})"


class SequenceEvaluationContext(EvaluationContext):
    """
    Looks up variables in a sequence of ``(MacroVariable, value)`` pairs

    Keys may also be macro letters, converted once, when the context is
    created.

    If the pairs are sorted by variable (see ``MacroVariable.sort_key``)
    lookups use a binary search, otherwise a linear scan. Sortedness is
    checked once, here, so the sequence must not be changed afterwards.
    If a variable appears more than once, any one of its values may be
    returned.
    """

    def __init__(self, pairs: Iterable[tuple[MacroVariable, Any]]):
        pairs = [(_as_variable(key), value) for key, value in pairs]
        self._pairs = pairs
        self.is_sorted = all(
            pairs[i][0] <= pairs[i + 1][0] for i in range(len(pairs) - 1)
        )

    def provide_data(self, variable: MacroVariable) -> str:
        if self.is_sorted:
            index = bisect_left(self._pairs, variable, key=lambda pair: pair[0])
            if index < len(self._pairs) and self._pairs[index][0] is variable:
                return _as_text(self._pairs[index][1])
        else:
            for key, value in self._pairs:
                if key is variable:
                    return _as_text(value)
        raise MacroUnknownVariable(AnyMacroVariable.known(variable))

    def __repr__(self):
        return f"{type(self).__name__}({self._pairs!r})"


class ChainedEvaluationContext(EvaluationContext):
    """Asks each context in turn and returns the first value found"""

    def __init__(self, *contexts: Any):
        self.contexts = [as_evaluation_context(context) for context in contexts]

    def provide_data(self, variable: MacroVariable) -> str:
        for context in self.contexts:
            try:
                return context.provide_data(variable)
            except MacroUnknownVariable:
                continue
        raise MacroUnknownVariable(AnyMacroVariable.known(variable))


def as_evaluation_context(obj: Any) -> EvaluationContext:
    """
    Wraps an object so it can be used as an evaluation context

    Args:
        obj: An ``EvaluationContext``, a mapping of variables to values,
             or an iterable of ``(variable, value)`` pairs

    Returns:
        EvaluationContext: A context backed by ``obj``

    Raises:
        :exc:`TypeError`
    """
    if isinstance(obj, EvaluationContext):
        return obj
    if isinstance(obj, Mapping):
        return MappingEvaluationContext(obj)
    if isinstance(obj, Iterable) and not isinstance(obj, (str, bytes)):
        return SequenceEvaluationContext(obj)
    raise TypeError(f"{type(obj).__name__} cannot be used as an evaluation context")


def build_evaluation_context(
    sender: str,
    ip_address: str,
    domain: str,
    *,
    helo_domain: Optional[str] = None,
    receiving_domain: Optional[str] = None,
    validated_domain: Optional[str] = None,
    timestamp: Optional[int] = None,
) -> MappingEvaluationContext:
    """
    Builds an evaluation context from the details of an SMTP transaction

    Args:
        sender (str): The MAIL FROM address, or the HELO identity if the
                      reverse-path is null
        ip_address (str): The IPv4 or IPv6 address of the SMTP client
        domain (str): The domain whose SPF record is being evaluated
        helo_domain (str): The HELO/EHLO domain
        receiving_domain (str): The domain of the host performing the check
        validated_domain (str): The validated domain name of the client IP
        timestamp (int): Seconds since the epoch (defaults to now)

    Returns:
        MappingEvaluationContext: A context holding every macro variable
        that can be derived from the arguments

    Raises:
        :exc:`ValueError`
    """
    if "@" in sender:
        local_part, sender_domain = sender.rsplit("@", 1)
    else:
        local_part, sender_domain = "", sender
    if local_part == "":
        local_part = DEFAULT_LOCAL_PART
    sender_domain = normalize_domain(sender_domain)
    address = parse_ip_address(ip_address)
    if timestamp is None:
        timestamp = int(time())

    data = {
        MacroVariable.SENDER: f"{local_part}@{sender_domain}",
        MacroVariable.LOCAL_PART_OF_SENDER: local_part,
        MacroVariable.DOMAIN_OF_SENDER: sender_domain,
        MacroVariable.DOMAIN: normalize_domain(domain),
        MacroVariable.IP: get_ip_macro_value(address),
        MacroVariable.VALIDATED_DOMAIN: validated_domain or UNKNOWN_DOMAIN,
        MacroVariable.IP_ADDRESS_TYPE: "in-addr" if address.version == 4 else "ip6",
        MacroVariable.SMTP_CLIENT_IP: str(address),
        MacroVariable.RECEIVING_DOMAIN: receiving_domain or UNKNOWN_DOMAIN,
        MacroVariable.TIMESTAMP: str(timestamp),
    }
    if helo_domain is not None:
        data[MacroVariable.HELO_DOMAIN] = helo_domain
    logging.debug(f"Built SPF macro evaluation context for {sender} from {address}")

    return MappingEvaluationContext(data)
