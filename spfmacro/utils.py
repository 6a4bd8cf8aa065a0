# -*- coding: utf-8 -*-
"""Exceptions and helper functions"""

from __future__ import annotations

import ipaddress
import re
import unicodedata
from typing import Optional, Union

import dns.reversename

from spfmacro._constants import SYNTAX_ERROR_MARKER

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

ZERO_WIDTH_RE = re.compile(r"[\u200B-\u200D\uFEFF]")  # includes ZWSP, ZWNJ, ZWJ, BOM


class MacroEvaluationError(Exception):
    """Raised when an SPF macro string cannot be expanded"""

    def __init__(self, msg: str, data: Optional[dict] = None):
        """
        Args:
            msg (str): The error message
            data (dict): A dictionary of data to include in the output
        """
        self.data = data
        Exception.__init__(self, msg)


class MacroSyntaxError(MacroEvaluationError):
    """Raised when an SPF macro string contains a malformed escape"""

    def __init__(
        self,
        macro_text: str,
        position: int,
        *,
        reason: str = "Invalid SPF macro syntax",
        syntax_error_marker: str = SYNTAX_ERROR_MARKER,
    ):
        """
        Args:
            macro_text (str): The macro string being expanded
            position (int): The offset of the offending character
            reason (str): A short description of the problem
            syntax_error_marker (str): The marker inserted at ``position``
        """
        self.macro_text = macro_text
        self.position = position
        marked_value = (
            macro_text[:position] + syntax_error_marker + macro_text[position:]
        )
        MacroEvaluationError.__init__(
            self,
            f"{reason} at position {position} "
            f"(marked with {syntax_error_marker}) in value: {marked_value}",
            data={"position": position},
        )


class MacroInvalidTransformCount(MacroSyntaxError):
    """Raised when the label count of a macro transformer is out of range"""


class MacroUnknownVariable(MacroEvaluationError):
    """Raised when a macro letter is unrecognized or has no value"""

    def __init__(self, variable, position: Optional[int] = None):
        """
        Args:
            variable (AnyMacroVariable): The variable that could not be resolved
            position (int): The offset of the macro letter, when known
        """
        self.variable = variable
        self.position = position
        if variable.is_known:
            msg = f"No value is available for SPF macro variable {variable}"
        else:
            msg = f"Unrecognized SPF macro letter {variable}"
        if position is not None:
            msg = f"{msg} at position {position}"
        MacroEvaluationError.__init__(
            self, msg, data={"variable": str(variable), "position": position}
        )


def normalize_domain(domain: str) -> str:
    """
    Normalize an input domain by removing zero-width characters and lowering it

    Args:
        domain (str): A domain or subdomain

    Returns:
        str: A normalized domain
    """
    domain = unicodedata.normalize("NFC", domain)
    domain = ZERO_WIDTH_RE.sub("", domain)
    return domain.lower()


def parse_ip_address(
    ip_address: Union[str, ipaddress.IPv4Address, ipaddress.IPv6Address],
) -> Union[ipaddress.IPv4Address, ipaddress.IPv6Address]:
    """
    Parses an IP address, unwrapping IPv4-mapped IPv6 addresses

    Args:
        ip_address: An IPv4 or IPv6 address

    Returns:
        The parsed address

    Raises:
        :exc:`ValueError`
    """
    address = ipaddress.ip_address(ip_address)
    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped:
        return address.ipv4_mapped
    return address


def get_ip_macro_value(
    ip_address: Union[ipaddress.IPv4Address, ipaddress.IPv6Address],
) -> str:
    """
    Formats an IP address the way the ``i`` macro expands it

    IPv4 addresses are returned in dotted-quad form. IPv6 addresses are
    returned as 32 dot-separated nibbles, most significant first.

    Args:
        ip_address: A parsed IPv4 or IPv6 address

    Returns:
        str: The ``i`` macro value
    """
    if isinstance(ip_address, ipaddress.IPv4Address):
        return str(ip_address)
    reverse_name = dns.reversename.from_address(str(ip_address))
    nibbles = [label.decode("ascii") for label in reverse_name.labels[:32]]
    return ".".join(reversed(nibbles))
