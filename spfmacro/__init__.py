# -*- coding: utf-8 -*-

"""Expands Sender Policy Framework (SPF) macro strings"""

from __future__ import annotations

import spfmacro._constants
from spfmacro.context import (
    ChainedEvaluationContext,
    EvaluationContext,
    MappingEvaluationContext,
    SequenceEvaluationContext,
    as_evaluation_context,
    build_evaluation_context,
)
from spfmacro.macros import check_macro_syntax, evaluate_macro
from spfmacro.utils import (
    MacroEvaluationError,
    MacroInvalidTransformCount,
    MacroSyntaxError,
    MacroUnknownVariable,
)
from spfmacro.variables import (
    AnyMacroVariable,
    MacroVariable,
    get_valid_lowercase_symbols,
    parse_macro_variable,
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


__version__ = spfmacro._constants.__version__

__all__ = [
    "AnyMacroVariable",
    "ChainedEvaluationContext",
    "EvaluationContext",
    "MacroEvaluationError",
    "MacroInvalidTransformCount",
    "MacroSyntaxError",
    "MacroUnknownVariable",
    "MacroVariable",
    "MappingEvaluationContext",
    "SequenceEvaluationContext",
    "as_evaluation_context",
    "build_evaluation_context",
    "check_macro_syntax",
    "evaluate_macro",
    "get_valid_lowercase_symbols",
    "parse_macro_variable",
]
