#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Automated tests"""

import random
import unittest

import spfmacro
import spfmacro.context
import spfmacro.macros
import spfmacro.utils
import spfmacro.variables
from spfmacro.variables import AnyMacroVariable, MacroVariable

default_values = {
    MacroVariable.SENDER: "sender",
    MacroVariable.RECEIVING_DOMAIN: "a.b.c.d",
    MacroVariable.HELO_DOMAIN: "  ",
    MacroVariable.SMTP_CLIENT_IP: "a.b-c=d",
}


def expand(macro_text, context=None):
    if context is None:
        context = default_values
    return spfmacro.evaluate_macro(macro_text, context)


class Test(unittest.TestCase):
    def testMacroLetters(self):
        """Every variable maps to exactly one lowercase letter and back"""
        letters = spfmacro.get_valid_lowercase_symbols()
        self.assertEqual(letters, frozenset("slodipvhcrt"))
        self.assertEqual(len(MacroVariable), len(letters))
        for variable in MacroVariable:
            self.assertIn(variable.letter, letters)
            self.assertIs(MacroVariable.from_letter(variable.letter), variable)
            self.assertIs(
                MacroVariable.from_letter(variable.letter.upper()), variable
            )

    def testUnknownMacroLetter(self):
        """Unrecognized letters are kept as raw letters, not coerced"""
        self.assertRaises(ValueError, MacroVariable.from_letter, "q")
        self.assertRaises(ValueError, MacroVariable.from_letter, "sd")
        parsed = spfmacro.parse_macro_variable("q")
        self.assertFalse(parsed.is_known)
        self.assertEqual(parsed, AnyMacroVariable.unknown("q"))
        self.assertEqual(str(parsed), "q")
        parsed = spfmacro.parse_macro_variable("S")
        self.assertTrue(parsed.is_known)
        self.assertEqual(parsed, AnyMacroVariable.known(MacroVariable.SENDER))

    def testMacroVariableOrdering(self):
        """Variables sort in declaration order"""
        self.assertLess(MacroVariable.SENDER, MacroVariable.TIMESTAMP)
        self.assertEqual(sorted(MacroVariable), list(MacroVariable))

    def testEscapes(self):
        """%%, %_ and %- expand to literal text"""
        self.assertEqual(expand("%_"), " ")
        self.assertEqual(expand("%%"), "%")
        self.assertEqual(expand("%-"), "%20")
        self.assertEqual(expand("a%%b%_c%-d"), "a%b c%20d")

    def testLiteralTextUnchanged(self):
        """Text without macros is returned unchanged"""
        for text in ["asdf", "", "example.com", "żółw.example", "{}r1.-"]:
            self.assertEqual(expand(text), text)

    def testBareMacro(self):
        """%x is equivalent to %{x}"""
        self.assertEqual(expand("%s"), "sender")
        self.assertEqual(expand("%{s}"), "sender")
        self.assertEqual(expand("%s.%s"), "sender.sender")
        self.assertEqual(expand("%rr"), "a.b.c.dr")

    def testEveryLetter(self):
        """Each letter expands to its value when the value has no delimiters"""
        context = {variable: f"value{variable.letter}" for variable in MacroVariable}
        for variable in MacroVariable:
            expected = f"value{variable.letter}"
            self.assertEqual(expand(f"%{{{variable.letter}}}", context), expected)
            self.assertEqual(expand(f"%{variable.letter}", context), expected)

    def testReverseAndTruncate(self):
        """Segments are reversed first, then the first N are kept"""
        self.assertEqual(expand("%{r}"), "a.b.c.d")
        self.assertEqual(expand("%{rr}"), "d.c.b.a")
        self.assertEqual(expand("%{r1}"), "a")
        self.assertEqual(expand("%{rr1}"), "d")
        self.assertEqual(expand("%{r2r}"), "d.c")
        self.assertEqual(expand("%{r10}"), "a.b.c.d")
        self.assertEqual(expand("%{sr}"), "sender")

    def testZeroLabelCount(self):
        """A label count of zero expands to an empty string"""
        self.assertEqual(expand("%{r0}"), "")
        self.assertEqual(expand("%{s0}"), "")
        self.assertEqual(expand("x%{r0r}y"), "xy")

    def testCustomDelimiters(self):
        """Values are split on the given delimiters and joined with dots"""
        self.assertEqual(expand("%{c.-=}"), "a.b.c.d")
        self.assertEqual(expand("%{cr.-=}"), "d.c.b.a")
        self.assertEqual(expand("%{c0r.-=}"), "")
        self.assertEqual(expand("%{c-}"), "a.b.c=d")
        self.assertEqual(expand("%{c}"), "a.b-c=d")
        self.assertEqual(expand("%{c2-=}"), "a.b.c")

    def testUppercaseURLEncodes(self):
        """Uppercase letters URL-encode the expansion"""
        self.assertEqual(expand("%{H}"), "++")
        self.assertEqual(expand("%{Hr}"), "++")
        self.assertEqual(expand("%H"), "++")
        self.assertEqual(expand("%{S}"), expand("%{s}"))
        self.assertEqual(expand("%{R2r}"), expand("%{r2r}"))
        context = {MacroVariable.LOCAL_PART_OF_SENDER: "strong/bad~x@y"}
        self.assertEqual(expand("%{L}", context), "strong%2Fbad%7Ex%40y")

    def testUnknownVariable(self):
        """Unrecognized or missing letters raise MacroUnknownVariable"""
        for macro_text in ["%q", "%{q}", "%{Q1r}", "%t", "%{t}", "abc%{d}"]:
            with self.assertRaises(spfmacro.MacroUnknownVariable) as context:
                expand(macro_text)
            self.assertNotIsInstance(context.exception, spfmacro.MacroSyntaxError)

        with self.assertRaises(spfmacro.MacroUnknownVariable) as context:
            expand("xx%q")
        self.assertEqual(context.exception.variable, AnyMacroVariable.unknown("q"))
        self.assertEqual(context.exception.position, 3)

        with self.assertRaises(spfmacro.MacroUnknownVariable) as context:
            expand("%{t}")
        self.assertEqual(
            context.exception.variable, AnyMacroVariable.known(MacroVariable.TIMESTAMP)
        )

    def testSyntaxErrors(self):
        """Malformed escapes raise MacroSyntaxError"""
        bad_macros = [
            "%",
            "abc%",
            "%{",
            "%{s",
            "%{s1",
            "%{sr",
            "%{s.",
            "%{}",
            "%{1}",
            "%!",
            "%{s!}",
            "%{srr}",
            "%{s.r}",
            "%{s1r2}",
            "%{sR}",
            "%{ś}",
            "%ś",
        ]
        for macro_text in bad_macros:
            self.assertRaises(spfmacro.MacroSyntaxError, expand, macro_text)

    def testSyntaxErrorMarker(self):
        """Syntax errors mark the position of the problem"""
        with self.assertRaises(spfmacro.MacroSyntaxError) as context:
            spfmacro.evaluate_macro("%{s!}", default_values, syntax_error_marker="^")
        self.assertEqual(context.exception.position, 3)
        self.assertIn("%{s^!}", str(context.exception))

    def testInvalidTransformCount(self):
        """Label counts that do not fit in 64 bits are rejected"""
        self.assertEqual(expand("%{r18446744073709551615}"), "a.b.c.d")
        self.assertRaises(
            spfmacro.MacroInvalidTransformCount, expand, "%{r18446744073709551616}"
        )
        self.assertTrue(
            issubclass(spfmacro.MacroInvalidTransformCount, spfmacro.MacroSyntaxError)
        )

    def testLongLabelCount(self):
        """Very long digit runs are rejected or parsed without int() limits"""
        self.assertRaises(
            spfmacro.MacroInvalidTransformCount, expand, "%{r" + "9" * 5000 + "}"
        )
        self.assertRaises(
            spfmacro.MacroInvalidTransformCount, expand, "%{r1" + "0" * 20 + "}"
        )
        self.assertEqual(expand("%{r" + "0" * 5000 + "1}"), "a")
        self.assertEqual(expand("%{r" + "0" * 5000 + "}"), "")
        self.assertEqual(expand("%{r0018446744073709551615r}"), "d.c.b.a")

    def testArbitraryInput(self):
        """Any input either expands to a string or raises MacroEvaluationError"""
        alphabet = "%%%{{}}_-rRrr0123456789.+,/=sdchHqQx é\u200bż"
        generator = random.Random(7208)
        for _ in range(5000):
            length = generator.randint(0, 24)
            macro_text = "".join(generator.choice(alphabet) for _ in range(length))
            try:
                result = expand(macro_text)
            except spfmacro.MacroEvaluationError:
                continue
            self.assertIsInstance(result, str)

    def testMappingContextLetterKeys(self):
        """Mapping contexts accept letters as keys"""
        context = spfmacro.MappingEvaluationContext(
            {"s": "a", MacroVariable.SENDER: "b"}
        )
        self.assertEqual(context.provide_data(MacroVariable.SENDER), "b")
        self.assertNotIn(MacroVariable.DOMAIN, context)
        self.assertEqual(expand("%{d}", {"D": "example.com"}), "example.com")

    def testSequenceContext(self):
        """Sorted and unsorted sequence contexts return the same values"""
        pairs = [
            (MacroVariable.DOMAIN, "example.com"),
            (MacroVariable.SENDER, "user@example.com"),
            (MacroVariable.TIMESTAMP, 1234),
            (MacroVariable.IP, "192.0.2.1"),
        ]
        unsorted_context = spfmacro.SequenceEvaluationContext(pairs)
        sorted_context = spfmacro.SequenceEvaluationContext(
            sorted(pairs, key=lambda pair: pair[0])
        )
        self.assertFalse(unsorted_context.is_sorted)
        self.assertTrue(sorted_context.is_sorted)
        for variable in MacroVariable:
            try:
                expected = unsorted_context.provide_data(variable)
            except spfmacro.MacroUnknownVariable:
                self.assertRaises(
                    spfmacro.MacroUnknownVariable,
                    sorted_context.provide_data,
                    variable,
                )
            else:
                self.assertEqual(sorted_context.provide_data(variable), expected)
        self.assertEqual(sorted_context.provide_data(MacroVariable.TIMESTAMP), "1234")
        self.assertEqual(expand("%{ir}", pairs), "1.2.0.192")
        self.assertTrue(spfmacro.SequenceEvaluationContext([]).is_sorted)

    def testSequenceContextLetterKeys(self):
        """Sequence contexts accept letters as keys"""
        self.assertEqual(expand("%{s}", [("s", "x")]), "x")
        self.assertEqual(
            expand("%{d}.%{S}", [("d", "a.example"), ("s", "y")]), "a.example.y"
        )
        context = spfmacro.SequenceEvaluationContext([("s", "x"), ("D", "z")])
        self.assertTrue(context.is_sorted)
        self.assertEqual(context.provide_data(MacroVariable.DOMAIN), "z")
        context = spfmacro.SequenceEvaluationContext(iter([("d", "z"), ("s", "x")]))
        self.assertFalse(context.is_sorted)
        self.assertEqual(context.provide_data(MacroVariable.SENDER), "x")
        self.assertRaises(ValueError, spfmacro.SequenceEvaluationContext, [("q", "x")])

    def testChainedContext(self):
        """Chained contexts fall back to later contexts"""
        context = spfmacro.ChainedEvaluationContext(
            {MacroVariable.SENDER: "first"},
            [(MacroVariable.SENDER, "second"), (MacroVariable.DOMAIN, "d.example")],
        )
        self.assertEqual(expand("%{s} %{d}", context), "first d.example")
        self.assertRaises(spfmacro.MacroUnknownVariable, expand, "%{h}", context)

    def testInvalidContext(self):
        """Objects that cannot provide values are rejected"""
        self.assertRaises(TypeError, spfmacro.as_evaluation_context, 42)
        self.assertRaises(TypeError, spfmacro.as_evaluation_context, "s")

    def testCheckMacroSyntax(self):
        """Macro strings can be checked without a context"""
        self.assertIsNone(
            spfmacro.check_macro_syntax("%{ir}.%{v}._spf.%{d2}%%%_%-%{L3r+}")
        )
        self.assertRaises(spfmacro.MacroSyntaxError, spfmacro.check_macro_syntax, "%{d")
        self.assertRaises(
            spfmacro.MacroUnknownVariable, spfmacro.check_macro_syntax, "%{x}"
        )

    def testBuildEvaluationContextIPv4(self):
        """Contexts built from an IPv4 transaction fill in RFC 7208 values"""
        context = spfmacro.build_evaluation_context(
            "strong-bad@email.example.com",
            "192.0.2.3",
            "email.example.com",
            helo_domain="mx.example.org",
            timestamp=1700000000,
        )
        self.assertEqual(
            expand("%{s} %{l} %{o} %{d} %{h}", context),
            "strong-bad@email.example.com strong-bad email.example.com "
            "email.example.com mx.example.org",
        )
        self.assertEqual(
            expand("%{ir}.%{v}._spf.%{d}", context),
            "3.2.0.192.in-addr._spf.email.example.com",
        )
        self.assertEqual(expand("%{l-}", context), "strong.bad")
        self.assertEqual(
            expand("%{c} %{p} %{r} %{t}", context),
            "192.0.2.3 unknown unknown 1700000000",
        )

    def testBuildEvaluationContextIPv6(self):
        """Contexts built from an IPv6 transaction use nibble format"""
        context = spfmacro.build_evaluation_context(
            "user@example.com", "2001:db8::cb01", "example.com"
        )
        self.assertEqual(
            expand("%{i}", context),
            "2.0.0.1.0.d.b.8." + "0." * 20 + "c.b.0.1",
        )
        self.assertEqual(expand("%{v}", context), "ip6")
        self.assertEqual(expand("%{c}", context), "2001:db8::cb01")
        self.assertRaises(spfmacro.MacroUnknownVariable, expand, "%{h}", context)

    def testBuildEvaluationContextDefaults(self):
        """A sender without a local part uses postmaster"""
        context = spfmacro.build_evaluation_context(
            "Example.COM", "::ffff:192.0.2.1", "example.com"
        )
        self.assertEqual(expand("%{s}", context), "postmaster@example.com")
        self.assertEqual(expand("%{v} %{i}", context), "in-addr 192.0.2.1")
        self.assertRaises(
            ValueError,
            spfmacro.build_evaluation_context,
            "user@example.com",
            "not an ip",
            "example.com",
        )

    def testNormalizeDomain(self):
        """Domains are lowercased and stripped of zero-width characters"""
        self.assertEqual(
            spfmacro.utils.normalize_domain("Exa\u200bmple.COM"), "example.com"
        )


if __name__ == "__main__":
    unittest.main(verbosity=2)
