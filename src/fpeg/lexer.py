"""
Lexical rules for fragments of free-form Fortran.

Fortran code found in the wild is full of noise between the tokens that
matter: blanks, trailing comments and line continuations, where a trailing
`&` (optionally followed by a comment) ends a physical line and a leading
`&` on the next line resumes it.  Comments may even appear on their own
lines inside the continuation.  All of this is handled here by a single
regular expression, the "skip" rule, which the grammar engine invokes
between every pair of adjacent tokens.

The module also provides the regular expressions for the terminal symbols
of the grammar (names, digits, strings) and small helpers translating
literal tokens into Python values.

Copyright 2019 Markus Wallerberger
Released under the GNU Lesser General Public License, Version 3 only.
See LICENSE.txt for permissions on usage, modification and distribution
"""
import re


def get_skip_regex():
    """Return regular expression for insignificant space between tokens"""
    endline = r"""(?:\n|\r\n?)"""
    comment = r"""(?:![^\r\n]*)"""
    blank = r"""[\t ]"""
    continuation = r"""& {blank}* (?: {comment}? {endline} {blank}* )+ &""" \
                   .format(blank=blank, comment=comment, endline=endline)
    skip = r"""(?x) (?: {blank}+ | {continuation} | {comment} )*""".format(
                blank=blank, continuation=continuation, comment=comment)
    return re.compile(skip)


def get_name_regex():
    """Return regular expression for Fortran identifiers"""
    return re.compile(r"""[A-Za-z][A-Za-z0-9_]*""")


def get_digits_regex():
    """Return regular expression for a run of decimal digits"""
    return re.compile(r"""[0-9]+""")


def get_string_regex():
    """Return regular expression for single- or double-quoted strings.

    There are no escape sequences in Fortran, however a quote character can
    be part of the string by doubling it.
    """
    dq_string = r""""(?:""|[^"\r\n])*\""""
    sq_string = r"""'(?:''|[^'\r\n])*'"""
    return re.compile(r"""{dq}|{sq}""".format(dq=dq_string, sq=sq_string))


def get_exponent_regex():
    """Return regular expression for the exponent part of a real literal"""
    return re.compile(r"""[dDeE][-+]?[0-9]+""")


def get_eos_regex():
    """Return regular expression for the end of a statement"""
    return re.compile(r"""; | \n | \r\n? | $""", re.X)


def get_statement_rest_regex():
    """Return regular expression for the remainder of a statement.

    Matches everything up to and including the next statement separator
    or line end which is neither part of a string or comment nor escaped
    by a continuation marker.
    """
    endline = r"""(?:\n|\r\n?)"""
    atom = r"""(?: "(?:""|[^"\r\n])*"
                 | '(?:''|[^'\r\n])*'
                 | & [\t ]* (?:![^\r\n]*)? {endline}
                 | ![^\r\n]*
                 | [^\r\n;]
                 )""".format(endline=endline)
    return re.compile(r"""(?x) {atom}* (?: ; | {endline} )?""".format(
                          atom=atom, endline=endline))


SKIP_REGEX = get_skip_regex()

_skip_match = SKIP_REGEX.match


def skip(text, pos):
    """Skip lexical noise in `text` starting at `pos`, return new position.

    Never fails: if there is nothing to skip, `pos` is returned unchanged.
    """
    return _skip_match(text, pos).end()


_separator_match = re.compile(r"""[\r\n;]""").match


def skip_lines(text, pos):
    """Skip lexical noise, statement separators and line ends"""
    while True:
        pos = skip(text, pos)
        if not _separator_match(text, pos):
            return pos
        pos += 1


def parse_string(tok):
    """Translates a Fortran string literal to a Python string"""
    quote = tok[0]
    return tok[1:-1].replace(quote + quote, quote)


CHANGE_D_TO_E = str.maketrans('dD', 'eE')


def parse_float(tok):
    """Translates a Fortran real literal to a Python float"""
    try:
        return float(tok), False
    except ValueError:
        # DOUBLE PRECISION have D instead of E for precision
        tok = tok.translate(CHANGE_D_TO_E)
        return float(tok), True


def parse_bool(tok):
    """Translates a Fortran boolean literal to a Python boolean"""
    return {'.true.': True, '.false.': False}[tok.lower()]
