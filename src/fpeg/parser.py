"""
Grammar for fragments of free-form Fortran.

This is not a parser for the Fortran language as a whole.  Instead, it
recognizes a handful of statement kinds (subroutine calls, assignments) and
the expressions within them, such as function calls, array accesses and
arithmetic, relational or logical operations.  It is designed to pick these
out of real-world code with all its nonstandard formatting, comments and
line continuations, and decompose them into a tree of named matches (see
`peg.Match`) for further processing, e.g.:

    >>> tree = parse("call sub(a(1:2), sin(x))")
    >>> tree.child('name').text
    'sub'
    >>> [arg.text for arg in tree.find_all('argument')]
    ['a(1:2)', 'sin(x)', 'x']

Any rule of the grammar (see `RULE_NAMES`) can be used as start rule.

The grammar is a parsing expression grammar with ordered choice: in
`value_returning_code`, for example, `a(1)` is tried as a function call
first, which means that `a(1:2)` is only recognized as an indexed array
after the function call alternative has failed on the colon.

Arithmetic, relational and logical statements are parsed as flat chains
of operands and operators without any precedence or associativity among
operators of the same class: `a + b * c` gives the sequence of `a`, `+`,
`b`, `*`, `c`.  Operator classes are layered, however: the operands of a
logical statement are relational statements, whose operands in turn are
arithmetic statements.

Copyright 2019 Markus Wallerberger
Released under the GNU Lesser General Public License, Version 3 only.
See LICENSE.txt for permissions on usage, modification and distribution
"""
from . import lexer
from . import peg
from .peg import (ATOMIC, TOKEN, SILENT, literal, keyword, pattern,
                  seq, choice, optional, repeat, followed_by, comma_sequence)


GRAMMAR = peg.Grammar(skip=lexer.skip, trailer=lexer.skip_lines)

_rule = GRAMMAR.rule
_ref = GRAMMAR.ref


def operator_table(grammar, name, entries):
    """Define a tagged choice of operators.

    `entries` is a sequence of pairs `(tag, spellings)`.  For each pair, a
    rule `tag` matching any of the `spellings` is added to `grammar`, and
    the table rule `name` matches any of those in turn.  Dotted spellings
    such as `.eq.` are case-insensitive.  Alternatives are tried in order, so a
    spelling must not be preceded by one of its prefixes, i.e., `**` must
    come before `*`.  Also, no spelling may be used for two different tags.
    """
    seen = {}
    alternatives = []
    for tag, spellings in entries:
        matchers = []
        for spelling in spellings:
            is_dotted = spelling.startswith('.')
            key = spelling.lower() if is_dotted else spelling
            if key in seen:
                raise ValueError("operator %r used for both %s and %s"
                                 % (spelling, seen[key], tag))
            for earlier in seen:
                if key.startswith(earlier):
                    raise ValueError("operator %r for %s is shadowed by %r"
                                     % (spelling, tag, earlier))
            seen[key] = tag
            matchers.append(literal(spelling, ignore_case=is_dotted))

        grammar.rule(tag, choice(*matchers), TOKEN)
        alternatives.append(grammar.ref(tag))

    return grammar.rule(name, choice(*alternatives))


# ------------------------------- Literals ----------------------------------

_rule('name', pattern(lexer.get_name_regex(), 'name'), TOKEN)

_rule('digits', pattern(lexer.get_digits_regex(), 'digits'), TOKEN)

_rule('precision_spec',
      seq('_', choice(_ref('name'), _ref('digits'))),
      ATOMIC)

_rule('exponent', pattern(lexer.get_exponent_regex(), 'exponent'), TOKEN)

_rule('integer',
      seq(_ref('digits'), optional(_ref('precision_spec'))),
      ATOMIC)

_rule('float',
      seq(_ref('digits'), '.', _ref('digits'), optional(_ref('exponent')),
          optional(_ref('precision_spec'))),
      ATOMIC)

_rule('sign', choice('+', '-'), TOKEN)

# float before integer, otherwise `1.5` stops after `1`
_rule('number',
      seq(optional(_ref('sign')), choice(_ref('float'), _ref('integer'))),
      ATOMIC)

_rule('string', pattern(lexer.get_string_regex(), 'string'), TOKEN)

_rule('true', literal('.true.', ignore_case=True), TOKEN)

_rule('false', literal('.false.', ignore_case=True), TOKEN)

_rule('boolean',
      seq(optional(_ref('logical_prefix_operator')),
          choice(_ref('true'), _ref('false'))))

# ------------------------------- Operators ---------------------------------

operator_table(GRAMMAR, 'arithmetic_operator', [
    ('power',           ['**']),
    ('addition',        ['+']),
    ('subtraction',     ['-']),
    ('multiplication',  ['*']),
    ('concatenation',   ['//']),
    ('division',        ['/']),
    ])

operator_table(GRAMMAR, 'relational_operator', [
    ('equal',           ['==', '.eq.']),
    ('not_equal',       ['/=', '.ne.']),
    ('less_equal',      ['<=', '.le.']),
    ('greater_equal',   ['>=', '.ge.']),
    ('less',            ['<', '.lt.']),
    ('greater',         ['>', '.gt.']),
    ])

operator_table(GRAMMAR, 'logical_operator', [
    ('and',             ['.and.']),
    ('or',              ['.or.']),
    ('equivalent',      ['.eqv.']),
    ('non_equivalent',  ['.neqv.']),
    ])

operator_table(GRAMMAR, 'logical_prefix_operator', [
    ('not',             ['.not.']),
    ])

# ------------------------------ Expressions --------------------------------

def _in_place_array(open_delim, close_delim):
    # Each list kind carries its own delimiters, so that a list of numbers
    # followed by something else falls through to the next kind.
    kinds = 'booleans', 'strings', 'numbers', 'values'
    return choice(*[seq(open_delim, _ref(kind), close_delim)
                    for kind in kinds] + [seq(open_delim, close_delim)])

_rule('in_place_array',
      choice(_in_place_array('(/', '/)'), _in_place_array('[', ']')))

_rule('booleans', comma_sequence(_ref('boolean')))

_rule('strings', comma_sequence(_ref('string')))

_rule('numbers', comma_sequence(_ref('number')))

_rule('values', comma_sequence(_ref('expression')))

_INDEX_END = followed_by(
        choice(':', ',', ')', pattern(r"\Z", 'end of input')))

def _index_term():
    # Simple terms must be complete, otherwise `n-1` would stop after `n`
    return choice(seq(_ref('integer'), _INDEX_END),
                  seq(_ref('name'), _INDEX_END),
                  _ref('arithmetic_statement'))

_rule('lower_bound', _index_term())

_rule('upper_bound', _index_term())

_rule('stride', _index_term())

_rule('array_index_region',
      seq(optional(_ref('lower_bound')), ':', optional(_ref('upper_bound')),
          optional(seq(':', _ref('stride')))))

_rule('array_index',
      choice(_ref('array_index_region'),
             seq(_ref('integer'), _INDEX_END),
             seq(_ref('name'), _INDEX_END),
             _ref('arithmetic_statement')))

_rule('indexed_array',
      seq(_ref('name'), '(', comma_sequence(_ref('array_index')), ')'))

_VARIABLE_PART = choice(_ref('indexed_array'), _ref('name'))

_rule('accessed_variable',
      seq(optional(_ref('sign')), _VARIABLE_PART,
          repeat(seq('%', _VARIABLE_PART))))

_rule('function_call',
      seq(_ref('name'), '(', optional(_ref('arguments')), ')'))

_rule('parenthesized',
      seq(optional(_ref('sign')), '(', _ref('expression'), ')'))

_rule('value_returning_code',
      choice(_ref('function_call'),
             _ref('in_place_array'),
             _ref('boolean'),
             _ref('number'),
             _ref('string'),
             _ref('accessed_variable'),
             _ref('parenthesized')))

# ------------------------------- Statements --------------------------------

_rule('arithmetic_statement',
      seq(_ref('value_returning_code'),
          repeat(seq(_ref('arithmetic_operator'),
                     _ref('value_returning_code')))))

_rule('relational_statement',
      seq(_ref('arithmetic_statement'),
          repeat(seq(_ref('relational_operator'),
                     _ref('arithmetic_statement')))))

_rule('logical_statement',
      seq(optional(_ref('logical_prefix_operator')),
          _ref('relational_statement'),
          repeat(seq(_ref('logical_operator'),
                     optional(_ref('logical_prefix_operator')),
                     _ref('relational_statement')))))

_EXPRESSION_END = followed_by(
        choice(',', ')', '/)', ']', pattern(lexer.get_eos_regex(),
                                            'end of statement')))

# A lone value stays a value; only operations become statements.
_rule('expression',
      choice(seq(_ref('value_returning_code'), _EXPRESSION_END),
             _ref('logical_statement')),
      SILENT)

_ASSIGN = pattern(r"=(?!=)", "'='")

_rule('keyword', pattern(lexer.get_name_regex(), 'keyword'), TOKEN)

_rule('argument',
      seq(optional(seq(_ref('keyword'), _ASSIGN)), _ref('expression')))

_rule('arguments', comma_sequence(_ref('argument')))

_rule('assignment',
      seq(_ref('accessed_variable'), _ASSIGN, _ref('expression')))

_rule('subroutine_call',
      seq(keyword('call'), _ref('name'),
          optional(seq('(', optional(_ref('arguments')), ')'))))

GRAMMAR.finalize()

RULE_NAMES = tuple(sorted(GRAMMAR.rules))


def rule_name(rule):
    """Normalize rule name, accepting dashes in place of underscores"""
    return rule.replace('-', '_')


def parse(text, rule='subroutine_call', config=None, fname=None):
    """Parse `text` starting with `rule`, returning the root `peg.Match`.

    The root match spans the part of `text` consumed by the rule, which
    starts after any leading blanks or comments.  Unless `config` requires
    the whole input to be consumed, anything after the match is ignored.
    Raises `peg.ParserError` if the rule does not match.
    """
    return GRAMMAR.parse(text, rule_name(rule), config, fname)


def match(text, rule='subroutine_call', pos=0, config=None):
    """Match `rule` at position `pos` of `text`, return `None` on failure"""
    return GRAMMAR.match(text, rule_name(rule), pos, config)


_statement_rest = lexer.get_statement_rest_regex().match


def search(text, rule='subroutine_call', config=None):
    """Find statements matching `rule` in a larger chunk of code.

    Tries `rule` at the beginning of every statement, i.e., at the start
    of each logical line and after each `;`, and yields the matches.
    Continued lines are treated as a single logical line.
    """
    rule = rule_name(rule)
    end = len(text)
    pos = 0
    while pos < end:
        begin = lexer.skip(text, pos)
        found = GRAMMAR.match(text, rule, begin, config)
        if found is not None:
            yield found
            begin = found.end
        pos = _statement_rest(text, begin).end()
        if pos == begin:
            # lone continuation marker or similar garbage
            pos += 1
