"""
Tests for the Fortran fragment grammar

Copyright 2019 Markus Wallerberger.
Released under the GNU Lesser General Public License, Version 3 only.
See LICENSE.txt for permissions on usage, modification and distribution
"""
import sys

import pytest

from fpeg import lexer
from fpeg import parser
from fpeg import peg


CALL_TEXT = ('call sub( array(1:2), sin(1.234_prec), & ! note\n'
             '    & (/ 1.23, 3.45, 6.78 /), "Hello World!" )')

SOURCE = """\
subroutine driver(n)
  integer :: n
  call init()   ! set up
  x = f(1)
  call work(n, &
            & 2.0_dp); call finish
  ! call commented_out(1)
  print *, "call not_a_call()"
end subroutine
"""


def value_of(argument):
    """Node below the `value_returning_code` of an argument"""
    assert argument.rule == 'argument'
    assert argument[-1].rule == 'value_returning_code'
    return argument[-1][0]


def test_continued_call():
    tree = parser.parse(CALL_TEXT, 'subroutine_call')
    assert tree.rule == 'subroutine_call'
    assert tree.span == (0, len(CALL_TEXT))
    assert tree.child('name').text == 'sub'

    args = tree.child('arguments').children
    assert [arg.text for arg in args] == [
        'array(1:2)', 'sin(1.234_prec)', '(/ 1.23, 3.45, 6.78 /)',
        '"Hello World!"']

    array = value_of(args[0])
    assert array.rule == 'accessed_variable'
    indexed = array.child('indexed_array')
    assert indexed.child('name').text == 'array'
    region = indexed.find('array_index_region')
    assert region.text == '1:2'
    assert region.child('lower_bound').text == '1'
    assert region.child('upper_bound').text == '2'

    sin = value_of(args[1])
    assert sin.rule == 'function_call'
    assert sin.child('name').text == 'sin'
    assert len(sin.child('arguments')) == 1
    number = value_of(sin.child('arguments')[0])
    assert number.rule == 'number'
    assert number.child('float').child('precision_spec').as_tuple() == \
        ('precision_spec', ('name', 'prec'))

    inplace = value_of(args[2])
    assert inplace.rule == 'in_place_array'
    numbers = inplace.child('numbers')
    assert [num.text for num in numbers] == ['1.23', '3.45', '6.78']

    string = value_of(args[3])
    assert string.as_tuple() == ('string', '"Hello World!"')


def test_continued_call_rule_name_with_dash():
    tree = parser.parse(CALL_TEXT, 'subroutine-call')
    assert tree.rule == 'subroutine_call'


def test_call_variants():
    assert parser.parse("call foo").as_tuple() == \
        ('subroutine_call', ('name', 'foo'))
    assert parser.parse("CALL foo( )").as_tuple() == \
        ('subroutine_call', ('name', 'foo'))
    with pytest.raises(peg.ParserError):
        parser.parse("callfoo(1)")


def test_number():
    assert parser.parse("-3", 'number').as_tuple() == \
        ('number', ('sign', '-'), ('integer', ('digits', '3')))
    assert parser.parse("1.5_dp", 'number').as_tuple() == \
        ('number', ('float', ('digits', '1'), ('digits', '5'),
                             ('precision_spec', ('name', 'dp'))))
    assert parser.parse("2.0d-3_8", 'number').as_tuple() == \
        ('number', ('float', ('digits', '2'), ('digits', '0'),
                             ('exponent', 'd-3'),
                             ('precision_spec', ('digits', '8'))))
    # no blanks within a number
    assert parser.parse("1 .5", 'number').text == "1"


def test_float_before_integer():
    tree = parser.parse("1.25", 'number')
    assert tree.child('float').text == "1.25"
    assert tree.child('integer') is None


def test_integer_before_dot_operator():
    tree = parser.parse("1.eq.2", 'relational_statement')
    assert [op.text for op in tree.find_all('relational_operator')] == \
        ['.eq.']


def test_string():
    assert parser.parse("'it''s'", 'string').text == "'it''s'"
    assert parser.parse('"a ! b"', 'string').text == '"a ! b"'


def test_boolean_with_prefix():
    tree = parser.parse(".not. .true.", 'boolean')
    assert tree.as_tuple() == \
        ('boolean', ('logical_prefix_operator', ('not', '.not.')),
                    ('true', '.true.'))
    assert parser.parse(".FALSE.", 'boolean').as_tuple() == \
        ('boolean', ('false', '.FALSE.'))


def test_power_is_not_two_multiplications():
    tree = parser.parse("a ** 2", 'arithmetic_statement')
    assert tree.as_tuple() == \
        ('arithmetic_statement',
            ('value_returning_code', ('accessed_variable', ('name', 'a'))),
            ('arithmetic_operator', ('power', '**')),
            ('value_returning_code', ('number', ('integer', ('digits', '2')))))
    assert tree.find('multiplication') is None


def test_arithmetic_chain_is_flat():
    tree = parser.parse("a + b * c - 1", 'arithmetic_statement')
    assert [child.rule for child in tree] == [
        'value_returning_code', 'arithmetic_operator',
        'value_returning_code', 'arithmetic_operator',
        'value_returning_code', 'arithmetic_operator',
        'value_returning_code']
    assert [op[0].rule for op in tree.find_all('arithmetic_operator')] == \
        ['addition', 'multiplication', 'subtraction']


def test_relational_operators_distinct():
    spellings = {
        'equal': ('==', '.eq.'), 'not_equal': ('/=', '.NE.'),
        'less': ('<', '.lt.'), 'greater': ('>', '.gt.'),
        'less_equal': ('<=', '.le.'), 'greater_equal': ('>=', '.Ge.'),
        }
    for kind, ops in spellings.items():
        for op in ops:
            tree = parser.parse("a %s b" % op, 'relational_statement')
            operator = tree.child('relational_operator')
            assert operator[0].rule == kind
            assert operator.text == op


def test_division_vs_not_equal():
    tree = parser.parse("a / b /= c", 'relational_statement')
    assert tree.child('arithmetic_statement').text == "a / b"
    assert tree.find('not_equal').text == "/="


def test_logical_statement():
    tree = parser.parse(".not. a .and. b == 1 .OR. c", 'logical_statement')
    assert [child.rule for child in tree] == [
        'logical_prefix_operator', 'relational_statement',
        'logical_operator', 'relational_statement',
        'logical_operator', 'relational_statement']
    assert tree[3].find('equal').text == "=="
    assert tree[4][0].rule == 'or'


def test_slice_default():
    tree = parser.parse(":", 'array_index_region')
    assert tree.span == (0, 1)
    assert tree.child('lower_bound') is None
    assert tree.child('upper_bound') is None


def test_slice_bounds():
    tree = parser.parse("1:2", 'array_index_region')
    assert tree.as_tuple() == \
        ('array_index_region',
            ('lower_bound', ('integer', ('digits', '1'))),
            ('upper_bound', ('integer', ('digits', '2'))))
    tree = parser.parse("a(:n, ::2, i+1:)", 'indexed_array')
    regions = list(tree.find_all('array_index_region'))
    assert [region.text for region in regions] == [":n", "::2", "i+1:"]
    assert regions[0].child('upper_bound').as_tuple() == \
        ('upper_bound', ('name', 'n'))
    assert regions[1].child('stride').text == "2"
    assert regions[2].child('lower_bound')[0].rule == 'arithmetic_statement'


def test_array_index_kinds():
    tree = parser.parse("x(1, i, n-1)", 'indexed_array')
    indices = tree.children[1:]
    assert [index[0].rule for index in indices] == \
        ['integer', 'name', 'arithmetic_statement']


def test_function_call_backtracks_to_indexed_array():
    tree = parser.parse("a(1)", 'value_returning_code')
    assert tree[0].rule == 'function_call'
    tree = parser.parse("a(1:2)", 'value_returning_code')
    assert tree[0].rule == 'accessed_variable'
    assert tree[0][0].rule == 'indexed_array'


def test_empty_function_call():
    tree = parser.parse("f()", 'function_call')
    assert tree.as_tuple() == ('function_call', ('name', 'f'))


def test_nested_calls():
    tree = parser.parse("f(g(h(1)))", 'value_returning_code')
    calls = list(tree.find_all('function_call'))
    assert [call.child('name').text for call in calls] == ['f', 'g', 'h']
    for outer, inner in zip(calls, calls[1:]):
        assert outer.start < inner.start and inner.end < outer.end


def test_deeply_nested_calls():
    limit = sys.getrecursionlimit()
    for depth in (25, 100, 200):
        text = "f(" * depth + "1" + ")" * depth
        tree = parser.parse(text, 'value_returning_code')
        assert tree.span == (0, len(text))
        assert len(list(tree.find_all('function_call'))) == depth
    assert sys.getrecursionlimit() == limit


def test_deeply_nested_parentheses():
    depth = 150
    text = "x = " + "(" * depth + "a+1" + ")" * depth
    tree = parser.parse(text, 'assignment', peg.Config(consume_all=True))
    assert len(list(tree.find_all('parenthesized'))) == depth


def test_signed_parentheses():
    tree = parser.parse("call f(-(x))", config=peg.Config(consume_all=True))
    inner = value_of(tree.child('arguments')[0])
    assert inner.rule == 'parenthesized'
    assert inner.child('sign').text == '-'

    tree = parser.parse("y = -(b + d)/2", 'assignment',
                        peg.Config(consume_all=True))
    chain = tree.find('arithmetic_statement')
    assert chain.text == "-(b + d)/2"
    assert chain[0][0].rule == 'parenthesized'
    assert chain.find('division').text == '/'
    assert [stmt.text for stmt in parser.search("y = -(b + d)/2\n",
                                                'assignment')] == \
        ["y = -(b + d)/2"]


def test_leading_comment_lines():
    text = "! leading comment\n\n  call foo(1)"
    tree = parser.parse(text)
    assert tree.child('name').text == 'foo'
    assert tree.start == text.index("call")

    with pytest.raises(peg.ParserError) as excinfo:
        parser.parse("! header\n\nfoo(1, ", 'function_call')
    assert excinfo.value.offset == 17
    assert excinfo.value.lineno == 2


def test_in_place_arrays():
    kinds = {
        "(/ .true., .not. .false. /)": 'booleans',
        "(/ 'a', \"b\" /)": 'strings',
        "(/ 1, -2.5 /)": 'numbers',
        "(/ 1, x /)": 'values',
        "[ a + 1, f(2) ]": 'values',
        }
    for text, kind in kinds.items():
        tree = parser.parse(text, 'in_place_array')
        assert tree.span == (0, len(text))
        assert tree[0].rule == kind
    assert parser.parse("(/ /)", 'in_place_array').as_tuple() == \
        ('in_place_array', '(/ /)')


def test_accessed_variable():
    tree = parser.parse("-a%b(2)%c", 'accessed_variable')
    assert [child.rule for child in tree] == \
        ['sign', 'name', 'indexed_array', 'name']


def test_arguments():
    tree = parser.parse("call f(x, dim=2, a == b, 'a' // c, (y))")
    args = tree.child('arguments').children
    assert args[1].child('keyword').text == 'dim'
    assert args[2].child('keyword') is None
    assert args[2][0].rule == 'logical_statement'
    assert args[3].find('concatenation').text == '//'
    assert value_of(args[4]).rule == 'parenthesized'


def test_assignment():
    tree = parser.parse("y(i) = a + b*c  ! comment", 'assignment',
                        peg.Config(consume_all=True))
    assert tree.text == "y(i) = a + b*c"
    assert tree[0].rule == 'accessed_variable'
    assert tree[1].rule == 'logical_statement'
    assert tree.find('arithmetic_statement').text == "a + b*c"

    tree = parser.parse("x = 1", 'assignment')
    assert tree[1].as_tuple() == \
        ('value_returning_code', ('number', ('integer', ('digits', '1'))))

    with pytest.raises(peg.ParserError):
        parser.parse("x == 1", 'assignment')


def test_mismatch_offset():
    with pytest.raises(peg.ParserError) as excinfo:
        parser.parse("foo(1, ", 'function_call')
    assert excinfo.value.offset == 7

    with pytest.raises(peg.ParserError) as excinfo:
        parser.parse("x = 1", 'subroutine_call')
    assert excinfo.value.offset == 0
    assert excinfo.value.expected == ("'call'",)


def test_incomplete_call():
    text = "call foo(1, )"
    assert parser.parse(text).text == "call foo"
    with pytest.raises(peg.IncompleteParseError) as excinfo:
        parser.parse(text, config=peg.Config(consume_all=True))
    assert excinfo.value.offset == 8


def test_consume_all_allows_trailing_noise():
    text = "  call foo(1)  ! done\n\n"
    tree = parser.parse(text, config=peg.Config(consume_all=True))
    assert tree.text == "call foo(1)"


def test_memoize_agrees():
    memo = parser.parse(CALL_TEXT, config=peg.Config(memoize=True))
    plain = parser.parse(CALL_TEXT, config=peg.Config(memoize=False))
    assert memo.as_tuple() == plain.as_tuple()


def test_nesting_limit():
    with pytest.raises(peg.NestingError):
        parser.parse("f(g(h(1)))", 'value_returning_code',
                     peg.Config(max_depth=8))


def test_every_rule_is_start_rule():
    samples = {
        'name': "abc", 'number': "1", 'string': "'x'",
        'argument': "1", 'arguments': "1, 2",
        'value_returning_code': "x", 'expression': "x + 1",
        }
    for rule, text in samples.items():
        assert rule in parser.RULE_NAMES
        assert parser.parse(text, rule).text == text


def test_search():
    found = list(parser.search(SOURCE))
    assert [call.child('name').text for call in found] == \
        ['init', 'work', 'finish']
    assert found[1].text == "call work(n, &\n            & 2.0_dp)"
    assert [stmt.text for stmt in parser.search(SOURCE, 'assignment')] == \
        ['x = f(1)']


def test_operator_table_collisions():
    grammar = peg.Grammar(skip=lexer.skip)
    with pytest.raises(ValueError):
        parser.operator_table(grammar, 'relational', [
            ('less', ['<', '.lt.']),
            ('greater', ['<', '.lt.']),
            ])

    grammar = peg.Grammar(skip=lexer.skip)
    with pytest.raises(ValueError):
        parser.operator_table(grammar, 'arithmetic', [
            ('multiplication', ['*']),
            ('power', ['**']),
            ])

    grammar = peg.Grammar(skip=lexer.skip)
    with pytest.raises(ValueError):
        parser.operator_table(grammar, 'logical', [
            ('and', ['.and.']),
            ('also_and', ['.AND.']),
            ])
