"""
Typed syntax tree for parsed Fortran fragments.

The parser produces a generic tree of `peg.Match` objects, where the shape
of each node is only implied by the grammar rule that produced it.  This
module converts such a tree into instances of explicit node classes, one
for each kind of construct, which carry their parts as named attributes:

    >>> call = transform(parser.parse("call foo(1, x)"))
    >>> call.name, [arg.value for arg in call.arguments]
    ('foo', [Number('1', None), AccessedVariable(None, (Name('x'),))])

Conversion is dispatched by rule name through a registry, which is filled
by decorating node classes with `match_handler()`.  Literal values are
decoded on the way, e.g., `Number.value` is a Python `int` or `float`.

Copyright 2019 Markus Wallerberger
Released under the GNU Lesser General Public License, Version 3 only.
See LICENSE.txt for permissions on usage, modification and distribution
"""
import warnings

from . import lexer


_HANDLER_REGISTRY = {}


def match_handler(*rules):
    """Decorate class or function to handle matches of certain rules"""
    def match_handler_property(handler):
        from_match = getattr(handler, 'from_match', handler)
        for rule in rules:
            _HANDLER_REGISTRY[rule] = from_match
        return handler

    return match_handler_property


def transform(match):
    """Convert `match` and its descendants to the typed syntax tree"""
    try:
        handler = _HANDLER_REGISTRY[match.rule]
    except KeyError:
        return Ignored(match)
    return handler(match)


def _transform_children(match):
    return tuple(map(transform, match.children))


class Node(object):
    """Base class of nodes in the typed syntax tree.

    Derived classes list their attributes in `fields`, which determine
    equality and representation.  Nodes converted from the parse tree keep
    the originating match in `match`, which is not compared.
    """
    fields = ()

    match = None

    @classmethod
    def from_match(cls, match):
        raise NotImplementedError("from_match is not implemented")

    def _with_match(self, match):
        self.match = match
        return self

    @property
    def span(self):
        """Character range in the input, or `None` if constructed by hand"""
        return None if self.match is None else self.match.span

    @property
    def text(self):
        return None if self.match is None else self.match.text

    def _values(self):
        return tuple(getattr(self, field) for field in self.fields)

    def __eq__(self, other):
        if type(self) is not type(other):
            return NotImplemented
        return self._values() == other._values()

    def __hash__(self):
        return hash((type(self).__name__,) + self._values())

    def __repr__(self):
        return "%s(%s)" % (type(self).__name__,
                           ", ".join(map(repr, self._values())))


class Ignored(Node):
    """Match for which there is no handler"""
    fields = 'rule', 'source'

    def __init__(self, match):
        self.rule = match.rule
        self.source = match.text
        self.match = match
        warnings.warn("IGNORED NODE %s" % self.rule)


@match_handler('value_returning_code', 'expression', 'array_index',
               'lower_bound', 'upper_bound', 'stride', 'arithmetic_operator',
               'relational_operator', 'logical_operator',
               'logical_prefix_operator')
def transparent(match):
    """Rules which merely select one of their children"""
    if len(match) != 1:
        raise ValueError("expecting single child in %s" % match.rule)
    return transform(match[0])


@match_handler('arguments', 'booleans', 'strings', 'numbers', 'values')
def sequence(match):
    """Rules which are lists of items"""
    return _transform_children(match)


@match_handler('precision_spec')
def precision_spec(match):
    return match.text[1:]


@match_handler('sign')
def sign(match):
    return match.text


@match_handler('name')
class Name(Node):
    fields = 'name',

    def __init__(self, name):
        self.name = name

    @classmethod
    def from_match(cls, match):
        return cls(match.text)._with_match(match)


@match_handler('number', 'integer', 'float')
class Number(Node):
    """Integer or real literal, with optional sign and precision (kind)"""
    fields = 'literal', 'precision'

    def __init__(self, literal, precision=None):
        self.literal = literal
        self.precision = precision

    @classmethod
    def from_match(cls, match):
        spec = match.find('precision_spec')
        if spec is None:
            return cls(match.text)._with_match(match)
        literal = match.text[:spec.start - match.start]
        return cls(literal, precision_spec(spec))._with_match(match)

    @property
    def is_float(self):
        return '.' in self.literal

    @property
    def is_double(self):
        """Real literal with a `d` exponent"""
        return self.is_float and lexer.parse_float(self.literal)[1]

    @property
    def value(self):
        if self.is_float:
            return lexer.parse_float(self.literal)[0]
        return int(self.literal)


@match_handler('string')
class String(Node):
    """Character literal"""
    fields = 'value',

    def __init__(self, value):
        self.value = value

    @classmethod
    def from_match(cls, match):
        return cls(lexer.parse_string(match.text))._with_match(match)


@match_handler('boolean')
class Boolean(Node):
    """Logical literal, optionally negated by `.not.`"""
    fields = 'literal', 'negated'

    def __init__(self, literal, negated=False):
        self.literal = literal
        self.negated = negated

    @classmethod
    def from_match(cls, match):
        negated = match.child('logical_prefix_operator') is not None
        return cls(lexer.parse_bool(match[-1].text), negated) \
                    ._with_match(match)

    @property
    def value(self):
        return self.literal != self.negated


@match_handler('in_place_array')
class InPlaceArray(Node):
    """Array constructor `(/ ... /)` or `[ ... ]`

    `kind` is the kind of list (`booleans`, `strings`, `numbers` or
    `values`), or `None` for an empty array.
    """
    fields = 'kind', 'items'

    def __init__(self, kind, items=()):
        self.kind = kind
        self.items = tuple(items)

    @classmethod
    def from_match(cls, match):
        if not match.children:
            return cls(None)._with_match(match)
        items, = match.children
        return cls(items.rule, sequence(items))._with_match(match)


@match_handler('array_index_region')
class ArrayRegion(Node):
    """Slice `lower:upper:stride`, where `None` means whole dimension"""
    fields = 'lower', 'upper', 'stride'

    def __init__(self, lower=None, upper=None, stride=None):
        self.lower = lower
        self.upper = upper
        self.stride = stride

    @classmethod
    def from_match(cls, match):
        def bound(rule):
            node = match.child(rule)
            return None if node is None else transform(node)

        return cls(bound('lower_bound'), bound('upper_bound'),
                   bound('stride'))._with_match(match)


@match_handler('indexed_array')
class IndexedArray(Node):
    fields = 'name', 'indices'

    def __init__(self, name, indices):
        self.name = name
        self.indices = tuple(indices)

    @classmethod
    def from_match(cls, match):
        name, *indices = match.children
        return cls(name.text, map(transform, indices))._with_match(match)


@match_handler('accessed_variable')
class AccessedVariable(Node):
    """Variable, array element or slice, optionally signed.

    `parts` has more than one element for derived type components, e.g.,
    `a%b(1)` has parts `Name('a')` and `IndexedArray('b', ...)`.
    """
    fields = 'sign', 'parts'

    def __init__(self, sign, parts):
        self.sign = sign
        self.parts = tuple(parts)

    @classmethod
    def from_match(cls, match):
        children = match.children
        sign_ = None
        if children[0].rule == 'sign':
            sign_ = children[0].text
            children = children[1:]
        return cls(sign_, map(transform, children))._with_match(match)

    @property
    def name(self):
        """Name of the variable (first part)"""
        return self.parts[0].name


@match_handler('function_call')
class FunctionCall(Node):
    fields = 'name', 'arguments'

    def __init__(self, name, arguments=()):
        self.name = name
        self.arguments = tuple(arguments)

    @classmethod
    def from_match(cls, match):
        arguments = match.child('arguments')
        arguments = () if arguments is None else sequence(arguments)
        return cls(match[0].text, arguments)._with_match(match)


@match_handler('argument')
class Argument(Node):
    """Actual argument, optionally with keyword (`name=value`)"""
    fields = 'value', 'keyword'

    def __init__(self, value, keyword=None):
        self.value = value
        self.keyword = keyword

    @classmethod
    def from_match(cls, match):
        keyword = match.child('keyword')
        if keyword is not None:
            keyword = keyword.text
        return cls(transform(match[-1]), keyword)._with_match(match)


@match_handler('parenthesized')
class Parenthesized(Node):
    """Expression in parentheses, optionally signed as in `-(a + b)`"""
    fields = 'inner', 'sign'

    def __init__(self, inner, sign=None):
        self.inner = inner
        self.sign = sign

    @classmethod
    def from_match(cls, match):
        sign_ = match.child('sign')
        if sign_ is not None:
            sign_ = sign_.text
        return cls(transform(match[-1]), sign_)._with_match(match)


@match_handler('power', 'addition', 'subtraction', 'multiplication',
               'concatenation', 'division', 'equal', 'not_equal', 'less',
               'greater', 'less_equal', 'greater_equal', 'and', 'or',
               'equivalent', 'non_equivalent', 'not')
class Operator(Node):
    """Operator, where `kind` is the name of the operation (e.g. `power`)"""
    fields = 'kind',

    def __init__(self, kind, spelling=None):
        self.kind = kind
        self.spelling = spelling

    @classmethod
    def from_match(cls, match):
        return cls(match.rule, match.text)._with_match(match)


class Chain(Node):
    """Flat sequence `operand (operator operand)*` without precedence.

    A chain without operators is not a node of its own: conversion returns
    the single operand instead.
    """
    fields = 'operands', 'operators'

    OPERATOR_RULE = None

    def __init__(self, operands, operators=()):
        self.operands = tuple(operands)
        self.operators = tuple(operators)
        if len(self.operands) != len(self.operators) + 1:
            raise ValueError("need one more operand than operators")

    @classmethod
    def from_match(cls, match):
        operands = []
        operators = []
        for child in match:
            if child.rule == cls.OPERATOR_RULE:
                operators.append(transform(child))
            else:
                operands.append(transform(child))
        if not operators:
            return operands[0]
        return cls(operands, operators)._with_match(match)

    def __iter__(self):
        """Iterate over operands and operators in order of appearance"""
        yield self.operands[0]
        for operator, operand in zip(self.operators, self.operands[1:]):
            yield operator
            yield operand


@match_handler('arithmetic_statement')
class ArithmeticStatement(Chain):
    OPERATOR_RULE = 'arithmetic_operator'


@match_handler('relational_statement')
class RelationalStatement(Chain):
    OPERATOR_RULE = 'relational_operator'


@match_handler('logical_statement')
class LogicalStatement(Chain):
    """Chain of logical operations.

    `negated[i]` is true if operand `i` is prefixed with `.not.`.
    """
    fields = 'operands', 'operators', 'negated'

    OPERATOR_RULE = 'logical_operator'

    def __init__(self, operands, operators=(), negated=None):
        Chain.__init__(self, operands, operators)
        if negated is None:
            negated = (False,) * len(self.operands)
        self.negated = tuple(negated)

    @classmethod
    def from_match(cls, match):
        operands = []
        operators = []
        negated = []
        is_negated = False
        for child in match:
            if child.rule == 'logical_prefix_operator':
                is_negated = True
            elif child.rule == cls.OPERATOR_RULE:
                operators.append(transform(child))
            else:
                operands.append(transform(child))
                negated.append(is_negated)
                is_negated = False
        if not operators and not negated[0]:
            return operands[0]
        return cls(operands, operators, negated)._with_match(match)


@match_handler('assignment')
class Assignment(Node):
    fields = 'target', 'value'

    def __init__(self, target, value):
        self.target = target
        self.value = value

    @classmethod
    def from_match(cls, match):
        target, value = match.children
        return cls(transform(target), transform(value))._with_match(match)


@match_handler('subroutine_call')
class SubroutineCall(Node):
    """`call name(arguments)`; `has_parens` is false for `call name`"""
    fields = 'name', 'arguments', 'has_parens'

    def __init__(self, name, arguments=(), has_parens=True):
        self.name = name
        self.arguments = tuple(arguments)
        self.has_parens = has_parens

    @classmethod
    def from_match(cls, match):
        arguments = match.child('arguments')
        arguments = () if arguments is None else sequence(arguments)
        has_parens = match.text.endswith(')')
        return cls(match[0].text, arguments, has_parens)._with_match(match)
