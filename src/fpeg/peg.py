"""
Parsing expression grammar (PEG) engine producing trees of named matches.

A grammar is a set of named rules, each of which is a parsing expression
built from literals, regular expressions, sequences, ordered choices,
repetitions and lookaheads [1].  Rules may refer to each other (and to
themselves) by name, which allows mutual recursion.  Parsing proceeds by
recursive descent: alternatives of an ordered choice are tried in turn and
the first one that matches wins, otherwise the parser backtracks to where
the choice started and tries the next one.

Backtracking is not signalled by exceptions.  Every expression is a pure
function of the parse state and the current position, returning either
`None` (no match) or a pair `(end, nodes)`, where `end` is the
position after the match and `nodes` is a tuple of `Match` objects produced
by named rules.  Since results are immutable, a failing alternative cannot
corrupt anything built by its siblings.

Rules come in four kinds:

 1. `RULE`: between the elements of sequences and repetitions, insignificant
    "lexical noise" is skipped using the grammar's skip function.  Matching
    the rule produces a `Match` node.

 2. `ATOMIC`: no noise is skipped within the rule or any rule called from
    it.  Sub-rules still produce nodes.

 3. `TOKEN`: like `ATOMIC`, but sub-rules do not produce nodes, i.e., the
    `Match` node produced is always a leaf.

 4. `SILENT`: the rule does not produce a node of its own; nodes produced
    by its sub-rules are spliced into the parent.

Ordered choice with backtracking takes exponential time in the worst case.
By default, rule results are therefore memoized per parse ("packrat"
parsing [2]), which guarantees linear time at the cost of memory.

[1]: https://doi.org/10.1145/982962.964011
[2]: https://doi.org/10.1145/583852.581483

Copyright 2019 Markus Wallerberger
Released under the GNU Lesser General Public License, Version 3 only.
See LICENSE.txt for permissions on usage, modification and distribution
"""
import contextlib
import re
import sys
import threading

from . import common


RULE = 'rule'
ATOMIC = 'atomic'
TOKEN = 'token'
SILENT = 'silent'

RULE_KINDS = (RULE, ATOMIC, TOKEN, SILENT)

# Upper bound on interpreter stack frames used per character of input
FRAMES_PER_CHAR = 20

# Beyond this, the C stack of older interpreters may overflow
MAX_RECURSION_LIMIT = 30000

_LIMIT_LOCK = threading.Lock()
_LIMIT_REQUESTS = []
_base_limit = None


@contextlib.contextmanager
def recursion_limit(limit):
    """Raise the interpreter recursion limit to at least `limit` for a while.

    The limit is shared by all threads, so concurrent requests are tracked
    and the original limit is only restored once the last one is done.
    """
    global _base_limit
    limit = min(limit, MAX_RECURSION_LIMIT)
    with _LIMIT_LOCK:
        if not _LIMIT_REQUESTS:
            _base_limit = sys.getrecursionlimit()
        _LIMIT_REQUESTS.append(limit)
        sys.setrecursionlimit(max([_base_limit] + _LIMIT_REQUESTS))
    try:
        yield
    finally:
        with _LIMIT_LOCK:
            _LIMIT_REQUESTS.remove(limit)
            sys.setrecursionlimit(max([_base_limit] + _LIMIT_REQUESTS))


class ParserError(common.ParsingError):
    """Start rule does not match the input.

    The error is located at the furthest position in the input that the
    parser was able to reach before all alternatives were exhausted, which
    usually is close to the actual error.  `expected` lists the terminals
    which were tried and failed at that position.
    """
    @property
    def error_type(self): return "parser error"

    def __init__(self, text, offset, msg, fname=None, expected=()):
        lineno, colno, line = common.locate(text, offset)
        common.ParsingError.__init__(self, fname, lineno, colno, None, line,
                                     msg)
        self.offset = offset
        self.expected = tuple(expected)


class IncompleteParseError(ParserError):
    """Start rule matches, but not all of the input was consumed"""
    @property
    def error_type(self): return "incomplete parse"

    def __init__(self, text, offset, msg, fname=None, match=None):
        ParserError.__init__(self, text, offset, msg, fname)
        self.match = match


class NestingError(ParserError):
    """Rules are nested too deeply"""
    @property
    def error_type(self): return "nesting error"


class Config:
    """Options for a single parse.

     - `memoize`: cache results of rules at each position (packrat parsing)
     - `max_depth`: maximum nesting depth of rules, or `None` for no limit
       other than the stack of the Python interpreter.  The interpreter's
       recursion limit is raised for the duration of a parse in proportion
       to the length of the input, up to `MAX_RECURSION_LIMIT` frames
     - `consume_all`: require that, apart from lexical noise and line ends,
       the start rule consumes the whole input
    """
    def __init__(self, memoize=True, max_depth=None, consume_all=False):
        if max_depth is not None and max_depth < 1:
            raise ValueError("max_depth must be positive")
        self.memoize = memoize
        self.max_depth = max_depth
        self.consume_all = consume_all


class Match:
    """Node in the parse tree: a part of the input matched by a named rule.

    A match consists of the name of the `rule` that produced it, its `span`,
    i.e., the half-open range `(start, end)` of character offsets into the
    input, and a tuple of `children`, which are the matches produced by
    sub-rules in left-to-right order.  Matches are immutable.
    """
    __slots__ = '_rule', '_source', '_start', '_end', '_children'

    def __init__(self, rule, source, start, end, children=()):
        self._rule = rule
        self._source = source
        self._start = start
        self._end = end
        self._children = tuple(children)

    @property
    def rule(self):
        """Name of the rule which produced this match"""
        return self._rule

    @property
    def start(self):
        return self._start

    @property
    def end(self):
        return self._end

    @property
    def span(self):
        """Half-open range of character offsets into the input"""
        return self._start, self._end

    @property
    def text(self):
        """Part of the input covered by the match"""
        return self._source[self._start:self._end]

    @property
    def children(self):
        return self._children

    def __iter__(self):
        return iter(self._children)

    def __len__(self):
        return len(self._children)

    def __getitem__(self, index):
        return self._children[index]

    def __repr__(self):
        return "Match(%r, %r, span=%r)" % (self._rule, self.text, self.span)

    def walk(self):
        """Iterate over the match and all its descendants in pre-order"""
        stack = [self]
        while stack:
            curr = stack.pop()
            yield curr
            stack.extend(reversed(curr._children))

    def find_all(self, rule):
        """Iterate over all descendants matched by `rule`, in pre-order"""
        for node in self.walk():
            if node is not self and node._rule == rule:
                yield node

    def find(self, rule):
        """Return first descendant matched by `rule` or `None`"""
        return next(self.find_all(rule), None)

    def child(self, rule):
        """Return first direct child matched by `rule` or `None`"""
        for node in self._children:
            if node._rule == rule:
                return node
        return None

    def as_tuple(self):
        """Nested tuple form: `(rule, *children)`, or `(rule, text)` for leaves
        """
        if not self._children:
            return self._rule, self.text
        return (self._rule,) + tuple(c.as_tuple() for c in self._children)


class ParseState:
    """Mutable bookkeeping of a single parse.

    A new state is created for every parse, so parses never share anything
    but the (immutable) grammar.  Apart from the text itself, it holds the
    memoization table, the current nesting depth, and the furthest position
    where a terminal failed to match together with what was expected there.
    """
    def __init__(self, text, skip, config):
        self.text = text
        self.skip = skip
        self.memo = {} if config.memoize else None
        self.max_depth = config.max_depth
        self.depth = 0
        self.quiet = 0
        self.furthest = -1
        self.expected = set()

    def fail(self, pos, expected):
        """Record failure of a terminal at `pos`.  Always returns `None`."""
        if self.quiet:
            return None
        if pos > self.furthest:
            self.furthest = pos
            self.expected = {expected}
        elif pos == self.furthest:
            self.expected.add(expected)
        return None


class Expr:
    """Parsing expression.

    Derived classes must implement `match()`, which attempts to match
    the expression against `state.text` at position `pos`.  `atomic` is
    true if no lexical noise may be skipped.  `match()` returns `None` if
    the expression does not match, or a pair `(end, nodes)` otherwise.
    """
    def match(self, state, pos, atomic):
        raise NotImplementedError()


class Literal(Expr):
    """Fixed string, optionally matched ignoring case"""
    def __init__(self, token, ignore_case=False):
        if not token:
            raise ValueError("literal must not be empty")
        self.token = token.lower() if ignore_case else token
        self.ignore_case = ignore_case

    def match(self, state, pos, atomic):
        token = self.token
        end = pos + len(token)
        candidate = state.text[pos:end]
        if self.ignore_case:
            candidate = candidate.lower()
        if candidate != token:
            return state.fail(pos, repr(token))
        return end, ()

    def __repr__(self):
        return "Literal(%r)" % self.token


class Keyword(Literal):
    """Case-insensitive word, which must not be followed by a word character.

    This keeps, e.g., `call` from matching the start of the name `callback`.
    """
    _word_char = re.compile(r"[A-Za-z0-9_]").match

    def __init__(self, word):
        Literal.__init__(self, word, ignore_case=True)

    def match(self, state, pos, atomic):
        result = Literal.match(self, state, pos, atomic)
        if result is not None and self._word_char(state.text, result[0]):
            return state.fail(pos, repr(self.token))
        return result


class Pattern(Expr):
    """Regular expression, anchored at the current position"""
    def __init__(self, regex, description):
        if isinstance(regex, str):
            regex = re.compile(regex)
        self.regex = regex
        self.description = description
        self._match = regex.match

    def match(self, state, pos, atomic):
        result = self._match(state.text, pos)
        if result is None:
            return state.fail(pos, self.description)
        return result.end(), ()

    def __repr__(self):
        return "Pattern(%r)" % self.description


class Seq(Expr):
    """Sequence of expressions, all of which must match in order.

    Unless in atomic mode, lexical noise is skipped between the items.  If
    an item matches empty, the noise before it is left unconsumed, so that
    matches never end in noise.
    """
    def __init__(self, *items):
        self.items = tuple(map(as_expr, items))

    def match(self, state, pos, atomic):
        nodes = ()
        first = True
        for item in self.items:
            if first or atomic:
                begin = pos
            else:
                begin = state.skip(state.text, pos)
            first = False

            result = item.match(state, begin, atomic)
            if result is None:
                return None
            end, item_nodes = result
            if end == begin and not item_nodes:
                continue
            pos = end
            nodes += item_nodes
        return pos, nodes


class Choice(Expr):
    """Ordered choice: first matching alternative wins"""
    def __init__(self, *alternatives):
        self.alternatives = tuple(map(as_expr, alternatives))

    def match(self, state, pos, atomic):
        for alternative in self.alternatives:
            result = alternative.match(state, pos, atomic)
            if result is not None:
                return result
        return None


class Optional(Expr):
    """Matches inner expression or nothing"""
    def __init__(self, item):
        self.item = as_expr(item)

    def match(self, state, pos, atomic):
        result = self.item.match(state, pos, atomic)
        if result is None:
            return pos, ()
        return result


class Repeat(Expr):
    """Matches inner expression at least `min_count` times, greedily"""
    def __init__(self, item, min_count=0):
        self.item = as_expr(item)
        self.min_count = min_count

    def match(self, state, pos, atomic):
        nodes = ()
        count = 0
        item = self.item
        while True:
            if count and not atomic:
                begin = state.skip(state.text, pos)
            else:
                begin = pos
            result = item.match(state, begin, atomic)
            # stop also on empty match, which would otherwise loop forever
            if result is None or result[0] == begin:
                break
            pos, item_nodes = result
            nodes += item_nodes
            count += 1

        if count < self.min_count:
            return None
        return pos, nodes


class And(Expr):
    """Positive lookahead: matches if inner expression does, consumes nothing
    """
    def __init__(self, item):
        self.item = as_expr(item)

    def match(self, state, pos, atomic):
        if self.item.match(state, pos, atomic) is None:
            return None
        return pos, ()


class Not(Expr):
    """Negative lookahead: matches if inner expression does not"""
    def __init__(self, item):
        self.item = as_expr(item)

    def match(self, state, pos, atomic):
        state.quiet += 1
        try:
            result = self.item.match(state, pos, atomic)
        finally:
            state.quiet -= 1
        if result is not None:
            return state.fail(pos, "not %r" % state.text[pos:result[0]])
        return pos, ()


class Ref(Expr):
    """Reference to a rule by name, resolved by `Grammar.finalize()`"""
    def __init__(self, name):
        self.name = name
        self.target = None

    def match(self, state, pos, atomic):
        return self.target.match(state, pos, atomic)

    def __repr__(self):
        return "Ref(%r)" % self.name


class Rule(Expr):
    """Named rule of a grammar"""
    def __init__(self, name, expr, kind=RULE):
        if kind not in RULE_KINDS:
            raise ValueError("invalid rule kind: %r" % kind)
        self.name = name
        self.expr = as_expr(expr)
        self.kind = kind

    def match(self, state, pos, atomic):
        kind = self.kind
        atomic = atomic or kind == ATOMIC or kind == TOKEN
        memo = state.memo
        if memo is not None:
            key = self.name, pos, atomic, state.quiet > 0
            try:
                return memo[key]
            except KeyError:
                pass

        state.depth += 1
        try:
            if state.max_depth is not None and state.depth > state.max_depth:
                raise NestingError(state.text, pos,
                                   "rule %s nested deeper than %d levels"
                                   % (self.name, state.max_depth))
            result = self.expr.match(state, pos, atomic)
        finally:
            state.depth -= 1

        if result is not None and kind != SILENT:
            end, nodes = result
            if kind == TOKEN:
                nodes = ()
            result = end, (Match(self.name, state.text, pos, end, nodes),)
        if memo is not None:
            memo[key] = result
        return result

    def __repr__(self):
        return "Rule(%r)" % self.name


def as_expr(item):
    """Convert strings to literals, pass through expressions"""
    if isinstance(item, Expr):
        return item
    if isinstance(item, str):
        return Literal(item)
    raise TypeError("cannot use %r as parsing expression" % (item,))


def literal(token, ignore_case=False):
    """A fixed string"""
    return Literal(token, ignore_case)

def keyword(word):
    """A case-insensitive keyword"""
    return Keyword(word)

def pattern(regex, description):
    """A regular expression"""
    return Pattern(regex, description)

def seq(*items):
    """Items in sequence"""
    return Seq(*items)

def choice(*alternatives):
    """First of the alternatives that matches"""
    return Choice(*alternatives)

def optional(item):
    """Matches `item` or nothing"""
    return Optional(item)

def repeat(item, min_count=0):
    """Zero or more (or at least `min_count`) repetitions of `item`"""
    return Repeat(item, min_count)

def followed_by(item):
    """Positive lookahead"""
    return And(item)

def not_followed_by(item):
    """Negative lookahead"""
    return Not(item)

def comma_sequence(item):
    """A comma-separated, non-empty list of items matching `item`"""
    return Seq(item, Repeat(Seq(',', item)))


class Grammar:
    """Set of named parsing rules.

    Rules are added with `rule()` and may refer to each other through
    `ref()`, even before the referred rule is defined.  Once all rules are
    added, `finalize()` resolves the references; afterwards, the grammar
    must not be changed anymore and can be used to parse any number of
    texts, also concurrently.

    `skip` is a function `skip(text, pos)` returning the position after any
    lexical noise at `pos`; `trailer` is the same for what may follow the
    start rule when the whole input must be consumed.
    """
    def __init__(self, skip, trailer=None):
        self.skip = skip
        self.trailer = skip if trailer is None else trailer
        self.rules = {}
        self._refs = []
        self._finalized = False

    def rule(self, name, expr, kind=RULE):
        """Add rule `name` matching `expr`"""
        if self._finalized:
            raise ValueError("grammar is already finalized")
        if name in self.rules:
            raise ValueError("duplicate rule: %s" % name)
        self.rules[name] = Rule(name, expr, kind)
        return self.rules[name]

    def ref(self, name):
        """Reference to (possibly not yet defined) rule `name`"""
        result = Ref(name)
        self._refs.append(result)
        return result

    def finalize(self):
        """Resolve all rule references"""
        for ref in self._refs:
            try:
                ref.target = self.rules[ref.name]
            except KeyError:
                raise ValueError("reference to undefined rule: %s" % ref.name)
        self._finalized = True
        return self

    def __contains__(self, name):
        return name in self.rules

    def __getitem__(self, name):
        return self.rules[name]

    def _run(self, text, rule, begin, config, fname):
        """Match start rule at `begin`, return parse state and result"""
        if not self._finalized:
            raise ValueError("grammar must be finalized before parsing")
        start_rule = self.rules[rule]
        state = ParseState(text, self.skip, config)
        needed = (sys.getrecursionlimit()
                  + FRAMES_PER_CHAR * (len(text) - begin))
        try:
            with recursion_limit(needed):
                return state, start_rule.match(state, begin, False)
        except RecursionError:
            raise NestingError(text, max(state.furthest, begin),
                               "expression nested too deeply", fname)
        except NestingError as err:
            err.fname = fname
            raise

    @staticmethod
    def _root(text, rule, begin, result):
        end, nodes = result
        if len(nodes) == 1 and nodes[0].span == (begin, end):
            return nodes[0]
        return Match(rule, text, begin, end, nodes)

    def match(self, text, rule, pos=0, config=None):
        """Match `rule` against `text` at `pos`, returning `Match` or `None`.

        Unlike `parse()`, no noise is skipped before `pos` and the remainder
        of the input is never checked.  Nesting errors are still raised.
        """
        if config is None:
            config = Config()
        _, result = self._run(text, rule, pos, config, None)
        if result is None:
            return None
        return self._root(text, rule, pos, result)

    def parse(self, text, rule, config=None, fname=None):
        """Match `rule` against `text`, returning the root `Match`.

        Lexical noise, blank lines and comment lines at the beginning of
        `text` are skipped, the same as after the match with `consume_all`
        (see the `trailer` of the grammar).  Raises `ParserError` if the
        rule does not match, and `KeyError` if there is no such rule.
        """
        if config is None:
            config = Config()
        begin = self.trailer(text, 0)
        state, result = self._run(text, rule, begin, config, fname)
        if result is None:
            offset = max(state.furthest, begin)
            expected = sorted(state.expected)
            msg = "%s does not match" % rule
            if expected:
                msg += ", expected " + " or ".join(expected)
            raise ParserError(text, offset, msg, fname, expected)

        root = self._root(text, rule, begin, result)
        if config.consume_all:
            rest = self.trailer(text, root.end)
            if rest != len(text):
                raise IncompleteParseError(
                        text, rest, "unexpected input after %s" % rule,
                        fname, root)
        return root
