"""
Common classes for fpeg.

Copyright 2019 Markus Wallerberger
Released under the GNU Lesser General Public License, Version 3 only.
See LICENSE.txt for permissions on usage, modification and distribution
"""
import re


class ParsingError(Exception):
    """Base exception class for parsing errors"""
    def __init__(self, fname, lineno, colbegin, colend, line, msg):
        """Construct new parsing exception"""
        Exception.__init__(self)
        self.fname = fname
        self.lineno = lineno
        self.colbegin = colbegin
        self.colend = colend
        self.line = line
        self.msg = msg

    @property
    def error_type(self):
        """Type of parsing error"""
        return "error"

    def errmsg(self):
        """Error message with the offending line and a caret marker"""
        errstr = ""
        if self.fname is not None:
            errstr += self.fname + ":"
        if self.lineno is not None:
            errstr += str(self.lineno + 1) + ":"
        if self.colbegin is not None:
            errstr += str(self.colbegin + 1) + ":"
        errstr += " " + self.error_type
        if self.msg is not None:
            errstr += ": " + self.msg + "\n"
        if self.line is not None:
            errstr += "|\n"
            for line in self.line.splitlines():
                errstr += "|\t%s\n" % line
            if self.colbegin is not None:
                errstr += "|\t" + " " * self.colbegin + "^"
                if self.colend is not None:
                    errstr += "~" * (self.colend - self.colbegin - 1)
                errstr += "\n"
        return errstr

    def __str__(self):
        return "\n" + self.errmsg()


_LINE_END_RE = re.compile(r"\n|\r\n?")


def locate(text, offset):
    """Return `(lineno, colno, line)` for character `offset` in `text`.

    Line and column numbers are zero-based; `line` is the physical line
    containing `offset` without its line terminator.
    """
    if offset < 0 or offset > len(text):
        raise ValueError("offset out of range")
    lineno = 0
    begin = 0
    for match in _LINE_END_RE.finditer(text, 0, offset):
        lineno += 1
        begin = match.end()

    end_match = _LINE_END_RE.search(text, offset)
    end = end_match.start() if end_match else len(text)
    return lineno, offset - begin, text[begin:end]
