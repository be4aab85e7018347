"""
Package for fpeg, structural parsing of Fortran code fragments.

Copyright 2019 Markus Wallerberger.
Released under the GNU Lesser General Public License, Version 3 only.
See LICENSE.txt for permissions on usage, modification and distribution
"""
__version__ = "0.1.0"

__version_tuple__ = tuple(map(int, __version__.split(".")))
