"""
Setup script for fpeg

Copyright 2019 Markus Wallerberger.
Released under the GNU Lesser General Public License, Version 3 only.
See LICENSE.txt for permissions on usage, modification and distribution
"""
import io
import os.path
import re
from setuptools import setup, find_packages


_HEREPATH = os.path.abspath(os.path.dirname(__file__))
_VERSION_RE = re.compile(r"(?m)^__version__\s*=\s*['\"]([^'\"]*)['\"]")


def fullpath(path):
    """Return the full path to a file"""
    if path[0] == '/':
        raise ValueError("Do not supply absolute paths")
    return os.path.join(_HEREPATH, *path.split("/"))


def readfile(path):
    """Return contents of file with path relative to script directory"""
    return io.open(fullpath(path), 'r').read()


def extract_version(path):
    """Extract value of __version__ variable by parsing python script"""
    return _VERSION_RE.search(readfile(path)).group(1)


VERSION = extract_version('src/fpeg/__init__.py')
LONG_DESCRIPTION = readfile('README.md')

setup(
    name='fpeg',
    version=VERSION,

    description='Structural parsing of Fortran code fragments, '
                'written in pure Python',
    long_description=LONG_DESCRIPTION,
    long_description_content_type='text/markdown',
    keywords=' '.join([
        'fortran',
        'parser',
        'peg',
        'instrumentation'
        ]),
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Developers',
        'Topic :: Software Development :: Build Tools',
        'License :: OSI Approved '
                ':: GNU Lesser General Public License v3 (LGPLv3)',
        'Programming Language :: Python :: 3',
        ],

    author='Markus Wallerberger',
    author_email='markus.wallerberger@tuwien.ac.at',

    python_requires='>=3.6, <4',
    install_requires=[],
    extras_require={
        'dev': ['pytest', 'pylint'],
        },

    package_dir={'': 'src'},
    packages=find_packages(where='src'),
    zip_safe=True,      # reconsider when adding data files
    )
