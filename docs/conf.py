# -*- coding: utf-8 -*-
import os


def read_version():
    path = os.path.join('..', 'src', 'ihexan', '__init__.py')
    with open(path, 'rt') as file:
        for line in file:
            if line.startswith('__version__'):
                return eval(line.split('=')[1])
    raise ValueError(f'cannot find __version__ inside of {path}')


extensions = [
    'sphinx.ext.autodoc',
    'sphinx.ext.autosummary',
    'sphinx.ext.doctest',
    'sphinx.ext.napoleon',
    'sphinx_autodoc_typehints',
    'sphinx.ext.viewcode',
    'sphinx_click.ext',
]

source_suffix = '.rst'
master_doc = 'index'
project = 'ihexan'
year = '2026'
author = 'ihexan contributors'
copyright = f'{year}, {author}'
version = release = read_version()

pygments_style = 'trac'
html_theme = 'furo'
html_short_title = f'{project}-{version}'

autosummary_generate = True

napoleon_google_docstring = True
napoleon_numpy_docstring = False
napoleon_use_ivar = True
napoleon_use_rtype = False

typehints_document_rtype = False
