# Configuration file for the Sphinx documentation builder.
#
# For the full list of built-in configuration values, see the documentation:
# https://www.sphinx-doc.org/en/master/usage/configuration.html

import lazyiter

project = 'lazyiter'
author = 'lazyiter developers'
version = str(lazyiter.__version__)

extensions = [
    "numpydoc",
    'sphinx.ext.autodoc',
    ]

# The API pages are listed by hand in index.rst.
numpydoc_show_class_members = False

autodoc_default_options = {
    'members': True,
    'special-members': '__init__',
    'member-order': 'bysource',
}
autodoc_typehints = 'signature'

exclude_patterns = ['_build']

html_theme = 'pydata_sphinx_theme'
