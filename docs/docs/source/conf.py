# Configuration file for the Sphinx documentation builder.
#
# For the full list of built-in configuration values, see the documentation:
# https://www.sphinx-doc.org/en/master/usage/configuration.html

import os
import sys

# Add the project src to Python path
sys.path.insert(0, os.path.abspath('../../../src'))

# -- Project information -----------------------------------------------------

project = 'formcoach'
release = '0.1.0'

# -- General configuration ---------------------------------------------------

extensions = [
    "sphinx.ext.autodoc",
    "sphinx.ext.napoleon",      # Google-style docstrings
    "sphinx.ext.viewcode",      # "View Source" links
    "myst_parser",              # Markdown pages (index.md)
    "sphinx_autodoc_typehints",
    "sphinx.ext.autosectionlabel",
]

source_suffix = {".rst": "restructuredtext", ".md": "markdown"}
templates_path = ['_templates']
exclude_patterns = []

# -- Options for HTML output -------------------------------------------------

html_theme = "furo"

autodoc_default_options = {
    "members": True,
    "undoc-members": False,
    "private-members": False,
    "show-inheritance": True,
}

napoleon_google_docstring = True
napoleon_numpy_docstring = False
napoleon_include_init_with_doc = True

# Signals need the Qt runtime; docs builders usually lack it
autodoc_mock_imports = ["PySide6"]
