import os
import sys

sys.path.insert(0, os.path.abspath("../.."))

project = "Condo Amenities"
copyright = "2026, Condo Amenities contributors"
author = "Condo Amenities contributors"
release = "0.1.0"

extensions = [
    "sphinx.ext.autodoc",
    "sphinx.ext.napoleon",
    "sphinx.ext.viewcode",
]

autodoc_mock_imports = ["psycopg2"]

templates_path = ["_templates"]
exclude_patterns: list[str] = []

html_theme = "sphinx_rtd_theme"
html_static_path = ["_static"]
