# Configuration file for the Sphinx documentation builder.
#
# For the full list of built-in configuration values, see the documentation:
# https://www.sphinx-doc.org/en/master/usage/configuration.html

from importlib import metadata

release = metadata.version("ros2-ci")
project = f"ros2-ci {release}"

extensions = ["sphinx_rtd_theme", "sphinx.ext.napoleon", "autoapi.extension"]

templates_path = ["_templates"]
exclude_patterns = ["_build", "Thumbs.db", ".DS_Store"]

html_theme = "sphinx_rtd_theme"

autoapi_dirs = ["../ros2_ci"]
