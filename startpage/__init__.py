# Startpage Package
"""
Input-handling core for a browser start page.

One line of free text goes in; one of these comes out:
  - Calculator result ("= 2+2")
  - Weather or translation lookup ("tq paris", "tr en>de hello")
  - Ranked bookmark matches ("/git")
  - Per-engine query suggestions (anything else)
"""

__version__ = "0.1.0-dev"
