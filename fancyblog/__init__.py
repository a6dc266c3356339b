# Fancy Blog - REST API for a small blogging platform
"""
Fancy Blog - A blogging platform API.

Users sign up with a password or through Google/GitHub, admins publish
tagged posts, and authenticated readers comment on them.
"""

__version__ = "1.0.0"
__author__ = "Fancy Blog"
__description__ = "Blog API with JWT and OAuth authentication"
