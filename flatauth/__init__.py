"""
flatauth - a flat-file user, password and role store for authentication backends.
"""

__version__ = "0.1.0"

from flatauth.credentials import CredentialStore, get_credential_store
