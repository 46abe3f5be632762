"""Define program exceptions."""


class NotFoundError(LookupError):
    """Model the exception of not finding something."""


class TooManyError(Exception):
    """Model the exception of finding too much."""


class DecryptionError(Exception):
    """Model the exception of problems when decrypting a field."""


class EncryptionError(Exception):
    """Model the exception of problems when encrypting a field."""


class ConfigurationError(Exception):
    """Model the exception of a missing or invalid program configuration."""


class StoreError(Exception):
    """Model the exception of a store file that can't be read or written."""
