class GoldmandError(Exception):
    """Base error for the bot"""


class ConfigError(GoldmandError):
    pass


class InvalidKeyError(GoldmandError):
    pass


class SerializationError(GoldmandError):
    pass


class ChainError(GoldmandError):
    """Node answered but rejected the request"""

    def __init__(self, message, code=None):
        super().__init__(message)
        self.code = code
