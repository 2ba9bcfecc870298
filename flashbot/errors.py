"""Error taxonomy for the arbitrage engine"""


class FlashBotError(Exception):
    """Base class for engine errors"""


class InvalidQuote(FlashBotError):
    """A price quote is malformed (non-positive price or bad symbol)"""

    def __init__(self, message: str, symbol=None, venue_id=None):
        super().__init__(message)
        self.symbol = symbol
        self.venue_id = venue_id


class SourceUnavailable(FlashBotError):
    """The quote source could not be reached or returned garbage"""


class NotFound(FlashBotError):
    """A referenced record does not exist"""


class ConfigInvalid(FlashBotError):
    """A settings update or engine configuration is out of range"""

    def __init__(self, message: str, field=None):
        super().__init__(message)
        self.field = field
