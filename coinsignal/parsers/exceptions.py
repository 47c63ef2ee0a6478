class ProviderError(Exception):
    pass


class TokenNotFoundError(ProviderError):
    pass


class DexScreenerError(ProviderError):
    pass


class CoinGeckoError(ProviderError):
    pass
