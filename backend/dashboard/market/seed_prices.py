"""Base prices for the deterministic simulator."""

# Reference prices for the demo portfolio symbols. The simulator moves each
# one by at most +/-3% so the dashboard looks plausible without a data feed.
BASE_PRICES: dict[str, float] = {
    "NVDA": 135.0,
    "AI": 28.0,
    "PLTR": 16.0,
    "META": 510.0,
    "AMD": 160.0,
    "SMCI": 860.0,
    "TSLA": 250.0,
    "PATH": 18.0,
    "AMZN": 180.0,
    "BBAI": 3.8,
    "INTC": 36.0,
    "ASTS": 9.5,
}

# Symbols outside the table (user-added) simulate around this price
DEFAULT_BASE_PRICE = 100.0

# Simulated daily move is drawn from [-MAX_TODAY_PCT, +MAX_TODAY_PCT]
MAX_TODAY_PCT = 3.0

# Simulated intraday range half-width is drawn from [0, MAX_DAY_AMPLITUDE]
MAX_DAY_AMPLITUDE = 0.05

# make_series: number of daily steps before today, and per-step drift bound
SERIES_DAYS = 120
SERIES_MAX_DRIFT = 0.005
