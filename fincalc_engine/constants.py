"""
Numerical constants, default brackets and lookup tables.

Everything here is read-only; functions take keyword overrides instead of
mutating these values.
"""

# Root finder
SOLVER_TOL = 1e-8
SOLVER_MAX_ITER = 100
MIN_DERIVATIVE = 1e-14  # below this the Newton step is replaced by bisection

# Periodic-rate bracket used for YTM and IRR
RATE_LOWER = -0.99
RATE_UPPER = 10.0

# Implied volatility bracket
IV_LOWER = 1e-4
IV_UPPER = 5.0

# Z-spread bracket (annual, added to every spot rate)
SPREAD_LOWER = -0.5
SPREAD_UPPER = 5.0

# Bond analytics
BASIS_POINT = 0.0001

# Black-Scholes
MAX_STANDARD_DEVIATIONS = 8.0  # d1/d2 clamp; N() is 0 or 1 to double precision beyond this
DAYS_PER_YEAR = 365.0

# Binomial tree
BINOMIAL_STEPS = 500

# Finite-difference Greek steps
FD_SPOT_FRACTION = 0.01  # 1% of spot
FD_STEP_VOL = 0.01
FD_STEP_RATE = 0.01
FD_STEP_TIME = 1.0 / 365.0

# Agreement between analytic and finite-difference Greeks: abs <= ATOL + RTOL * |analytic|
GREEK_FD_ATOL = 1e-3
GREEK_FD_RTOL = 1e-2

# Portfolio optimizer
MIN_SHARPE_SCORE = 0.01
PORTFOLIO_VAR95_MULTIPLIER = 1.645
PORTFOLIO_CVAR95_MULTIPLIER = 2.062
WEIGHT_TOL = 1e-12

# Risk engine
TRADING_DAYS = 252
Z_SCORES = {0.95: 1.645, 0.99: 2.326}
CVAR_MULTIPLIERS = {0.95: 1.3, 0.99: 1.15}
MC_CHUNK_SIZE = 10_000

# (name, market_shock, volatility_shock)
DEFAULT_STRESS_SCENARIOS = (
    ("2008 Financial Crisis", -0.50, 0.80),
    ("Black Monday 1987", -0.22, 0.60),
    ("Dot-com Crash", -0.35, 0.40),
    ("COVID-19 Crash", -0.35, 1.20),
    ("Interest Rate Shock", -0.15, 0.30),
)

# MACRS half-year convention percentages by recovery class (years)
MACRS_TABLES = {
    3: (0.3333, 0.4445, 0.1481, 0.0741),
    5: (0.2000, 0.3200, 0.1920, 0.1152, 0.1152, 0.0576),
    7: (0.1429, 0.2449, 0.1749, 0.1249, 0.0893, 0.0892, 0.0893, 0.0446),
    10: (0.1000, 0.1800, 0.1440, 0.1152, 0.0922, 0.0737, 0.0655, 0.0655, 0.0656, 0.0655, 0.0328),
    15: (
        0.0500, 0.0950, 0.0855, 0.0770, 0.0693, 0.0623, 0.0590, 0.0590,
        0.0591, 0.0590, 0.0591, 0.0590, 0.0591, 0.0590, 0.0591, 0.0295,
    ),
    20: (
        0.0375, 0.0722, 0.0668, 0.0618, 0.0571, 0.0528, 0.0489, 0.0452,
        0.0447, 0.0447, 0.0446, 0.0446, 0.0446, 0.0446, 0.0446, 0.0446,
        0.0446, 0.0446, 0.0446, 0.0446, 0.0223,
    ),
}
