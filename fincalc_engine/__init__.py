"""
Financial Calculation Engine

Stateless modules:
- time_value: discount/annuity factors + loan amortization
- solver: safeguarded Newton/bisection root finder
- cashflows: NPV, IRR, payback, profitability index
- bonds: bond price, yield, duration, convexity, DV01, Z-spread and I-spread
- options: Black-Scholes + binomial prices, Greeks, multi-leg strategies
- depreciation: straight-line, declining-balance, SYD and MACRS schedules
- portfolio: heuristic weight solver (Sharpe-weighted / inverse-volatility)
- risk: parametric + Monte Carlo VaR/CVaR, stress tests
- scenarios: yield/maturity/spot/volatility sensitivity sweeps
- utils: day count + schedule helpers

Failures are raised as subclasses of errors.EngineError.
"""
