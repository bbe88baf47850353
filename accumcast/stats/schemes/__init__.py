"""
Ledger-driven forecasting schemes.

Available schemes:
- `accumulation`: forecasting the final total of a period from cumulative
  progress readings
"""
