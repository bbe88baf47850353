"""
accumcast.runtime
=================

Execution infrastructure for forecast templates.

Key Components
--------------
- `ForecastTemplate`: Base class for all forecast definitions
- `ForecastResult`: Standard result container for one look at a period
- `SequentialRunner`: Look-by-look execution of one template
- `BatchRunner`: Several templates over the same observations
"""
