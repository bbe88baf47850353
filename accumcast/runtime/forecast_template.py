"""
accumcast.runtime.forecast_template
===================================

Base classes for forecast templates.

A template encapsulates everything needed to forecast one period: which
components run, how the design is registered, how observations are turned
into batches and how results are read back from the ledger.

Examples
--------
>>> from accumcast.core.ledger import Ledger, create_test_connection
>>> from accumcast.runtime.forecast_template import ForecastTemplate, ForecastResult
>>> from accumcast.stats.schemes.accumulation.common import ProgressObservation
>>>
>>> class MyTemplate(ForecastTemplate):
...     def configure_components(self): return {"observation": ProgressObservation()}
...     def register_design(self, ledger): pass
...     def extract_results(self, ledger): return ForecastResult(look_number=1, elapsed=0.5, observed=1.0)
...     def _populate_batch(self, batch, **kwargs): batch.set_progress(kwargs["elapsed"], kwargs["cumulative"])
>>>
>>> template = MyTemplate("2024-03")
>>> template.setup(Ledger(create_test_connection("duckdb"), "doc"))
>>> template.add_observations(elapsed=0.5, cumulative=1.0)
>>> template.analyze().observed
1.0
"""

from __future__ import annotations
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from accumcast.core.ledger import Ledger

logger = logging.getLogger(__name__)


@dataclass
class ForecastResult:
    """Result of a single look at a period."""

    # Core results
    look_number: int
    elapsed: float
    observed: float

    # Posterior summary
    mean: Optional[float] = None
    median: Optional[float] = None
    lower: Optional[float] = None
    upper: Optional[float] = None
    sd: Optional[float] = None
    level: Optional[float] = None

    # Target tracking
    target: Optional[float] = None
    p_target: Optional[float] = None
    action: Optional[str] = None
    complete: bool = False

    # Naive reference forecasts
    baselines: Dict[str, Optional[float]] = field(default_factory=dict)

    # Method-specific results
    additional_metrics: Dict[str, Any] = field(default_factory=dict)

    # Raw event data for advanced use
    posterior_event: Optional[Any] = None
    likelihood_event: Optional[Any] = None
    signal_event: Optional[Any] = None

    @property
    def interval(self) -> Optional[tuple]:
        if self.lower is None or self.upper is None:
            return None
        return (self.lower, self.upper)


class ForecastTemplate(ABC):
    """
    Base class for portable forecast templates.

    Encapsulates:
    - Design registration (e.g. the fitted prior)
    - Data ingestion and validation
    - Component configuration (statistics, criteria, signalers)
    - Pipeline coordination and results interpretation
    """

    def __init__(self, period_id: str):
        self.period_id = period_id
        self.ledger: Optional[Ledger] = None
        self.components: Dict[str, Any] = {}
        self._is_setup = False
        self._current_look = 0

    @abstractmethod
    def configure_components(self) -> Dict[str, Any]:
        """
        Configure the pipeline components.

        Returns
        -------
        Dict[str, Any]
            Must contain an ``observation`` component; the remaining
            components run in insertion order on every `analyze()`.
        """

    @abstractmethod
    def register_design(self, ledger: Ledger) -> None:
        """Register the forecast design to the ledger."""

    @abstractmethod
    def extract_results(self, ledger: Ledger) -> ForecastResult:
        """Extract results from ledger events."""

    @abstractmethod
    def _populate_batch(self, batch: Any, **kwargs: Any) -> None:
        """Populate the observation batch with data."""

    def setup(self, ledger: Ledger) -> None:
        """Setup the template with a specific ledger backend."""
        self.ledger = ledger
        self.components = self.configure_components()
        if "observation" not in self.components:
            raise ValueError("configure_components() must provide an 'observation' component")
        self.register_design(ledger)
        self._is_setup = True
        logger.debug("Template for period %s set up", self.period_id)

    @property
    def time_index(self) -> str:
        return f"t{self._current_look}"

    @property
    def step_key(self) -> str:
        return f"look-{self._current_look}"

    def add_observations(self, **kwargs: Any) -> None:
        """Add a progress observation using the configured observation component."""
        if not self._is_setup or self.ledger is None:
            raise RuntimeError("Template not setup. Call setup(ledger) first.")

        observation = self.components["observation"]
        batch = observation.create_batch()
        self._populate_batch(batch, **kwargs)
        if batch.validation_errors:
            raise ValueError(f"Invalid observations: {batch.validation_errors}")

        self._current_look += 1
        success = observation.register_batch(
            self.ledger, str(self.period_id), self.step_key, self.time_index, batch
        )
        if not success:
            self._current_look -= 1
            raise ValueError(
                f"Failed to register observations: {batch.validation_errors}"
            )

    def analyze(self) -> ForecastResult:
        """Run the component pipeline and return results."""
        if not self._is_setup or self.ledger is None:
            raise RuntimeError("Template not setup. Call setup(ledger) first.")
        if self._current_look == 0:
            raise ValueError(
                "No observations registered yet. Call add_observations() first."
            )

        for name, component in self.components.items():
            if name == "observation":
                continue
            component.step(
                self.ledger, str(self.period_id), self.step_key, self.time_index
            )

        return self.extract_results(self.ledger)

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of the template state."""
        if not self._is_setup:
            return {
                "period_id": str(self.period_id),
                "status": "not_setup",
                "current_look": self._current_look,
            }
        return {
            "period_id": str(self.period_id),
            "status": "ready",
            "current_look": self._current_look,
            "components": list(self.components.keys()),
        }

    def reset(self) -> None:
        """Reset the look counter (the ledger is left untouched)."""
        self._current_look = 0
