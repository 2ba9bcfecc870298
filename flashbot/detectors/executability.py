"""Executability policy and cost models"""

import random
from abc import ABC, abstractmethod
from dataclasses import replace
from decimal import Decimal
from typing import List, Optional, Sequence

import structlog

from flashbot.database.models import Opportunity, fits_storage, quantize_amount
from flashbot.detectors.opportunity_detector import estimate_profit, raw_margin_pct
from flashbot.errors import ConfigInvalid

logger = structlog.get_logger()


class CostModel(ABC):
    """Estimates the cost of executing a candidate opportunity"""

    @abstractmethod
    def estimate_cost(self, candidate: Opportunity) -> Decimal:
        """Return the estimated execution cost in quote currency"""


class FixedCostModel(CostModel):
    """Same cost for every candidate"""

    def __init__(self, cost: Decimal):
        self.cost = quantize_amount(Decimal(str(cost)))

    def estimate_cost(self, candidate: Opportunity) -> Decimal:
        return self.cost


class RandomCostModel(CostModel):
    """Uniformly distributed cost between low and high (gas price noise)"""

    def __init__(
        self,
        low: Decimal = Decimal("2"),
        high: Decimal = Decimal("12"),
        rng: Optional[random.Random] = None,
    ):
        if low < 0 or high < low:
            raise ConfigInvalid(f"Invalid cost range: {low}..{high}", field="cost_range")
        self.low = Decimal(str(low))
        self.high = Decimal(str(high))
        self._rng = rng or random.Random()

    def estimate_cost(self, candidate: Opportunity) -> Decimal:
        fraction = Decimal(str(self._rng.random()))
        return quantize_amount(self.low + (self.high - self.low) * fraction)


def check_thresholds(executable_margin_pct: Decimal, detection_margin_pct: Decimal) -> None:
    """
    Require the executable threshold to be stricter than the detection filter.

    Raises:
        ConfigInvalid: If the executable threshold does not exceed the filter
    """
    if Decimal(str(executable_margin_pct)) <= Decimal(str(detection_margin_pct)):
        raise ConfigInvalid(
            f"Executable margin {executable_margin_pct}% must exceed "
            f"detection filter {detection_margin_pct}%",
            field="min_profit_threshold",
        )


class ExecutabilityClassifier:
    """
    Flags candidates worth executing.

    A candidate is executable when its unrounded margin exceeds the executable
    threshold and the estimated cost is below the estimated profit. The
    executable threshold must be stricter than the detection filter, so an
    opportunity can be listed without being executable.
    """

    def __init__(
        self,
        cost_model: CostModel,
        executable_margin_pct: Decimal = Decimal("1.5"),
        detection_margin_pct: Decimal = Decimal("0.5"),
    ):
        """
        Initialize classifier.

        Args:
            cost_model: Pluggable execution cost estimator
            executable_margin_pct: Margin a candidate must strictly exceed
            detection_margin_pct: Detection filter the threshold must exceed

        Raises:
            ConfigInvalid: If the executable threshold does not exceed the
                detection filter
        """
        check_thresholds(executable_margin_pct, detection_margin_pct)
        self.cost_model = cost_model
        self.executable_margin_pct = Decimal(str(executable_margin_pct))
        self.detection_margin_pct = Decimal(str(detection_margin_pct))
        self._logger = logger.bind(component="executability_classifier")

    def classify(
        self, candidate: Opportunity, trade_amount: Decimal, cost_estimate: Decimal
    ) -> bool:
        """
        Decide whether a candidate is executable.

        Args:
            candidate: Detected opportunity
            trade_amount: Notional used to estimate profit
            cost_estimate: Estimated execution cost

        Returns:
            True if margin > executable threshold and cost < estimated profit
        """
        profit = estimate_profit(candidate.price_a, candidate.price_b, Decimal(str(trade_amount)))
        return (
            raw_margin_pct(candidate.price_a, candidate.price_b) > self.executable_margin_pct
            and Decimal(str(cost_estimate)) < profit
        )

    def annotate(
        self, candidates: Sequence[Opportunity], trade_amount: Decimal
    ) -> List[Opportunity]:
        """
        Attach cost estimate, estimated profit and executability to candidates.

        A candidate whose cost cannot be estimated, or whose values do not
        fit the storage columns, is logged and dropped without affecting the
        others.
        """
        trade_amount = Decimal(str(trade_amount))
        annotated: List[Opportunity] = []
        for candidate in candidates:
            try:
                cost = quantize_amount(Decimal(str(self.cost_model.estimate_cost(candidate))))
            except Exception as e:
                self._logger.warning(
                    "cost_estimate_failed",
                    trading_pair_id=candidate.trading_pair_id,
                    venue_a_id=candidate.venue_a_id,
                    venue_b_id=candidate.venue_b_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                continue

            result = replace(
                candidate,
                estimated_profit=estimate_profit(
                    candidate.price_a, candidate.price_b, trade_amount
                ),
                estimated_cost=cost,
                is_executable=self.classify(candidate, trade_amount, cost),
            )
            if not fits_storage(result):
                self._logger.warning(
                    "candidate_out_of_range",
                    trading_pair_id=candidate.trading_pair_id,
                    venue_a_id=candidate.venue_a_id,
                    venue_b_id=candidate.venue_b_id,
                    profit_margin_pct=str(result.profit_margin_pct),
                    estimated_profit=str(result.estimated_profit),
                )
                continue

            annotated.append(result)

        self._logger.debug(
            "candidates_classified",
            total=len(annotated),
            executable=sum(1 for opp in annotated if opp.is_executable),
        )
        return annotated
