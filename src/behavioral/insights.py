"""
Insight generators.

Each generator derives BehavioralInsight records over a set of entities.
The four registered families are extension points and currently produce
no insights.
"""

from abc import ABC, abstractmethod
from typing import Optional

from .models import BehavioralInsight, InsightType


class InsightGenerator(ABC):
    """Abstract base class for insight generation strategies"""

    insight_type: InsightType

    @abstractmethod
    def generate(self, entity_ids: Optional[list[str]] = None) -> list[BehavioralInsight]:
        """Produce insights for the given entities, or for all entities when None"""
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(type={self.insight_type.value})"


class TrendInsightGenerator(InsightGenerator):
    insight_type = InsightType.TREND

    def generate(self, entity_ids: Optional[list[str]] = None) -> list[BehavioralInsight]:
        return []


class PatternInsightGenerator(InsightGenerator):
    insight_type = InsightType.PATTERN

    def generate(self, entity_ids: Optional[list[str]] = None) -> list[BehavioralInsight]:
        return []


class CorrelationInsightGenerator(InsightGenerator):
    insight_type = InsightType.CORRELATION

    def generate(self, entity_ids: Optional[list[str]] = None) -> list[BehavioralInsight]:
        return []


class PredictionInsightGenerator(InsightGenerator):
    insight_type = InsightType.PREDICTION

    def generate(self, entity_ids: Optional[list[str]] = None) -> list[BehavioralInsight]:
        return []


# Run in this order by generate_insights
INSIGHT_GENERATORS = {
    "trend": TrendInsightGenerator,
    "pattern": PatternInsightGenerator,
    "correlation": CorrelationInsightGenerator,
    "prediction": PredictionInsightGenerator,
}


def default_generators() -> list[InsightGenerator]:
    return [generator_cls() for generator_cls in INSIGHT_GENERATORS.values()]
