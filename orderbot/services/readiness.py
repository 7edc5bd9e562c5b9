from __future__ import annotations

from orderbot.ai.schema import ClassifierResult
from orderbot.core.config import ORDER_CONFIDENCE_THRESHOLD


def is_order_ready(result: ClassifierResult, threshold: float = ORDER_CONFIDENCE_THRESHOLD) -> bool:
    """Readiness gate: an ordering intent the classifier marked complete, above the confidence threshold.

    The threshold is strict, a result at exactly ``threshold`` does not qualify.
    """
    return result.intent == "ordering" and bool(result.is_order_ready) and result.confidence > threshold


def missing_order_fields(result: ClassifierResult) -> list[str]:
    missing = list(result.missing_fields)
    data = result.data
    if not data.items and "items" not in missing:
        missing.append("items")
    if not data.phone and "phone" not in missing:
        missing.append("phone")
    if not data.full_address and "full_address" not in missing:
        missing.append("full_address")
    return missing
