"""
Cost aggregation over priced elements.

Pure math. (material + labor) × (1 + markup/100) per element,
summed per module and across the proposal.

Input: PricedElement list + GlobalMarkup setting
Output: CostSummary
"""

import logging
import math
from typing import Iterable, Optional

from .config import settings
from .schemas import CostSummary, ElementLine, GlobalMarkup, ModuleSubtotal, PricedElement

logger = logging.getLogger(__name__)


class CostAggregator:
    """
    Stateless: every method is a function of its arguments only.
    Amounts are never rounded here; see formatting.format_currency.
    """

    def effective_markup(self, element: PricedElement, global_markup: Optional[GlobalMarkup] = None) -> float:
        """Global percentage when the override is enabled, else the element's own markup."""
        if global_markup is not None and global_markup.enabled:
            return global_markup.percentage
        if element.markup is None:
            return settings.DEFAULT_MARKUP_PCT
        return element.markup

    def element_total(self, element: PricedElement, global_markup: Optional[GlobalMarkup] = None) -> float:
        material = _finite(element.material_cost)
        labor = _finite(element.labor_cost)
        markup = self.effective_markup(element, global_markup)
        return (material + labor) * (1 + markup / 100.0)

    def module_subtotal(self, elements: Iterable[PricedElement], module_id: int,
                        global_markup: Optional[GlobalMarkup] = None) -> float:
        return sum(
            self.element_total(e, global_markup) for e in elements if e.module.id == module_id
        )

    def grand_total(self, elements: Iterable[PricedElement],
                    global_markup: Optional[GlobalMarkup] = None) -> float:
        return sum(self.element_total(e, global_markup) for e in elements)

    def summarize(self, elements: Iterable[PricedElement],
                  global_markup: Optional[GlobalMarkup] = None) -> CostSummary:
        """
        Full breakdown: one line per element, one subtotal per module
        (in order of first appearance), and the grand total.
        """
        global_markup = global_markup or GlobalMarkup()
        lines = []
        modules: dict[int, ModuleSubtotal] = {}
        material_subtotal = 0.0
        labor_subtotal = 0.0
        grand_total = 0.0

        for e in elements:
            total = self.element_total(e, global_markup)
            lines.append(ElementLine(
                element_id=e.element.id,
                element_name=e.element.name,
                module_id=e.module.id,
                material_cost=_finite(e.material_cost),
                labor_cost=_finite(e.labor_cost),
                markup=self.effective_markup(e, global_markup),
                total=total,
            ))
            sub = modules.get(e.module.id)
            if sub is None:
                sub = modules[e.module.id] = ModuleSubtotal(
                    module_id=e.module.id, module_name=e.module.name,
                    element_count=0, subtotal=0.0,
                )
            sub.element_count += 1
            sub.subtotal += total
            material_subtotal += _finite(e.material_cost)
            labor_subtotal += _finite(e.labor_cost)
            grand_total += total

        return CostSummary(
            lines=lines,
            modules=list(modules.values()),
            material_subtotal=material_subtotal,
            labor_subtotal=labor_subtotal,
            grand_total=grand_total,
            global_markup=global_markup,
        )


def _finite(value) -> float:
    """Costs feed display and submission; a broken number contributes 0."""
    try:
        value = float(value or 0.0)
    except (TypeError, ValueError):
        logger.warning(f"Non-numeric cost {value!r} treated as 0")
        return 0.0
    if not math.isfinite(value):
        logger.warning(f"Non-finite cost {value!r} treated as 0")
        return 0.0
    return value
