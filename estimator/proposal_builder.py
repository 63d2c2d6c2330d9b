"""
Proposal builder: the session-scoped selection behind a proposal.

Holds the active parameters, modules and priced elements plus the global
markup setting. Every mutation recomputes costs synchronously through the
formula evaluator, so a priced element's material_cost / labor_cost always
match its formulas against the current parameter set.

One builder per proposal session; it is never shared between requests.
"""

import itertools
import logging
import re
from typing import Dict, List, Optional, Protocol

from .config import settings
from .cost_aggregator import CostAggregator
from .formula_evaluator import evaluate_formula, parameter_text
from .schemas import (
    CostSummary,
    ElementDefinition,
    GlobalMarkup,
    Module,
    Parameter,
    PayloadElementRef,
    PayloadModuleRef,
    PayloadParameter,
    PayloadTemplateElement,
    PricedElement,
    ProposalDetails,
    ProposalPayload,
    Template,
)

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class ProposalValidationError(ValueError):
    """Proposal cannot be submitted. `errors` maps field path → message."""

    def __init__(self, errors: Dict[str, str]):
        self.errors = errors
        first = next(iter(errors.items()), ("proposal", "invalid"))
        super().__init__(f"Please fix the following issue: {first[0]}: {first[1]}")


class ProposalSink(Protocol):
    def submit(self, payload: ProposalPayload) -> int:
        """Persist a finalized proposal; return the created record id."""
        ...


class ProposalBuilder:
    """Owns the selection for one proposal and keeps every cost current."""

    def __init__(self, aggregator: Optional[CostAggregator] = None):
        self.aggregator = aggregator or CostAggregator()
        self.template: Optional[Template] = None
        self.modules: List[Module] = []
        self.custom_modules: List[Module] = []
        self.parameters: List[Parameter] = []
        self.elements: List[PricedElement] = []
        self.global_markup = GlobalMarkup()
        self._ids = itertools.count(1)

    # --- Cost computation ---

    def _price(self, element: PricedElement) -> PricedElement:
        return element.model_copy(update={
            "material_cost": evaluate_formula(element.formula, self.parameters),
            "labor_cost": evaluate_formula(element.labor_formula, self.parameters),
        })

    def _recompute_all(self):
        self.elements = [self._price(e) for e in self.elements]

    # --- Templates ---

    def select_template(self, template: Template):
        """
        Replace the whole selection with the template's declared set.
        Costs are computed fresh from the template's own parameter defaults.
        """
        names = [p.name for p in template.parameters]
        if len(names) != len(set(names)):
            raise ValueError(f"Template {template.id} declares duplicate parameter names")
        self.template = template
        self.parameters = [p.model_copy() for p in template.parameters]
        self.modules = []
        self.elements = []

        for module in template.modules:
            self.select_module(module)

        for te in template.template_elements:
            if not self.is_module_selected(te.module.id):
                # template element in a module the template forgot to declare
                self.select_module(te.module)
            if self._find(te.element.id, te.module.id) is not None:
                logger.warning(
                    f"Template {template.id} lists element {te.element.id} twice "
                    f"in module {te.module.id}, keeping the first"
                )
                continue
            markup = te.markup if te.markup is not None else te.element.markup
            self.elements.append(self._new_element(te.element, te.module, markup))

        self._recompute_all()
        logger.info(
            f"Selected template {template.id} ({template.name}): {len(self.parameters)} parameters, "
            f"{len(self.modules)} modules, {len(self.elements)} elements"
        )

    # --- Modules ---

    def is_module_selected(self, module_id: int) -> bool:
        return any(m.id == module_id for m in self.modules)

    def select_module(self, module: Module):
        """Adds the module to the active set. It contributes nothing until elements are toggled in."""
        if not self.is_module_selected(module.id):
            self.modules.append(module)

    def deselect_module(self, module_id: int):
        """Removes the module and, in the same step, every priced element it owns."""
        self.modules = [m for m in self.modules if m.id != module_id]
        self.elements = [e for e in self.elements if e.module.id != module_id]

    def toggle_module(self, module: Module) -> bool:
        """Returns True if the module is selected afterwards."""
        if self.is_module_selected(module.id):
            self.deselect_module(module.id)
            return False
        self.select_module(module)
        return True

    def add_custom_module(self, module: Module) -> Module:
        """Register a user-created module and select it."""
        module = module.model_copy(update={"is_custom": True})
        if not any(m.id == module.id for m in self.custom_modules):
            self.custom_modules.append(module)
        self.select_module(module)
        return module

    # --- Parameters ---

    def _find_parameter(self, parameter_id: int) -> Parameter:
        for p in self.parameters:
            if p.id == parameter_id:
                return p
        raise ValueError(f"Parameter {parameter_id} is not selected")

    def toggle_parameter(self, parameter: Parameter) -> bool:
        """Add or remove a parameter; every element is recomputed. Returns True if now selected."""
        if any(p.id == parameter.id for p in self.parameters):
            self.parameters = [p for p in self.parameters if p.id != parameter.id]
            selected = False
        else:
            if any(p.name == parameter.name for p in self.parameters):
                raise ValueError(f"A parameter named {parameter.name!r} is already selected")
            self.parameters = self.parameters + [parameter]
            selected = True
        self._recompute_all()
        return selected

    def update_parameter_value(self, parameter_id: int, value) -> Parameter:
        """
        Validates the new value against the parameter's type before anything
        is evaluated (raises pydantic.ValidationError, a ValueError), then
        recomputes every element.
        """
        current = self._find_parameter(parameter_id)
        updated = Parameter.model_validate({**current.model_dump(), "value": value})
        self.parameters = [updated if p.id == parameter_id else p for p in self.parameters]
        self._recompute_all()
        return updated

    # --- Elements ---

    def _find(self, element_id: int, module_id: int) -> Optional[PricedElement]:
        for e in self.elements:
            if e.element.id == element_id and e.module.id == module_id:
                return e
        return None

    def _require(self, element_id: int, module_id: int) -> PricedElement:
        found = self._find(element_id, module_id)
        if found is None:
            raise ValueError(f"Element {element_id} is not selected in module {module_id}")
        return found

    def _new_element(self, element: ElementDefinition, module: Module,
                     markup: Optional[float] = None) -> PricedElement:
        return PricedElement(
            id=next(self._ids),
            element=element,
            module=module,
            formula=element.formula,
            labor_formula=element.labor_formula,
            markup=settings.DEFAULT_MARKUP_PCT if markup is None else markup,
        )

    def toggle_element(self, element: ElementDefinition, module: Module) -> bool:
        """
        Toggle the (element, module) pair. A new instance is priced immediately
        against the current parameters. Returns True if now selected.
        """
        if self._find(element.id, module.id) is not None:
            self.elements = [
                e for e in self.elements
                if not (e.element.id == element.id and e.module.id == module.id)
            ]
            return False
        if not self.is_module_selected(module.id):
            raise ValueError(f"Module {module.id} ({module.name}) must be selected before adding elements")
        self.elements = self.elements + [self._price(self._new_element(element, module, element.markup))]
        return True

    def update_element_formula(self, element_id: int, module_id: int,
                               formula: Optional[str] = None,
                               labor_formula: Optional[str] = None) -> PricedElement:
        current = self._require(element_id, module_id)
        update = {}
        if formula is not None:
            update["formula"] = formula
        if labor_formula is not None:
            update["labor_formula"] = labor_formula
        updated = self._price(current.model_copy(update=update))
        self._replace(updated)
        return updated

    def update_element_markup(self, element_id: int, module_id: int, markup: float) -> PricedElement:
        if markup is None or markup < 0:
            raise ValueError(f"Markup must be a non-negative percentage, got {markup!r}")
        current = self._require(element_id, module_id)
        updated = current.model_copy(update={"markup": float(markup)})
        self._replace(updated)
        return updated

    def _replace(self, updated: PricedElement):
        self.elements = [updated if e.key == updated.key else e for e in self.elements]

    # --- Markup / totals ---

    def set_global_markup(self, enabled: bool, percentage: Optional[float] = None) -> GlobalMarkup:
        if percentage is None:
            percentage = self.global_markup.percentage
        self.global_markup = GlobalMarkup(enabled=enabled, percentage=percentage)
        return self.global_markup

    def summary(self) -> CostSummary:
        return self.aggregator.summarize(self.elements, self.global_markup)

    @property
    def grand_total(self) -> float:
        return self.aggregator.grand_total(self.elements, self.global_markup)

    # --- Submission ---

    def validate(self, details: ProposalDetails) -> Dict[str, str]:
        """Per-field errors keyed by field path; empty when the proposal can be submitted."""
        errors: Dict[str, str] = {}
        if not details.name.strip():
            errors["name"] = "Proposal name is required"
        if not details.client_name.strip():
            errors["client_name"] = "Client name is required"
        if not details.client_email.strip():
            errors["client_email"] = "Client email is required"
        elif not EMAIL_PATTERN.match(details.client_email.strip()):
            errors["client_email"] = "Invalid email address"
        if not self.modules:
            errors["selectedModules"] = "Select at least one trade"
        if not self.elements:
            errors["selectedElements"] = "Select at least one element"
        return errors

    def build_payload(self, details: ProposalDetails) -> ProposalPayload:
        """
        Finalized submission payload. The global markup, when enabled, is
        written into every element; markups are truncated to whole percents.
        """
        errors = self.validate(details)
        if errors:
            raise ProposalValidationError(errors)

        template_elements = []
        for e in self.elements:
            markup = self.aggregator.effective_markup(e, self.global_markup)
            template_elements.append(PayloadTemplateElement(
                id=e.id,
                formula=e.formula,
                labor_formula=e.labor_formula,
                markup=int(markup),
                material_cost=float(e.material_cost),
                labor_cost=float(e.labor_cost),
                element=PayloadElementRef(
                    id=e.element.id,
                    name=e.element.name,
                    description=e.element.description,
                    formula=e.element.formula,
                    labor_formula=e.element.labor_formula,
                ),
                module=PayloadModuleRef(
                    id=e.module.id,
                    name=e.module.name,
                    description=e.module.description,
                ),
            ))

        parameters = []
        for p in self.parameters:
            value = p.value
            if isinstance(value, str) and parameter_text(value) is not None:
                value = float(value)
            parameters.append(PayloadParameter(id=p.id, name=p.name, value=value, type=p.type or "number"))

        return ProposalPayload(
            id=self.template.id if self.template else None,
            name=details.name,
            title=details.name,
            description=details.description,
            client_name=details.client_name,
            client_email=details.client_email,
            client_phone=details.phone_number,
            client_address=details.address,
            image=details.image,
            parameters=parameters,
            template_elements=template_elements,
        )

    def submit(self, details: ProposalDetails, sink: ProposalSink) -> int:
        payload = self.build_payload(details)
        proposal_id = sink.submit(payload)
        logger.info(f"Submitted proposal {proposal_id} ({len(payload.template_elements)} elements)")
        return proposal_id
