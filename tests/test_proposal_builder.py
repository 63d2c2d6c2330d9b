"""
Proposal builder tests: selection state, synchronous recomputation, payloads.

Tests:
1-5.   Template selection
6-10.  Module and element toggling
11-16. Parameter and formula edits recompute costs
17-19. Markup edits and the global override
20-25. Payload building, validation and submission
"""

import pytest
from pydantic import ValidationError

from estimator.proposal_builder import ProposalBuilder, ProposalValidationError
from estimator.schemas import ElementDefinition, Module, Parameter, ProposalDetails


def _details(**overrides):
    data = {
        "name": "Smith Kitchen",
        "description": "Kitchen refresh",
        "client_name": "Pat Smith",
        "client_email": "pat@example.com",
        "phone_number": "555-0100",
        "address": "12 Elm St",
        "image": "",
    }
    data.update(overrides)
    return ProposalDetails(**data)


class _RecordingSink:
    def __init__(self):
        self.payloads = []

    def submit(self, payload):
        self.payloads.append(payload)
        return len(self.payloads)


def _costs(builder):
    return {(e.element.id, e.module.id): (e.material_cost, e.labor_cost, e.markup) for e in builder.elements}


# ============================================================
# 1-5. Template selection
# ============================================================

def test_select_template_prices_from_template_defaults(template):
    builder = ProposalBuilder()
    builder.select_template(template)

    costs = _costs(builder)
    # length=5, width=3, count=2
    assert costs[(10, 1)] == (30, 15, 10)      # template markup None → default 10
    assert costs[(11, 2)] == (100, 50, 25)     # template markup overrides element markup
    assert [m.id for m in builder.modules] == [1, 2]


def test_select_template_replaces_previous_selection(template, module_a):
    builder = ProposalBuilder()
    builder.select_module(Module(id=99, name="Roofing"))
    builder.toggle_parameter(Parameter(id=50, name="pitch", value=6))

    builder.select_template(template)

    assert not builder.is_module_selected(99)
    assert [p.name for p in builder.parameters] == ["length", "width", "count"]
    assert len(builder.elements) == 2


def test_template_element_module_always_selected(parameters, area_element):
    from estimator.schemas import Template, TemplateElement

    orphan_module = Module(id=5, name="Demo")
    template = Template(
        id=1, name="Sparse", parameters=parameters,
        template_elements=[TemplateElement(element=area_element, module=orphan_module)],
    )
    builder = ProposalBuilder()
    builder.select_template(template)
    assert builder.is_module_selected(5)


def test_template_image_none_becomes_empty(template):
    assert template.image == ""


def test_template_parameter_names_unique(parameters, module_a, area_element):
    from estimator.schemas import Template, TemplateElement

    duplicate = Parameter(id=2, name="length", value=5)
    with pytest.raises(ValidationError):
        Template(id=1, name="Doubled", parameters=parameters + [duplicate])

    # a template mutated after validation is still refused, before any state changes
    template = Template(
        id=1, name="Mutated", modules=[module_a], parameters=list(parameters),
        template_elements=[TemplateElement(element=area_element, module=module_a)],
    )
    template.parameters.append(duplicate)
    builder = ProposalBuilder()
    with pytest.raises(ValueError):
        builder.select_template(template)
    assert builder.parameters == [] and builder.elements == []


# ============================================================
# 6-10. Module and element toggling
# ============================================================

def test_toggle_element_prices_immediately(parameters, module_a, area_element):
    builder = ProposalBuilder()
    for p in parameters:
        builder.toggle_parameter(p)
    builder.select_module(module_a)

    assert builder.toggle_element(area_element, module_a) is True
    element = builder.elements[0]
    assert (element.material_cost, element.labor_cost, element.markup) == (30, 15, 10)


def test_toggle_element_round_trip_restores_total(template, module_b, area_element):
    builder = ProposalBuilder()
    builder.select_template(template)
    before = builder.grand_total

    assert builder.toggle_element(area_element, module_b) is True
    assert builder.grand_total > before
    assert builder.toggle_element(area_element, module_b) is False
    assert builder.grand_total == before
    assert len(builder.elements) == 2


def test_element_requires_selected_module(area_element):
    builder = ProposalBuilder()
    with pytest.raises(ValueError):
        builder.toggle_element(area_element, Module(id=3, name="Unselected"))
    assert builder.elements == []


def test_deselecting_module_removes_exactly_its_elements(
        template, module_a, module_b, count_element):
    builder = ProposalBuilder()
    builder.select_template(template)
    builder.toggle_element(count_element, module_a)   # module A now has 2 elements, B has 1

    assert builder.toggle_module(module_a) is False

    assert [(e.element.id, e.module.id) for e in builder.elements] == [(11, 2)]
    assert builder.grand_total == pytest.approx(builder.aggregator.module_subtotal(builder.elements, module_b.id))
    assert builder.toggle_module(module_a) is True
    assert builder.elements and all(e.module.id == module_b.id for e in builder.elements)


def test_add_custom_module_selects_once():
    builder = ProposalBuilder()
    custom = builder.add_custom_module(Module(id=77, name="Landscaping"))
    builder.add_custom_module(Module(id=77, name="Landscaping"))

    assert custom.is_custom is True
    assert [m.id for m in builder.custom_modules] == [77]
    assert builder.is_module_selected(77)


# ============================================================
# 11-16. Parameter and formula edits recompute costs
# ============================================================

def test_parameter_value_update_recomputes(template):
    builder = ProposalBuilder()
    builder.select_template(template)

    builder.update_parameter_value(1, 10)   # length 5 → 10

    assert _costs(builder)[(10, 1)][:2] == (60, 30)
    assert _costs(builder)[(11, 2)][:2] == (100, 50)


def test_parameter_value_must_be_numeric_for_measurements(template):
    builder = ProposalBuilder()
    builder.select_template(template)
    before = _costs(builder)

    with pytest.raises(ValidationError):
        builder.update_parameter_value(1, "long")
    assert _costs(builder) == before


def test_parameter_value_too_large_for_float_rejected(template):
    builder = ProposalBuilder()
    builder.select_template(template)
    before = _costs(builder)

    with pytest.raises(ValidationError):
        builder.update_parameter_value(1, 10 ** 400)
    assert _costs(builder) == before


def test_removing_parameter_zeroes_dependent_formulas(template, parameters):
    builder = ProposalBuilder()
    builder.select_template(template)

    assert builder.toggle_parameter(parameters[2]) is False   # drop `count`

    assert _costs(builder)[(11, 2)][:2] == (0, 0)
    assert _costs(builder)[(10, 1)][:2] == (30, 15)


def test_duplicate_parameter_name_rejected(template):
    builder = ProposalBuilder()
    builder.select_template(template)
    with pytest.raises(ValueError):
        builder.toggle_parameter(Parameter(id=40, name="length", value=1))


def test_formula_edit_recomputes_only_that_element(template):
    builder = ProposalBuilder()
    builder.select_template(template)

    updated = builder.update_element_formula(10, 1, formula="length + width", labor_formula="bogus_name")

    assert (updated.material_cost, updated.labor_cost) == (8, 0)
    assert _costs(builder)[(10, 1)][:2] == (8, 0)
    assert _costs(builder)[(11, 2)][:2] == (100, 50)
    with pytest.raises(ValueError):
        builder.update_element_formula(10, 2, formula="1")


# ============================================================
# 17-19. Markup edits and the global override
# ============================================================

def test_element_markup_edit(template):
    builder = ProposalBuilder()
    builder.select_template(template)

    builder.update_element_markup(10, 1, 50)

    # (30 + 15) * 1.5 + (100 + 50) * 1.25
    assert builder.grand_total == pytest.approx(67.5 + 187.5)
    with pytest.raises(ValueError):
        builder.update_element_markup(10, 1, -1)


def test_global_markup_toggle(template):
    builder = ProposalBuilder()
    builder.select_template(template)
    own = builder.grand_total

    builder.set_global_markup(True, 15)
    assert builder.grand_total == pytest.approx((45 + 150) * 1.15)

    builder.set_global_markup(False)
    assert builder.grand_total == pytest.approx(own)
    assert builder.global_markup.percentage == 15


def test_summary_matches_grand_total(template):
    builder = ProposalBuilder()
    builder.select_template(template)
    summary = builder.summary()
    assert summary.grand_total == pytest.approx(builder.grand_total)
    assert len(summary.modules) == 2


# ============================================================
# 20-25. Payload building, validation and submission
# ============================================================

def test_build_payload_shape(template):
    builder = ProposalBuilder()
    builder.select_template(template)
    payload = builder.build_payload(_details())

    assert payload.id == 7
    assert payload.title == payload.name == "Smith Kitchen"
    assert payload.client_phone == "555-0100"
    assert len(payload.template_elements) == 2
    first = payload.template_elements[0]
    assert first.element.id == 10 and first.module.id == 1
    assert first.material_cost == 30.0 and first.labor_cost == 15.0

    wire = payload.model_dump(by_alias=True)
    assert wire["clientName"] == "Pat Smith"
    assert wire["clientEmail"] == "pat@example.com"


def test_build_payload_applies_global_markup_as_int(template):
    builder = ProposalBuilder()
    builder.select_template(template)
    builder.update_element_markup(10, 1, 12.9)

    assert builder.build_payload(_details()).template_elements[0].markup == 12

    builder.set_global_markup(True, 17.5)
    assert [te.markup for te in builder.build_payload(_details()).template_elements] == [17, 17]


def test_build_payload_converts_numeric_string_parameters(template):
    builder = ProposalBuilder()
    builder.select_template(template)
    builder.update_parameter_value(2, "4")
    builder.toggle_parameter(Parameter(id=9, name="finish", value="matte", type="text"))

    values = {p.name: p.value for p in builder.build_payload(_details()).parameters}

    assert values["width"] == 4.0
    assert values["finish"] == "matte"


def test_validation_errors_per_field():
    builder = ProposalBuilder()
    with pytest.raises(ProposalValidationError) as exc:
        builder.build_payload(_details(name=" ", client_email="not-an-email"))

    errors = exc.value.errors
    assert set(errors) == {"name", "client_email", "selectedModules", "selectedElements"}
    assert isinstance(exc.value, ValueError)


def test_submit_hands_payload_to_sink(template):
    builder = ProposalBuilder()
    builder.select_template(template)
    sink = _RecordingSink()

    assert builder.submit(_details(), sink) == 1
    assert sink.payloads[0].client_name == "Pat Smith"


def test_element_definition_markup_used_when_toggled(parameters, module_b):
    builder = ProposalBuilder()
    builder.toggle_parameter(parameters[2])
    builder.select_module(module_b)
    builder.toggle_element(ElementDefinition(id=30, name="Trim", formula="count", markup=35), module_b)
    assert builder.elements[0].markup == 35
