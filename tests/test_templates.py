import pytest

from outreach import (
    ExtraFieldSpec,
    Lead,
    Template,
    ValidationError,
    personalize,
    validate_extra_fields,
    validate_template,
)


def test_personalize_with_mapping():
    assert personalize("Hello {{name}}", {"name": "Mario"}, {}) == "Hello Mario"


def test_unresolved_placeholder_left_verbatim():
    assert personalize("Hi {{name}}, {{missing}}", {"name": "Mario"}) == "Hi Mario, {{missing}}"


def test_personalize_lead_with_italian_aliases():
    lead = Lead(name="Mario Rossi", phone="347 963", interest="Corso EdgeEndo")

    text = personalize("{{nome}} / {{name}} / {{interesse}} / {{telefono}} / [{{email}}]", lead)

    assert text == "Mario Rossi / Mario Rossi / Corso EdgeEndo / 347 963 / []"


def test_extra_fields_fill_placeholders():
    lead = Lead(name="Mario", phone="1")

    text = personalize("{{nome}}: {{prezzo}} EUR entro {{ data }}", lead, {"prezzo": 990, "data": "lunedì"})

    assert text == "Mario: 990 EUR entro lunedì"


def test_lead_values_win_over_extra_fields():
    lead = Lead(name="Mario", phone="1")

    assert personalize("{{name}}", lead, {"name": "Altro"}) == "Mario"


def test_attachment_line_appended():
    template = Template(name="Listino", body="Ecco il listino, {{nome}}")

    text = personalize(template, Lead(name="Mario", phone="1"), attachment_ref="https://x.example/l.pdf")

    assert text == "Ecco il listino, Mario\n\n📎 *Allegato:* https://x.example/l.pdf"


def test_validate_extra_fields_reports_missing():
    template = Template(name="Preventivo", body="{{price}}", extra_fields=[ExtraFieldSpec(name="price")])

    assert validate_extra_fields(template, {}) == ["price"]
    assert validate_extra_fields(template, {"price": "  "}) == ["price"]
    assert validate_extra_fields(template, {"price": "990"}) == []


def test_validate_extra_fields_keeps_declaration_order():
    template = Template(
        name="Appuntamento",
        body="",
        extra_fields=[ExtraFieldSpec(name="data"), ExtraFieldSpec(name="ora"), ExtraFieldSpec(name="luogo")],
    )

    assert validate_extra_fields(template, {"ora": "10:00"}) == ["data", "luogo"]


def test_personalize_does_not_enforce_extra_fields():
    template = Template(name="Preventivo", body="{{price}}", extra_fields=[ExtraFieldSpec(name="price")])

    assert personalize(template, {}) == "{{price}}"


def test_template_from_row_with_json_fields():
    template = Template.from_row({
        "id": 3,
        "nome": "Follow up",
        "categoria": "follow_up",
        "template": "Ciao {{nome}}",
        "campi_extra": '[{"name": "data", "label": "Data", "placeholder": "es: 15/01"}]',
        "supporta_allegato": None,
    })

    assert template.extra_fields == [ExtraFieldSpec(name="data", label="Data", placeholder="es: 15/01")]
    assert template.supports_attachment is False
    assert template.active is True
    assert template.needs_form is True


def test_extra_field_names_with_punctuation():
    template = Template(
        name="Scadenza",
        body="Scade il {{data-scadenza}} alle {{ ora inizio }}",
        extra_fields=[ExtraFieldSpec(name="data-scadenza"), ExtraFieldSpec(name="ora inizio")],
    )
    values = {"data-scadenza": "15/01", "ora inizio": "10:00"}

    assert validate_extra_fields(template, values) == []
    assert personalize(template, {}, values) == "Scade il 15/01 alle 10:00"


@pytest.mark.parametrize("campi_extra", [
    "[{not json",
    '{"name": "data"}',
    [{"label": "senza nome"}, "data", {"name": "  "}],
])
def test_malformed_extra_fields_read_as_empty(campi_extra):
    template = Template.from_row({"id": 4, "nome": "Saluto", "template": "Ciao", "campi_extra": campi_extra})

    assert template.extra_fields == []


def test_bad_extra_field_entries_are_skipped():
    template = Template.from_row({
        "id": 5,
        "nome": "Preventivo",
        "template": "{{prezzo}}",
        "campi_extra": [{"label": "senza nome"}, {"name": "prezzo"}],
    })

    assert template.extra_fields == [ExtraFieldSpec(name="prezzo")]


def test_template_to_row():
    row = Template(name="Saluto", body="Ciao", extra_fields=[ExtraFieldSpec(name="data")]).to_row()

    assert row["nome"] == "Saluto"
    assert row["template"] == "Ciao"
    assert row["campi_extra"] == [{"name": "data", "label": "", "placeholder": ""}]
    assert row["attivo"] is True
    assert "id" not in row


def test_validate_template_requires_name_and_body():
    with pytest.raises(ValidationError) as exc:
        validate_template(Template(name="Saluto", body="  "))

    assert exc.value.message == "Nome e corpo sono obbligatori"
