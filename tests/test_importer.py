import pytest

from leads import LeadImporter, read_rows, write_import_template
from outreach import ValidationError


@pytest.fixture
def importer():
    return LeadImporter()


def test_valid_row_is_normalized(importer):
    report = importer.validate_rows([{
        "Nome": " Mario Rossi ",
        "Telefono": "347 963 5862",
        "Interesse": "Corso EdgeEndo",
        "E-mail": "mario@example.com",
        "Contesto": "Webinar 15 gennaio",
    }])

    row = report.rows[0]
    assert row.valid
    assert row.row_number == 2
    assert row.fields["name"] == "Mario Rossi"
    assert row.fields["phone"] == "3479635862"
    assert row.fields["email"] == "mario@example.com"
    assert row.fields["context"] == "Webinar 15 gennaio"
    assert row.fields["channel"] == "whatsapp"


def test_missing_phone_is_invalid(importer):
    report = importer.validate_rows([{"nome": "Mario", "interesse": "Corso"}])

    row = report.rows[0]
    assert not row.valid
    assert "Telefono mancante" in row.errors
    assert report.valid == []


def test_all_missing_required_fields_reported(importer):
    report = importer.validate_rows([{"email": "x@example.com"}])

    assert report.rows[0].errors == ["Nome mancante", "Telefono mancante", "Interesse mancante"]


def test_invalid_channel(importer):
    report = importer.validate_rows([
        {"nome": "Mario", "telefono": "1", "interesse": "Corso", "canale_preferito": "invalid"},
    ])

    row = report.rows[0]
    assert not row.valid
    assert row.errors == ["Canale non valido (usa: whatsapp, email, entrambi)"]
    assert row.fields["channel"] == "invalid"


@pytest.mark.parametrize("raw, expected", [("EMAIL", "email"), ("Entrambi", "both"), ("both", "both"), ("", "whatsapp")])
def test_channel_normalization(importer, raw, expected):
    report = importer.validate_rows([{"nome": "Mario", "telefono": "1", "interesse": "Corso", "Canale": raw}])

    assert report.rows[0].fields["channel"] == expected


def test_first_non_blank_alias_wins(importer):
    report = importer.validate_rows([{"nome": "", "Nome Completo": "Mario Rossi", "tel": 3479635862, "interesse": "X"}])

    assert report.rows[0].fields["name"] == "Mario Rossi"
    assert report.rows[0].fields["phone"] == "3479635862"


def test_custom_mappings():
    importer = LeadImporter(custom_mappings={"Corso Richiesto": "interest"})

    report = importer.validate_rows([{"nome": "Mario", "telefono": "1", "corso richiesto": "Endo"}])

    assert report.rows[0].valid
    assert report.rows[0].fields["interest"] == "Endo"


def test_sequences_continue_from_prior_max(importer):
    report = importer.validate_rows([
        {"nome": "A", "telefono": "1", "interesse": "X"},
        {"nome": "B", "interesse": "X"},
        {"nome": "C", "telefono": "3", "interesse": "X"},
    ])

    numbered = LeadImporter.assign_sequences(report, current_max=5)

    assert [row.fields["name"] for row in numbered] == ["A", "C"]
    assert [row.sequence for row in numbered] == [6, 7]
    assert report.rows[1].sequence is None


def test_commit_inserts_only_valid_rows(importer, store, make_lead):
    make_lead(row_number=5)
    report = importer.validate_rows([
        {"nome": "Anna", "telefono": "333 111", "interesse": "Corso", "canale": "email"},
        {"nome": "Bruno", "interesse": "Corso"},
        {"nome": "Carla", "telefono": "333 222", "interesse": "Corso"},
    ])

    created = importer.commit(report, store)

    assert [row["nome"] for row in created] == ["Anna", "Carla"]
    assert [row["row_number"] for row in created] == [6, 7]
    assert created[0]["telefono"] == "333111"
    assert created[0]["canale_preferito"] == "email"
    assert created[0]["stato"] == "new"
    assert created[0]["email"] is None


def test_commit_with_nothing_valid(importer, store):
    report = importer.validate_rows([{"nome": "Solo nome"}])

    assert importer.commit(report, store) == []
    assert store.leads == {}


def test_summary(importer):
    report = importer.validate_rows([{"nome": "A", "telefono": "1", "interesse": "X"}, {}])

    assert report.summary() == "1 lead validi / 2 totali"


def test_read_csv_keeps_phone_as_text(tmp_path):
    path = tmp_path / "leads.csv"
    path.write_text("Nome,Telefono,Interesse\nMario,0347 1234,Corso\n", encoding="utf-8")

    rows = read_rows(str(path))

    assert rows == [{"Nome": "Mario", "Telefono": "0347 1234", "Interesse": "Corso"}]


def test_template_sheet_validates(tmp_path, importer):
    path = tmp_path / "template_import_lead.xlsx"
    write_import_template(str(path))

    report = importer.validate_file(str(path))

    assert len(report.valid) == 1
    assert report.valid[0].fields["name"] == "Dr. Mario Rossi"
    assert report.valid[0].fields["details"] == "Corso 20 ore, certificato incluso"


def test_read_rows_rejects_unknown_format(tmp_path):
    path = tmp_path / "leads.txt"
    path.write_text("nome\n", encoding="utf-8")

    with pytest.raises(ValidationError):
        read_rows(str(path))


def test_read_rows_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_rows(str(tmp_path / "missing.csv"))
