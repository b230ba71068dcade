import pytest

from outreach import ValidationError
from outreach.attachments import (
    MAX_ATTACHMENT_BYTES,
    AttachmentUploader,
    storage_path,
    validate_attachment,
)
from outreach.launchers import encode_component, mailto_link, phone_digits, whatsapp_link


def test_whatsapp_link_strips_phone_and_encodes_text():
    url = whatsapp_link("+39 347-963 5862", "Ciao Mario, a presto!")

    assert url == "https://wa.me/393479635862?text=Ciao%20Mario%2C%20a%20presto!"


def test_encode_component_matches_browser_rules():
    assert encode_component("a&b=c d/é") == "a%26b%3Dc%20d%2F%C3%A9"
    assert encode_component("keep-_.!~*'()") == "keep-_.!~*'()"
    assert encode_component(None) == ""


def test_mailto_link():
    url = mailto_link("mario@example.com", "Proposta corso", "Gentile Dr. Rossi,\nsalve")

    assert url == "mailto:mario@example.com?subject=Proposta%20corso&body=Gentile%20Dr.%20Rossi%2C%0Asalve"


def test_phone_digits():
    assert phone_digits("(347) 96-35") == "3479635"
    assert phone_digits(None) == ""


@pytest.mark.parametrize("filename", ["listino.pdf", "foto.JPG", "foto.jpeg", "logo.png"])
def test_allowed_attachment_types(filename):
    validate_attachment(filename, 1024)


def test_attachment_too_large():
    with pytest.raises(ValidationError) as exc:
        validate_attachment("listino.pdf", MAX_ATTACHMENT_BYTES + 1)

    assert len(exc.value.errors) == 1


def test_attachment_bad_type_and_size():
    with pytest.raises(ValidationError) as exc:
        validate_attachment("macro.docx", MAX_ATTACHMENT_BYTES * 2)

    assert len(exc.value.errors) == 2


def test_storage_path_layout():
    path = storage_path(12, "Listino Prezzi.PDF", now=1700000000.5)

    lead_dir, name = path.split("/")
    assert lead_dir == "12"
    assert name.startswith("1700000000500_")
    assert name.endswith(".pdf")


def test_uploader_returns_public_url(store):
    url = AttachmentUploader(store).upload(7, "listino.pdf", b"%PDF-1.4")

    (path, (data, content_type)), = store.uploads.items()
    assert path.startswith("7/")
    assert content_type == "application/pdf"
    assert url.endswith(path)


def test_uploader_validates_before_upload(store):
    with pytest.raises(ValidationError):
        AttachmentUploader(store).upload(7, "script.exe", b"MZ")

    assert store.uploads == {}
