import re

import pytest

from ticketdesk.core.exceptions import StorageError
from ticketdesk.services.attachments import AttachmentStore, build_attachment_url, make_stored_name


@pytest.mark.parametrize(
    "content_path, expected",
    [
        ("uploads/c1/t1/a.png", "http://cdn.test/uploads/c1/t1/a.png"),
        ("/srv/data/uploads/c1/t1/a.png", "http://cdn.test/uploads/c1/t1/a.png"),
        ("C:\\data\\Uploads\\c1\\t1\\a.png", "http://cdn.test/uploads/c1/t1/a.png"),
        ("c1/t1/a.png", "http://cdn.test/uploads/c1/t1/a.png"),
    ],
)
def test_build_attachment_url(content_path, expected):
    assert build_attachment_url(content_path, "http://cdn.test/") == expected


def test_build_attachment_url_follows_base_url():
    path = "uploads/c1/t1/a.png"
    assert build_attachment_url(path, "http://one.test") != build_attachment_url(path, "http://two.test")
    assert build_attachment_url(None, "http://one.test") is None


def test_stored_name_keeps_extension_and_sanitizes_base():
    name = make_stored_name("My Report (final).PDF", now_ms=1700000000000)
    assert re.fullmatch(r"1700000000000_[0-9a-f]{10}_My_Report_final\.PDF", name)


def test_stored_name_truncates_long_base():
    name = make_stored_name("a" * 80 + ".png", now_ms=1)
    base = name.split("_", 2)[2]
    assert base == "a" * 50 + ".png"


def test_stored_name_ignores_directories_in_original_name():
    name = make_stored_name("..\\..\\etc/passwd", now_ms=1)
    assert "/" not in name and "\\" not in name
    assert name.endswith("_passwd")


async def test_save_writes_under_client_and_ticket(attachment_store):
    stored = await attachment_store.save(b"hello", "note.pdf", "application/pdf", client_id="c1", ticket_id="t1")

    assert stored.content_path == f"uploads/c1/t1/{stored.stored_name}"
    assert stored.size_bytes == 5
    assert stored.original_name == "note.pdf"
    path = attachment_store.resolve(stored.content_path)
    assert path == attachment_store.root / "c1" / "t1" / stored.stored_name
    assert path.read_bytes() == b"hello"

    await attachment_store.discard([stored])
    assert not path.exists()
    # второй раз файла уже нет
    await attachment_store.discard([stored])


async def test_save_failure_raises_storage_error(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    store = AttachmentStore(blocker)

    with pytest.raises(StorageError) as exc_info:
        await store.save(b"x", "a.png", "image/png", client_id="c1", ticket_id="t1")
    assert exc_info.value.message.startswith("Failed to save file")
