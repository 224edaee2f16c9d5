from __future__ import annotations

from unittest.mock import MagicMock

import pytest
import requests

from masked_edit_core.errors import UploadFailureError
from masked_edit_core.image_utils import read_image_bytes
from masked_edit_core.utils.storage import LocalObjectStorage, SupabaseStorage, make_filename


def test_make_filename_shapes() -> None:
    assert make_filename("restyle", index=2, now_ms=1718000000000) == "restyle-1718000000000-seg-2.png"
    assert make_filename("design-unify", ident=12, now_ms=5) == "design-unify-12-5.png"
    name = make_filename("inpaint", random_suffix=True, now_ms=5)
    assert name.startswith("inpaint-5-") and name.endswith(".png")
    assert make_filename("fixed", now_ms=9) == "fixed-9.png"


def test_local_storage_writes_and_never_overwrites(tmp_path) -> None:
    storage = LocalObjectStorage(tmp_path)
    url = storage.upload("images", "a.png", b"first")

    assert (tmp_path / "images" / "a.png").read_bytes() == b"first"
    assert url.startswith("file://")
    assert read_image_bytes(url) == (b"first", "image/png")

    with pytest.raises(UploadFailureError):
        storage.upload("images", "a.png", b"second")
    assert (tmp_path / "images" / "a.png").read_bytes() == b"first"


def test_local_storage_base_url(tmp_path) -> None:
    storage = LocalObjectStorage(tmp_path, base_url="http://cdn.local/")
    assert storage.upload("images", "b.png", b"x") == "http://cdn.local/images/b.png"


def test_supabase_upload_request() -> None:
    session = MagicMock()
    session.post.return_value = MagicMock(status_code=200, text="{}")
    storage = SupabaseStorage("https://proj.supabase.co/", "secret", session=session)

    url = storage.upload("images", "restyle-1-seg-0.png", b"png")

    assert url == "https://proj.supabase.co/storage/v1/object/public/images/restyle-1-seg-0.png"
    args, kwargs = session.post.call_args
    assert args[0] == "https://proj.supabase.co/storage/v1/object/images/restyle-1-seg-0.png"
    assert kwargs["headers"]["x-upsert"] == "false"
    assert kwargs["headers"]["Authorization"] == "Bearer secret"
    assert kwargs["data"] == b"png"


def test_supabase_rejection_raises() -> None:
    session = MagicMock()
    session.post.return_value = MagicMock(status_code=409, text="Duplicate")
    with pytest.raises(UploadFailureError):
        SupabaseStorage("https://proj.supabase.co", "k", session=session).upload("images", "a.png", b"x")


def test_supabase_network_error_raises() -> None:
    session = MagicMock()
    session.post.side_effect = requests.ConnectionError("down")
    with pytest.raises(UploadFailureError):
        SupabaseStorage("https://proj.supabase.co", "k", session=session).upload("images", "a.png", b"x")
