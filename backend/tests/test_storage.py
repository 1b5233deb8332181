import asyncio
import os
from unittest.mock import MagicMock

import cloudinary.exceptions
import cloudinary.uploader
import pytest

from inksnap.core.config import settings
from inksnap.services import storage

PNG = b"\x89PNG\r\n\x1a\n" + b"0" * 32


def test_local_upload_and_delete(local_storage):
    result = asyncio.run(storage.upload_image(PNG, "me.png", "profile_photos", "image/png"))

    assert result["public_id"].startswith("profile_photos/")
    assert result["public_id"].endswith(".png")
    assert result["url"] == f"{settings.UPLOAD_PUBLIC_BASE_URL}/{result['public_id']}"
    path = os.path.join(str(local_storage), result["public_id"])
    with open(path, "rb") as fh:
        assert fh.read() == PNG

    assert asyncio.run(storage.delete_images([result["public_id"], "", "chat_images/missing.png"])) == [
        result["public_id"]
    ]
    assert not os.path.exists(path)


def test_upload_rejects_bad_input(monkeypatch):
    with pytest.raises(storage.StorageError):
        asyncio.run(storage.upload_image(b"", "empty.png"))
    with pytest.raises(storage.StorageError):
        asyncio.run(storage.upload_image(b"hello", "notes.txt", content_type="text/plain"))
    monkeypatch.setattr(settings, "MAX_UPLOAD_BYTES", 4)
    with pytest.raises(storage.StorageError):
        asyncio.run(storage.upload_image(PNG, "big.png", content_type="image/png"))


def test_folder_names_cannot_escape_upload_dir(local_storage):
    result = asyncio.run(storage.upload_image(PNG, "x.png", "../../etc", "image/png"))
    path = os.path.abspath(os.path.join(str(local_storage), result["public_id"]))
    assert path.startswith(os.path.abspath(str(local_storage)) + os.sep)

    with pytest.raises(storage.StorageError):
        asyncio.run(storage.delete_images(["../outside.png"]))


@pytest.fixture
def cloudinary_sdk(monkeypatch):
    monkeypatch.setattr(settings, "CLOUDINARY_CLOUD_NAME", "demo")
    monkeypatch.setattr(settings, "CLOUDINARY_API_KEY", "key")
    monkeypatch.setattr(settings, "CLOUDINARY_API_SECRET", "secret")
    upload = MagicMock(return_value={"secure_url": "https://res.example/x.png", "public_id": "chat_images/x"})
    destroy = MagicMock(return_value={"result": "ok"})
    monkeypatch.setattr(cloudinary.uploader, "upload", upload)
    monkeypatch.setattr(cloudinary.uploader, "destroy", destroy)
    return upload, destroy


def test_cloudinary_backend_is_used_when_configured(cloudinary_sdk):
    upload, destroy = cloudinary_sdk

    result = asyncio.run(storage.upload_image(PNG, "x.png", "chat_images", "image/png"))
    assert result == {"url": "https://res.example/x.png", "public_id": "chat_images/x"}
    upload.assert_called_once()
    stream = upload.call_args.args[0]
    assert stream.read() == PNG
    assert upload.call_args.kwargs["folder"] == "chat_images"
    assert upload.call_args.kwargs["cloud_name"] == "demo"
    assert upload.call_args.kwargs["api_secret"] == "secret"

    assert asyncio.run(storage.delete_images(["chat_images/x"])) == ["chat_images/x"]
    assert destroy.call_args.args == ("chat_images/x",)


def test_cloudinary_errors_become_storage_errors(cloudinary_sdk):
    upload, destroy = cloudinary_sdk
    upload.side_effect = cloudinary.exceptions.Error("Invalid image file")
    destroy.return_value = {"result": "not found"}

    with pytest.raises(storage.StorageError):
        asyncio.run(storage.upload_image(PNG, "x.png", "chat_images", "image/png"))
    assert asyncio.run(storage.delete_images(["chat_images/gone"])) == []

    upload.side_effect = None
    upload.return_value = {"public_id": "chat_images/x"}
    with pytest.raises(storage.StorageError):
        asyncio.run(storage.upload_image(PNG, "x.png", "chat_images", "image/png"))
