import pytest

from samples import CHECK_CLIENT, CHECK_SERVER, GET_ACCEPTED_ISSUERS, MANIFEST, PLAIN_CLASS, VERIFY_PINS, build_class


@pytest.fixture
def full_class():
    return build_class(CHECK_CLIENT, CHECK_SERVER, GET_ACCEPTED_ISSUERS, VERIFY_PINS)


@pytest.fixture
def decoded_dir(tmp_path, full_class):
    """A minimal apktool output tree."""
    root = tmp_path / "decoded"
    pinning = root / "smali" / "com" / "example" / "net" / "PinningTrustManager.smali"
    plain = root / "smali_classes2" / "com" / "example" / "util" / "Strings.smali"
    outside = root / "original" / "Ignored.smali"
    for path, content in ((pinning, full_class), (plain, PLAIN_CLASS), (outside, full_class)):
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")

    (root / "AndroidManifest.xml").write_text(MANIFEST, encoding="utf-8")
    return root
