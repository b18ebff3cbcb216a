import logging
import re
import shutil
import xml.etree.ElementTree as StdET
from pathlib import Path
from typing import Optional

from defusedxml import ElementTree as ET

logger = logging.getLogger(__name__)

ANDROID_NS = "http://schemas.android.com/apk/res/android"

CONFIG_NAME = "nsc_unpinner"
CONFIG_RESOURCE = f"@xml/{CONFIG_NAME}"

TEMPLATE = """<?xml version="1.0" encoding="utf-8"?>
<!-- Intentionally lax Network Security Configuration (generated by apk-unpinner) -->
<network-security-config>
  <!-- Allow cleartext traffic -->
  <base-config cleartextTrafficPermitted="true">
    <trust-anchors>
      <certificates src="system" />
      <!-- Allow user-added (proxy) certificates -->
      <certificates src="user" />{extra}
    </trust-anchors>
  </base-config>
</network-security-config>
"""

CUSTOM_CERTIFICATE = """
      <!-- Certificate bundled by apk-unpinner -->
      <certificates src="@raw/{name}" />"""


def create_network_security_config(path, certificate_name: Optional[str] = None):
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    extra = CUSTOM_CERTIFICATE.format(name=certificate_name) if certificate_name else ""
    path.write_text(TEMPLATE.format(extra=extra), encoding='utf-8')
    logger.info(f"Wrote network security config to {path}")


def resource_name(file_name: str) -> str:
    """Android resource names may only hold lowercase letters, digits and underscores."""
    name = re.sub(r'[^a-z0-9_]', '_', Path(file_name).stem.lower())
    if not name or not name[0].isalpha():
        name = f"cert_{name}"
    return name


def install_certificate(decoded_dir, certificate) -> str:
    """Copy ``certificate`` into res/raw and return its resource name."""
    certificate = Path(certificate)
    if not certificate.is_file():
        raise FileNotFoundError(f"Certificate not found: {certificate}")

    name = resource_name(certificate.name)
    raw_dir = Path(decoded_dir) / "res" / "raw"
    raw_dir.mkdir(parents=True, exist_ok=True)
    shutil.copy2(certificate, raw_dir / f"{name}{certificate.suffix.lower()}")
    logger.info(f"Bundled certificate {certificate.name} as @raw/{name}")
    return name


def patch_manifest(manifest_path, debuggable: bool = False) -> bool:
    """
    Point the application at the lax network security config.

    Returns whether the manifest was changed. Namespace prefixes declared in
    the manifest are kept when it is written back.
    """
    manifest_path = Path(manifest_path)
    for _, (prefix, uri) in ET.iterparse(str(manifest_path), events=("start-ns",)):
        if prefix:
            StdET.register_namespace(prefix, uri)

    tree = ET.parse(str(manifest_path))
    application = tree.getroot().find("application")
    if application is None:
        raise ValueError(f"No <application> element in {manifest_path}")

    attributes = {f"{{{ANDROID_NS}}}networkSecurityConfig": CONFIG_RESOURCE}
    if debuggable:
        attributes[f"{{{ANDROID_NS}}}debuggable"] = "true"

    changed = False
    for key, value in attributes.items():
        if application.get(key) != value:
            application.set(key, value)
            changed = True

    if changed:
        tree.write(str(manifest_path), encoding='utf-8', xml_declaration=True)
        logger.info(f"Patched {manifest_path.name}")
    return changed


def apply_network_security(decoded_dir, certificate=None, debuggable: bool = False):
    decoded_dir = Path(decoded_dir)
    certificate_name = install_certificate(decoded_dir, certificate) if certificate else None
    create_network_security_config(decoded_dir / "res" / "xml" / f"{CONFIG_NAME}.xml", certificate_name)
    patch_manifest(decoded_dir / "AndroidManifest.xml", debuggable=debuggable)
