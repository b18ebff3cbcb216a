import logging
import shutil
import subprocess
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)

TOOLS = {
    "apktool": "apktool_release_url",
    "signer": "signer_release_url",
}

JAR_PREFIXES = {
    "apktool": "apktool",
    "signer": "uber-apk-signer",
}


def download_latest_jar(release_url: str, tools_dir, client: Optional[httpx.Client] = None) -> Path:
    """Download the first .jar asset of the latest GitHub release at ``release_url``."""
    tools_dir = Path(tools_dir)
    tools_dir.mkdir(parents=True, exist_ok=True)

    own_client = client is None
    if own_client:
        client = httpx.Client(timeout=60.0, follow_redirects=True)
    try:
        logger.info(f"Requesting latest release from {release_url}")
        response = client.get(release_url)
        response.raise_for_status()
        release_info = response.json()

        jar_asset = next((item for item in release_info.get("assets", []) if item["name"].endswith(".jar")), None)
        if not jar_asset:
            raise RuntimeError(f"No JAR file in the release assets of {release_url}")

        jar_path = tools_dir / jar_asset["name"]
        logger.info(f"Downloading {jar_asset['name']}...")
        jar_response = client.get(jar_asset["browser_download_url"])
        jar_response.raise_for_status()
        jar_path.write_bytes(jar_response.content)
        return jar_path
    finally:
        if own_client:
            client.close()


def ensure_tool(name: str, config: Dict[str, Any], client: Optional[httpx.Client] = None) -> Path:
    """Return the jar for ``name`` ("apktool" or "signer"), downloading it when missing."""
    if name not in TOOLS:
        raise ValueError(f"Unknown tool: {name}")

    if config.get(name):
        path = Path(config[name]).expanduser()
        if not path.is_file():
            raise FileNotFoundError(f"Configured {name} jar not found: {path}")
        return path

    tools_dir = Path(config["tools_dir"]).expanduser()
    existing = list(tools_dir.glob(f"{JAR_PREFIXES[name]}*.jar"))
    if existing:
        # newest download wins, version strings don't sort
        newest = max(existing, key=lambda path: path.stat().st_mtime)
        logger.debug(f"Using cached {newest}")
        return newest

    return download_latest_jar(config[TOOLS[name]], tools_dir, client)


def run_java(jar, args: List[str], java: str = "java") -> bool:
    if not shutil.which(java):
        logger.error(f"'{java}' not found in PATH.")
        return False

    cmd = [java, "-jar", str(jar), *[str(arg) for arg in args]]
    logger.debug(f"Running: {' '.join(cmd)}")
    try:
        subprocess.run(cmd, check=True, stdout=subprocess.PIPE, stderr=subprocess.STDOUT)
        return True
    except subprocess.CalledProcessError as e:
        output = e.stdout.decode(errors='replace').strip() if e.stdout else ""
        logger.error(f"Command failed: {' '.join(cmd)}\n{output}")
        return False


def decode_apk(apktool, apk_path, output_dir, java: str = "java") -> bool:
    """Decode an APK into smali and resources."""
    if not run_java(apktool, ["d", apk_path, "-o", output_dir, "-f"], java):
        logger.error(f"Failed to decode {apk_path}")
        return False
    logger.info(f"Decoded {apk_path}")
    return True


def build_apk(apktool, decoded_dir, output_apk, java: str = "java") -> bool:
    """Rebuild an APK from a decoded directory."""
    if not run_java(apktool, ["b", decoded_dir, "-o", output_apk], java):
        logger.error(f"Failed to build {decoded_dir}")
        return False
    logger.info(f"Built {output_apk}")
    return True


def sign_apk(signer, apk_path, java: str = "java") -> bool:
    """Sign ``apk_path`` in place with the uber-apk-signer debug key."""
    if not run_java(signer, ["--apks", apk_path, "--allowResign", "--overwrite"], java):
        logger.error(f"Failed to sign {apk_path}")
        return False
    logger.info(f"Signed {apk_path}")
    return True
