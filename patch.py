import argparse
import logging
import shutil
import sys
import tempfile
from pathlib import Path
from xml.etree.ElementTree import ParseError

import httpx

from unpinner.config import load_config, use_crlf, validate_config
from unpinner.netsec import apply_network_security
from unpinner.scanner import disable_certificate_pinning
from unpinner.tools import build_apk, decode_apk, ensure_tool, sign_apk

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logging.getLogger("httpx").setLevel(logging.WARNING)


def default_output(apk_path: Path) -> Path:
    return apk_path.with_name(f"{apk_path.stem}-patched.apk")


def patch_apk(apk_path, output_path, config, certificate=None, debuggable=False,
              tmp_dir=None, keep_tmp_dir=False, skip_patches=False):
    """Decode, patch, rebuild and sign an APK. Returns the patched APK path or None."""
    apk_path = Path(apk_path)
    if not apk_path.is_file():
        logging.error(f"APK not found: {apk_path}")
        return None

    java = config["java"]
    try:
        apktool = ensure_tool("apktool", config)
        signer = ensure_tool("signer", config)
    except (httpx.HTTPError, RuntimeError, OSError, ValueError) as e:
        logging.error(f"Failed to prepare tools: {e}")
        return None

    work_dir = Path(tempfile.mkdtemp(prefix="apk-unpinner-", dir=tmp_dir))
    decoded_dir = work_dir / "decode"
    unsigned_apk = work_dir / f"{apk_path.stem}.apk"
    logging.info(f"Processing {apk_path} in {work_dir}...")

    try:
        if not decode_apk(apktool, apk_path, decoded_dir, java):
            return None

        try:
            apply_network_security(decoded_dir, certificate=certificate, debuggable=debuggable)
        except (OSError, ValueError, ParseError) as e:
            logging.error(f"Failed to modify network security settings: {e}")
            return None

        if skip_patches:
            logging.info("Skipping certificate pinning patches")
        else:
            try:
                disable_certificate_pinning(decoded_dir, jobs=config["jobs"], crlf=use_crlf(config))
            except (OSError, UnicodeDecodeError) as e:
                logging.error(f"Failed to disable certificate pinning: {e}")
                return None

        if not build_apk(apktool, decoded_dir, unsigned_apk, java):
            return None
        if not sign_apk(signer, unsigned_apk, java):
            return None

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(unsigned_apk), str(output_path))
        logging.info(f"Created patched APK: {output_path}")
        return output_path
    finally:
        if keep_tmp_dir:
            logging.info(f"Kept temporary directory {work_dir}")
        else:
            shutil.rmtree(work_dir, ignore_errors=True)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Patch an Android APK to allow HTTPS interception.")
    parser.add_argument("apk", help="APK file to patch")
    parser.add_argument("-o", "--output", help="Path of the patched APK (default: <name>-patched.apk)")
    parser.add_argument("--config", help="YAML config file")
    parser.add_argument("--certificate", help="Extra CA certificate (PEM or DER) to trust")
    parser.add_argument("--debuggable", action="store_true", help="Mark the app as debuggable")
    parser.add_argument("--jobs", type=int, help="Number of Smali files processed in parallel")
    parser.add_argument("--tmp-dir", help="Directory for temporary files")
    parser.add_argument("--keep-tmp-dir", action="store_true", help="Don't delete the temporary directory")
    parser.add_argument("--skip-patches", action="store_true", help="Only change the network security config")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        config = load_config(args.config)
    except (OSError, ValueError) as e:
        logging.error(f"Failed to load config: {e}")
        return 1
    if args.jobs is not None:
        try:
            config = validate_config({**config, "jobs": args.jobs})
        except ValueError as e:
            logging.error(str(e))
            return 1

    apk_path = Path(args.apk)
    output_path = Path(args.output) if args.output else default_output(apk_path)
    result = patch_apk(
        apk_path,
        output_path,
        config,
        certificate=args.certificate,
        debuggable=args.debuggable,
        tmp_dir=args.tmp_dir,
        keep_tmp_dir=args.keep_tmp_dir,
        skip_patches=args.skip_patches,
    )
    if result is None:
        logging.error(f"Failed to patch {apk_path}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
