# main.py
import logging
import os
import sys
from xml.etree.ElementTree import ParseError

from unpinner.config import load_config, use_crlf
from unpinner.netsec import apply_network_security
from unpinner.scanner import disable_certificate_pinning

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')


def main(decoded_dir: str) -> int:
    if not os.path.isdir(decoded_dir):
        logging.error(f"Decoded directory '{decoded_dir}' does not exist")
        return 1

    try:
        config = load_config()
        apply_network_security(decoded_dir)
    except (OSError, ValueError, ParseError) as e:
        logging.error(f"Failed to prepare '{decoded_dir}': {e}")
        return 1

    try:
        if disable_certificate_pinning(decoded_dir, jobs=config["jobs"], crlf=use_crlf(config)):
            logging.info("Certificate pinning disabled")
    except (OSError, UnicodeDecodeError) as e:
        logging.error(f"Failed to disable certificate pinning: {e}")
        return 1
    return 0


if __name__ == "__main__":
    if len(sys.argv) > 1:
        sys.exit(main(sys.argv[1]))
    else:
        print("Usage: python3 main.py <decoded_apk_folder>")
        sys.exit(1)
