import logging
import os
import tempfile
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import List, Optional

from unpinner.pinning import PatchResult, is_candidate, patch_smali

logger = logging.getLogger(__name__)

SMALI_GLOB = 'smali*/**/*.smali'


def find_smali_files(directory) -> List[Path]:
    return sorted(Path(directory).glob(SMALI_GLOB))


def process_smali_file(file_path, crlf: bool = False) -> PatchResult:
    """
    Process the given Smali file and apply applicable patches.

    The file is read and written without newline translation so its line
    endings survive untouched outside the patched methods.
    """
    with open(file_path, 'r', encoding='utf-8', newline='') as f:
        original_content = f.read()

    # Don't scan classes that don't implement the interface
    if not is_candidate(original_content):
        return PatchResult(False, original_content)

    result = patch_smali(original_content, crlf=crlf)
    if result.changed:
        write_atomic(file_path, result.content)
    return result


def write_atomic(file_path, content: str):
    """Write next to ``file_path`` first, then move the new file over it."""
    fd, tmp_path = tempfile.mkstemp(dir=os.path.dirname(os.path.abspath(file_path)), suffix='.tmp')
    try:
        with os.fdopen(fd, 'w', encoding='utf-8', newline='') as f:
            f.write(content)
        os.chmod(tmp_path, os.stat(file_path).st_mode & 0o7777)
        os.replace(tmp_path, file_path)
    except BaseException:
        os.unlink(tmp_path)
        raise


def disable_certificate_pinning(directory, jobs: Optional[int] = None, crlf: bool = False) -> bool:
    """Patch every smali file below ``directory``, returns whether any pinning logic was found."""
    directory = Path(directory)
    smali_files = find_smali_files(directory)
    logger.info(f"Scanning {len(smali_files)} Smali files in {directory}...")

    pinning_found = False
    with ThreadPoolExecutor(max_workers=jobs or None) as ex:
        futs = {ex.submit(process_smali_file, path, crlf): path for path in smali_files}
        for fut in as_completed(futs):
            result = fut.result()
            if result.changed:
                pinning_found = True
                relative_path = futs[fut].relative_to(directory)
                logger.info(f'Applied patch in "{relative_path}" ({", ".join(result.patched_methods)}).')

    if not pinning_found:
        logger.info("No certificate pinning logic found.")
    return pinning_found
