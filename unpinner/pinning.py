import logging
import re
from enum import Enum
from typing import List, NamedTuple, Tuple

logger = logging.getLogger(__name__)

INTERFACE_LINE = '.implements Ljavax/net/ssl/X509TrustManager;'

INSERTED_MARKER = '# inserted by apk-unpinner to disable certificate pinning'
DISABLED_MARKER = '# commented out by apk-unpinner to disable old method body'

END_METHOD = '.end method'
INDENT = '    '


class FixPolicy(Enum):
    """Replacement bodies, keyed by what the patched method has to return."""
    RETURN_VOID = (
        '.locals 0',
        'return-void',
    )
    RETURN_EMPTY_ARRAY = (
        '.locals 1',
        'const/4 v0, 0x0',
        'new-array v0, v0, [Ljava/security/cert/X509Certificate;',
        'return-object v0',
    )


class MethodSignature(NamedTuple):
    method_name: str
    descriptor: str
    policy: FixPolicy

    @property
    def signature(self) -> str:
        return f"{self.method_name}{self.descriptor}"

    @property
    def header_pattern(self):
        return re.compile(rf"\.method public (?:final )?{re.escape(self.signature)}")


# The methods that need to be patched to disable certificate pinning
METHOD_SIGNATURES = (
    MethodSignature('checkClientTrusted', '([Ljava/security/cert/X509Certificate;Ljava/lang/String;)V',
                    FixPolicy.RETURN_VOID),
    MethodSignature('checkServerTrusted', '([Ljava/security/cert/X509Certificate;Ljava/lang/String;)V',
                    FixPolicy.RETURN_VOID),
    MethodSignature('getAcceptedIssuers', '()[Ljava/security/cert/X509Certificate;',
                    FixPolicy.RETURN_EMPTY_ARRAY),
)


class MethodMatch(NamedTuple):
    opening_line: str
    body: List[str]
    closing_line: str
    start: int
    end: int


class PatchResult(NamedTuple):
    changed: bool
    content: str
    patched_methods: Tuple[str, ...] = ()


def is_candidate(content: str) -> bool:
    """Cheap pre-filter: only classes implementing X509TrustManager are scanned."""
    return INTERFACE_LINE in content


def find_methods(lines: List[str], method: MethodSignature) -> List[MethodMatch]:
    """
    Locate every declaration of ``method`` in ``lines``.

    A header is only accepted when the next line that is exactly ``.end method``
    comes before any other ``.method`` line; anything else is treated as
    malformed and skipped.
    """
    pattern = method.header_pattern
    matches = []
    i = 0
    while i < len(lines):
        if not pattern.fullmatch(lines[i].rstrip(' \t')):
            i += 1
            continue

        end_line = None
        for j in range(i + 1, len(lines)):
            stripped = lines[j].strip()
            if stripped == END_METHOD:
                end_line = j
                break
            if stripped.startswith('.method '):
                break

        if end_line is None:
            logger.debug(f"'{method.signature}' at line {i + 1} has no {END_METHOD}, skipping")
            i += 1
            continue

        matches.append(MethodMatch(lines[i], lines[i + 1:end_line], lines[end_line], i, end_line))
        i = end_line + 1
    return matches


def is_patched(match: MethodMatch) -> bool:
    first = next((line.strip() for line in match.body if line.strip()), None)
    return first == INSERTED_MARKER


def build_patched_method(match: MethodMatch, policy: FixPolicy) -> List[str]:
    body_lines = [line[len(INDENT):] if line.startswith(INDENT) else line for line in match.body]

    patched_body_lines = [
        INSERTED_MARKER,
        *policy.value,
        '',
        DISABLED_MARKER,
        '# ',
        *(f"# {line}" for line in body_lines),
    ]

    block = [match.opening_line, *(f"{INDENT}{line}" for line in patched_body_lines), match.closing_line]
    return [line.rstrip() for line in block]


def patch_method(lines: List[str], method: MethodSignature) -> int:
    """Rewrite every unpatched declaration of ``method`` in place, returns how many were patched."""
    patched = 0
    # Walk backwards so earlier spans stay valid while later ones change length
    for match in reversed(find_methods(lines, method)):
        if not match.body or is_patched(match):
            continue
        lines[match.start:match.end + 1] = build_patched_method(match, method.policy)
        patched += 1
    return patched


def patch_smali(content: str, crlf: bool = False) -> PatchResult:
    """
    Disable certificate pinning in the smali source ``content``.

    ``crlf`` tells the patcher the file uses Windows line endings: matching is
    done on LF text and the patched result is converted back to CRLF.
    """
    original_content = content
    # An LF-only file keeps its LF endings even when CRLF is expected
    crlf = crlf and '\r\n' in content
    if crlf:
        # Replace CRLF with LF, so that patches can just use '\n'
        content = content.replace('\r\n', '\n')

    lines = content.split('\n')
    patched_methods: List[str] = []
    for method in METHOD_SIGNATURES:
        if patch_method(lines, method):
            patched_methods.append(method.method_name)

    if not patched_methods:
        return PatchResult(False, original_content)

    patched_content = '\n'.join(lines)
    if crlf:
        patched_content = patched_content.replace('\n', '\r\n')

    if patched_content == original_content:
        return PatchResult(False, original_content)
    return PatchResult(True, patched_content, tuple(patched_methods))
