"""
Environment Diagnostics

Checks behind `ome doctor`:
- SSL_CERT_FILE: TLS clients need a CA bundle. Some distributions keep it
  where the TLS library does not look, so the variable has to point at it.
- Toolchain override: crates using #![feature(...)] only build on the
  nightly channel, which a rust-toolchain file pins per project.

Checks only inspect the environment; they never modify it.
"""

import os
import re
import shutil
import ssl
import subprocess
import tomllib
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Mapping, Sequence

from .common.logging_setup import get_service_logger

logger = get_service_logger("diagnostics")

SSL_CERT_FILE_VAR = "SSL_CERT_FILE"
PEM_CERT_MARKER = b"-----BEGIN CERTIFICATE-----"

# Well-known CA bundle locations, most common first
CA_BUNDLE_CANDIDATES: tuple[str, ...] = (
    "/etc/ssl/certs/ca-certificates.crt",                 # Debian, Ubuntu, Arch
    "/etc/pki/tls/certs/ca-bundle.crt",                   # Fedora, RHEL
    "/etc/pki/ca-trust/extracted/pem/tls-ca-bundle.pem",  # RHEL 7+
    "/etc/ssl/ca-bundle.pem",                             # openSUSE
    "/etc/ssl/cert.pem",                                  # Alpine, macOS
)

TOOLCHAIN_FILES = ("rust-toolchain.toml", "rust-toolchain")
NIGHTLY_HINT = "echo nightly > rust-toolchain"

_FEATURE_RE = re.compile(r"#!\[\s*feature\s*\(([^)]*)\)\s*\]")
_LINE_COMMENT_RE = re.compile(r"//.*$", re.MULTILINE)


class CheckStatus(str, Enum):
    OK = "ok"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class CheckResult:
    """Outcome of one environment check"""
    name: str
    status: CheckStatus
    message: str
    hint: str | None = None

    @classmethod
    def success(cls, name: str, message: str) -> "CheckResult":
        return cls(name, CheckStatus.OK, message)

    @classmethod
    def warning(cls, name: str, message: str, hint: str | None = None) -> "CheckResult":
        return cls(name, CheckStatus.WARNING, message, hint)

    @classmethod
    def error(cls, name: str, message: str, hint: str | None = None) -> "CheckResult":
        return cls(name, CheckStatus.ERROR, message, hint)

    @property
    def failed(self) -> bool:
        return self.status is CheckStatus.ERROR

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "status": self.status.value,
            "message": self.message,
            "hint": self.hint,
        }


# Runs a command and returns the completed process
CommandRunner = Callable[[Sequence[str]], subprocess.CompletedProcess]


def default_runner(cmd: Sequence[str]) -> subprocess.CompletedProcess:
    return subprocess.run(list(cmd), capture_output=True, text=True, timeout=10, check=False)


# ============================================
# SSL_CERT_FILE
# ============================================

def _bundle_problem(path: Path) -> str | None:
    """Why a path is not a usable CA bundle, or None if it is"""
    if not path.exists():
        return "does not exist"
    if not path.is_file():
        return "is not a file"
    try:
        data = path.read_bytes()
    except OSError as e:
        return f"is not readable ({e.strerror or e})"
    if not data.strip():
        return "is empty"
    if PEM_CERT_MARKER not in data:
        return "contains no PEM certificates"
    return None


def _first_bundle(candidates: Sequence[str]) -> str | None:
    for candidate in candidates:
        if _bundle_problem(Path(candidate)) is None:
            return candidate
    return None


def _default_cafile() -> str | None:
    """CA file the interpreter's TLS stack uses when nothing is configured"""
    paths = ssl.get_default_verify_paths()
    if paths.cafile and Path(paths.cafile).is_file():
        return paths.cafile
    return None


def check_ssl_cert_file(
    environ: Mapping[str, str] | None = None,
    candidates: Sequence[str] = CA_BUNDLE_CANDIDATES,
    default_cafile: Callable[[], str | None] = _default_cafile,
) -> CheckResult:
    """
    Check that TLS clients can find a CA bundle.

    Args:
        environ: Environment to inspect (defaults to os.environ)
        candidates: Bundle locations to suggest, in order of preference
        default_cafile: Resolves the TLS library's built-in CA file
    """
    environ = os.environ if environ is None else environ
    name = SSL_CERT_FILE_VAR
    value = environ.get(SSL_CERT_FILE_VAR, "").strip()
    found = _first_bundle(candidates)

    if value:
        problem = _bundle_problem(Path(value))
        if problem is None:
            return CheckResult.success(name, f"ok ({value})")
        hint = (
            f"export {SSL_CERT_FILE_VAR}={found}"
            if found
            else "Install your distribution's ca-certificates package"
        )
        return CheckResult.error(name, f"{value} {problem}", hint=hint)

    builtin = default_cafile()
    if builtin:
        return CheckResult.success(name, f"not set, TLS default bundle found ({builtin})")

    if found:
        return CheckResult.warning(
            name,
            f"not set and the TLS default bundle is missing; found {found}",
            hint=f"export {SSL_CERT_FILE_VAR}={found}",
        )

    return CheckResult.error(
        name,
        "not set and no CA bundle found",
        hint="Install your distribution's ca-certificates package, then set SSL_CERT_FILE",
    )


# ============================================
# TOOLCHAIN OVERRIDE
# ============================================

def find_feature_gates(project_dir: str | Path) -> list[str]:
    """Unstable feature gates declared by crate roots under src/"""
    src = Path(project_dir) / "src"
    gates: set[str] = set()
    if not src.is_dir():
        return []

    for path in src.rglob("*.rs"):
        try:
            text = path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            logger.warning(f"Cannot read {path}: {e}")
            continue
        for match in _FEATURE_RE.finditer(_LINE_COMMENT_RE.sub("", text)):
            gates.update(g.strip() for g in match.group(1).split(",") if g.strip())

    return sorted(gates)


def read_toolchain_channel(project_dir: str | Path) -> str | None:
    """
    Channel pinned by the project's toolchain override file.

    rust-toolchain.toml wins over the legacy single-line rust-toolchain.
    The legacy file may also be TOML, which newer toolchain managers accept.
    """
    project = Path(project_dir)

    for filename in TOOLCHAIN_FILES:
        path = project / filename
        if not path.is_file():
            continue

        try:
            text = path.read_text(encoding="utf-8").strip()
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Cannot read {path}: {e}")
            continue
        if not text:
            continue

        if filename.endswith(".toml") or text.startswith("["):
            try:
                data = tomllib.loads(text)
            except tomllib.TOMLDecodeError as e:
                logger.warning(f"Cannot parse {path}: {e}")
                continue
            toolchain = data.get("toolchain")
            if not isinstance(toolchain, dict):
                logger.warning(f"{path} has no [toolchain] table")
                continue
            channel = toolchain.get("channel")
            if channel:
                return str(channel).strip()
            continue

        return text.splitlines()[0].strip()

    return None


def _rustc_version(runner: CommandRunner) -> tuple[str | None, str | None]:
    """(version line, error) for the rustc on PATH"""
    if not shutil.which("rustc"):
        return None, None
    try:
        result = runner(["rustc", "--version"])
    except (OSError, subprocess.SubprocessError) as e:
        return None, str(e)
    if result.returncode != 0:
        return None, (result.stderr or "").strip() or f"exit code {result.returncode}"
    return result.stdout.strip(), None


def check_toolchain_override(
    project_dir: str | Path,
    runner: CommandRunner = default_runner,
) -> CheckResult:
    """Check that a crate using unstable features pins the nightly channel"""
    name = "toolchain"
    project = Path(project_dir)

    if not (project / "Cargo.toml").is_file():
        return CheckResult.warning(name, f"{project} is not a cargo project (no Cargo.toml)")

    gates = find_feature_gates(project)
    channel = read_toolchain_channel(project)

    version, version_error = _rustc_version(runner)
    if version_error:
        suffix = f" [rustc failed: {version_error}]"
    else:
        suffix = f" [{version}]" if version else ""

    gate_list = ", ".join(gates)
    if gates and channel is None:
        return CheckResult.error(
            name,
            f"unstable features ({gate_list}) used but no toolchain override file{suffix}",
            hint=NIGHTLY_HINT,
        )
    if gates and not channel.startswith("nightly"):
        return CheckResult.error(
            name,
            f"unstable features ({gate_list}) need nightly, override pins '{channel}'{suffix}",
            hint=NIGHTLY_HINT,
        )

    if gates:
        message = f"ok ({channel} for {gate_list}){suffix}"
    else:
        message = f"ok (no unstable features, channel {channel or 'default'}){suffix}"

    if version_error:
        return CheckResult.warning(name, message)
    return CheckResult.success(name, message)


# ============================================
# RUNNER
# ============================================

def run_checks(
    project_dir: str | Path = ".",
    environ: Mapping[str, str] | None = None,
    runner: CommandRunner = default_runner,
) -> list[CheckResult]:
    """Run every environment check"""
    results = [
        check_ssl_cert_file(environ),
        check_toolchain_override(project_dir, runner=runner),
    ]
    for result in results:
        if result.status is not CheckStatus.OK:
            logger.debug(
                f"{result.name}: {result.message}",
                extra={"check": result.name, "status": result.status.value},
            )
    return results


def exit_code(results: Sequence[CheckResult]) -> int:
    return 1 if any(result.failed for result in results) else 0
