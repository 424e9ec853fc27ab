"""
Heuristic upload scan.

Looks for well-known threat markers in the first kilobyte of the file. This is
a placeholder for a real scanning service (ClamAV or a vendor API).
"""
import logging
import time
from dataclasses import dataclass, field
from typing import List

logger = logging.getLogger(__name__)

SCAN_WINDOW_BYTES = 1000
SUSPICIOUS_PATTERNS = ["virus", "malware", "trojan", "ransomware", "exploit"]


@dataclass
class VirusScanResult:
    is_clean: bool
    threats: List[str] = field(default_factory=list)
    scan_time_ms: int = 0


def scan_file(data: bytes, filename: str) -> VirusScanResult:
    start = time.time()
    content = data[:SCAN_WINDOW_BYTES].decode("utf-8", errors="ignore").lower()
    threats = [pattern for pattern in SUSPICIOUS_PATTERNS if pattern in content]

    if threats:
        logger.warning(f"Upload {filename} flagged by scan: {', '.join(threats)}")

    return VirusScanResult(
        is_clean=not threats,
        threats=threats,
        scan_time_ms=int((time.time() - start) * 1000),
    )
