"""
PII scrubbing for sample values sent to the mapping assistant.

Letters and digits are masked but punctuation and length survive, so the
model still sees the *shape* of a value ("aaa@aaa.aaa", "000-000-0000").
"""
from typing import Any, Dict, List, Sequence
import re

_UPPER = re.compile(r"[A-Z]")
_LOWER = re.compile(r"[a-z]")
_DIGIT = re.compile(r"[0-9]")


def scrub_value(value: Any) -> str:
    text = "" if value is None else str(value)
    text = _UPPER.sub("A", text)
    text = _LOWER.sub("a", text)
    return _DIGIT.sub("0", text)


def build_scrubbed_samples(
    rows: Sequence[Dict[str, Any]],
    headers: Sequence[str],
    max_rows: int = 20,
) -> Dict[str, List[str]]:
    """Scrubbed sample values per header from the first ``max_rows`` rows."""
    samples: Dict[str, List[str]] = {header: [] for header in headers}
    for row in rows[:max_rows]:
        for header in headers:
            samples[header].append(scrub_value(row.get(header)))
    return samples
