"""Reconciliation of expected output with actual output."""

import logging
from typing import List, Sequence

from sqlidem.script.formats import FormattedResult

logger = logging.getLogger(__name__)


def reconcile(expected: Sequence[str], actual: FormattedResult, sort: bool) -> List[str]:
    """Merge expected output lines with an actual result.

    The actual header and footer are always used. Body rows are emitted in
    the order the expected output lists them, as long as the actual result
    contains them: anywhere in the result if ``sort`` is set, otherwise
    only while they match the next actual row. Actual rows not matched
    this way follow in their own order.

    With ``sort`` set, a result whose rows are the expected rows in a
    different order therefore reproduces the expected text exactly.

    Args:
        expected: Expected output lines from the script.
        actual: Formatted actual result.
        sort: Whether the row order of the query is not deterministic.

    Returns:
        Lines to write.
    """
    lines = list(expected)
    header = lines[:len(actual.header)]
    del lines[:len(header)]
    footer_count = min(len(actual.footer), len(lines))
    footer = lines[len(lines) - footer_count:]
    del lines[len(lines) - footer_count:]
    if expected and (header != actual.header[:len(header)]
                     or footer != actual.footer[len(actual.footer) - footer_count:]):
        logger.debug("Expected header or footer differs from actual output")

    output = list(actual.header)
    pool = list(actual.body)
    for line in lines:
        if sort:
            if line in pool:
                pool.remove(line)
                output.append(line)
        elif pool and pool[0] == line:
            output.append(pool.pop(0))
    output.extend(pool)
    output.extend(actual.footer)
    return output
