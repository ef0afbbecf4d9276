"""Receipt scanner boundary.

The vision extraction itself lives outside this service. The scan route
only needs something that turns an uploaded file URL into structured
fields, or refuses the input.
"""

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class ReceiptScanner(Protocol):
    def scan(self, blob_url: str) -> dict[str, Any]:
        """Extract receipt fields (vendor, date, total, ...) from the file.

        Raises:
            ScanRejectedError: unsupported or unreadable input (not billed)
        """
        ...
