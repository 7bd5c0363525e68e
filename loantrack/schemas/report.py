from dataclasses import dataclass

PDF = "application/pdf"
XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@dataclass(frozen=True)
class ReportResult:
    """A rendered report, ready to be sent as a download."""
    file_name: str
    content: bytes
    content_type: str
