PDF = "application/pdf"
JPEG = "image/jpeg"
PNG = "image/png"
TIFF = "image/tiff"
ZIP = "application/zip"
CSV = "text/csv"
XLS = "application/vnd.ms-excel"
XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

INVOICE_CONTENT_TYPES: frozenset[str] = frozenset(
    {PDF, JPEG, PNG, TIFF, CSV, XLS, XLSX}
)
