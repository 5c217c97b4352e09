import asyncio
import mimetypes
import sys
from pathlib import Path


def validate_file():
    """Validate a local file - usage: validate-file <path> [--content-type TYPE]."""
    from invoice_gate.core.config import settings, validation_options_from_settings
    from invoice_gate.core.file_validation import FileValidator

    args = sys.argv[1:]
    path = None
    content_type = None
    i = 0
    while i < len(args):
        if args[i] == "--content-type" and i + 1 < len(args):
            content_type = args[i + 1]
            i += 2
            continue
        if not args[i].startswith("-"):
            path = args[i]
            i += 1
            continue
        i += 1
    if not path:
        print("Usage: validate-file <path> [--content-type TYPE]")
        print("Example: validate-file invoice.pdf --content-type application/pdf")
        sys.exit(2)

    file_path = Path(path)
    if content_type is None:
        content_type = mimetypes.guess_type(file_path.name)[0] or ""

    validator = FileValidator(validation_options_from_settings(settings))

    async def _run():
        if not file_path.is_file():
            return await validator.validate(None, content_type, 0)
        with open(file_path, "rb") as f:
            return await validator.validate(
                f, content_type, file_path.stat().st_size
            )

    result = asyncio.run(_run())
    print(result.model_dump_json(indent=2))
    sys.exit(0 if result.is_valid else 1)
