"""Upload intake data models"""

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class RawUpload:
    """Descriptor handed over by the intake collaborator.

    The temp file at ``temp_path`` belongs to the pipeline once the upload is
    submitted and is removed when processing finishes.
    """
    temp_path: Path
    declared_mime_type: str
    declared_size: int
    original_filename: str
