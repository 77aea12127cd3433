"""Options and output records shared by the generators."""

from pathlib import Path
from typing import Literal

from loguru import logger
from pydantic import BaseModel

FileType = Literal[
    "service-class",
    "test",
    "mock",
    "class-metadata",
    "credential-descriptor",
    "service-descriptor",
]


class GenerationOptions(BaseModel):
    generate_test_class: bool = True
    generate_mock_service: bool = True
    include_comments: bool = True
    use_bulk_api: bool = False
    async_processing: bool = False
    error_handling: Literal["basic", "advanced"] = "advanced"
    naming_convention: Literal["camelCase", "PascalCase"] = "camelCase"
    output_path: str = "force-app/main/default/classes"


class GeneratedFile(BaseModel):
    """One emitted artifact; identified only by where it goes."""

    file_name: str
    content: str
    type: FileType
    path: str  # directory, relative to the project root

    @property
    def relative_path(self) -> Path:
        return Path(self.path) / self.file_name


def write_generated_file(file: GeneratedFile, root: Path = Path(".")) -> Path:
    """Write one generated file under ``root``.

    This is the only generator step touching the filesystem. OSErrors
    (permissions, disk full) propagate unchanged and are not retried.
    """
    target = root / file.relative_path
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(file.content, encoding="utf-8")
    logger.debug("Wrote {}", target)
    return target
