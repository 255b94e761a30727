"""Runtime settings read from the environment."""

import os
import tempfile
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field

DEFAULT_KEYWORDS = (
    "Quality Assurance QA Analyst Test Engineer Manual Testing Automated Testing "
    "Regression Testing Integration Testing Functional Testing Selenium WebDriver "
    "Cypress Playwright SpecFlow Cucumber BDD TDD API Testing Postman RestAssured "
    "SQL Queries Database Testing Mobile Testing Appium Jira Jenkins Azure DevOps "
    "Git CI/CD Pipelines Agile Scrum Kanban Defect Management Test Planning Documentation"
)

DEFAULT_VISIBLE_LINES = ("Your Name", "Software Engineer")


class Settings(BaseModel):
    """Process-wide settings. Built once by get_settings()."""

    output_dir: Path = Field(
        default_factory=lambda: Path(tempfile.gettempdir()) / "bats"
    )
    default_keywords: str = DEFAULT_KEYWORDS
    visible_lines: tuple[str, ...] = DEFAULT_VISIBLE_LINES
    max_upload_mb: int = Field(default=10, ge=1)
    # Euclidean distance on the 0-255 RGB scale under which a fill colour
    # counts as "the page background".
    invisible_tolerance: float = Field(default=8.0, ge=0)
    invisible_font_size: float = Field(default=1.0, gt=0)
    verify_output: bool = True
    taxonomy_path: Path | None = None

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def settings_from_env() -> Settings:
    """Build Settings from BATS_* environment variables."""
    values: dict = {}
    if os.getenv("BATS_OUTPUT_DIR"):
        values["output_dir"] = Path(os.environ["BATS_OUTPUT_DIR"])
    if os.getenv("BATS_DEFAULT_KEYWORDS"):
        values["default_keywords"] = os.environ["BATS_DEFAULT_KEYWORDS"]
    if os.getenv("BATS_MAX_UPLOAD_MB"):
        values["max_upload_mb"] = int(os.environ["BATS_MAX_UPLOAD_MB"])
    if os.getenv("BATS_INVISIBLE_TOLERANCE"):
        values["invisible_tolerance"] = float(os.environ["BATS_INVISIBLE_TOLERANCE"])
    if os.getenv("BATS_INVISIBLE_FONT_SIZE"):
        values["invisible_font_size"] = float(os.environ["BATS_INVISIBLE_FONT_SIZE"])
    if os.getenv("BATS_VERIFY_OUTPUT"):
        values["verify_output"] = _env_bool(os.environ["BATS_VERIFY_OUTPUT"])
    if os.getenv("BATS_TAXONOMY_PATH"):
        values["taxonomy_path"] = Path(os.environ["BATS_TAXONOMY_PATH"])
    return Settings(**values)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return settings_from_env()
