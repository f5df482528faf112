"""Question files: markdown body with optional YAML frontmatter."""

from pathlib import Path

import frontmatter

from resolve.models import ProblemType


def parse_question_file(file_path: Path) -> tuple[str, ProblemType | None]:
    """Parse a markdown question file.

    Frontmatter may set ``type`` to one of the ProblemType values
    (e.g. ``type: single-select``).

    Returns:
        (question_text, problem_type) where problem_type is None when the
        file does not set one.

    Raises:
        ValueError: On an unknown ``type`` or an empty body.
    """
    post = frontmatter.load(str(file_path))
    content = post.content.strip()
    if not content:
        raise ValueError(f"Question file is empty: {file_path}")

    raw_type = post.metadata.get("type")
    if raw_type is None:
        return content, None
    try:
        return content, ProblemType(str(raw_type).strip().lower())
    except ValueError:
        allowed = ", ".join(t.value for t in ProblemType)
        raise ValueError(f"Unknown question type '{raw_type}' in {file_path} (expected one of: {allowed})") from None
