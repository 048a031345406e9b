from __future__ import annotations

from autoapply.types import AtsType

URL_MARKERS: tuple[tuple[AtsType, tuple[str, ...]], ...] = (
    ("workday", ("myworkdayjobs.com", "workday.com")),
    ("greenhouse", ("greenhouse.io",)),
    ("lever", ("lever.co",)),
    ("successfactors", ("successfactors.com", "successfactors.eu")),
    ("icims", ("icims.com",)),
    ("linkedin", ("linkedin.com/jobs",)),
)

CONTENT_MARKERS: tuple[tuple[AtsType, tuple[str, ...]], ...] = (
    ("workday", ("workday",)),
    ("greenhouse", ("greenhouse",)),
    ("lever", ("lever",)),
    ("successfactors", ("successfactors",)),
    ("icims", ("icims",)),
)


def detect_ats(url: str, content: str = "") -> AtsType:
    """Classify the applicant tracking system behind a job page.

    URL markers for every platform win over any content marker.
    """
    lowered_url = url.lower()
    for ats_type, markers in URL_MARKERS:
        if any(marker in lowered_url for marker in markers):
            return ats_type

    lowered_content = content.lower()
    for ats_type, markers in CONTENT_MARKERS:
        if any(marker in lowered_content for marker in markers):
            return ats_type

    return "generic"
