from autoapply.browser.ats import detect_ats


def test_detect_ats_by_url_marker() -> None:
    assert detect_ats("https://acme.wd5.myworkdayjobs.com/en-US/careers/job/1") == "workday"
    assert detect_ats("https://boards.greenhouse.io/acme/jobs/1") == "greenhouse"
    assert detect_ats("https://jobs.lever.co/acme/1") == "lever"
    assert detect_ats("https://career5.successfactors.eu/career?company=acme") == "successfactors"
    assert detect_ats("https://careers-acme.icims.com/jobs/1/job") == "icims"
    assert detect_ats("https://www.linkedin.com/jobs/view/123456") == "linkedin"


def test_url_marker_wins_over_content_marker() -> None:
    html = "<html><body>Powered by Workday</body></html>"
    assert detect_ats("https://jobs.lever.co/acme/1", html) == "lever"


def test_content_marker_used_when_url_is_unknown() -> None:
    assert detect_ats("https://careers.acme.com/1", "<script src='greenhouse.js'></script>") == "greenhouse"
    assert detect_ats("https://careers.acme.com/1", "<p>Applicant portal by iCIMS</p>") == "icims"


def test_linkedin_marker_requires_jobs_path() -> None:
    assert detect_ats("https://www.linkedin.com/in/someone") == "generic"


def test_unmatched_page_is_generic() -> None:
    assert detect_ats("https://example.com/jobs/1", "<h1>Backend Engineer</h1>") == "generic"
