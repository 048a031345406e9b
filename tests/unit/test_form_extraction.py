from autoapply.browser.forms import extract_fields, extract_screening_questions

FORM = """
<form>
  <input type="hidden" name="csrf" value="abc">
  <label for="first_name">First name *</label>
  <input id="first_name" name="first_name" required>
  <label>Cover letter <textarea name="cover_letter"></textarea></label>
  <input name="salary" aria-label="Desired salary">
  <input name="city" placeholder="City">
  <input name="nickname" style="display: none">
  <div hidden><input name="ghost"></div>
  <select name="country">
    <option value="">Choose one</option>
    <option value="us">United States</option>
    <option value="gb" selected>United Kingdom</option>
  </select>
  <input type="file" name="resume">
  <input type="submit" value="Apply">
  <input type="checkbox" name="consent">
</form>
"""

QUESTIONS = """
<form>
  <fieldset>
    <legend>Are you authorized to work in the US?</legend>
    <label><input type="radio" name="auth" value="yes"> Yes</label>
    <label><input type="radio" name="auth" value="no"> No</label>
  </fieldset>
  <div class="screening-question">
    <p>How did you hear about us?</p>
    <select id="source"><option value="">Select</option><option>Referral</option><option>Job board</option></select>
  </div>
  <div class="question-group" style="visibility:hidden">
    <p>Hidden question</p><input name="hidden_q">
  </div>
  <div role="group" aria-label="Years of Python experience">
    <div role="group"><input name="python_years" type="number"></div>
  </div>
</form>
"""


def test_extract_fields_skips_hidden_and_non_text_controls() -> None:
    fields = extract_fields(FORM)
    names = [field.name for field in fields]

    assert names == ["first_name", "cover_letter", "salary", "city", "country"]


def test_extract_fields_reads_labels_values_and_options() -> None:
    by_name = {field.name: field for field in extract_fields(FORM)}

    assert by_name["first_name"].label == "First name"
    assert by_name["first_name"].required is True
    assert by_name["first_name"].selector == "#first_name"
    assert by_name["cover_letter"].label == "Cover letter"
    assert by_name["cover_letter"].selector == 'textarea[name="cover_letter"]'
    assert by_name["salary"].label == "Desired salary"
    assert by_name["city"].display_name == "City"
    assert by_name["country"].value == "gb"
    assert by_name["country"].options == ["United States", "United Kingdom"]


def test_extract_screening_questions_by_group() -> None:
    questions = extract_screening_questions(QUESTIONS)

    assert [question.text for question in questions] == [
        "Are you authorized to work in the US?",
        "How did you hear about us?",
        "Years of Python experience",
    ]

    auth, source, years = questions
    assert auth.input_type == "radio"
    assert auth.selector == 'input[name="auth"]'
    assert auth.options == ["Yes", "No"]
    assert source.input_type == "select"
    assert source.selector == "#source"
    assert source.options == ["Referral", "Job board"]
    assert years.input_type == "number"
    assert years.selector == 'input[name="python_years"]'


def test_extract_screening_questions_ignores_groups_without_controls() -> None:
    assert extract_screening_questions("<fieldset><legend>Intro</legend><p>Hello</p></fieldset>") == []


def test_extract_fields_leaves_question_group_controls_to_screening_pass() -> None:
    html = """
    <form>
      <input id="email" name="email" type="email">
      <div class="screening-question">
        <p>What is your notice period?</p>
        <input name="notice_period">
      </div>
    </form>
    """

    assert [field.name for field in extract_fields(html)] == ["email"]
    assert [question.text for question in extract_screening_questions(html)] == ["What is your notice period?"]
    assert extract_fields(QUESTIONS) == []
