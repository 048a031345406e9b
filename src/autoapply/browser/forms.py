from __future__ import annotations

import re

from bs4 import BeautifulSoup, Tag

from autoapply.types import FieldDescriptor, ScreeningQuestion

SKIPPED_INPUT_TYPES = {"hidden", "submit", "button", "reset", "image", "file"}
CHOICE_INPUT_TYPES = {"radio", "checkbox"}
QUESTION_GROUP_SELECTOR = '[role="group"], .screening-question, .question-group, fieldset'

_HIDDEN_STYLE = re.compile(r"display\s*:\s*none|visibility\s*:\s*hidden", re.IGNORECASE)


def extract_fields(html: str) -> list[FieldDescriptor]:
    """Return the visible text-like form controls on the page.

    Choice inputs and controls inside a question group are left to the
    screening question pass.
    """
    soup = BeautifulSoup(html, "html.parser")
    question_groups = {id(group) for group in soup.select(QUESTION_GROUP_SELECTOR)}
    fields: list[FieldDescriptor] = []
    seen: set[str] = set()

    for element in soup.find_all(["input", "textarea", "select"]):
        input_type = _input_type(element)
        if input_type in SKIPPED_INPUT_TYPES or input_type in CHOICE_INPUT_TYPES:
            continue
        if _is_hidden(element):
            continue
        if any(id(parent) in question_groups for parent in element.parents):
            continue

        name = str(element.get("name") or "")
        element_id = str(element.get("id") or "")
        if not name and not element_id:
            continue

        field = FieldDescriptor(
            tag=element.name,
            input_type=input_type,
            name=name,
            element_id=element_id,
            placeholder=str(element.get("placeholder") or ""),
            label=_label_for(soup, element),
            value=_current_value(element),
            required=element.has_attr("required") or element.get("aria-required") == "true",
            options=_select_options(element) if element.name == "select" else [],
        )
        if field.selector in seen:
            continue
        seen.add(field.selector)
        fields.append(field)

    return fields


def extract_screening_questions(html: str) -> list[ScreeningQuestion]:
    soup = BeautifulSoup(html, "html.parser")
    groups = soup.select(QUESTION_GROUP_SELECTOR)
    group_ids = {id(group) for group in groups}
    questions: list[ScreeningQuestion] = []

    for group in groups:
        # Nested matches describe the same question as their outer group.
        if any(id(parent) in group_ids for parent in group.parents):
            continue
        if _is_hidden(group):
            continue

        question = _question_from_group(group)
        if question is not None:
            questions.append(question)

    return questions


def _question_from_group(group: Tag) -> ScreeningQuestion | None:
    select = group.find("select")
    if select is not None and not _is_hidden(select):
        return ScreeningQuestion(
            text=_question_text(group),
            input_type="select",
            selector=_control_selector(select),
            options=_select_options(select),
        )

    choices = [
        element
        for element in group.find_all("input")
        if _input_type(element) in CHOICE_INPUT_TYPES and element.get("name")
    ]
    if choices:
        first = choices[0]
        options = [_choice_label(group, element) for element in choices]
        return ScreeningQuestion(
            text=_question_text(group),
            input_type=_input_type(first),
            selector=f'input[name="{first["name"]}"]',
            options=[option for option in options if option],
        )

    for element in group.find_all(["textarea", "input"]):
        input_type = _input_type(element)
        if input_type in SKIPPED_INPUT_TYPES or _is_hidden(element):
            continue
        if not element.get("name") and not element.get("id"):
            continue
        return ScreeningQuestion(
            text=_question_text(group),
            input_type=input_type,
            selector=_control_selector(element),
        )

    return None


def _question_text(group: Tag) -> str:
    for candidate in (
        group.find("legend"),
        group.select_one(".question-text, .question-label, [data-question]"),
        group.find(["h1", "h2", "h3", "h4", "h5", "h6", "p"]),
    ):
        if candidate is not None:
            text = _clean_text(candidate.get_text(" ", strip=True))
            if text:
                return text
    if group.get("aria-label"):
        return _clean_text(str(group["aria-label"]))
    return _clean_text(group.get_text(" ", strip=True))


def _choice_label(group: Tag, element: Tag) -> str:
    element_id = element.get("id")
    if element_id:
        label = group.find("label", attrs={"for": element_id})
        if label is not None:
            return _clean_text(label.get_text(" ", strip=True))
    wrapper = element.find_parent("label")
    if wrapper is not None:
        return _clean_text(wrapper.get_text(" ", strip=True))
    return str(element.get("value") or "")


def _label_for(soup: BeautifulSoup, element: Tag) -> str:
    element_id = element.get("id")
    if element_id:
        label = soup.find("label", attrs={"for": element_id})
        if label is not None:
            return _clean_text(label.get_text(" ", strip=True))

    wrapper = element.find_parent("label")
    if wrapper is not None:
        return _clean_text(wrapper.get_text(" ", strip=True))

    if element.get("aria-label"):
        return _clean_text(str(element["aria-label"]))
    return _clean_text(str(element.get("placeholder") or ""))


def _control_selector(element: Tag) -> str:
    if element.get("id"):
        return f"#{element['id']}"
    return f'{element.name}[name="{element["name"]}"]'


def _current_value(element: Tag) -> str:
    if element.name == "textarea":
        return element.get_text().strip()
    if element.name == "select":
        selected = element.find("option", selected=True)
        if selected is None:
            return ""
        return str(selected.get("value") or selected.get_text(strip=True))
    return str(element.get("value") or "")


def _select_options(element: Tag) -> list[str]:
    options = []
    for option in element.find_all("option"):
        text = _clean_text(option.get_text(" ", strip=True))
        if not text or option.get("value") == "":
            continue
        options.append(text)
    return options


def _input_type(element: Tag) -> str:
    if element.name == "textarea":
        return "textarea"
    if element.name == "select":
        return "select"
    return str(element.get("type") or "text").lower()


def _is_hidden(element: Tag) -> bool:
    for node in [element, *element.parents]:
        if not isinstance(node, Tag):
            continue
        if node.has_attr("hidden") or node.get("aria-hidden") == "true":
            return True
        if _HIDDEN_STYLE.search(str(node.get("style") or "")):
            return True
    return False


def _clean_text(value: str) -> str:
    return " ".join(value.replace("*", " ").split())
