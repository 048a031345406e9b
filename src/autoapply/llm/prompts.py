from __future__ import annotations

FIELD_VALUE_PROMPT = """
Given this application form field and the candidate context, provide the most appropriate value.

Field JSON:
{field_json}

Job: {job_title} at {company}
Candidate: {full_name}
Current role: {current_job_title}
Experience: {years_experience} years
Location: {location}

Reply with only the value to enter in the field, with no explanation.
If the field cannot be answered truthfully from this context, reply exactly: SKIP
""".strip()

SCREENING_ANSWER_PROMPT = """
Draft a concise, professional answer to this job application screening question.

Question:
{question}

Answer options (empty means free text):
{options_json}

Job: {job_title} at {company}
Candidate facts:
{user_json}

For yes/no questions reply "Yes" or "No". When options are given, reply with one option verbatim.
Use only the candidate facts. If the answer is unknown, reply exactly: SKIP
""".strip()
