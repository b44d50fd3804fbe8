# OpenAI-compatible chat client used for summaries, knowledge cards and review plans.
# Works with any provider exposing /chat/completions (OpenAI, DeepSeek, Moonshot).


import json
import logging

import requests

from config import Settings
from models import CardContent, PlanItem, SummarizeResponse

logger = logging.getLogger("studytrace.llm")


class LLMError(Exception):
    pass


SUMMARIZE_SYSTEM_PROMPT = """You are a study review assistant that organizes what the user learned from web pages.
Always answer with valid JSON. The output is used for later review, so do not make things up."""

SUMMARIZE_USER_TEMPLATE = """Write a structured summary of this web page.

Title: {title}
URL: {url}

Content:
{text}

Answer ONLY with this JSON (no markdown code fences):
{{
    "summary": "one-sentence summary",
    "key_points": ["point 1", "point 2", "point 3"],
    "tags": ["tag 1", "tag 2"]
}}

Rules:
- summary: one sentence capturing the core idea
- key_points: 3-7 short key points
- tags: 1-3 topic tags"""

CARD_SYSTEM_PROMPT = """You turn study material into knowledge cards that can be reviewed later.
Always answer with valid JSON. Be concrete and structured, avoid vague statements."""

CARD_USER_TEMPLATE = """Create a knowledge card from this learning record.

Title: {title}
Summary: {summary}

Source text:
{text}

Answer ONLY with this JSON (no markdown code fences):
{{
    "title": "card title",
    "summary": "one-sentence core summary",
    "key_points": ["point 1", "point 2", "point 3"],
    "terms": [
        {{"term": "term 1", "definition": "definition 1"}},
        {{"term": "term 2", "definition": "definition 2"}}
    ],
    "misconceptions": ["common mistake 1", "common mistake 2"],
    "self_quiz": [
        {{"q": "question 1", "a": "answer 1", "explain": "explanation 1"}},
        {{"q": "question 2", "a": "answer 2", "explain": "explanation 2"}}
    ]
}}

Rules:
- terms: 2-5 key terms with definitions
- misconceptions: 1-3 common misconceptions or pitfalls
- self_quiz: 2-4 self-test questions"""

PLAN_SYSTEM_PROMPT = """You plan study review tasks for the user.
Always answer with valid JSON. Tasks must be concrete and actionable."""

PLAN_USER_TEMPLATE = """Create a review plan for {date} based on the user's recent learning records.

Recent learning records:
{records}

Answer ONLY with this JSON (no markdown code fences):
{{
    "items": [
        {{"title": "task title", "action": "concrete action", "reason": "why", "record_id": 1}}
    ]
}}

Rules:
- 3-5 concrete, actionable review tasks
- every task refers to one of the records above
- actions are specific, e.g. 're-read the card and answer 2 self-test questions'"""


def extract_json(content: str) -> dict:
    """Parse the outermost JSON object in a model response."""
    start = content.find("{")
    end = content.rfind("}") + 1
    if start < 0 or end <= start:
        raise LLMError("Could not find JSON in model response")
    try:
        return json.loads(content[start:end])
    except json.JSONDecodeError as e:
        raise LLMError(f"JSON parse error: {e}") from e


class LLMClient:
    HEADERS = {
        "Accept": "application/json",
        "Content-Type": "application/json",
        "User-Agent": "StudyTrace/1.0",
    }

    def __init__(self, base_url, api_key, model="gpt-3.5-turbo", timeout=20.0, max_input_chars=12000):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.max_input_chars = max_input_chars

    @classmethod
    def from_settings(cls, settings: Settings) -> "LLMClient":
        return cls(
            base_url=settings.llm_base_url,
            api_key=settings.llm_api_key,
            model=settings.llm_model,
            timeout=settings.request_timeout_s,
            max_input_chars=settings.max_input_chars,
        )

    def chat(self, message=None, messages=None, system=None, model=None, temperature=0.3):
        """
        Send a chat request and return the assistant message dict.
        Either a single user ``message`` (optionally with a ``system`` prompt)
        or a full ``messages`` list must be given.
        """
        if messages is None:
            if message is None:
                raise ValueError("Must provide 'message' or 'messages'")
            messages = []
            if system:
                messages.append({"role": "system", "content": system})
            messages.append({"role": "user", "content": message})

        payload = {
            "messages": messages,
            "model": model or self.model,
            "temperature": temperature,
        }
        headers = {**self.HEADERS, "Authorization": f"Bearer {self.api_key}"}

        try:
            response = requests.post(
                f"{self.base_url}/chat/completions",
                headers=headers,
                json=payload,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise LLMError(f"API request failed: {e}") from e

        if not response.ok:
            raise LLMError(f"API request failed: {response.status_code} - {response.text}")

        try:
            return response.json()["choices"][0]["message"]
        except (ValueError, KeyError, IndexError) as e:
            raise LLMError(f"Unexpected API response: {e}") from e

    def _chat_json(self, system, message, temperature):
        reply = self.chat(message=message, system=system, temperature=temperature)
        return extract_json(reply.get("content") or "")

    def summarize(self, title: str, url: str, text: str) -> dict:
        """Summary, key points and tags for a page. Falls back to the raw text."""
        text = text[:self.max_input_chars]
        prompt = SUMMARIZE_USER_TEMPLATE.format(title=title, url=url, text=text)
        try:
            data = self._chat_json(SUMMARIZE_SYSTEM_PROMPT, prompt, temperature=0.3)
            result = SummarizeResponse.model_validate({
                "summary": data.get("summary") or "Could not generate a summary",
                "key_points": data.get("key_points") or [],
                "tags": data.get("tags") or [],
            })
        except (LLMError, ValueError) as e:
            logger.warning("LLM summarize failed: %s", e)
            return {
                "summary": text[:400] + "... (LLM unavailable)",
                "key_points": [],
                "tags": [],
            }

        return result.model_dump()

    def generate_card(self, title: str, summary: str, text: str) -> CardContent:
        text = text[:self.max_input_chars]
        prompt = CARD_USER_TEMPLATE.format(title=title, summary=summary, text=text)
        try:
            data = self._chat_json(CARD_SYSTEM_PROMPT, prompt, temperature=0.3)
            data.setdefault("title", title)
            return CardContent.model_validate(data)
        except (LLMError, ValueError) as e:
            logger.warning("LLM generate_card failed: %s", e)
            return CardContent(title=title, summary=summary or "Could not generate a card")

    def generate_plan(self, date: str, records: list[dict]) -> list[PlanItem]:
        """
        Review plan items for ``date``.
        ``records`` carry id, title, summary and tags.
        """
        listing = "\n\n".join(
            f"{i + 1}. [{r['id']}] {r['title']}\n   Summary: {r['summary']}\n   Tags: {', '.join(r['tags'])}"
            for i, r in enumerate(records)
        )
        prompt = PLAN_USER_TEMPLATE.format(date=date, records=listing)
        try:
            data = self._chat_json(PLAN_SYSTEM_PROMPT, prompt, temperature=0.5)
            return [PlanItem.model_validate(item) for item in data.get("items", [])]
        except (LLMError, ValueError) as e:
            logger.warning("LLM generate_plan failed: %s", e)
            return [
                PlanItem(
                    title=f"Review: {r['title']}",
                    action="Re-read the summary and recall the key points",
                    reason="Recently studied",
                    record_id=r["id"],
                )
                for r in records
            ]
