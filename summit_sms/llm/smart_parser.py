from __future__ import annotations
import json
import re
from pathlib import Path
from typing import Dict, List, Optional

from loguru import logger

from ..config import settings
from ..models.habit import HabitTrackingConfig
from ..models.parse_result import ParsedHabit, SmartParseResult
from .client import async_client

SMART_PARSER_PROMPT_PATH = Path(__file__).parent.parent / "prompts" / "smart_parser_system.txt"


class SmartParser:
    """
    Model-assisted interpretation of a free-text SMS against the user's habit list.

    The model's output is untrusted: it is validated against `SmartParseResult`
    and then normalized so that only listed habits survive and every habit is
    either loggable as-is or carries a complete clarification request.
    Any failure reads as "not understood"; this never raises.
    """

    def __init__(self, client=None, model: Optional[str] = None, max_attempts: Optional[int] = None):
        self.client = client or async_client
        self.model = model or settings.LLM_MODEL_ID
        self.max_attempts = max(1, max_attempts or settings.SMART_PARSER_MAX_ATTEMPTS)
        self.system_prompt = self._load_system_prompt()

    def _load_system_prompt(self) -> str:
        if SMART_PARSER_PROMPT_PATH.exists():
            return SMART_PARSER_PROMPT_PATH.read_text(encoding="utf-8")
        return "You map SMS messages to the user's tracked habits and reply with JSON only."

    @staticmethod
    def describe_habits(habits: List[HabitTrackingConfig]) -> List[dict]:
        described = []
        for h in habits:
            item = {"habit_name": h.habit_name, "type": h.tracking_type}
            if h.is_metric:
                item["unit"] = h.metric_unit or "units"
                item["daily_target"] = h.metric_target
                if h.unit_conversions:
                    item["known_conversions"] = h.unit_conversions
            described.append(item)
        return described

    def build_user_payload(self, message: str, first_name: str, habits: List[HabitTrackingConfig]) -> str:
        payload = {
            "first_name": first_name,
            "habits": self.describe_habits(habits),
            "message": message,
        }
        return json.dumps(payload, ensure_ascii=False)

    async def parse(self, message: str, first_name: str, habits: List[HabitTrackingConfig]) -> SmartParseResult:
        if not habits or not message.strip():
            return SmartParseResult.not_understood()

        messages = [
            {"role": "system", "content": self.system_prompt},
            {"role": "user", "content": self.build_user_payload(message, first_name, habits)},
        ]

        for attempt in range(1, self.max_attempts + 1):
            try:
                response = await self.client.chat.completions.create(
                    model=self.model,
                    messages=messages,
                    temperature=0.0,
                    timeout=settings.LLM_TIMEOUT_SECONDS,
                    extra_body={
                        "response_format": {"type": "json_object"}
                    },
                )
                if not response or not response.choices:
                    raise ValueError("Empty response from API")
                reply = response.choices[0].message.content or ""

                # models sometimes wrap JSON in markdown fences
                clean_json = re.sub(r"^```(?:json)?|```$", "", reply.strip(), flags=re.MULTILINE).strip()
                raw = SmartParseResult.model_validate_json(clean_json)
            except Exception as e:
                logger.warning("Smart parse attempt {}/{} failed: {}", attempt, self.max_attempts, e)
                continue

            result = self.normalize(raw, habits)
            logger.info(
                "Smart parse: understood={} habits={}",
                result.understood,
                [(h.habit_name, h.value, h.clarification_type) for h in result.habits],
            )
            return result

        return SmartParseResult.not_understood()

    @staticmethod
    def normalize(raw: SmartParseResult, habits: List[HabitTrackingConfig]) -> SmartParseResult:
        if not raw.understood:
            return SmartParseResult.not_understood()

        by_name: Dict[str, HabitTrackingConfig] = {h.habit_name.lower(): h for h in habits}
        cleaned: List[ParsedHabit] = []

        for item in raw.habits:
            item = item.model_copy(deep=True)

            if item.clarification_type == "habit_selection" or (item.habit_name is None and item.candidates):
                candidates: List[str] = []
                for name in item.candidates:
                    config = by_name.get(name.lower())
                    if config and config.habit_name not in candidates:
                        candidates.append(config.habit_name)
                if len(candidates) >= 2:
                    cleaned.append(ParsedHabit(
                        value=item.value,
                        needs_clarification=True,
                        clarification_type="habit_selection",
                        candidates=candidates,
                    ))
                    continue
                if len(candidates) == 1:
                    item.habit_name = candidates[0]
                    item.needs_clarification = False
                    item.clarification_type = None
                    item.candidates = []
                else:
                    continue

            config = by_name.get((item.habit_name or "").lower())
            if config is None:
                logger.debug("Dropping unknown habit '{}' from smart parse", item.habit_name)
                continue
            item.habit_name = config.habit_name
            item.candidates = []

            if config.is_metric:
                cleaned.append(SmartParser._normalize_metric(item, config))
            else:
                cleaned.append(SmartParser._normalize_boolean(item))

        if not cleaned:
            return SmartParseResult.not_understood()
        return SmartParseResult(understood=True, habits=cleaned, reply=raw.reply)

    @staticmethod
    def _normalize_metric(item: ParsedHabit, config: HabitTrackingConfig) -> ParsedHabit:
        if item.clarification_type == "unit_conversion" or (item.user_unit and item.needs_clarification):
            user_value = item.user_value
            if user_value is None and isinstance(item.value, float):
                user_value = item.value
            if item.user_unit and user_value is not None and user_value >= 0:
                item.needs_clarification = True
                item.clarification_type = "unit_conversion"
                item.user_value = user_value
                item.value = None
                return item
            return ParsedHabit(
                habit_name=item.habit_name,
                needs_clarification=True,
                clarification_type="metric_value_needed",
            )

        if not item.needs_clarification and isinstance(item.value, float) and item.value >= 0:
            item.clarification_type = None
            return item

        # "done" without a number, a negative number, or any other clarification
        return ParsedHabit(
            habit_name=item.habit_name,
            needs_clarification=True,
            clarification_type="metric_value_needed",
        )

    @staticmethod
    def _normalize_boolean(item: ParsedHabit) -> ParsedHabit:
        value = item.value
        if isinstance(value, float):
            value = value > 0
        if not item.needs_clarification and isinstance(value, bool):
            return ParsedHabit(habit_name=item.habit_name, value=value)
        return ParsedHabit(
            habit_name=item.habit_name,
            needs_clarification=True,
            clarification_type="boolean_confirmation_needed",
        )
