from datetime import date, datetime, time, timedelta
from typing import Dict, Iterable, Optional
import logging

from openai import AsyncOpenAI
from sqlalchemy.orm import Session

from healthdiary.config import get_settings
from healthdiary.models import HealthRecord, SymptomRecord, MedicationRecord

logger = logging.getLogger(__name__)

NO_RESPONSE = "Ответ не получен"
NO_DATA = "Нет данных о симптомах или медикаментах за указанный период."
NONE_RECORDED = "отсутствуют"


def count_by_name(records: Iterable[HealthRecord]) -> Dict[str, Dict[str, int]]:
    """Occurrences per symptom name and per medication name, in first-seen order."""
    symptoms: Dict[str, int] = {}
    medications: Dict[str, int] = {}

    for record in records:
        if isinstance(record, SymptomRecord) and record.symptom:
            name = record.symptom.name
            symptoms[name] = symptoms.get(name, 0) + 1
        elif isinstance(record, MedicationRecord) and record.medication:
            name = record.medication.name
            medications[name] = medications.get(name, 0) + 1

    return {"symptoms": symptoms, "medications": medications}


def format_counts(counts: Dict[str, int]) -> str:
    if not counts:
        return NONE_RECORDED
    return ", ".join(f"{name}: {count} раз" for name, count in counts.items())


class HealthAdvisor:
    """Turns a user's symptom and medication history into general (non-diagnostic) advice."""

    SYSTEM_PROMPT = "Ты опытный врач высшей категории. Ты даёшь общие рекомендации и никогда не ставишь диагноз."

    PROMPT_TEMPLATE = """Ты врач с высшей категорией. У пользователя за период наблюдения были зафиксированы следующие симптомы: {symptoms}.
За тот же период он принимал следующие лекарства: {medications}. Проанализируй эти данные и дай развернутые рекомендации по лечению. Укажи:
1. Объясни, что могут значить симптомы.
2. Расскажи, как лекарства влияют на ситуацию.
3. Рекомендации по дальнейшему лечению, включая возможные изменения в приеме лекарств или дополнительные препараты.
4. Изменения в образе жизни для улучшения состояния.
5. Когда стоит обратиться к врачу.
Не ставь точный диагноз, а предоставь общие рекомендации на основе симптомов и медикаментов."""

    def __init__(self, client: Optional[AsyncOpenAI] = None):
        self.settings = get_settings()
        if client is not None:
            self.client = client
        elif self.settings.ai_api_key:
            self.client = AsyncOpenAI(
                api_key=self.settings.ai_api_key,
                base_url=self.settings.ai_base_url or None
            )
        else:
            self.client = None

    def build_prompt(self, counts: Dict[str, Dict[str, int]]) -> str:
        return self.PROMPT_TEMPLATE.format(
            symptoms=format_counts(counts["symptoms"]),
            medications=format_counts(counts["medications"])
        )

    def load_records(self, db: Session, user_id: str, start_date: date, end_date: date):
        return db.query(HealthRecord).filter(
            HealthRecord.user_id == user_id,
            HealthRecord.record_date >= datetime.combine(start_date, time.min),
            HealthRecord.record_date < datetime.combine(end_date + timedelta(days=1), time.min)
        ).order_by(HealthRecord.record_date.asc()).all()

    async def complete(self, prompt: str) -> str:
        """Send the prompt and return the first choice, or NO_RESPONSE."""
        if self.client is None:
            logger.warning("AI provider key not configured")
            return NO_RESPONSE

        try:
            response = await self.client.chat.completions.create(
                model=self.settings.ai_model,
                messages=[
                    {"role": "system", "content": self.SYSTEM_PROMPT},
                    {"role": "user", "content": prompt}
                ],
                temperature=self.settings.ai_temperature,
                max_tokens=self.settings.ai_max_tokens
            )
        except Exception as e:
            logger.error(f"AI provider error: {e}")
            return NO_RESPONSE

        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError, TypeError):
            logger.warning("Unexpected completion shape from AI provider")
            return NO_RESPONSE

        return content or NO_RESPONSE

    async def recommend(self, db: Session, user_id: str, start_date: date, end_date: date) -> str:
        records = self.load_records(db, user_id, start_date, end_date)
        if not records:
            return NO_DATA

        prompt = self.build_prompt(count_by_name(records))
        logger.info(f"Requesting AI advice for user {user_id} ({len(records)} records)")
        return await self.complete(prompt)
