import asyncio
from datetime import date
from types import SimpleNamespace

from healthdiary.api.ai import get_advisor
from healthdiary.engine.advice import HealthAdvisor, NO_RESPONSE, NO_DATA, NONE_RECORDED, format_counts
from healthdiary.main import app

from tests.conftest import log_symptom, log_medication

PERIOD = {"startDate": "2024-03-01", "endDate": "2024-03-31"}


class FakeCompletions:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        return self.response


def fake_client(completions):
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


def answer(text):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=text))])


def test_format_counts():
    assert format_counts({}) == NONE_RECORDED
    assert format_counts({"Headache": 2, "Nausea": 1}) == "Headache: 2 раз, Nausea: 1 раз"


def test_prompt_carries_counts_per_name(client, db, user, templates):
    log_symptom(client, user, templates["headache"], "2024-03-02T10:00:00")
    log_symptom(client, user, templates["headache"], "2024-03-03T10:00:00")
    log_medication(client, user, templates["ibuprofen"], "2024-03-03T11:00:00")
    completions = FakeCompletions(response=answer("Пейте больше воды."))
    advisor = HealthAdvisor(client=fake_client(completions))

    text = asyncio.run(advisor.recommend(db, user["id"], date(2024, 3, 1), date(2024, 3, 31)))

    assert text == "Пейте больше воды."
    prompt = completions.calls[0]["messages"][-1]["content"]
    assert "Headache: 2 раз" in prompt
    assert "Ibuprofen: 1 раз" in prompt


def test_no_records_skips_the_provider(db, user):
    completions = FakeCompletions(response=answer("unused"))
    advisor = HealthAdvisor(client=fake_client(completions))

    text = asyncio.run(advisor.recommend(db, user["id"], date(2024, 3, 1), date(2024, 3, 31)))

    assert text == NO_DATA
    assert completions.calls == []


def test_provider_failures_become_the_sentinel():
    failing = HealthAdvisor(client=fake_client(FakeCompletions(error=RuntimeError("timeout"))))
    malformed = HealthAdvisor(client=fake_client(FakeCompletions(response=SimpleNamespace(choices=[]))))
    empty = HealthAdvisor(client=fake_client(FakeCompletions(response=answer(None))))

    for advisor in (failing, malformed, empty):
        assert asyncio.run(advisor.complete("prompt")) == NO_RESPONSE


def test_missing_api_key_gives_the_sentinel():
    advisor = HealthAdvisor()

    assert advisor.client is None
    assert asyncio.run(advisor.complete("prompt")) == NO_RESPONSE


def test_recommendations_endpoint(client, user, templates):
    log_symptom(client, user, templates["headache"], "2024-03-02T10:00:00")
    completions = FakeCompletions(response=answer("Отдыхайте."))
    app.dependency_overrides[get_advisor] = lambda: HealthAdvisor(client=fake_client(completions))

    response = client.post("/api/ai/recommendations", headers=user["headers"], json=PERIOD)

    assert response.status_code == 200
    assert response.json() == {"recommendations": "Отдыхайте."}


def test_recommendations_endpoint_without_provider(client, user, templates):
    log_symptom(client, user, templates["headache"], "2024-03-02T10:00:00")

    response = client.post("/api/ai/recommendations", headers=user["headers"], json=PERIOD)

    assert response.status_code == 200
    assert response.json() == {"recommendations": NO_RESPONSE}


def test_recommendations_require_auth_and_matching_subject(client, user, other_user):
    assert client.post("/api/ai/recommendations", json=PERIOD).status_code == 401

    declared = dict(PERIOD, userId=user["id"])
    response = client.post("/api/ai/recommendations", headers=other_user["headers"], json=declared)
    assert response.status_code == 403
