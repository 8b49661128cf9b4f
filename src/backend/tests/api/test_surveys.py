"""
Tests for public survey and response endpoints.
"""

import pytest
from httpx import AsyncClient

from models.survey import QuestionType
from models.user import UserRole


@pytest.fixture
async def live_survey(make_survey):
    return await make_survey(question_types=[QuestionType.TEXT, QuestionType.YES_NO])


class TestSurveyEndpoints:
    async def test_open_surveys(self, client: AsyncClient, live_survey, make_survey) -> None:
        survey, _ = live_survey
        await make_survey(title="Hidden draft", publish=False)

        response = await client.get("/api/v1/surveys/open")

        assert response.status_code == 200
        assert [s["id"] for s in response.json()] == [survey.id]
        assert response.json()[0]["is_open"] is True

    async def test_survey_detail(self, client: AsyncClient, live_survey) -> None:
        survey, questions = live_survey

        response = await client.get(f"/api/v1/surveys/{survey.id}")

        assert response.status_code == 200
        assert [q["id"] for q in response.json()["questions"]] == [q.id for q in questions]

    async def test_drafts_are_hidden_from_users(self, client: AsyncClient, make_survey, make_user, auth_header) -> None:
        draft, _ = await make_survey(publish=False)
        admin = await make_user("root", role=UserRole.ADMIN)

        assert (await client.get(f"/api/v1/surveys/{draft.id}")).status_code == 404
        assert (await client.get(f"/api/v1/surveys/{draft.id}", headers=auth_header(admin))).status_code == 200

    async def test_unknown_survey(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/surveys/does-not-exist")

        assert response.status_code == 404
        assert response.json()["error_code"] == "NOT_FOUND"


class TestResponseEndpoints:
    async def test_submit_requires_authentication(self, client: AsyncClient, live_survey) -> None:
        _, questions = live_survey

        response = await client.post(f"/api/v1/questions/{questions[0].id}/responses", json={"text": "hi"})

        assert response.status_code == 401

    async def test_submit_and_duplicate(self, client: AsyncClient, live_survey, make_user, auth_header) -> None:
        _, questions = live_survey
        headers = auth_header(await make_user("alice"))
        url = f"/api/v1/questions/{questions[0].id}/responses"

        first = await client.post(url, json={"text": "  Keep standups short "}, headers=headers)
        assert first.status_code == 201
        assert first.json()["text"] == "Keep standups short"

        second = await client.post(url, json={"text": "Another thought"}, headers=headers)
        assert second.status_code == 409
        assert second.json()["error_code"] == "DUPLICATE_RESPONSE"

    async def test_payload_validation(self, client: AsyncClient, live_survey, make_user, auth_header) -> None:
        _, questions = live_survey
        headers = auth_header(await make_user("alice"))

        response = await client.post(
            f"/api/v1/questions/{questions[1].id}/responses", json={"text": "perhaps"}, headers=headers
        )

        assert response.status_code == 422
        assert response.json()["error_code"] == "VALIDATION_ERROR"

    async def test_upvote_flow_and_ranking(self, client: AsyncClient, live_survey, make_user, auth_header) -> None:
        _, questions = live_survey
        alice = auth_header(await make_user("alice"))
        bob = auth_header(await make_user("bob"))
        url = f"/api/v1/questions/{questions[0].id}/responses"
        alice_response = (await client.post(url, json={"text": "Alice's idea"}, headers=alice)).json()
        bob_response = (await client.post(url, json={"text": "Bob's idea"}, headers=bob)).json()

        first = await client.post(f"/api/v1/responses/{bob_response['id']}/upvote", headers=alice)
        repeat = await client.post(f"/api/v1/responses/{bob_response['id']}/upvote", headers=alice)
        assert first.json()["changed"] is True
        assert repeat.json() == {**first.json(), "changed": False, "message": "Already upvoted"}
        assert repeat.json()["upvote_count"] == 1

        top = await client.get(f"/api/v1/questions/{questions[0].id}/top-responses", headers=alice)
        data = top.json()
        assert data["limit"] == 5
        assert [(r["id"], r["upvote_count"], r["has_user_upvoted"]) for r in data["responses"]] == [
            (bob_response["id"], 1, True),
            (alice_response["id"], 0, False),
        ]

        revoked = await client.delete(f"/api/v1/responses/{bob_response['id']}/upvote", headers=alice)
        assert revoked.json()["changed"] is True
        assert revoked.json()["upvote_count"] == 0

    async def test_top_responses_limit(self, client: AsyncClient, live_survey) -> None:
        _, questions = live_survey
        url = f"/api/v1/questions/{questions[0].id}/top-responses"

        assert (await client.get(url, params={"limit": 0})).json()["responses"] == []
        assert (await client.get(url, params={"limit": -1})).status_code == 422

    async def test_my_responses(self, client: AsyncClient, live_survey, make_user, auth_header) -> None:
        _, questions = live_survey
        headers = auth_header(await make_user("alice"))
        await client.post(f"/api/v1/questions/{questions[0].id}/responses", json={"text": "mine"}, headers=headers)

        response = await client.get("/api/v1/users/me/responses", headers=headers)

        assert [r["text"] for r in response.json()] == ["mine"]
