"""Cron 推送路由测试

测试内容：
1. 未配置密钥返回 500，密钥错误返回 401
2. 到期提醒被推送一次，推送后不再重复
3. org 参数只处理指定组织
4. 推送失败只计数，下次 cron 重试
5. 已完成任务的提醒不再推送
"""

from datetime import timedelta

import pytest
from httpx import AsyncClient
from tasknudge.core.models import ReminderPreference, TaskFact
from tasknudge.core.timeutil import utc_now
from tasknudge.push import PushError

URL = "/api/cron/task-reminders"
AUTH = {"Authorization": "Bearer cron-secret"}


@pytest.fixture
def cron_secret(monkeypatch):
    monkeypatch.setenv("TASKNUDGE_CRON_SECRET", "cron-secret")


async def _seed_due(test_app, task_id: str, organization_id: str, user_id: str = "user-1"):
    """截止前 10 分钟，提前 12 分钟提醒：立即到期"""
    store_group = test_app.state.store_group
    await store_group.task_fact_store.upsert_task(
        TaskFact(
            task_id=task_id,
            organization_id=organization_id,
            title=f"Review {task_id}",
            due_at=utc_now() + timedelta(minutes=10),
        )
    )
    await store_group.preference_store.upsert_preference(
        ReminderPreference(task_id=task_id, user_id=user_id, lead_minutes=12)
    )


class _FailingSender:
    def __init__(self) -> None:
        self.attempts = 0

    async def send(self, user_id, payload) -> None:
        self.attempts += 1
        raise PushError("relay returned 503", recoverable=True)


class TestCronAuth:
    async def test_not_configured(self, client: AsyncClient, monkeypatch):
        monkeypatch.delenv("TASKNUDGE_CRON_SECRET", raising=False)
        resp = await client.post(URL, headers=AUTH)
        assert resp.status_code == 500
        assert resp.json()["error"]["code"] == "CRON_NOT_CONFIGURED"

    @pytest.mark.parametrize(
        "headers",
        [{}, {"Authorization": "Bearer wrong"}, {"Authorization": "cron-secret"}],
    )
    async def test_unauthorized(self, client: AsyncClient, cron_secret, headers):
        resp = await client.post(URL, headers=headers)
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "UNAUTHORIZED"


class TestCronDispatch:
    async def test_pushes_due_reminders_once(self, client: AsyncClient, test_app, cron_secret):
        await _seed_due(test_app, "task-1", "org-1")
        await _seed_due(test_app, "task-1", "org-1", user_id="user-2")

        resp = await client.post(URL, headers=AUTH)

        assert resp.status_code == 200
        assert resp.json() == {"organizations": ["org-1"], "created": 2, "sent": 2, "failed": 0}
        sent = test_app.state.push_sender.sent
        assert sorted(user_id for user_id, _ in sent) == ["user-1", "user-2"]
        payload = sent[0][1]
        assert payload.type == "task-reminder"
        assert payload.task_id == "task-1"
        assert payload.task_title == "Review task-1"

        again = await client.post(URL, headers=AUTH)
        assert again.json()["sent"] == 0
        assert len(test_app.state.push_sender.sent) == 2

    async def test_pushed_reminder_still_visible_in_app(
        self, client: AsyncClient, test_app, cron_secret
    ):
        await _seed_due(test_app, "task-1", "org-1")
        await client.post(URL, headers=AUTH)
        headers = {"X-User-Id": "user-1", "X-Organization-Id": "org-1"}

        all_due = await client.get("/api/task-reminders/due-now", headers=headers)
        not_pushed = await client.get(
            "/api/task-reminders/due-now",
            params={"exclude_push_sent": True},
            headers=headers,
        )

        assert len(all_due.json()["reminders"]) == 1
        assert not_pushed.json()["reminders"] == []

    async def test_single_organization(self, client: AsyncClient, test_app, cron_secret):
        await _seed_due(test_app, "task-a", "org-a")
        await _seed_due(test_app, "task-b", "org-b")

        resp = await client.post(URL, params={"org": "org-b"}, headers=AUTH)

        assert resp.json()["organizations"] == ["org-b"]
        assert [p.task_id for _, p in test_app.state.push_sender.sent] == ["task-b"]

    async def test_failed_push_is_retried(self, client: AsyncClient, test_app, cron_secret):
        await _seed_due(test_app, "task-1", "org-1")
        failing = _FailingSender()
        test_app.state.push_sender = failing

        resp = await client.post(URL, headers=AUTH)
        assert resp.json()["failed"] == 1
        assert resp.json()["sent"] == 0

        await client.post(URL, headers=AUTH)
        assert failing.attempts == 2

    async def test_completed_task_not_pushed(self, client: AsyncClient, test_app, cron_secret):
        await _seed_due(test_app, "task-done", "org-1")
        await _seed_due(test_app, "task-open", "org-1")
        headers = {"X-User-Id": "user-1", "X-Organization-Id": "org-1"}
        due = await client.get("/api/task-reminders/due-now", headers=headers)
        assert len(due.json()["reminders"]) == 2

        store_group = test_app.state.store_group
        done = await store_group.task_fact_store.get_task("task-done", "org-1")
        await store_group.task_fact_store.upsert_task(done.model_copy(update={"completed": True}))

        resp = await client.post(URL, headers=AUTH)

        assert resp.json()["sent"] == 1
        assert [p.task_id for _, p in test_app.state.push_sender.sent] == ["task-open"]
